"""
Command line entry point:

    iocp-gateway [config ...] [--log-level LEVEL] [--list-ports]
"""
import argparse
import logging
import sys

from configobj import ConfigObjError

from iocpgateway.conduit.serial_conduit import serial_port_info
from iocpgateway.config.gateway import load_gateway_config
from iocpgateway.gateway import Gateway

logger = logging.getLogger('iocpgateway')

log_format = '%(asctime)s %(levelname)-7s %(threadName)s %(name)s: %(message)s'
log_levels = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def argument_parser():
    parser = argparse.ArgumentParser(prog='iocp-gateway',
                                     description='Bridges IOCP serial devices to a SIOC server.')
    parser.add_argument('config', nargs='*',
                        help='configuration files, applied in order over the defaults and ~/gateway.cfg')
    parser.add_argument('--log-level', choices=log_levels, type=str.upper,
                        help='overrides the level in the [logging] section')
    parser.add_argument('--list-ports', action='store_true',
                        help='lists the serial ports on this machine and exits')
    return parser


def list_ports(out=sys.stdout):
    ports = serial_port_info()
    for port in ports:
        out.write("%s\t%s\n" % (port.device, port.description))
    return len(ports)


def main(argv=None):
    args = argument_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level or logging.INFO, format=log_format)
    if args.list_ports:
        list_ports()
        return 0
    try:
        config = load_gateway_config(*args.config)
    except (ConfigObjError, IOError) as e:
        logger.error("unable to load the configuration: %s" % e)
        return 2

    logging.getLogger().setLevel(args.log_level or config.log_level)
    if not config.endpoints:
        logger.warning("no serial endpoints are configured")
    gateway = Gateway(config)
    try:
        gateway.run()
    except KeyboardInterrupt:
        logger.info("stopping")
    return 0


if __name__ == '__main__':
    sys.exit(main())
