"""
The gateway's configuration: where the server is, and which serial devices to bridge.

    [server]
    host = sioc.local
    port = 8092

    [endpoints]
        [[overhead-panel]]
        port = /dev/ttyUSB0
        baudrate = 9600

Each subsection of ``[endpoints]`` is one serial device. The section name is the endpoint label
unless a ``label`` is given. An endpoint section that fails validation is reported and left out,
so the gateway still runs with the others. Any other validation failure is fatal.
"""
import logging
import os

import serial
from configobj import ConfigObjError

from iocpgateway.conduit.serial_conduit import SerialSettings
from iocpgateway.config.config import describe_error, load_config
from iocpgateway.connector.socketconn import TCPServerEndpoint

logger = logging.getLogger(__name__)

config_name = 'gateway'
config_directory = os.path.dirname(os.path.abspath(__file__))

stopbits = {
    '1': serial.STOPBITS_ONE,
    '1.5': serial.STOPBITS_ONE_POINT_FIVE,
    '2': serial.STOPBITS_TWO,
}


class ServerConfig:
    def __init__(self, server: TCPServerEndpoint, connect_timeout=5.0, retry_period=5.0):
        self.server = server
        self.connect_timeout = connect_timeout
        self.retry_period = retry_period


class EndpointConfig:
    def __init__(self, label, port, settings: SerialSettings, retry_period=None):
        self.label = label
        self.port = port
        self.settings = settings
        self.retry_period = retry_period


class GatewayConfig:
    def __init__(self, server: ServerConfig, endpoints, log_level='INFO'):
        self.server = server
        self.endpoints = endpoints
        self.log_level = log_level


def server_config(section) -> ServerConfig:
    try:
        server = TCPServerEndpoint(section['host'], section['port'])
    except ValueError as e:
        raise ConfigObjError("invalid server: %s" % e) from e
    return ServerConfig(server, section['connect_timeout'], section['retry_period'])


def endpoint_config(name, section) -> EndpointConfig:
    settings = SerialSettings(baudrate=section['baudrate'], bytesize=section['bytesize'],
                              parity=section['parity'], stopbits=stopbits[section['stopbits']],
                              xonxoff=section['xonxoff'], rtscts=section['rtscts'],
                              timeout=section['timeout'], write_timeout=section['write_timeout'])
    return EndpointConfig(section['label'] or name, section['port'], settings, section['retry_period'])


def gateway_config(config, errors=()) -> GatewayConfig:
    """
    Builds the gateway configuration from a validated ConfigObj.
    :param errors: the validation errors, as given by load_config()
    """
    rejected = set()
    fatal = []
    for error in errors:
        section_list = error[0]
        if len(section_list) >= 2 and section_list[0] == 'endpoints':
            logger.error("ignoring endpoint '%s': %s" % (section_list[1], describe_error(error)))
            rejected.add(section_list[1])
        else:
            fatal.append(describe_error(error))
    if fatal:
        raise ConfigObjError("the gateway configuration is invalid: %s" % "; ".join(fatal))

    endpoints = []
    labels = set()
    for name, section in config['endpoints'].items():
        if name in rejected:
            continue
        endpoint = endpoint_config(name, section)
        if endpoint.label in labels:
            logger.error("ignoring endpoint '%s': label '%s' is already used" % (name, endpoint.label))
            continue
        labels.add(endpoint.label)
        endpoints.append(endpoint)
    return GatewayConfig(server_config(config['server']), endpoints, config['logging']['level'])


def load_gateway_config(*files) -> GatewayConfig:
    """
    Loads the packaged defaults, the user's ~/gateway.cfg and then the given files.
    Raises ConfigObjError when the configuration can't be used at all.
    """
    config, errors = load_config(config_name, config_directory, files)
    return gateway_config(config, errors)
