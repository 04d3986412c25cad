"""
Implements a conduit over a serial port.
"""

import logging

import serial
from serial.tools import list_ports

from iocpgateway.conduit.base import Conduit
from iocpgateway.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class SerialSettings(CommonEqualityMixin, StringerMixin):
    """
    The line settings used when a serial port is opened. These are handed to pyserial
    as they are and are not interpreted here.
    """

    def __init__(self, baudrate=9600, bytesize=serial.EIGHTBITS, parity=serial.PARITY_NONE,
                 stopbits=serial.STOPBITS_ONE, xonxoff=False, rtscts=False, timeout=0.5, write_timeout=0.5):
        self.baudrate = baudrate
        self.bytesize = bytesize
        self.parity = parity
        self.stopbits = stopbits
        self.xonxoff = xonxoff
        self.rtscts = rtscts
        self.timeout = timeout
        self.write_timeout = write_timeout

    def as_kwargs(self):
        return dict(self.__dict__)


def serial_for_settings(port, settings: SerialSettings = None) -> serial.Serial:
    """
    Creates an unopened serial instance for the given port.
    :param port: a device path such as /dev/ttyUSB0 or any pyserial url, such as loop://
    :param settings: the line settings, or None for the defaults
    """
    settings = settings or SerialSettings()
    return serial.serial_for_url(port, do_not_open=True, **settings.as_kwargs())


class SerialConduit(Conduit):
    """
    A conduit that provides comms via a serial port.

    The port stops being writable once more than output_limit bytes are waiting to go out,
    which is the case when the device has stopped reading.
    """

    def __init__(self, ser: serial.Serial, output_limit=512):
        self.ser = ser
        self.output_limit = output_limit
        # flushing locks up when the device is unplugged during the flush
        ser.flush = self._no_flush

    def _no_flush(self, *args, **kwargs):
        pass

    @property
    def target(self):
        return self.ser

    @property
    def open(self) -> bool:
        return self.ser.is_open

    @property
    def writable(self) -> bool:
        ser = self.ser
        # not every url handler reports its output buffer
        return ser.is_open and getattr(ser, 'out_waiting', 0) < self.output_limit

    def read_available(self, size=4096):
        ser = self.ser
        return ser.read(min(size, max(1, ser.in_waiting)))

    def write(self, data):
        self.ser.write(data)

    def close(self):
        self.ser.close()


def is_url(port):
    return '://' in port


def serial_port_info():
    """
    :return: a tuple of ListPortInfo, one for each serial port on this machine.
    """
    return tuple(list_ports.comports())


def serial_ports():
    """
    Returns a generator for all available serial port device names.
    """
    for port in serial_port_info():
        yield port.device
