import logging
import os

from serial import Serial, SerialException

from iocpgateway.conduit.base import Conduit
from iocpgateway.conduit.serial_conduit import SerialConduit, is_url, serial_ports
from iocpgateway.connector.base import AbstractConnector, ConnectorError

logger = logging.getLogger(__name__)


class SerialConnector(AbstractConnector):
    """
    Implements a connector that communicates data via a Serial link.
    """
    def __init__(self, serial: Serial):
        """
        Creates a new serial connector.
        :param serial - the serial object defining the serial port to connect to.
                The serial instance should not be open.
        """
        super().__init__()
        self._serial = serial
        if serial.is_open:
            raise ValueError("serial object should be initially closed")

    @property
    def endpoint(self):
        return self._serial.port

    def _connected(self):
        return self._serial.is_open

    def _try_open(self):
        s = self._serial
        if not s.is_open:
            try:
                s.open()
                logger.info("opened serial port %s" % s.port)
            except (SerialException, OSError) as e:
                logger.warning("error opening serial port %s: %s" % (s.port, e))
                raise ConnectorError("unable to open serial port %s" % s.port) from e

    def _connect(self) -> Conduit:
        self._try_open()
        return SerialConduit(self._serial)

    def _try_available(self):
        port = self._serial.port
        if not port:
            return False
        if is_url(port):
            return True
        try:
            return os.path.exists(port) or port in serial_ports()
        except SerialException:
            return False
