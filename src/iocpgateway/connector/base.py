"""
Connectors reach a device or server and hold the conduit to it while connected.
"""
import logging
import threading
from abc import abstractmethod

from iocpgateway.conduit.base import Conduit
from iocpgateway.support.events import EventSource
from iocpgateway.support.mixins import StringerMixin

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ A transport failed: it couldn't be opened, or data couldn't be written to it. """


class ConnectionNotConnectedError(ConnectorError):
    """ The conduit was asked for while the connector is disconnected. """


class ConnectionNotAvailableError(ConnectorError):
    """ The device or server can't be reached, or the connection to it is closed. """


class ChannelNotWritableError(ConnectorError):
    """ The connection is open but cannot take data right now. """


class ConnectorEvent(StringerMixin):
    def __init__(self, connector):
        self.connector = connector


class ConnectorConnectedEvent(ConnectorEvent):
    """ fired once the conduit is open. """


class ConnectorDisconnectedEvent(ConnectorEvent):
    """ fired after the conduit has been closed. """


class Connector:
    """ The transport to one endpoint, such as a serial device or the SIOC server.
        Fires ConnectorConnectedEvent and ConnectorDisconnectedEvent on ``events``. """

    def __init__(self):
        self.events = EventSource()

    @property
    @abstractmethod
    def endpoint(self):
        """ what this connector connects to, such as the serial port name or the server address. """
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @property
    @abstractmethod
    def conduit(self) -> Conduit:
        """
        The open conduit. Raises ConnectionNotConnectedError when disconnected.
        """
        raise ConnectionNotConnectedError

    @property
    @abstractmethod
    def available(self) -> bool:
        """ True when disconnected and the endpoint looks reachable, so that connect() is worth trying. """
        raise NotImplementedError

    @abstractmethod
    def connect(self):
        """
        Opens the conduit. Does nothing when already connected.
        Raises ConnectorError when the conduit can't be opened.
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def writable(self) -> bool:
        """ determines if send() can deliver data now. """
        raise NotImplementedError

    @abstractmethod
    def send(self, data: bytes):
        """
        Writes data to the endpoint without waiting for the channel to become ready.
        Raises ConnectionNotAvailableError when not connected, ChannelNotWritableError when the
        channel can't take data now, and ConnectorError when the write fails.
        """
        raise NotImplementedError


class AbstractConnector(Connector):
    """ Opens and closes the conduit, fires the events and serializes writes.
        Subclasses say how to open the conduit and whether the endpoint is there. """

    def __init__(self):
        super().__init__()
        self._conduit = None
        self._write_lock = threading.Lock()

    @property
    def available(self):
        return False if self.connected else self._try_available()

    @property
    def connected(self):
        return self._conduit is not None and self._connected()

    def connect(self):
        if self.connected:
            return

        if not self.available:
            raise ConnectionNotAvailableError("%s is not available" % (self.endpoint,))

        try:
            self._conduit = self._connect()
            self.events.fire(ConnectorConnectedEvent(self))
        finally:
            if not self._conduit:
                self.disconnect()

    def disconnect(self):
        conduit = self._conduit
        if conduit is None:
            return
        self._conduit = None
        self._disconnect()
        conduit.close()
        self.events.fire(ConnectorDisconnectedEvent(self))

    @property
    def writable(self):
        conduit = self._conduit
        return conduit is not None and conduit.open and conduit.writable

    def send(self, data):
        conduit = self._conduit
        if conduit is None or not conduit.open:
            raise ConnectionNotAvailableError("%s is not connected" % (self.endpoint,))
        with self._write_lock:
            try:
                # the conduit may be closed by its reading thread at any point
                if not conduit.writable:
                    raise ChannelNotWritableError("%s is not writable" % (self.endpoint,))
                conduit.write(data)
            except (OSError, ValueError) as e:
                raise ConnectorError("error writing to %s: %s" % (self.endpoint, e)) from e

    @abstractmethod
    def _connect(self) -> Conduit:
        """ opens and returns the conduit, raising ConnectorError when that isn't possible. """
        raise NotImplementedError

    @abstractmethod
    def _try_available(self):
        """ checks, while disconnected, whether the endpoint is there to connect to. """
        raise NotImplementedError

    def _disconnect(self):
        """ called on disconnection, before the conduit is closed. """

    def _connected(self):
        return self._conduit is not None and self._conduit.open

    @property
    def conduit(self) -> Conduit:
        self.check_connected()
        return self._conduit

    def check_connected(self):
        if not self.connected:
            raise ConnectionNotConnectedError("%s is not connected" % (self.endpoint,))
