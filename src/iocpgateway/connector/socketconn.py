import logging
import socket

from iocpgateway.conduit.base import Conduit
from iocpgateway.conduit.socket_conduit import SocketConduit
from iocpgateway.connector.base import AbstractConnector, ConnectorError

logger = logging.getLogger(__name__)


class TCPServerEndpoint:
    """
    Describes the TCP server to connect to.
    """
    def __init__(self, host, port):
        if not host:
            raise ValueError("invalid host %r" % (host,))
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError("invalid port %r" % (port,))
        self.host = host
        self.port = port

    @property
    def address(self):
        return self.host, self.port

    def __str__(self):
        return "%s:%d" % self.address


class SocketConnector(AbstractConnector):
    """
    A connector that communicates data via a TCP client socket
    """
    def __init__(self, server: TCPServerEndpoint, connect_timeout=5.0, read_timeout=0.5):
        """
        :param server the server to connect to.
        :param connect_timeout how long to wait for the connection to be established, in seconds
        :param read_timeout how long a single read waits for data, in seconds
        """
        super().__init__()
        self._server = server
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    @property
    def endpoint(self):
        return self._server

    def _connect(self) -> Conduit:
        try:
            sock = socket.create_connection(self._server.address, self.connect_timeout)
        except (socket.error, socket.gaierror) as e:
            logger.warning("error opening socket to %s: %s" % (self._server, e))
            raise ConnectorError("unable to connect to %s" % self._server) from e
        sock.settimeout(self.read_timeout)
        logger.info("opened socket to %s" % self._server)
        return SocketConduit(sock)

    def _try_available(self):
        # the server is only known to be there by connecting
        return True
