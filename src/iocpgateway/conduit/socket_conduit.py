import select
import socket

from iocpgateway.conduit import base


class SocketConduit(base.Conduit):
    """
    A conduit that provides communication via a connected socket.
    Reads wait at most the socket timeout. When the peer closes its end, the conduit is no longer open.
    """
    def __init__(self, sock: socket.socket):
        """
        :param sock: the client socket that represents the connection
        :type sock: socket
        """
        self.sock = sock
        self._eof = False

    @property
    def open(self) -> bool:
        return not self._eof and self.sock.fileno() >= 0

    @property
    def target(self):
        return self.sock

    @property
    def writable(self) -> bool:
        if not self.open:
            return False
        _, ready, _ = select.select([], [self.sock], [], 0)
        return bool(ready)

    def read_available(self, size=4096):
        try:
            data = self.sock.recv(size)
        except socket.timeout:
            return b''
        if not data:
            self._eof = True
        return data

    def write(self, data):
        try:
            self.sock.sendall(data)
        except OSError:
            # part of the line may have gone out; the next line would be corrupted
            self._eof = True
            raise

    def close(self):
        self._eof = True
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except socket.error:
            pass    # the peer may have closed the socket already
        finally:
            self.sock.close()
