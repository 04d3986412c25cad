from abc import abstractmethod


class Conduit:
    """
    A conduit allows two-way communication with a device or server. Bytes are read in whatever
    chunks the underlying channel delivers them and written whole.
    """

    @property
    @abstractmethod
    def target(self):
        """ the underlying channel object, such as the serial port or socket. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, it can be read from and written to."""
        raise NotImplementedError

    @property
    @abstractmethod
    def writable(self) -> bool:
        """ determines if a write can be made now without waiting. """
        raise NotImplementedError

    @abstractmethod
    def read_available(self, size=4096) -> bytes:
        """
        Reads the bytes that have arrived, waiting at most the channel's read timeout.
        Returns an empty bytes object when nothing arrived in time.
        """
        raise NotImplementedError

    @abstractmethod
    def write(self, data: bytes):
        """ writes all of data to the channel. """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError


class DefaultConduit(Conduit):
    """ provides a conduit over file-like streams for reading and writing (which may be the same stream) """

    def __init__(self, read=None, write=None):
        self._read = self._write = None
        self._closed = False
        self.set_streams(read, write)

    def set_streams(self, read, write=None):
        self._read = read
        self._write = write if write is not None else read

    @property
    def target(self):
        return self._read

    @property
    def open(self):
        return not self._closed

    @property
    def writable(self):
        return not self._closed and self._write is not None

    def read_available(self, size=4096):
        return self._read.read(size) or b''

    def write(self, data):
        self._write.write(data)
        self._write.flush()

    def close(self):
        self._closed = True
        self._write.close()
        self._read.close()

