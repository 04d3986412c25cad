"""
Splits a byte stream into CRLF terminated lines.
"""

DELIMITER = b'\r\n'


class LineFramer:
    """
    Buffers bytes as they arrive from a transport and hands out complete lines.
    A partial line stays buffered until the rest of it arrives. Several lines may arrive in one
    chunk, so extract_next_line() should be called until it returns None after each append().

    The buffer is not bounded: a stream that never sends a delimiter grows it without limit.

    >>> framer = LineFramer()
    >>> framer.append(b'A\\r\\nB\\r')
    >>> framer.extract_next_line()
    'A'
    >>> framer.extract_next_line() is None
    True
    >>> framer.append(b'\\nC')
    >>> list(framer.lines())
    ['B']
    >>> framer.pending
    b'C'
    """

    def __init__(self, encoding='utf-8'):
        self.encoding = encoding
        self._buffer = bytearray()
        self._scanned = 0      # bytes already known not to start a delimiter

    def append(self, data: bytes):
        self._buffer.extend(data)

    def extract_next_line(self):
        """
        removes the first complete line from the buffer.
        :return: the text of the line without the delimiter, or None if no complete line is buffered.
        """
        index = self._buffer.find(DELIMITER, self._scanned)
        if index < 0:
            # the last byte may be the first half of a delimiter
            self._scanned = max(0, len(self._buffer) - 1)
            return None
        line = bytes(self._buffer[:index])
        del self._buffer[:index + len(DELIMITER)]
        self._scanned = 0
        return line.decode(self.encoding, errors='replace')

    def lines(self):
        """ generates each complete line currently buffered. """
        line = self.extract_next_line()
        while line is not None:
            yield line
            line = self.extract_next_line()

    @property
    def pending(self) -> bytes:
        """ the bytes of the incomplete line held in the buffer. """
        return bytes(self._buffer)

    def clear(self):
        del self._buffer[:]
        self._scanned = 0
