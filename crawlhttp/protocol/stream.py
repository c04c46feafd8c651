"""Byte stream cursor with pushback, and the protocol line reader."""

from typing import BinaryIO

from crawlhttp.protocol.constants import DEFAULT_MAX_LINE_BYTES
from crawlhttp.protocol.errors import (
    LineTooLongError,
    ReadTimeoutError,
    UnexpectedEOFError,
)


CR = 0x0D
LF = 0x0A
SP = 0x20
TAB = 0x09

EOF = -1


class PushbackReader:
    """Read cursor over a binary stream with an explicit lookahead buffer.

    Bytes given to ``unread`` are returned by subsequent reads before any
    further data is taken from the underlying stream. The reader owns no
    resources; the caller closes the underlying stream.
    """

    def __init__(self, raw: BinaryIO, url: str | None = None) -> None:
        """Initialize the reader.

        Args:
            raw: Underlying binary stream (e.g. ``socket.makefile("rb")``).
            url: URL being fetched, attached to raised errors.
        """
        self._raw = raw
        self._url = url
        self._pushback = bytearray()

    @property
    def url(self) -> str | None:
        """URL being fetched, if known."""
        return self._url

    def _read_raw(self, size: int) -> bytes:
        try:
            return self._raw.read(size) or b""
        except TimeoutError as e:
            msg = f"read timed out: {e}"
            raise ReadTimeoutError(msg, url=self._url) from e
        except OSError as e:
            msg = f"connection lost while reading: {e}"
            raise UnexpectedEOFError(msg, url=self._url) from e

    def read(self, size: int) -> bytes:
        """Read up to size bytes; an empty result means end of stream.

        Args:
            size: Maximum number of bytes to return.

        Returns:
            Between 1 and size bytes, or b"" at end of stream.
        """
        if size <= 0:
            return b""
        if self._pushback:
            data = bytes(self._pushback[:size])
            del self._pushback[:size]
            return data
        return self._read_raw(size)

    def read_byte(self) -> int:
        """Read a single byte, or EOF (-1) at end of stream."""
        data = self.read(1)
        if not data:
            return EOF
        return data[0]

    def peek_byte(self) -> int:
        """Return the next byte without consuming it, or EOF (-1)."""
        value = self.read_byte()
        if value != EOF:
            self.unread(bytes((value,)))
        return value

    def unread(self, data: bytes) -> None:
        """Push bytes back so they are read again next.

        Args:
            data: Bytes to re-feed, in the order they should be read.
        """
        self._pushback[0:0] = data

    def read_line(
        self,
        allow_continuation: bool = False,
        max_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ) -> bytes:
        """Read one line, without its terminator.

        A line ends at CRLF or a bare LF (a bare CR is also accepted). With
        ``allow_continuation``, a non-empty line followed by a line starting
        with a space or tab is folded into one logical line, the folding
        whitespace replaced by a single space.

        Args:
            allow_continuation: Whether to fold continued header lines.
            max_bytes: Maximum logical line length.

        Returns:
            Line bytes; b"" for a blank line.

        Raises:
            UnexpectedEOFError: If the stream ends before a terminator.
            LineTooLongError: If the line exceeds max_bytes.
        """
        line = bytearray()
        while True:
            c = self.read_byte()
            if c == EOF:
                msg = f"end of stream after {len(line)} bytes of an unterminated line"
                raise UnexpectedEOFError(msg, url=self._url, partial=bytes(line))

            if c in (CR, LF):
                if c == CR and self.peek_byte() == LF:
                    self.read_byte()
                if line and allow_continuation and self.peek_byte() in (SP, TAB):
                    self.read_byte()
                    line.append(SP)
                    continue
                return bytes(line)

            line.append(c)
            if len(line) > max_bytes:
                raise LineTooLongError(max_bytes, url=self._url, partial=bytes(line))
