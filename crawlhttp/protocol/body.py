"""Readers for fixed-length and chunked response bodies."""

import string
from dataclasses import dataclass

import structlog

from crawlhttp.protocol.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_MAX_LINE_BYTES,
    HEADER_CONTENT_LENGTH,
    WIRE_ENCODING,
)
from crawlhttp.protocol.errors import (
    ChunkFramingError,
    MalformedChunkSizeError,
    MalformedContentLengthError,
    UnexpectedEOFError,
)
from crawlhttp.protocol.headers import HeaderStore
from crawlhttp.protocol.stream import PushbackReader


logger = structlog.get_logger()

_HEX_DIGITS = frozenset(string.hexdigits)


@dataclass(frozen=True)
class BodyRead:
    """Raw body bytes read off the wire.

    Attributes:
        data: Body bytes after transfer decoding.
        truncated: Whether reading stopped at the size cap.
        complete: Whether a chunked body reached its terminal chunk
            (always True for fixed-length bodies).
    """

    data: bytes
    truncated: bool = False
    complete: bool = True


def parse_content_length(headers: HeaderStore, url: str | None = None) -> int | None:
    """Read the Content-Length header.

    Args:
        headers: Response headers.
        url: URL being fetched.

    Returns:
        Declared length, or None when absent or blank.

    Raises:
        MalformedContentLengthError: If the value is not a non-negative integer.
    """
    raw = headers.get_first(HEADER_CONTENT_LENGTH)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    if not (value.isascii() and value.isdigit()):
        raise MalformedContentLengthError(value, url=url)
    return int(value)


def read_fixed_body(
    reader: PushbackReader,
    content_length: int | None,
    max_content_bytes: int | None,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> BodyRead:
    """Read a body delimited by Content-Length or by end of stream.

    Args:
        reader: Stream positioned at the start of the body.
        content_length: Declared length, or None to read to end of stream.
        max_content_bytes: Size cap, or None when unbounded.
        buffer_size: Maximum bytes requested per read.

    Returns:
        BodyRead with at most min(content_length, max_content_bytes) bytes.
    """
    target = content_length
    if max_content_bytes is not None and (target is None or target > max_content_bytes):
        target = max_content_bytes

    if target == 0:
        return BodyRead(data=b"", truncated=bool(content_length))

    out = bytearray()
    while target is None or len(out) < target:
        want = buffer_size if target is None else min(buffer_size, target - len(out))
        data = reader.read(want)
        if not data:
            break
        out += data

    # Without a Content-Length, a body that exactly fills the cap counts as cut
    truncated = target is not None and len(out) == target and (
        content_length is None or content_length > target
    )

    return BodyRead(data=bytes(out), truncated=truncated)


def parse_chunk_size(line: bytes, url: str | None = None) -> int:
    """Parse a chunk-size line, ignoring any chunk extension.

    Args:
        line: Chunk-size line without its terminator.
        url: URL being fetched.

    Returns:
        Chunk size in bytes.

    Raises:
        MalformedChunkSizeError: If the size is not a hexadecimal integer.
    """
    text = line.decode(WIRE_ENCODING)
    size_text = text.split(";", 1)[0].strip()
    if not size_text or not _HEX_DIGITS.issuperset(size_text):
        raise MalformedChunkSizeError(text, url=url)
    return int(size_text, 16)


def _framing_line(
    reader: PushbackReader,
    body_size: int,
    max_content_bytes: int | None,
    max_line_bytes: int,
) -> bytes | None:
    """Read a chunk-size line or chunk terminator.

    Returns None instead of raising when the stream ends and the body has
    already reached the cap.
    """
    try:
        return reader.read_line(max_bytes=max_line_bytes)
    except UnexpectedEOFError:
        if max_content_bytes is None or body_size < max_content_bytes:
            raise
        logger.debug("chunked_eof_at_cap", component="http", bytes_so_far=body_size)
        return None


def read_chunked_body(
    reader: PushbackReader,
    max_content_bytes: int | None,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
) -> BodyRead:
    """Read a chunked body up to and including its terminal chunk.

    When a chunk would take the body past the size cap, only the bytes that
    fit are read and reading stops there; the result is then marked
    truncated and incomplete, and the rest of the stream is left unread.
    A stream that ends on a framing line once the body has reached the cap
    gives the same truncated result.

    Args:
        reader: Stream positioned at the first chunk-size line.
        max_content_bytes: Size cap, or None when unbounded.
        buffer_size: Maximum bytes requested per read.
        max_line_bytes: Maximum chunk-size line length.

    Returns:
        BodyRead with the reassembled chunk data.

    Raises:
        MalformedChunkSizeError: If a chunk-size line is malformed.
        ChunkFramingError: If the stream ends inside a chunk.
        UnexpectedEOFError: If the stream ends inside a chunk-size line
            before the cap is reached.
    """
    out = bytearray()

    while True:
        logger.debug("chunk_start", component="http", bytes_so_far=len(out))
        line = _framing_line(reader, len(out), max_content_bytes, max_line_bytes)
        if line is None:
            return BodyRead(data=bytes(out), truncated=True, complete=False)
        chunk_len = parse_chunk_size(line, url=reader.url)
        if chunk_len == 0:
            return BodyRead(data=bytes(out))

        truncated = False
        if max_content_bytes is not None and len(out) + chunk_len > max_content_bytes:
            chunk_len = max_content_bytes - len(out)
            truncated = True

        chunk_read = 0
        while chunk_read < chunk_len:
            data = reader.read(min(chunk_len - chunk_read, buffer_size))
            if not data:
                raise ChunkFramingError(
                    len(out) - chunk_read, chunk_read, url=reader.url
                )
            out += data
            chunk_read += len(data)

        if truncated:
            return BodyRead(data=bytes(out), truncated=True, complete=False)

        # Chunk data is followed by its own line terminator
        terminator = _framing_line(reader, len(out), max_content_bytes, max_line_bytes)
        if terminator is None:
            return BodyRead(data=bytes(out), truncated=True, complete=False)
