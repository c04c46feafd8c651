"""Content-Encoding dispatch and the built-in decompressors."""

import zlib

import structlog

from crawlhttp.protocol.config import ProtocolConfig
from crawlhttp.protocol.constants import DEFAULT_BUFFER_SIZE
from crawlhttp.protocol.errors import DecodeError


logger = structlog.get_logger()

GZIP_ENCODINGS = frozenset({"gzip", "x-gzip"})
DEFLATE_ENCODING = "deflate"

# wbits selecting the gzip container, the zlib container, and raw deflate
_GZIP_WBITS = 16 + zlib.MAX_WBITS
_ZLIB_WBITS = zlib.MAX_WBITS
_RAW_DEFLATE_WBITS = -zlib.MAX_WBITS


def _inflate(data: bytes, wbits: int, max_bytes: int | None) -> bytes:
    """Decompress data, stopping once max_bytes of output are produced.

    A stream that ends early yields whatever decompressed cleanly; a stream
    that is corrupt from the start raises zlib.error.
    """
    decompressor = zlib.decompressobj(wbits)
    out = bytearray()
    view = memoryview(data)
    pos = 0
    try:
        while pos < len(view):
            block = view[pos : pos + DEFAULT_BUFFER_SIZE]
            pos += len(block)
            out += decompressor.decompress(block)
            if max_bytes is not None and len(out) >= max_bytes:
                return bytes(out[:max_bytes])
            # gzip members may be concatenated; restart on the leftover bytes
            while decompressor.eof and decompressor.unused_data:
                leftover = decompressor.unused_data
                decompressor = zlib.decompressobj(wbits)
                out += decompressor.decompress(leftover)
        out += decompressor.flush()
    except zlib.error:
        if not out:
            raise
    if max_bytes is not None:
        return bytes(out[:max_bytes])
    return bytes(out)


def gzip_decompress(data: bytes, max_bytes: int | None = None) -> bytes:
    """Decompress a gzip body, best effort.

    Args:
        data: gzip-compressed bytes.
        max_bytes: Maximum number of decompressed bytes to return.

    Returns:
        Decompressed bytes.
    """
    return _inflate(data, _GZIP_WBITS, max_bytes)


def deflate_decompress(data: bytes, max_bytes: int | None = None) -> bytes:
    """Decompress a deflate body, best effort.

    Servers disagree on whether ``deflate`` means zlib-wrapped or raw
    deflate data, so both are accepted.

    Args:
        data: deflate-compressed bytes.
        max_bytes: Maximum number of decompressed bytes to return.

    Returns:
        Decompressed bytes.
    """
    try:
        return _inflate(data, _ZLIB_WBITS, max_bytes)
    except zlib.error:
        return _inflate(data, _RAW_DEFLATE_WBITS, max_bytes)


def decode_content(
    body: bytes,
    content_encoding: str | None,
    url: str,
    config: ProtocolConfig,
) -> bytes:
    """Undo the Content-Encoding of a fully assembled body.

    gzip and x-gzip go to the gzip decoder, deflate to the deflate decoder;
    any other encoding, or none, passes the body through unchanged.

    Args:
        body: Body bytes after transfer decoding.
        content_encoding: Value of the Content-Encoding header, if any.
        url: URL the body was fetched from.
        config: Protocol configuration supplying the decoders.

    Returns:
        Decoded body bytes.

    Raises:
        DecodeError: If the decoder fails.
    """
    encoding = (content_encoding or "").strip().lower()
    limit = config.content_limit

    if encoding in GZIP_ENCODINGS:
        decoder = config.gzip_decode or (
            lambda data, _url: gzip_decompress(data, limit)
        )
    elif encoding == DEFLATE_ENCODING:
        decoder = config.deflate_decode or (
            lambda data, _url: deflate_decompress(data, limit)
        )
    else:
        logger.debug("content_passthrough", url=url, bytes=len(body))
        return body

    try:
        decoded = decoder(body, url)
    except Exception as e:
        raise DecodeError(encoding, url, e) from e

    logger.debug(
        "content_decoded",
        url=url,
        encoding=encoding,
        compressed_bytes=len(body),
        bytes=len(decoded),
    )
    return decoded
