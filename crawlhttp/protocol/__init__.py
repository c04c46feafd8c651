"""Raw HTTP protocol layer: connection, request, response parsing.

This module provides crawler-grade HTTP/1.0 fetches with:
- Manual socket I/O with operator-controlled TLS parameters
- Tolerant parsing of malformed status lines, headers and bodies
- Chunked and fixed-length bodies capped at a maximum size
- gzip/deflate Content-Encoding dispatch
- Headers-only results when body reading fails
"""

from crawlhttp.protocol.client import HttpProtocol
from crawlhttp.protocol.config import ProtocolConfig
from crawlhttp.protocol.constants import (
    CACHED_ETAG_KEY,
    CACHED_LAST_MODIFIED_KEY,
    PEER_IP_HEADER,
)
from crawlhttp.protocol.errors import (
    ChunkFramingError,
    ConnectFailureError,
    ConnectTimeoutError,
    DecodeError,
    FetchError,
    FetchErrorClass,
    LineTooLongError,
    MalformedChunkSizeError,
    MalformedContentLengthError,
    MalformedHeaderError,
    MalformedStatusLineError,
    ReadTimeoutError,
    RequestEncodingError,
    SchemeUnsupportedError,
    TlsNegotiationError,
    UnexpectedEOFError,
)
from crawlhttp.protocol.headers import HeaderStore
from crawlhttp.protocol.loader import ConfigValidationError, load_protocol_config
from crawlhttp.protocol.metrics import FetchMetrics
from crawlhttp.protocol.models import FetchRequest, FetchResult


__all__ = [
    # Client
    "HttpProtocol",
    # Config
    "ProtocolConfig",
    "ConfigValidationError",
    "load_protocol_config",
    # Models
    "FetchRequest",
    "FetchResult",
    "HeaderStore",
    # Errors
    "FetchError",
    "FetchErrorClass",
    "SchemeUnsupportedError",
    "ConnectFailureError",
    "ConnectTimeoutError",
    "ReadTimeoutError",
    "TlsNegotiationError",
    "RequestEncodingError",
    "MalformedStatusLineError",
    "MalformedHeaderError",
    "LineTooLongError",
    "MalformedContentLengthError",
    "MalformedChunkSizeError",
    "ChunkFramingError",
    "UnexpectedEOFError",
    "DecodeError",
    # Constants
    "CACHED_ETAG_KEY",
    "CACHED_LAST_MODIFIED_KEY",
    "PEER_IP_HEADER",
    # Metrics
    "FetchMetrics",
]
