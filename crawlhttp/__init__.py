"""Raw-socket HTTP/1.0 fetcher for web crawling.

Provides a single-connection HTTP client with:
- Hand-rolled status line, header and body parsing
- Recovery from malformed responses (missing header terminator, folded lines)
- Chunked and fixed-length bodies capped at a configured size
- Conditional requests from cached ETag/Last-Modified validators
- Operator-controlled TLS protocol and cipher negotiation
"""

from crawlhttp.protocol import FetchResult, HeaderStore, HttpProtocol, ProtocolConfig


__version__ = "1.0.0"

__all__ = [
    "FetchResult",
    "HeaderStore",
    "HttpProtocol",
    "ProtocolConfig",
    "__version__",
]
