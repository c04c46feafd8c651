"""Error types for the raw HTTP protocol layer."""

from enum import Enum


class FetchErrorClass(str, Enum):
    """Classification of fetch errors for logging and metrics.

    - SCHEME_UNSUPPORTED: URL scheme is neither http nor https
    - CONNECT_FAILURE: Could not establish the TCP connection
    - CONNECT_TIMEOUT: TCP connect exceeded the timeout
    - READ_TIMEOUT: A socket read exceeded the timeout
    - TLS_NEGOTIATION: TLS parameter selection or handshake failed
    - REQUEST_ENCODING: Request could not be encoded as ISO-8859-1
    - MALFORMED_STATUS_LINE: Status code is not an integer
    - MALFORMED_HEADER: Header line has no colon or is too long
    - MALFORMED_CONTENT_LENGTH: Content-Length is not a non-negative integer
    - MALFORMED_CHUNK_SIZE: Chunk size is not a non-negative hex integer
    - CHUNK_FRAMING: Stream ended inside a chunk
    - UNEXPECTED_EOF: Stream ended before a line terminator
    - DECODE_FAILURE: Content-Encoding decompression failed
    - PARSER_STATE: Parser attempted an illegal state transition
    """

    SCHEME_UNSUPPORTED = "SCHEME_UNSUPPORTED"
    CONNECT_FAILURE = "CONNECT_FAILURE"
    CONNECT_TIMEOUT = "CONNECT_TIMEOUT"
    READ_TIMEOUT = "READ_TIMEOUT"
    TLS_NEGOTIATION = "TLS_NEGOTIATION"
    REQUEST_ENCODING = "REQUEST_ENCODING"
    MALFORMED_STATUS_LINE = "MALFORMED_STATUS_LINE"
    MALFORMED_HEADER = "MALFORMED_HEADER"
    MALFORMED_CONTENT_LENGTH = "MALFORMED_CONTENT_LENGTH"
    MALFORMED_CHUNK_SIZE = "MALFORMED_CHUNK_SIZE"
    CHUNK_FRAMING = "CHUNK_FRAMING"
    UNEXPECTED_EOF = "UNEXPECTED_EOF"
    DECODE_FAILURE = "DECODE_FAILURE"
    PARSER_STATE = "PARSER_STATE"


Details = dict[str, str | int | bool | None]


class FetchError(Exception):
    """Base exception for fetch errors.

    Provides structured error information for logging and metrics.
    """

    error_class: FetchErrorClass = FetchErrorClass.CONNECT_FAILURE

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: Details | None = None,
    ) -> None:
        """Initialize the fetch error.

        Args:
            message: Human-readable error message.
            url: URL being fetched, when known.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.message = message
        self.url = url
        self.details = details or {}

    def to_dict(self) -> dict[str, str | None | Details]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "url": self.url,
            "details": self.details,
        }


class SchemeUnsupportedError(FetchError):
    """URL scheme is neither http nor https."""

    error_class = FetchErrorClass.SCHEME_UNSUPPORTED


class ConnectFailureError(FetchError):
    """TCP connection could not be established."""

    error_class = FetchErrorClass.CONNECT_FAILURE


class ConnectTimeoutError(ConnectFailureError):
    """TCP connect did not complete within the timeout."""

    error_class = FetchErrorClass.CONNECT_TIMEOUT


class ReadTimeoutError(FetchError):
    """A socket read did not complete within the timeout."""

    error_class = FetchErrorClass.READ_TIMEOUT


class TlsNegotiationError(FetchError):
    """TLS protocol/cipher selection or handshake failed."""

    error_class = FetchErrorClass.TLS_NEGOTIATION


class RequestEncodingError(FetchError):
    """Request contains characters outside ISO-8859-1."""

    error_class = FetchErrorClass.REQUEST_ENCODING


class MalformedStatusLineError(FetchError):
    """Status line does not carry an integer status code."""

    error_class = FetchErrorClass.MALFORMED_STATUS_LINE

    def __init__(self, line: str, url: str | None = None) -> None:
        """Initialize the error.

        Args:
            line: The offending status line.
            url: URL being fetched.
        """
        super().__init__(
            f"bad status line '{line}'", url=url, details={"line": line}
        )
        self.line = line


class MalformedHeaderError(FetchError):
    """Header line has no colon, or exceeds the line length limit."""

    error_class = FetchErrorClass.MALFORMED_HEADER


class LineTooLongError(MalformedHeaderError):
    """A line grew past the length limit before its terminator."""

    def __init__(
        self,
        max_bytes: int,
        url: str | None = None,
        partial: bytes = b"",
    ) -> None:
        """Initialize the error.

        Args:
            max_bytes: The line length limit.
            url: URL being fetched.
            partial: Bytes of the line read before the limit was hit; the
                rest of the line is still unread.
        """
        super().__init__(
            f"line exceeds {max_bytes} bytes",
            url=url,
            details={"max_bytes": max_bytes},
        )
        self.max_bytes = max_bytes
        self.partial = partial


class MalformedContentLengthError(FetchError):
    """Content-Length is not a non-negative integer."""

    error_class = FetchErrorClass.MALFORMED_CONTENT_LENGTH

    def __init__(self, value: str, url: str | None = None) -> None:
        """Initialize the error.

        Args:
            value: The offending Content-Length value.
            url: URL being fetched.
        """
        super().__init__(
            f"bad content length: {value}", url=url, details={"value": value}
        )
        self.value = value


class MalformedChunkSizeError(FetchError):
    """Chunk-size line is not a non-negative hexadecimal integer."""

    error_class = FetchErrorClass.MALFORMED_CHUNK_SIZE

    def __init__(self, line: str, url: str | None = None) -> None:
        """Initialize the error.

        Args:
            line: The offending chunk-size line.
            url: URL being fetched.
        """
        super().__init__(
            f"bad chunk length: {line}", url=url, details={"line": line}
        )
        self.line = line


class ChunkFramingError(FetchError):
    """Stream ended before a chunk was fully read."""

    error_class = FetchErrorClass.CHUNK_FRAMING

    def __init__(
        self,
        previous_chunks_bytes: int,
        current_chunk_bytes: int,
        url: str | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            previous_chunks_bytes: Bytes read in previously completed chunks.
            current_chunk_bytes: Bytes read in the chunk being read.
            url: URL being fetched.
        """
        super().__init__(
            f"chunk eof after {previous_chunks_bytes} bytes in successful chunks "
            f"and {current_chunk_bytes} in current chunk",
            url=url,
            details={
                "previous_chunks_bytes": previous_chunks_bytes,
                "current_chunk_bytes": current_chunk_bytes,
            },
        )
        self.previous_chunks_bytes = previous_chunks_bytes
        self.current_chunk_bytes = current_chunk_bytes


class UnexpectedEOFError(FetchError):
    """Stream ended before a line terminator was read."""

    error_class = FetchErrorClass.UNEXPECTED_EOF

    def __init__(
        self,
        message: str,
        url: str | None = None,
        partial: bytes = b"",
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            url: URL being fetched.
            partial: Bytes of the unterminated line read before the end.
        """
        super().__init__(message, url=url, details={"partial_bytes": len(partial)})
        self.partial = partial


class DecodeError(FetchError):
    """Content-Encoding decompression failed."""

    error_class = FetchErrorClass.DECODE_FAILURE

    def __init__(self, encoding: str, url: str, cause: Exception) -> None:
        """Initialize the error.

        Args:
            encoding: The Content-Encoding being decoded.
            url: URL the body was fetched from.
            cause: The decompressor's exception.
        """
        super().__init__(
            f"failed to decode {encoding} content from {url}: {cause}",
            url=url,
            details={"encoding": encoding},
        )
        self.encoding = encoding

