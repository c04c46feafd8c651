"""Unit tests for fetch error types."""

import pytest

from crawlhttp.protocol.errors import (
    ChunkFramingError,
    ConnectFailureError,
    ConnectTimeoutError,
    DecodeError,
    FetchError,
    FetchErrorClass,
    LineTooLongError,
    MalformedContentLengthError,
    MalformedStatusLineError,
    UnexpectedEOFError,
)


class TestFetchError:
    """Tests for the FetchError hierarchy."""

    def test_to_dict(self) -> None:
        """Errors serialize their class, message, URL and details."""
        error = MalformedStatusLineError("HTTP/1.1 OK", url="http://example.com/")

        assert error.to_dict() == {
            "error_class": "MALFORMED_STATUS_LINE",
            "message": "bad status line 'HTTP/1.1 OK'",
            "url": "http://example.com/",
            "details": {"line": "HTTP/1.1 OK"},
        }

    def test_connect_timeout_is_connect_failure(self) -> None:
        """Connect timeouts can be handled as connect failures."""
        error = ConnectTimeoutError("timed out")

        assert isinstance(error, ConnectFailureError)
        assert error.error_class == FetchErrorClass.CONNECT_TIMEOUT

    @pytest.mark.parametrize(
        ("error", "error_class"),
        [
            (
                MalformedContentLengthError("x"),
                FetchErrorClass.MALFORMED_CONTENT_LENGTH,
            ),
            (ChunkFramingError(10, 2), FetchErrorClass.CHUNK_FRAMING),
            (UnexpectedEOFError("eof"), FetchErrorClass.UNEXPECTED_EOF),
            (LineTooLongError(256), FetchErrorClass.MALFORMED_HEADER),
            (
                DecodeError("gzip", "http://example.com/", ValueError("bad")),
                FetchErrorClass.DECODE_FAILURE,
            ),
        ],
    )
    def test_error_classes(
        self, error: FetchError, error_class: FetchErrorClass
    ) -> None:
        """Each error type carries its own classification."""
        assert isinstance(error, FetchError)
        assert error.error_class == error_class

    def test_chunk_framing_message(self) -> None:
        """The framing error reports bytes read before and in the chunk."""
        error = ChunkFramingError(10, 2)

        assert str(error) == (
            "chunk eof after 10 bytes in successful chunks and 2 in current chunk"
        )
        assert error.details == {"previous_chunks_bytes": 10, "current_chunk_bytes": 2}
