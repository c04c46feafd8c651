"""Unit tests for the response parser."""

import io

import pytest

from crawlhttp.protocol.config import ProtocolConfig
from crawlhttp.protocol.errors import (
    LineTooLongError,
    MalformedChunkSizeError,
    MalformedContentLengthError,
    MalformedHeaderError,
    MalformedStatusLineError,
    UnexpectedEOFError,
)
from crawlhttp.protocol.headers import HeaderStore
from crawlhttp.protocol.parser import (
    ResponseParser,
    parse_status_code,
    process_header_line,
)
from crawlhttp.protocol.state_machine import ParserState
from crawlhttp.protocol.stream import PushbackReader


URL = "http://example.com/page"


def make_parser(
    data: bytes,
    config: ProtocolConfig | None = None,
) -> ResponseParser:
    """Build a parser over an in-memory response."""
    reader = PushbackReader(io.BytesIO(data), url=URL)
    return ResponseParser(reader, config or ProtocolConfig(), url=URL)


def parse_response(
    data: bytes,
    config: ProtocolConfig | None = None,
) -> tuple[int, HeaderStore, bytes]:
    """Parse a whole response into (status, headers, body)."""
    parser = make_parser(data, config)
    headers = HeaderStore()
    status = parser.read_head(headers)
    body = parser.read_body(headers)
    return status, headers, body.data


class TestParseStatusCode:
    """Tests for status line parsing."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("HTTP/1.1 200 OK", 200),
            ("HTTP/1.0 404 Not Found", 404),
            ("HTTP/1.1 200", 200),
            ("HTTP/1.1 301 Moved Permanently Elsewhere", 301),
        ],
    )
    def test_valid_status_lines(self, line: str, expected: int) -> None:
        """The code is the second token, reason phrase optional."""
        assert parse_status_code(line) == expected

    @pytest.mark.parametrize("line", ["HTTP/1.1 OK 200", "", "HTTP/1.1 ", "garbage"])
    def test_invalid_status_lines(self, line: str) -> None:
        """Non-integer codes are rejected."""
        with pytest.raises(MalformedStatusLineError):
            parse_status_code(line, url=URL)


class TestProcessHeaderLine:
    """Tests for single header line handling."""

    def test_splits_on_first_colon(self) -> None:
        """Values may themselves contain colons."""
        headers = HeaderStore()
        process_header_line("Location: http://example.com:8080/x", headers)

        assert headers.get_first("location") == "http://example.com:8080/x"

    def test_trims_leading_whitespace_from_value(self) -> None:
        """Spaces and tabs after the colon are dropped."""
        headers = HeaderStore()
        process_header_line("X-Pad: \t value ", headers)

        assert headers.get_first("x-pad") == "value "

    def test_whitespace_only_line_ignored(self) -> None:
        """Stray whitespace lines are skipped silently."""
        headers = HeaderStore()
        process_header_line("   \t", headers)

        assert len(headers) == 0

    def test_colonless_line_rejected(self) -> None:
        """Non-blank lines without a colon are malformed."""
        with pytest.raises(MalformedHeaderError):
            process_header_line("NotAHeader", HeaderStore(), url=URL)

    def test_empty_value_allowed(self) -> None:
        """A header may have an empty value."""
        headers = HeaderStore()
        process_header_line("X-Empty:", headers)

        assert headers.get_first("x-empty") == ""


class TestReadHead:
    """Tests for status line plus header section parsing."""

    def test_simple_response(self) -> None:
        """Status and headers of a well-formed response are parsed."""
        status, headers, body = parse_response(
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/html\r\n"
            b"Content-Length: 5\r\n"
            b"\r\n"
            b"hello"
        )

        assert status == 200
        assert headers.get_first("CONTENT-TYPE") == "text/html"
        assert body == b"hello"

    def test_repeated_headers_kept(self) -> None:
        """Duplicate headers are all kept in order."""
        _, headers, _ = parse_response(
            b"HTTP/1.1 200 OK\r\n"
            b"Set-Cookie: a=1\r\n"
            b"Set-Cookie: b=2\r\n"
            b"Content-Length: 0\r\n"
            b"\r\n"
        )

        assert headers.get_all("set-cookie") == ["a=1", "b=2"]

    def test_folded_header(self) -> None:
        """Continuation lines join the previous header."""
        _, headers, _ = parse_response(
            b"HTTP/1.0 200 OK\r\n"
            b"X-Folded: first\r\n"
            b"  second\r\n"
            b"Content-Length: 0\r\n"
            b"\r\n"
        )

        assert headers.get_first("x-folded") == "first  second"

    def test_bare_lf_terminators(self) -> None:
        """Responses using LF only are accepted."""
        status, headers, body = parse_response(
            b"HTTP/1.0 200 OK\nContent-Length: 2\n\nok"
        )

        assert status == 200
        assert headers.get_first("content-length") == "2"
        assert body == b"ok"

    def test_continue_response_skipped(self) -> None:
        """Interim 100 responses and their headers are discarded."""
        status, headers, body = parse_response(
            b"HTTP/1.1 100 Continue\r\n"
            b"X-Interim: yes\r\n"
            b"\r\n"
            b"HTTP/1.1 200 OK\r\n"
            b"X-Final: yes\r\n"
            b"Content-Length: 4\r\n"
            b"\r\n"
            b"done"
        )

        assert status == 200
        assert "x-interim" not in headers
        assert headers.get_first("x-final") == "yes"
        assert body == b"done"

    def test_several_continue_responses(self) -> None:
        """Any number of interim responses is skipped."""
        status, _, _ = parse_response(
            b"HTTP/1.1 100 Continue\r\n\r\n"
            b"HTTP/1.1 100 Continue\r\n\r\n"
            b"HTTP/1.1 204 No Content\r\nContent-Length: 0\r\n\r\n"
        )

        assert status == 204

    def test_malformed_status_line_fails(self) -> None:
        """A bad status line aborts the head and moves to FAILED."""
        parser = make_parser(b"HTTP/1.1 abc OK\r\n\r\n")

        with pytest.raises(MalformedStatusLineError):
            parser.read_head(HeaderStore())

        assert parser.state == ParserState.FAILED

    def test_malformed_header_fails(self) -> None:
        """A colon-less header line aborts the head."""
        parser = make_parser(b"HTTP/1.1 200 OK\r\nBroken header\r\n\r\n")

        with pytest.raises(MalformedHeaderError):
            parser.read_head(HeaderStore())

    def test_eof_in_headers_fails(self) -> None:
        """A stream ending inside the header section is fatal."""
        parser = make_parser(b"HTTP/1.1 200 OK\r\nContent-Type: text/ht")

        with pytest.raises(UnexpectedEOFError):
            parser.read_head(HeaderStore())

    def test_empty_stream_fails(self) -> None:
        """A server closing without a response is fatal."""
        parser = make_parser(b"")

        with pytest.raises(UnexpectedEOFError):
            parser.read_head(HeaderStore())


class TestMissingHeaderTerminator:
    """Tests for recovery from responses without a blank line before HTML."""

    def test_html_on_its_own_line(self) -> None:
        """Headers followed directly by <html> still yield headers and body."""
        status, headers, body = parse_response(
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/html\r\n"
            b"Server: broken\r\n"
            b"<html><body>hi</body></html>"
        )

        assert status == 200
        assert headers.get_first("content-type") == "text/html"
        assert headers.get_first("server") == "broken"
        assert body.startswith(b"<html>")
        assert b"<body>hi</body>" in body

    def test_doctype_after_header_on_same_line(self) -> None:
        """The part before the marker becomes the last header."""
        status, headers, body = parse_response(
            b"HTTP/1.0 200 OK\r\n"
            b"Content-Type: text/html<!DOCTYPE html>\r\n"
            b"<HTML>page</HTML>\r\n"
        )

        assert status == 200
        assert headers.get_first("content-type") == "text/html"
        assert body.startswith(b"<!DOCTYPE html>")
        assert b"<HTML>page</HTML>" in body

    def test_uppercase_html_marker(self) -> None:
        """<HTML is recognized as well."""
        _, headers, body = parse_response(
            b"HTTP/1.0 200 OK\r\nX-A: 1\r\n<HTML><BODY>x</BODY></HTML>\r\n"
        )

        assert headers.get_first("x-a") == "1"
        assert body.startswith(b"<HTML>")

    def test_bad_header_before_marker_is_swallowed(self) -> None:
        """A malformed partial header line does not abort recovery."""
        status, headers, body = parse_response(
            b"HTTP/1.0 200 OK\r\nX-A: 1\r\ngarbage<html>ok</html>\r\n"
        )

        assert status == 200
        assert headers.get_first("x-a") == "1"
        assert body.startswith(b"<html>ok</html>")

    def test_content_length_honoured_after_recovery(self) -> None:
        """Recovered bodies still respect Content-Length."""
        _, _, body = parse_response(
            b"HTTP/1.0 200 OK\r\nContent-Length: 6\r\n<html>extra\r\n"
        )

        assert body == b"<html>"

    def test_html_line_longer_than_line_limit(self) -> None:
        """An HTML body on one line longer than the line limit is recovered."""
        html = b"<html>" + b"a" * 70000 + b"</html>"
        config = ProtocolConfig(max_content_bytes=-1)

        status, headers, body = parse_response(
            b"HTTP/1.0 200 OK\r\nServer: x\r\n" + html, config
        )

        assert status == 200
        assert headers.get_first("server") == "x"
        assert body == html

    def test_marker_after_header_on_overlong_line(self) -> None:
        """A header and a long HTML document on the same line both survive."""
        html = b"<!DOCTYPE html>" + b"b" * 1000 + b"\r\n"
        config = ProtocolConfig(max_line_bytes=256, max_content_bytes=-1)

        _, headers, body = parse_response(
            b"HTTP/1.0 200 OK\r\nServer: x" + html, config
        )

        assert headers.get_first("server") == "x"
        assert body == html

    def test_overlong_line_without_marker_fails(self) -> None:
        """Overlong header lines with no HTML marker are still rejected."""
        parser = make_parser(
            b"HTTP/1.0 200 OK\r\nX-Big: " + b"c" * 1000 + b"\r\n\r\n",
            ProtocolConfig(max_line_bytes=256),
        )

        with pytest.raises(LineTooLongError):
            parser.read_head(HeaderStore())
        assert parser.state == ParserState.FAILED


class TestFixedBody:
    """Tests for fixed-length body dispatch."""

    def test_malformed_content_length(self) -> None:
        """A non-numeric Content-Length fails body reading."""
        parser = make_parser(
            b"HTTP/1.1 200 OK\r\nContent-Length: ten\r\n\r\nbody"
        )
        headers = HeaderStore()
        parser.read_head(headers)

        with pytest.raises(MalformedContentLengthError):
            parser.read_body(headers)

        assert parser.state == ParserState.FAILED

    def test_no_content_length_reads_to_end(self) -> None:
        """Without Content-Length the body runs to end of stream."""
        _, _, body = parse_response(b"HTTP/1.0 200 OK\r\n\r\nall of it")

        assert body == b"all of it"

    def test_cap_truncates_body(self) -> None:
        """Bodies over the cap are cut without error."""
        parser = make_parser(
            b"HTTP/1.0 200 OK\r\nContent-Length: 10\r\n\r\n0123456789",
            ProtocolConfig(max_content_bytes=4),
        )
        headers = HeaderStore()
        parser.read_head(headers)
        body = parser.read_body(headers)

        assert body.data == b"0123"
        assert body.truncated is True
        assert parser.state == ParserState.DONE


class TestChunkedBody:
    """Tests for chunked body dispatch and trailers."""

    def test_chunked_body_and_trailers(self) -> None:
        """Chunks are reassembled and trailers merged into the headers."""
        status, headers, body = parse_response(
            b"HTTP/1.1 200 OK\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"\r\n"
            b"5\r\nhello\r\n"
            b"6;ext=1\r\n world\r\n"
            b"0\r\n"
            b"X-Checksum: abc\r\n"
            b"\r\n"
        )

        assert status == 200
        assert body == b"hello world"
        assert headers.get_first("x-checksum") == "abc"

    def test_transfer_encoding_is_case_insensitive(self) -> None:
        """' Chunked ' selects chunked reading."""
        _, _, body = parse_response(
            b"HTTP/1.1 200 OK\r\n"
            b"transfer-encoding:  Chunked \r\n"
            b"\r\n"
            b"3\r\nabc\r\n0\r\n\r\n"
        )

        assert body == b"abc"

    def test_missing_final_blank_line_tolerated(self) -> None:
        """Servers closing right after the terminal chunk are accepted."""
        _, _, body = parse_response(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n3\r\nabc\r\n0\r\n"
        )

        assert body == b"abc"

    def test_truncated_chunked_body_skips_trailers(self) -> None:
        """Cap truncation ends parsing without reading trailers."""
        parser = make_parser(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"a\r\n0123456789\r\n0\r\nX-Trailer: 1\r\n\r\n",
            ProtocolConfig(max_content_bytes=4),
        )
        headers = HeaderStore()
        parser.read_head(headers)
        body = parser.read_body(headers)

        assert body.data == b"0123"
        assert body.truncated is True
        assert "x-trailer" not in headers
        assert parser.state == ParserState.DONE

    def test_malformed_chunk_size(self) -> None:
        """Non-hex chunk sizes fail body reading."""
        parser = make_parser(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\nzz\r\nabc\r\n"
        )
        headers = HeaderStore()
        parser.read_head(headers)

        with pytest.raises(MalformedChunkSizeError):
            parser.read_body(headers)

        assert parser.state == ParserState.FAILED
