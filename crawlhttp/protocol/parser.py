"""Hand-rolled HTTP/1.x response parser."""

import structlog

from crawlhttp.protocol.body import (
    BodyRead,
    parse_content_length,
    read_chunked_body,
    read_fixed_body,
)
from crawlhttp.protocol.config import ProtocolConfig
from crawlhttp.protocol.constants import (
    HEADER_TRANSFER_ENCODING,
    HTML_START_MARKERS,
    HTTP_STATUS_CONTINUE,
    WIRE_ENCODING,
)
from crawlhttp.protocol.errors import (
    FetchError,
    LineTooLongError,
    MalformedHeaderError,
    MalformedStatusLineError,
    UnexpectedEOFError,
)
from crawlhttp.protocol.headers import HeaderStore
from crawlhttp.protocol.state_machine import ParserState, ParserStateMachine
from crawlhttp.protocol.stream import PushbackReader


logger = structlog.get_logger()

CRLF = b"\r\n"


def parse_status_code(line: str, url: str | None = None) -> int:
    """Extract the status code from a status line.

    The code is the token after the first space, ending at the next space
    or at the end of the line, so ``HTTP/1.1 200`` parses like
    ``HTTP/1.1 200 OK``.

    Args:
        line: Status line without its terminator.
        url: URL being fetched.

    Returns:
        Integer status code.

    Raises:
        MalformedStatusLineError: If the code is not an integer.
    """
    code_start = line.find(" ") + 1
    code_end = line.find(" ", code_start)
    if code_end == -1:
        code_end = len(line)
    token = line[code_start:code_end]
    if not (token.isascii() and token.isdigit()):
        raise MalformedStatusLineError(line, url=url)
    return int(token)


def process_header_line(
    line: str,
    headers: HeaderStore,
    url: str | None = None,
) -> None:
    """Add one header line to the store.

    Lines made only of whitespace are ignored.

    Args:
        line: Header line without its terminator.
        headers: Store receiving the header.
        url: URL being fetched.

    Raises:
        MalformedHeaderError: If a non-blank line has no colon.
    """
    name, colon, value = line.partition(":")
    if not colon:
        if not line.strip():
            return
        msg = f"No colon in header: {line}"
        raise MalformedHeaderError(msg, url=url, details={"line": line})
    headers.add(name.lower(), value.lstrip(" \t"))


def _find_html_start(line: bytes) -> int:
    """Return the offset of the earliest HTML document marker, or -1."""
    positions = [p for p in (line.find(m) for m in HTML_START_MARKERS) if p != -1]
    return min(positions) if positions else -1


class ResponseParser:
    """Parses one response off a pushback stream.

    Usage is two-phase so that failures in the head and in the body can be
    handled differently: ``read_head`` parses the status line and headers,
    ``read_body`` reads the transfer-decoded body (and any trailers).
    """

    def __init__(
        self,
        reader: PushbackReader,
        config: ProtocolConfig,
        url: str | None = None,
    ) -> None:
        """Initialize the parser.

        Args:
            reader: Stream positioned at the start of the response.
            config: Protocol configuration.
            url: URL being fetched, for errors and logs.
        """
        self._reader = reader
        self._config = config
        self._url = url
        self._state_machine = ParserStateMachine(url=url)
        self._log = logger.bind(component="http", url=url)

    @property
    def state(self) -> ParserState:
        """Get the parser's current state."""
        return self._state_machine.state

    def _read_text_line(self, allow_continuation: bool = False) -> str:
        raw = self._reader.read_line(
            allow_continuation=allow_continuation,
            max_bytes=self._config.max_line_bytes,
        )
        return raw.decode(WIRE_ENCODING)

    def read_head(self, headers: HeaderStore) -> int:
        """Parse status line and headers, skipping interim 100 responses.

        Args:
            headers: Store receiving the final response's headers.

        Returns:
            Final status code.

        Raises:
            FetchError: On a malformed or truncated head.
        """
        try:
            while True:
                status_code = parse_status_code(self._read_text_line(), self._url)
                self._state_machine.transition_to(ParserState.PARSE_HEADERS)

                block = HeaderStore()
                self._parse_headers(block)
                if status_code != HTTP_STATUS_CONTINUE:
                    break

                self._log.debug("interim_response_skipped", status_code=status_code)
                self._state_machine.transition_to(ParserState.AWAIT_STATUS_LINE)
        except FetchError:
            self._state_machine.fail()
            raise

        headers.merge(block)
        return status_code

    def read_body(self, headers: HeaderStore) -> BodyRead:
        """Read the body announced by the headers.

        Trailer headers following a chunked body are merged into ``headers``.

        Args:
            headers: Headers of the response, as filled in by ``read_head``.

        Returns:
            BodyRead with the transfer-decoded body.

        Raises:
            FetchError: On malformed framing or a truncated stream.
        """
        transfer_encoding = headers.get_first(HEADER_TRANSFER_ENCODING)
        chunked = (
            transfer_encoding is not None
            and transfer_encoding.strip().lower() == "chunked"
        )
        limit = self._config.content_limit

        try:
            if chunked:
                self._state_machine.transition_to(ParserState.READ_CHUNKED_BODY)
                body = read_chunked_body(
                    self._reader,
                    limit,
                    buffer_size=self._config.buffer_size,
                    max_line_bytes=self._config.max_line_bytes,
                )
                if body.complete:
                    self._state_machine.transition_to(ParserState.PARSE_TRAILER_HEADERS)
                    trailers = HeaderStore()
                    self._parse_trailers(trailers)
                    headers.merge(trailers)
            else:
                self._state_machine.transition_to(ParserState.READ_FIXED_BODY)
                body = read_fixed_body(
                    self._reader,
                    parse_content_length(headers, self._url),
                    limit,
                    buffer_size=self._config.buffer_size,
                )
        except FetchError:
            self._state_machine.fail()
            raise

        self._state_machine.transition_to(ParserState.DONE)
        return body

    def _parse_trailers(self, trailers: HeaderStore) -> None:
        try:
            self._parse_headers(trailers)
        except UnexpectedEOFError as e:
            # Servers often close right after the terminal chunk
            if e.partial.strip():
                raise
            self._log.debug("trailer_section_unterminated")

    def _parse_headers(self, headers: HeaderStore) -> None:
        """Read header lines up to the blank line ending the section.

        Recovers from responses that omit the blank line before an HTML
        body: the part of the line before the HTML marker is taken as the
        last header, and the rest is pushed back to be read as body.
        """
        while True:
            terminator = CRLF
            try:
                raw = self._reader.read_line(
                    allow_continuation=True,
                    max_bytes=self._config.max_line_bytes,
                )
            except (UnexpectedEOFError, LineTooLongError) as e:
                # Unterminated or overlong line: recover only at an HTML marker
                if _find_html_start(e.partial) == -1:
                    raise
                raw, terminator = e.partial, b""

            if not raw:
                return

            pos = _find_html_start(raw)
            if pos != -1:
                self._reader.unread(raw[pos:] + terminator)
                try:
                    process_header_line(
                        raw[:pos].decode(WIRE_ENCODING), headers, self._url
                    )
                except FetchError as e:
                    self._log.warning("malformed_header_recovery", error=e.message)
                self._log.debug("missing_header_terminator", offset=pos)
                return

            process_header_line(raw.decode(WIRE_ENCODING), headers, self._url)
