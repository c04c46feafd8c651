"""Serialization of the GET request written to the socket."""

import structlog

from crawlhttp.protocol.config import ProtocolConfig
from crawlhttp.protocol.constants import ACCEPT_ENCODING, WIRE_ENCODING
from crawlhttp.protocol.errors import RequestEncodingError
from crawlhttp.protocol.models import FetchRequest


logger = structlog.get_logger()

CRLF = "\r\n"


def build_request_headers(
    request: FetchRequest,
    config: ProtocolConfig,
) -> list[tuple[str, str]]:
    """Build the request header lines in wire order.

    Args:
        request: Request being sent.
        config: Protocol configuration.

    Returns:
        List of (name, value) pairs.
    """
    headers: list[tuple[str, str]] = [
        ("Host", request.host_header),
        ("Accept-Encoding", ACCEPT_ENCODING),
    ]

    if config.user_agent:
        headers.append(("User-Agent", config.user_agent))
    else:
        logger.error("user_agent_not_set", component="http", url=request.url)

    headers.append(("Accept-Language", config.accept_language))
    headers.append(("Accept", config.accept))

    if request.cached_last_modified:
        headers.append(("If-Modified-Since", request.cached_last_modified))
    if request.cached_etag:
        headers.append(("If-None-Match", request.cached_etag))

    return headers


def serialize_request(
    request: FetchRequest,
    config: ProtocolConfig,
    headers: list[tuple[str, str]] | None = None,
) -> bytes:
    """Produce the exact bytes of an HTTP/1.0 GET request.

    The request target is the absolute URL when going through a proxy and
    the path otherwise.

    Args:
        request: Request being sent.
        config: Protocol configuration.
        headers: Header lines from build_request_headers; built when omitted.

    Returns:
        ISO-8859-1 encoded request, ending with a blank line.

    Raises:
        RequestEncodingError: If any character falls outside ISO-8859-1.
    """
    target = request.absolute_target if config.use_proxy else request.path
    lines = [f"GET {target} HTTP/1.0"]
    if headers is None:
        headers = build_request_headers(request, config)
    for name, value in headers:
        lines.append(f"{name}: {value}")
    text = CRLF.join(lines) + CRLF + CRLF

    try:
        return text.encode(WIRE_ENCODING)
    except UnicodeEncodeError as e:
        msg = f"Request is not representable in {WIRE_ENCODING}: {e}"
        raise RequestEncodingError(msg, url=request.url) from e
