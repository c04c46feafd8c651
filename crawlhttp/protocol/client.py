"""Single-connection HTTP fetcher."""

import time

import structlog

from crawlhttp.observability.logging import fetch_context
from crawlhttp.protocol.config import ProtocolConfig
from crawlhttp.protocol.connection import Connection
from crawlhttp.protocol.constants import HEADER_CONTENT_ENCODING, PEER_IP_HEADER
from crawlhttp.protocol.encoding import decode_content
from crawlhttp.protocol.errors import FetchError
from crawlhttp.protocol.metrics import FetchMetrics
from crawlhttp.protocol.models import (
    FetchRequest,
    FetchResult,
    KnownMetadata,
    ResponseBuilder,
)
from crawlhttp.protocol.parser import ResponseParser
from crawlhttp.protocol.redact import redact_headers, redact_url_credentials
from crawlhttp.protocol.request import build_request_headers, serialize_request


logger = structlog.get_logger()


class HttpProtocol:
    """HTTP/1.0 client performing one GET per connection.

    Provides crawler-oriented fetches with:
    - Manual request serialization and response parsing
    - Conditional requests from cached ETag/Last-Modified values
    - Body size capping and Content-Encoding decoding
    - Headers-only results when the body cannot be read

    Instances hold no per-fetch state and may be shared between threads.
    """

    def __init__(self, config: ProtocolConfig | None = None) -> None:
        """Initialize the fetcher.

        Args:
            config: Protocol configuration (defaults when omitted).
        """
        self._config = config or ProtocolConfig()
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="http")

    @property
    def config(self) -> ProtocolConfig:
        """Get the protocol configuration."""
        return self._config

    def fetch(
        self,
        url: str,
        known_metadata: KnownMetadata | None = None,
    ) -> FetchResult:
        """Fetch a URL.

        Errors up to and including the header section propagate. Errors
        while reading or decoding the body do not: the result then carries
        the status code and headers, ``body`` is None and ``body_error``
        says what went wrong. Every event logged during the fetch carries
        the same ``fetch_id``.

        Args:
            url: Absolute http or https URL.
            known_metadata: Metadata with ``cachedLastModified`` and
                ``cachedEtag`` values from a previous fetch.

        Returns:
            FetchResult for the response.

        Raises:
            FetchError: If no response head could be obtained.
        """
        with fetch_context():
            start_time_ns = time.perf_counter_ns()
            log = self._log.bind(url=redact_url_credentials(url))

            try:
                request = FetchRequest.from_url(url, known_metadata)
                result = self._execute(request, log)
            except FetchError as e:
                self._metrics.record_failure(e.error_class)
                log.warning(
                    "fetch_failed",
                    error_class=e.error_class.value,
                    error=e.message,
                )
                raise

            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_duration(duration_ms)
            self._metrics.record_response(result.status_code, result.body_size)

            log.info(
                "fetch_complete",
                status_code=result.status_code,
                bytes=result.body_size,
                complete=result.is_complete,
                truncated=result.truncated,
                duration_ms=round(duration_ms, 2),
            )
            return result

    def _execute(
        self,
        request: FetchRequest,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        """Run one request/response exchange on a fresh connection.

        Args:
            request: Request to send.
            log: Bound logger.

        Returns:
            FetchResult built from the response.
        """
        builder = ResponseBuilder(url=request.url)

        with Connection(request, self._config) as connection:
            if self._config.store_ip_address and connection.peer_ip:
                builder.headers.set(PEER_IP_HEADER, connection.peer_ip)

            headers = build_request_headers(request, self._config)
            connection.send(serialize_request(request, self._config, headers))
            log.debug(
                "request_sent",
                proxy=self._config.use_proxy,
                headers=redact_headers(headers),
            )

            parser = ResponseParser(connection.reader(), self._config, request.url)
            builder.status_code = parser.read_head(builder.headers)
            self._read_body(parser, builder, log)

        return builder.build()

    def _read_body(
        self,
        parser: ResponseParser,
        builder: ResponseBuilder,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Read and decode the body into the builder.

        Failures are recorded on the builder rather than raised.

        Args:
            parser: Parser positioned after the response head.
            builder: Builder receiving the body or the body error.
            log: Bound logger.
        """
        try:
            raw = parser.read_body(builder.headers)
            body = decode_content(
                raw.data,
                builder.headers.get_first(HEADER_CONTENT_ENCODING),
                builder.url,
                self._config,
            )
        except FetchError as e:
            builder.body_error = e
            self._metrics.record_body_failure(e.error_class)
            log.debug(
                "body_read_failed",
                status_code=builder.status_code,
                error_class=e.error_class.value,
                error=e.message,
            )
            return

        builder.body = body
        builder.truncated = raw.truncated
        if raw.truncated:
            self._metrics.record_truncation()
            log.debug(
                "content_truncated",
                max_content_bytes=self._config.max_content_bytes,
                bytes=len(raw.data),
            )
