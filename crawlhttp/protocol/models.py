"""Data models for the raw HTTP protocol layer."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Annotated
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from crawlhttp.protocol.constants import (
    CACHED_ETAG_KEY,
    CACHED_LAST_MODIFIED_KEY,
    HTTP_DEFAULT_PORT,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTPS_DEFAULT_PORT,
)
from crawlhttp.protocol.errors import (
    ConnectFailureError,
    FetchError,
    SchemeUnsupportedError,
)
from crawlhttp.protocol.headers import HeaderStore


KnownMetadata = Mapping[str, str | Sequence[str]] | HeaderStore

SUPPORTED_SCHEMES = ("http", "https")


def _first_value(metadata: KnownMetadata | None, key: str) -> str | None:
    """Read the first value of a key from known metadata, if non-blank."""
    if metadata is None:
        return None
    if isinstance(metadata, HeaderStore):
        value: str | Sequence[str] | None = metadata.get_first(key)
    else:
        value = metadata.get(key)
    if value is not None and not isinstance(value, str):
        value = value[0] if value else None
    if value is None or not value.strip():
        return None
    return value


class FetchRequest(BaseModel):
    """A single GET to perform, with optional cached validators."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Annotated[str, Field(min_length=1)]
    scheme: str
    host: Annotated[str, Field(min_length=1)]
    port: Annotated[int, Field(ge=1, le=65535)]
    explicit_port: bool = Field(
        default=False, description="Whether the URL spelled out its port"
    )
    path: str = "/"
    cached_last_modified: str | None = None
    cached_etag: str | None = None

    @classmethod
    def from_url(
        cls,
        url: str,
        known_metadata: KnownMetadata | None = None,
    ) -> "FetchRequest":
        """Parse a URL into a request.

        Args:
            url: Absolute http or https URL.
            known_metadata: Metadata carrying ``cachedLastModified`` and
                ``cachedEtag`` from a previous fetch.

        Returns:
            FetchRequest for the URL.

        Raises:
            SchemeUnsupportedError: If the scheme is not http or https.
            ConnectFailureError: If the URL has no host or an invalid port.
        """
        parsed = urlsplit(url)
        scheme = parsed.scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            msg = f"Unknown scheme (not http/https) for url: {url}"
            raise SchemeUnsupportedError(msg, url=url)

        if not parsed.hostname:
            msg = f"Missing host in url: {url}"
            raise ConnectFailureError(msg, url=url)

        try:
            explicit = parsed.port
        except ValueError as e:
            msg = f"Invalid port in url: {url}"
            raise ConnectFailureError(msg, url=url) from e

        default_port = HTTPS_DEFAULT_PORT if scheme == "https" else HTTP_DEFAULT_PORT
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"

        return cls(
            url=url,
            scheme=scheme,
            host=parsed.hostname,
            port=explicit or default_port,
            explicit_port=explicit is not None,
            path=path,
            cached_last_modified=_first_value(
                known_metadata, CACHED_LAST_MODIFIED_KEY
            ),
            cached_etag=_first_value(known_metadata, CACHED_ETAG_KEY),
        )

    @property
    def is_https(self) -> bool:
        """Whether the request goes over TLS."""
        return self.scheme == "https"

    @property
    def host_header(self) -> str:
        """Host header value; the port appears only if the URL had one."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.explicit_port:
            return f"{host}:{self.port}"
        return host

    @property
    def absolute_target(self) -> str:
        """Absolute-form request target used when talking to a proxy."""
        return f"{self.scheme}://{self.host_header}{self.path}"


class FetchResult(BaseModel):
    """Result of a fetch.

    ``body`` is None when the status line and headers were parsed but the
    body could not be read or decoded; ``body_error`` then says why.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    url: Annotated[str, Field(min_length=1, description="Fetched URL")]
    status_code: int = Field(ge=0, le=999, description="HTTP status code")
    headers: HeaderStore = Field(
        default_factory=HeaderStore, description="Response headers"
    )
    body: bytes | None = Field(default=None, description="Decoded response body")
    body_error: FetchError | None = Field(
        default=None, description="Why the body is missing, if it is"
    )
    truncated: bool = Field(
        default=False, description="Whether the body was cut at the size cap"
    )

    @property
    def is_complete(self) -> bool:
        """Check if the body was read and decoded."""
        return self.body is not None

    @property
    def is_success(self) -> bool:
        """Check if the fetch was successful (2xx status, complete body)."""
        return (
            self.is_complete
            and HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX
        )

    @property
    def body_size(self) -> int:
        """Get the size of the response body in bytes."""
        return len(self.body) if self.body is not None else 0

    def get_header(self, name: str) -> str | None:
        """Get the first value of a header, case-insensitively."""
        return self.headers.get_first(name)


@dataclass
class ResponseBuilder:
    """Mutable accumulator filled in while a response is parsed.

    Turned into an immutable FetchResult exactly once, by ``build``.
    """

    url: str
    status_code: int = 0
    headers: HeaderStore = field(default_factory=HeaderStore)
    body: bytes | None = None
    body_error: FetchError | None = None
    truncated: bool = False

    def build(self) -> FetchResult:
        """Freeze the accumulated state into a FetchResult."""
        return FetchResult(
            url=self.url,
            status_code=self.status_code,
            headers=self.headers,
            body=self.body,
            body_error=self.body_error,
            truncated=self.truncated,
        )
