"""Configuration models for the raw HTTP protocol layer."""

from collections.abc import Callable, Mapping
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crawlhttp.protocol.constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_MAX_CONTENT_BYTES,
    DEFAULT_MAX_LINE_BYTES,
    DEFAULT_PROXY_PORT,
    DEFAULT_TIMEOUT_SECONDS,
)


# Decompression collaborator: (compressed bytes, url) -> bytes
Decoder = Callable[[bytes, str], bytes]

KNOWN_TLS_PROTOCOLS = ("TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3")

DEFAULT_TLS_PROTOCOLS = ("TLSv1.2", "TLSv1.3")

DEFAULT_TLS_CIPHER_SUITES = (
    "TLS_AES_256_GCM_SHA384",
    "TLS_CHACHA20_POLY1305_SHA256",
    "TLS_AES_128_GCM_SHA256",
    "ECDHE-ECDSA-AES256-GCM-SHA384",
    "ECDHE-RSA-AES256-GCM-SHA384",
    "ECDHE-ECDSA-CHACHA20-POLY1305",
    "ECDHE-RSA-CHACHA20-POLY1305",
    "ECDHE-ECDSA-AES128-GCM-SHA256",
    "ECDHE-RSA-AES128-GCM-SHA256",
    "ECDHE-RSA-AES256-SHA",
    "ECDHE-RSA-AES128-SHA",
    "AES256-GCM-SHA384",
    "AES128-GCM-SHA256",
    "AES256-SHA",
    "AES128-SHA",
)

DEFAULT_ACCEPT_LANGUAGE = "en-us,en-gb,en;q=0.7,*;q=0.3"
DEFAULT_ACCEPT = (
    "text/html,application/xml;q=0.9,application/xhtml+xml,"
    "text/xml;q=0.9,*/*;q=0.8"
)

# Flat crawler configuration keys understood by ProtocolConfig.from_conf
CONF_TIMEOUT_MS = "http.timeout"
CONF_PROXY_HOST = "http.proxy.host"
CONF_PROXY_PORT = "http.proxy.port"
CONF_AGENT = "http.agent"
CONF_ACCEPT_LANGUAGE = "http.accept.language"
CONF_ACCEPT = "http.accept"
CONF_CONTENT_LIMIT = "http.content.limit"
CONF_TLS_PROTOCOLS = "http.tls.protocols"
CONF_TLS_CIPHERS = "http.tls.ciphers"
CONF_STORE_IP = "store.ip.address"


class ProtocolConfig(BaseModel):
    """Configuration for the raw HTTP protocol layer.

    Read-only once built and safe to share between concurrent fetches.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_TIMEOUT_SECONDS
    )
    proxy_host: str | None = Field(
        default=None, description="Proxy host; proxying is enabled when set"
    )
    proxy_port: Annotated[int, Field(ge=1, le=65535)] = DEFAULT_PROXY_PORT
    user_agent: str = "crawlhttp/1.0"
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    accept: str = DEFAULT_ACCEPT
    tls_preferred_protocols: tuple[str, ...] = DEFAULT_TLS_PROTOCOLS
    tls_preferred_cipher_suites: tuple[str, ...] = DEFAULT_TLS_CIPHER_SUITES
    max_content_bytes: int = Field(
        default=DEFAULT_MAX_CONTENT_BYTES,
        description="Maximum body size in bytes; negative means unbounded",
    )
    store_ip_address: bool = Field(
        default=False, description="Record the peer IP under the _ip_ header"
    )
    buffer_size: Annotated[int, Field(ge=1, le=1024 * 1024)] = DEFAULT_BUFFER_SIZE
    max_line_bytes: Annotated[int, Field(ge=256)] = DEFAULT_MAX_LINE_BYTES
    gzip_decode: Decoder | None = Field(
        default=None, description="gzip decoder; the built-in one when unset"
    )
    deflate_decode: Decoder | None = Field(
        default=None, description="deflate decoder; the built-in one when unset"
    )

    @field_validator("proxy_host")
    @classmethod
    def blank_proxy_is_none(cls, v: str | None) -> str | None:
        """Treat a blank proxy host as no proxy."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("tls_preferred_protocols")
    @classmethod
    def validate_tls_protocols(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Ensure every preferred protocol is a known TLS version name."""
        unknown = [p for p in v if p not in KNOWN_TLS_PROTOCOLS]
        if unknown:
            msg = (
                f"Unknown TLS protocol(s) {unknown}; "
                f"expected any of {list(KNOWN_TLS_PROTOCOLS)}"
            )
            raise ValueError(msg)
        return v

    @property
    def use_proxy(self) -> bool:
        """Whether requests go through the configured proxy."""
        return self.proxy_host is not None

    @property
    def content_limit(self) -> int | None:
        """Body size cap, or None when unbounded."""
        if self.max_content_bytes < 0:
            return None
        return self.max_content_bytes

    @classmethod
    def from_conf(cls, conf: Mapping[str, Any]) -> "ProtocolConfig":
        """Build a configuration from a flat crawler configuration map.

        Keys follow the crawler's dotted naming (``http.timeout`` in
        milliseconds, ``http.content.limit``, ``store.ip.address`` ...).
        Absent keys keep their defaults.

        Args:
            conf: Flat configuration mapping.

        Returns:
            Validated ProtocolConfig.
        """
        values: dict[str, Any] = {}
        if conf.get(CONF_TIMEOUT_MS) is not None:
            values["timeout_seconds"] = float(conf[CONF_TIMEOUT_MS]) / 1000.0
        simple_keys = {
            CONF_PROXY_HOST: "proxy_host",
            CONF_PROXY_PORT: "proxy_port",
            CONF_AGENT: "user_agent",
            CONF_ACCEPT_LANGUAGE: "accept_language",
            CONF_ACCEPT: "accept",
            CONF_CONTENT_LIMIT: "max_content_bytes",
            CONF_STORE_IP: "store_ip_address",
        }
        for key, field_name in simple_keys.items():
            if key in conf and conf[key] is not None:
                values[field_name] = conf[key]
        for key, field_name in (
            (CONF_TLS_PROTOCOLS, "tls_preferred_protocols"),
            (CONF_TLS_CIPHERS, "tls_preferred_cipher_suites"),
        ):
            if key in conf and conf[key] is not None:
                values[field_name] = _as_tuple(conf[key])
        return cls(**values)


def _as_tuple(value: str | list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Accept either a comma-separated string or a sequence of names."""
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    return tuple(value)
