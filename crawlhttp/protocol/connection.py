"""TCP/TLS connection setup for a single fetch."""

import socket
import ssl
from functools import lru_cache
from types import TracebackType
from typing import BinaryIO

import structlog

from crawlhttp.protocol.config import KNOWN_TLS_PROTOCOLS, ProtocolConfig
from crawlhttp.protocol.errors import (
    ConnectFailureError,
    ConnectTimeoutError,
    ReadTimeoutError,
    TlsNegotiationError,
)
from crawlhttp.protocol.models import FetchRequest
from crawlhttp.protocol.stream import PushbackReader


logger = structlog.get_logger()

_TLS_VERSIONS: dict[str, ssl.TLSVersion] = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}

_HAS_TLS_VERSION: dict[str, bool] = {
    "TLSv1": ssl.HAS_TLSv1,
    "TLSv1.1": ssl.HAS_TLSv1_1,
    "TLSv1.2": ssl.HAS_TLSv1_2,
    "TLSv1.3": ssl.HAS_TLSv1_3,
}

# OpenSSL names TLS 1.3 suites with this prefix; set_ciphers() ignores them
_TLS13_CIPHER_PREFIX = "TLS_"


def supported_tls_protocols() -> list[str]:
    """List the TLS versions the linked OpenSSL can speak, oldest first."""
    return [name for name in KNOWN_TLS_PROTOCOLS if _HAS_TLS_VERSION[name]]


def supported_cipher_suites() -> set[str]:
    """List every cipher suite name the linked OpenSSL implements."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        context.set_ciphers("ALL:@SECLEVEL=0")
    except ssl.SSLError:
        context.set_ciphers("ALL")
    return {cipher["name"] for cipher in context.get_ciphers()}


def negotiate_tls_parameters(
    preferred_protocols: tuple[str, ...],
    preferred_ciphers: tuple[str, ...],
) -> tuple[list[str], list[str]]:
    """Intersect the platform's TLS capabilities with the preferred lists.

    Args:
        preferred_protocols: Protocol versions the operator allows.
        preferred_ciphers: Cipher suites the operator allows, in preference
            order.

    Returns:
        Tuple of (enabled protocols oldest first, enabled ciphers in
        preference order).

    Raises:
        TlsNegotiationError: If either intersection is empty.
    """
    protocols = [p for p in supported_tls_protocols() if p in preferred_protocols]
    if not protocols:
        msg = f"No supported TLS protocol among {list(preferred_protocols)}"
        raise TlsNegotiationError(msg)

    available = supported_cipher_suites()
    ciphers = [c for c in preferred_ciphers if c in available]
    if not ciphers:
        msg = f"No supported cipher suite among {list(preferred_ciphers)}"
        raise TlsNegotiationError(msg)

    return protocols, ciphers


@lru_cache(maxsize=16)
def build_tls_context(
    preferred_protocols: tuple[str, ...],
    preferred_ciphers: tuple[str, ...],
) -> ssl.SSLContext:
    """Build a client context enabling exactly the negotiated parameters.

    Certificates are not verified: a crawler fetches whatever the server
    presents. Contexts are cached per parameter set and shared between
    fetches, which the ssl module allows.

    Args:
        preferred_protocols: Protocol versions the operator allows.
        preferred_ciphers: Cipher suites the operator allows.

    Returns:
        Configured SSLContext.

    Raises:
        TlsNegotiationError: If no usable protocol/cipher combination exists.
    """
    protocols, ciphers = negotiate_tls_parameters(
        preferred_protocols, preferred_ciphers
    )
    legacy_ciphers = [c for c in ciphers if not c.startswith(_TLS13_CIPHER_PREFIX)]
    if not legacy_ciphers:
        # Only TLS 1.3 suites survived, so older protocols have nothing to use
        protocols = [p for p in protocols if p == "TLSv1.3"]
        if not protocols:
            msg = "Preferred cipher suites only exist in TLSv1.3, which is not enabled"
            raise TlsNegotiationError(msg)

    # A min/max range is all the ssl module can express, so holes are refused
    supported = supported_tls_protocols()
    span = supported[supported.index(protocols[0]) : supported.index(protocols[-1]) + 1]
    if span != protocols:
        msg = f"TLS protocols {protocols} are not a contiguous range of {supported}"
        raise TlsNegotiationError(msg)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        context.minimum_version = _TLS_VERSIONS[protocols[0]]
        context.maximum_version = _TLS_VERSIONS[protocols[-1]]
        if legacy_ciphers:
            context.set_ciphers(":".join(legacy_ciphers))
    except (ssl.SSLError, ValueError) as e:
        msg = f"Cannot enable TLS parameters: {e}"
        raise TlsNegotiationError(msg) from e

    logger.debug(
        "tls_context_built",
        component="http",
        protocols=protocols,
        ciphers=ciphers,
    )
    return context


class Connection:
    """One socket for one fetch, closed exactly once.

    Connects to the proxy when one is configured and to the target host
    otherwise, upgrading to TLS for https URLs.
    """

    def __init__(self, request: FetchRequest, config: ProtocolConfig) -> None:
        """Initialize the connection (no I/O happens until ``open``).

        Args:
            request: Request the connection serves.
            config: Protocol configuration.
        """
        self._request = request
        self._config = config
        if config.use_proxy and config.proxy_host is not None:
            self.socket_host = config.proxy_host
            self.socket_port = config.proxy_port
        else:
            self.socket_host = request.host
            self.socket_port = request.port
        self.peer_ip: str | None = None
        self._sock: socket.socket | None = None
        self._file: BinaryIO | None = None
        self._closed = False
        self._log = logger.bind(
            component="http",
            url=request.url,
            socket_host=self.socket_host,
            socket_port=self.socket_port,
        )

    def open(self) -> "Connection":
        """Connect, and perform the TLS handshake for https.

        Returns:
            This connection.

        Raises:
            ConnectTimeoutError: If connecting exceeds the timeout.
            ConnectFailureError: If the connection cannot be established.
            TlsNegotiationError: If the TLS handshake fails.
        """
        url = self._request.url
        try:
            sock = socket.create_connection(
                (self.socket_host, self.socket_port),
                timeout=self._config.timeout_seconds,
            )
        except TimeoutError as e:
            msg = f"Connect to {self.socket_host}:{self.socket_port} timed out"
            raise ConnectTimeoutError(msg, url=url) from e
        except OSError as e:
            msg = f"Connect to {self.socket_host}:{self.socket_port} failed: {e}"
            raise ConnectFailureError(msg, url=url) from e

        self._sock = sock
        try:
            self.peer_ip = sock.getpeername()[0]
            if self._request.is_https:
                self._sock = self._start_tls(sock)
            self._file = self._sock.makefile("rb", buffering=self._config.buffer_size)
        except BaseException:
            self.close()
            raise

        self._log.debug("connected", peer_ip=self.peer_ip)
        return self

    def _start_tls(self, sock: socket.socket) -> ssl.SSLSocket:
        url = self._request.url
        try:
            context = build_tls_context(
                self._config.tls_preferred_protocols,
                self._config.tls_preferred_cipher_suites,
            )
        except TlsNegotiationError as e:
            e.url = url
            raise

        try:
            tls_sock = context.wrap_socket(sock, server_hostname=self.socket_host)
        except (ssl.SSLError, OSError) as e:
            msg = f"TLS handshake with {self.socket_host} failed: {e}"
            raise TlsNegotiationError(msg, url=url) from e

        self._log.debug(
            "tls_negotiated",
            protocol=tls_sock.version(),
            cipher=(tls_sock.cipher() or ("",))[0],
        )
        return tls_sock

    def send(self, data: bytes) -> None:
        """Write the whole request to the socket.

        Args:
            data: Bytes to write.

        Raises:
            ReadTimeoutError: If the write exceeds the timeout.
            ConnectFailureError: If the connection breaks while writing.
        """
        if self._sock is None:
            msg = "Connection is not open"
            raise ConnectFailureError(msg, url=self._request.url)
        try:
            self._sock.sendall(data)
        except TimeoutError as e:
            msg = f"Writing request timed out: {e}"
            raise ReadTimeoutError(msg, url=self._request.url) from e
        except OSError as e:
            msg = f"Writing request failed: {e}"
            raise ConnectFailureError(msg, url=self._request.url) from e

    def reader(self) -> PushbackReader:
        """Get a pushback reader over the response stream."""
        if self._file is None:
            msg = "Connection is not open"
            raise ConnectFailureError(msg, url=self._request.url)
        return PushbackReader(self._file, url=self._request.url)

    @property
    def closed(self) -> bool:
        """Whether ``close`` has run."""
        return self._closed

    def close(self) -> None:
        """Close the response stream and the socket; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        if self._file is not None:
            self._file.close()
        if self._sock is not None:
            self._sock.close()
        self._log.debug("connection_closed")

    def __enter__(self) -> "Connection":
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
