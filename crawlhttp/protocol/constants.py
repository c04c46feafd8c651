"""HTTP constants for the raw protocol layer.

Centralizes wire-level constants shared by the serializer, parser and client.
"""

# Default ports
HTTP_DEFAULT_PORT = 80
HTTPS_DEFAULT_PORT = 443
DEFAULT_PROXY_PORT = 8080

# HTTP Status Codes
HTTP_STATUS_CONTINUE = 100
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300

# Header names (lowercase, as stored)
HEADER_CONTENT_LENGTH = "content-length"
HEADER_CONTENT_ENCODING = "content-encoding"
HEADER_TRANSFER_ENCODING = "transfer-encoding"

# Private key under which the peer IP address is stored
PEER_IP_HEADER = "_ip_"

# Known-metadata keys carrying cached validators
CACHED_LAST_MODIFIED_KEY = "cachedLastModified"
CACHED_ETAG_KEY = "cachedEtag"

# Wire encoding for request and header bytes
WIRE_ENCODING = "iso-8859-1"

ACCEPT_ENCODING = "x-gzip, gzip, deflate"

# Markers of an HTML document appearing where a header line is expected
HTML_START_MARKERS = (b"<!DOCTYPE", b"<HTML", b"<html")

# Read sizes and limits
DEFAULT_BUFFER_SIZE = 8192
DEFAULT_MAX_LINE_BYTES = 64 * 1024
DEFAULT_MAX_CONTENT_BYTES = 64 * 1024

DEFAULT_TIMEOUT_SECONDS = 10.0
