"""
Semantic convention packs applied to generated spans.

A pack injects realistic attributes for one domain (HTTP, database) without
overwriting anything already set on the span. Network attributes are shared by
all packs and describe the host of the span's service. Server spans push what
they know (peer address, HTTP method and status) up to a CLIENT parent so both
sides of a call agree.
"""

from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Any
from urllib.parse import urlsplit

from opentelemetry.trace import SpanKind, StatusCode

from ..model import Attributes, Span, Status, put_if_absent
from ..statistics.randomness import DB_SYSTEMS, RandomSource, default_source

ATTR_HTTP_METHOD = "http.request.method"
ATTR_HTTP_METHOD_OLD = "http.method"
ATTR_HTTP_STATUS_CODE = "http.response.status_code"
ATTR_HTTP_STATUS_CODE_OLD = "http.status_code"
ATTR_HTTP_REQUEST_HEADER_ACCEPT = "http.request.header.accept"
ATTR_HTTP_REQUEST_CONTENT_LENGTH = "http.request.header.content-length"
ATTR_HTTP_RESPONSE_CONTENT_TYPE = "http.response.header.content-type"
ATTR_HTTP_RESPONSE_CONTENT_LENGTH = "http.response.header.content-length"
ATTR_URL = "url.full"
ATTR_URL_SCHEME = "url.scheme"
ATTR_URL_PATH = "url.path"

ATTR_DB_SYSTEM = "db.system"
ATTR_DB_NAME = "db.name"
ATTR_DB_OPERATION = "db.operation"
ATTR_DB_STATEMENT = "db.statement"
ATTR_SERVER_ADDRESS = "server.address"
ATTR_SERVER_PORT = "server.port"

_BODY_METHODS = ("PATCH", "POST", "PUT")

# Span name prefix -> SQL verb.
_DB_OPERATIONS = {
    "select": "SELECT",
    "query": "SELECT",
    "list": "SELECT",
    "get": "SELECT",
    "search": "SELECT",
    "insert": "INSERT",
    "add": "INSERT",
    "create": "INSERT",
    "persist": "INSERT",
    "update": "UPDATE",
    "set": "UPDATE",
    "delete": "DELETE",
    "remove": "DELETE",
}


class Semantics(str, Enum):
    """Supported semantic convention packs."""

    HTTP = "http"
    DB = "db"


def parse_semantics(value: Any) -> Semantics | None:
    """Return the pack for a name (http, db, database); None for empty.

    Raises ValueError for unknown names.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Semantics):
        return value
    name = str(value).strip().lower()
    if name == "database":
        name = "db"
    return Semantics(name)


@dataclass(frozen=True)
class HostInfo:
    """Network identity of a service instance."""

    host_name: str
    host_ip: str
    host_port: int
    transport: str = "ip_tcp"

    @classmethod
    def for_service(cls, service: str, rng: RandomSource | None = None) -> "HostInfo":
        rng = rng or default_source()
        return cls(
            host_name=f"{service or 'unknown'}.local",
            host_ip=rng.ip_addr(),
            host_port=rng.port(),
        )


def get_http_status_code(attributes: Attributes) -> int | None:
    for key in (ATTR_HTTP_STATUS_CODE, ATTR_HTTP_STATUS_CODE_OLD):
        value = attributes.get(key)
        if value is not None:
            try:
                return int(value)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                return None
    return None


def get_http_method(attributes: Attributes) -> str | None:
    for key in (ATTR_HTTP_METHOD, ATTR_HTTP_METHOD_OLD):
        value = attributes.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def has_error(span: Span) -> bool:
    """Span status is ERROR or it records an HTTP status >= 400."""
    if span.status.is_error:
        return True
    status = get_http_status_code(span.attributes)
    return status is not None and status >= 400


def _status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"HTTP {status}"


def _mark_error(span: Span, http_status: int) -> None:
    span.status = Status(StatusCode.ERROR, _status_text(http_status))


def apply_network(
    span: Span,
    parent: Span | None = None,
    host: HostInfo | None = None,
    rng: RandomSource | None = None,
) -> None:
    """Network attributes for non-internal spans."""
    if span.kind == SpanKind.INTERNAL:
        return
    rng = rng or default_source()
    host = host or HostInfo.for_service(span.service, rng)
    attrs = span.attributes
    put_if_absent(attrs, "net.transport", host.transport)
    put_if_absent(attrs, "net.sock.family", "inet")
    if span.kind == SpanKind.CLIENT:
        put_if_absent(attrs, "net.peer.port", rng.port())
    elif span.kind == SpanKind.SERVER:
        put_if_absent(attrs, "net.sock.host.addr", host.host_ip)
        put_if_absent(attrs, "net.host.name", host.host_name)
        put_if_absent(attrs, "net.host.port", host.host_port)
        if parent is not None and parent.kind == SpanKind.CLIENT:
            put_if_absent(parent.attributes, "net.sock.peer.addr", attrs["net.sock.host.addr"])
            put_if_absent(parent.attributes, "net.peer.name", attrs["net.host.name"])


def _apply_http(
    span: Span,
    parent: Span | None,
    host: HostInfo,
    rng: RandomSource,
    keep_status: bool,
    keep_parent_status: bool,
) -> None:
    if span.kind == SpanKind.INTERNAL:
        return
    attrs = span.attributes
    put_if_absent(attrs, "network.protocol.name", "http")
    put_if_absent(attrs, "network.protocol.version", "1.1")
    if span.kind != SpanKind.SERVER:
        return

    method = get_http_method(attrs)
    if method is None:
        method = rng.http_method()
        attrs[ATTR_HTTP_METHOD] = method

    content_type = attrs.get(ATTR_HTTP_RESPONSE_CONTENT_TYPE)
    if content_type is None:
        content_type = rng.http_content_type()
        attrs[ATTR_HTTP_RESPONSE_CONTENT_TYPE] = content_type

    status = get_http_status_code(attrs)
    if status is None:
        status = rng.http_status_success()
        attrs[ATTR_HTTP_STATUS_CODE] = status
    if status >= 500 and not keep_status:
        _mark_error(span, status)

    url = attrs.get(ATTR_URL)
    if not isinstance(url, str) and parent is not None:
        parent_url = parent.attributes.get(ATTR_URL)
        url = parent_url if isinstance(parent_url, str) else None
    if not isinstance(url, str):
        url = f"https://{host.host_name}:{host.host_port}/{span.name}"
        attrs[ATTR_URL] = url
    parts = urlsplit(url)
    put_if_absent(attrs, ATTR_URL_SCHEME, parts.scheme or "https")
    put_if_absent(attrs, ATTR_URL_PATH, parts.path or "/")

    put_if_absent(attrs, ATTR_HTTP_RESPONSE_CONTENT_LENGTH, [rng.int_between(100_000, 1_000_000)])
    if method.upper() in _BODY_METHODS:
        put_if_absent(attrs, ATTR_HTTP_REQUEST_CONTENT_LENGTH, [rng.int_between(10_000, 100_000)])

    if parent is not None and parent.kind == SpanKind.CLIENT:
        if status >= 400 and not keep_parent_status:
            _mark_error(parent, status)
        put_if_absent(parent.attributes, ATTR_HTTP_METHOD, method)
        put_if_absent(parent.attributes, ATTR_HTTP_REQUEST_HEADER_ACCEPT, content_type)
        put_if_absent(parent.attributes, ATTR_HTTP_STATUS_CODE, status)
        put_if_absent(parent.attributes, ATTR_URL, url)


def _db_operation(span_name: str) -> str:
    verb = span_name.lower().replace("_", "-").split("-", 1)[0]
    return _DB_OPERATIONS.get(verb, "SELECT")


def _db_table(span_name: str) -> str:
    parts = span_name.lower().replace("_", "-").split("-")
    return parts[-1] if len(parts) > 1 else "records"


def _apply_db(span: Span, host: HostInfo, rng: RandomSource) -> None:
    attrs = span.attributes
    system = span.service if span.service in DB_SYSTEMS else rng.db_system()
    operation = _db_operation(span.name)
    table = _db_table(span.name)
    put_if_absent(attrs, ATTR_DB_SYSTEM, system)
    put_if_absent(attrs, ATTR_DB_NAME, f"{table}_db")
    put_if_absent(attrs, ATTR_DB_OPERATION, operation)
    statements = {
        "SELECT": f"SELECT * FROM {table} WHERE id = ?",
        "INSERT": f"INSERT INTO {table} VALUES (?)",
        "UPDATE": f"UPDATE {table} SET value = ? WHERE id = ?",
        "DELETE": f"DELETE FROM {table} WHERE id = ?",
    }
    put_if_absent(attrs, ATTR_DB_STATEMENT, statements[operation])
    if span.kind != SpanKind.INTERNAL:
        put_if_absent(attrs, ATTR_SERVER_ADDRESS, host.host_name)
        put_if_absent(attrs, ATTR_SERVER_PORT, host.host_port)


def apply(
    semantics: Semantics | str | None,
    span: Span,
    parent: Span | None = None,
    *,
    host: HostInfo | None = None,
    rng: RandomSource | None = None,
    keep_status: bool = False,
    keep_parent_status: bool = False,
) -> None:
    """Inject the attributes of a semantic convention pack into ``span``.

    Attributes already present are left alone. An unknown or empty kind is a
    no-op. ``keep_status`` stops HTTP 5xx from overriding an explicit status on
    ``span``; ``keep_parent_status`` does the same for the 4xx/5xx error a SERVER
    span propagates to its CLIENT parent.
    """
    try:
        pack = parse_semantics(semantics)
    except ValueError:
        return
    if pack is None:
        return
    rng = rng or default_source()
    host = host or HostInfo.for_service(span.service, rng)
    if pack == Semantics.HTTP:
        _apply_http(span, parent, host, rng, keep_status, keep_parent_status)
    elif pack == Semantics.DB:
        _apply_db(span, host, rng)


def complete_http_client(span: Span, rng: RandomSource | None = None) -> None:
    """Fill request attributes on a CLIENT span that no server child described."""
    if span.kind != SpanKind.CLIENT:
        return
    rng = rng or default_source()
    attrs = span.attributes
    if get_http_method(attrs) is None:
        attrs[ATTR_HTTP_METHOD] = rng.http_method()
    if get_http_status_code(attrs) is None:
        attrs[ATTR_HTTP_STATUS_CODE] = rng.http_status_success()
    put_if_absent(attrs, ATTR_URL, f"https://{span.name}.local/{span.name}")
