"""Tests for the HTTP and database semantic convention packs."""

import pytest
from opentelemetry.trace import SpanKind, StatusCode

from tracegen.model import Span, Status
from tracegen.schemas import semantics
from tracegen.schemas.semantics import HostInfo, Semantics, parse_semantics
from tracegen.statistics import RandomSource

TRACE_ID = "0af7651916cd43dd8448eb211c80319c"


def _span(name: str, service: str, kind: SpanKind, parent: Span | None = None, **attrs) -> Span:
    return Span(
        trace_id=TRACE_ID,
        span_id=format(abs(hash((name, service, kind))) % (1 << 63) + 1, "016x"),
        name=name,
        service=service,
        parent_span_id=parent.span_id if parent else "",
        kind=kind,
        status=Status(StatusCode.OK),
        attributes=dict(attrs),
    )


def test_parse_semantics() -> None:
    assert parse_semantics("http") == Semantics.HTTP
    assert parse_semantics("Database") == Semantics.DB
    assert parse_semantics("") is None
    assert parse_semantics(None) is None
    with pytest.raises(ValueError):
        parse_semantics("grpc")


def test_http_server_fills_request_and_client_parent(rng: RandomSource) -> None:
    client = _span("get-article", "shop-backend", SpanKind.CLIENT)
    server = _span("get-article", "article-service", SpanKind.SERVER, client)
    host = HostInfo.for_service("article-service", rng)

    semantics.apply(Semantics.HTTP, server, client, host=host, rng=rng)

    attrs = server.attributes
    assert attrs["http.request.method"] in ("GET", "DELETE", "POST", "PUT", "PATCH")
    assert attrs["http.response.status_code"] in (200, 201, 202, 204)
    assert attrs["url.full"].startswith("https://article-service.local:")
    assert attrs["url.path"] == "/get-article"
    assert client.attributes["http.request.method"] == attrs["http.request.method"]
    assert client.attributes["http.response.status_code"] == attrs["http.response.status_code"]
    assert client.attributes["url.full"] == attrs["url.full"]
    assert server.status.code == StatusCode.OK


def test_http_server_error_marks_both_sides(rng: RandomSource) -> None:
    client = _span("charge", "gateway", SpanKind.CLIENT)
    server = _span("charge", "payments", SpanKind.SERVER, client, **{"http.status_code": 503})

    semantics.apply("http", server, client, rng=rng)

    assert server.status == Status(StatusCode.ERROR, "Service Unavailable")
    assert client.status.code == StatusCode.ERROR
    assert "http.response.status_code" not in server.attributes


def test_http_explicit_status_is_kept(rng: RandomSource) -> None:
    server = _span("charge", "payments", SpanKind.SERVER, **{"http.response.status_code": 500})
    semantics.apply(Semantics.HTTP, server, rng=rng, keep_status=True)
    assert server.status.code == StatusCode.OK


def test_http_skips_internal_spans(rng: RandomSource) -> None:
    span = _span("compute", "worker", SpanKind.INTERNAL)
    semantics.apply(Semantics.HTTP, span, rng=rng)
    assert span.attributes == {}


def test_db_pack_derives_statement_from_name(rng: RandomSource) -> None:
    span = _span("select-articles", "postgres", SpanKind.SERVER)
    semantics.apply(Semantics.DB, span, rng=rng)
    attrs = span.attributes
    assert attrs["db.system"] == "postgres"
    assert attrs["db.operation"] == "SELECT"
    assert attrs["db.name"] == "articles_db"
    assert attrs["db.statement"] == "SELECT * FROM articles WHERE id = ?"
    assert attrs["server.address"] == "postgres.local"


def test_packs_never_overwrite(rng: RandomSource) -> None:
    span = _span("insert-orders", "orders", SpanKind.CLIENT, **{"db.system": "mysql"})
    semantics.apply(Semantics.DB, span, rng=rng)
    assert span.attributes["db.system"] == "mysql"
    assert span.attributes["db.operation"] == "INSERT"


def test_unknown_pack_is_noop(rng: RandomSource) -> None:
    span = _span("op", "svc", SpanKind.SERVER)
    semantics.apply("grpc", span, rng=rng)
    assert span.attributes == {}


def test_network_attributes_by_kind(rng: RandomSource) -> None:
    client = _span("call", "a", SpanKind.CLIENT)
    server = _span("call", "b", SpanKind.SERVER, client)
    internal = _span("work", "b", SpanKind.INTERNAL, server)
    host = HostInfo.for_service("b", rng)

    semantics.apply_network(client, None, HostInfo.for_service("a", rng), rng)
    semantics.apply_network(server, client, host, rng)
    semantics.apply_network(internal, server, host, rng)

    assert 8000 <= client.attributes["net.peer.port"] < 9000
    assert server.attributes["net.host.name"] == "b.local"
    assert server.attributes["net.sock.host.addr"] == host.host_ip
    assert client.attributes["net.peer.name"] == "b.local"
    assert client.attributes["net.sock.peer.addr"] == host.host_ip
    assert internal.attributes == {}


def test_complete_http_client(rng: RandomSource) -> None:
    span = _span("fetch", "shop", SpanKind.CLIENT)
    semantics.complete_http_client(span, rng)
    assert "http.request.method" in span.attributes
    assert span.attributes["http.response.status_code"] in (200, 201, 202, 204)
    assert span.attributes["url.full"] == "https://fetch.local/fetch"


def test_has_error() -> None:
    assert semantics.has_error(_span("a", "s", SpanKind.SERVER, **{"http.status_code": 404}))
    assert not semantics.has_error(_span("a", "s", SpanKind.SERVER, **{"http.status_code": 200}))
    span = _span("a", "s", SpanKind.SERVER)
    span.status = Status(StatusCode.ERROR)
    assert semantics.has_error(span)


def test_http_explicit_parent_status_is_kept(rng: RandomSource) -> None:
    client = _span("lookup", "gateway", SpanKind.CLIENT)
    client.status = Status(StatusCode.OK, "fine")
    server = _span("lookup", "catalog", SpanKind.SERVER, client, **{"http.status_code": 404})

    semantics.apply(Semantics.HTTP, server, client, rng=rng, keep_parent_status=True)

    assert client.status == Status(StatusCode.OK, "fine")
    assert client.attributes["http.response.status_code"] == 404
