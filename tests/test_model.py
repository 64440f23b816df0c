"""Tests for the in-memory trace model helpers."""

import pytest
from opentelemetry.trace import SpanKind, StatusCode

from tracegen.model import (
    Resource,
    Span,
    Status,
    Trace,
    flatten,
    merge_attributes,
    normalize_attributes,
    normalize_value,
    parse_span_kind,
    parse_status_code,
    put_if_absent,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("text", "text"),
        (3, 3),
        (2.5, 2.5),
        (True, True),
        (("a", "b"), ["a", "b"]),
        ([1, 2.5], [1.0, 2.5]),
        ([1, "a"], ["1", "a"]),
        ({"b": 1, "a": 2}, '{"a": 2, "b": 1}'),
        ([], []),
    ],
)
def test_normalize_value(raw, expected) -> None:
    assert normalize_value(raw) == expected


def test_normalize_attributes_drops_none() -> None:
    assert normalize_attributes({"a": None, "b": 1}) == {"b": 1}


def test_merge_attributes_later_layers_win() -> None:
    merged = merge_attributes({"a": 1, "b": 1}, None, {"b": 2, "c": 3})
    assert merged == {"a": 1, "b": 2, "c": 3}


def test_put_if_absent_keeps_existing() -> None:
    attrs = {"a": 1}
    put_if_absent(attrs, "a", 2)
    put_if_absent(attrs, "b", 3)
    assert attrs == {"a": 1, "b": 3}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ok", StatusCode.OK),
        ("ERROR", StatusCode.ERROR),
        ("STATUS_CODE_UNSET", StatusCode.UNSET),
        (0, StatusCode.UNSET),
        (2, StatusCode.ERROR),
        (StatusCode.OK, StatusCode.OK),
    ],
)
def test_parse_status_code(raw, expected) -> None:
    assert parse_status_code(raw) == expected


@pytest.mark.parametrize("raw", ["bogus", True])
def test_parse_status_code_rejects_unknown(raw) -> None:
    with pytest.raises(ValueError):
        parse_status_code(raw)


def test_parse_span_kind() -> None:
    assert parse_span_kind("server") == SpanKind.SERVER
    assert parse_span_kind("SPAN_KIND_CLIENT") == SpanKind.CLIENT
    assert parse_span_kind("bogus") == SpanKind.INTERNAL


def test_status_from_dict() -> None:
    status = Status.from_dict({"code": "error", "message": "boom"})
    assert status.is_error
    assert status.message == "boom"
    assert Status.from_dict(None) == Status(StatusCode.UNSET, "")


def test_effective_resource_adds_service_name() -> None:
    span = Span("1" * 32, "2" * 16, "op", service="svc", resource=Resource({"k": "v"}))
    assert span.effective_resource().attributes == {"k": "v", "service.name": "svc"}
    assert Span("1" * 32, "2" * 16, "op").effective_resource().attributes == {}


def test_trace_navigation() -> None:
    root = Span("1" * 32, "a" * 16, "root", start_time_ns=10, duration_ns=5)
    child = Span("1" * 32, "b" * 16, "child", parent_span_id=root.span_id)
    trace = Trace("1" * 32, [root, child])
    assert len(trace) == 2
    assert trace.roots() == [root]
    assert trace.children(root.span_id) == [child]
    assert trace.get("b" * 16) is child
    assert trace.get("c" * 16) is None
    assert root.end_time_ns == 15
    assert flatten([trace, Trace("2" * 32, [child])]) == [root, child, child]
