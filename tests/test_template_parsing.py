"""Tests for trace template and parameter parsing."""

import pytest
from opentelemetry.trace import StatusCode

from tracegen.errors import InvalidParameterError, InvalidTemplateError
from tracegen.schemas import (
    EventParams,
    Semantics,
    SpanTemplate,
    TraceParams,
    TraceTemplate,
    parse_templates,
    parse_trace_params,
)


def test_camel_and_snake_case_keys_are_equivalent() -> None:
    camel = SpanTemplate.from_dict(
        {"parentIdx": 0, "attributeSemantics": "db", "randomAttributes": {"count": 2}}, 1
    )
    snake = SpanTemplate.from_dict(
        {"parent_idx": 0, "attribute_semantics": "db", "random_attributes": {"count": 2}}, 1
    )
    assert camel == snake
    assert camel.parent_idx == 0
    assert camel.attribute_semantics == Semantics.DB
    assert camel.random_attributes.cardinality == 20


def test_template_defaults_and_spans() -> None:
    template = TraceTemplate.from_dict(
        {
            "defaults": {
                "service": "shop",
                "attributes": {"one": "three"},
                "duration": {"min": 10, "max": 20},
                "status": "error",
            },
            "spans": [{"name": "root"}, {"name": "child", "parentIdx": 0}],
        }
    )
    assert template.defaults.service == "shop"
    assert template.defaults.attributes == {"one": "three"}
    assert template.defaults.duration.min_ms == 10
    assert template.defaults.status.code == StatusCode.ERROR
    assert [template.parent_index(i) for i in range(2)] == [None, 0]


def test_absent_parent_is_root_unless_implicit() -> None:
    spans = [{"name": "a"}, {"name": "b"}, {"name": "c", "parentIdx": 0}]
    assert [TraceTemplate.from_dict({"spans": spans}).parent_index(i) for i in range(3)] == [
        None,
        None,
        0,
    ]
    implicit = TraceTemplate.from_dict({"implicitParent": True, "spans": spans})
    assert [implicit.parent_index(i) for i in range(3)] == [None, 0, 0]


@pytest.mark.parametrize("parent_idx", [1, 2, -1])
def test_parent_must_reference_earlier_span(parent_idx: int) -> None:
    with pytest.raises(InvalidTemplateError) as exc_info:
        TraceTemplate.from_dict({"spans": [{"name": "a"}, {"name": "b", "parentIdx": parent_idx}]})
    assert exc_info.value.span_index == 1


def test_parent_index_must_be_integer() -> None:
    with pytest.raises(InvalidTemplateError) as exc_info:
        TraceTemplate.from_dict({"spans": [{"name": "a"}, {"name": "b", "parentIdx": "0"}]})
    assert exc_info.value.span_index == 1


@pytest.mark.parametrize(
    "span",
    [
        {"attributeSemantics": "grpc"},
        {"duration": {"min": 10, "max": 5}},
        {"duration": {"min": -1}},
        {"randomAttributes": {"count": -1}},
        {"randomEvents": {"count": -0.5}},
        {"randomLinks": {"count": "many"}},
        {"status": {"code": "fine"}},
        {"attributes": ["not", "a", "mapping"]},
        {"events": [{"attributes": {}}]},
    ],
)
def test_invalid_span_fields(span: dict) -> None:
    with pytest.raises(InvalidTemplateError):
        TraceTemplate.from_dict({"spans": [span]})


@pytest.mark.parametrize("data", [{}, {"spans": []}, {"spans": "root"}, "template"])
def test_template_needs_span_list(data) -> None:
    with pytest.raises(InvalidTemplateError):
        parse_templates(data)


def test_template_list_reports_trace_index() -> None:
    with pytest.raises(InvalidTemplateError) as exc_info:
        parse_templates([{"spans": [{}]}, {"spans": [{"parentIdx": 0}]}])
    assert exc_info.value.trace_index == 1
    assert exc_info.value.span_index == 0


def test_event_params_aliases() -> None:
    params = EventParams.from_dict({"rate": 0.5, "generateExceptionOnError": True})
    assert params.rate == 0.5
    assert params.exception_on_error
    assert params.exception_rate == 1.0
    assert EventParams.from_dict({"count": 2, "exceptionCount": 0.25}).exception_rate == 0.25
    assert EventParams.from_dict({}).rate == 1.0


def test_trace_params_aliases_and_defaults() -> None:
    params = TraceParams.from_dict(
        {
            "traceID": "0AF7651916CD43DD8448EB211C80319C",
            "serviceNameRandom": True,
            "resourceSize": 100,
            "spans": {"count": 0, "nameRandom": True, "fixed_attrs": {"test": "test"}},
        }
    )
    assert params.trace_id == "0af7651916cd43dd8448eb211c80319c"
    assert params.random_service_name
    assert params.resource_size == 100
    assert params.spans.count == 10
    assert params.spans.size == 1000
    assert params.spans.random_name
    assert params.spans.fixed_attributes == {"test": "test"}


@pytest.mark.parametrize(
    "spec",
    [
        {"spans": {"count": -1}},
        {"spans": {"size": -300}},
        {"spans": {"count": 2.5}},
        {"resourceSize": -1},
        {"traceID": "xyz"},
        {"traceID": "0" * 32},
        {"spans": [1, 2]},
    ],
)
def test_trace_params_rejects_malformed(spec: dict) -> None:
    with pytest.raises(InvalidParameterError):
        parse_trace_params(spec)


def test_trace_params_list_reports_trace_index() -> None:
    with pytest.raises(InvalidParameterError) as exc_info:
        parse_trace_params([{}, {"spans": {"count": -5}}])
    assert exc_info.value.trace_index == 1


def test_trace_params_none_is_one_default_spec() -> None:
    assert parse_trace_params(None) == [TraceParams()]
