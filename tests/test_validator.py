"""Tests for trace validation."""

from dataclasses import replace

from tracegen.generators import ParameterizedGenerator, TemplatedGenerator
from tracegen.model import Link, Trace
from tracegen.statistics import RandomSource
from tracegen.validators import ValidationSeverity, validate_trace, validate_traces


def _fields(trace: Trace) -> set[str]:
    return {error.attribute for error in validate_trace(trace).errors}


def test_generated_traces_are_valid(rng: RandomSource) -> None:
    traces = ParameterizedGenerator([{"spans": {"count": 4}}, {}], rng=rng).traces()
    traces += TemplatedGenerator(
        {
            "defaults": {"attributeSemantics": "http", "randomEvents": {"count": 2}},
            "spans": [{}, {"parentIdx": 0, "links": [{}]}, {"parentIdx": 1}],
        },
        rng=rng,
    ).traces()
    result = validate_traces(traces)
    assert result.valid, str(result)
    assert result.errors == []


def test_valid_sample(sample_trace: Trace) -> None:
    assert validate_trace(sample_trace).valid


def test_invalid_ids(sample_trace: Trace) -> None:
    sample_trace.trace_id = "xyz"
    assert "trace_id" in _fields(sample_trace)

    trace = Trace("0" * 32, [])
    result = validate_trace(trace)
    assert not result.valid
    assert [w.severity for w in result.warnings] == [ValidationSeverity.WARNING]


def test_duplicate_span_ids(sample_trace: Trace) -> None:
    root, child = sample_trace.spans
    sample_trace.spans.append(replace(child, parent_span_id=root.span_id))
    result = validate_trace(sample_trace)
    assert not result.valid
    assert any("duplicate" in error.message for error in result.errors)


def test_missing_parent_and_start_order(sample_trace: Trace) -> None:
    root, child = sample_trace.spans
    child.parent_span_id = "1234567890abcdef"
    assert "parent_span_id" in _fields(sample_trace)

    child.parent_span_id = root.span_id
    child.start_time_ns = root.start_time_ns - 1
    assert "start_time" in _fields(sample_trace)


def test_no_root(sample_trace: Trace) -> None:
    root, child = sample_trace.spans
    root.parent_span_id = child.span_id
    result = validate_trace(sample_trace)
    assert any(error.message == "trace has no root span" for error in result.errors)


def test_bad_values(sample_trace: Trace) -> None:
    _, child = sample_trace.spans
    child.attributes["nested"] = {"a": 1}
    child.duration_ns = -1
    child.links.append(Link("0" * 32, "1" * 16))
    fields = _fields(sample_trace)
    assert {"attributes.nested", "duration", "links"} <= fields


def test_result_string(sample_trace: Trace) -> None:
    sample_trace.spans[1].name = ""
    result = validate_trace(sample_trace)
    assert result.valid
    assert "Warnings (1)" in str(result)
    assert "(span 1) name: span has no name" in str(result)
