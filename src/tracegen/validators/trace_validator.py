"""
Validate generated traces against the trace data model.

Validates:
- ID formats (32 hex chars for traces, 16 for spans, never all zeros)
- Every span carries the trace's ID and a unique span ID
- Parent closure: non-root parents exist in the same trace
- Non-negative durations and parent start <= child start
- Attribute values are OTel-compatible (scalars or homogeneous lists)
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..model import Span, Trace

_TRACE_ID = re.compile(r"^[0-9a-f]{32}$")
_SPAN_ID = re.compile(r"^[0-9a-f]{16}$")
_SCALARS = (str, bool, int, float)


class ValidationSeverity(Enum):
    """Severity level for validation issues."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class ValidationError:
    """A single validation error or warning."""

    severity: ValidationSeverity
    attribute: str
    message: str
    span_index: int | None = None

    def __str__(self) -> str:
        prefix = f"[{self.severity.value.upper()}]"
        where = f" (span {self.span_index})" if self.span_index is not None else ""
        return f"{prefix}{where} {self.attribute}: {self.message}"


@dataclass
class ValidationResult:
    """Result of validating one or more traces."""

    valid: bool = True
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    def add(
        self,
        severity: ValidationSeverity,
        field_name: str,
        message: str,
        span_index: int | None = None,
    ) -> None:
        issue = ValidationError(severity, field_name, message, span_index)
        if severity == ValidationSeverity.ERROR:
            self.errors.append(issue)
            self.valid = False
        else:
            self.warnings.append(issue)

    def merge(self, other: "ValidationResult") -> None:
        """Merge another result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.valid:
            self.valid = False

    def __str__(self) -> str:
        lines = ["Validation passed" if self.valid else "Validation failed"]
        if self.errors:
            lines.append(f"\nErrors ({len(self.errors)}):")
            lines.extend(f"  - {err}" for err in self.errors)
        if self.warnings:
            lines.append(f"\nWarnings ({len(self.warnings)}):")
            lines.extend(f"  - {warn}" for warn in self.warnings)
        return "\n".join(lines)


def _valid_id(value: str, pattern: re.Pattern[str]) -> bool:
    return bool(pattern.match(value)) and int(value, 16) != 0


def _valid_attribute(value: Any) -> bool:
    if isinstance(value, _SCALARS):
        return True
    if isinstance(value, list):
        return all(type(v) is type(value[0]) and isinstance(v, _SCALARS) for v in value)
    return False


def _check_attributes(result: ValidationResult, where: str, attrs: dict, index: int) -> None:
    for key, value in attrs.items():
        if not isinstance(key, str) or not key:
            result.add(ValidationSeverity.ERROR, where, f"invalid attribute key {key!r}", index)
        elif not _valid_attribute(value):
            result.add(
                ValidationSeverity.ERROR,
                f"{where}.{key}",
                f"unsupported attribute value {value!r}",
                index,
            )


def _check_span(result: ValidationResult, trace: Trace, span: Span, index: int) -> None:
    if span.trace_id != trace.trace_id:
        result.add(
            ValidationSeverity.ERROR,
            "trace_id",
            f"span trace ID {span.trace_id} differs from trace {trace.trace_id}",
            index,
        )
    if not _valid_id(span.span_id, _SPAN_ID):
        result.add(ValidationSeverity.ERROR, "span_id", f"invalid span ID {span.span_id!r}", index)
    if span.duration_ns < 0:
        result.add(ValidationSeverity.ERROR, "duration", "duration must not be negative", index)
    if not span.name:
        result.add(ValidationSeverity.WARNING, "name", "span has no name", index)
    if span.parent_span_id:
        parent = trace.get(span.parent_span_id)
        if parent is None:
            result.add(
                ValidationSeverity.ERROR,
                "parent_span_id",
                f"parent {span.parent_span_id} not found in trace",
                index,
            )
        elif parent.start_time_ns > span.start_time_ns:
            result.add(
                ValidationSeverity.ERROR,
                "start_time",
                "span starts before its parent",
                index,
            )
    _check_attributes(result, "attributes", span.attributes, index)
    for event in span.events:
        _check_attributes(result, f"events[{event.name}]", event.attributes, index)
    for link in span.links:
        if not _valid_id(link.trace_id, _TRACE_ID) or not _valid_id(link.span_id, _SPAN_ID):
            result.add(ValidationSeverity.ERROR, "links", "link has an invalid target ID", index)
    if span.resource is not None:
        _check_attributes(result, "resource", span.resource.attributes, index)


def validate_trace(trace: Trace) -> ValidationResult:
    """Validate one trace; the result lists every problem found."""
    result = ValidationResult()
    if not _valid_id(trace.trace_id, _TRACE_ID):
        result.add(ValidationSeverity.ERROR, "trace_id", f"invalid trace ID {trace.trace_id!r}")
    if not trace.spans:
        result.add(ValidationSeverity.WARNING, "spans", "trace has no spans")
    seen: set[str] = set()
    for i, span in enumerate(trace.spans):
        if span.span_id in seen:
            result.add(ValidationSeverity.ERROR, "span_id", f"duplicate span ID {span.span_id}", i)
        seen.add(span.span_id)
        _check_span(result, trace, span, i)
    if trace.spans and not trace.roots():
        result.add(ValidationSeverity.ERROR, "parent_span_id", "trace has no root span")
    return result


def validate_traces(traces: Iterable[Trace]) -> ValidationResult:
    result = ValidationResult()
    for trace in traces:
        result.merge(validate_trace(trace))
    return result
