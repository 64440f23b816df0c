"""
In-memory trace model handed from the generators to the export client.

Traces own an ordered list of spans forming one or more trees. IDs are lowercase
hex strings (32 chars for traces, 16 for spans; "" means no parent) and all
timestamps are integer nanoseconds since the epoch.
"""

import json
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from opentelemetry.trace import SpanKind, StatusCode

AttributeValue = str | bool | int | float | list[str] | list[bool] | list[int] | list[float]
Attributes = dict[str, AttributeValue]

ATTR_SERVICE_NAME = "service.name"
EXCEPTION_EVENT_NAME = "exception"

_SCALAR_TYPES = (bool, str, int, float)


def normalize_value(value: Any) -> AttributeValue:
    """Coerce a raw value into an OTel-compatible attribute value.

    Scalars pass through; homogeneous sequences become lists; mappings are
    JSON-encoded and anything else is stringified.
    """
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, Mapping):
        return json.dumps(value, sort_keys=True, default=str)
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        items = list(value)
        if not items:
            return []
        first = type(items[0])
        if first in _SCALAR_TYPES and all(type(v) is first for v in items):
            return items
        if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in items):
            return [float(v) for v in items]
        return [v if isinstance(v, str) else json.dumps(v, default=str) for v in items]
    return str(value)


def normalize_attributes(attributes: Mapping[str, Any] | None) -> Attributes:
    if not attributes:
        return {}
    return {str(k): normalize_value(v) for k, v in attributes.items() if v is not None}


def merge_attributes(*layers: Mapping[str, Any] | None) -> Attributes:
    """Merge attribute layers by key; later layers win on collision."""
    merged: Attributes = {}
    for layer in layers:
        merged.update(normalize_attributes(layer))
    return merged


def put_if_absent(attributes: Attributes, key: str, value: Any) -> None:
    if key not in attributes:
        attributes[key] = normalize_value(value)


def parse_status_code(value: Any) -> StatusCode:
    """Accept StatusCode, its name (ok, error, unset, STATUS_CODE_OK) or OTLP number."""
    if isinstance(value, StatusCode):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid status code: {value!r}")
    if isinstance(value, int):
        return StatusCode(value)
    name = str(value).strip().upper().removeprefix("STATUS_CODE_")
    try:
        return StatusCode[name]
    except KeyError:
        raise ValueError(f"invalid status code: {value!r}") from None


def parse_span_kind(value: Any) -> SpanKind:
    """Accept SpanKind or its name (server, SPAN_KIND_CLIENT, ...); unknown names are INTERNAL."""
    if isinstance(value, SpanKind):
        return value
    name = str(value).strip().upper().removeprefix("SPAN_KIND_")
    try:
        return SpanKind[name]
    except KeyError:
        return SpanKind.INTERNAL


@dataclass
class Status:
    """Span status; the message is exported for every code."""

    code: StatusCode = StatusCode.UNSET
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.code == StatusCode.ERROR

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Status":
        data = data or {}
        return cls(
            code=parse_status_code(data.get("code", StatusCode.UNSET)),
            message=str(data.get("message") or ""),
        )


@dataclass
class Resource:
    """Attributes describing the entity that emitted a span."""

    attributes: Attributes = field(default_factory=dict)

    @property
    def service_name(self) -> str:
        return str(self.attributes.get(ATTR_SERVICE_NAME, ""))

    def merged(self, *others: Mapping[str, Any] | None) -> "Resource":
        return Resource(merge_attributes(self.attributes, *others))


@dataclass
class Event:
    """Timestamped annotation on a span."""

    name: str
    timestamp_ns: int
    attributes: Attributes = field(default_factory=dict)
    is_exception: bool = False


@dataclass
class Link:
    """Reference from a span to another span, possibly in a different trace."""

    trace_id: str
    span_id: str
    attributes: Attributes = field(default_factory=dict)


@dataclass
class Span:
    """One timed unit of work within a trace."""

    trace_id: str
    span_id: str
    name: str
    service: str = ""
    parent_span_id: str = ""
    kind: SpanKind = SpanKind.INTERNAL
    start_time_ns: int = 0
    duration_ns: int = 0
    status: Status = field(default_factory=Status)
    attributes: Attributes = field(default_factory=dict)
    events: list[Event] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    resource: Resource | None = None

    @property
    def end_time_ns(self) -> int:
        return self.start_time_ns + self.duration_ns

    @property
    def is_root(self) -> bool:
        return not self.parent_span_id

    def effective_resource(self) -> Resource:
        """Resource to export with; always carries service.name."""
        resource = self.resource or Resource()
        if ATTR_SERVICE_NAME not in resource.attributes and self.service:
            return resource.merged({ATTR_SERVICE_NAME: self.service})
        return resource


@dataclass
class Trace:
    """A set of causally related spans sharing one trace ID."""

    trace_id: str
    spans: list[Span] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.spans)

    def __iter__(self) -> Iterator[Span]:
        return iter(self.spans)

    def roots(self) -> list[Span]:
        return [s for s in self.spans if s.is_root]

    def get(self, span_id: str) -> Span | None:
        for span in self.spans:
            if span.span_id == span_id:
                return span
        return None

    def children(self, span_id: str) -> list[Span]:
        return [s for s in self.spans if s.parent_span_id == span_id]


def flatten(traces: Sequence[Trace]) -> list[Span]:
    """All spans of the given traces, in trace then generation order."""
    return [span for trace in traces for span in trace.spans]
