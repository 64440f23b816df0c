"""Parse parameterized trace specs: coarse trace/span counts and payload sizes."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..defaults import DEFAULT_SPAN_COUNT, DEFAULT_SPAN_SIZE
from ..errors import InvalidParameterError

_HEX = set("0123456789abcdef")


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _non_negative(value: Any, name: str, index: int, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(f"{name} must be an integer, got {value!r}", trace_index=index)
    if value < 0:
        raise InvalidParameterError(f"{name} must not be negative, got {value}", trace_index=index)
    return value or default


@dataclass
class SpanParams:
    count: int = DEFAULT_SPAN_COUNT
    size: int = DEFAULT_SPAN_SIZE
    name: str | None = None
    random_name: bool = False
    fixed_attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class TraceParams:
    """One parameterized trace: a linear chain of ``spans.count`` spans."""

    trace_id: str | None = None
    service: str | None = None
    random_service_name: bool = False
    resource_size: int = 0
    spans: SpanParams = field(default_factory=SpanParams)

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> "TraceParams":
        """Parse one spec; zero or omitted count/size fall back to the defaults."""
        if isinstance(data, TraceParams):
            return data
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise InvalidParameterError("trace spec must be a mapping", trace_index=index)
        spans = _first(data, "spans", default={}) or {}
        if not isinstance(spans, Mapping):
            raise InvalidParameterError("spans must be a mapping", trace_index=index)

        trace_id = _first(data, "traceID", "traceId", "trace_id", "id")
        if trace_id:
            trace_id = str(trace_id).lower()
            if len(trace_id) != 32 or not set(trace_id) <= _HEX or not int(trace_id, 16):
                raise InvalidParameterError(
                    f"trace ID must be 32 hex characters, got {trace_id!r}", trace_index=index
                )
        fixed = _first(spans, "fixedAttributes", "fixed_attributes", "fixed_attrs") or {}
        if not isinstance(fixed, Mapping):
            raise InvalidParameterError(
                "spans.fixedAttributes must be a mapping", trace_index=index
            )
        name = _first(spans, "name")

        return cls(
            trace_id=trace_id or None,
            service=_first(data, "service") or None,
            random_service_name=bool(
                _first(data, "serviceNameRandom", "random_service_name", default=False)
            ),
            resource_size=_non_negative(
                _first(data, "resourceSize", "resource_size"), "resourceSize", index, 0
            ),
            spans=SpanParams(
                count=_non_negative(
                    _first(spans, "count"), "spans.count", index, DEFAULT_SPAN_COUNT
                ),
                size=_non_negative(_first(spans, "size"), "spans.size", index, DEFAULT_SPAN_SIZE),
                name=str(name) if name else None,
                random_name=bool(_first(spans, "nameRandom", "random_name", default=False)),
                fixed_attributes=dict(fixed),
            ),
        )


def parse_trace_params(data: Any) -> list[TraceParams]:
    """Parse a single spec or a list of specs, failing on the first malformed one."""
    if data is None or isinstance(data, (Mapping, TraceParams)):
        return [TraceParams.from_dict(data)]
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
        return [TraceParams.from_dict(item, i) for i, item in enumerate(data)]
    raise InvalidParameterError("trace specs must be a mapping or a list of mappings")
