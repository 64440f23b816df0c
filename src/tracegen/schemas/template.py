"""
Parse trace templates from plain structured data (dicts from YAML, JSON or code).

A template is ``{defaults: {...}, spans: [{...}, ...]}``. Keys are accepted in
camelCase (``parentIdx``, ``randomAttributes``) and snake_case
(``parent_idx``, ``random_attributes``). Parsing validates everything that can
be checked without generating: parent indexes, semantics names, ranges, rates.
Problems raise InvalidTemplateError naming the offending span index.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..errors import InvalidTemplateError
from ..model import Status
from .semantics import Semantics, parse_semantics

DEFAULT_RANDOM_ATTRIBUTE_CARDINALITY = 20

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL.sub("_", key).lower()


def _normalized(data: Any, where: str, span_index: int | None = None) -> dict[str, Any]:
    """Return a copy of ``data`` with snake_case keys."""
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise InvalidTemplateError(f"{where} must be a mapping", span_index=span_index)
    return {_snake(str(k)): v for k, v in data.items()}


def _attributes(value: Any, where: str, span_index: int | None) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidTemplateError(f"{where} must be a mapping", span_index=span_index)
    return dict(value)


def _rate(value: Any, where: str, span_index: int | None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTemplateError(f"{where} must be a number", span_index=span_index)
    if value < 0:
        raise InvalidTemplateError(f"{where} must not be negative", span_index=span_index)
    return float(value)


@dataclass
class Range:
    """Duration interval in milliseconds, [min_ms, max_ms]."""

    min_ms: float
    max_ms: float

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "Range | None":
        if data is None:
            return None
        d = _normalized(data, "duration", span_index)
        try:
            low = float(d.get("min", 0))
            high = float(d.get("max", low))
        except (TypeError, ValueError):
            raise InvalidTemplateError(
                "duration bounds must be numbers", span_index=span_index
            ) from None
        if low < 0 or high < low:
            raise InvalidTemplateError(
                f"duration must satisfy 0 <= min <= max, got min={low} max={high}",
                span_index=span_index,
            )
        return cls(low, high)


@dataclass
class AttributeParams:
    """How many random attributes to create and how many distinct values each may take."""

    count: int = 0
    cardinality: int = DEFAULT_RANDOM_ATTRIBUTE_CARDINALITY

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "AttributeParams | None":
        if data is None:
            return None
        d = _normalized(data, "randomAttributes", span_index)
        count = d.get("count", 0)
        cardinality = d.get("cardinality")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidTemplateError(
                f"randomAttributes.count must be a non-negative integer, got {count!r}",
                span_index=span_index,
            )
        if cardinality is None:
            cardinality = DEFAULT_RANDOM_ATTRIBUTE_CARDINALITY
        elif isinstance(cardinality, bool) or not isinstance(cardinality, int):
            raise InvalidTemplateError(
                f"randomAttributes.cardinality must be an integer, got {cardinality!r}",
                span_index=span_index,
            )
        return cls(count=count, cardinality=cardinality)


@dataclass
class ResourceTemplate:
    attributes: dict[str, Any] = field(default_factory=dict)
    random_attributes: AttributeParams | None = None

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "ResourceTemplate | None":
        if data is None:
            return None
        d = _normalized(data, "resource", span_index)
        return cls(
            attributes=_attributes(d.get("attributes"), "resource.attributes", span_index),
            random_attributes=AttributeParams.from_dict(d.get("random_attributes"), span_index),
        )


@dataclass
class EventTemplate:
    """An explicitly listed event."""

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    random_attributes: AttributeParams | None = None
    exception: bool = False

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "EventTemplate":
        d = _normalized(data, "event", span_index)
        exception = bool(d.get("exception") or d.get("is_exception"))
        name = d.get("name") or ("exception" if exception else "")
        if not name:
            raise InvalidTemplateError("event must have a name", span_index=span_index)
        return cls(
            name=str(name),
            attributes=_attributes(d.get("attributes"), "event.attributes", span_index),
            random_attributes=AttributeParams.from_dict(d.get("random_attributes"), span_index),
            exception=exception,
        )


@dataclass
class LinkTemplate:
    """An explicitly listed link."""

    attributes: dict[str, Any] = field(default_factory=dict)
    random_attributes: AttributeParams | None = None
    link_to_previous_span: bool = False

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "LinkTemplate":
        d = _normalized(data, "link", span_index)
        return cls(
            attributes=_attributes(d.get("attributes"), "link.attributes", span_index),
            random_attributes=AttributeParams.from_dict(d.get("random_attributes"), span_index),
            link_to_previous_span=bool(d.get("link_to_previous_span_index")),
        )


@dataclass
class EventParams:
    """Random events per span: ``count`` (or ``rate``) plus optional exception events."""

    rate: float = 1.0
    exception_rate: float = 0.0
    exception_on_error: bool = False
    random_attributes: AttributeParams | None = None

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "EventParams | None":
        if data is None:
            return None
        d = _normalized(data, "randomEvents", span_index)
        raw_rate = d.get("rate", d.get("count", 1))
        raw_exception = d.get("exception_rate", d.get("exception_count", 0))
        on_error = bool(d.get("exception_on_error") or d.get("generate_exception_on_error"))
        exception_rate = _rate(raw_exception, "randomEvents.exceptionCount", span_index)
        if on_error and exception_rate == 0:
            exception_rate = 1.0
        return cls(
            rate=_rate(raw_rate, "randomEvents.count", span_index),
            exception_rate=exception_rate,
            exception_on_error=on_error,
            random_attributes=AttributeParams.from_dict(d.get("random_attributes"), span_index),
        )


@dataclass
class LinkParams:
    """Random links per span: ``count`` (or ``rate``)."""

    rate: float = 1.0
    random_attributes: AttributeParams | None = None
    link_to_previous_span: bool = False

    @classmethod
    def from_dict(cls, data: Any, span_index: int | None = None) -> "LinkParams | None":
        if data is None:
            return None
        d = _normalized(data, "randomLinks", span_index)
        return cls(
            rate=_rate(d.get("rate", d.get("count", 1)), "randomLinks.count", span_index),
            random_attributes=AttributeParams.from_dict(d.get("random_attributes"), span_index),
            link_to_previous_span=bool(d.get("link_to_previous_span_index")),
        )


def _status(data: Any, span_index: int | None) -> Status | None:
    if data is None:
        return None
    if isinstance(data, Mapping):
        raw = data
    else:
        raw = {"code": data}
    try:
        return Status.from_dict(raw)
    except ValueError as e:
        raise InvalidTemplateError(str(e), span_index=span_index) from None


def _semantics(value: Any, span_index: int | None) -> Semantics | None:
    try:
        return parse_semantics(value)
    except ValueError:
        raise InvalidTemplateError(
            f"unknown attribute semantics {value!r}", span_index=span_index
        ) from None


@dataclass
class SpanDefaults:
    """Template-level defaults applied to every span."""

    service: str | None = None
    attribute_semantics: Semantics | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    random_attributes: AttributeParams | None = None
    random_events: EventParams | None = None
    random_links: LinkParams | None = None
    resource: ResourceTemplate | None = None
    duration: Range | None = None
    status: Status | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "SpanDefaults":
        d = _normalized(data, "defaults")
        return cls(
            service=d.get("service") or None,
            attribute_semantics=_semantics(d.get("attribute_semantics"), None),
            attributes=_attributes(d.get("attributes"), "defaults.attributes", None),
            random_attributes=AttributeParams.from_dict(d.get("random_attributes")),
            random_events=EventParams.from_dict(d.get("random_events")),
            random_links=LinkParams.from_dict(d.get("random_links")),
            resource=ResourceTemplate.from_dict(d.get("resource")),
            duration=Range.from_dict(d.get("duration")),
            status=_status(d.get("status"), None),
        )


@dataclass
class SpanTemplate:
    """Parameters of one span; unset fields fall back to the template defaults."""

    service: str | None = None
    name: str | None = None
    parent_idx: int | None = None
    duration: Range | None = None
    attribute_semantics: Semantics | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    random_attributes: AttributeParams | None = None
    events: list[EventTemplate] = field(default_factory=list)
    links: list[LinkTemplate] = field(default_factory=list)
    random_events: EventParams | None = None
    random_links: LinkParams | None = None
    resource: ResourceTemplate | None = None
    status: Status | None = None

    @classmethod
    def from_dict(cls, data: Any, index: int) -> "SpanTemplate":
        d = _normalized(data, "span", index)
        parent_idx = d.get("parent_idx")
        if isinstance(parent_idx, bool) or not isinstance(parent_idx, (int, type(None))):
            raise InvalidTemplateError(
                f"parentIdx must be an integer, got {parent_idx!r}", span_index=index
            )
        events = d.get("events") or []
        links = d.get("links") or []
        if not isinstance(events, Sequence) or not isinstance(links, Sequence):
            raise InvalidTemplateError("events and links must be lists", span_index=index)
        name = d.get("name")
        return cls(
            service=d.get("service") or None,
            name=str(name) if name is not None else None,
            parent_idx=parent_idx,
            duration=Range.from_dict(d.get("duration"), index),
            attribute_semantics=_semantics(d.get("attribute_semantics"), index),
            attributes=_attributes(d.get("attributes"), "attributes", index),
            random_attributes=AttributeParams.from_dict(d.get("random_attributes"), index),
            events=[EventTemplate.from_dict(e, index) for e in events],
            links=[LinkTemplate.from_dict(link, index) for link in links],
            random_events=EventParams.from_dict(d.get("random_events"), index),
            random_links=LinkParams.from_dict(d.get("random_links"), index),
            resource=ResourceTemplate.from_dict(d.get("resource"), index),
            status=_status(d.get("status"), index),
        )


@dataclass
class TraceTemplate:
    """Defaults plus an ordered list of span templates."""

    defaults: SpanDefaults = field(default_factory=SpanDefaults)
    spans: list[SpanTemplate] = field(default_factory=list)
    # When set, a span without parentIdx is a child of the span right before it.
    implicit_parent: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "TraceTemplate":
        """Parse and validate a template mapping."""
        if isinstance(data, TraceTemplate):
            data.validate()
            return data
        d = _normalized(data, "template")
        raw_spans = d.get("spans")
        if not isinstance(raw_spans, Sequence) or isinstance(raw_spans, (str, bytes)):
            raise InvalidTemplateError("template must define a list of spans")
        if not raw_spans:
            raise InvalidTemplateError("template must define at least one span")
        template = cls(
            defaults=SpanDefaults.from_dict(d.get("defaults")),
            spans=[SpanTemplate.from_dict(s, i) for i, s in enumerate(raw_spans)],
            implicit_parent=bool(d.get("implicit_parent")),
        )
        template.validate()
        return template

    def parent_index(self, index: int) -> int | None:
        """Resolved parent index of span ``index``; None for roots."""
        parent_idx = self.spans[index].parent_idx
        if parent_idx is None and self.implicit_parent and index > 0:
            return index - 1
        return parent_idx

    def validate(self) -> None:
        """Every parentIdx must point at an earlier span (no forward or self reference)."""
        if not self.spans:
            raise InvalidTemplateError("template must define at least one span")
        for i, span in enumerate(self.spans):
            if span.parent_idx is not None and not 0 <= span.parent_idx < i:
                raise InvalidTemplateError(
                    f"parentIdx {span.parent_idx} must reference an earlier span",
                    span_index=i,
                )


def parse_templates(data: Any) -> list[TraceTemplate]:
    """Parse one template mapping or a list of them."""
    if isinstance(data, (Mapping, TraceTemplate)):
        return [TraceTemplate.from_dict(data)]
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
        templates = []
        for i, item in enumerate(data):
            try:
                templates.append(TraceTemplate.from_dict(item))
            except InvalidTemplateError as e:
                raise InvalidTemplateError(e.message, trace_index=i, **e.context) from e
        return templates
    raise InvalidTemplateError("template must be a mapping or a list of mappings")
