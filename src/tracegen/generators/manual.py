"""Hand-written spans and the built-in smoke-test trace."""

import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from opentelemetry.trace import SpanKind, StatusCode

from ..defaults import MANUAL_SPAN_DURATION_NS
from ..errors import InvalidParameterError
from ..model import Event, Resource, Span, Status, Trace, normalize_attributes
from ..statistics.randomness import RandomSource, default_source

FAKE_SERVICE = "tracegen-fake"


def span_from_dict(
    data: Mapping[str, Any],
    rng: RandomSource | None = None,
    now_ns: Callable[[], int] = time.time_ns,
    index: int | None = None,
) -> Span:
    """Build a span from ``{name, attributes, status: {code, message}, service?}``.

    The span gets random IDs, CLIENT kind, a 90 second interval ending now and
    one random event.
    """
    rng = rng or default_source()
    if not isinstance(data, Mapping):
        raise InvalidParameterError("span must be a mapping", span_index=index)
    name = data.get("name")
    if not name:
        raise InvalidParameterError("span must have a name", span_index=index)
    attributes = data.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise InvalidParameterError("span attributes must be a mapping", span_index=index)
    try:
        status = Status.from_dict(data.get("status"))
    except ValueError as e:
        raise InvalidParameterError(str(e), span_index=index) from None

    end = now_ns()
    start = end - MANUAL_SPAN_DURATION_NS
    service = str(data.get("service") or FAKE_SERVICE)
    span = Span(
        trace_id=str(data.get("trace_id") or rng.trace_id()),
        span_id=rng.span_id(),
        name=str(name),
        service=service,
        kind=SpanKind.CLIENT,
        start_time_ns=start,
        duration_ns=MANUAL_SPAN_DURATION_NS,
        status=status,
        attributes=normalize_attributes(attributes),
        resource=Resource({"service.name": service, "tracegen": "true"}),
    )
    span.events.append(
        Event(
            name=rng.event_name(),
            timestamp_ns=start,
            attributes={rng.prefixed_string(5): rng.prefixed_string(12)},
        )
    )
    return span


def spans_from_dicts(
    items: Iterable[Span | Mapping[str, Any]],
    rng: RandomSource | None = None,
    now_ns: Callable[[], int] = time.time_ns,
) -> list[Span]:
    """Pass Span objects through and build the rest with span_from_dict."""
    return [
        item if isinstance(item, Span) else span_from_dict(item, rng, now_ns, i)
        for i, item in enumerate(items)
    ]


def build_fake_trace(
    rng: RandomSource | None = None,
    now_ns: Callable[[], int] = time.time_ns,
) -> Trace:
    """Small two-span trace (SERVER root with one CLIENT child) for connectivity checks."""
    rng = rng or default_source()
    end = now_ns()
    trace_id = rng.trace_id()
    resource = Resource({"service.name": FAKE_SERVICE, "tracegen": "true"})
    root = Span(
        trace_id=trace_id,
        span_id=rng.span_id(),
        name="fake-request",
        service=FAKE_SERVICE,
        kind=SpanKind.SERVER,
        start_time_ns=end - 200_000_000,
        duration_ns=200_000_000,
        status=Status(StatusCode.OK),
        attributes={"tracegen.fake": True, "http.request.method": "GET"},
        resource=resource,
    )
    child = Span(
        trace_id=trace_id,
        span_id=rng.span_id(),
        name="fake-downstream-call",
        service=FAKE_SERVICE,
        parent_span_id=root.span_id,
        kind=SpanKind.CLIENT,
        start_time_ns=root.start_time_ns + 20_000_000,
        duration_ns=150_000_000,
        status=Status(StatusCode.OK),
        attributes={"tracegen.fake": True, "http.response.status_code": 200},
        resource=resource,
    )
    child.events.append(Event("fake-event", child.start_time_ns, {"tracegen.fake": True}))
    return Trace(trace_id, [root, child])
