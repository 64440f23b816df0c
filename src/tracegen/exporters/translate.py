"""
Translate model spans into OpenTelemetry SDK ReadableSpans.

Every exporter consumes ReadableSpans, so this is the single place where hex IDs
become integers, attribute values are checked, and model resources, events and
links become their SDK counterparts. Spans sharing a model resource share one
SDK Resource, so OTLP batches group them under a single ResourceSpans entry.
"""

from collections.abc import Iterable

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource as SDKResource
from opentelemetry.sdk.trace import Event as SDKEvent
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.util.instrumentation import InstrumentationScope
from opentelemetry.trace import SpanContext, StatusCode, TraceFlags
from opentelemetry.trace.status import Status as SDKStatus

from .. import __version__
from ..model import Span, Trace, flatten

SCOPE_NAME = "tracegen"

_SCOPE = InstrumentationScope(SCOPE_NAME, __version__)
_SAMPLED = TraceFlags(TraceFlags.SAMPLED)


def span_context(trace_id: str, span_id: str) -> SpanContext:
    return SpanContext(
        trace_id=int(trace_id, 16),
        span_id=int(span_id, 16),
        is_remote=False,
        trace_flags=_SAMPLED,
    )


class WireStatus(SDKStatus):
    """SDK Status that keeps its message for every code.

    The SDK drops descriptions on non-ERROR statuses, but OTLP and Jaeger both
    carry a message for any code.
    """

    def __init__(self, status_code: StatusCode = StatusCode.UNSET, message: str | None = None):
        super().__init__(status_code)
        self._message = message or None

    @property
    def description(self) -> str | None:
        return self._message


def _status(span: Span) -> WireStatus:
    return WireStatus(span.status.code, span.status.message)


def to_readable_span(span: Span, resource: SDKResource | None = None) -> ReadableSpan:
    """Convert one model span; ``resource`` overrides the span's own resource."""
    if resource is None:
        resource = SDKResource(span.effective_resource().attributes)
    return ReadableSpan(
        name=span.name,
        context=span_context(span.trace_id, span.span_id),
        parent=span_context(span.trace_id, span.parent_span_id) if span.parent_span_id else None,
        resource=resource,
        attributes=dict(span.attributes),
        events=[
            SDKEvent(e.name, attributes=dict(e.attributes), timestamp=e.timestamp_ns)
            for e in span.events
        ],
        links=[
            trace.Link(span_context(link.trace_id, link.span_id), dict(link.attributes))
            for link in span.links
        ],
        kind=span.kind,
        status=_status(span),
        start_time=span.start_time_ns,
        end_time=span.end_time_ns,
        instrumentation_scope=_SCOPE,
    )


def to_readable_spans(spans: Iterable[Span | Trace]) -> list[ReadableSpan]:
    """Convert spans (or whole traces) in order, sharing SDK resources per model resource."""
    flat: list[Span] = []
    for item in spans:
        if isinstance(item, Trace):
            flat.extend(flatten([item]))
        else:
            flat.append(item)

    resources: dict[tuple[int, str], SDKResource] = {}
    readable = []
    for span in flat:
        key = (id(span.resource), span.service)
        resource = resources.get(key)
        if resource is None:
            resource = resources[key] = SDKResource(span.effective_resource().attributes)
        readable.append(to_readable_span(span, resource))
    return readable
