"""
Generate traces from coarse numeric parameters.

Each trace spec yields one trace whose spans form a single linear parent chain
(span i is the child of span i-1): a deep, narrow trace useful for load tests
where volume matters more than shape. Span attributes are padded so each span
carries roughly ``spans.size`` bytes of attribute payload.
"""

import time
from collections.abc import Callable
from typing import Any

from opentelemetry.trace import SpanKind, StatusCode

from ..defaults import ROOT_START_OFFSET_NS
from ..model import Event, Link, Resource, Span, Status, Trace, merge_attributes
from ..schemas.params import TraceParams, parse_trace_params
from ..statistics.randomness import RandomSource, default_source

PAYLOAD_KEY = "tracegen.payload"
RESOURCE_PAYLOAD_KEY = "tracegen.resource.payload"
_MIN_SPAN_DURATION_NS = 10_000_000
_MAX_SPAN_DURATION_NS = 510_000_000


def attributes_size(attributes: dict[str, Any]) -> int:
    """Approximate payload size of an attribute set: key plus stringified value lengths."""
    return sum(len(k) + len(str(v)) for k, v in attributes.items())


def pad_attributes(attributes: dict[str, Any], size: int, key: str, rng: RandomSource) -> None:
    """Add ``key`` with a random value so the attribute set reaches ``size`` bytes."""
    missing = size - attributes_size(attributes) - len(key)
    if missing > 0:
        attributes[key] = rng.string(missing)


class ParameterizedGenerator:
    """Build one linear-chain trace per parameter spec.

    Specs are validated on construction; a malformed spec raises
    InvalidParameterError and nothing is generated.
    """

    def __init__(
        self,
        specs: Any = None,
        rng: RandomSource | None = None,
        now_ns: Callable[[], int] = time.time_ns,
    ):
        self.params = parse_trace_params(specs)
        self.rng = rng or default_source()
        self.now_ns = now_ns

    def traces(self) -> list[Trace]:
        return [self._generate_trace(params) for params in self.params]

    def _service(self, params: TraceParams) -> str:
        service = params.service or self.rng.service()
        if params.random_service_name:
            service += "." + self.rng.string(5)
        return service

    def _resource(self, service: str, params: TraceParams) -> Resource:
        attrs: dict[str, Any] = {"service.name": service, "tracegen": "true"}
        if params.resource_size:
            pad_attributes(attrs, params.resource_size, RESOURCE_PAYLOAD_KEY, self.rng)
        return Resource(attrs)

    def _generate_trace(self, params: TraceParams) -> Trace:
        rng = self.rng
        trace_id = params.trace_id or rng.trace_id()
        trace = Trace(trace_id)

        fixed_service = None if params.random_service_name else self._service(params)
        resources: dict[str, Resource] = {}
        start = self.now_ns() - ROOT_START_OFFSET_NS
        previous: Span | None = None

        for _ in range(params.spans.count):
            service = fixed_service or self._service(params)
            resource = resources.get(service)
            if resource is None:
                resource = resources[service] = self._resource(service, params)

            name = params.spans.name or rng.operation()
            if params.spans.random_name:
                name += "." + rng.string(5)

            if previous is not None:
                start = previous.start_time_ns + rng.duration_ns(0, previous.duration_ns // 10)
            duration = rng.duration_ns(_MIN_SPAN_DURATION_NS, _MAX_SPAN_DURATION_NS)

            attributes = merge_attributes(params.spans.fixed_attributes)
            pad_attributes(attributes, params.spans.size, PAYLOAD_KEY, rng)

            span = Span(
                trace_id=trace_id,
                span_id=rng.span_id(),
                name=name,
                service=service,
                parent_span_id=previous.span_id if previous else "",
                kind=SpanKind.CLIENT,
                start_time_ns=start,
                duration_ns=duration,
                status=Status(StatusCode.OK, "OK"),
                attributes=attributes,
                resource=resource,
            )
            span.events.append(
                Event(
                    name=rng.event_name(),
                    timestamp_ns=start,
                    attributes={rng.prefixed_string(5): rng.prefixed_string(12)},
                )
            )
            if previous is not None:
                link = Link(trace_id, previous.span_id)
            else:
                link = Link(rng.trace_id(), rng.span_id())
            link.attributes[rng.prefixed_string(12)] = rng.prefixed_string(12)
            span.links.append(link)

            trace.spans.append(span)
            previous = span
        return trace
