"""
Generate traces from explicit per-span templates.

A template lists spans in build order; ``parentIdx`` points at an earlier span.
Everything that does not change between traces is resolved once when the
generator is created (names, kinds, services, random attribute pools) so
``traces()`` only draws values:

    defaults <- span fields (span wins; attribute maps merged by key)
    -> span kind from service boundaries unless ``span.kind`` is set
    -> start: parent start + 5-10% of the parent duration, or now - 5s for roots
    -> duration: span/defaults ``duration`` range, else derived from the parent
    -> attributes, random attributes, network and semantic convention packs
    -> events and links, once every span of the trace exists

Example:
    generator = TemplatedGenerator({
        "defaults": {"attributeSemantics": "http"},
        "spans": [
            {"service": "shop-backend", "name": "list-articles"},
            {"service": "article-service", "name": "list-articles", "parentIdx": 0},
        ],
    })
    traces = generator.traces()
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from opentelemetry.trace import SpanKind, StatusCode

from ..defaults import (
    DEFAULT_ROOT_MAX_DURATION_MS,
    DEFAULT_ROOT_MIN_DURATION_MS,
    ROOT_START_OFFSET_NS,
)
from ..errors import InvalidTemplateError
from ..model import (
    EXCEPTION_EVENT_NAME,
    Event,
    Link,
    Resource,
    Span,
    Status,
    Trace,
    merge_attributes,
    parse_span_kind,
    put_if_absent,
)
from ..schemas import semantics
from ..schemas.semantics import HostInfo, Semantics
from ..schemas.template import (
    AttributeParams,
    EventParams,
    EventTemplate,
    LinkParams,
    LinkTemplate,
    Range,
    TraceTemplate,
    parse_templates,
)
from ..statistics.cardinality import EMPTY_POOL, AttributePool, CardinalityEngine
from ..statistics.randomness import RandomSource, default_source

ATTR_SPAN_KIND = "span.kind"
_MS = 1_000_000


class EmissionRule(Enum):
    """How a random event/link ``count`` (rate) becomes a number of emissions.

    PROBABILISTIC: ``floor(rate)`` emissions plus one more with probability
    ``rate - floor(rate)``; a rate below 1 is a single Bernoulli trial.
    TRUNCATE: a rate below 1 is a Bernoulli trial, otherwise ``floor(rate)``.
    """

    PROBABILISTIC = "probabilistic"
    TRUNCATE = "truncate"

    def emissions(self, rate: float, rng: RandomSource) -> int:
        if rate <= 0:
            return 0
        whole = math.floor(rate)
        fraction = rate - whole
        if whole == 0:
            return 1 if rng.bernoulli(fraction) else 0
        if self is EmissionRule.TRUNCATE or fraction == 0:
            return whole
        return whole + (1 if rng.bernoulli(fraction) else 0)


@dataclass
class _ResourcePlan:
    service: str
    host: HostInfo
    attributes: dict[str, Any] = field(default_factory=dict)
    pools: list[AttributePool] = field(default_factory=list)

    def realize(self, rng: RandomSource) -> Resource:
        attrs: dict[str, Any] = {"service.name": self.service, "tracegen": "true"}
        attrs.update(self.attributes)
        for pool in self.pools:
            attrs.update(pool.sample(rng))
        return Resource(merge_attributes(attrs))


@dataclass
class _EventPlan:
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)
    pool: AttributePool = EMPTY_POOL
    exception: bool = False


@dataclass
class _RandomEventPlan:
    rate: float
    exception_rate: float
    exception_on_error: bool
    pool: AttributePool = EMPTY_POOL


@dataclass
class _LinkPlan:
    attributes: dict[str, Any] = field(default_factory=dict)
    pool: AttributePool = EMPTY_POOL
    link_to_previous_span: bool = False
    rate: float | None = None


@dataclass
class _SpanPlan:
    index: int
    parent: int | None
    name: str
    kind: SpanKind
    resource: _ResourcePlan
    duration: Range | None
    semantics: Semantics | None
    attributes: dict[str, Any]
    pool: AttributePool
    status: Status | None
    events: list[_EventPlan]
    random_events: _RandomEventPlan | None
    links: list[_LinkPlan]


@dataclass
class _TracePlan:
    spans: list[_SpanPlan]
    pool: AttributePool


def _infer_kind(service: str, parent_service: str | None, child_service: str | None) -> SpanKind:
    """Server at a service entry, client right before a service change, internal otherwise."""
    if parent_service is None:
        if child_service is None or child_service == service:
            return SpanKind.SERVER
        return SpanKind.CLIENT
    if service != parent_service:
        return SpanKind.SERVER
    if child_service is not None and child_service != service:
        return SpanKind.CLIENT
    return SpanKind.INTERNAL


class TemplatedGenerator:
    """Create randomized but consistent traces from one or more trace templates.

    Templates are parsed and validated on construction; an invalid template
    raises InvalidTemplateError and no generator is created. ``traces()``
    returns one new trace per template on every call.
    """

    def __init__(
        self,
        templates: Any,
        rng: RandomSource | None = None,
        emission_rule: EmissionRule = EmissionRule.PROBABILISTIC,
        now_ns: Callable[[], int] = time.time_ns,
    ):
        self.rng = rng or default_source()
        self.emission_rule = EmissionRule(emission_rule)
        self.now_ns = now_ns
        self._engine = CardinalityEngine(self.rng)
        self.templates = parse_templates(templates)
        self._plans: list[_TracePlan] = []
        for i, template in enumerate(self.templates):
            try:
                self._plans.append(self._plan(template))
            except InvalidTemplateError as e:
                if len(self.templates) == 1:
                    raise
                raise InvalidTemplateError(e.message, trace_index=i, **e.context) from e

    def traces(self) -> list[Trace]:
        return [self._generate(plan) for plan in self._plans]

    # Planning ------------------------------------------------------------

    def _pool(self, params: AttributeParams | None) -> AttributePool:
        if params is None or params.count == 0:
            return EMPTY_POOL
        return self._engine.pool(params.count, params.cardinality)

    def _plan(self, template: TraceTemplate) -> _TracePlan:
        defaults = template.defaults
        parents = [template.parent_index(i) for i in range(len(template.spans))]

        services: list[str] = []
        for i, span in enumerate(template.spans):
            parent = parents[i]
            service = span.service or defaults.service
            if not service:
                service = services[parent] if parent is not None else self.rng.service()
            services.append(service)

        resources: dict[str, _ResourcePlan] = {}
        plans: list[_SpanPlan] = []
        for i, span in enumerate(template.spans):
            service = services[i]
            parent = parents[i]

            resource = resources.get(service)
            if resource is None:
                resource = resources[service] = _ResourcePlan(
                    service, HostInfo.for_service(service, self.rng)
                )
                if defaults.resource is not None:
                    resource.attributes.update(defaults.resource.attributes)
                    resource.pools.append(self._pool(defaults.resource.random_attributes))
            if span.resource is not None:
                resource.attributes.update(span.resource.attributes)
                resource.pools.append(self._pool(span.resource.random_attributes))

            attributes = merge_attributes(defaults.attributes, span.attributes)
            kind_value = attributes.get(ATTR_SPAN_KIND)
            if kind_value is not None:
                if not isinstance(kind_value, str):
                    raise InvalidTemplateError(
                        f"attribute span.kind must be a string, got {kind_value!r}", span_index=i
                    )
                kind = parse_span_kind(kind_value)
            else:
                child = next((j for j in range(i + 1, len(parents)) if parents[j] == i), None)
                kind = _infer_kind(
                    service,
                    services[parent] if parent is not None else None,
                    services[child] if child is not None else None,
                )

            random_events = span.random_events or defaults.random_events
            random_links = span.random_links or defaults.random_links
            plans.append(
                _SpanPlan(
                    index=i,
                    parent=parent,
                    name=span.name or self.rng.operation(),
                    kind=kind,
                    resource=resource,
                    duration=span.duration or defaults.duration,
                    semantics=span.attribute_semantics or defaults.attribute_semantics,
                    attributes=attributes,
                    pool=self._pool(span.random_attributes),
                    status=span.status or defaults.status,
                    events=[self._event(e) for e in span.events],
                    random_events=self._random_events(random_events),
                    links=[self._link(link) for link in span.links]
                    + self._random_links(random_links),
                )
            )
        return _TracePlan(plans, self._pool(defaults.random_attributes))

    def _event(self, template: EventTemplate) -> _EventPlan:
        pool = self._pool(template.random_attributes)
        return _EventPlan(template.name, dict(template.attributes), pool, template.exception)

    def _link(self, template: LinkTemplate) -> _LinkPlan:
        pool = self._pool(template.random_attributes)
        return _LinkPlan(dict(template.attributes), pool, template.link_to_previous_span)

    def _random_events(self, params: EventParams | None) -> _RandomEventPlan | None:
        if params is None:
            return None
        return _RandomEventPlan(
            rate=params.rate,
            exception_rate=params.exception_rate,
            exception_on_error=params.exception_on_error,
            pool=self._pool(params.random_attributes),
        )

    def _random_links(self, params: LinkParams | None) -> list[_LinkPlan]:
        if params is None:
            return []
        return [
            _LinkPlan(
                pool=self._pool(params.random_attributes),
                link_to_previous_span=params.link_to_previous_span,
                rate=params.rate,
            )
        ]

    # Generation ----------------------------------------------------------

    def _interval(
        self, plan: _SpanPlan, parent: Span | None, trace_start: int
    ) -> tuple[int, int]:
        rng = self.rng
        if parent is None:
            start = trace_start
            duration = rng.duration_ns(
                DEFAULT_ROOT_MIN_DURATION_MS * _MS, DEFAULT_ROOT_MAX_DURATION_MS * _MS
            )
        else:
            p_duration = parent.duration_ns
            start = parent.start_time_ns + rng.duration_ns(p_duration // 20, p_duration // 10)
            duration = rng.duration_ns(p_duration // 2, p_duration - p_duration // 10)
        if plan.duration is not None:
            # Template ranges include their upper bound.
            duration = rng.duration_ns(plan.duration.min_ms * _MS, plan.duration.max_ms * _MS + 1)
        return start, duration

    def _generate(self, plan: _TracePlan) -> Trace:
        rng = self.rng
        trace = Trace(rng.trace_id())
        trace_attributes = plan.pool.sample(rng)
        resources: dict[str, Resource] = {}
        # Every root starts at the trace's nominal start time.
        trace_start = self.now_ns() - ROOT_START_OFFSET_NS

        for sp in plan.spans:
            parent = trace.spans[sp.parent] if sp.parent is not None else None
            resource = resources.get(sp.resource.service)
            if resource is None:
                resource = resources[sp.resource.service] = sp.resource.realize(rng)
            start, duration = self._interval(sp, parent, trace_start)

            span = Span(
                trace_id=trace.trace_id,
                span_id=rng.span_id(),
                name=sp.name,
                service=sp.resource.service,
                parent_span_id=parent.span_id if parent else "",
                kind=sp.kind,
                start_time_ns=start,
                duration_ns=duration,
                status=replace(sp.status) if sp.status else Status(StatusCode.OK),
                attributes=merge_attributes(sp.attributes, sp.pool.sample(rng)),
                resource=resource,
            )
            semantics.apply_network(span, parent, sp.resource.host, rng)
            semantics.apply(
                sp.semantics,
                span,
                parent,
                host=sp.resource.host,
                rng=rng,
                keep_status=sp.status is not None,
                keep_parent_status=(
                    sp.parent is not None and plan.spans[sp.parent].status is not None
                ),
            )
            for k, v in trace_attributes.items():
                put_if_absent(span.attributes, k, v)
            trace.spans.append(span)

        for sp, span in zip(plan.spans, trace.spans):
            if sp.semantics == Semantics.HTTP:
                semantics.complete_http_client(span, rng)

        # Events and links see the final status and every span of the trace.
        for sp, span in zip(plan.spans, trace.spans):
            span.events.extend(self._events(sp, span))
            span.links.extend(self._links(sp, trace))
        return trace

    def _event_time(self, span: Span) -> int:
        return span.start_time_ns + self.rng.duration_ns(0, span.duration_ns)

    def _events(self, plan: _SpanPlan, span: Span) -> list[Event]:
        rng = self.rng
        events = []
        for ep in plan.events:
            attrs = ep.pool.sample(rng)
            if ep.exception:
                attrs = {**rng.exception_attributes(), **attrs}
            attrs = merge_attributes(attrs, ep.attributes)
            events.append(Event(ep.name, self._event_time(span), attrs, ep.exception))

        rp = plan.random_events
        if rp is None:
            return events
        for _ in range(self.emission_rule.emissions(rp.rate, rng)):
            events.append(Event(rng.event_name(), self._event_time(span), rp.pool.sample(rng)))

        exceptions = self.emission_rule.emissions(rp.exception_rate, rng)
        if rp.exception_on_error:
            exceptions = max(exceptions, 1) if semantics.has_error(span) else 0
        for _ in range(exceptions):
            attrs = merge_attributes(rng.exception_attributes(), rp.pool.sample(rng))
            events.append(Event(EXCEPTION_EVENT_NAME, self._event_time(span), attrs, True))
        return events

    def _links(self, plan: _SpanPlan, trace: Trace) -> list[Link]:
        rng = self.rng
        links = []
        for lp in plan.links:
            count = 1 if lp.rate is None else self.emission_rule.emissions(lp.rate, rng)
            for _ in range(count):
                attrs = merge_attributes(lp.pool.sample(rng), lp.attributes)
                if lp.link_to_previous_span:
                    target = trace.spans[max(plan.index - 1, 0)]
                    links.append(Link(trace.trace_id, target.span_id, attrs))
                elif plan.parent is not None:
                    links.append(Link(trace.trace_id, trace.spans[plan.parent].span_id, attrs))
                else:
                    links.append(Link(rng.trace_id(), rng.span_id(), attrs))
        return links
