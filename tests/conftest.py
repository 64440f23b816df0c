"""Shared fixtures for tracegen tests."""

from pathlib import Path

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from tracegen.config import ClientConfig
from tracegen.model import Event, Link, Resource, Span, Status, Trace
from tracegen.statistics import RandomSource

RESOURCE_DIR = Path(__file__).resolve().parent.parent / "resource"
NOW_NS = 1_700_000_000_000_000_000


class CountingExporter(InMemorySpanExporter):
    """In-memory exporter that records how often it was shut down."""

    def __init__(self) -> None:
        super().__init__()
        self.shutdown_calls = 0

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        super().shutdown()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep TRACEGEN_* variables of the host out of config resolution."""
    for name in (
        "TRACEGEN_ENDPOINT",
        "TRACEGEN_EXPORTER",
        "TRACEGEN_INSECURE",
        "TRACEGEN_HEADERS",
        "TRACEGEN_TIMEOUT",
        "TRACEGEN_ROOT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def resource_dir() -> Path:
    return RESOURCE_DIR


@pytest.fixture
def rng() -> RandomSource:
    return RandomSource(1234)


@pytest.fixture
def now_ns():
    return lambda: NOW_NS


@pytest.fixture
def memory_exporter() -> CountingExporter:
    return CountingExporter()


@pytest.fixture
def exporter_factory(memory_exporter: CountingExporter):
    """Factory handing out the shared in-memory exporter; counts its invocations."""
    calls: list[ClientConfig] = []

    def factory(config: ClientConfig) -> CountingExporter:
        calls.append(config)
        return memory_exporter

    factory.calls = calls  # type: ignore[attr-defined]
    return factory


@pytest.fixture
def sample_trace() -> Trace:
    """Two services, an error child with an event and a link, mixed attribute types."""
    trace_id = "0af7651916cd43dd8448eb211c80319c"
    frontend = Resource({"service.name": "frontend", "tracegen": "true"})
    backend = Resource({"service.name": "backend", "tracegen": "true", "host.name": "b1"})
    root = Span(
        trace_id=trace_id,
        span_id="b7ad6b7169203331",
        name="checkout",
        service="frontend",
        kind=SpanKind.SERVER,
        start_time_ns=NOW_NS,
        duration_ns=500_000_000,
        status=Status(StatusCode.OK),
        attributes={"http.request.method": "POST"},
        resource=frontend,
    )
    child = Span(
        trace_id=trace_id,
        span_id="f0e1d2c3b4a59687",
        name="charge",
        service="backend",
        parent_span_id=root.span_id,
        kind=SpanKind.CLIENT,
        start_time_ns=NOW_NS + 25_000_000,
        duration_ns=300_000_000,
        status=Status(StatusCode.ERROR, "boom"),
        attributes={"s": "x", "i": 3, "b": True, "f": 1.5, "l": ["a", "b"]},
        resource=backend,
    )
    child.events.append(Event("retry", NOW_NS + 50_000_000, {"attempt": 2}))
    child.links.append(Link("ffffffffffffffffffffffffffffffff", "8000000000000001", {"k": "v"}))
    return Trace(trace_id, [root, child])
