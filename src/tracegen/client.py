"""
Export client: serialize generated traces and send them to a collector.

State machine: CREATED -> CONNECTED -> SHUT_DOWN. The exporter (and with it the
network connection) is created lazily on the first send. One client owns one
exporter; every export runs under the client lock, so concurrent push/send
calls from many threads never interleave on the wire. SHUT_DOWN is terminal:
later sends raise ClientClosedError.

push/send block until the exporter reports the outcome. The client never
retries; a rejected batch raises TransmissionError for the whole call.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from .config import ClientConfig, ExporterType
from .errors import ClientClosedError, ExportConnectionError, TransmissionError
from .exporters.console_exporter import create_console_exporter
from .exporters.file_exporter import FileSpanExporter
from .exporters.jaeger_exporter import JaegerThriftExporter
from .exporters.otlp_exporter import create_otlp_trace_exporter
from .exporters.translate import to_readable_spans
from .generators.manual import build_fake_trace, spans_from_dicts
from .model import Span, Trace
from .statistics.randomness import RandomSource, default_source

logger = logging.getLogger(__name__)

ExporterFactory = Callable[[ClientConfig], SpanExporter]


class ClientState(Enum):
    CREATED = "created"
    CONNECTED = "connected"
    SHUT_DOWN = "shut_down"


def create_exporter(config: ClientConfig) -> SpanExporter:
    """Build the SpanExporter selected by ``config.exporter``."""
    tls = config.tls
    exporter = config.exporter
    if exporter in (ExporterType.OTLP, ExporterType.OTLP_HTTP):
        return create_otlp_trace_exporter(
            endpoint=config.resolved_endpoint,
            protocol="grpc" if exporter == ExporterType.OTLP else "http",
            headers=config.headers,
            insecure=config.plaintext,
            insecure_skip_verify=tls.insecure_skip_verify,
            ca_file=tls.ca_file,
            cert_file=tls.cert_file,
            key_file=tls.key_file,
            timeout=config.timeout,
        )
    if exporter == ExporterType.JAEGER:
        return JaegerThriftExporter(
            endpoint=config.resolved_endpoint,
            insecure=config.plaintext,
            headers=config.headers,
            timeout=config.timeout,
            insecure_skip_verify=tls.insecure_skip_verify,
            ca_file=tls.ca_file,
            cert_file=tls.cert_file,
            key_file=tls.key_file,
        )
    if exporter == ExporterType.FILE:
        return FileSpanExporter(config.output_file)
    return create_console_exporter()


class Client:
    """Thread-safe trace export client.

    Example:
        with Client({"endpoint": "localhost:4317", "insecure": True}) as client:
            client.push(TemplatedGenerator(template).traces())
    """

    def __init__(
        self,
        config: ClientConfig | Mapping[str, Any] | None = None,
        *,
        exporter_factory: ExporterFactory | None = None,
        rng: RandomSource | None = None,
    ):
        self.config = ClientConfig.from_dict(config)
        self.rng = rng or default_source()
        self._exporter_factory = exporter_factory or create_exporter
        self._exporter: SpanExporter | None = None
        self._state = ClientState.CREATED
        self._lock = threading.Lock()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def endpoint(self) -> str:
        return self.config.resolved_endpoint

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def _connect(self) -> SpanExporter:
        # Caller holds self._lock.
        if self._exporter is not None:
            return self._exporter
        try:
            self._exporter = self._exporter_factory(self.config)
        except ExportConnectionError:
            raise
        except OSError as e:
            raise ExportConnectionError(
                f"cannot create {self.config.exporter.value} exporter: {e}",
                endpoint=self.endpoint,
                exporter=self.config.exporter.value,
            ) from e
        self._state = ClientState.CONNECTED
        logger.debug("Connected %s exporter to %s", self.config.exporter.value, self.endpoint)
        return self._exporter

    def _export(self, spans: list[ReadableSpan]) -> int:
        with self._lock:
            if self._state is ClientState.SHUT_DOWN:
                raise ClientClosedError(
                    "client is shut down", endpoint=self.endpoint, span_count=len(spans)
                )
            if not spans:
                return 0
            exporter = self._connect()
            logger.debug("Exporting %d spans to %s", len(spans), self.endpoint)
            result = exporter.export(spans)
        if result is not SpanExportResult.SUCCESS:
            logger.warning("Export of %d spans to %s failed", len(spans), self.endpoint)
            raise TransmissionError(
                "backend rejected or did not acknowledge the batch",
                endpoint=self.endpoint,
                exporter=self.config.exporter.value,
                span_count=len(spans),
            )
        return len(spans)

    def push(self, traces: Iterable[Trace]) -> int:
        """Send all spans of ``traces`` as one batch; returns the number of spans sent."""
        return self._export(to_readable_spans(list(traces)))

    def send(self, spans: Iterable[Span | Mapping[str, Any]]) -> int:
        """Send flat spans; plain dicts are built as manual spans."""
        return self._export(to_readable_spans(spans_from_dicts(spans, self.rng)))

    def send_fake(self) -> int:
        """Send a small built-in trace (connectivity smoke test)."""
        return self.push([build_fake_trace(self.rng)])

    def shutdown(self) -> None:
        """Flush and close the exporter. Never raises; a second call does nothing."""
        with self._lock:
            if self._state is ClientState.SHUT_DOWN:
                logger.debug("Client already shut down")
                return
            exporter, self._exporter = self._exporter, None
            self._state = ClientState.SHUT_DOWN
            if exporter is None:
                return
            try:
                exporter.force_flush()
                exporter.shutdown()
            except Exception as e:
                logger.warning("Error shutting down %s exporter: %s", self.config.exporter.value, e)
        logger.info("Client for %s shut down", self.endpoint)
