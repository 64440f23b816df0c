"""
JSON-lines span exporter (`exporter: file`).

Each exported span becomes one JSON object on its own line with hex IDs, nanosecond
timestamps, events, links and the resource. Batches are appended under a lock, so
lines from concurrent exports never interleave.
"""

import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

logger = logging.getLogger(__name__)


def _hex_trace_id(value: int) -> str:
    return format(value, "032x")


def _hex_span_id(value: int) -> str:
    return format(value, "016x")


def span_to_dict(span: ReadableSpan) -> dict[str, Any]:
    """JSON-ready representation of a ReadableSpan."""
    return {
        "name": span.name,
        "trace_id": _hex_trace_id(span.context.trace_id),
        "span_id": _hex_span_id(span.context.span_id),
        "parent_span_id": _hex_span_id(span.parent.span_id) if span.parent else None,
        "start_time": span.start_time,
        "end_time": span.end_time,
        "status": {
            "status_code": span.status.status_code.name,
            "description": span.status.description,
        },
        "attributes": dict(span.attributes) if span.attributes else {},
        "events": [
            {
                "name": e.name,
                "timestamp": e.timestamp,
                "attributes": dict(e.attributes) if e.attributes else {},
            }
            for e in span.events
        ],
        "links": [
            {
                "trace_id": _hex_trace_id(link.context.trace_id),
                "span_id": _hex_span_id(link.context.span_id),
                "attributes": dict(link.attributes) if link.attributes else {},
            }
            for link in span.links
        ],
        "kind": span.kind.name if span.kind else "INTERNAL",
        "resource": dict(span.resource.attributes) if span.resource else {},
    }


class FileSpanExporter(SpanExporter):
    """Export spans to a JSON lines file."""

    def __init__(self, output_path: str | Path, append: bool = True):
        self.output_path = Path(output_path)
        self.append = append
        self._lock = threading.Lock()
        self._shutdown = False
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        if not append and self.output_path.exists():
            self.output_path.unlink()

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Append one line per span; FAILURE when the file cannot be written."""
        if self._shutdown:
            logger.warning("File exporter already shut down, dropping %d spans", len(spans))
            return SpanExportResult.FAILURE
        try:
            lines = [json.dumps(span_to_dict(span), default=str) for span in spans]
            with self._lock, open(self.output_path, "a", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
            return SpanExportResult.SUCCESS
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to write %d spans to %s: %s", len(spans), self.output_path, e)
            return SpanExportResult.FAILURE

    def shutdown(self) -> None:
        self._shutdown = True

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        # Every export closes the file, nothing is buffered.
        return True
