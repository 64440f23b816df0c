"""Tests for the JSON lines file exporter."""

import json
from pathlib import Path

from opentelemetry.sdk.trace.export import SpanExportResult

from tracegen.exporters import FileSpanExporter, to_readable_spans
from tracegen.model import Trace


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_writes_one_line_per_span(tmp_path: Path, sample_trace: Trace) -> None:
    path = tmp_path / "out" / "traces.jsonl"
    exporter = FileSpanExporter(path)
    assert exporter.export(to_readable_spans([sample_trace])) == SpanExportResult.SUCCESS

    root, child = _lines(path)
    assert root["trace_id"] == sample_trace.trace_id
    assert root["parent_span_id"] is None
    assert root["kind"] == "SERVER"
    assert root["resource"]["service.name"] == "frontend"
    assert child["parent_span_id"] == root["span_id"]
    assert child["status"] == {"status_code": "ERROR", "description": "boom"}
    assert child["attributes"]["l"] == ["a", "b"]
    assert child["events"][0]["name"] == "retry"
    assert child["links"][0]["trace_id"] == "f" * 32


def test_appends_by_default(tmp_path: Path, sample_trace: Trace) -> None:
    path = tmp_path / "traces.jsonl"
    spans = to_readable_spans([sample_trace])
    FileSpanExporter(path).export(spans)
    FileSpanExporter(path).export(spans)
    assert len(_lines(path)) == 4

    FileSpanExporter(path, append=False).export(spans)
    assert len(_lines(path)) == 2


def test_unwritable_path_reports_failure(tmp_path: Path, sample_trace: Trace) -> None:
    exporter = FileSpanExporter(tmp_path / "traces.jsonl")
    exporter.output_path = tmp_path
    assert exporter.export(to_readable_spans([sample_trace])) == SpanExportResult.FAILURE


def test_export_after_shutdown_fails(tmp_path: Path, sample_trace: Trace) -> None:
    output = tmp_path / "spans.jsonl"
    exporter = FileSpanExporter(output)
    exporter.shutdown()
    assert exporter.export(to_readable_spans([sample_trace])) is SpanExportResult.FAILURE
    assert not output.exists()
