"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest
from opentelemetry.sdk.trace.export import SpanExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from tracegen.cli import _format_progress_line, main, run_workload
from tracegen.client import Client
from tracegen.errors import InvalidParameterError, TransmissionError
from tracegen.generators import build_fake_trace
from tracegen.statistics import RandomSource


class RejectingExporter(InMemorySpanExporter):
    def export(self, spans):
        return SpanExportResult.FAILURE


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    """Running without a command prints usage and succeeds."""
    assert main([]) == 0
    assert "usage: tracegen" in capsys.readouterr().out


def test_list_shows_bundled_files(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["list"]) == 0
    out = capsys.readouterr().out
    assert "  - shop" in out
    assert "  - param" in out


def test_fake_to_file(tmp_path: Path) -> None:
    output = tmp_path / "fake.jsonl"
    assert main(["--exporter", "file", "--output-file", str(output), "fake"]) == 0
    spans = _lines(output)
    assert [s["name"] for s in spans] == ["fake-request", "fake-downstream-call"]


def test_template_run_to_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Each iteration of the shop template sends three traces (20 spans)."""
    output = tmp_path / "shop.jsonl"
    argv = ["--exporter", "file", "--output-file", str(output), "--seed", "7"]
    argv += ["template", "shop", "--count", "3", "--workers", "2"]
    assert main(argv) == 0
    assert len(_lines(output)) == 60
    assert "Sent 60 spans" in capsys.readouterr().out


def test_param_run_with_show_spans(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output = tmp_path / "param.jsonl"
    argv = ["--exporter", "file", "--output-file", str(output)]
    assert main(argv + ["param", "param", "--show-spans"]) == 0
    assert "[1/1] trace_id=" in capsys.readouterr().out
    assert output.is_file()


def test_validate_bundled_template(
    resource_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    shop = resource_dir / "templates" / "shop.yaml"
    assert main(["--seed", "1", "validate", "--template", str(shop)]) == 0
    out = capsys.readouterr().out
    assert "Generated 3 traces (20 spans)" in out
    assert "Validation passed" in out


def test_missing_template_fails(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["validate", "--template", "does-not-exist"]) == 1
    assert "template not found: does-not-exist" in capsys.readouterr().out


def test_empty_template_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert main(["validate", "--template", str(empty)]) == 1
    assert "is empty" in capsys.readouterr().out


def test_malformed_header_fails(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--header", "nope", "fake"]) == 1
    assert "malformed header" in capsys.readouterr().out


def test_run_workload_counts_spans(rng: RandomSource) -> None:
    exporter = InMemorySpanExporter()
    client = Client(exporter_factory=lambda config: exporter, rng=rng)
    seen: list[int] = []
    sent = run_workload(
        client,
        lambda: [build_fake_trace(rng)],
        count=5,
        workers=3,
        progress=lambda current, total, traces: seen.append(current),
    )
    assert sent == 10
    assert len(exporter.get_finished_spans()) == 10
    assert sorted(seen) == [1, 2, 3, 4, 5]


def test_run_workload_zero_count_sends_nothing(rng: RandomSource) -> None:
    client = Client(exporter_factory=lambda config: InMemorySpanExporter(), rng=rng)
    assert run_workload(client, lambda: [build_fake_trace(rng)], count=0) == 0
    assert client.state.value == "created"


def test_run_workload_stops_on_failure(rng: RandomSource) -> None:
    client = Client(exporter_factory=lambda config: RejectingExporter(), rng=rng)
    with pytest.raises(TransmissionError):
        run_workload(client, lambda: [build_fake_trace(rng)], count=4, workers=2)


@pytest.mark.parametrize("count, workers", [(-1, 1), (1, 0)])
def test_run_workload_rejects_bad_arguments(rng: RandomSource, count: int, workers: int) -> None:
    client = Client(exporter_factory=lambda config: InMemorySpanExporter(), rng=rng)
    with pytest.raises(InvalidParameterError):
        run_workload(client, lambda: [], count=count, workers=workers)


def test_format_progress_line_truncates() -> None:
    names = [f"s{i}" for i in range(14)]
    line = _format_progress_line(2, 9, "a" * 32, names)
    assert line.startswith("   [2/9] trace_id=aaaaaaaaaaaaaaaa.. spans=s0,s1,")
    assert line.endswith(",s11,..+2")
    assert _format_progress_line(1, 1, "abc", None) == "   [1/1] trace_id=abc spans="
