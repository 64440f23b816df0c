"""
Command-line interface for tracegen.

Provides commands for:
- Running trace templates or parameter files against a collector
- Sending a small fake trace to check connectivity
- Generating once and validating the result
- Listing bundled templates and parameter files
"""

import argparse
import itertools
import logging
import sys
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from .client import Client
from .config import (
    ClientConfig,
    get_resources_root,
    load_client_config,
    load_yaml,
    parse_header_pair,
)
from .errors import InvalidParameterError, TracegenError
from .generators import EmissionRule, ParameterizedGenerator, TemplatedGenerator
from .model import Trace
from .statistics.randomness import RandomSource, default_source
from .validators import validate_traces

# Keep progress lines short so container logs don't truncate them.
_MAX_SPAN_NAMES_IN_LOG = 12
_TRACE_ID_DISPLAY_LEN = 16
_YAML_SUFFIXES = (".yaml", ".yml")


def _format_progress_line(
    current: int,
    total: int,
    trace_id: str,
    span_names: list[str] | None,
) -> str:
    """Format a single progress line; keep short so container logs don't truncate."""
    tid = (
        (trace_id[:_TRACE_ID_DISPLAY_LEN] + "..")
        if len(trace_id) > _TRACE_ID_DISPLAY_LEN
        else trace_id
    )
    names = span_names or []
    if len(names) <= _MAX_SPAN_NAMES_IN_LOG:
        spans_str = ",".join(names)
    else:
        spans_str = (
            ",".join(names[:_MAX_SPAN_NAMES_IN_LOG]) + f",..+{len(names) - _MAX_SPAN_NAMES_IN_LOG}"
        )
    return f"   [{current}/{total}] trace_id={tid} spans={spans_str}"


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help="Number of generate-and-push iterations (default: 1)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0,
        help="Pause after each iteration in ms, per worker (default: 0)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker threads sharing one client (default: 1)",
    )
    parser.add_argument(
        "--show-spans",
        action="store_true",
        help="Print each generated trace (trace_id, span names) to the terminal",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tracegen",
        description="Synthetic distributed-trace generator for OTLP and Jaeger backends",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a bundled template against a local OTLP gRPC collector
  tracegen --insecure template shop --count 100 --interval 200

  # Run a parameter file over OTLP HTTP with 4 worker threads
  tracegen --exporter otlphttp --endpoint localhost:4318 param params.yaml --workers 4

  # Check connectivity to a Jaeger collector
  tracegen --exporter jaeger --insecure fake

  # Export to a file instead of a collector
  tracegen --exporter file --output-file traces.jsonl template shop
        """,
    )

    parser.add_argument("--endpoint", type=str, default=None, help="Collector host:port or URL")
    parser.add_argument(
        "--exporter",
        type=str,
        default=None,
        help="otlp, otlphttp, jaeger, file or console (default: otlp)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        default=None,
        help="Use a plaintext connection",
    )
    parser.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Header sent with every request (repeatable)",
    )
    parser.add_argument("--config", type=str, default=None, help="Client config YAML file")
    parser.add_argument("--timeout", type=float, default=None, help="Transport timeout in seconds")
    parser.add_argument("--seed", type=str, default=None, help="Seed for reproducible traces")
    parser.add_argument(
        "--output-file",
        type=str,
        default=None,
        help="Output file for the file exporter (default: traces.jsonl)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    template_parser = subparsers.add_parser("template", help="Run trace templates")
    template_parser.add_argument("template", help="Template YAML file or bundled template name")
    template_parser.add_argument(
        "--emission-rule",
        choices=[r.value for r in EmissionRule],
        default=EmissionRule.PROBABILISTIC.value,
        help="How fractional random event/link counts are drawn (default: probabilistic)",
    )
    _add_run_options(template_parser)

    param_parser = subparsers.add_parser("param", help="Run parameterized trace specs")
    param_parser.add_argument("params", help="Parameter YAML file or bundled parameter name")
    _add_run_options(param_parser)

    subparsers.add_parser("fake", help="Send one small fake trace (connectivity check)")

    validate_parser = subparsers.add_parser("validate", help="Generate once and validate")
    group = validate_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--template", type=str, help="Template YAML file or bundled name")
    group.add_argument("--params", type=str, help="Parameter YAML file or bundled name")

    subparsers.add_parser("list", help="List bundled templates and parameter files")

    return parser


def _resolve(name: str, kind: str) -> Path:
    """A path to an existing file, or the bundled ``resource/<kind>/<name>.yaml``."""
    path = Path(name)
    if path.is_file():
        return path
    bundled = get_resources_root() / kind
    for suffix in ("", *_YAML_SUFFIXES):
        candidate = bundled / f"{name}{suffix}"
        if candidate.is_file():
            return candidate
    raise InvalidParameterError(f"{kind[:-1]} not found: {name} (looked in {bundled})")


def _bundled(kind: str) -> list[str]:
    directory = get_resources_root() / kind
    if not directory.is_dir():
        return []
    return sorted(p.stem for p in directory.iterdir() if p.suffix in _YAML_SUFFIXES)


def _load(name: str, kind: str) -> Any:
    path = _resolve(name, kind)
    data = load_yaml(path)
    if not data:
        raise InvalidParameterError(f"{path} is empty")
    return data


def _rng(args: argparse.Namespace) -> RandomSource:
    return RandomSource(args.seed) if args.seed is not None else default_source()


def _client_config(args: argparse.Namespace) -> ClientConfig:
    overrides: dict[str, Any] = {
        "endpoint": args.endpoint,
        "exporter": args.exporter,
        "insecure": args.insecure,
        "timeout": args.timeout,
        "output_file": args.output_file,
    }
    if args.header:
        overrides["headers"] = dict(parse_header_pair(h) for h in args.header)
    return load_client_config(args.config, overrides)


def _print_header(title: str, config: ClientConfig, args: argparse.Namespace) -> None:
    print(title)
    print(f"   Exporter: {config.exporter.value}")
    if config.resolved_endpoint:
        print(f"   Endpoint: {config.resolved_endpoint}")
    else:
        print(f"   Output: {config.output_file}")
    print(f"   Count: {args.count}, Workers: {args.workers}, Interval: {args.interval}ms")
    print()


def run_workload(
    client: Client,
    make_traces: Callable[[], list[Trace]],
    count: int,
    interval_ms: float = 0,
    workers: int = 1,
    progress: Callable[[int, int, list[Trace]], None] | None = None,
) -> int:
    """Run ``count`` generate-and-push iterations on ``workers`` threads.

    Returns the number of spans sent. The first failing iteration stops every
    worker and its error is raised.
    """
    if count < 0:
        raise InvalidParameterError(f"count must not be negative, got {count}")
    if workers < 1:
        raise InvalidParameterError(f"workers must be at least 1, got {workers}")

    counter = itertools.count(1)
    lock = threading.Lock()
    failed = threading.Event()
    sent = 0

    def worker() -> None:
        nonlocal sent
        while not failed.is_set():
            with lock:
                current = next(counter)
            if current > count:
                return
            try:
                traces = make_traces()
                spans = client.push(traces)
            except Exception:
                failed.set()
                raise
            with lock:
                sent += spans
                if progress is not None:
                    progress(current, count, traces)
            if interval_ms > 0:
                time.sleep(interval_ms / 1000.0)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tracegen-worker") as pool:
        futures = [pool.submit(worker) for _ in range(min(workers, max(count, 1)))]
    for future in futures:
        future.result()
    return sent


def _progress(args: argparse.Namespace) -> Callable[[int, int, list[Trace]], None]:
    def callback(current: int, total: int, traces: list[Trace]) -> None:
        if args.show_spans:
            for trace in traces:
                names = [span.name for span in trace.spans]
                print(_format_progress_line(current, total, trace.trace_id, names))
        elif current % 10 == 0 or current == total:
            print(f"   Iterations: {current}/{total}")

    return callback


def _run(args: argparse.Namespace, title: str, make_traces: Callable[[], list[Trace]]) -> int:
    config = _client_config(args)
    _print_header(title, config, args)
    with Client(config, rng=_rng(args)) as client:
        sent = run_workload(
            client,
            make_traces,
            count=args.count,
            interval_ms=args.interval,
            workers=args.workers,
            progress=_progress(args),
        )
    print()
    print(f"Sent {sent} spans")
    return 0


def cmd_template(args: argparse.Namespace) -> int:
    """Run trace templates."""
    generator = TemplatedGenerator(
        _load(args.template, "templates"),
        rng=_rng(args),
        emission_rule=EmissionRule(args.emission_rule),
    )
    return _run(args, f"Running template: {args.template}", generator.traces)


def cmd_param(args: argparse.Namespace) -> int:
    """Run parameterized trace specs."""
    generator = ParameterizedGenerator(_load(args.params, "params"), rng=_rng(args))
    return _run(args, f"Running parameters: {args.params}", generator.traces)


def cmd_fake(args: argparse.Namespace) -> int:
    """Send one fake trace."""
    config = _client_config(args)
    with Client(config, rng=_rng(args)) as client:
        sent = client.send_fake()
    print(f"Sent fake trace ({sent} spans) to {config.resolved_endpoint or config.output_file}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Generate one batch and validate it."""
    if args.template:
        traces = TemplatedGenerator(_load(args.template, "templates"), rng=_rng(args)).traces()
    else:
        traces = ParameterizedGenerator(_load(args.params, "params"), rng=_rng(args)).traces()

    result = validate_traces(traces)
    spans = sum(len(trace) for trace in traces)
    print(f"Generated {len(traces)} traces ({spans} spans)")
    print(result)
    return 0 if result.valid else 1


def cmd_list(args: argparse.Namespace) -> int:
    """List bundled templates and parameter files."""
    root = get_resources_root()
    for kind in ("templates", "params"):
        names = _bundled(kind)
        print(f"Bundled {kind}:")
        if not names:
            print(f"   none (looking in {root / kind})")
        for name in names:
            print(f"  - {name}")
        print()
    return 0


_COMMANDS: dict[str, Callable[[argparse.Namespace], int]] = {
    "template": cmd_template,
    "param": cmd_param,
    "fake": cmd_fake,
    "validate": cmd_validate,
    "list": cmd_list,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return _COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\nGeneration interrupted")
        return 0
    except (TracegenError, OSError) as e:
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
