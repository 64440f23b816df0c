"""
Console exporter for debugging and development.

Prints spans to stdout (or any text stream) for quick verification.
"""

import sys
from typing import TextIO

from opentelemetry.sdk.trace.export import ConsoleSpanExporter


def create_console_exporter(out: TextIO | None = None) -> ConsoleSpanExporter:
    """
    Create a console span exporter.

    Args:
        out: Stream to write to (default: stdout)

    Returns:
        ConsoleSpanExporter writing one JSON document per span
    """
    return ConsoleSpanExporter(out=out or sys.stdout)
