"""Span exporters for the supported wire protocols, plus the shared model translation."""

from .console_exporter import create_console_exporter
from .file_exporter import FileSpanExporter
from .jaeger_exporter import JaegerThriftExporter, decode_batch, encode_batch, to_batches
from .otlp_exporter import (
    OTLPGrpcSpanExporter,
    OTLPHttpSpanExporter,
    create_otlp_trace_exporter,
    decode_request,
    encode_request,
)
from .translate import to_readable_span, to_readable_spans

__all__ = [
    "create_otlp_trace_exporter",
    "OTLPGrpcSpanExporter",
    "OTLPHttpSpanExporter",
    "encode_request",
    "decode_request",
    "JaegerThriftExporter",
    "encode_batch",
    "decode_batch",
    "to_batches",
    "FileSpanExporter",
    "create_console_exporter",
    "to_readable_span",
    "to_readable_spans",
]
