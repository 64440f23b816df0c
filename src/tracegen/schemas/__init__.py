"""Trace template and parameter parsers, and semantic convention packs."""

from .params import SpanParams, TraceParams, parse_trace_params
from .semantics import HostInfo, Semantics, apply, parse_semantics
from .template import (
    AttributeParams,
    EventParams,
    LinkParams,
    SpanDefaults,
    SpanTemplate,
    TraceTemplate,
    parse_templates,
)

__all__ = [
    "TraceTemplate",
    "SpanTemplate",
    "SpanDefaults",
    "AttributeParams",
    "EventParams",
    "LinkParams",
    "parse_templates",
    "TraceParams",
    "SpanParams",
    "parse_trace_params",
    "Semantics",
    "HostInfo",
    "apply",
    "parse_semantics",
]
