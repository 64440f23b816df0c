"""Trace generators: parameterized, templated and hand-written spans."""

from .manual import build_fake_trace, span_from_dict, spans_from_dicts
from .parameterized import ParameterizedGenerator
from .templated import EmissionRule, TemplatedGenerator

__all__ = [
    "ParameterizedGenerator",
    "TemplatedGenerator",
    "EmissionRule",
    "build_fake_trace",
    "span_from_dict",
    "spans_from_dicts",
]
