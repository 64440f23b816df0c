"""Validators for generated traces."""

from .trace_validator import (
    ValidationError,
    ValidationResult,
    ValidationSeverity,
    validate_trace,
    validate_traces,
)

__all__ = [
    "ValidationError",
    "ValidationResult",
    "ValidationSeverity",
    "validate_trace",
    "validate_traces",
]
