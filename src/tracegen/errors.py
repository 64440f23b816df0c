"""
Error taxonomy for trace generation and export.

Generation errors fail the whole generation call; export errors fail the whole
push/send call. Every error carries enough context (trace/span index, endpoint)
for the caller to log and correlate.
"""

from typing import Any


class TracegenError(Exception):
    """Base class for all tracegen errors."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            message = f"{message} ({details})"
        super().__init__(message)

    def __getattr__(self, name: str) -> Any:
        # Context keys read as attributes (err.span_index, err.endpoint, ...).
        context = self.__dict__.get("context", {})
        if name in context:
            return context[name]
        raise AttributeError(name)


class InvalidParameterError(TracegenError, ValueError):
    """Malformed generator input or configuration (negative sizes/counts, bad options)."""


class InvalidTemplateError(TracegenError, ValueError):
    """Trace template cannot be realized (bad parent index, unknown semantics key)."""


class ExportConnectionError(TracegenError, ConnectionError):
    """Transport-level failure to reach or authenticate with the endpoint."""


class TransmissionError(TracegenError):
    """The backend rejected or failed to acknowledge a batch."""


class ClientClosedError(TracegenError):
    """Operation attempted on a client after shutdown()."""
