"""
tracegen - Synthetic distributed-trace generator and export client.

This package builds well-formed trace trees from declarative templates or
coarse parameters and sends them to a collector over OTLP (gRPC or HTTP) or the
Jaeger Thrift protocol, for load and integration testing of tracing backends.
"""

__version__ = "1.0.0"

from .client import Client, ClientState, create_exporter  # noqa: E402
from .config import ClientConfig, ExporterType, TLSConfig, load_client_config  # noqa: E402
from .errors import (  # noqa: E402
    ClientClosedError,
    ExportConnectionError,
    InvalidParameterError,
    InvalidTemplateError,
    TracegenError,
    TransmissionError,
)
from .generators import EmissionRule, ParameterizedGenerator, TemplatedGenerator  # noqa: E402
from .model import Event, Link, Resource, Span, Status, Trace  # noqa: E402
from .statistics import CardinalityEngine, RandomSource  # noqa: E402

SEMANTICS_HTTP = "http"
SEMANTICS_DB = "db"

__all__ = [
    "__version__",
    "Client",
    "ClientState",
    "ClientConfig",
    "TLSConfig",
    "ExporterType",
    "create_exporter",
    "load_client_config",
    "ParameterizedGenerator",
    "TemplatedGenerator",
    "EmissionRule",
    "CardinalityEngine",
    "RandomSource",
    "Trace",
    "Span",
    "Event",
    "Link",
    "Resource",
    "Status",
    "TracegenError",
    "InvalidParameterError",
    "InvalidTemplateError",
    "ExportConnectionError",
    "TransmissionError",
    "ClientClosedError",
    "SEMANTICS_HTTP",
    "SEMANTICS_DB",
]
