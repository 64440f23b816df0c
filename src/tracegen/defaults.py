"""
Built-in defaults for generators and the export client.

Endpoints follow the collector defaults of each protocol; TRACEGEN_* environment
variables override the client options (see config.py).
"""

# Parameterized generator
DEFAULT_SPAN_COUNT = 10
DEFAULT_SPAN_SIZE = 1000

# Templated generator (milliseconds)
DEFAULT_ROOT_MIN_DURATION_MS = 500
DEFAULT_ROOT_MAX_DURATION_MS = 800
# Root spans start this far in the past so children fit before "now".
ROOT_START_OFFSET_NS = 5_000_000_000

# Manual spans cover this interval ending at "now".
MANUAL_SPAN_DURATION_NS = 90_000_000_000

# Export client
DEFAULT_EXPORTER = "otlp"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_ENDPOINTS = {
    "otlp": "0.0.0.0:4317",
    "otlphttp": "localhost:4318",
    "jaeger": "localhost:14268",
}
DEFAULT_OUTPUT_FILE = "traces.jsonl"

ENV_ENDPOINT = "TRACEGEN_ENDPOINT"
ENV_EXPORTER = "TRACEGEN_EXPORTER"
ENV_INSECURE = "TRACEGEN_INSECURE"
ENV_HEADERS = "TRACEGEN_HEADERS"
ENV_TIMEOUT = "TRACEGEN_TIMEOUT"
ENV_ROOT = "TRACEGEN_ROOT"


def get_default_endpoint(exporter: str) -> str:
    """Collector endpoint for an exporter type; empty for local exporters."""
    return DEFAULT_ENDPOINTS.get(exporter, "")


def parse_flag(raw: str | None) -> bool | None:
    """Parse a boolean setting (1/true/yes/on); None when unset or empty."""
    raw = (raw or "").strip().lower()
    if not raw:
        return None
    return raw in ("1", "true", "yes", "on")
