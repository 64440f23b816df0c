"""
Export client configuration.

Sources, lowest to highest precedence:
1. Built-in defaults (defaults.py)
2. YAML file (load_client_config(path)); options may sit under a top-level ``client:`` key
3. Environment: TRACEGEN_ENDPOINT, TRACEGEN_EXPORTER, TRACEGEN_INSECURE,
   TRACEGEN_HEADERS (``k=v,k2=v2``), TRACEGEN_TIMEOUT
4. Explicit mapping (CLI flags, Client(config={...}))

Bundled templates and parameter files live under resource/ (resource/templates/,
resource/params/, resource/config/). When running from source, resource/ at the
project root is used; otherwise set TRACEGEN_ROOT to a directory containing them.
"""

import base64
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .defaults import (
    DEFAULT_EXPORTER,
    DEFAULT_OUTPUT_FILE,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_ENDPOINT,
    ENV_EXPORTER,
    ENV_HEADERS,
    ENV_INSECURE,
    ENV_ROOT,
    ENV_TIMEOUT,
    get_default_endpoint,
    parse_flag,
)
from .errors import InvalidParameterError


def get_resources_root() -> Path:
    """Return the root directory for bundled templates, params and config.

    Resolution order:
    1. TRACEGEN_ROOT env var
    2. resource/ under the directory containing pyproject.toml (running from source)
    3. tracegen/resources/ next to this package (installed)
    """
    env_root = os.environ.get(ENV_ROOT)
    if env_root:
        p = Path(env_root).resolve()
        if p.is_dir():
            return p
    here = Path(__file__).resolve().parent
    for candidate in [here, *here.parents]:
        if (candidate / "pyproject.toml").is_file():
            return candidate / "resource"
    return here / "resources"


def load_yaml(path: str | Path, default: Any = None) -> Any:
    """Load a YAML file; return default when the file is missing or empty.

    Raises InvalidParameterError when the file cannot be parsed.
    """
    if default is None:
        default = {}
    path = Path(path)
    if not path.exists():
        return default
    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidParameterError(f"cannot parse YAML file {path}: {e}") from None
    return data if isinstance(data, (dict, list)) else default


class ExporterType(str, Enum):
    """Wire protocol / sink selected by the ``exporter`` option."""

    OTLP = "otlp"
    OTLP_HTTP = "otlphttp"
    JAEGER = "jaeger"
    FILE = "file"
    CONSOLE = "console"

    @classmethod
    def parse(cls, value: Any) -> "ExporterType":
        if isinstance(value, ExporterType):
            return value
        name = str(value or DEFAULT_EXPORTER).strip().lower().replace("-", "").replace("_", "")
        aliases = {"otlpgrpc": "otlp", "grpc": "otlp", "http": "otlphttp"}
        try:
            return cls(aliases.get(name, name))
        except ValueError:
            choices = ", ".join(e.value for e in cls)
            raise InvalidParameterError(
                f"unknown exporter {value!r} (expected one of: {choices})"
            ) from None


def parse_header_pair(pair: str) -> tuple[str, str]:
    """``key=value`` -> (key, value)."""
    key, sep, value = pair.partition("=")
    if not sep or not key.strip():
        raise InvalidParameterError(f"malformed header {pair!r}, expected key=value")
    return key.strip(), value.strip()


def parse_headers(raw: str | Mapping[str, Any] | None) -> dict[str, str]:
    """Headers from a mapping or a ``k=v,k2=v2`` string."""
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return {str(k): str(v) for k, v in raw.items()}
    if not isinstance(raw, str):
        raise InvalidParameterError(f"headers must be a mapping or k=v list, got {raw!r}")
    return dict(parse_header_pair(p) for p in raw.split(",") if p.strip())


def basic_auth_header(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


@dataclass
class TLSConfig:
    insecure: bool = False
    insecure_skip_verify: bool = False
    ca_file: str | None = None
    cert_file: str | None = None
    key_file: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TLSConfig":
        data = data or {}
        return cls(
            insecure=bool(data.get("insecure", False)),
            insecure_skip_verify=bool(data.get("insecure_skip_verify", False)),
            ca_file=data.get("ca_file") or None,
            cert_file=data.get("cert_file") or None,
            key_file=data.get("key_file") or None,
        )


@dataclass
class ClientConfig:
    """Options recognized by the export client."""

    endpoint: str = ""
    exporter: ExporterType = ExporterType.OTLP
    insecure: bool = False
    tls: TLSConfig = field(default_factory=TLSConfig)
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    output_file: str = DEFAULT_OUTPUT_FILE

    @property
    def plaintext(self) -> bool:
        return self.insecure or self.tls.insecure

    @property
    def resolved_endpoint(self) -> str:
        return self.endpoint or get_default_endpoint(self.exporter.value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ClientConfig":
        """Build from a plain mapping; ``authentication`` becomes an Authorization header."""
        if isinstance(data, ClientConfig):
            return data
        data = dict(data or {})
        headers = parse_headers(data.get("headers"))
        auth = data.get("authentication") or {}
        if auth.get("user"):
            user, password = str(auth["user"]), str(auth.get("password", ""))
            headers.setdefault("Authorization", basic_auth_header(user, password))
        timeout = data.get("timeout", DEFAULT_TIMEOUT_SECONDS)
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            raise InvalidParameterError(f"timeout must be a number, got {timeout!r}") from None
        if timeout <= 0:
            raise InvalidParameterError(f"timeout must be positive, got {timeout}")
        return cls(
            endpoint=str(data.get("endpoint") or ""),
            exporter=ExporterType.parse(data.get("exporter")),
            insecure=bool(data.get("insecure", False)),
            tls=TLSConfig.from_dict(data.get("tls")),
            headers=headers,
            timeout=timeout,
            output_file=str(data.get("output_file") or DEFAULT_OUTPUT_FILE),
        )


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Client options set through TRACEGEN_* environment variables."""
    environ = os.environ if environ is None else environ
    out: dict[str, Any] = {}
    if environ.get(ENV_ENDPOINT, "").strip():
        out["endpoint"] = environ[ENV_ENDPOINT].strip()
    if environ.get(ENV_EXPORTER, "").strip():
        out["exporter"] = environ[ENV_EXPORTER].strip()
    insecure = parse_flag(environ.get(ENV_INSECURE))
    if insecure is not None:
        out["insecure"] = insecure
    if environ.get(ENV_HEADERS, "").strip():
        out["headers"] = parse_headers(environ[ENV_HEADERS])
    if environ.get(ENV_TIMEOUT, "").strip():
        out["timeout"] = environ[ENV_TIMEOUT].strip()
    return out


def load_client_config(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Resolve the client configuration from defaults, file, environment and overrides."""
    layer: dict[str, Any] = {}
    if path is not None:
        if not Path(path).exists():
            raise InvalidParameterError(f"config file not found: {path}")
        data = load_yaml(path)
        if not isinstance(data, dict):
            raise InvalidParameterError(f"config file {path} must contain a mapping")
        layer = _deep_merge(layer, data.get("client", data))
    layer = _deep_merge(layer, env_overrides(environ))
    layer = _deep_merge(layer, overrides or {})
    return ClientConfig.from_dict(layer)
