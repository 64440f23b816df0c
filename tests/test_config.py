"""Tests for client configuration resolution."""

import base64
from pathlib import Path

import pytest

from tracegen.config import (
    ClientConfig,
    ExporterType,
    get_resources_root,
    load_client_config,
    load_yaml,
    parse_headers,
)
from tracegen.errors import InvalidParameterError


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "client.yaml"
    path.write_text(
        "client:\n"
        "  endpoint: from-file:4317\n"
        "  exporter: otlphttp\n"
        "  timeout: 3\n"
        "  headers:\n"
        "    X-Scope-OrgID: file-tenant\n",
        encoding="utf-8",
    )
    return path


def test_defaults() -> None:
    config = ClientConfig.from_dict(None)
    assert config.exporter is ExporterType.OTLP
    assert config.resolved_endpoint == "0.0.0.0:4317"
    assert config.timeout == 10.0
    assert config.headers == {}
    assert not config.plaintext


def test_default_endpoint_per_exporter() -> None:
    assert ClientConfig.from_dict({"exporter": "otlphttp"}).resolved_endpoint == "localhost:4318"
    assert ClientConfig.from_dict({"exporter": "jaeger"}).resolved_endpoint == "localhost:14268"
    assert ClientConfig.from_dict({"exporter": "file"}).resolved_endpoint == ""


def test_precedence_file_env_overrides(config_file: Path) -> None:
    env = {"TRACEGEN_ENDPOINT": "from-env:4317", "TRACEGEN_HEADERS": "X-Env=1"}

    from_file = load_client_config(config_file, environ={})
    assert from_file.endpoint == "from-file:4317"
    assert from_file.exporter is ExporterType.OTLP_HTTP
    assert from_file.timeout == 3.0

    from_env = load_client_config(config_file, environ=env)
    assert from_env.endpoint == "from-env:4317"
    assert from_env.headers == {"X-Scope-OrgID": "file-tenant", "X-Env": "1"}

    explicit = load_client_config(
        config_file, overrides={"endpoint": "explicit:4317", "exporter": None}, environ=env
    )
    assert explicit.endpoint == "explicit:4317"
    assert explicit.exporter is ExporterType.OTLP_HTTP


def test_environment_flags() -> None:
    env = {"TRACEGEN_INSECURE": "true", "TRACEGEN_TIMEOUT": "5", "TRACEGEN_EXPORTER": "jaeger"}
    config = load_client_config(environ=env)
    assert config.insecure
    assert config.timeout == 5.0
    assert config.exporter is ExporterType.JAEGER
    assert not load_client_config(environ={"TRACEGEN_INSECURE": "0"}).insecure


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(InvalidParameterError):
        load_client_config(tmp_path / "nope.yaml", environ={})


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("client: [unclosed\n", encoding="utf-8")
    with pytest.raises(InvalidParameterError):
        load_yaml(path)
    assert load_yaml(tmp_path / "missing.yaml") == {}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("a=1, b=2", {"a": "1", "b": "2"}),
        ("token=abc=", {"token": "abc="}),
        ({"X-Num": 7}, {"X-Num": "7"}),
        ("", {}),
        (None, {}),
    ],
)
def test_parse_headers(raw, expected) -> None:
    assert parse_headers(raw) == expected


@pytest.mark.parametrize("raw", ["novalue", "=x", ["a=1"]])
def test_parse_headers_rejects_malformed(raw) -> None:
    with pytest.raises(InvalidParameterError):
        parse_headers(raw)


def test_authentication_becomes_basic_header() -> None:
    config = ClientConfig.from_dict({"authentication": {"user": "tenant", "password": "secret"}})
    expected = "Basic " + base64.b64encode(b"tenant:secret").decode("ascii")
    assert config.headers["Authorization"] == expected

    explicit = ClientConfig.from_dict(
        {"headers": {"Authorization": "Bearer t"}, "authentication": {"user": "u"}}
    )
    assert explicit.headers["Authorization"] == "Bearer t"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("otlp", ExporterType.OTLP),
        ("grpc", ExporterType.OTLP),
        ("OTLP-HTTP", ExporterType.OTLP_HTTP),
        ("http", ExporterType.OTLP_HTTP),
        ("jaeger", ExporterType.JAEGER),
        (None, ExporterType.OTLP),
    ],
)
def test_exporter_names(name, expected) -> None:
    assert ExporterType.parse(name) is expected


def test_unknown_exporter_raises() -> None:
    with pytest.raises(InvalidParameterError, match="zipkin"):
        ClientConfig.from_dict({"exporter": "zipkin"})


@pytest.mark.parametrize("timeout", [0, -1, "soon"])
def test_invalid_timeout_raises(timeout) -> None:
    with pytest.raises(InvalidParameterError):
        ClientConfig.from_dict({"timeout": timeout})


def test_tls_options() -> None:
    config = ClientConfig.from_dict(
        {"tls": {"insecure": True, "insecure_skip_verify": True, "ca_file": "/ca.pem"}}
    )
    assert config.plaintext
    assert config.tls.insecure_skip_verify
    assert config.tls.ca_file == "/ca.pem"
    assert config.tls.cert_file is None


def test_resources_root(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TRACEGEN_ROOT", str(tmp_path))
    assert get_resources_root() == tmp_path.resolve()
    monkeypatch.delenv("TRACEGEN_ROOT")
    assert (get_resources_root() / "templates" / "shop.yaml").is_file()
