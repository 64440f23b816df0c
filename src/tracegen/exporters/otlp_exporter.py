"""
OTLP trace exporters (gRPC and HTTP/protobuf) and the OTLP request codec.

Both exporters make exactly one attempt per export call: the client reports the
outcome to its caller and never retries. Failing to reach the collector raises
ExportConnectionError; a batch the collector refuses (error status, HTTP error
response, rejected spans) is reported as FAILURE.

The gRPC exporter waits for its channel to become ready on the first export, so
an unreachable endpoint fails within ``timeout`` instead of surfacing as a
rejected batch.
"""

import logging
from collections.abc import Sequence
from pathlib import Path

import grpc
import requests
from opentelemetry.exporter.otlp.proto.common.trace_encoder import encode_spans
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest
from opentelemetry.proto.collector.trace.v1.trace_service_pb2_grpc import TraceServiceStub
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from ..errors import ExportConnectionError

logger = logging.getLogger(__name__)

TRACES_PATH = "/v1/traces"
CONTENT_TYPE = "application/x-protobuf"

# gRPC codes meaning the collector was never reached.
_CONNECTION_CODES = frozenset({grpc.StatusCode.UNAVAILABLE})


def _strip_scheme(endpoint: str) -> str:
    return endpoint.replace("http://", "").replace("https://", "")


def _read(path: str | None) -> bytes | None:
    return Path(path).read_bytes() if path else None


def grpc_credentials(
    ca_file: str | None = None,
    cert_file: str | None = None,
    key_file: str | None = None,
) -> grpc.ChannelCredentials | None:
    """TLS channel credentials from PEM files; None when no file is configured."""
    if not (ca_file or cert_file or key_file):
        return None
    return grpc.ssl_channel_credentials(
        root_certificates=_read(ca_file),
        private_key=_read(key_file),
        certificate_chain=_read(cert_file),
    )


def traces_url(endpoint: str, insecure: bool = False) -> str:
    """``host:port`` or URL -> OTLP/HTTP traces URL."""
    url = endpoint if "://" in endpoint else f"{'http' if insecure else 'https'}://{endpoint}"
    if not url.endswith(TRACES_PATH):
        url = url.rstrip("/") + TRACES_PATH
    return url


def encode_request(spans: Sequence[ReadableSpan]) -> ExportTraceServiceRequest:
    """Encode spans into the OTLP ExportTraceServiceRequest sent on the wire."""
    return encode_spans(spans)


def decode_request(data: bytes) -> ExportTraceServiceRequest:
    return ExportTraceServiceRequest.FromString(data)


class OTLPGrpcSpanExporter(SpanExporter):
    """Export spans over OTLP/gRPC, one Export call per batch."""

    def __init__(
        self,
        endpoint: str = "localhost:4317",
        insecure: bool = False,
        credentials: grpc.ChannelCredentials | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        channel: grpc.Channel | None = None,
    ):
        self.endpoint = _strip_scheme(endpoint)
        self.timeout = timeout
        # gRPC metadata keys must be lowercase.
        self.metadata = [(k.lower(), v) for k, v in (headers or {}).items()]
        if channel is None:
            if insecure:
                channel = grpc.insecure_channel(self.endpoint)
            else:
                channel = grpc.secure_channel(
                    self.endpoint, credentials or grpc.ssl_channel_credentials()
                )
        self._channel = channel
        self._stub = TraceServiceStub(channel)
        self._ready = False
        self._shutdown = False

    def _wait_ready(self) -> None:
        try:
            grpc.channel_ready_future(self._channel).result(timeout=self.timeout)
        except grpc.FutureTimeoutError:
            raise ExportConnectionError(
                f"cannot reach OTLP collector within {self.timeout}s",
                endpoint=self.endpoint,
                exporter="otlp",
            ) from None
        self._ready = True

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Send one Export request; FAILURE when the collector refuses it.

        Raises ExportConnectionError when the collector cannot be reached.
        """
        if self._shutdown:
            logger.warning("Exporter already shutdown, ignoring batch")
            return SpanExportResult.FAILURE
        if not self._ready:
            self._wait_ready()
        try:
            response = self._stub.Export(
                encode_request(spans), metadata=self.metadata, timeout=self.timeout
            )
        except grpc.RpcError as e:
            if e.code() in _CONNECTION_CODES:
                raise ExportConnectionError(
                    f"cannot reach OTLP collector: {e.details()}",
                    endpoint=self.endpoint,
                    exporter="otlp",
                ) from e
            logger.warning(
                "OTLP collector rejected batch of %d spans: %s %s",
                len(spans),
                e.code(),
                e.details(),
            )
            return SpanExportResult.FAILURE
        rejected = response.partial_success.rejected_spans
        if rejected:
            logger.warning(
                "OTLP collector rejected %d of %d spans: %s",
                rejected,
                len(spans),
                response.partial_success.error_message,
            )
            return SpanExportResult.FAILURE
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        self._channel.close()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


class OTLPHttpSpanExporter(SpanExporter):
    """Export spans over OTLP/HTTP with protobuf bodies, one POST per batch."""

    def __init__(
        self,
        endpoint: str = "localhost:4318",
        insecure: bool = False,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        insecure_skip_verify: bool = False,
        ca_file: str | None = None,
        cert_file: str | None = None,
        key_file: str | None = None,
        session: requests.Session | None = None,
    ):
        self.endpoint = endpoint
        self.url = traces_url(endpoint, insecure)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(headers or {})
        self._session.headers["Content-Type"] = CONTENT_TYPE
        if insecure_skip_verify:
            self._session.verify = False
        elif ca_file:
            self._session.verify = ca_file
        if cert_file:
            self._session.cert = (cert_file, key_file) if key_file else cert_file
        self._shutdown = False

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """POST one request; FAILURE when the collector answers with an error.

        Raises ExportConnectionError when the collector cannot be reached.
        """
        if self._shutdown:
            logger.warning("Exporter already shutdown, ignoring batch")
            return SpanExportResult.FAILURE
        data = encode_request(spans).SerializeToString()
        try:
            response = self._session.post(self.url, data=data, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ExportConnectionError(
                f"cannot reach OTLP collector: {e}",
                endpoint=self.endpoint,
                exporter="otlphttp",
            ) from e
        if not response.ok:
            logger.warning(
                "OTLP collector rejected batch of %d spans: %s %s",
                len(spans),
                response.status_code,
                response.text[:200],
            )
            return SpanExportResult.FAILURE
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        self._session.close()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


def create_otlp_trace_exporter(
    endpoint: str = "localhost:4317",
    protocol: str = "grpc",
    headers: dict[str, str] | None = None,
    insecure: bool = False,
    insecure_skip_verify: bool = False,
    ca_file: str | None = None,
    cert_file: str | None = None,
    key_file: str | None = None,
    timeout: float = 10.0,
) -> SpanExporter:
    """
    Create an OTLP trace exporter.

    Args:
        endpoint: host:port or URL of the collector
        protocol: "grpc" or "http"
        headers: Headers sent with every request (e.g. X-Scope-OrgID)
        insecure: Plaintext transport
        insecure_skip_verify: TLS without certificate verification; HTTP only,
            logged and ignored for gRPC
        ca_file, cert_file, key_file: Custom CA and client certificate (PEM)
        timeout: Per-export timeout in seconds

    Returns:
        Configured SpanExporter
    """
    if protocol == "grpc":
        if insecure_skip_verify and not insecure:
            logger.warning(
                "insecure_skip_verify is not supported by the OTLP gRPC exporter; "
                "certificates are verified"
            )
        credentials = None if insecure else grpc_credentials(ca_file, cert_file, key_file)
        return OTLPGrpcSpanExporter(
            endpoint=endpoint,
            insecure=insecure,
            credentials=credentials,
            headers=headers,
            timeout=timeout,
        )
    return OTLPHttpSpanExporter(
        endpoint=endpoint,
        insecure=insecure,
        headers=headers,
        timeout=timeout,
        insecure_skip_verify=insecure_skip_verify,
        ca_file=ca_file,
        cert_file=cert_file,
        key_file=key_file,
    )
