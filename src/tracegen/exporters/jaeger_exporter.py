"""
Jaeger exporter: Thrift ``Batch`` encoding posted to the collector's HTTP endpoint.

The collector accepts ``jaeger.thrift`` batches (one process plus its spans) on
``/api/traces`` with content type ``application/vnd.apache.thrift.binary``.
Spans are grouped into one batch per resource.

Mapping:
- 128-bit trace IDs split into signed 64-bit high/low halves; span IDs signed
- attributes become typed tags; arrays are JSON-encoded strings
- status: ``otel.status_code``, ``otel.status_description`` (whenever a message
  is set) and ``error=true`` for ERROR
- events become logs whose ``event`` field holds the event name; exception
  events also carry ``exception=true``
- links become FOLLOWS_FROM references. Jaeger references have no attributes, so
  link attributes are dropped (logged at debug level)
"""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import requests
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from opentelemetry.trace import SpanKind, StatusCode
from thrift.protocol.TBinaryProtocol import TBinaryProtocol
from thrift.Thrift import TType
from thrift.transport.TTransport import TMemoryBuffer

from ..errors import ExportConnectionError
from ..model import EXCEPTION_EVENT_NAME

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/vnd.apache.thrift.binary"
API_PATH = "/api/traces"

# jaeger.thrift TagType
TAG_STRING = 0
TAG_DOUBLE = 1
TAG_BOOL = 2
TAG_LONG = 3
TAG_BINARY = 4

# jaeger.thrift SpanRefType
REF_CHILD_OF = 0
REF_FOLLOWS_FROM = 1

_MASK_64 = (1 << 64) - 1


def to_signed64(value: int) -> int:
    value &= _MASK_64
    return value - (1 << 64) if value >= 1 << 63 else value


def to_unsigned64(value: int) -> int:
    return value & _MASK_64


def split_trace_id(trace_id: int) -> tuple[int, int]:
    """Return (high, low) signed halves of a 128-bit trace ID."""
    return to_signed64(trace_id >> 64), to_signed64(trace_id)


def join_trace_id(high: int, low: int) -> int:
    return (to_unsigned64(high) << 64) | to_unsigned64(low)


# Decoded model ------------------------------------------------------------


@dataclass
class Tag:
    key: str
    v_type: int = TAG_STRING
    v_str: str | None = None
    v_double: float | None = None
    v_bool: bool | None = None
    v_long: int | None = None
    v_binary: bytes | None = None

    @property
    def value(self) -> Any:
        return {
            TAG_STRING: self.v_str,
            TAG_DOUBLE: self.v_double,
            TAG_BOOL: self.v_bool,
            TAG_LONG: self.v_long,
            TAG_BINARY: self.v_binary,
        }[self.v_type]


@dataclass
class Log:
    timestamp: int
    fields: list[Tag] = field(default_factory=list)


@dataclass
class SpanRef:
    ref_type: int
    trace_id_low: int
    trace_id_high: int
    span_id: int


@dataclass
class JaegerSpan:
    trace_id_low: int
    trace_id_high: int
    span_id: int
    parent_span_id: int
    operation_name: str
    references: list[SpanRef] = field(default_factory=list)
    flags: int = 0
    start_time: int = 0
    duration: int = 0
    tags: list[Tag] = field(default_factory=list)
    logs: list[Log] = field(default_factory=list)

    @property
    def trace_id(self) -> int:
        return join_trace_id(self.trace_id_high, self.trace_id_low)

    def tag_map(self) -> dict[str, Any]:
        return {t.key: t.value for t in self.tags}


@dataclass
class Process:
    service_name: str
    tags: list[Tag] = field(default_factory=list)


@dataclass
class Batch:
    process: Process
    spans: list[JaegerSpan] = field(default_factory=list)


# Encoding -----------------------------------------------------------------


def make_tag(key: str, value: Any) -> Tag:
    """Typed tag for an attribute value; sequences become JSON strings."""
    if isinstance(value, bool):
        return Tag(key, TAG_BOOL, v_bool=value)
    if isinstance(value, int):
        return Tag(key, TAG_LONG, v_long=value)
    if isinstance(value, float):
        return Tag(key, TAG_DOUBLE, v_double=value)
    if isinstance(value, (bytes, bytearray)):
        return Tag(key, TAG_BINARY, v_binary=bytes(value))
    if isinstance(value, str):
        return Tag(key, TAG_STRING, v_str=value)
    return Tag(key, TAG_STRING, v_str=json.dumps(list(value), default=str))


def _tags(attributes: Any) -> list[Tag]:
    return [make_tag(k, v) for k, v in (attributes or {}).items()]


def _span_tags(span: ReadableSpan) -> list[Tag]:
    tags = _tags(span.attributes)
    if span.kind != SpanKind.INTERNAL:
        tags.append(make_tag("span.kind", span.kind.name.lower()))
    code = span.status.status_code
    if code != StatusCode.UNSET:
        tags.append(make_tag("otel.status_code", code.name))
    if span.status.description:
        tags.append(make_tag("otel.status_description", span.status.description))
    if code == StatusCode.ERROR:
        tags.append(make_tag("error", True))
    scope = span.instrumentation_scope
    if scope is not None:
        tags.append(make_tag("otel.scope.name", scope.name))
        if scope.version:
            tags.append(make_tag("otel.scope.version", scope.version))
    return tags


def _follows_from(context: Any) -> SpanRef:
    high, low = split_trace_id(context.trace_id)
    return SpanRef(REF_FOLLOWS_FROM, low, high, to_signed64(context.span_id))


def _log(event: Any) -> Log:
    fields = [make_tag("event", event.name), *_tags(event.attributes)]
    if event.name == EXCEPTION_EVENT_NAME:
        fields.append(make_tag("exception", True))
    return Log(event.timestamp // 1000, fields)


def to_jaeger_span(span: ReadableSpan) -> JaegerSpan:
    high, low = split_trace_id(span.context.trace_id)
    start = span.start_time or 0
    end = span.end_time or start
    dropped = sum(1 for link in span.links if link.attributes)
    if dropped:
        logger.debug("Dropping attributes of %d links on span %r", dropped, span.name)
    return JaegerSpan(
        trace_id_low=low,
        trace_id_high=high,
        span_id=to_signed64(span.context.span_id),
        parent_span_id=to_signed64(span.parent.span_id) if span.parent else 0,
        operation_name=span.name,
        references=[_follows_from(link.context) for link in span.links],
        flags=int(span.context.trace_flags),
        start_time=start // 1000,
        duration=(end - start) // 1000,
        tags=_span_tags(span),
        logs=[_log(event) for event in span.events],
    )


def to_batches(spans: Sequence[ReadableSpan]) -> list[Batch]:
    """Group spans into one batch per resource, in first-seen order."""
    batches: dict[int, Batch] = {}
    for span in spans:
        batch = batches.get(id(span.resource))
        if batch is None:
            attrs = dict(span.resource.attributes) if span.resource else {}
            service = str(attrs.pop("service.name", "unknown_service"))
            batch = batches[id(span.resource)] = Batch(Process(service, _tags(attrs)))
        batch.spans.append(to_jaeger_span(span))
    return list(batches.values())


def _write_tag(proto: TBinaryProtocol, tag: Tag) -> None:
    proto.writeStructBegin("Tag")
    proto.writeFieldBegin("key", TType.STRING, 1)
    proto.writeString(tag.key)
    proto.writeFieldEnd()
    proto.writeFieldBegin("vType", TType.I32, 2)
    proto.writeI32(tag.v_type)
    proto.writeFieldEnd()
    if tag.v_str is not None:
        proto.writeFieldBegin("vStr", TType.STRING, 3)
        proto.writeString(tag.v_str)
        proto.writeFieldEnd()
    if tag.v_double is not None:
        proto.writeFieldBegin("vDouble", TType.DOUBLE, 4)
        proto.writeDouble(tag.v_double)
        proto.writeFieldEnd()
    if tag.v_bool is not None:
        proto.writeFieldBegin("vBool", TType.BOOL, 5)
        proto.writeBool(tag.v_bool)
        proto.writeFieldEnd()
    if tag.v_long is not None:
        proto.writeFieldBegin("vLong", TType.I64, 6)
        proto.writeI64(tag.v_long)
        proto.writeFieldEnd()
    if tag.v_binary is not None:
        proto.writeFieldBegin("vBinary", TType.STRING, 7)
        proto.writeBinary(tag.v_binary)
        proto.writeFieldEnd()
    proto.writeFieldStop()
    proto.writeStructEnd()


def _write_list(proto: TBinaryProtocol, name: str, fid: int, items: list, write) -> None:
    proto.writeFieldBegin(name, TType.LIST, fid)
    proto.writeListBegin(TType.STRUCT, len(items))
    for item in items:
        write(proto, item)
    proto.writeListEnd()
    proto.writeFieldEnd()


def _write_i64(proto: TBinaryProtocol, name: str, fid: int, value: int) -> None:
    proto.writeFieldBegin(name, TType.I64, fid)
    proto.writeI64(value)
    proto.writeFieldEnd()


def _write_log(proto: TBinaryProtocol, log: Log) -> None:
    proto.writeStructBegin("Log")
    _write_i64(proto, "timestamp", 1, log.timestamp)
    _write_list(proto, "fields", 2, log.fields, _write_tag)
    proto.writeFieldStop()
    proto.writeStructEnd()


def _write_ref(proto: TBinaryProtocol, ref: SpanRef) -> None:
    proto.writeStructBegin("SpanRef")
    proto.writeFieldBegin("refType", TType.I32, 1)
    proto.writeI32(ref.ref_type)
    proto.writeFieldEnd()
    _write_i64(proto, "traceIdLow", 2, ref.trace_id_low)
    _write_i64(proto, "traceIdHigh", 3, ref.trace_id_high)
    _write_i64(proto, "spanId", 4, ref.span_id)
    proto.writeFieldStop()
    proto.writeStructEnd()


def _write_span(proto: TBinaryProtocol, span: JaegerSpan) -> None:
    proto.writeStructBegin("Span")
    _write_i64(proto, "traceIdLow", 1, span.trace_id_low)
    _write_i64(proto, "traceIdHigh", 2, span.trace_id_high)
    _write_i64(proto, "spanId", 3, span.span_id)
    _write_i64(proto, "parentSpanId", 4, span.parent_span_id)
    proto.writeFieldBegin("operationName", TType.STRING, 5)
    proto.writeString(span.operation_name)
    proto.writeFieldEnd()
    if span.references:
        _write_list(proto, "references", 6, span.references, _write_ref)
    proto.writeFieldBegin("flags", TType.I32, 7)
    proto.writeI32(span.flags)
    proto.writeFieldEnd()
    _write_i64(proto, "startTime", 8, span.start_time)
    _write_i64(proto, "duration", 9, span.duration)
    if span.tags:
        _write_list(proto, "tags", 10, span.tags, _write_tag)
    if span.logs:
        _write_list(proto, "logs", 11, span.logs, _write_log)
    proto.writeFieldStop()
    proto.writeStructEnd()


def _write_process(proto: TBinaryProtocol, process: Process) -> None:
    proto.writeStructBegin("Process")
    proto.writeFieldBegin("serviceName", TType.STRING, 1)
    proto.writeString(process.service_name)
    proto.writeFieldEnd()
    if process.tags:
        _write_list(proto, "tags", 2, process.tags, _write_tag)
    proto.writeFieldStop()
    proto.writeStructEnd()


def encode_batch(batch: Batch) -> bytes:
    """Serialize a batch with the Thrift binary protocol."""
    buffer = TMemoryBuffer()
    proto = TBinaryProtocol(buffer)
    proto.writeStructBegin("Batch")
    proto.writeFieldBegin("process", TType.STRUCT, 1)
    _write_process(proto, batch.process)
    proto.writeFieldEnd()
    _write_list(proto, "spans", 2, batch.spans, _write_span)
    proto.writeFieldStop()
    proto.writeStructEnd()
    return buffer.getvalue()


# Decoding -----------------------------------------------------------------


def _read_value(proto: TBinaryProtocol, ttype: int) -> Any:
    if ttype == TType.STRUCT:
        return _read_struct(proto)
    if ttype == TType.LIST:
        etype, size = proto.readListBegin()
        items = [_read_value(proto, etype) for _ in range(size)]
        proto.readListEnd()
        return items
    if ttype == TType.STRING:
        return proto.readBinary()
    if ttype == TType.I64:
        return proto.readI64()
    if ttype == TType.I32:
        return proto.readI32()
    if ttype == TType.DOUBLE:
        return proto.readDouble()
    if ttype == TType.BOOL:
        return proto.readBool()
    proto.skip(ttype)
    return None


def _read_struct(proto: TBinaryProtocol) -> dict[int, Any]:
    fields: dict[int, Any] = {}
    proto.readStructBegin()
    while True:
        _, ttype, fid = proto.readFieldBegin()
        if ttype == TType.STOP:
            break
        fields[fid] = _read_value(proto, ttype)
        proto.readFieldEnd()
    proto.readStructEnd()
    return fields


def _text(value: bytes | None) -> str | None:
    return value.decode("utf-8") if value is not None else None


def _tag(f: dict[int, Any]) -> Tag:
    return Tag(
        key=_text(f[1]) or "",
        v_type=f.get(2, TAG_STRING),
        v_str=_text(f.get(3)),
        v_double=f.get(4),
        v_bool=f.get(5),
        v_long=f.get(6),
        v_binary=f.get(7),
    )


def _span(f: dict[int, Any]) -> JaegerSpan:
    return JaegerSpan(
        trace_id_low=f[1],
        trace_id_high=f[2],
        span_id=f[3],
        parent_span_id=f.get(4, 0),
        operation_name=_text(f.get(5)) or "",
        references=[SpanRef(r[1], r[2], r[3], r[4]) for r in f.get(6, [])],
        flags=f.get(7, 0),
        start_time=f.get(8, 0),
        duration=f.get(9, 0),
        tags=[_tag(t) for t in f.get(10, [])],
        logs=[Log(log[1], [_tag(t) for t in log.get(2, [])]) for log in f.get(11, [])],
    )


def decode_batch(data: bytes) -> Batch:
    """Parse a Thrift binary ``Batch``; the inverse of encode_batch."""
    proto = TBinaryProtocol(TMemoryBuffer(data))
    f = _read_struct(proto)
    process = f.get(1, {})
    return Batch(
        process=Process(_text(process.get(1)) or "", [_tag(t) for t in process.get(2, [])]),
        spans=[_span(s) for s in f.get(2, [])],
    )


# Exporter -----------------------------------------------------------------


def collector_url(endpoint: str, insecure: bool = False) -> str:
    """``host:port`` or URL -> collector traces URL."""
    url = endpoint if "://" in endpoint else f"{'http' if insecure else 'https'}://{endpoint}"
    if not url.rstrip("/").endswith(API_PATH):
        url = url.rstrip("/") + API_PATH
    return url


class JaegerThriftExporter(SpanExporter):
    """Export spans to a Jaeger collector as Thrift batches over HTTP."""

    def __init__(
        self,
        endpoint: str = "localhost:14268",
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
        self.url = collector_url(endpoint, insecure)
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
        """Post one batch per resource; FAILURE when the collector rejects any of them.

        Raises ExportConnectionError when the collector cannot be reached.
        """
        if self._shutdown:
            logger.warning("Exporter already shutdown, ignoring batch")
            return SpanExportResult.FAILURE
        for batch in to_batches(spans):
            try:
                response = self._session.post(
                    self.url, data=encode_batch(batch), timeout=self.timeout
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                raise ExportConnectionError(
                    f"cannot reach Jaeger collector: {e}",
                    endpoint=self.endpoint,
                    exporter="jaeger",
                ) from e
            if not response.ok:
                logger.warning(
                    "Jaeger collector rejected batch of %d spans: %s %s",
                    len(batch.spans),
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
