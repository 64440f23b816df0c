"""
Shared random source for trace generation.

Generators never touch the module-level ``random`` state; they draw from a
RandomSource passed in explicitly so runs can be reproduced with a seed. One
source may be shared by many threads: every draw holds an internal lock.
"""

import string
import threading
from collections.abc import Sequence
from random import Random
from typing import Any, TypeVar

T = TypeVar("T")

LETTERS = string.ascii_letters + string.digits

HTTP_STATUSES_SUCCESS = (200, 201, 202, 204)
HTTP_STATUSES_ERROR = (
    400, 401, 403, 404, 405, 406, 408, 409, 410, 411,
    412, 413, 414, 415, 417, 427, 428, 500, 501, 502,
)  # fmt: skip
HTTP_METHODS = ("GET", "DELETE", "POST", "PUT", "PATCH")
HTTP_CONTENT_TYPES = (
    "application/json",
    "application/xml",
    "application/x-www-form-urlencoded",
    "text/plain",
    "text/html",
)
OPERATIONS = (
    "get", "list", "query", "search", "set", "add",
    "create", "update", "send", "remove", "delete",
)  # fmt: skip
SERVICE_SUFFIXES = ("", "", "service", "backend", "api", "proxy", "engine")
DB_SYSTEMS = ("redis", "mysql", "postgres", "memcached", "mongodb", "elasticsearch")
RESOURCES = (
    "order", "payment", "customer", "product", "stock", "inventory",
    "shipping", "billing", "checkout", "cart", "search", "analytics",
)  # fmt: skip

# Prefix for randomly generated keys and names so they are recognizable in a backend.
RANDOM_PREFIX = "tracegen."


class RandomSource:
    """Thread-safe, optionally seeded source of random values for generators."""

    def __init__(self, seed: int | str | None = None):
        self._random = Random(seed)
        self._lock = threading.Lock()

    def seed(self, seed: int | str | None) -> None:
        with self._lock:
            self._random.seed(seed)

    # Primitive draws -----------------------------------------------------

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        with self._lock:
            return self._random.random()

    def randrange(self, n: int) -> int:
        """Uniform int in [0, n)."""
        with self._lock:
            return self._random.randrange(n)

    def int_between(self, low: int, high: int) -> int:
        """Uniform int in [low, high); returns low when the range is empty."""
        if high <= low:
            return low
        with self._lock:
            return low + self._random.randrange(high - low)

    def uniform(self, low: float, high: float) -> float:
        with self._lock:
            return self._random.uniform(low, high)

    def choice(self, elements: Sequence[T]) -> T:
        with self._lock:
            return self._random.choice(elements)

    def bernoulli(self, p: float) -> bool:
        """True with probability p."""
        return self.random() < p

    def getrandbits(self, k: int) -> int:
        with self._lock:
            return self._random.getrandbits(k)

    # Derived values ------------------------------------------------------

    def string(self, n: int) -> str:
        """Random alphanumeric string of length n."""
        if n <= 0:
            return ""
        with self._lock:
            return "".join(self._random.choices(LETTERS, k=n))

    def prefixed_string(self, n: int) -> str:
        return RANDOM_PREFIX + self.string(n)

    def duration_ns(self, low_ns: int, high_ns: int) -> int:
        """Uniform duration in [low_ns, high_ns) nanoseconds."""
        return self.int_between(int(low_ns), int(high_ns))

    def trace_id(self) -> str:
        """32 hex-char trace ID, never all zeros."""
        value = 0
        while value == 0:
            value = self.getrandbits(128)
        return format(value, "032x")

    def span_id(self) -> str:
        """16 hex-char span ID, never all zeros."""
        value = 0
        while value == 0:
            value = self.getrandbits(64)
        return format(value, "016x")

    def ip_addr(self) -> str:
        return f"192.168.{self.randrange(255)}.{self.randrange(255)}"

    def port(self) -> int:
        return self.int_between(8000, 9000)

    def http_status_success(self) -> int:
        return self.choice(HTTP_STATUSES_SUCCESS)

    def http_status_error(self) -> int:
        return self.choice(HTTP_STATUSES_ERROR)

    def http_method(self) -> str:
        return self.choice(HTTP_METHODS)

    def http_content_type(self) -> list[str]:
        return [self.choice(HTTP_CONTENT_TYPES)]

    def db_system(self) -> str:
        return self.choice(DB_SYSTEMS)

    def service(self, resource: str | None = None) -> str:
        """Realistic service name such as ``payment-api``."""
        name = resource or self.choice(RESOURCES)
        suffix = self.choice(SERVICE_SUFFIXES)
        return f"{name}-{suffix}" if suffix else name

    def operation(self, resource: str | None = None) -> str:
        """Realistic operation name such as ``list-order``."""
        return f"{self.choice(OPERATIONS)}-{resource or self.choice(RESOURCES)}"

    def event_name(self) -> str:
        return "event_" + self.prefixed_string(10)

    def exception_attributes(self) -> dict[str, Any]:
        """Attributes of an OTel ``exception`` event."""
        panics = ("runtime error: index out of range", "runtime error: can't divide by 0")
        functions = ("main.main()", "trace.makespan()", "account.login()", "payment.collect()")
        return {
            "exception.escape": False,
            "exception.message": "error: " + self.prefixed_string(20),
            "exception.stacktrace": f"panic: {self.choice(panics)}\n{self.choice(functions)}",
            "exception.type": "error.type_" + self.prefixed_string(10),
        }


_default_source = RandomSource()


def default_source() -> RandomSource:
    """Process-wide unseeded source used when a caller passes none."""
    return _default_source
