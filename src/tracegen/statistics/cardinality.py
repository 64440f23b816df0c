"""
Bounded-cardinality random attribute sets.

Each generated key draws its value from a pool of ``cardinality`` values that is
fixed per key (``<key>-0`` .. ``<key>-<cardinality-1>``), so repeated draws
simulate low- or high-cardinality dimensions. A cardinality of None or <= 0
means unbounded: every value is a fresh random string.
"""

from dataclasses import dataclass, field

from ..errors import InvalidParameterError
from .randomness import RandomSource, default_source

DEFAULT_KEY_PREFIX = "tracegen.attr."
RANDOM_KEY_SIZE = 15
RANDOM_VALUE_SIZE = 30


def _check_count(count: int) -> int:
    if count is None:
        return 0
    if not isinstance(count, int) or isinstance(count, bool):
        raise InvalidParameterError(f"attribute count must be an integer, got {count!r}")
    if count < 0:
        raise InvalidParameterError(f"attribute count must not be negative, got {count}")
    return count


def _bounded(cardinality: int | None) -> int | None:
    if cardinality is None or cardinality <= 0:
        return None
    return int(cardinality)


@dataclass(frozen=True)
class AttributePool:
    """A fixed set of keys, each with a bounded (or unbounded) value pool."""

    keys: tuple[str, ...] = ()
    cardinality: int | None = None
    _rng: RandomSource = field(default_factory=default_source, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.keys)

    def value_pool(self, key: str) -> list[str]:
        """All values a key can take; empty when unbounded."""
        if self.cardinality is None:
            return []
        return [f"{key}-{i}" for i in range(self.cardinality)]

    def sample(self, rng: RandomSource | None = None) -> dict[str, str]:
        """Draw one value per key."""
        rng = rng or self._rng
        if self.cardinality is None:
            return {k: rng.string(RANDOM_VALUE_SIZE) for k in self.keys}
        return {k: f"{k}-{rng.randrange(self.cardinality)}" for k in self.keys}


EMPTY_POOL = AttributePool()


class CardinalityEngine:
    """Produce random attribute sets with a controlled number of distinct values per key."""

    def __init__(self, rng: RandomSource | None = None):
        self.rng = rng or default_source()

    def generate(
        self,
        count: int,
        cardinality: int | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> dict[str, str]:
        """Return ``count`` attributes with keys ``<key_prefix><i>``.

        Keys are deterministic, so the same key observed across calls never
        takes more than ``cardinality`` distinct values.
        """
        count = _check_count(count)
        keys = tuple(f"{key_prefix}{i}" for i in range(count))
        return AttributePool(keys, _bounded(cardinality), self.rng).sample()

    def pool(
        self,
        count: int,
        cardinality: int | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> AttributePool:
        """Build a pool with randomized keys, fixed for the pool's lifetime."""
        count = _check_count(count)
        keys: list[str] = []
        while len(keys) < count:
            key = key_prefix + self.rng.string(RANDOM_KEY_SIZE)
            if key not in keys:
                keys.append(key)
        return AttributePool(tuple(keys), _bounded(cardinality), self.rng)
