"""Random sources and attribute cardinality control for trace generation."""

from .cardinality import EMPTY_POOL, AttributePool, CardinalityEngine
from .randomness import RandomSource, default_source

__all__ = [
    "RandomSource",
    "default_source",
    "CardinalityEngine",
    "AttributePool",
    "EMPTY_POOL",
]
