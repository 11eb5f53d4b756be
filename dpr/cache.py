"""
Bounded, time-expiring memoization for pure engine computations.

Nothing in here is global: callers construct a MemoCache and hand it to the
Evaluator (or to calculate_hit_probability), so tests can run cached,
uncached, or with a cache of their own. Keys are a stable JSON rendering of
the numeric inputs, never object identity, and values are copied in and out
so a caller mutating a result cannot corrupt the cache.

The cache is only an optimization. If a key cannot be built the call simply
runs uncached; cache trouble is logged, never raised.
"""

from __future__ import annotations

import copy
import dataclasses
import json
import logging
import time
from collections.abc import Mapping
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MISSING: Any = object()
"""Sentinel for "no usable entry", since None is a legitimate cached value."""


class MemoCache:
    """Maps derived input keys to computed results.

    Entries live for ``ttl`` seconds. When an insert finds the cache full,
    expired entries are dropped first, then the oldest entries until the
    cache holds at most ``max_size * fill_ratio`` entries.
    """

    max_size: int = 1000
    """Entry count that triggers eviction."""

    ttl: float = 300.0
    """Seconds an entry stays valid after it was stored."""

    fill_ratio: float = 0.8
    """Fraction of max_size the cache is pruned down to once full."""

    def __init__(
        self,
        max_size: int | None = None,
        ttl: float | None = None,
        fill_ratio: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size is not None:
            self.max_size = max_size
        if ttl is not None:
            self.ttl = ttl
        if fill_ratio is not None:
            self.fill_ratio = fill_ratio
        if self.max_size < 1:
            raise ValueError(f"max_size must be positive, got {self.max_size}")
        if not 0 <= self.fill_ratio < 1:
            raise ValueError(f"fill_ratio must be in [0, 1), got {self.fill_ratio}")
        self.clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at > self.ttl

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default
        value, stored_at = entry
        if self._expired(stored_at, self.clock()):
            del self._entries[key]
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self.evict()
        self._entries[key] = (value, self.clock())

    def evict(self) -> None:
        """Drop expired entries, then the oldest, down to the fill ratio."""
        now = self.clock()
        for key in [k for k, (_, at) in self._entries.items() if self._expired(at, now)]:
            del self._entries[key]

        if len(self._entries) >= self.max_size:
            target = int(self.max_size * self.fill_ratio)
            oldest = sorted(self._entries.items(), key=lambda item: item[1][1])
            for key, _ in oldest[:len(self._entries) - target]:
                del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
        self.hits = self.misses = 0


def _encode(value: Any) -> Any:
    """Reduce a value to JSON-safe primitives, or raise TypeError."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__type__": type(value).__name__,
            **{f.name: _encode(getattr(value, f.name)) for f in dataclasses.fields(value)},
        }
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_encode(v) for v in value), key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, Mapping):
        return {str(k): _encode(v) for k, v in value.items()}
    raise TypeError(f"cannot build a cache key from {type(value).__name__}")


def make_key(*parts: Any) -> str:
    """Stable serialization of ``parts``; raises TypeError if impossible."""
    return json.dumps(_encode(parts), sort_keys=True, separators=(",", ":"))


def cached_call(cache: MemoCache, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call ``fn`` through ``cache``, falling back to a direct call on key errors."""
    try:
        key = make_key(fn.__module__, fn.__qualname__, args, kwargs)
    except (TypeError, ValueError) as exc:
        logger.debug("cache key failed for %s, computing directly: %s", fn.__qualname__, exc)
        return fn(*args, **kwargs)

    value = cache.get(key, MISSING)
    if value is MISSING:
        value = fn(*args, **kwargs)
        cache.set(key, copy.deepcopy(value))
        return value
    return copy.deepcopy(value)

