# -*- coding: utf-8 -*-
"""
Speckle: Deterministic colour fields for mixed-chip sheets
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: speckle_cache.py — Bounded memo for lighting transforms.

Eviction policies
-----------------
``"lru"`` (default)
    A hit promotes the entry to most-recently-used; the least recently used
    entry is evicted when the bound is reached.
``"insertion"``
    Hits do not reorder anything; the oldest *inserted* entry is evicted.
    Plain FIFO.

Either way the cache never holds more than ``maxsize`` entries.  All access
is serialised by a re-entrant lock, so one cache may be shared by render
passes running on different threads.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, Final, Hashable, Literal, NamedTuple, Optional

__all__ = [
    "DEFAULT_CACHE_SIZE",
    "EvictionPolicy",
    "CacheInfo",
    "TransformCache",
]

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE: Final[int] = 1000
EvictionPolicy = Literal["lru", "insertion"]


class CacheInfo(NamedTuple):
    hits: int
    misses: int
    evictions: int
    maxsize: int
    currsize: int


class TransformCache:
    """
    Thread-safe bounded mapping ``(hex, light_id) → hex``.

    Args:
        maxsize: Maximum number of entries (must be positive).
        policy: ``"lru"`` or ``"insertion"``.
    """

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE,
                 policy: EvictionPolicy = "lru") -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        if policy not in ("lru", "insertion"):
            raise ValueError(f"Unknown eviction policy {policy!r}")
        self._entries: OrderedDict[Hashable, str] = OrderedDict()
        self._maxsize = int(maxsize)
        self._policy: EvictionPolicy = policy
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def policy(self) -> EvictionPolicy:
        return self._policy

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable) -> Optional[str]:
        """Look up *key*; under LRU a hit is promoted to most-recently-used."""
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._misses += 1
                return None
            self._hits += 1
            if self._policy == "lru":
                self._entries.move_to_end(key)
            return value

    def put(self, key: Hashable, value: str) -> None:
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                if self._policy == "lru":
                    self._entries.move_to_end(key)
                return
            while len(self._entries) >= self._maxsize:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted transform cache entry %r", evicted)
            self._entries[key] = value

    def get_or_compute(self, key: Hashable, factory: Callable[[], str]) -> str:
        """
        Return the cached value for *key*, computing and storing it on a miss.

        *factory* runs outside the lock; two threads racing on the same miss
        both compute, and the second store simply overwrites the first.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = factory()
        self.put(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list:
        """Keys from eviction candidate (first) to most protected (last)."""
        with self._lock:
            return list(self._entries.keys())

    def cache_info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(self._hits, self._misses, self._evictions,
                             self._maxsize, len(self._entries))

    def __repr__(self) -> str:
        return (f"TransformCache(policy={self._policy!r}, "
                f"size={len(self._entries)}/{self._maxsize})")
