"""
Advisor response cache.

The advisor call is the slow, paid part of a pass and the cart usually changes
far less often than passes run. Results are keyed on a fingerprint of the
(cart, catalog) snapshot so any cart edit produces a fresh key. The cache is
bounded; once full, the least recently used snapshot goes first. Passes run
concurrently (request threads, delayed refreshes), so every access holds
``_lock``.
"""
from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Any

_cache: OrderedDict[str, dict[str, Any]] = OrderedDict()
_lock = threading.Lock()
_hits: int = 0
_misses: int = 0
_evictions: int = 0
_DEFAULT_TTL = 300  # 5 minutes
_MAX_ENTRIES = 512


def make_key(snapshot: dict) -> str:
    normalized = json.dumps(snapshot, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def cache_get(snapshot: dict, ttl: float = _DEFAULT_TTL) -> Any | None:
    """Return the cached value for *snapshot* if it is younger than *ttl* seconds."""
    global _hits, _misses
    key = make_key(snapshot)
    with _lock:
        entry = _cache.get(key)
        if entry is not None and time.time() - entry["created_at"] < ttl:
            _cache.move_to_end(key)
            _hits += 1
            return entry["value"]
        if entry is not None:
            del _cache[key]
        _misses += 1
        return None


def cache_set(snapshot: dict, value: Any, max_entries: int = _MAX_ENTRIES) -> None:
    global _evictions
    key = make_key(snapshot)
    with _lock:
        _cache[key] = {"value": value, "created_at": time.time()}
        _cache.move_to_end(key)
        while len(_cache) > max_entries:
            _cache.popitem(last=False)
            _evictions += 1


def get_cache_stats() -> dict:
    with _lock:
        total = _hits + _misses
        return {
            "size": len(_cache),
            "hits": _hits,
            "misses": _misses,
            "evictions": _evictions,
            "hit_rate": round(_hits / total * 100, 1) if total > 0 else 0.0,
        }


def clear_cache() -> None:
    global _hits, _misses, _evictions
    with _lock:
        _cache.clear()
        _hits = 0
        _misses = 0
        _evictions = 0
