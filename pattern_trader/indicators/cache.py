"""
TTL cache for indicator values used by the live scanner. One instance is
passed into each scanner, so independent scanners (and tests) never share
state. Safe to share between the scanner and the monitor thread; computing a
value happens outside the lock.
"""

from __future__ import annotations
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger("pattern_trader.indicators.cache")

DEFAULT_TTL_SECONDS = 60.0


class IndicatorCache:
    """Values keyed by (indicator, symbol, params); entries expire after `ttl` seconds."""

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Tuple[str, str, Hashable], Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, indicator: str, symbol: str, params: Hashable = ()) -> Optional[Any]:
        key = (indicator, symbol, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                return None
            return value

    def put(self, indicator: str, symbol: str, value: Any, params: Hashable = ()) -> None:
        with self._lock:
            self._entries[(indicator, symbol, params)] = (self._clock(), value)

    def get_or_compute(
        self,
        indicator: str,
        symbol: str,
        compute: Callable[[], Any],
        params: Hashable = (),
    ) -> Any:
        """Return the cached value or compute, store and return it. None results are not cached."""
        value = self.get(indicator, symbol, params)
        if value is not None:
            return value
        value = compute()
        if value is not None:
            self.put(indicator, symbol, value, params)
            logger.debug("Cached %s for %s %s", indicator, symbol, params)
        return value

    def invalidate(self, symbol: Optional[str] = None) -> None:
        """Drop every entry, or only the entries for one symbol."""
        with self._lock:
            if symbol is None:
                self._entries.clear()
                return
            for key in [k for k in self._entries if k[1] == symbol]:
                del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
