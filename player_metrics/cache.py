"""
Process-local TTL cache with single-flight recomputation.

Baselines and coach profiles are the only mutable shared state in the
engine. Both live in a TTLCache instance that is injected into the
calculators (never a module-level singleton), so tests can swap in a
FrozenClock and a fake store.

Single-flight: concurrent get_or_compute() calls for the same key while a
computation is running all wait on the same Future and receive the same
object. Results are swapped in only after the computation completes; a
failed computation leaves the previous entry untouched.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FrozenClock:
    """Deterministic clock for tests. Advance it explicitly."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def cache_key(prefix: str, *parts: Any) -> str:
    """Generate cache key from prefix and parts (None parts are skipped)."""
    key_parts = [prefix]
    for part in parts:
        if part is not None:
            key_parts.append(str(part))
    return ":".join(key_parts)


@dataclass
class _Entry:
    value: Any
    stored_at: datetime


@dataclass
class _InFlight:
    future: Future = field(default_factory=Future)
    callers: int = 1
    invalidated: bool = False


class TTLCache:
    """
    Key/value cache with a freshness window and per-key single-flight.

    Args:
        ttl_seconds: How long an entry stays fresh
        clock: Zero-argument callable returning an aware datetime
        name: Used in log messages
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None, name: str = "cache"):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self.name = name
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}
        self._in_flight: Dict[str, _InFlight] = {}

    def _is_fresh(self, entry: _Entry) -> bool:
        return self.clock() - entry.stored_at < self.ttl

    def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Any],
        force_refresh: bool = False,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Return the fresh cached value for `key`, or compute it exactly once.

        Args:
            key: Cache key
            compute: Zero-argument function producing the value
            force_refresh: Skip the fresh-entry check (still joins an in-flight computation)
            timeout: Seconds a joining caller waits for the in-flight result

        Returns:
            The cached or newly computed value. Every caller that joined the
            same computation receives the same object.

        Raises:
            Whatever `compute` raised; the previous entry (if any) is kept.
        """
        with self._lock:
            if not force_refresh:
                entry = self._entries.get(key)
                if entry is not None and self._is_fresh(entry):
                    logger.debug("%s hit: %s", self.name, key)
                    return entry.value

            flight = self._in_flight.get(key)
            if flight is not None:
                flight.callers += 1
                leader = False
            else:
                flight = _InFlight()
                self._in_flight[key] = flight
                leader = True

        if not leader:
            logger.debug("%s joined in-flight computation: %s", self.name, key)
            return flight.future.result(timeout=timeout)

        logger.debug("%s miss, computing: %s", self.name, key)
        try:
            value = compute()
        except BaseException as exc:
            with self._lock:
                self._in_flight.pop(key, None)
            flight.future.set_exception(exc)
            raise

        with self._lock:
            if flight.invalidated:
                # Invalidated mid-flight; the result may predate the change.
                self._entries.pop(key, None)
            else:
                self._entries[key] = _Entry(value=value, stored_at=self.clock())
            self._in_flight.pop(key, None)
        flight.future.set_result(value)
        return value

    def peek(self, key: str) -> Optional[Any]:
        """Fresh value for `key` without computing, or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry):
                return entry.value
            return None

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=value, stored_at=self.clock())

    def update(self, key: str, fn: Callable[[Any], Any]) -> bool:
        """
        Atomically replace a fresh entry with fn(old_value), keeping its timestamp.

        An in-flight computation for the key is marked invalidated so its
        (possibly older) result is not stored.

        Returns:
            True if a fresh entry was updated
        """
        with self._lock:
            flight = self._in_flight.get(key)
            if flight is not None:
                flight.invalidated = True
            entry = self._entries.get(key)
            if entry is None or not self._is_fresh(entry):
                return False
            self._entries[key] = _Entry(value=fn(entry.value), stored_at=entry.stored_at)
            return True

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            flight = self._in_flight.get(key)
            if flight is not None:
                flight.invalidated = True

    def keys(self, prefix: str = "", include_pending: bool = False) -> List[str]:
        """Stored keys starting with `prefix`; with include_pending, also keys being computed."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            if include_pending:
                keys.extend(k for k in self._in_flight if k.startswith(prefix) and k not in self._entries)
            return keys

    def pending(self, key: str) -> int:
        """Number of callers attached to the in-flight computation for `key` (0 if none)."""
        with self._lock:
            flight = self._in_flight.get(key)
            return flight.callers if flight is not None else 0

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
