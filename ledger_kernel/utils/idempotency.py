"""
Idempotency helpers.

Two concerns live here:

* Document numbers for multi-transaction operations.  Each transaction
  posted by a derived operation gets its own doc_no, built from the
  caller's base number and a fixed suffix (``INV-42`` -> ``INV-42-PRORATA``).
  Retrying the whole operation re-posts every piece under the same numbers,
  so the pieces already written become idempotent replays.

* ``IdempotencyCache`` -- a bounded, TTL-evicting response cache for the
  request layer, keyed by the caller's Idempotency-Key.  Time comes from an
  injected Clock; there is no module-level state.
"""

import threading
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import IdempotencyKeyError

DOC_NO_SEPARATOR = "-"


def derived_doc_no(base_doc_no: str, suffix: str) -> str:
    """
    Build the doc_no of a follow-up transaction.

    Example:
        >>> derived_doc_no("INV-2025-0042", "PRORATA")
        'INV-2025-0042-PRORATA'
    """
    return f"{base_doc_no}{DOC_NO_SEPARATOR}{suffix}"


def parse_derived_doc_no(doc_no: str, suffixes: tuple[str, ...]) -> tuple[str, str | None]:
    """
    Split a doc_no into (base, suffix) when it ends with one of ``suffixes``.

    Returns (doc_no, None) for a doc_no that is not derived.
    """
    for suffix in suffixes:
        tail = f"{DOC_NO_SEPARATOR}{suffix}"
        if doc_no.endswith(tail) and len(doc_no) > len(tail):
            return doc_no[: -len(tail)], suffix
    return doc_no, None


class IdempotencyCache:
    """
    Bounded TTL cache of request responses.

    Contract:
        ``get`` returns a stored value until ``ttl_seconds`` have elapsed on
        the injected clock.  When more than ``max_entries`` keys are held the
        least recently used key (stored or read) is evicted.

    Guarantees:
        - Keys shorter than 8 or longer than 128 characters are rejected with
          IdempotencyKeyError.
        - Safe to share between threads.
    """

    MIN_KEY_LENGTH = 8
    MAX_KEY_LENGTH = 128

    def __init__(
        self,
        clock: Clock | None = None,
        ttl_seconds: float = 300,
        max_entries: int = 10_000,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_entries = max_entries
        self._entries: OrderedDict[str, tuple[datetime, Any]] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def validate_key(cls, key: str) -> str:
        if not cls.MIN_KEY_LENGTH <= len(key) <= cls.MAX_KEY_LENGTH:
            raise IdempotencyKeyError(len(key), cls.MIN_KEY_LENGTH, cls.MAX_KEY_LENGTH)
        return key

    def get(self, key: str) -> Any | None:
        self.validate_key(key)
        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if now >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def put(self, key: str, value: Any) -> None:
        self.validate_key(key)
        expires_at = self._clock.now() + self._ttl
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (expires_at, value)
            self._evict(self._clock.now())

    def _evict(self, now: datetime) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock.now())
            return len(self._entries)
