"""
Idempotency helpers.

Verifies:
- Derived doc_no construction and parsing
- IdempotencyCache TTL expiry on the injected clock
- Least recently used entries evicted past max_entries
- Key length validation
"""

from datetime import datetime, timezone

import pytest

from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.exceptions import IdempotencyKeyError
from ledger_kernel.utils.idempotency import (
    IdempotencyCache,
    derived_doc_no,
    parse_derived_doc_no,
)

SUFFIXES = ("PRORATA", "INVNEW", "COLD", "CNEW")


class TestDerivedDocNo:
    def test_build(self):
        assert derived_doc_no("INV-42", "PRORATA") == "INV-42-PRORATA"

    def test_parse_roundtrip(self):
        assert parse_derived_doc_no("CHG-7-COLD", SUFFIXES) == ("CHG-7", "COLD")

    def test_parse_plain(self):
        assert parse_derived_doc_no("INV-42", SUFFIXES) == ("INV-42", None)

    def test_suffix_alone_is_not_derived(self):
        assert parse_derived_doc_no("-CNEW", SUFFIXES) == ("-CNEW", None)


class TestIdempotencyCache:
    @pytest.fixture
    def clock(self):
        return DeterministicClock(datetime(2025, 1, 1, tzinfo=timezone.utc))

    def test_hit_within_ttl(self, clock):
        cache = IdempotencyCache(clock, ttl_seconds=300)
        cache.put("request-0001", {"doc_no": "INV-1"})
        clock.advance(299)
        assert cache.get("request-0001") == {"doc_no": "INV-1"}

    def test_expires_after_ttl(self, clock):
        cache = IdempotencyCache(clock, ttl_seconds=300)
        cache.put("request-0001", "x")
        clock.advance(300)
        assert cache.get("request-0001") is None
        assert len(cache) == 0

    def test_miss(self, clock):
        assert IdempotencyCache(clock).get("request-0404") is None

    def test_bounded(self, clock):
        cache = IdempotencyCache(clock, max_entries=2)
        for key in ("request-0001", "request-0002", "request-0003"):
            cache.put(key, key)
        assert len(cache) == 2
        assert cache.get("request-0001") is None
        assert cache.get("request-0003") == "request-0003"

    def test_put_refreshes_position(self, clock):
        cache = IdempotencyCache(clock, max_entries=2)
        cache.put("request-0001", 1)
        cache.put("request-0002", 2)
        cache.put("request-0001", 1)
        cache.put("request-0003", 3)
        assert cache.get("request-0001") == 1
        assert cache.get("request-0002") is None

    def test_get_refreshes_position(self, clock):
        cache = IdempotencyCache(clock, max_entries=2)
        cache.put("request-0001", 1)
        cache.put("request-0002", 2)
        assert cache.get("request-0001") == 1
        cache.put("request-0003", 3)
        assert cache.get("request-0001") == 1
        assert cache.get("request-0002") is None
        assert cache.get("request-0003") == 3

    @pytest.mark.parametrize("key", ["short", "k" * 129])
    def test_key_length_validated(self, clock, key):
        cache = IdempotencyCache(clock)
        with pytest.raises(IdempotencyKeyError):
            cache.put(key, 1)
        with pytest.raises(IdempotencyKeyError):
            cache.get(key)

    def test_clear(self, clock):
        cache = IdempotencyCache(clock)
        cache.put("request-0001", 1)
        cache.clear()
        assert len(cache) == 0

    def test_max_entries_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            IdempotencyCache(clock, max_entries=0)
