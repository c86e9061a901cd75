"""
AudioScholar Backend — Key Pool Unit Tests
===========================================

What:  Tests for CooldownRegistry and KeyPool in isolation.

What we test:
    ✅ Keys are deduplicated with order preserved
    ✅ Cooldown entries expire lazily at expiry <= now
    ✅ Repeated cooldown overwrites instead of extending
    ✅ Round-robin selection and degraded return when all keys cool down
    ✅ Concurrent selection stays inside the pool and spreads load
"""

import threading
from collections import Counter

import pytest

from audioscholar.exceptions import KeyPoolEmptyError
from audioscholar.models import KeyProvider
from audioscholar.services.key_pool import CooldownRegistry, KeyPool, dedupe_keys, mask_key


class TestHelpers:

    def test_dedupe_keeps_first_seen_order(self):
        """Duplicates and blanks are dropped; first occurrence wins."""
        assert dedupe_keys(["b", " a ", "", None, "b", "c", "a"]) == ("b", "a", "c")

    def test_mask_key_shows_last_four(self):
        assert mask_key("AIzaSyExample1234") == "1234"

    def test_mask_key_hides_short_keys(self):
        """Short keys are fully masked; revealing 4 of 6 chars would leak most of it."""
        assert mask_key("abc123") == "********"
        assert mask_key(None) == "********"


class TestCooldownRegistry:

    def test_unknown_key_is_available(self, fake_clock):
        registry = CooldownRegistry(clock=fake_clock)
        assert registry.is_cooling_down("k") is False

    def test_key_cools_down_until_expiry(self, fake_clock):
        """A key is unavailable strictly before its expiry."""
        registry = CooldownRegistry(clock=fake_clock)
        registry.start("k", 60)

        fake_clock.advance(59.9)
        assert registry.is_cooling_down("k") is True

    def test_entry_at_expiry_is_absent_and_evicted(self, fake_clock):
        """expiry <= now counts as absent, and the lookup evicts the entry."""
        registry = CooldownRegistry(clock=fake_clock)
        registry.start("k", 60)
        assert len(registry) == 1

        fake_clock.advance(60)
        assert registry.is_cooling_down("k") is False
        assert len(registry) == 0

    def test_repeated_start_overwrites_not_extends(self, fake_clock):
        """Reporting again restarts the 60s window from now; it does not add 60s."""
        registry = CooldownRegistry(clock=fake_clock)
        registry.start("k", 60)
        fake_clock.advance(30)
        registry.start("k", 60)

        assert registry.remaining("k") == pytest.approx(60)
        fake_clock.advance(60)
        assert registry.is_cooling_down("k") is False

    def test_clear_removes_entry(self, fake_clock):
        registry = CooldownRegistry(clock=fake_clock)
        registry.start("k", 60)
        registry.clear("k")
        assert registry.is_cooling_down("k") is False


class TestKeyPool:

    def test_round_robin_wraps(self, fake_clock):
        """N+1 calls over N keys yield key[0..N-1] then key[0]."""
        pool = KeyPool(KeyProvider.GEMINI, ["key1", "key2", "key3"], CooldownRegistry(fake_clock))
        assert [pool.next_key() for _ in range(4)] == ["key1", "key2", "key3", "key1"]

    def test_skips_cooling_key(self, fake_clock):
        registry = CooldownRegistry(fake_clock)
        pool = KeyPool(KeyProvider.GEMINI, ["keyA", "keyB"], registry)
        registry.start("keyA", 60)

        assert pool.next_key() == "keyB"
        assert pool.next_key() == "keyB"

    def test_all_cooling_still_returns_member(self, fake_clock):
        """Degraded mode: a pool member comes back instead of an error or a block."""
        registry = CooldownRegistry(fake_clock)
        pool = KeyPool(KeyProvider.GEMINI, ["keyX", "keyY"], registry)
        registry.start("keyX", 60)
        registry.start("keyY", 60)

        assert pool.next_key() in {"keyX", "keyY"}

    def test_all_cooling_logs_warning(self, fake_clock, caplog):
        registry = CooldownRegistry(fake_clock)
        pool = KeyPool(KeyProvider.GEMINI, ["keyX"], registry)
        registry.start("keyX", 60)

        with caplog.at_level("WARNING"):
            pool.next_key()
        assert "in cooldown" in caplog.text

    def test_empty_pool_raises(self, fake_clock):
        pool = KeyPool(KeyProvider.CONVERTAPI, [], CooldownRegistry(fake_clock))
        with pytest.raises(KeyPoolEmptyError):
            pool.next_key()

    def test_keys_are_immutable_tuple(self, fake_clock):
        pool = KeyPool(KeyProvider.GEMINI, ["a", "b"], CooldownRegistry(fake_clock))
        assert isinstance(pool.keys, tuple)

    def test_status_never_exposes_raw_key(self, fake_clock):
        registry = CooldownRegistry(fake_clock)
        pool = KeyPool(KeyProvider.GEMINI, ["secret-key-0001", "secret-key-0002"], registry)
        registry.start("secret-key-0002", 60)

        statuses = pool.status()
        assert [s.masked_key for s in statuses] == ["0001", "0002"]
        assert [s.cooling_down for s in statuses] == [False, True]
        assert statuses[1].cooldown_remaining_seconds == pytest.approx(60)

    def test_concurrent_selection_is_fair(self, fake_clock):
        """Many threads share one pool; every key gets an equal share of selections."""
        keys = ["k1", "k2", "k3", "k4"]
        pool = KeyPool(KeyProvider.GEMINI, keys, CooldownRegistry(fake_clock))
        results = []
        results_lock = threading.Lock()

        def worker():
            picked = [pool.next_key() for _ in range(250)]
            with results_lock:
                results.extend(picked)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        counts = Counter(results)
        assert sum(counts.values()) == 2000
        assert set(counts) == set(keys)
        assert all(count == 500 for count in counts.values())
