"""Tests for ExpiringCache."""

from dollarfolio.services.market_data import ExpiringCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestExpiringCache:
    def test_returns_value_within_ttl(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=300, clock=clock)
        cache.set("rates", [1, 2])

        clock.now += 299

        assert cache.get("rates") == [1, 2]

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=300, clock=clock)
        cache.set("rates", [1, 2])

        clock.now += 300

        assert cache.get("rates") is None

    def test_set_refreshes_expiry(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=300, clock=clock)
        cache.set("rates", "old")
        clock.now += 200
        cache.set("rates", "new")
        clock.now += 200

        assert cache.get("rates") == "new"

    def test_missing_key(self):
        assert ExpiringCache(ttl_seconds=10).get("nope") is None

    def test_invalidate_and_clear(self):
        cache = ExpiringCache(ttl_seconds=300, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert cache.get("b") is None
