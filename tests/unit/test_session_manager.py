"""Tests for ``SessionCache`` expiry and eviction."""

from __future__ import annotations

from api.session_manager import SessionCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestSessionCache:
    """TTL and LRU behaviour."""

    def test_get_or_create_returns_same_service(self) -> None:
        """A live session is reused."""
        cache = SessionCache(ttl_seconds=60, max_sessions=10, clock=FakeClock())
        first = cache.get_or_create("a")
        assert cache.get_or_create("a") is first
        assert len(cache) == 1

    def test_unknown_or_blank_id(self) -> None:
        """Lookups without a live session return None."""
        cache = SessionCache(ttl_seconds=60, max_sessions=10)
        assert cache.get(None) is None
        assert cache.get("") is None
        assert cache.get("nope") is None

    def test_idle_session_expires(self) -> None:
        """A session unused for longer than the TTL is dropped."""
        clock = FakeClock()
        cache = SessionCache(ttl_seconds=60, max_sessions=10, clock=clock)
        first = cache.get_or_create("a")

        clock.now = 61
        assert cache.get("a") is None
        assert cache.get_or_create("a") is not first

    def test_access_extends_lifetime(self) -> None:
        """Each use resets the idle timer."""
        clock = FakeClock()
        cache = SessionCache(ttl_seconds=60, max_sessions=10, clock=clock)
        service = cache.get_or_create("a")

        clock.now = 50
        assert cache.get("a") is service
        clock.now = 100
        assert cache.get("a") is service

    def test_least_recently_used_evicted(self) -> None:
        """Exceeding the limit drops the stalest session."""
        clock = FakeClock()
        cache = SessionCache(ttl_seconds=600, max_sessions=2, clock=clock)
        cache.get_or_create("a")
        clock.now = 1
        cache.get_or_create("b")
        clock.now = 2
        cache.get("a")
        clock.now = 3
        cache.get_or_create("c")

        assert len(cache) == 2
        assert cache.get("b") is None
        assert cache.get("a") is not None
        assert cache.get("c") is not None

    def test_remove(self) -> None:
        """Removing reports whether a session existed."""
        cache = SessionCache(ttl_seconds=60, max_sessions=10)
        cache.get_or_create("a")
        assert cache.remove("a") is True
        assert cache.remove("a") is False
