"""
Tests for TokenCache - thread-safe grant caching with expiry-aware refresh.

Test Coverage:
    - Basic cache operations (get/set/clear)
    - Refresh margin handling
    - Thread safety with concurrent access
    - Diagnostics (get_age, audiences)
"""

import threading
from datetime import datetime, timedelta, timezone

from core.auth.token_cache import DEFAULT_REFRESH_MARGIN, CachedToken, TokenCache
from core.types import AccessGrant

STORAGE = "https://storage.azure.com"
DATABASE = "https://database.windows.net"


def _grant(token="token", minutes=60):
    return AccessGrant(token=token, expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes))


class TestCachedToken:

    def test_valid_when_expiry_beyond_margin(self):
        cached = CachedToken(_grant(minutes=30), datetime.now(timezone.utc))
        assert cached.is_valid(timedelta(minutes=5))

    def test_invalid_inside_margin(self):
        cached = CachedToken(_grant(minutes=4), datetime.now(timezone.utc))
        assert not cached.is_valid(timedelta(minutes=5))

    def test_default_margin_is_five_minutes(self):
        assert DEFAULT_REFRESH_MARGIN == timedelta(minutes=5)


class TestTokenCacheBasics:

    def test_get_returns_none_when_empty(self):
        assert TokenCache().get(STORAGE) is None

    def test_set_and_get(self):
        cache = TokenCache()
        grant = _grant("abc")
        cache.set(STORAGE, grant)
        assert cache.get(STORAGE) is grant

    def test_audiences_are_independent(self):
        cache = TokenCache()
        cache.set(STORAGE, _grant("storage"))
        cache.set(DATABASE, _grant("db"))
        assert cache.get(STORAGE).token == "storage"
        assert cache.get(DATABASE).token == "db"

    def test_set_replaces_existing_grant(self):
        cache = TokenCache()
        cache.set(STORAGE, _grant("old"))
        cache.set(STORAGE, _grant("new"))
        assert cache.get(STORAGE).token == "new"

    def test_grant_near_expiry_is_not_returned(self):
        cache = TokenCache(refresh_margin=timedelta(minutes=5))
        cache.set(STORAGE, _grant(minutes=2))
        assert cache.get(STORAGE) is None

    def test_custom_refresh_margin(self):
        cache = TokenCache(refresh_margin=timedelta(minutes=1))
        cache.set(STORAGE, _grant(minutes=2))
        assert cache.get(STORAGE) is not None

    def test_clear_single_audience(self):
        cache = TokenCache()
        cache.set(STORAGE, _grant())
        cache.set(DATABASE, _grant())
        cache.clear(STORAGE)
        assert cache.get(STORAGE) is None
        assert cache.get(DATABASE) is not None

    def test_clear_all(self):
        cache = TokenCache()
        cache.set(STORAGE, _grant())
        cache.set(DATABASE, _grant())
        cache.clear()
        assert cache.audiences() == []

    def test_clear_unknown_audience_is_noop(self):
        cache = TokenCache()
        cache.clear("https://unknown.example.com")


class TestTokenCacheDiagnostics:

    def test_get_age_for_cached_audience(self):
        cache = TokenCache()
        cache.set(STORAGE, _grant())
        age = cache.get_age(STORAGE)
        assert age is not None
        assert age < timedelta(seconds=5)

    def test_get_age_none_when_missing(self):
        assert TokenCache().get_age(STORAGE) is None

    def test_audiences_lists_cached_keys(self):
        cache = TokenCache()
        cache.set(STORAGE, _grant())
        cache.set(DATABASE, _grant())
        assert sorted(cache.audiences()) == sorted([STORAGE, DATABASE])


class TestTokenCacheThreadSafety:

    def test_concurrent_set_and_get(self):
        cache = TokenCache()
        errors = []

        def worker(n):
            try:
                for i in range(200):
                    audience = f"https://resource-{n % 4}.example.com"
                    cache.set(audience, _grant(f"t{n}-{i}"))
                    grant = cache.get(audience)
                    assert grant is not None
            except Exception as e:  # pragma: no cover - surfaced via errors list
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache.audiences()) == 4
