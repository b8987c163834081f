"""
Unit tests for the cache stores and backend selection.
"""

import threading
from unittest import mock

import pytest
import redis

from portfolioapi.cache import FileCache, MemoryCache, RedisCache, make_key, select_backend
from portfolioapi.config import AppConfig
from portfolioapi.errors import CacheError, ConfigurationError


class Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(params=["memory", "file"])
def local_store(request, tmp_path):
    """Each local backend, driven by the same fake clock."""
    clock = Clock()
    if request.param == "memory":
        store = MemoryCache(default_ttl=60, clock=clock)
    else:
        store = FileCache(str(tmp_path / "cache"), default_ttl=60, clock=clock)
    return store, clock


class TestLocalStores:
    """Behaviour shared by MemoryCache and FileCache."""

    def test_set_get(self, local_store):
        store, _ = local_store
        store.set("k", {"rows": [1, 2]})
        assert store.get("k") == {"rows": [1, 2]}

    def test_missing_key(self, local_store):
        store, _ = local_store
        assert store.get("absent") is None

    def test_ttl_expiry(self, local_store):
        """set(ttl=1) is readable now and gone one second later."""
        store, clock = local_store
        store.set("k", "v", ttl=1)
        assert store.get("k") == "v"
        clock.now += 1
        assert store.get("k") is None

    def test_default_ttl(self, local_store):
        store, clock = local_store
        store.set("k", "v")
        clock.now += 59
        assert store.get("k") == "v"
        clock.now += 1
        assert store.get("k") is None

    def test_delete(self, local_store):
        store, _ = local_store
        store.set("k", "v")
        store.delete("k")
        store.delete("never-set")
        assert store.get("k") is None

    def test_invalidate_by_tag(self, local_store):
        """Only entries carrying the tag are removed."""
        store, _ = local_store
        store.set("projects-list", [1], tags=["projects"])
        store.set("all-data", {}, tags=["projects", "skills"])
        store.set("skills-list", [2], tags=["skills"])

        assert store.invalidate_pattern("projects") == 2
        assert store.get("projects-list") is None
        assert store.get("all-data") is None
        assert store.get("skills-list") == [2]

    def test_invalidate_is_idempotent(self, local_store):
        """Invalidating twice equals invalidating once."""
        store, _ = local_store
        store.set("a", 1, tags=["projects"])
        store.invalidate_pattern("projects")
        assert store.invalidate_pattern("projects") == 0
        assert store.get("a") is None

    def test_clear(self, local_store):
        store, _ = local_store
        store.set("a", 1)
        store.increment("c", 60)
        store.clear()
        assert store.get("a") is None
        assert store.peek_counter("c", 60) is None

    def test_increment_counts_within_window(self, local_store):
        store, clock = local_store
        first = store.increment("rl", 60)
        clock.now += 10
        second = store.increment("rl", 60)

        assert (first.count, second.count) == (1, 2)
        assert second.window_start == first.window_start == 1000.0
        assert second.reset_at == 1060.0

    def test_increment_new_window(self, local_store):
        """A counter whose window elapsed starts over at 1."""
        store, clock = local_store
        store.increment("rl", 60)
        store.increment("rl", 60)
        clock.now += 60
        state = store.increment("rl", 60)
        assert state.count == 1
        assert state.window_start == 1060.0

    def test_concurrent_increments_not_lost(self, local_store):
        """8 threads x 25 increments on one key end at exactly 200."""
        store, _ = local_store
        start = threading.Barrier(8)
        seen = []
        lock = threading.Lock()

        def worker():
            start.wait()
            for _ in range(25):
                count = store.increment("shared", 60).count
                with lock:
                    seen.append(count)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.peek_counter("shared", 60).count == 200
        assert sorted(seen) == list(range(1, 201))

    def test_peek_does_not_count(self, local_store):
        store, _ = local_store
        assert store.peek_counter("rl", 60) is None
        store.increment("rl", 60)
        assert store.peek_counter("rl", 60).count == 1
        assert store.peek_counter("rl", 60).count == 1

    def test_reset_counter(self, local_store):
        store, _ = local_store
        store.increment("rl", 60)
        store.reset_counter("rl")
        assert store.peek_counter("rl", 60) is None

    def test_stats_name_backend(self, local_store):
        store, _ = local_store
        assert store.stats()["backend"] == store.name


class TestMemoryCache:
    """MemoryCache specifics."""

    def test_values_are_copies(self):
        """Mutating a returned value does not change the cached one."""
        store = MemoryCache()
        store.set("row", {"email": "a@b.co"})
        store.get("row").pop("email")
        assert store.get("row") == {"email": "a@b.co"}

    def test_hit_rate(self):
        store = MemoryCache()
        store.set("k", 1)
        store.get("k")
        store.get("missing")
        stats = store.stats()
        assert (stats["hits"], stats["misses"], stats["hit_rate"]) == (1, 1, 50.0)


class TestFileCache:
    """FileCache specifics."""

    def test_corrupt_file_is_a_miss(self, tmp_path):
        store = FileCache(str(tmp_path))
        store.set("k", "v")
        path = store._entry_path("k")
        with open(path, "w") as fh:
            fh.write("{not json")
        assert store.get("k") is None

    def test_ping_creates_directories(self, tmp_path):
        store = FileCache(str(tmp_path / "nested" / "cache"))
        assert store.ping()
        assert (tmp_path / "nested" / "cache" / "entries").is_dir()


class TestRedisCache:
    """RedisCache against a mocked client."""

    @pytest.fixture
    def client(self):
        return mock.MagicMock(spec=redis.Redis)

    def test_requires_url_or_client(self):
        with pytest.raises(CacheError):
            RedisCache()

    def test_get_decodes_json(self, client):
        client.get.return_value = '{"a": 1}'
        store = RedisCache(client=client, prefix="p:")
        assert store.get("k") == {"a": 1}
        client.get.assert_called_once_with("p:entry:k")

    def test_get_miss(self, client):
        client.get.return_value = None
        assert RedisCache(client=client).get("k") is None

    def test_set_writes_entry_and_tags(self, client):
        pipe = client.pipeline.return_value
        store = RedisCache(client=client, prefix="p:", default_ttl=100)

        store.set("k", [1], ttl=30, tags=["projects"])

        pipe.setex.assert_called_once_with("p:entry:k", 30, "[1]")
        pipe.sadd.assert_called_once_with("p:tag:projects", "p:entry:k")
        pipe.expire.assert_called_once_with("p:tag:projects", 100)
        pipe.execute.assert_called_once()

    def test_invalidate_deletes_members(self, client):
        client.smembers.return_value = {"p:entry:a", "p:entry:b"}
        client.delete.return_value = 2
        store = RedisCache(client=client, prefix="p:")

        assert store.invalidate_pattern("projects") == 2
        client.delete.assert_any_call("p:tag:projects")

    def test_increment(self, client):
        pipe = client.pipeline.return_value
        pipe.execute.return_value = [True, 3, 45000]
        store = RedisCache(client=client, prefix="p:", clock=lambda: 1000.0)

        state = store.increment("rl", 60)

        pipe.set.assert_called_once_with("p:counter:rl", 0, ex=60, nx=True)
        assert state.count == 3
        assert state.reset_at == pytest.approx(1045.0)

    def test_peek_missing_counter(self, client):
        client.pipeline.return_value.execute.return_value = [None, -2]
        assert RedisCache(client=client).peek_counter("rl", 60) is None

    def test_errors_become_cache_errors(self, client):
        client.get.side_effect = redis.ConnectionError("down")
        with pytest.raises(CacheError):
            RedisCache(client=client).get("k")

    def test_ping_failure(self, client):
        client.ping.side_effect = redis.ConnectionError("down")
        assert RedisCache(client=client).ping() is False


class TestBackendSelection:
    """Tests for select_backend."""

    def test_redis_skipped_without_url(self, tmp_path):
        config = AppConfig(cache_backends=["redis", "memory"], redis_url=None)
        assert select_backend(config).name == "memory"

    def test_unavailable_redis_falls_through(self, tmp_path):
        config = AppConfig(cache_backends=["redis", "file"], redis_url="redis://localhost:1/0",
                           cache_dir=str(tmp_path))
        with mock.patch.object(RedisCache, "ping", return_value=False):
            assert select_backend(config).name == "file"

    def test_nothing_available(self):
        config = AppConfig(cache_backends=["redis"], redis_url=None)
        with pytest.raises(ConfigurationError):
            select_backend(config)


class TestMakeKey:
    def test_deterministic(self):
        assert make_key("SELECT 1", {"a": 1, "b": 2}) == make_key("SELECT 1", {"b": 2, "a": 1})
        assert make_key("SELECT 1") != make_key("SELECT 2")
