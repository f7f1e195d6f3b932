import time
from collections.abc import AsyncIterator
from typing import Any

import pytest
from dirty_equals import IsFloat, IsInt
from inline_snapshot import snapshot

from kv_structures import StructuredStore
from kv_structures.errors import DeserializationError, InvalidArgumentError, InvalidKeyError, InvalidTTLError
from kv_structures.stores.memory import MemoryStore


@pytest.fixture
def fixture_keys(store: StructuredStore) -> StructuredStore:
    for key in ["user:1", "user:2", "user:3", "post:1", "post:2"]:
        store.put(key, key.upper())
    return store


async def chunked(*chunks: str | bytes) -> AsyncIterator[str | bytes]:
    for chunk in chunks:
        yield chunk


def test_default_primitive_is_memory_store():
    assert isinstance(StructuredStore().primitive, MemoryStore)


class TestScalarOperations:
    @pytest.mark.parametrize(("key", "value"), [("k", "v"), ("empty", ""), ("unicode ✓", "значение"), ("spaced key", '{"json": true}')])
    def test_put_get(self, store: StructuredStore, key: str, value: str):
        store.put(key, value)
        assert store.get(key) == value

    def test_delete_has(self, store: StructuredStore):
        store.put("k", "v")

        assert store.has("k") is True
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.has("k") is False

    def test_incr_decr(self, store: StructuredStore):
        assert store.incr("counter") == 1
        assert store.incr("counter", 4) == 5
        assert store.decr("counter", 2) == 3

    def test_size_and_clear_include_structures(self, store: StructuredStore):
        store.put("k", "v")
        store.rpush("list", "a")

        assert store.size() == 2

        store.clear()

        assert store.size() == 0
        assert store.llen("list") == 0

    @pytest.mark.parametrize("operation", ["get", "delete", "has", "incr", "decr", "ttl", "persist"])
    def test_reserved_keys_are_rejected(self, store: StructuredStore, operation: str):
        store.rpush("list", "a")

        with pytest.raises(InvalidKeyError):
            getattr(store, operation)("\x00L:list")

        assert store.lrange("list", 0, -1) == ["a"]

    def test_reserved_keys_are_rejected_by_writes(self, store: StructuredStore):
        with pytest.raises(InvalidKeyError):
            store.put("\x00L:list", "[]")

        with pytest.raises(InvalidKeyError):
            store.put_batch([("ok", "1"), ("\x00S:set", "[]")])

        with pytest.raises(InvalidKeyError):
            store.expire("\x00H:hash", 100)

        assert store.size() == 0


class TestQueries:
    def test_keys_hide_structures(self, fixture_keys: StructuredStore):
        fixture_keys.rpush("list", "a")
        fixture_keys.zadd("board", 1, "a")

        assert fixture_keys.keys() == ["post:1", "post:2", "user:1", "user:2", "user:3"]
        assert fixture_keys.keys(2) == ["post:1", "post:2"]

    def test_keys_default_limit(self, primitive: MemoryStore):
        store = StructuredStore(primitive=primitive, default_keys_limit=2)
        for key in ["a", "b", "c"]:
            store.put(key, key)

        assert store.keys() == ["a", "b"]

    def test_keys_match(self, fixture_keys: StructuredStore):
        assert sorted(fixture_keys.keys_match("user:*")) == ["user:1", "user:2", "user:3"]
        assert sorted(fixture_keys.keys_match("?ser:?")) == ["user:1", "user:2", "user:3"]
        assert fixture_keys.keys_match("*:2") == ["post:2", "user:2"]
        assert fixture_keys.keys_match("nothing*") == []

    def test_keys_match_hides_structures(self, fixture_keys: StructuredStore):
        fixture_keys.sadd("set", "a")
        assert len(fixture_keys.keys_match("*")) == 5

    def test_scan(self, fixture_keys: StructuredStore):
        assert fixture_keys.scan("post:") == [("post:1", "POST:1"), ("post:2", "POST:2")]
        assert fixture_keys.scan("user:", 1) == [("user:1", "USER:1")]

    def test_scan_all_hides_structures(self, fixture_keys: StructuredStore):
        fixture_keys.hset("hash", "f", "v")
        assert [key for key, _ in fixture_keys.scan("", 3)] == ["post:1", "post:2", "user:1"]

    def test_scan_rejects_reserved_prefix(self, store: StructuredStore):
        with pytest.raises(InvalidKeyError):
            store.scan("\x00")

    def test_range(self, fixture_keys: StructuredStore):
        fixture_keys.rpush("list", "a")

        assert fixture_keys.range("post:2", "user:2") == [("post:2", "POST:2"), ("user:1", "USER:1"), ("user:2", "USER:2")]
        assert [key for key, _ in fixture_keys.range("", "post:9", 10)] == ["post:1", "post:2"]

    def test_count_prefix(self, fixture_keys: StructuredStore):
        fixture_keys.rpush("list", "a")

        assert fixture_keys.count_prefix("user:") == 3
        assert fixture_keys.count_prefix("") == 5

    def test_batches(self, store: StructuredStore):
        store.put_batch([("a", "1"), ("b", "2")])
        assert store.get_batch(["a", "missing", "b"]) == ["1", None, "2"]

    def test_get_batch_miss_drops_ttl_tracking(self, store: StructuredStore):
        store.put("gone", "v", ttl=5_000)
        store.put("kept", "v", ttl=5_000)
        store.primitive.delete("gone")

        assert store.get_batch(["gone", "kept"]) == [None, "v"]
        assert "gone" not in store._ttl
        assert "kept" in store._ttl

    def test_flush_and_compact(self, fixture_keys: StructuredStore):
        fixture_keys.flush()
        fixture_keys.compact()
        assert fixture_keys.get("user:1") == "USER:1"


class TestTimeToLive:
    def test_expire_then_miss(self, store: StructuredStore):
        store.put("k", "v")

        assert store.expire("k", 50) is True

        time.sleep(0.06)

        assert store.ttl("k") == -2
        assert store.get("k") is None

    def test_ttl_states(self, store: StructuredStore):
        assert store.ttl("missing") == -2

        store.put("k", "v")
        assert store.ttl("k") == -1

        store.expire("k", 5_000)
        assert store.ttl("k") == IsInt(gt=4_000, le=5_000)

    def test_put_with_ttl(self, store: StructuredStore):
        store.put("k", "v", ttl=5_000)
        assert store.ttl("k") == IsInt(gt=4_000, le=5_000)

    def test_put_without_ttl_clears_ttl(self, store: StructuredStore):
        store.put("k", "v", ttl=50)
        store.put("k", "v2")

        assert store.ttl("k") == -1

        time.sleep(0.06)

        assert store.get("k") == "v2"

    def test_put_rejects_negative_ttl(self, store: StructuredStore):
        with pytest.raises(InvalidTTLError):
            store.put("k", "v", ttl=-1)

        assert store.has("k") is False

    def test_persist(self, store: StructuredStore):
        store.put("k", "v", ttl=50)

        assert store.persist("k") is True
        assert store.persist("missing") is False

        time.sleep(0.06)

        assert store.get("k") == "v"
        assert store.ttl("k") == -1

    def test_delete_drops_tracking(self, store: StructuredStore):
        store.put("k", "v", ttl=5_000)
        store.delete("k")
        store.put("k", "v")

        assert store.ttl("k") == -1

    def test_expire_missing_key(self, store: StructuredStore):
        assert store.expire("missing", 100) is False


class TestCursorScans:
    def test_paged_scan(self, store: StructuredStore):
        for index in range(1, 6):
            store.put(f"user:{index}", str(index))
        store.put("post:1", "p")

        pages = []
        cursor = 0
        while True:
            page = store.paged_scan("user:", cursor=cursor, count=2)
            pages.append(page)
            if page.done:
                break
            cursor = page.cursor

        assert [len(page.entries) for page in pages] == [2, 2, 1]
        assert pages[-1].done is True

        entries = [entry for page in pages for entry in page.entries]
        assert entries == store.scan("user:")

    def test_paged_scan_default_count(self, primitive: MemoryStore):
        store = StructuredStore(primitive=primitive, default_scan_count=3)
        for index in range(5):
            store.put(f"k{index}", str(index))

        assert len(store.paged_scan().entries) == 3

    def test_paged_scan_hides_structures(self, store: StructuredStore):
        store.rpush("list", "a")
        store.put("k", "v")

        page = store.paged_scan(count=10)

        assert page.entries == [("k", "v")]
        assert page.done is True

    def test_paged_scan_rejects_bad_count(self, store: StructuredStore):
        with pytest.raises(InvalidArgumentError):
            store.paged_scan("user:", count=0)

    def test_iterate(self, store: StructuredStore):
        store.sadd("set", "a")
        for index in range(7):
            store.put(f"k{index}", str(index))

        iterator = store.iterate(batch_size=3)

        assert [key for key, _ in iterator] == [f"k{index}" for index in range(7)]
        assert len(list(iterator)) == 7


class TestStructures:
    def test_lists(self, store: StructuredStore):
        store.rpush("k", "a")
        store.rpush("k", "b")
        assert store.lrange("k", 0, -1) == ["a", "b"]

        store.lpush("k2", "a", "b", "c")
        assert store.lrange("k2", 0, -1) == ["a", "b", "c"]

        assert store.llen("k2") == 3
        assert store.lindex("k2", -1) == "c"
        assert store.lset("k2", 0, "z") is True
        assert store.lpop("k2") == "z"
        assert store.rpop("k2") == "c"

    def test_sets(self, store: StructuredStore):
        assert store.sadd("s", "a", "b") == 2
        assert store.sismember("s", "a") is True
        assert store.srem("s", "a") is True
        assert store.smembers("s") == ["b"]
        assert store.scard("s") == 1

    def test_hashes(self, store: StructuredStore):
        assert store.hset("h", "name", "alice") == 1
        store.hmset("h", {"age": "30"})

        assert store.hget("h", "name") == "alice"
        assert store.hgetall("h") == {"name": "alice", "age": "30"}
        assert store.hexists("h", "age") is True
        assert store.hkeys("h") == ["name", "age"]
        assert store.hvals("h") == ["alice", "30"]
        assert store.hlen("h") == 2
        assert store.hincrby("h", "age", 1) == 31
        assert store.hdel("h", "age") == 1

    def test_sorted_sets(self, store: StructuredStore):
        store.zadd("board", 100, "alice")
        store.zadd("board", 50, "bob")
        assert store.zrange("board", 0, -1) == ["bob", "alice"]

        store.zadd("scores", 10, "a", 20, "b", 30, "c")
        assert store.zrangebyscore("scores", 10, 20) == ["a", "b"]
        assert store.zrangebyscore("scores", "-inf", "+inf", with_scores=True, limit=(2, 5)) == [("c", 30.0)]
        assert store.zrevrange("scores", 0, 1) == ["c", "b"]
        assert store.zscore("scores", "b") == 20.0
        assert store.zrank("scores", "b") == 1
        assert store.zcard("scores") == 3
        assert store.zcount("scores", 15, 35) == 2
        assert store.zincrby("scores", 1.5, "a") == 11.5
        assert store.zrem("scores", "a") == 1

    def test_structure_records_do_not_collide_with_plain_keys(self, store: StructuredStore):
        store.put("k", "plain")
        store.rpush("k", "a")
        store.sadd("k", "b")
        store.hset("k", "f", "c")
        store.zadd("k", 1, "d")

        assert store.get("k") == "plain"
        assert store.lrange("k", 0, -1) == ["a"]
        assert store.smembers("k") == ["b"]
        assert store.hgetall("k") == {"f": "c"}
        assert store.zrange("k", 0, -1) == ["d"]
        assert store.size() == 5
        assert store.keys() == ["k"]


class TestPubSub:
    def test_publish_subscribe(self, store: StructuredStore):
        received: list[tuple[Any, str]] = []

        def first(message: Any, channel: str) -> None:
            received.append((message, channel))

        def second(message: Any, channel: str) -> None:
            received.append((message, channel))

        store.subscribe("news", first)
        store.subscribe("news", second)

        assert store.publish("news", "hello") == 2
        assert received == [("hello", "news"), ("hello", "news")]

        store.unsubscribe("news", first)
        assert store.publish("news", "again") == 1

    def test_close_drops_subscriptions(self, store: StructuredStore):
        store.subscribe("news", lambda message, channel: None)
        store.close()

        assert store.publish("news", "hello") == 0


class TestBulk:
    def test_import_json_array(self, store: StructuredStore):
        payload = '[{"id": "a", "name": "alice"}, {"id": 7, "name": "bob"}, {"name": "carol"}]'

        assert store.import_json(payload, prefix="user:") == 3
        assert store.get("user:a") == '{"id":"a","name":"alice"}'
        assert store.get("user:7") == '{"id":7,"name":"bob"}'
        assert store.get("user:2") == '{"name":"carol"}'
        assert store.keys() == ["user:2", "user:7", "user:a"]

    def test_import_json_index_fallback(self, store: StructuredStore):
        assert store.import_json('[{"name": "a"}, {"name": "b"}]') == 2
        assert store.keys() == ["0", "1"]

    def test_import_json_object(self, store: StructuredStore):
        assert store.import_json('{"a": 1, "b": {"nested": true}}', prefix="cfg:", batch_size=1) == 2
        assert store.get_batch(["cfg:a", "cfg:b"]) == ["1", '{"nested":true}']

    def test_import_json_invalid_payload(self, store: StructuredStore):
        with pytest.raises(DeserializationError):
            store.import_json("42")

        with pytest.raises(InvalidArgumentError):
            store.import_json("[]", batch_size=0)

    def test_import_json_clears_ttl(self, store: StructuredStore):
        store.put("a", "old", ttl=5_000)
        store.import_json('{"a": 1}')

        assert store.ttl("a") == -1

    async def test_import_json_stream(self, store: StructuredStore):
        imported = await store.import_json_stream(chunked('[{"id": "x", "v": 1},', b' {"id": "y", "v": 2}]'), prefix="item:")

        assert imported == 2
        assert store.export_json(prefix="item:") == snapshot({"x": {"id": "x", "v": 1}, "y": {"id": "y", "v": 2}})

    async def test_import_json_stream_invalid_payload(self, store: StructuredStore):
        with pytest.raises(DeserializationError):
            await store.import_json_stream(chunked("[1, 2"))

    def test_export_json(self, store: StructuredStore):
        store.put("json", '{"a": [1, 2]}')
        store.put("number", "42")
        store.put("raw", "not json")
        store.rpush("list", "hidden")

        assert store.export_json() == snapshot({"json": {"a": [1, 2]}, "number": 42, "raw": "not json"})

    def test_export_json_prefix_and_limit(self, fixture_keys: StructuredStore):
        assert fixture_keys.export_json(prefix="user:", limit=2) == {"1": "USER:1", "2": "USER:2"}


class TestStats:
    def test_stats(self, store: StructuredStore):
        store.put("k", "v" * 100)
        store.get("k")
        store.get("missing")
        store.rpush("list", "a")

        stats = store.stats()

        assert stats.total_ops == 4
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == IsFloat(approx=0.25)
        assert stats.key_count == 2
        assert stats.raw_bytes == 105
        assert stats.compressed_bytes > 0
        assert stats.compression_ratio == IsFloat(gt=0)

    def test_publish_is_counted(self, store: StructuredStore):
        store.subscribe("news", lambda message, channel: None)
        store.publish("news", "hello")
        store.unsubscribe("news")

        assert store.stats().total_ops == 1

    def test_structures_survive_many_plain_writes(self, store: StructuredStore):
        store.rpush("list", "a")

        for index in range(5_000):
            store.put(f"key:{index}", "v")

        assert store.lrange("list", 0, -1) == ["a"]

    def test_stats_empty(self, store: StructuredStore):
        stats = store.stats()

        assert stats.total_ops == 0
        assert stats.hit_rate == 0.0

    def test_context_manager_releases_side_tables(self, primitive: MemoryStore):
        with StructuredStore(primitive=primitive) as store:
            store.put("k", "v", ttl=5_000)
            assert store.ttl("k") == IsInt(gt=0)

        assert store.ttl("k") == -1
