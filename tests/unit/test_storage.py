import pytest

from toolhub.storage import (
    RedisKeyValueStore,
    api_key_key,
    conversation_key,
    oauth_state_key,
    oauth_token_key,
)


def test_key_layout():
    assert api_key_key("U1", "github") == "auth:U1:github"
    assert oauth_state_key("abc") == "oauth:state:abc"
    assert oauth_token_key("U1", "sentry") == "oauth:token:U1:sentry"
    assert conversation_key("t1") == "conversation:t1"


class TestRedisKeyValueStore:
    @pytest.mark.asyncio
    async def test_put_get_delete(self, kv):
        await kv.put("k", "v")
        assert await kv.get("k") == "v"

        await kv.delete("k")
        assert await kv.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, kv):
        await kv.delete("missing")

    @pytest.mark.asyncio
    async def test_put_with_ttl(self, kv, fake_redis):
        await kv.put("k", "v", ttl_seconds=600)

        ttl = await fake_redis.ttl("k")
        assert 0 < ttl <= 600

    @pytest.mark.asyncio
    async def test_put_without_ttl_persists(self, kv, fake_redis):
        await kv.put("k", "v")

        assert await fake_redis.ttl("k") == -1

    @pytest.mark.asyncio
    async def test_get_and_delete_returns_value_once(self, kv):
        await kv.put("k", "v")

        assert await kv.get_and_delete("k") == "v"
        assert await kv.get_and_delete("k") is None
        assert await kv.get("k") is None

    @pytest.mark.asyncio
    async def test_compare_and_swap_creates_missing_key(self, kv):
        assert await kv.compare_and_swap("doc", None, "v1") is True
        assert await kv.get("doc") == "v1"

    @pytest.mark.asyncio
    async def test_compare_and_swap_replaces_expected_value(self, kv):
        await kv.put("doc", "v1")

        assert await kv.compare_and_swap("doc", "v1", "v2") is True
        assert await kv.get("doc") == "v2"

    @pytest.mark.asyncio
    async def test_compare_and_swap_rejects_stale_expectation(self, kv):
        await kv.put("doc", "v2")

        assert await kv.compare_and_swap("doc", "v1", "v3") is False
        assert await kv.get("doc") == "v2"

    @pytest.mark.asyncio
    async def test_compare_and_swap_expecting_absent_key(self, kv):
        await kv.put("doc", "v1")

        assert await kv.compare_and_swap("doc", None, "v2") is False

    @pytest.mark.asyncio
    async def test_close(self, fake_redis):
        store = RedisKeyValueStore(fake_redis)

        await store.close()
