import json
from unittest.mock import AsyncMock

import pytest

from toolhub.exceptions import RegistryConflictError
from toolhub.registry import ServerRegistry
from toolhub.storage import SERVERS_CONFIG_KEY


@pytest.fixture
def registry(kv):
    return ServerRegistry(kv)


class TestServerRegistry:
    @pytest.mark.asyncio
    async def test_empty_registry(self, registry):
        assert await registry.list() == {}

    @pytest.mark.asyncio
    async def test_upsert_lowercases_name_and_url(self, registry, kv):
        await registry.upsert("Demo", "https://X.test/MCP")

        assert await registry.list() == {"demo": "https://x.test/mcp"}
        assert json.loads(await kv.get(SERVERS_CONFIG_KEY)) == {"demo": "https://x.test/mcp"}

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, registry):
        await registry.upsert("demo", "https://x.test/mcp")
        await registry.upsert("demo", "https://x.test/mcp")

        assert await registry.list() == {"demo": "https://x.test/mcp"}

    @pytest.mark.asyncio
    async def test_upsert_updates_url(self, registry):
        await registry.upsert("demo", "https://old.test")
        await registry.upsert("demo", "https://new.test")

        assert await registry.get("DEMO") == "https://new.test"

    @pytest.mark.asyncio
    async def test_remove_is_case_insensitive_and_idempotent(self, registry):
        await registry.upsert("demo", "https://x.test/mcp")
        await registry.upsert("other", "https://y.test/mcp")

        await registry.remove("Demo")
        await registry.remove("demo")

        assert await registry.list() == {"other": "https://y.test/mcp"}

    @pytest.mark.asyncio
    async def test_add_if_absent_keeps_existing_entry(self, registry):
        assert await registry.add_if_absent("github", "https://a.test") is True
        assert await registry.add_if_absent("github", "https://b.test") is False

        assert await registry.get("github") == "https://a.test"

    @pytest.mark.asyncio
    async def test_corrupt_document_reads_as_empty(self, registry, kv):
        await kv.put(SERVERS_CONFIG_KEY, "{not json")

        assert await registry.list() == {}

    @pytest.mark.asyncio
    async def test_non_object_document_reads_as_empty(self, registry, kv):
        await kv.put(SERVERS_CONFIG_KEY, "[1, 2]")

        assert await registry.list() == {}

    @pytest.mark.asyncio
    async def test_upsert_over_corrupt_document_overwrites_it(self, registry, kv):
        await kv.put(SERVERS_CONFIG_KEY, "{not json")

        await registry.upsert("demo", "https://x.test")

        assert await registry.list() == {"demo": "https://x.test"}


class TestRegistryConcurrency:
    @pytest.mark.asyncio
    async def test_retries_after_lost_race(self, kv):
        real_cas = kv.compare_and_swap
        attempts = 0

        async def racing_cas(key, expected, new):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                # Another writer lands between read and write.
                await kv.put(SERVERS_CONFIG_KEY, json.dumps({"other": "https://y.test"}))
            return await real_cas(key, expected, new)

        kv.compare_and_swap = racing_cas
        registry = ServerRegistry(kv)

        await registry.upsert("demo", "https://x.test")

        assert attempts == 2
        assert await registry.list() == {"other": "https://y.test", "demo": "https://x.test"}

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        kv = AsyncMock()
        kv.get.return_value = None
        kv.compare_and_swap.return_value = False
        registry = ServerRegistry(kv, max_retries=3)

        with pytest.raises(RegistryConflictError):
            await registry.upsert("demo", "https://x.test")

        assert kv.compare_and_swap.await_count == 3

    @pytest.mark.asyncio
    async def test_noop_mutation_does_not_write(self):
        kv = AsyncMock()
        kv.get.return_value = json.dumps({"demo": "https://x.test"})
        registry = ServerRegistry(kv)

        await registry.upsert("demo", "https://x.test")
        await registry.remove("missing")

        kv.compare_and_swap.assert_not_awaited()
