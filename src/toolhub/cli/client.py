from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from toolhub.components import HubComponents, build_components
from toolhub.config import get_settings
from toolhub.storage import KeyValueStore, RedisKeyValueStore


def get_store() -> KeyValueStore:
    return RedisKeyValueStore.from_url(get_settings().redis_url)


@asynccontextmanager
async def open_components() -> AsyncIterator[HubComponents]:
    """Hub components over a fresh store connection, closed on exit."""
    store = get_store()
    try:
        yield build_components(store, get_settings())
    finally:
        close = getattr(store, "close", None)
        if close is not None:
            await close()
