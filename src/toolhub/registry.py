"""Workspace-wide server registry.

A single JSON document mapping lowercase server name to URL. The registry
is global: every user of every workspace sees the same entries.
"""

import json

import structlog

from .exceptions import RegistryConflictError
from .storage import SERVERS_CONFIG_KEY, KeyValueStore

logger = structlog.get_logger(__name__)


def _parse_servers(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("server_registry_corrupt")
        return {}
    if not isinstance(data, dict):
        logger.warning("server_registry_corrupt", type=type(data).__name__)
        return {}
    return {str(name): str(url) for name, url in data.items()}


class ServerRegistry:
    """CRUD over the ``servers:config`` document.

    Mutations are read-modify-write with compare-and-swap, retried up to
    ``max_retries`` times.

    Note: both the name and the URL are lowercased on write.
    """

    def __init__(self, kv: KeyValueStore, max_retries: int = 5) -> None:
        self.kv = kv
        self.max_retries = max_retries

    async def list(self) -> dict[str, str]:
        """Return ``{name: url}`` for all registered servers."""
        return _parse_servers(await self.kv.get(SERVERS_CONFIG_KEY))

    async def get(self, name: str) -> str | None:
        servers = await self.list()
        return servers.get(name.lower())

    async def upsert(self, name: str, url: str) -> None:
        """Register or update a server."""
        name, url = name.lower(), url.lower()

        def mutate(servers: dict[str, str]) -> bool:
            if servers.get(name) == url:
                return False
            servers[name] = url
            return True

        if await self._mutate(mutate):
            logger.info("server_registered", server=name, url=url)

    async def add_if_absent(self, name: str, url: str) -> bool:
        """Register a server only when no entry exists for ``name``."""
        name, url = name.lower(), url.lower()

        def mutate(servers: dict[str, str]) -> bool:
            if name in servers:
                return False
            servers[name] = url
            return True

        added = await self._mutate(mutate)
        if added:
            logger.info("server_registered", server=name, url=url)
        return added

    async def remove(self, name: str) -> None:
        """Remove a server; removing an unknown name is a no-op."""
        name = name.lower()

        def mutate(servers: dict[str, str]) -> bool:
            return servers.pop(name, None) is not None

        if await self._mutate(mutate):
            logger.info("server_removed", server=name)

    async def _mutate(self, mutate) -> bool:
        """Apply ``mutate`` to the document under CAS.

        ``mutate`` edits the dict in place and returns whether it changed
        anything; unchanged documents are not written.
        """
        for attempt in range(1, self.max_retries + 1):
            raw = await self.kv.get(SERVERS_CONFIG_KEY)
            servers = _parse_servers(raw)
            if not mutate(servers):
                return False
            if await self.kv.compare_and_swap(SERVERS_CONFIG_KEY, raw, json.dumps(servers)):
                return True
            logger.info("server_registry_retry", attempt=attempt)

        raise RegistryConflictError(
            f"servers:config changed concurrently {self.max_retries} times in a row"
        )
