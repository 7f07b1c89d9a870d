"""Per-user credential storage.

Holds encrypted API keys, encrypted OAuth token records and short-lived
OAuth flow state. This module is the only place that persists secrets, and
it only ever writes ciphertext.

Reads that fail to decrypt or parse come back as ``Corrupt`` rather than
raising; callers that only care about usable credentials call
``value_or_none()``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
import json
from typing import Any, Generic, TypeVar

import structlog

from .crypto import decrypt, encrypt
from .storage import KeyValueStore, api_key_key, oauth_state_key, oauth_token_key

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_STATE_TTL_SECONDS = 600


@dataclass(frozen=True)
class Present(Generic[T]):
    value: T

    def value_or_none(self) -> T:
        return self.value


@dataclass(frozen=True)
class Absent:
    def value_or_none(self) -> None:
        return None


@dataclass(frozen=True)
class Corrupt:
    reason: str

    def value_or_none(self) -> None:
        return None


Credential = Present[T] | Absent | Corrupt

ABSENT = Absent()


@dataclass(frozen=True)
class OAuthFlowState:
    """Correlates an authorization request with its callback."""

    user_id: str
    service: str
    timestamp: int

    def to_json(self) -> str:
        return json.dumps(
            {"userId": self.user_id, "service": self.service, "timestamp": self.timestamp}
        )

    @classmethod
    def from_json(cls, raw: str) -> "OAuthFlowState | None":
        try:
            data = json.loads(raw)
            return cls(
                user_id=str(data["userId"]),
                service=str(data["service"]),
                timestamp=int(data.get("timestamp", 0)),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            return None


def _extract_api_key(raw: str) -> str | None:
    """Pull the ciphertext out of a stored API-key record.

    Records are JSON objects with an ``apiKey`` field; older records hold
    the bare ciphertext.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(data, dict):
        value = data.get("apiKey")
        return str(value) if value else None
    return raw


class CredentialStore:
    """Encrypted credential records on top of the key-value store."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    # === API keys ===

    async def get_api_key(self, user_id: str, server_name: str) -> str | None:
        """Return the stored ciphertext for (user, server).

        Tries the name as given, then lowercased: records were historically
        written under either casing.
        """
        for name in dict.fromkeys((server_name, server_name.lower())):
            raw = await self.kv.get(api_key_key(user_id, name))
            if raw:
                ciphertext = _extract_api_key(raw)
                if ciphertext:
                    return ciphertext
        return None

    async def put_api_key(self, user_id: str, server_name: str, ciphertext: str) -> None:
        """Store (or overwrite) the ciphertext for (user, server).

        New records are keyed by the lowercased name, matching registry
        names; ``serverName`` keeps the casing the user typed.
        """
        record = {
            "apiKey": ciphertext,
            "userId": user_id,
            "serverName": server_name,
            "createdAt": datetime.now(UTC).isoformat(),
        }
        await self.kv.put(api_key_key(user_id, server_name.lower()), json.dumps(record))

    async def has_api_key(self, user_id: str, server_name: str) -> bool:
        return await self.get_api_key(user_id, server_name) is not None

    async def store_api_key(
        self, user_id: str, server_name: str, api_key: str, passphrase: str | None
    ) -> None:
        """Encrypt and store a plaintext API key."""
        await self.put_api_key(user_id, server_name, encrypt(api_key, passphrase))
        logger.info("api_key_saved", user_id=user_id, server=server_name)

    async def load_api_key(
        self, user_id: str, server_name: str, passphrase: str | None
    ) -> Credential[str]:
        """Fetch and decrypt the API key for (user, server)."""
        ciphertext = await self.get_api_key(user_id, server_name)
        if ciphertext is None:
            return ABSENT
        plaintext = decrypt(ciphertext, passphrase)
        if not plaintext:
            logger.warning("api_key_undecryptable", user_id=user_id, server=server_name)
            return Corrupt("decryption produced no data")
        return Present(plaintext)

    # === OAuth flow state ===

    async def put_state(
        self, state: str, payload: OAuthFlowState, ttl: int = DEFAULT_STATE_TTL_SECONDS
    ) -> None:
        await self.kv.put(oauth_state_key(state), payload.to_json(), ttl_seconds=ttl)

    async def get_state(self, state: str) -> OAuthFlowState | None:
        raw = await self.kv.get(oauth_state_key(state))
        return OAuthFlowState.from_json(raw) if raw else None

    async def delete_state(self, state: str) -> None:
        await self.kv.delete(oauth_state_key(state))

    async def consume_state(self, state: str) -> OAuthFlowState | None:
        """Atomically fetch and delete a flow state.

        Only one of several concurrent callbacks carrying the same state
        gets a payload back.
        """
        raw = await self.kv.get_and_delete(oauth_state_key(state))
        return OAuthFlowState.from_json(raw) if raw else None

    # === OAuth tokens ===

    async def put_token(self, user_id: str, service: str, ciphertext: str) -> None:
        await self.kv.put(oauth_token_key(user_id, service), ciphertext)

    async def get_token(self, user_id: str, service: str) -> str | None:
        return await self.kv.get(oauth_token_key(user_id, service))

    async def store_token_record(
        self, user_id: str, service: str, record: dict[str, Any], passphrase: str | None
    ) -> None:
        """Encrypt a token record as one JSON blob and store it."""
        await self.put_token(user_id, service, encrypt(json.dumps(record), passphrase))

    async def load_token_record(
        self, user_id: str, service: str, passphrase: str | None
    ) -> Credential[dict[str, Any]]:
        """Fetch, decrypt and parse the token record for (user, service)."""
        ciphertext = await self.get_token(user_id, service)
        if not ciphertext:
            return ABSENT
        plaintext = decrypt(ciphertext, passphrase)
        if not plaintext:
            return Corrupt("decryption produced no data")
        try:
            record = json.loads(plaintext)
        except json.JSONDecodeError:
            return Corrupt("token record is not JSON")
        if not isinstance(record, dict):
            return Corrupt("token record is not an object")
        return Present(record)
