"""OAuth authorization-code flow controller.

Flow per (user, service) attempt::

    start()            -> PENDING    state stored with a TTL
    handle_callback()  -> VERIFIED   state consumed atomically
                       -> CONSUMED   token stored, server registered
                       -> REJECTED   denied / missing params / unknown state
                       -> FAILED     code exchange failed (state already gone)

Token resolution is fail-soft: anything wrong with a stored record reads as
"no token" so one bad record never breaks tool listing for a user.
"""

from collections.abc import Callable
from dataclasses import dataclass
import html
import secrets
import time
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from .credentials import ABSENT, Corrupt, Credential, CredentialStore, OAuthFlowState, Present
from .exceptions import (
    ConfigurationError,
    InvalidOrExpiredStateError,
    MissingParameterError,
    ProviderDeniedError,
    TokenExchangeError,
)
from .providers import OAuthProviderConfig, ProviderTable
from .registry import ServerRegistry

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_FIELDS = ("access_token", "accessToken", "token")


@dataclass(frozen=True)
class OAuthResult:
    """Outcome of a successful callback."""

    user_id: str
    service: str
    server_registered: bool


def extract_access_token(record: dict[str, Any]) -> str | None:
    """Read the access token under whichever field name the provider used."""
    for field in ACCESS_TOKEN_FIELDS:
        value = record.get(field)
        if value:
            return str(value)
    return None


def token_expiry_ms(record: dict[str, Any]) -> float | None:
    """Expiry instant in epoch milliseconds, or None if the token never expires.

    ``issued_at`` (ms) + ``expires_in`` (s) wins over ``expires_at`` (s).
    """
    issued_at = record.get("issued_at")
    expires_in = record.get("expires_in")
    if issued_at and expires_in:
        return float(issued_at) + float(expires_in) * 1000
    expires_at = record.get("expires_at")
    if expires_at:
        return float(expires_at) * 1000
    return None


def render_success_page(service: str) -> str:
    """HTML shown in the browser after a completed flow."""
    name = html.escape(service)
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>Authentication Complete</title>
  <style>
    body {{ font-family: Arial, sans-serif; text-align: center; padding: 50px; }}
    .success {{ color: #28a745; }}
  </style>
</head>
<body>
  <h1 class="success">Authentication Complete</h1>
  <p>You have successfully authenticated with {name}.</p>
  <p>You can now close this window and return to the chat.</p>
  <script>setTimeout(() => window.close(), 3000);</script>
</body>
</html>
"""


class OAuthFlowController:
    """Runs OAuth flows and resolves stored tokens.

    Args:
        credentials: Credential store for flow state and token records.
        registry: Server registry, bootstrapped on first successful auth.
        providers: Allow-list of OAuth services.
        passphrase: Encryption passphrase for token records.
        state_ttl: Seconds an unconsumed flow state stays valid.
        http_timeout: Timeout for exchange and refresh requests.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        registry: ServerRegistry,
        providers: ProviderTable,
        passphrase: str | None,
        state_ttl: int = 600,
        http_timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.credentials = credentials
        self.registry = registry
        self.providers = providers
        self.passphrase = passphrase
        self.state_ttl = state_ttl
        self.http_timeout = http_timeout
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # === Flow ===

    async def start(self, user_id: str, service: str) -> str:
        """Begin a flow and return the provider authorization URL.

        Raises:
            InvalidServiceError: If ``service`` is not a configured provider.
            ConfigurationError: If the provider has no client credentials.
        """
        service = service.lower()
        provider = self.providers.get(service).require_client(service)

        state = secrets.token_urlsafe(32)
        await self.credentials.put_state(
            state,
            OAuthFlowState(user_id=user_id, service=service, timestamp=self._now_ms()),
            ttl=self.state_ttl,
        )
        query = urlencode(
            {
                "client_id": provider.client_id,
                "redirect_uri": provider.redirect_uri,
                "scope": provider.scope,
                "state": state,
                "response_type": "code",
            }
        )
        logger.info("oauth_flow_started", user_id=user_id, service=service)
        return f"{provider.auth_url}?{query}"

    async def handle_callback(
        self,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> OAuthResult:
        """Complete a flow from the provider redirect.

        Raises:
            ProviderDeniedError: Provider sent back ``error``.
            MissingParameterError: ``code`` or ``state`` missing.
            InvalidOrExpiredStateError: State unknown, expired or already used.
            TokenExchangeError: Code exchange failed; nothing was stored.
        """
        if error:
            logger.info("oauth_provider_denied", error=error)
            raise ProviderDeniedError(error)
        if not code or not state:
            raise MissingParameterError()
        if not self.passphrase:
            raise ConfigurationError("Encryption key is required")

        flow = await self.credentials.consume_state(state)
        if flow is None:
            logger.info("oauth_state_invalid")
            raise InvalidOrExpiredStateError()

        provider = self.providers.get(flow.service).require_client(flow.service)
        token_data = await self._exchange_code(flow.service, provider, code)
        token_data["issued_at"] = self._now_ms()

        await self.credentials.store_token_record(
            flow.user_id, flow.service, token_data, self.passphrase
        )
        registered = await self.registry.add_if_absent(flow.service, provider.default_server_url)
        logger.info(
            "oauth_flow_completed",
            user_id=flow.user_id,
            service=flow.service,
            server_registered=registered,
        )
        return OAuthResult(user_id=flow.user_id, service=flow.service, server_registered=registered)

    async def _exchange_code(
        self, service: str, provider: OAuthProviderConfig, code: str
    ) -> dict[str, Any]:
        data = {
            "client_id": provider.client_id,
            "client_secret": provider.client_secret,
            "code": code,
            "redirect_uri": provider.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                resp = await client.post(
                    provider.token_url, data=data, headers={"Accept": "application/json"}
                )
                resp.raise_for_status()
                token_data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("oauth_token_exchange_failed", service=service, error=str(exc))
            raise TokenExchangeError(f"Token exchange failed for {service}") from exc

        # Some providers answer 200 with an error body.
        if not isinstance(token_data, dict) or not extract_access_token(token_data):
            error = token_data.get("error") if isinstance(token_data, dict) else None
            logger.warning("oauth_token_exchange_failed", service=service, error=error)
            raise TokenExchangeError(f"Token exchange for {service} returned no access token")
        return token_data

    # === Token resolution ===

    async def resolve_credential(
        self, user_id: str, service: str, passphrase: str | None = None
    ) -> Credential[str]:
        """Resolve a usable access token, refreshing it when expired.

        ``passphrase`` defaults to the controller's own.
        """
        service = service.lower()
        passphrase = passphrase or self.passphrase
        if not passphrase:
            return ABSENT

        loaded = await self.credentials.load_token_record(user_id, service, passphrase)
        if not isinstance(loaded, Present):
            if isinstance(loaded, Corrupt):
                logger.warning(
                    "oauth_token_unreadable", user_id=user_id, service=service, reason=loaded.reason
                )
            return loaded
        record = loaded.value

        try:
            expiry = token_expiry_ms(record)
        except (TypeError, ValueError):
            return Corrupt("token expiry fields are not numeric")

        if expiry is not None and self._now_ms() >= expiry:
            logger.info("oauth_token_expired", user_id=user_id, service=service)
            refreshed = await self.refresh(user_id, service, record, passphrase)
            return Present(refreshed) if refreshed else ABSENT

        token = extract_access_token(record)
        if token is None:
            return Corrupt(f"no access token field in {sorted(record)}")
        return Present(token)

    async def resolve_access_token(
        self, user_id: str, service: str, passphrase: str | None = None
    ) -> str | None:
        return (await self.resolve_credential(user_id, service, passphrase)).value_or_none()

    async def refresh(
        self,
        user_id: str,
        service: str,
        record: dict[str, Any],
        passphrase: str | None = None,
    ) -> str | None:
        """Exchange the refresh token for a new access token.

        Returns None when the provider cannot refresh or the call fails; the
        stored record is left untouched in that case.
        """
        if not self.providers.is_oauth_capable(service):
            return None
        provider = self.providers.get(service)
        refresh_token = record.get("refresh_token")
        if not provider.refresh_url or not refresh_token:
            return None

        data = {
            "client_id": provider.client_id,
            "client_secret": provider.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                resp = await client.post(
                    provider.refresh_url, data=data, headers={"Accept": "application/json"}
                )
                resp.raise_for_status()
                new_record = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("oauth_token_refresh_failed", service=service, error=str(exc))
            return None

        if not isinstance(new_record, dict) or not extract_access_token(new_record):
            logger.warning("oauth_token_refresh_failed", service=service, error="no access token")
            return None

        if not new_record.get("refresh_token"):
            new_record["refresh_token"] = refresh_token
        new_record["issued_at"] = self._now_ms()
        await self.credentials.store_token_record(
            user_id, service, new_record, passphrase or self.passphrase
        )
        logger.info("oauth_token_refreshed", user_id=user_id, service=service)
        return extract_access_token(new_record)
