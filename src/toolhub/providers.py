"""Static OAuth provider configuration.

Each OAuth-capable service has one entry in the provider table. The table
also decides which ``Authorization`` scheme a service's tool server expects,
so call sites never branch on service names.
"""

from typing import Literal

from pydantic import BaseModel

from .config import Settings
from .exceptions import ConfigurationError, InvalidServiceError

AuthScheme = Literal["Bearer", "Token"]

DEFAULT_AUTH_SCHEME: AuthScheme = "Bearer"


class OAuthProviderConfig(BaseModel):
    """OAuth endpoints and client credentials for one service."""

    client_id: str = ""
    client_secret: str = ""
    auth_url: str
    token_url: str
    refresh_url: str | None = None
    redirect_uri: str = ""
    scope: str = ""
    default_server_url: str
    auth_scheme: AuthScheme = DEFAULT_AUTH_SCHEME

    def require_client(self, service: str) -> "OAuthProviderConfig":
        """Fail loudly when the client credentials needed for a flow are unset."""
        missing = [
            field
            for field in ("client_id", "client_secret", "redirect_uri")
            if not getattr(self, field)
        ]
        if missing:
            raise ConfigurationError(
                f"OAuth provider {service!r} is missing {', '.join(missing)}"
            )
        return self


def default_providers(settings: Settings) -> dict[str, OAuthProviderConfig]:
    """Built-in providers with client credentials taken from settings."""
    return {
        "sentry": OAuthProviderConfig(
            client_id=settings.sentry_client_id,
            client_secret=settings.sentry_client_secret,
            redirect_uri=settings.sentry_redirect_uri,
            auth_url="https://sentry.io/oauth/authorize/",
            token_url="https://sentry.io/oauth/token/",
            refresh_url="https://sentry.io/oauth/token/",
            scope="project:read event:read",
            default_server_url="https://mcp.sentry.dev/mcp",
            auth_scheme="Token",
        ),
        "github": OAuthProviderConfig(
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            redirect_uri=settings.github_redirect_uri,
            auth_url="https://github.com/login/oauth/authorize",
            token_url="https://github.com/login/oauth/access_token",
            scope="repo read:user",
            default_server_url="https://api.githubcopilot.com/mcp/",
        ),
    }


class ProviderTable:
    """Allow-list of OAuth services keyed by lowercase service id."""

    def __init__(self, providers: dict[str, OAuthProviderConfig] | None = None) -> None:
        self._providers = {name.lower(): cfg for name, cfg in (providers or {}).items()}
        # Header scheme per server name; OAuth providers seed it.
        self._schemes: dict[str, AuthScheme] = {
            name: cfg.auth_scheme for name, cfg in self._providers.items()
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderTable":
        return cls(default_providers(settings))

    def services(self) -> list[str]:
        return list(self._providers)

    def is_oauth_capable(self, service: str) -> bool:
        return service.lower() in self._providers

    def get(self, service: str) -> OAuthProviderConfig:
        """Return the provider config for ``service``.

        Raises:
            InvalidServiceError: If ``service`` is not an OAuth provider.
        """
        try:
            return self._providers[service.lower()]
        except KeyError:
            raise InvalidServiceError(service) from None

    def register_scheme(self, server_name: str, scheme: AuthScheme) -> None:
        """Override the header scheme for a server that is not an OAuth provider."""
        self._schemes[server_name.lower()] = scheme

    def auth_header(self, server_name: str, credential: str) -> dict[str, str]:
        """Build the ``Authorization`` header for ``server_name``."""
        scheme = self._schemes.get(server_name.lower(), DEFAULT_AUTH_SCHEME)
        return {"Authorization": f"{scheme} {credential}"}
