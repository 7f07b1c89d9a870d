"""Error taxonomy for the tool hub.

Every error carries ``user_message``: plain text that is safe to show a
chat user or put in an HTTP body. Internal details stay in ``str(exc)``
and in the logs.
"""

from http import HTTPStatus


class HubError(Exception):
    """Base exception for all tool hub errors."""

    user_message = "Something went wrong. Please try again."
    http_status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None, *, user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


# ========================================
# Operator errors
# ========================================


class ConfigurationError(HubError):
    """Missing passphrase or provider configuration."""

    user_message = "The service is not configured correctly. Please contact an administrator."


class RegistryConflictError(HubError):
    """Server registry kept changing underneath a mutation."""

    user_message = "The server list is being updated by someone else. Please try again."


# ========================================
# OAuth flow errors (user-recoverable)
# ========================================


class OAuthFlowError(HubError):
    """Base for errors that abort an OAuth flow at the user's request."""

    http_status = HTTPStatus.BAD_REQUEST


class InvalidServiceError(OAuthFlowError):
    """Service is not in the configured provider allow-list."""

    user_message = "That service does not support sign-in here."

    def __init__(self, service: str):
        self.service = service
        super().__init__(
            f"Unknown OAuth service: {service!r}",
            user_message=f'OAuth is not available for service "{service}".',
        )


class MissingParameterError(OAuthFlowError):
    """Callback arrived without ``code`` or ``state``."""

    user_message = "Missing code or state parameter"


class InvalidOrExpiredStateError(OAuthFlowError):
    """Flow state is unknown, already used or expired."""

    user_message = "Invalid or expired state"


class ProviderDeniedError(OAuthFlowError):
    """Provider redirected back with an ``error`` parameter."""

    def __init__(self, error: str):
        self.error = error
        super().__init__(
            f"Provider returned error: {error}",
            user_message=f"OAuth error: {error}",
        )


# ========================================
# Remote errors
# ========================================


class TokenExchangeError(HubError):
    """Authorization code could not be exchanged for a token."""

    user_message = "Authentication failed while contacting the provider. Please try again."
