import pytest

from toolhub.exceptions import ConfigurationError, InvalidServiceError
from toolhub.providers import OAuthProviderConfig, ProviderTable


@pytest.fixture
def providers(settings):
    return ProviderTable.from_settings(settings)


def test_builtin_services(providers):
    assert set(providers.services()) == {"sentry", "github"}
    assert providers.is_oauth_capable("GitHub")
    assert not providers.is_oauth_capable("demo")


def test_builtin_endpoints(providers):
    github = providers.get("github")
    sentry = providers.get("sentry")

    assert github.token_url == "https://github.com/login/oauth/access_token"
    assert github.default_server_url == "https://api.githubcopilot.com/mcp/"
    assert github.refresh_url is None
    assert sentry.scope == "project:read event:read"
    assert sentry.refresh_url == sentry.token_url


def test_client_credentials_come_from_settings(providers):
    assert providers.get("github").client_id == "github-id"
    assert providers.get("sentry").client_secret == "sentry-secret"


def test_unknown_service(providers):
    with pytest.raises(InvalidServiceError) as exc_info:
        providers.get("gitlab")

    assert exc_info.value.user_message == 'OAuth is not available for service "gitlab".'


def test_auth_header_scheme_is_table_driven(providers):
    assert providers.auth_header("sentry", "k") == {"Authorization": "Token k"}
    assert providers.auth_header("github", "k") == {"Authorization": "Bearer k"}
    assert providers.auth_header("demo", "k") == {"Authorization": "Bearer k"}


def test_register_scheme_for_plain_server(providers):
    providers.register_scheme("Legacy", "Token")

    assert providers.auth_header("legacy", "k") == {"Authorization": "Token k"}


def test_require_client_reports_missing_fields():
    config = OAuthProviderConfig(
        auth_url="https://p.test/auth",
        token_url="https://p.test/token",
        default_server_url="https://p.test/mcp",
        client_id="id",
    )

    with pytest.raises(ConfigurationError, match="client_secret, redirect_uri"):
        config.require_client("p")
