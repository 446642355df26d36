"""
Pytest configuration for oauth_client. In-memory SQLite and fixed provider endpoints,
set before oauth_client.config is imported.
"""
import os

import pytest

os.environ["OAUTH_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["OAUTH_SESSION_BACKEND"] = "memory"
os.environ["OAUTH_CLIENT_ID"] = "test-client"
os.environ["OAUTH_AUTH_URL"] = "https://provider.example/oauth/authorize"
os.environ["OAUTH_TOKEN_URL"] = "https://provider.example/oauth/token"
os.environ["OAUTH_USERINFO_URL"] = "https://provider.example/oauth/userinfo"
os.environ["OAUTH_REDIRECT_URI"] = "http://testserver/oauth/callback"
os.environ["OAUTH_SCOPE"] = "openid profile email"
for _name in ("OAUTH_CLIENT_SECRET", "OAUTH_DEMO_MODE", "OAUTH_FAIL_CLOSED_ON_STATE_MISMATCH"):
    os.environ.pop(_name, None)


class FakeClock:
    """Settable time source for TTL tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider_config():
    from oauth_client.config import ProviderConfig

    return ProviderConfig(
        client_id="test-client",
        authorization_endpoint="https://provider.example/oauth/authorize",
        token_endpoint="https://provider.example/oauth/token",
        userinfo_endpoint="https://provider.example/oauth/userinfo",
        redirect_uri="http://testserver/oauth/callback",
        scope="openid profile email",
    )
