"""
Client configuration. Values come from the environment; defaults are for demo/standalone use.
Provider settings are validated once at startup into an immutable ProviderConfig.
"""
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from oauth_client.errors import ConfigurationError


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Provider registration (client_secret is optional; public clients rely on PKCE alone)
CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "demo-client-id")
CLIENT_SECRET = os.environ.get("OAUTH_CLIENT_SECRET", "").strip() or None

# Provider endpoints
AUTHORIZATION_ENDPOINT = os.environ.get("OAUTH_AUTH_URL", "https://example-oauth-provider.com/oauth/authorize")
TOKEN_ENDPOINT = os.environ.get("OAUTH_TOKEN_URL", "https://example-oauth-provider.com/oauth/token")
USERINFO_ENDPOINT = os.environ.get("OAUTH_USERINFO_URL", "https://example-oauth-provider.com/oauth/userinfo")

# Must match the redirect URI registered at the provider exactly
REDIRECT_URI = os.environ.get("OAUTH_REDIRECT_URI", "http://localhost:3000/oauth/callback")

DEFAULT_SCOPE = os.environ.get("OAUTH_SCOPE", "openid profile email")

# Timeout (seconds) for token and userinfo calls; exceeding it is a transport error
HTTP_TIMEOUT = float(os.environ.get("OAUTH_HTTP_TIMEOUT", "10"))

# Demo mode: /login renders the authorization URL instead of redirecting
DEMO_MODE = _env_bool("OAUTH_DEMO_MODE", False)

# Session storage: "memory" (process-local) or "sql" (SQLAlchemy, see DATABASE_URL)
SESSION_BACKEND = os.environ.get("OAUTH_SESSION_BACKEND", "memory").strip().lower()
DATABASE_URL = os.environ.get("OAUTH_DATABASE_URL", "sqlite:///./oauth_client.db")
# Echo SQL statements to the sqlalchemy.engine logger
DATABASE_ECHO = _env_bool("OAUTH_DATABASE_ECHO", False)
# Seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = float(os.environ.get("OAUTH_SQLITE_BUSY_TIMEOUT", "5"))

# Lifetime of a browser session record (seconds)
SESSION_TTL = int(os.environ.get("OAUTH_SESSION_TTL", "86400"))

SESSION_COOKIE_NAME = "oauth_sid"
COOKIE_SECURE = _env_bool("OAUTH_COOKIE_SECURE", False)

# Delete the pending attempt when the callback state does not match (forces a fresh login)
FAIL_CLOSED_ON_STATE_MISMATCH = _env_bool("OAUTH_FAIL_CLOSED_ON_STATE_MISMATCH", False)

LOG_LEVEL = os.environ.get("OAUTH_LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class ProviderConfig:
    client_id: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str
    redirect_uri: str
    scope: str
    client_secret: str | None = None
    timeout: float = 10.0

    def __post_init__(self):
        if not self.client_id:
            raise ConfigurationError("client_id is required")
        for field_name in ("authorization_endpoint", "token_endpoint", "userinfo_endpoint", "redirect_uri"):
            _require_absolute_url(field_name, getattr(self, field_name))
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")


def _require_absolute_url(name: str, value: str) -> None:
    parsed = urlparse(value or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"{name} must be an absolute http(s) URL, got {value!r}")
    if parsed.fragment:
        raise ConfigurationError(f"{name} must not contain a fragment")


def load_provider_config() -> ProviderConfig:
    """Build ProviderConfig from the values above. Raises ConfigurationError if invalid."""
    return ProviderConfig(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        authorization_endpoint=AUTHORIZATION_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
        userinfo_endpoint=USERINFO_ENDPOINT,
        redirect_uri=REDIRECT_URI,
        scope=DEFAULT_SCOPE,
        timeout=HTTP_TIMEOUT,
    )
