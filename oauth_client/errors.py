"""
Error taxonomy for the client-side authorization flow.
Store and exchanger raise these; the callback validator and LoginService turn them into outcomes.
"""


class OAuthClientError(Exception):
    """Base class for all errors raised by oauth_client."""


class ConfigurationError(OAuthClientError):
    """Missing or malformed provider configuration. Fatal at startup."""


class NoPendingAuthorization(OAuthClientError):
    """Callback for a session that never started a login, or whose attempt was already consumed."""


class ExpiredAuthorization(OAuthClientError):
    """Pending authorization outlived its TTL."""


class StateMismatch(OAuthClientError):
    """Callback state does not match the pending attempt (possible CSRF or stale link)."""


class ProviderError(OAuthClientError):
    """Provider redirected back with an error parameter (e.g. access_denied)."""

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        super().__init__(error if not description else f"{error}: {description}")


class MissingAuthorizationCode(OAuthClientError):
    """State matched but the callback carried neither code nor error."""


class _ProviderHTTPError(OAuthClientError):
    """Provider answered with a non-success status. Body is kept as raw text."""

    def __init__(self, http_status: int, body: str):
        self.http_status = http_status
        self.body = body
        super().__init__(f"HTTP {http_status}")


class TokenExchangeFailed(_ProviderHTTPError):
    """Token endpoint rejected the code exchange or returned an unusable body."""


class IdentityFetchFailed(_ProviderHTTPError):
    """Userinfo endpoint rejected the access token or returned an unusable body."""


class TransportError(OAuthClientError):
    """Network-level failure reaching the provider (timeout, DNS, refused connection)."""
