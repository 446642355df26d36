"""
Token set returned by the provider's token endpoint, plus redaction for logs and pages.
Tokens are opaque to this client.
"""
import time
from dataclasses import asdict, dataclass, field

from oauth_client.errors import TokenExchangeFailed

# Characters of a token shown in diagnostics; the rest is never displayed or logged
REDACT_KEEP = 20


def redact_token(token: str | None, keep: int = REDACT_KEEP) -> str:
    if not token:
        return ""
    if len(token) <= keep:
        return "…"
    return f"{token[:keep]}…"


@dataclass
class TokenSet:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str = ""
    refresh_token: str | None = None
    id_token: str | None = None
    issued_at: float = field(default_factory=time.time)

    def __repr__(self) -> str:
        return (
            f"TokenSet(access_token={redact_token(self.access_token)!r}, token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r}, scope={self.scope!r}, "
            f"refresh_token={'set' if self.refresh_token else None!r})"
        )

    @classmethod
    def from_token_response(cls, data: object) -> "TokenSet":
        """Validate a token endpoint JSON body. Raises TokenExchangeFailed if unusable."""
        if not isinstance(data, dict):
            raise TokenExchangeFailed(200, "token response is not a JSON object")
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeFailed(200, "token response has no access_token")
        expires_in = data.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None
        return cls(
            access_token=access_token,
            token_type=str(data.get("token_type") or "Bearer"),
            expires_in=expires_in,
            scope=str(data.get("scope") or ""),
            refresh_token=data.get("refresh_token") or None,
            id_token=data.get("id_token") or None,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "TokenSet":
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)

    def access_token_expired_or_soon(self, buffer_seconds: int = 60) -> bool:
        """
        True if access token is expired or within buffer_seconds of expiry (for proactive refresh).
        When token lifetime is shorter than buffer_seconds, only return True when actually expired.
        Tokens without expires_in are treated as not expiring.
        """
        if self.expires_in is None:
            return False
        elapsed = time.time() - self.issued_at
        if elapsed >= self.expires_in:
            return True
        if self.expires_in > buffer_seconds and elapsed >= (self.expires_in - buffer_seconds):
            return True
        return False
