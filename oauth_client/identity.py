"""
Identity claims from the provider's userinfo endpoint and the session user derived from them.
Userinfo bodies have arbitrary shape; claims are validated here and unknown or mistyped fields dropped.
"""
from dataclasses import asdict, dataclass

from oauth_client.errors import IdentityFetchFailed


def _opt_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) and value else None


def _opt_bool(data: dict, key: str) -> bool | None:
    value = data.get(key)
    if isinstance(value, bool):
        return value
    # Some providers send "true"/"false" strings
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


@dataclass(frozen=True)
class IdentityClaims:
    subject: str
    email: str | None = None
    name: str | None = None
    picture: str | None = None
    email_verified: bool | None = None

    @classmethod
    def from_userinfo(cls, data: object) -> "IdentityClaims":
        """Parse a userinfo JSON body. `sub` is required; raises IdentityFetchFailed otherwise."""
        if not isinstance(data, dict):
            raise IdentityFetchFailed(200, "userinfo response is not a JSON object")
        sub = data.get("sub")
        if isinstance(sub, bool) or not isinstance(sub, (str, int)) or sub == "":
            raise IdentityFetchFailed(200, "userinfo response has no sub claim")
        return cls(
            subject=str(sub),
            email=_opt_str(data, "email"),
            name=_opt_str(data, "name"),
            picture=_opt_str(data, "picture"),
            email_verified=_opt_bool(data, "email_verified"),
        )


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: str | None = None
    name: str | None = None
    picture: str | None = None
    email_verified: bool | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "SessionUser":
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


def map_identity(claims: IdentityClaims) -> SessionUser:
    return SessionUser(
        id=claims.subject,
        email=claims.email,
        name=claims.name,
        picture=claims.picture,
        email_verified=claims.email_verified,
    )
