"""
Authenticated session state: the single write path from anonymous to signed-in, and logout.
Sign-in always lands under a freshly minted session id; the pre-login id is destroyed.
"""
import logging
import secrets
from dataclasses import dataclass

from oauth_client.identity import IdentityClaims, SessionUser, map_identity
from oauth_client.session_store import SessionStore
from oauth_client.tokens import TokenSet

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Opaque, unguessable session cookie value."""
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class AuthenticatedSession:
    user: SessionUser
    tokens: TokenSet

    def to_dict(self) -> dict:
        return {"user": self.user.to_dict(), "tokens": self.tokens.to_dict()}


def complete_login(
    store: SessionStore,
    session_id: str,
    tokens: TokenSet,
    identity: IdentityClaims,
    ttl: float | None = None,
    *,
    previous_session_id: str | None = None,
) -> AuthenticatedSession:
    """
    Replace the whole session record with {user, tokens}. Any pending attempt goes with it.
    previous_session_id (the anonymous id the login started under) is deleted so it never
    becomes authenticated.
    """
    auth = AuthenticatedSession(user=map_identity(identity), tokens=tokens)
    with store.lock(session_id):
        store.set(session_id, auth.to_dict(), ttl=ttl)
    if previous_session_id and previous_session_id != session_id:
        with store.lock(previous_session_id):
            store.delete(previous_session_id)
    logger.info("Session authenticated for sub=%s", auth.user.id)
    return auth


def get_authenticated_session(store: SessionStore, session_id: str) -> AuthenticatedSession | None:
    data = store.get(session_id)
    if not data or "user" not in data or "tokens" not in data:
        return None
    return AuthenticatedSession(
        user=SessionUser.from_dict(data["user"]),
        tokens=TokenSet.from_dict(data["tokens"]),
    )


def update_tokens(store: SessionStore, session_id: str, tokens: TokenSet, ttl: float | None = None) -> bool:
    """Store refreshed tokens for an authenticated session. False if the session is gone."""
    with store.lock(session_id):
        data = store.get(session_id)
        if not data or "user" not in data:
            return False
        data["tokens"] = tokens.to_dict()
        store.set(session_id, data, ttl=ttl)
    return True


def logout(store: SessionStore, session_id: str) -> None:
    """Destroy the entire session record, not just the auth fields."""
    with store.lock(session_id):
        store.delete(session_id)
