"""
Pending authorization attempts, bound to the browser session (session_id -> verifier, state, created_at).
Used between /login and /oauth/callback. One attempt per session; a new login overwrites the previous one.
"""
import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable

from oauth_client.errors import ExpiredAuthorization, NoPendingAuthorization
from oauth_client.pkce import PKCEParams, generate_pkce_params
from oauth_client.session_store import SessionStore

logger = logging.getLogger(__name__)

# TTL seconds for a pending attempt (fixed; long enough for the user to sign in at the provider)
FLOW_TTL = 600

PENDING_KEY = "pending_authorization"


@dataclass(frozen=True)
class PendingAuthorization:
    code_verifier: str
    state: str
    created_at: float

    @classmethod
    def from_dict(cls, data: dict) -> "PendingAuthorization":
        return cls(code_verifier=data["code_verifier"], state=data["state"], created_at=float(data["created_at"]))


class PendingAuthorizationStore:
    def __init__(
        self,
        session_store: SessionStore,
        *,
        ttl: float = FLOW_TTL,
        session_ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.session_store = session_store
        self.ttl = ttl
        self.session_ttl = session_ttl
        self._clock = clock

    def expired(self, pending: PendingAuthorization) -> bool:
        return (self._clock() - pending.created_at) > self.ttl

    def begin_authorization(self, session_id: str) -> PKCEParams:
        """Generate fresh PKCE params and record them for this session, replacing any earlier attempt."""
        params = generate_pkce_params()
        pending = PendingAuthorization(
            code_verifier=params.code_verifier,
            state=params.state,
            created_at=self._clock(),
        )
        with self.session_store.lock(session_id):
            data = self.session_store.get(session_id) or {}
            if PENDING_KEY in data:
                logger.debug("Replacing earlier pending authorization for session")
            data[PENDING_KEY] = asdict(pending)
            self.session_store.set(session_id, data, ttl=self.session_ttl)
        return params

    def peek(self, session_id: str) -> PendingAuthorization | None:
        """Current pending record, ignoring TTL. No side effects."""
        data = self.session_store.get(session_id) or {}
        raw = data.get(PENDING_KEY)
        return PendingAuthorization.from_dict(raw) if raw else None

    def consume_pending_authorization(self, session_id: str) -> PendingAuthorization:
        """
        Return the pending record after the TTL check. Does not delete it on success;
        the caller discards it once the callback is resolved. Deletes it when expired.
        """
        with self.session_store.lock(session_id):
            pending = self.peek(session_id)
            if pending is None:
                raise NoPendingAuthorization("no pending authorization for this session")
            if self.expired(pending):
                self.discard(session_id)
                raise ExpiredAuthorization("pending authorization expired")
            return pending

    def discard(self, session_id: str) -> None:
        """Remove the pending record, leaving the rest of the session intact."""
        with self.session_store.lock(session_id):
            data = self.session_store.get(session_id)
            if not data or PENDING_KEY not in data:
                return
            del data[PENDING_KEY]
            if data:
                self.session_store.set(session_id, data, ttl=self.session_ttl)
            else:
                self.session_store.delete(session_id)
