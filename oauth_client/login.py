"""
Login orchestration: begin -> callback -> exchange -> materialize, keyed by session_id.
Protocol errors are resolved here into a LoginOutcome with a user-safe message; the web layer only renders it.
"""
import enum
import logging
from dataclasses import dataclass

from oauth_client import exchange
from oauth_client.callback import CallbackStatus, validate_callback
from oauth_client.config import ProviderConfig
from oauth_client.errors import IdentityFetchFailed, TokenExchangeFailed, TransportError
from oauth_client.flow_store import PendingAuthorizationStore
from oauth_client.pkce import build_authorization_url
from oauth_client.session import AuthenticatedSession, complete_login, new_session_id
from oauth_client.session_store import SessionStore

logger = logging.getLogger(__name__)

# Provider error_description shown to the user (escaped by the page layer)
_MAX_DESCRIPTION = 200


class OutcomeKind(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    NO_PENDING = CallbackStatus.NO_PENDING.value
    EXPIRED = CallbackStatus.EXPIRED.value
    STATE_MISMATCH = CallbackStatus.STATE_MISMATCH.value
    PROVIDER_ERROR = CallbackStatus.PROVIDER_ERROR.value
    MISSING_CODE = CallbackStatus.MISSING_CODE.value
    EXCHANGE_FAILED = "exchange_failed"
    TRANSPORT_FAILED = "transport_failed"


_MESSAGES = {
    OutcomeKind.NO_PENDING: "No login is in progress for this browser. Please start the login again.",
    OutcomeKind.EXPIRED: "The login attempt expired. Please try logging in again.",
    OutcomeKind.STATE_MISMATCH: "Invalid login response (state mismatch). Please start the login again.",
    OutcomeKind.MISSING_CODE: "The provider response did not include an authorization code.",
    OutcomeKind.EXCHANGE_FAILED: "Authentication failed. Please try again.",
    OutcomeKind.TRANSPORT_FAILED: "Could not reach the identity provider. Please try again.",
}

_HTTP_STATUS = {
    OutcomeKind.AUTHENTICATED: 302,
    OutcomeKind.NO_PENDING: 400,
    OutcomeKind.EXPIRED: 400,
    OutcomeKind.STATE_MISMATCH: 400,
    OutcomeKind.MISSING_CODE: 400,
    OutcomeKind.PROVIDER_ERROR: 400,
    OutcomeKind.EXCHANGE_FAILED: 502,
    OutcomeKind.TRANSPORT_FAILED: 502,
}


@dataclass(frozen=True)
class LoginOutcome:
    kind: OutcomeKind
    message: str
    session: AuthenticatedSession | None = None
    session_id: str | None = None  # new session id, AUTHENTICATED only
    error: str | None = None  # provider error code, PROVIDER_ERROR only

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.AUTHENTICATED

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.kind]

    @property
    def retryable(self) -> bool:
        """The user may start a fresh login. Never a replay of the same code."""
        return self.kind is not OutcomeKind.AUTHENTICATED


class LoginService:
    def __init__(
        self,
        config: ProviderConfig,
        session_store: SessionStore,
        *,
        fail_closed_on_state_mismatch: bool = False,
        session_ttl: float | None = None,
        flows: PendingAuthorizationStore | None = None,
    ):
        self.config = config
        self.session_store = session_store
        self.fail_closed_on_state_mismatch = fail_closed_on_state_mismatch
        self.session_ttl = session_ttl
        self.flows = flows or PendingAuthorizationStore(session_store, session_ttl=session_ttl)

    def begin_login(self, session_id: str) -> str:
        """Record a new pending attempt for the session and return the provider authorization URL."""
        params = self.flows.begin_authorization(session_id)
        return build_authorization_url(self.config, params.code_challenge, params.state)

    def handle_callback(
        self,
        session_id: str,
        *,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> LoginOutcome:
        result = validate_callback(
            self.flows,
            session_id,
            code=code,
            state=state,
            error=error,
            error_description=error_description,
            fail_closed=self.fail_closed_on_state_mismatch,
        )
        if result.status is CallbackStatus.PROVIDER_ERROR:
            message = f"The provider did not authorize the login: {result.error}"
            if result.error_description:
                message = f"{message} ({result.error_description[:_MAX_DESCRIPTION]})"
            return LoginOutcome(
                kind=OutcomeKind.PROVIDER_ERROR,
                message=message,
                error=result.error,
            )
        if not result.ok:
            kind = OutcomeKind(result.status.value)
            return LoginOutcome(kind=kind, message=_MESSAGES[kind])

        # Pending record is already consumed and no lock is held past this point
        try:
            tokens = exchange.exchange_code_for_tokens(self.config, result.code, result.code_verifier)
            identity = exchange.fetch_identity(self.config, tokens.access_token)
        except TransportError as e:
            logger.warning("Login failed: provider unreachable (%s)", e)
            return LoginOutcome(kind=OutcomeKind.TRANSPORT_FAILED, message=_MESSAGES[OutcomeKind.TRANSPORT_FAILED])
        except (TokenExchangeFailed, IdentityFetchFailed) as e:
            logger.warning("Login failed: %s rejected with HTTP %s", type(e).__name__, e.http_status)
            return LoginOutcome(kind=OutcomeKind.EXCHANGE_FAILED, message=_MESSAGES[OutcomeKind.EXCHANGE_FAILED])

        # Authenticate under a fresh id so a pre-login (possibly planted) id never gains access
        new_id = new_session_id()
        auth = complete_login(
            self.session_store,
            new_id,
            tokens,
            identity,
            ttl=self.session_ttl,
            previous_session_id=session_id,
        )
        return LoginOutcome(kind=OutcomeKind.AUTHENTICATED, message="Signed in.", session=auth, session_id=new_id)
