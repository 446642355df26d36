"""
Callback validation: the state machine between a pending attempt and the provider's redirect.

NO_PENDING -> PENDING -> VALIDATED | STATE_MISMATCH | EXPIRED | PROVIDER_ERROR | MISSING_CODE

Order matters: provider error first, then lookup, expiry before state comparison
(so expired and forged callbacks stay distinguishable), and deletion only once resolved.
"""
import enum
import hmac
import logging
from dataclasses import dataclass

from oauth_client.errors import (
    ExpiredAuthorization,
    MissingAuthorizationCode,
    NoPendingAuthorization,
    ProviderError,
    StateMismatch,
)
from oauth_client.flow_store import PendingAuthorization, PendingAuthorizationStore

logger = logging.getLogger(__name__)

# Provider-controlled text; logged with repr and truncated
_MAX_LOGGED_ERROR = 100


class CallbackStatus(str, enum.Enum):
    VALIDATED = "validated"
    NO_PENDING = "no_pending"
    EXPIRED = "expired"
    STATE_MISMATCH = "state_mismatch"
    PROVIDER_ERROR = "provider_error"
    MISSING_CODE = "missing_code"


@dataclass(frozen=True)
class CallbackResult:
    status: CallbackStatus
    code: str | None = None
    code_verifier: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is CallbackStatus.VALIDATED


def _states_equal(received: str, expected: str) -> bool:
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def check_callback(
    flows: PendingAuthorizationStore,
    session_id: str,
    *,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    fail_closed: bool = False,
) -> PendingAuthorization:
    """
    Raising form of the state machine. Returns the consumed pending record on success
    (already deleted from the session). Raises ProviderError, NoPendingAuthorization,
    ExpiredAuthorization, StateMismatch or MissingAuthorizationCode otherwise.
    """
    with flows.session_store.lock(session_id):
        if error:
            # A denied authorization is not resumable
            flows.discard(session_id)
            logger.info("Provider returned error on callback: %r", error[:_MAX_LOGGED_ERROR])
            raise ProviderError(error, error_description)

        pending = flows.consume_pending_authorization(session_id)

        if not _states_equal(state or "", pending.state):
            if fail_closed:
                flows.discard(session_id)
            raise StateMismatch("callback state does not match the pending authorization")

        # State matched, so this attempt is spent either way
        flows.discard(session_id)
        if not code:
            raise MissingAuthorizationCode("callback carried neither code nor error")
        return pending


def validate_callback(
    flows: PendingAuthorizationStore,
    session_id: str,
    *,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    fail_closed: bool = False,
) -> CallbackResult:
    """
    Resolve an inbound callback for session_id into a tagged result. Never raises for protocol outcomes.
    With fail_closed=True a state mismatch also deletes the pending attempt.
    """
    try:
        pending = check_callback(
            flows,
            session_id,
            code=code,
            state=state,
            error=error,
            error_description=error_description,
            fail_closed=fail_closed,
        )
    except ProviderError as e:
        return CallbackResult(
            status=CallbackStatus.PROVIDER_ERROR,
            error=e.error,
            error_description=e.description,
        )
    except NoPendingAuthorization:
        return CallbackResult(status=CallbackStatus.NO_PENDING)
    except ExpiredAuthorization:
        logger.info("Callback arrived for an expired authorization attempt")
        return CallbackResult(status=CallbackStatus.EXPIRED)
    except StateMismatch:
        logger.warning("Callback state mismatch (possible CSRF or stale link)")
        return CallbackResult(status=CallbackStatus.STATE_MISMATCH)
    except MissingAuthorizationCode:
        return CallbackResult(status=CallbackStatus.MISSING_CODE)
    return CallbackResult(
        status=CallbackStatus.VALIDATED,
        code=code,
        code_verifier=pending.code_verifier,
    )
