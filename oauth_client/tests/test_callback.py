"""Tests for the callback validation state machine."""
import logging

import pytest

from oauth_client.callback import CallbackStatus, check_callback, validate_callback
from oauth_client.errors import MissingAuthorizationCode, NoPendingAuthorization, ProviderError, StateMismatch
from oauth_client.flow_store import FLOW_TTL, PendingAuthorizationStore
from oauth_client.session_store import InMemorySessionStore


@pytest.fixture
def flows(clock):
    return PendingAuthorizationStore(InMemorySessionStore(clock=clock), clock=clock)


def test_matching_state_validates_and_consumes(flows):
    params = flows.begin_authorization("s1")
    result = validate_callback(flows, "s1", code="AUTH1", state=params.state)
    assert result.status is CallbackStatus.VALIDATED
    assert result.ok
    assert result.code == "AUTH1"
    assert result.code_verifier == params.code_verifier
    assert len(result.code_verifier) == 128
    assert flows.peek("s1") is None


def test_validated_record_cannot_be_replayed(flows):
    params = flows.begin_authorization("s1")
    validate_callback(flows, "s1", code="AUTH1", state=params.state)
    again = validate_callback(flows, "s1", code="AUTH1", state=params.state)
    assert again.status is CallbackStatus.NO_PENDING


def test_state_mismatch_keeps_record_by_default(flows):
    params = flows.begin_authorization("s1")
    result = validate_callback(flows, "s1", code="AUTH1", state="forged-state")
    assert result.status is CallbackStatus.STATE_MISMATCH
    assert result.code_verifier is None
    assert flows.peek("s1") is not None
    # The legitimate callback still succeeds afterwards
    assert validate_callback(flows, "s1", code="AUTH1", state=params.state).ok


def test_state_mismatch_fail_closed_deletes_record(flows):
    flows.begin_authorization("s1")
    result = validate_callback(flows, "s1", code="AUTH1", state="forged-state", fail_closed=True)
    assert result.status is CallbackStatus.STATE_MISMATCH
    assert flows.peek("s1") is None


def test_missing_state_is_a_mismatch(flows):
    flows.begin_authorization("s1")
    result = validate_callback(flows, "s1", code="AUTH1", state=None)
    assert result.status is CallbackStatus.STATE_MISMATCH


def test_expired_then_not_found(flows, clock):
    params = flows.begin_authorization("s1")
    clock.advance(FLOW_TTL + 1)
    result = validate_callback(flows, "s1", code="AUTH1", state=params.state)
    assert result.status is CallbackStatus.EXPIRED
    assert validate_callback(flows, "s1", code="AUTH1", state=params.state).status is CallbackStatus.NO_PENDING


def test_expiry_is_checked_before_state(flows, clock):
    flows.begin_authorization("s1")
    clock.advance(FLOW_TTL + 1)
    result = validate_callback(flows, "s1", code="AUTH1", state="wrong")
    assert result.status is CallbackStatus.EXPIRED


@pytest.mark.parametrize("code", ["AUTH1", None])
def test_provider_error_regardless_of_code(flows, code):
    params = flows.begin_authorization("s1")
    result = validate_callback(
        flows, "s1", code=code, state=params.state, error="access_denied", error_description="User denied"
    )
    assert result.status is CallbackStatus.PROVIDER_ERROR
    assert result.error == "access_denied"
    assert result.error_description == "User denied"
    assert flows.peek("s1") is None


def test_provider_error_without_pending(flows):
    result = validate_callback(flows, "s1", error="server_error")
    assert result.status is CallbackStatus.PROVIDER_ERROR


def test_no_pending(flows):
    result = validate_callback(flows, "never-started", code="AUTH1", state="x")
    assert result.status is CallbackStatus.NO_PENDING


def test_missing_code_after_matching_state(flows):
    params = flows.begin_authorization("s1")
    result = validate_callback(flows, "s1", state=params.state)
    assert result.status is CallbackStatus.MISSING_CODE
    assert flows.peek("s1") is None


def test_stale_state_after_second_begin(flows):
    first = flows.begin_authorization("s1")
    second = flows.begin_authorization("s1")
    result = validate_callback(flows, "s1", code="AUTH1", state=first.state)
    assert result.status is CallbackStatus.STATE_MISMATCH
    assert validate_callback(flows, "s1", code="AUTH1", state=second.state).ok


def test_check_callback_raises_state_mismatch(flows):
    flows.begin_authorization("s1")
    with pytest.raises(StateMismatch):
        check_callback(flows, "s1", code="AUTH1", state="forged-state")
    assert flows.peek("s1") is not None


def test_check_callback_raises_provider_error(flows):
    flows.begin_authorization("s1")
    with pytest.raises(ProviderError) as exc_info:
        check_callback(flows, "s1", error="access_denied", error_description="User denied")
    assert exc_info.value.error == "access_denied"
    assert exc_info.value.description == "User denied"
    assert flows.peek("s1") is None


def test_check_callback_raises_missing_code(flows):
    params = flows.begin_authorization("s1")
    with pytest.raises(MissingAuthorizationCode):
        check_callback(flows, "s1", state=params.state)


def test_check_callback_raises_no_pending(flows):
    with pytest.raises(NoPendingAuthorization):
        check_callback(flows, "nobody", code="AUTH1", state="s")


def test_check_callback_returns_pending_record(flows):
    params = flows.begin_authorization("s1")
    pending = check_callback(flows, "s1", code="AUTH1", state=params.state)
    assert pending.code_verifier == params.code_verifier
    assert flows.peek("s1") is None


def test_provider_error_is_logged_escaped_and_truncated(flows, caplog):
    flows.begin_authorization("s1")
    crafted = "access_denied\nFAKE LOG LINE" + "x" * 500
    with caplog.at_level(logging.INFO, logger="oauth_client.callback"):
        validate_callback(flows, "s1", error=crafted)
    messages = [r.getMessage() for r in caplog.records if r.name == "oauth_client.callback"]
    assert messages
    assert "\n" not in messages[0]
    assert "\\nFAKE LOG LINE" in messages[0]
    assert "x" * 200 not in messages[0]
