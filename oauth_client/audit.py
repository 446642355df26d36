"""
Audit logging for the login flow. Security-relevant events only; no tokens, verifiers or raw session ids.
GET /audit lists recent events (lab use).
"""
import hashlib

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from oauth_client.database import get_db
from oauth_client.models import AuditLog

EVENT_LOGIN_STARTED = "login_started"
EVENT_LOGIN_OK = "login_ok"
EVENT_LOGIN_FAIL = "login_fail"
EVENT_STATE_MISMATCH = "state_mismatch"
EVENT_LOGOUT = "logout"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"


def session_ref(session_id: str | None) -> str | None:
    """Stable, non-reversible reference to a session for correlating events."""
    if not session_id:
        return None
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:16]


def get_client_ip(request: Request | None) -> str | None:
    """Client IP if available (e.g. request.client.host). No forwarding headers for lab."""
    if request is None or request.client is None:
        return None
    return getattr(request.client, "host", None)


def log_audit(
    db: Session,
    event_type: str,
    *,
    session_id: str | None = None,
    subject: str | None = None,
    ip: str | None = None,
    outcome: str = OUTCOME_SUCCESS,
    detail: str | None = None,
) -> None:
    """Append one audit record."""
    db.add(
        AuditLog(
            event_type=event_type,
            session_ref=session_ref(session_id),
            subject=subject,
            ip=ip,
            outcome=outcome,
            detail=detail[:255] if detail else None,
        )
    )
    db.commit()


router = APIRouter(tags=["audit"])


@router.get("/audit")
def list_audit_logs(
    limit: int = 100,
    event_type: str | None = None,
    outcome: str | None = None,
    db: Session = Depends(get_db),
):
    """List recent audit events, most recent first."""
    q = db.query(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if event_type:
        q = q.filter(AuditLog.event_type == event_type)
    if outcome:
        q = q.filter(AuditLog.outcome == outcome)
    rows = q.limit(min(max(1, limit), 500)).all()
    return [
        {
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "event_type": r.event_type,
            "session_ref": r.session_ref,
            "subject": r.subject,
            "ip": r.ip,
            "outcome": r.outcome,
            "detail": r.detail,
        }
        for r in rows
    ]
