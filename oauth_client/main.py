"""
Client web app: OAuth 2.0 Authorization Code + PKCE relying party.
GET /, /login, /oauth/callback, /protected, /logout. Port 3000 by default.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from oauth_client import config as settings
from oauth_client.audit import (
    EVENT_LOGIN_FAIL,
    EVENT_LOGIN_OK,
    EVENT_LOGIN_STARTED,
    EVENT_LOGOUT,
    EVENT_STATE_MISMATCH,
    OUTCOME_FAIL,
    get_client_ip,
    log_audit,
)
from oauth_client.audit import router as audit_router
from oauth_client.config import ProviderConfig, load_provider_config
from oauth_client.database import SessionLocal, get_db, init_db
from oauth_client.errors import ConfigurationError, TokenExchangeFailed, TransportError
from oauth_client.exchange import refresh_tokens
from oauth_client.login import LoginService, OutcomeKind
from oauth_client.pages import authorization_url_page, error_page, home_page, protected_page
from oauth_client.session import get_authenticated_session, logout as destroy_session, new_session_id, update_tokens
from oauth_client.session_store import InMemorySessionStore, SessionStore, SqlSessionStore

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

_provider_config: ProviderConfig | None = None
_session_store: SessionStore | None = None


def get_provider_config() -> ProviderConfig:
    """Provider configuration, loaded and validated once."""
    global _provider_config
    if _provider_config is None:
        _provider_config = load_provider_config()
    return _provider_config


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        if settings.SESSION_BACKEND == "memory":
            _session_store = InMemorySessionStore()
        elif settings.SESSION_BACKEND == "sql":
            init_db()
            _session_store = SqlSessionStore(SessionLocal)
        else:
            raise ConfigurationError(f"unknown session backend {settings.SESSION_BACKEND!r}")
    return _session_store


def get_login_service(
    config: ProviderConfig = Depends(get_provider_config),
    store: SessionStore = Depends(get_session_store),
) -> LoginService:
    return LoginService(
        config,
        store,
        fail_closed_on_state_mismatch=settings.FAIL_CLOSED_ON_STATE_MISMATCH,
        session_ttl=settings.SESSION_TTL,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate provider config (fatal if invalid), create tables, build the session store."""
    logging.getLogger("oauth_client").setLevel(settings.LOG_LEVEL)
    get_provider_config()
    init_db()
    get_session_store()
    yield


app = FastAPI(title="OAuth Client", version=VERSION, lifespan=lifespan)
app.include_router(audit_router)


def _session_id(request: Request) -> str | None:
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def _set_session_cookie(response, session_id: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session_id,
        max_age=settings.SESSION_TTL,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "oauth_client"}


@app.get("/api/status")
def api_status():
    return {
        "application": "oauth_client",
        "version": VERSION,
        "status": "running",
        "session_backend": settings.SESSION_BACKEND,
        "demo_mode": settings.DEMO_MODE,
    }


@app.get("/", response_class=HTMLResponse)
def home(request: Request, store: SessionStore = Depends(get_session_store)):
    """Anonymous home with a login link, or a short signed-in summary."""
    session_id = _session_id(request)
    auth = get_authenticated_session(store, session_id) if session_id else None
    return HTMLResponse(home_page(auth))


@app.get("/login")
def login(
    request: Request,
    service: LoginService = Depends(get_login_service),
    db: Session = Depends(get_db),
):
    """
    Start a login: record verifier + state for this browser session, redirect to the provider.
    In demo mode the authorization URL is rendered instead.
    """
    # Only adopt a cookie id this server issued and still holds; never one the browser made up
    session_id = _session_id(request)
    if not session_id or service.session_store.get(session_id) is None:
        session_id = new_session_id()
    url = service.begin_login(session_id)
    log_audit(db, EVENT_LOGIN_STARTED, session_id=session_id, ip=get_client_ip(request))

    if settings.DEMO_MODE:
        response = HTMLResponse(authorization_url_page(url))
    else:
        response = RedirectResponse(url=url, status_code=302)
    _set_session_cookie(response, session_id)
    return response


@app.get("/oauth/callback")
def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    service: LoginService = Depends(get_login_service),
    db: Session = Depends(get_db),
):
    """Handle the provider redirect (?code=&state= or ?error=&state=)."""
    # No cookie: nothing can be pending, so the validator reports NO_PENDING (or the provider error)
    session_id = _session_id(request) or ""
    outcome = service.handle_callback(
        session_id,
        code=code,
        state=state,
        error=error,
        error_description=error_description,
    )
    ip = get_client_ip(request)

    if outcome.ok:
        log_audit(db, EVENT_LOGIN_OK, session_id=outcome.session_id, subject=outcome.session.user.id, ip=ip)
        response = RedirectResponse(url="/protected", status_code=302)
        _set_session_cookie(response, outcome.session_id)
        return response

    event = EVENT_STATE_MISMATCH if outcome.kind is OutcomeKind.STATE_MISMATCH else EVENT_LOGIN_FAIL
    log_audit(db, event, session_id=session_id, ip=ip, outcome=OUTCOME_FAIL, detail=outcome.error or outcome.kind.value)
    title = "Login error" if outcome.kind is OutcomeKind.PROVIDER_ERROR else "Login failed"
    return HTMLResponse(error_page(title, outcome.message), status_code=outcome.http_status)


@app.get("/protected", response_class=HTMLResponse)
def protected(
    request: Request,
    config: ProviderConfig = Depends(get_provider_config),
    store: SessionStore = Depends(get_session_store),
):
    """Requires an authenticated session. Refreshes the access token first if it is about to expire."""
    session_id = _session_id(request)
    auth = get_authenticated_session(store, session_id) if session_id else None
    if auth is None:
        return RedirectResponse(url="/", status_code=302)

    if auth.tokens.refresh_token and auth.tokens.access_token_expired_or_soon(buffer_seconds=60):
        try:
            tokens = refresh_tokens(config, auth.tokens.refresh_token)
        except TokenExchangeFailed:
            destroy_session(store, session_id)
            response = RedirectResponse(url="/", status_code=302)
            response.delete_cookie(settings.SESSION_COOKIE_NAME)
            return response
        except TransportError:
            return HTMLResponse(
                error_page("Refresh failed", "Could not reach the identity provider. Please try again."),
                status_code=502,
            )
        update_tokens(store, session_id, tokens, ttl=settings.SESSION_TTL)
        auth = get_authenticated_session(store, session_id)
        if auth is None:
            return RedirectResponse(url="/", status_code=302)

    return HTMLResponse(protected_page(auth))


@app.get("/logout")
def logout(
    request: Request,
    store: SessionStore = Depends(get_session_store),
    db: Session = Depends(get_db),
):
    """Destroy the whole session and return to the anonymous home page."""
    session_id = _session_id(request)
    if session_id:
        destroy_session(store, session_id)
        log_audit(db, EVENT_LOGOUT, session_id=session_id, ip=get_client_ip(request))
    response = RedirectResponse(url="/", status_code=302)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "oauth_client.main:app",
        host="127.0.0.1",
        port=3000,
        reload=True,
    )
