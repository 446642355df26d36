"""
Engine and ORM sessions backing SqlSessionStore and the audit log. SQLite by default.
Session records are small rows rewritten on every login step, so the engine is tuned
for short concurrent writes rather than long transactions.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oauth_client.config import DATABASE_ECHO, DATABASE_URL, SQLITE_BUSY_TIMEOUT
from oauth_client.models import Base


def _engine_kwargs(url: str, *, echo: bool = False, busy_timeout: float = 5.0) -> dict:
    """create_engine() arguments for the session store database at url."""
    kwargs: dict = {"echo": echo}
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool; sqlite3 pins connections to a thread otherwise
        connect_args = {"check_same_thread": False}
        if url.startswith("sqlite:///:memory:") or url == "sqlite://":
            # One shared connection, or each checkout would see an empty database
            kwargs["poolclass"] = StaticPool
        else:
            # Concurrent callbacks write the same file; wait for the lock instead of failing
            connect_args["timeout"] = busy_timeout
        kwargs["connect_args"] = connect_args
    else:
        # Server databases drop idle connections; a session lookup must not fail on a stale one
        kwargs["pool_pre_ping"] = True
    return kwargs


engine = create_engine(
    DATABASE_URL,
    **_engine_kwargs(DATABASE_URL, echo=DATABASE_ECHO, busy_timeout=SQLITE_BUSY_TIMEOUT),
)
# Session records are read back as plain dicts after commit; no lazy reload needed
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db() -> None:
    """Create the sessions and audit tables if missing."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency: yield a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
