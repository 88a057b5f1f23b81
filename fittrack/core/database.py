"""Database engine and session management."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator
from urllib.parse import urlparse

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fittrack.core.config import AppSettings, get_settings

_IN_MEMORY_PATHS = ("", ":memory:", "/:memory:")


def _ensure_sqlite_directory(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme != "sqlite" or parsed.path in _IN_MEMORY_PATHS:
        return
    # sqlite:///./data/fittrack.db parses to "/./data/fittrack.db" and
    # sqlite:////var/fittrack.db to "//var/fittrack.db"; drop one slash.
    Path(parsed.path[1:]).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs behave under pysqlite.

    Idempotent inserts rely on ``Session.begin_nested()`` rolling back only
    the failed INSERT.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(connection):  # noqa: ANN001
        connection.exec_driver_sql("BEGIN")


def build_engine(settings: AppSettings) -> Engine:
    """Create the engine for ``settings.database_url``.

    In-memory SQLite shares one connection across threads so the API, the
    sweeper and tests all see the same database.
    """

    url = settings.database_url
    if not url.startswith("sqlite"):
        return create_engine(url, future=True, echo=settings.sql_echo, pool_pre_ping=True)

    _ensure_sqlite_directory(url)
    options: Dict[str, Any] = {
        "future": True,
        "echo": settings.sql_echo,
        "connect_args": {"check_same_thread": False},
    }
    if urlparse(url).path in _IN_MEMORY_PATHS:
        options["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, **options)
    _enable_sqlite_savepoints(sqlite_engine)
    return sqlite_engine


engine: Engine = build_engine(get_settings())

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
    class_=Session,
)


def get_session() -> Iterator[Session]:
    """FastAPI dependency: commit on success, roll back on error."""

    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Transactional scope for workers, activities and scripts.

    Processors commit at each state transition themselves; the final commit
    here only flushes whatever the caller left pending.
    """

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
