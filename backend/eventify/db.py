from __future__ import annotations

from collections.abc import Generator

from fastapi import HTTPException, Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from eventify.config import Settings


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_db_engine(settings: Settings) -> Engine:
    """Build the engine for ``settings.db_url``.

    Called once from the application lifespan; the engine lives on
    ``app.state.engine`` and is disposed on shutdown. Every connection is
    bounded by ``db_timeout_seconds`` so a stuck store surfaces as an
    ``OperationalError`` instead of hanging the request.
    """
    url = settings.db_url
    timeout = settings.db_timeout_seconds

    if url.startswith("sqlite"):
        kwargs: dict = {
            "connect_args": {"check_same_thread": False, "timeout": timeout},
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=False, **kwargs)
        event.listen(engine, "connect", _set_sqlite_pragmas)
        return engine

    return create_engine(
        url,
        echo=False,
        connect_args={"connect_timeout": int(timeout)},
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=timeout,
    )


def create_db_and_tables(engine: Engine) -> None:
    import eventify.models  # noqa: F401  registers SQLModel tables

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Generator[Session, None, None]:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    with Session(engine) as session:
        yield session
