from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import settings
from .errors import StorageError

log = logging.getLogger(__name__)


def _make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # timeout = attesa massima sul lock del file prima di "database is locked"
        connect_args = {"check_same_thread": False, "timeout": settings.db_timeout_seconds}

    eng = create_engine(url, connect_args=connect_args, echo=settings.sql_echo, future=True)

    if eng.dialect.name == "sqlite":
        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


engine = _make_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base ORM per tutti i modelli."""
    pass


def get_engine() -> Engine:
    return engine


def configure_engine(url: str) -> Engine:
    """Sostituisce l'engine globale (es. DB temporaneo nei test) e ricollega le sessioni."""
    global engine
    engine.dispose()
    engine = _make_engine(url)
    SessionLocal.configure(bind=engine)
    return engine


@contextmanager
def db_session() -> Iterator[Session]:
    """
    Context manager per gestire correttamente la sessione:
    - commit se tutto ok
    - rollback su eccezioni (errori SQLAlchemy diventano StorageError)
    - close sempre
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        log.error("Operazione sul DB fallita: %s", e)
        raise StorageError(f"Archivio non disponibile: {e.__class__.__name__}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
