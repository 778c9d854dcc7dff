"""SQLAlchemy engine/session helpers for the ledger node's database.

Usage
-----
from ledger_indexer.db.client import Database

db = Database("postgresql+psycopg://.../core")
with db.session_scope() as s:
    s.execute(...)

One ``Database`` owns one engine; it is created once at startup from the
settings and handed to whatever needs it.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base


def _database_url(url: str | None) -> str:
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


class Database:
    def __init__(self, url: str | None) -> None:
        self.url = _database_url(url)
        self.engine: Engine = create_engine(self.url, pool_pre_ping=True)
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=Session
        )

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"Database({self.engine.url!r})"

    def get_session(self) -> Session:
        """Return a new session bound to this database's engine."""

        return self._session_maker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create the history tables if missing (SQLite fixtures, local setups)."""

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = ["Database"]
