"""Database connection helper using SQLAlchemy and Alembic.

Provides a lightweight wrapper to create engine and sessions, test
connectivity, and optionally read the Alembic revision if present.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import get_database_url


class DbConn:
    """Simple database connection manager.

    Usage:
        db = DbConn()
        ok = db.test_connection()
        with db.session_scope() as s:
            s.execute(text("SELECT 1"))
    """

    def __init__(self, db_url: Optional[str] = None, echo: bool = False) -> None:
        url = db_url or get_database_url()
        if not url:
            raise ValueError("Database URL not configured. Check resources/.env or DATABASE_URL.")

        kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            # refresh runs on a worker thread
            kwargs["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                # one shared connection so the in-memory database outlives sessions
                kwargs["poolclass"] = StaticPool
        self._engine: Engine = create_engine(url, **kwargs)
        self._Session = sessionmaker(bind=self._engine, autoflush=False, autocommit=False, future=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def get_session(self) -> Session:
        return self._Session()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create missing tables from the ORM metadata (dev/test databases)."""
        from db.base import Base
        from db.poco import token  # noqa: F401  # ensure models are imported

        Base.metadata.create_all(self._engine)

    def test_connection(self) -> bool:
        """Try connecting and executing a trivial statement."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def get_alembic_revision(self) -> Optional[str]:
        """Return current Alembic revision if alembic_version table exists.

        Returns None when the table is missing or unreadable.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text("SELECT version_num FROM alembic_version LIMIT 1"))
                row = result.first()
                return row[0] if row else None
        except SQLAlchemyError:
            return None

    def dispose(self) -> None:
        self._engine.dispose()
