"""Shared FastAPI dependencies (DB sessions, refresh service)."""
from __future__ import annotations

from typing import Generator

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from db.db_conn import DbConn
from pipeline.refresh import TokenRefreshService


def get_db_conn(request: Request) -> DbConn:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return db


def get_db(request: Request) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session per-request."""
    session = get_db_conn(request).get_session()
    try:
        yield session
    finally:
        session.close()


def get_refresh_service(request: Request) -> TokenRefreshService:
    service = getattr(request.app.state, "refresh_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Token refresh service not ready")
    return service
