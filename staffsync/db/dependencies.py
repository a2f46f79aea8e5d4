"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from staffsync.db.session import SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """Yield a store session, rolling back work left pending by a failed request."""

    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
