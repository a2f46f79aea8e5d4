"""Engine and session factory for the store database."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from staffsync.core.config import get_settings

engine = create_engine(get_settings().database_url, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
