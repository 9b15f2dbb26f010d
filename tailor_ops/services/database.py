"""
Database configuration and connection management for the tailor ops store
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from ..config import get_settings
from ..core.exceptions import StorageError
from .models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = None
        self.session_factory = None

    def initialize(self):
        """Initialize the engine and session factory"""
        try:
            if self.database_url.startswith("sqlite"):
                kwargs = {"connect_args": {"check_same_thread": False}}
                # In-memory databases live on a single shared connection
                if ":memory:" in self.database_url or self.database_url == "sqlite://":
                    kwargs["poolclass"] = StaticPool
            else:
                kwargs = {"pool_pre_ping": True, "pool_recycle": 300}

            self.engine = create_engine(self.database_url, echo=False, **kwargs)
            self.session_factory = sessionmaker(self.engine, expire_on_commit=False)

            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def create_tables(self):
        """Create all tables"""
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create tables: {e}")
            raise StorageError(f"Failed to create tables: {e}") from e

    def dispose(self):
        if self.engine is not None:
            self.engine.dispose()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """One transaction: commit on success, roll back on any error.

        Storage failures, including stale version writes from a concurrent
        update, surface as StorageError.
        """
        if self.session_factory is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self.session_factory()
        try:
            yield session
            session.commit()
        except StaleDataError as e:
            session.rollback()
            logger.error(f"Concurrent update rejected: {e}")
            raise StorageError("Record was modified concurrently; reload and retry") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Storage failure: {e}")
            raise StorageError(f"Storage failure: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database manager instance
db_manager: Optional[DatabaseManager] = None


def get_database_url() -> str:
    """Get database URL from settings"""
    database_url = get_settings().DATABASE_URL

    if not database_url:
        # Fallback to SQLite for local development
        database_url = "sqlite:///./tailor_ops.db"
        logger.warning("No DATABASE_URL found, using SQLite for local development")

    # Handle Heroku's postgres:// URL format
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def initialize_database(database_url: Optional[str] = None) -> DatabaseManager:
    """Initialize and return the global database manager"""
    global db_manager

    db_manager = DatabaseManager(database_url or get_database_url())
    db_manager.initialize()
    db_manager.create_tables()

    return db_manager


def get_db_manager() -> DatabaseManager:
    if not db_manager:
        raise RuntimeError("Database not initialized. Call initialize_database() first.")
    return db_manager
