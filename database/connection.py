"""
Database connection and session management.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from contextlib import contextmanager
from typing import Generator, Optional

from database.models import Base
from core.exceptions import TransientIOError
from core.logger import get_logger

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores ON DELETE CASCADE / SET NULL unless this pragma is on."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, pool_size: int = 10, max_overflow: int = 20, echo: bool = False):
        """
        Initialize database connection.

        Args:
            database_url: PostgreSQL (or SQLite) connection URL
            pool_size: Number of connections to maintain
            max_overflow: Maximum overflow connections
            echo: Log every SQL statement
        """
        self.database_url = database_url
        if database_url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads
            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo
            )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                database_url,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,  # Verify connections before using
                echo=echo
            )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info(f"Database engine initialized: {database_url.split('@')[1] if '@' in database_url else 'local'}")

    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        """Drop all database tables (use with caution!)."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("All database tables dropped")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Get database session context manager.

        Commits on success, rolls back on any error. Connection failures
        surface as TransientIOError so callers can show a retry notice.

        Usage:
            with db.get_session() as session:
                # Use session
                pass
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            session.rollback()
            logger.error(f"Database unavailable: {e}")
            raise TransientIOError() from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database instance (will be initialized in config)
db: Optional[Database] = None
