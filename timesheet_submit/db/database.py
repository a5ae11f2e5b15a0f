"""
Database connection and session management using SQLAlchemy.
"""
from contextlib import contextmanager
from typing import Iterator, Optional
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import StorageConfig
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy issue BEGIN itself so SAVEPOINTs work with pysqlite.

    See "Serializable isolation / Savepoints / Transactional DDL" in the
    SQLAlchemy SQLite dialect documentation.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """
    Engine and session factory for one storage configuration.

    Sessions are short-lived: open one per logical operation with
    :meth:`session_scope` and never hold it across a browser run.
    """

    def __init__(self, config: Optional[StorageConfig] = None) -> None:
        self.config = config or StorageConfig.from_env()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.config.database_url, echo=self.config.echo)
            if self.config.is_sqlite:
                _enable_sqlite_savepoints(self._engine)
            self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
            logger.info("Database initialized successfully")
            if self.config.create_schema:
                self.ensure_schema()
        return self._engine

    def ensure_schema(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Commits on success, rolls back and re-raises on error.
        """
        self.engine  # initialise lazily
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
