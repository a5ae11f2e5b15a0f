"""
Database configuration for timesheet storage.
"""
import os
from dataclasses import dataclass
import logging

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///timesheet.db"


@dataclass(frozen=True)
class StorageConfig:
    """
    Explicit storage settings handed to :class:`timesheet_submit.db.database.Database`.

    ``create_schema`` controls whether missing tables are created on first use.
    """
    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    create_schema: bool = True

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Build storage configuration from environment variables.

        ``DATABASE_URL`` wins; otherwise ``DB_USER`` / ``DB_PASSWORD`` /
        ``DB_NAME`` describe a PostgreSQL database; otherwise a local SQLite
        file is used.
        """
        database_url = os.getenv("DATABASE_URL")

        if not database_url:
            db_user = os.getenv("DB_USER")
            db_password = os.getenv("DB_PASSWORD")
            db_host = os.getenv("DB_HOST", "localhost")
            db_port = os.getenv("DB_PORT", "5432")
            db_name = os.getenv("DB_NAME")

            if db_user and db_password and db_name:
                database_url = f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
            else:
                database_url = DEFAULT_DATABASE_URL
                logger.debug(f"No database configured, using {database_url}")

        return cls(
            database_url=database_url,
            echo=os.getenv("DB_ECHO", "false").lower() == "true",
            create_schema=os.getenv("DB_CREATE_SCHEMA", "true").lower() == "true",
        )
