"""
Database Connection Module
Handles PostgreSQL connection pooling and session management using SQLAlchemy.
"""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from dockmaster_sync.config_manager import ConfigManager
from dockmaster_sync.utils.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnection:
    """Manages database connections with connection pooling."""

    _instance = None
    _engine: Engine = None
    _session_factory = None

    def __new__(cls):
        """Singleton pattern to ensure single connection pool."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize database connection if not already done."""
        if self._engine is None:
            config = ConfigManager()
            db_config = config.get_database_config()
            self._initialize_engine(self._build_connection_url(db_config), db_config)

    @classmethod
    def from_url(cls, url: str, **engine_options) -> 'DatabaseConnection':
        """
        Create a standalone (non-singleton) connection for an explicit URL.

        Used by scripts pointed at another database and by tests running
        against in-memory SQLite.
        """
        instance = object.__new__(cls)
        instance._initialize_engine(url, engine_options)
        return instance

    def _initialize_engine(self, db_url: str, db_config: dict) -> None:
        """Create SQLAlchemy engine with connection pooling."""
        echo = os.getenv('SQL_ECHO', 'false').lower() == 'true'

        if db_url.startswith('sqlite'):
            # One shared connection so in-memory databases survive across sessions
            self._engine = create_engine(
                db_url,
                poolclass=StaticPool,
                connect_args={'check_same_thread': False},
                echo=echo
            )
        else:
            logger.info(f"Initializing database connection to {self._describe(db_url)}")
            self._engine = create_engine(
                db_url,
                poolclass=QueuePool,
                pool_size=db_config.get('pool_size', 5),
                max_overflow=db_config.get('max_overflow', 10),
                pool_timeout=db_config.get('pool_timeout', 30),
                pool_pre_ping=True,  # Enable connection health checks
                echo=echo
            )

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        logger.info("Database engine initialized successfully")

    def _build_connection_url(self, db_config: dict) -> str:
        """Build PostgreSQL connection URL from config."""
        if db_config.get('url'):
            return db_config['url']

        host = db_config.get('host', 'localhost')
        port = db_config.get('port', 5432)
        name = db_config.get('name', 'boats')
        user = db_config.get('user', 'dockmaster_sync')
        password = db_config.get('password', '')

        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"

    @staticmethod
    def _describe(db_url: str) -> str:
        """Connection URL without credentials, for logging."""
        return db_url.rsplit('@', 1)[-1]

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        return self._engine

    @property
    def dialect_name(self) -> str:
        """Name of the active SQL dialect ('postgresql', 'sqlite', ...)."""
        return self._engine.dialect.name

    def get_session(self) -> Session:
        """Create a new database session."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with db.session_scope() as session:
                session.query(...)
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def check_connection(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            bool: True if connection is healthy, False otherwise.
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.debug("Database connection health check passed")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection health check failed: {e}")
            return False


# Convenience function for getting database connection
def get_db() -> DatabaseConnection:
    """Get the singleton database connection instance."""
    return DatabaseConnection()

