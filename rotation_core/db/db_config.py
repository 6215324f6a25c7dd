"""
Database setup for the rotation store.

Rotation state, stored secrets, locks and transition history live in one
database addressed by a SQLAlchemy URL. SQLite (usually in memory) backs
development and tests; PostgreSQL backs deployments, where pgcrypto
encrypts stored passwords.
"""

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..constants import EnvironmentVariable
from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils.logger import get_logger

Base: Any = declarative_base()

IN_MEMORY_URL = "sqlite:///:memory:"
SUPPORTED_BACKENDS = ("sqlite", "postgresql")


class DatabaseConfig(BaseModel):
    """Connection settings for the rotation store."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.DATABASE_URL.value, IN_MEMORY_URL),
        description="SQLAlchemy database URL",
    )
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    echo: bool = False
    allow_drop: bool = Field(default=False, description="Permit drop_tables(); tests only")

    @classmethod
    def in_memory(cls, echo: bool = False) -> "DatabaseConfig":
        """A throwaway SQLite database shared by every session of one manager."""
        return cls(url=IN_MEMORY_URL, echo=echo, allow_drop=True)

    def parsed_url(self) -> URL:
        """
        Parse and check the URL.

        Raises:
            ValidationError: If the URL is malformed or names an unsupported backend
        """
        try:
            url = make_url(self.url)
        except ArgumentError as e:
            raise ValidationError(
                "Malformed database URL", field="url", error_code=ErrorCode.INVALID_FORMAT, cause=e
            ) from e
        if url.get_backend_name() not in SUPPORTED_BACKENDS:
            raise ValidationError(
                f"Unsupported database backend: {url.get_backend_name()}",
                field="url",
                error_code=ErrorCode.INVALID_FORMAT,
                backend=url.get_backend_name(),
            )
        return url

    @property
    def is_sqlite(self) -> bool:
        return self.parsed_url().get_backend_name() == "sqlite"

    @property
    def is_in_memory(self) -> bool:
        url = self.parsed_url()
        return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")

    def __repr__(self) -> str:
        try:
            shown = self.parsed_url().render_as_string(hide_password=True)
        except ValidationError:
            shown = "<invalid>"
        return f"DatabaseConfig(url='{shown}')"


class DatabaseManager:
    """Engine and session factories for one rotation store."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine()
        self.session_factory = sessionmaker(bind=self.engine)
        self.scoped_session = scoped_session(self.session_factory)

    def _create_engine(self) -> Engine:
        url = self.config.parsed_url()
        if self.config.is_sqlite:
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if self.config.is_in_memory:
                # One shared connection so every session sees the same database
                kwargs["poolclass"] = StaticPool
            return create_engine(url, echo=self.config.echo, **kwargs)
        return create_engine(
            url,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        if not self.config.allow_drop:
            raise ServiceError(
                "Dropping rotation tables is not allowed for this database",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
            )
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        return self.scoped_session()

    def new_session(self) -> Session:
        """A session independent of the scoped one."""
        return self.session_factory()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session:
            session.close()
        else:
            self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def import_all_models() -> None:
    """Register the rotation tables with the metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_rotation_models import (  # noqa
        BindingTransition,
        ReconciliationLock,
        RotationState,
        StoredSecret,
    )

    configure_mappers()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    Get the process-wide database manager.

    Raises:
        ServiceError: If initialize_db() has not been called
    """
    if _db_manager is None:
        raise ServiceError(
            "Database manager not initialized. Call initialize_db() first.",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Create the process-wide manager and the rotation tables.

    Without a config, the URL comes from DATABASE_URL (in-memory SQLite if unset).
    """
    global _db_manager

    config = config or DatabaseConfig()
    get_logger().info("Initializing rotation database", extra={"database": repr(config)})
    _db_manager = DatabaseManager(config)

    import_all_models()
    _db_manager.create_tables()
    return _db_manager


def close_db() -> None:
    global _db_manager
    if _db_manager:
        _db_manager.close()
        _db_manager = None
