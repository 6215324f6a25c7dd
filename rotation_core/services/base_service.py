"""
Base service implementation with session ownership.

Services either own a session (created from the global database manager)
or borrow one handed in by a caller that coordinates a larger unit of work.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.orm import Session

from ..db.db_config import get_db_manager
from ..utils.logger import get_logger


class SessionManagedService:
    """
    Service that owns or borrows its database session.

    When the session is borrowed, commit/rollback/close are left to the owner
    except where a method documents that it commits as part of its contract.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize service.

        Args:
            session: Optional existing session (for testing or coordination)
            logger: Optional logger instance
        """
        if session:
            self.session = session
            self._owns_session = False
        else:
            self.session = self._create_session()
            self._owns_session = True

        self.logger = logger or get_logger()

    def _create_session(self) -> Session:
        """Create a new database session from the global manager."""
        return get_db_manager().new_session()

    @contextmanager
    def transaction(self):
        """
        Context manager for transactional operations.

        Usage:
            with service.transaction():
                service.stage_something()
                service.record_something()
                # Commits on success, rolls back on exception
        """
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def commit(self):
        """Manually commit the current transaction."""
        if self._owns_session:
            self.session.commit()

    def rollback(self):
        """Manually rollback the current transaction."""
        if self._owns_session:
            self.session.rollback()

    def close(self):
        """Close the session if we own it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()
