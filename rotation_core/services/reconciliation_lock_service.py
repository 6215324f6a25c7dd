"""
Per-resource mutual exclusion for reconciliation passes.

A lock is a row in reconciliation_locks keyed by spec_id. Inserting the row
acquires it; a second insert fails on the primary key. Rows left behind by a
crashed holder expire and may be taken over.
"""

import os
import socket
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError

from ..config import get_config
from ..db.db_base import utc_now
from ..db.db_rotation_models import ReconciliationLock
from ..exceptions import ReconciliationInProgressError
from .base_service import SessionManagedService


def default_holder_id() -> str:
    """Identifier for this process, recorded on the lock row for monitoring."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReconciliationLockService(SessionManagedService):
    """Acquire and release reconciliation locks."""

    def __init__(
        self,
        session: Optional[Session] = None,
        holder_id: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ):
        super().__init__(session=session)
        self.holder_id = holder_id or default_holder_id()
        self.ttl_seconds = ttl_seconds or get_config().processing.lock_ttl_seconds

    def acquire(self, spec_id: str) -> ReconciliationLock:
        """
        Acquire the lock for one managed resource.

        Raises:
            ReconciliationInProgressError: If another live holder has it
        """
        now = utc_now()
        expires_at = now + timedelta(seconds=self.ttl_seconds)

        self.logger.debug(
            "Attempting to acquire reconciliation lock",
            extra={"spec_id": spec_id, "locked_by": self.holder_id, "ttl_seconds": self.ttl_seconds},
        )

        try:
            lock = ReconciliationLock(
                spec_id=spec_id,
                locked_by=self.holder_id,
                locked_at=now,
                expires_at=expires_at,
                attempt_count=1,
            )
            self.session.add(lock)
            self.session.commit()
            self.logger.info(
                "Acquired reconciliation lock",
                extra={"spec_id": spec_id, "locked_by": self.holder_id},
            )
            return lock
        except (IntegrityError, FlushError):
            # Primary key taken: in this session (FlushError) or by another (IntegrityError)
            self.session.rollback()

        return self._take_over_expired(spec_id, now, expires_at)

    def _take_over_expired(
        self, spec_id: str, now: datetime, expires_at: datetime
    ) -> ReconciliationLock:
        # Conditional update so only one contender wins an expired row
        taken = self.session.execute(
            update(ReconciliationLock)
            .where(
                and_(
                    ReconciliationLock.spec_id == spec_id,
                    ReconciliationLock.expires_at < now,
                )
            )
            .values(
                locked_by=self.holder_id,
                locked_at=now,
                expires_at=expires_at,
                attempt_count=ReconciliationLock.attempt_count + 1,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        self.session.commit()

        existing = self.session.get(ReconciliationLock, spec_id)
        if taken and existing is not None:
            self.logger.warning(
                "Took over expired reconciliation lock",
                extra={
                    "spec_id": spec_id,
                    "locked_by": self.holder_id,
                    "attempt_count": existing.attempt_count,
                },
            )
            return existing

        held_by = existing.locked_by if existing is not None else None
        held_until = _as_utc(existing.expires_at).isoformat() if existing is not None else None
        raise ReconciliationInProgressError(
            f"Reconciliation of '{spec_id}' is already in progress",
            spec_id=spec_id,
            locked_by=held_by,
            expires_at=held_until,
        )

    def release(self, spec_id: str) -> bool:
        """
        Release a lock held by this holder.

        Returns:
            True if released, False if this holder did not hold it
        """
        try:
            deleted = (
                self.session.query(ReconciliationLock)
                .filter(
                    and_(
                        ReconciliationLock.spec_id == spec_id,
                        ReconciliationLock.locked_by == self.holder_id,
                    )
                )
                .delete()
            )
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            self.logger.error(
                "Failed to release reconciliation lock",
                extra={"spec_id": spec_id, "locked_by": self.holder_id, "error": str(e)},
            )
            return False

        if deleted:
            self.logger.info(
                "Released reconciliation lock",
                extra={"spec_id": spec_id, "locked_by": self.holder_id},
            )
            return True

        self.logger.warning(
            "No reconciliation lock found to release",
            extra={"spec_id": spec_id, "locked_by": self.holder_id},
        )
        return False

    @contextmanager
    def hold(self, spec_id: str) -> Generator[ReconciliationLock, None, None]:
        """Hold the lock for the duration of a block; released in all cases."""
        lock = self.acquire(spec_id)
        try:
            yield lock
        finally:
            # Discard any half-finished unit of work before touching the lock row
            self.session.rollback()
            self.release(spec_id)

    def is_locked(self, spec_id: str) -> bool:
        """True if a live lock exists for the resource."""
        lock = self.session.get(ReconciliationLock, spec_id)
        return lock is not None and _as_utc(lock.expires_at) > utc_now()

    def cleanup_expired(self) -> int:
        """
        Delete expired lock rows.

        Returns:
            Number of expired locks removed
        """
        deleted = (
            self.session.query(ReconciliationLock)
            .filter(ReconciliationLock.expires_at < utc_now())
            .delete(synchronize_session=False)
        )
        self.session.commit()

        if deleted:
            self.logger.info("Cleaned up expired reconciliation locks", extra={"expired_locks": deleted})
        return deleted
