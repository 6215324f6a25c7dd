"""
Rotation state models.

Just the data structures - all operations are handled by the services in
rotation_core.services.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from .db_base import JSON, EncryptedBinary, RecordMixin, utc_now
from .db_config import Base


class RotationState(Base, RecordMixin):
    """
    One row per managed resource.

    Holds the persisted (last_epoch, current_credential, remote_state_cache)
    triple plus the pending credential staged before a replacement.
    """

    __tablename__ = "rotation_state"

    spec_id = Column(String(200), nullable=False, unique=True)
    binding_state = Column(String(20), nullable=False, default="ABSENT")

    # Clock gate
    last_epoch_id = Column(Integer, nullable=True)
    last_epoch_created_at = Column(DateTime(timezone=True), nullable=True)

    # Current credential (password by reference only)
    current_login = Column(String(100), nullable=True)
    current_password_ref = Column(String(100), nullable=True)
    current_epoch_id = Column(Integer, nullable=True)

    # Credential recorded ahead of a replacement
    pending_login = Column(String(100), nullable=True)
    pending_password_ref = Column(String(100), nullable=True)
    pending_epoch_id = Column(Integer, nullable=True)

    bound_resource_id = Column(String(500), nullable=True)
    remote_state_cache = Column(JSON, nullable=True)
    last_error = Column(JSON, nullable=True)


class StoredSecret(Base, RecordMixin):
    """Encrypted administrator password, referenced as ``secret:<id>``."""

    __tablename__ = "stored_secrets"

    spec_id = Column(String(200), nullable=False, index=True)
    epoch_id = Column(Integer, nullable=False)
    secret_value = Column(EncryptedBinary, nullable=False)

    __table_args__ = (Index("ix_stored_secret_lookup", "spec_id", "epoch_id"),)


class ReconciliationLock(Base):
    """
    Mutual exclusion for reconciliation passes.

    The primary key on spec_id makes a second concurrent insert fail, which
    works the same way on SQLite and PostgreSQL.
    """

    __tablename__ = "reconciliation_locks"

    spec_id = Column(String(200), primary_key=True)
    locked_by = Column(String(255), nullable=False)
    locked_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempt_count = Column(Integer, nullable=False, default=1)

    __table_args__ = (Index("ix_reconciliation_lock_expires_at", "expires_at"),)


class BindingTransition(Base, RecordMixin):
    """Append-only history of binding state changes."""

    __tablename__ = "binding_transitions"

    spec_id = Column(String(200), nullable=False, index=True)
    from_state = Column(String(20), nullable=True)
    to_state = Column(String(20), nullable=False)
    transition_type = Column(String(20), nullable=False, default="NORMAL")
    epoch_id = Column(Integer, nullable=True)
    action = Column(String(50), nullable=True)
    reason = Column(Text, nullable=True)
    context = Column(JSON, nullable=True)

    __table_args__ = (Index("ix_binding_transition_timeline", "spec_id", "created_at"),)
