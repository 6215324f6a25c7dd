"""Tests for the portable column types."""

from datetime import datetime, timezone

from rotation_core.db import RotationState, StoredSecret
from rotation_core.enums import BindingStateEnum


def test_json_column_round_trips_rich_values(db_session):
    failed_at = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    state = RotationState(
        spec_id="pg-main",
        binding_state=BindingStateEnum.DESTROYING.value,
        last_error={"action": "destroy", "failed_at": failed_at, "codes": {"5002"}},
    )
    db_session.add(state)
    db_session.commit()
    db_session.expire_all()

    stored = db_session.query(RotationState).filter_by(spec_id="pg-main").one()
    assert stored.last_error["action"] == "destroy"
    assert stored.last_error["failed_at"] == "2026-01-01T09:00:00Z"
    assert stored.last_error["codes"] == ["5002"]


def test_encrypted_column_stores_bytes(db_session):
    secret = StoredSecret(spec_id="pg-main", epoch_id=1, secret_value="S3cret!pw")
    db_session.add(secret)
    db_session.commit()
    db_session.expire_all()

    stored = db_session.get(StoredSecret, secret.id)
    assert stored.secret_value == b"S3cret!pw"
    assert stored.created_at is not None
    assert len(stored.id) == 36
