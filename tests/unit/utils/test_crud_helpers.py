"""Tests for the generic CRUD helpers."""

from unittest.mock import patch

import pytest

from rotation_core.db import BindingTransition, RotationState
from rotation_core.exceptions import BaseError, ErrorCode
from rotation_core.utils.crud_helpers import (
    create_record,
    delete_record,
    get_record,
    list_records,
)


class TestCreateRecord:
    def test_create_and_get(self, db_session):
        record = create_record(db_session, RotationState, {"spec_id": "pg-main"})

        assert record.id is not None
        assert record.created_at is not None
        assert get_record(db_session, RotationState, {"spec_id": "pg-main"}) is record

    def test_create_without_commit_joins_transaction(self, db_session):
        create_record(db_session, RotationState, {"spec_id": "pg-main"}, commit=False)
        db_session.rollback()
        assert get_record(db_session, RotationState, {"spec_id": "pg-main"}) is None

    def test_duplicate_raises_database_error(self, db_session):
        create_record(db_session, RotationState, {"spec_id": "pg-main"})

        with pytest.raises(BaseError) as exc_info:
            create_record(db_session, RotationState, {"spec_id": "pg-main"})

        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR


class TestGetRecord:
    def test_none_filters_are_skipped(self, db_session):
        create_record(db_session, RotationState, {"spec_id": "pg-main"})
        assert get_record(db_session, RotationState, {"spec_id": "pg-main", "id": None})

    def test_missing(self, db_session):
        assert get_record(db_session, RotationState, {"spec_id": "nope"}) is None


class TestDeleteRecord:
    def test_delete(self, db_session):
        record = create_record(db_session, RotationState, {"spec_id": "pg-main"})
        assert delete_record(db_session, RotationState, record.id) is True
        assert get_record(db_session, RotationState, {"id": record.id}) is None

    def test_delete_missing(self, db_session):
        assert delete_record(db_session, RotationState, "missing") is False

    def test_delete_failure_wrapped(self, db_session):
        record = create_record(db_session, RotationState, {"spec_id": "pg-main"})
        with patch.object(db_session, "commit", side_effect=RuntimeError("disk full")):
            with pytest.raises(BaseError) as exc_info:
                delete_record(db_session, RotationState, record.id)
        assert exc_info.value.cause.args == ("disk full",)


class TestListRecords:
    def test_order_by_and_limit(self, db_session, factories):
        from tests.fixtures.factories import BindingTransitionFactory

        first = BindingTransitionFactory(spec_id="pg-main", epoch_id=1)
        second = BindingTransitionFactory(spec_id="pg-main", epoch_id=2)
        BindingTransitionFactory(spec_id="pg-other", epoch_id=1)

        ordered = list_records(
            db_session, BindingTransition, filters={"spec_id": "pg-main"}, order_by="created_at"
        )
        assert [r.id for r in ordered] == [first.id, second.id]

        newest = list_records(db_session, BindingTransition, filters={"spec_id": "pg-main"}, limit=1)
        assert [r.id for r in newest] == [second.id]
