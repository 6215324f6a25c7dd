"""
Generic CRUD helpers shared by the rotation services.

These functions work with any SQLAlchemy model so the services do not
each carry their own create/get/delete boilerplate.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from ..exceptions import BaseError, ErrorCode
from .logger import get_logger

T = TypeVar("T")


def create_record(
    session: Session, model_class: Type[T], data: Dict[str, Any], commit: bool = True
) -> T:
    """
    Generic create operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        data: Data dictionary
        commit: Commit immediately; pass False to join a larger unit of work

    Returns:
        Created record instance

    Raises:
        BaseError: If creation fails
    """
    logger = get_logger()

    try:
        if hasattr(model_class, "created_at"):
            data.setdefault("created_at", datetime.now(timezone.utc))
        if hasattr(model_class, "updated_at"):
            data.setdefault("updated_at", datetime.now(timezone.utc))

        record = model_class(**data)
        session.add(record)
        if commit:
            session.commit()
        else:
            session.flush()

        logger.debug(
            f"Created {model_class.__name__}",
            extra={"model": model_class.__name__, "record_id": getattr(record, "id", None)},
        )

        return record

    except Exception as e:
        session.rollback()
        logger.error(
            f"Failed to create {model_class.__name__}: {str(e)}",
            extra={"model": model_class.__name__, "error": str(e)},
        )
        raise BaseError(
            f"Failed to create {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
        )


def get_record(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> Optional[T]:
    """
    Generic get operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        filters: Filter conditions; None values are skipped

    Returns:
        Record instance or None
    """
    query = session.query(model_class)

    for key, value in filters.items():
        if hasattr(model_class, key) and value is not None:
            query = query.filter(getattr(model_class, key) == value)

    return query.first()


def delete_record(
    session: Session, model_class: Type[T], record_id: str, commit: bool = True
) -> bool:
    """
    Generic delete operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        record_id: Record ID to delete
        commit: Commit immediately; pass False to join a larger unit of work

    Returns:
        True if deleted, False if not found

    Raises:
        BaseError: If delete fails
    """
    logger = get_logger()

    try:
        record = get_record(session, model_class, {"id": record_id})
        if not record:
            return False

        session.delete(record)
        if commit:
            session.commit()

        logger.debug(
            f"Deleted {model_class.__name__}",
            extra={"model": model_class.__name__, "record_id": record_id},
        )

        return True

    except Exception as e:
        session.rollback()
        logger.error(
            f"Failed to delete {model_class.__name__}: {str(e)}",
            extra={"model": model_class.__name__, "record_id": record_id, "error": str(e)},
        )
        raise BaseError(
            f"Failed to delete {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
        )


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    order_by: Optional[str] = None,
) -> List[T]:
    """
    Generic list operation for any model.

    Args:
        session: Database session
        model_class: SQLAlchemy model class
        filters: Optional filter conditions
        limit: Optional limit
        order_by: Optional order by field (ascending); defaults to newest first

    Returns:
        List of record instances
    """
    query = session.query(model_class)

    if filters:
        for key, value in filters.items():
            if hasattr(model_class, key) and value is not None:
                query = query.filter(getattr(model_class, key) == value)

    if order_by and hasattr(model_class, order_by):
        query = query.order_by(getattr(model_class, order_by))
    elif hasattr(model_class, "created_at"):
        query = query.order_by(model_class.created_at.desc())  # type: ignore[attr-defined]

    if limit:
        query = query.limit(limit)

    return query.all()
