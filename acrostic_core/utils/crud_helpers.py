"""
Generic CRUD helpers shared by the storage backends and services.

Write helpers commit on success, roll back and raise RepositoryError on
failure, and log with the model name and record id.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ErrorCode, RepositoryError, not_found
from .logger import get_logger

T = TypeVar("T")


def _apply_filters(query, model_class, filters: Optional[Dict[str, Any]]):
    if filters:
        for key, value in filters.items():
            if hasattr(model_class, key) and value is not None:
                query = query.filter(getattr(model_class, key) == value)
    return query


def create_record(session: Session, model_class: Type[T], data: Dict[str, Any]) -> T:
    """
    Generic create operation for any model.

    Raises:
        RepositoryError: If creation fails
    """
    logger = get_logger()

    try:
        record = model_class(**data)
        session.add(record)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to create {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
        ) from e

    logger.info(
        f"Created {model_class.__name__}",
        extra={"model": model_class.__name__, "record_id": getattr(record, "id", None)},
    )
    return record


def get_record(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> Optional[T]:
    """Generic get operation for any model. Returns the first match or None."""
    return _apply_filters(session.query(model_class), model_class, filters).first()


def get_record_by_id(session: Session, model_class: Type[T], record_id: str) -> Optional[T]:
    """Generic get by ID operation."""
    return get_record(session, model_class, {"id": record_id})


def update_record(
    session: Session,
    model_class: Type[T],
    record_id: str,
    data: Dict[str, Any],
) -> T:
    """
    Generic update operation for any model. ``None`` values are skipped.

    Raises:
        RepositoryError: NOT_FOUND when the record is missing, DATABASE_ERROR on failure
    """
    logger = get_logger()

    record = get_record_by_id(session, model_class, record_id)
    if not record:
        raise not_found(model_class.__name__, record_id=record_id)

    try:
        for key, value in data.items():
            if hasattr(record, key) and value is not None:
                setattr(record, key, value)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to update {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
            record_id=record_id,
        ) from e

    logger.info(
        f"Updated {model_class.__name__}",
        extra={"model": model_class.__name__, "record_id": record_id},
    )
    return record


def delete_record(session: Session, model_class: Type[T], record_id: str) -> bool:
    """
    Generic delete operation for any model.

    Returns:
        True if deleted, False if not found
    """
    logger = get_logger()

    record = get_record_by_id(session, model_class, record_id)
    if not record:
        return False

    try:
        session.delete(record)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(
            f"Failed to delete {model_class.__name__}: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            model=model_class.__name__,
            record_id=record_id,
        ) from e

    logger.info(
        f"Deleted {model_class.__name__}",
        extra={"model": model_class.__name__, "record_id": record_id},
    )
    return True


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    order_by: Optional[str] = None,
) -> List[T]:
    """
    Generic list operation for any model.

    Ordered by ``order_by`` when given, otherwise by ``created_at`` ascending
    when the model has it.
    """
    query = _apply_filters(session.query(model_class), model_class, filters)

    if order_by and hasattr(model_class, order_by):
        query = query.order_by(getattr(model_class, order_by))
    elif hasattr(model_class, "created_at"):
        query = query.order_by(model_class.created_at)  # type: ignore[attr-defined]

    if limit:
        query = query.limit(limit)

    return query.all()


def record_exists(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> bool:
    """Check if a record exists with the given filters."""
    return get_record(session, model_class, filters) is not None
