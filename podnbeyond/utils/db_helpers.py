"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row-level locking helpers for Booking and Inventory updates

Row locks are only taken on PostgreSQL. SQLite serializes writers on its
own, so the helpers fall back to plain queries there.
"""

import logging
from typing import List, Optional, TypeVar, Type
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        return db.bind.dialect.name == 'postgresql'
    except AttributeError:
        return False


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a single record.

    Args:
        db: Database session
        model: SQLAlchemy model class
        filter_condition: Filter to find the row
        nowait: If True, raise immediately if the lock is held (PostgreSQL only)

    Returns:
        The locked model instance, or None if not found

    Example:
        booking = acquire_row_lock(db, Booking, Booking.id == booking_id)
    """
    query = db.query(model).filter(filter_condition)

    if is_postgres(db):
        query = query.with_for_update(nowait=nowait)

    return query.first()


def lock_rows(
    db: Session,
    model: Type[T],
    *filter_conditions,
    order_by=None
) -> List[T]:
    """
    Lock every row matching the filters.

    Rows are locked in order_by order so that two transactions touching
    overlapping date ranges acquire their locks in the same sequence.
    """
    query = db.query(model).filter(*filter_conditions)

    if order_by is not None:
        query = query.order_by(order_by)

    if is_postgres(db):
        query = query.with_for_update()

    return query.all()
