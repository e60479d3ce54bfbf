"""DeclarativeBase, TimestampMixin, and append-only guard for all ORM models."""

from datetime import datetime

from sqlalchemy import DateTime, event, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from smartmatch.exceptions import AppendOnlyViolationError


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all SmartMatch models."""

    pass


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamps.

    Uses server_default for initial values and onupdate for tracking modifications.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class AppendOnlyMixin:
    """Marks a model as an immutable audit/history record.

    Flushing an UPDATE or DELETE for a subclass raises AppendOnlyViolationError.
    """

    pass


@event.listens_for(AppendOnlyMixin, "before_update", propagate=True)
def _reject_update(mapper, connection, target) -> None:
    raise AppendOnlyViolationError(
        detail=f"Attempted UPDATE on {type(target).__name__} id={target.id}",
    )


@event.listens_for(AppendOnlyMixin, "before_delete", propagate=True)
def _reject_delete(mapper, connection, target) -> None:
    raise AppendOnlyViolationError(
        detail=f"Attempted DELETE on {type(target).__name__} id={target.id}",
    )
