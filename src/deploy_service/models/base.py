# deploy_service/models/base.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Uuid
from sqlalchemy.orm import declarative_base

# The single declarative base for all models of the service.
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDMixin:
    """Mixin to provide a UUID primary key for models."""

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        index=True,
        nullable=False,
    )


class TimestampMixin:
    """
    Mixin to provide created_at and updated_at columns for models.

    `updated_at` is only changed through `touch()`, which the ledger calls on
    every mutation it performs.
    """

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def touch(self, when: datetime = None) -> datetime:
        self.updated_at = when or utcnow()
        return self.updated_at
