from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    # Stored naive (UTC) to match DateTime(timezone=False) columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class WorkflowEvent(Base):
    """
    Append-only log of workflow actions (submit, status edit, transition, archive).
    Rows are only ever inserted.
    """

    __tablename__ = "workflow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "request.submit"
    register_number: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "IdCardRequest"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.idcards.modules.registry.models import RegisteredNumber  # noqa: E402,F401
from app.idcards.modules.id_requests.models import (  # noqa: E402,F401
    AcceptedIdCard,
    IdCardRequest,
    PrintQueueEntry,
    RejectedIdCard,
)
from app.idcards.modules.archive.models import AcceptedHistory, RejectedHistory  # noqa: E402,F401
