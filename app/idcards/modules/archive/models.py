from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.idcards.models import Base, utcnow
from app.idcards.modules.id_requests.models import HolderAttributes


class HistoryRecord(HolderAttributes):
    """
    Archived copy of an Accepted/Rejected row.

    created_at is the source row's original creation time; copied_at is stamped
    at archive time. source_ref identifies the source row and makes re-archiving
    the same row a no-op.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)  # type: ignore[assignment]
    copied_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    provenance: Mapped[str] = mapped_column(String(32), nullable=False)
    source_ref: Mapped[str] = mapped_column(String(128), nullable=False)

    def as_dict(self) -> dict:
        out = super().as_dict()
        out["copied_at"] = self.copied_at.isoformat() if self.copied_at else None
        out["provenance"] = self.provenance
        return out


class AcceptedHistory(HistoryRecord, Base):
    __tablename__ = "acchistoryid"
    __table_args__ = (
        UniqueConstraint("source_ref", name="uq_acchistoryid_source_ref"),
        Index("idx_acchistoryid_register_number", "register_number"),
    )


class RejectedHistory(HistoryRecord, Base):
    __tablename__ = "rejhistoryids"
    __table_args__ = (
        UniqueConstraint("source_ref", name="uq_rejhistoryids_source_ref"),
        Index("idx_rejhistoryids_register_number", "register_number"),
    )
