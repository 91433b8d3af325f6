from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, LargeBinary, String, Text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapped, mapped_column

from app.idcards.models import Base, utcnow

# Copied verbatim whenever a row moves between tables or into history.
HOLDER_FIELDS = ("name", "dob", "department", "year", "section", "library_code", "reason")


class HolderAttributes:
    """Card holder columns shared by every request-shaped table."""

    register_number: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dob: Mapped[str | None] = mapped_column(String(32), nullable=True)
    department: Mapped[str | None] = mapped_column(String(128), nullable=True)
    year: Mapped[str | None] = mapped_column(String(16), nullable=True)
    section: Mapped[str | None] = mapped_column(String(16), nullable=True)
    library_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    def holder_fields(self) -> dict:
        return {f: getattr(self, f) for f in HOLDER_FIELDS}

    def as_dict(self) -> dict:
        out = {"id": self.id, "register_number": self.register_number}  # type: ignore[attr-defined]
        out.update(self.holder_fields())
        out["created_at"] = self.created_at.isoformat() if self.created_at else None
        return out


class IdCardRequest(HolderAttributes, Base):
    """Pending submission. Attachment bytes are deferred so listings never load them."""

    __tablename__ = "idcards"
    __table_args__ = (
        Index("uq_idcards_register_number", "register_number", unique=True),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    photo_data: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True, deferred=True)
    photo_content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    photo_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Free text; "pending" until an administrator annotates it.
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="pending")
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_content_type or self.photo_filename)

    def as_dict(self) -> dict:
        out = super().as_dict()
        out["status"] = self.status
        out["last_updated"] = self.last_updated.isoformat() if self.last_updated else None
        out["photo"] = (
            {"content_type": self.photo_content_type, "original_name": self.photo_filename}
            if self.has_photo
            else None
        )
        if out["photo"] is not None and "photo_data" not in sa_inspect(self).unloaded and self.photo_data is not None:
            out["photo"]["size_bytes"] = len(self.photo_data)
        return out


class PrintQueueEntry(HolderAttributes, Base):
    __tablename__ = "printids"
    __table_args__ = (
        Index("uq_printids_register_number", "register_number", unique=True),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class AcceptedIdCard(HolderAttributes, Base):
    # The one active table that may hold several rows per register number
    # (repeat requests after pickup).
    __tablename__ = "acceptedidcards"
    __table_args__ = (
        Index("idx_acceptedidcards_register_number", "register_number"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class RejectedIdCard(HolderAttributes, Base):
    __tablename__ = "rejectedidcards"
    __table_args__ = (
        Index("uq_rejectedidcards_register_number", "register_number", unique=True),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
