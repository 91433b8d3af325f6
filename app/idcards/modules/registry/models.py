from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.idcards.models import Base, utcnow


class RegisteredNumber(Base):
    """Login allowlist: membership is the whole payload."""

    __tablename__ = "regnumbers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    register_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    def as_dict(self) -> dict:
        return {"id": self.id, "register_number": self.register_number}
