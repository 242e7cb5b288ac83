from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class DBReport(Base):
    __tablename__ = "reports"

    slug: Mapped[str] = mapped_column(String(100), primary_key=True)
    query: Mapped[str] = mapped_column(String(256))
    payload: Mapped[str] = mapped_column(Text)  # Report.to_dict() as JSON
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
