"""
ProgramAdaptation — one row per adapt_program call that rebuilt a structure.

Append-only. `trigger` is the first detected trigger (or "none").
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class ProgramAdaptation(Base):
    __tablename__ = "program_adaptations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    program_type: Mapped[str] = mapped_column(String(16), nullable=False)
    from_version: Mapped[int] = mapped_column(Integer, nullable=False)
    to_version: Mapped[int] = mapped_column(Integer, nullable=False)
    trigger: Mapped[str] = mapped_column(String(32), nullable=False)
    summary: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON {strategy, triggers, adjustment_factor, refeed}",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
