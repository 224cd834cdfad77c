"""
Phase / Block / Day — the time partition of one program structure.

Phase ⊃ Blocks ⊃ Days. Every rebuild inserts a fresh set of rows tagged
with the program version that produced them. Rows of the structure being
replaced are either stamped with `superseded_at` (archive policy) or
deleted (delete policy); see settings.STRUCTURE_RETENTION.

The live structure of a program is: phases/days where superseded_at IS NULL.
"""
from datetime import datetime, date

from sqlalchemy import Integer, String, Text, DateTime, Date, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class ProgramPhase(Base):
    __tablename__ = "program_phases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    program_version: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(32), nullable=False)
    phase_type: Mapped[str] = mapped_column(
        String(16), nullable=False, comment='"build" or "deload"'
    )
    phase_goal: Mapped[str] = mapped_column(String(32), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ProgramBlock(Base):
    __tablename__ = "program_blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    phase_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("program_phases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    block_type: Mapped[str] = mapped_column(String(16), nullable=False)
    block_goal: Mapped[str] = mapped_column(String(32), nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)


class ProgramDay(Base):
    __tablename__ = "program_days"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    block_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("program_blocks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    targets: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON macros (nutrition programs)"
    )
    session_plan: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON {focus, intensity} (training programs)"
    )
    constraints_applied: Mapped[str | None] = mapped_column(Text, nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
