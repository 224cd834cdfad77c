"""
ProgramVersion — immutable snapshot written on every generate/adapt/replan.

Append-only. Exactly one row per (program_id, version); the unique
constraint rejects a second writer that lost the version race.

reason values:
  "initial_generation" — generate_program
  "guard_pause"        — guard tripped during generate/adapt
  "adaptation_replan"  — adapt_program rebuilt the structure
  "constraint_replan"  — replan_program
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class ProgramVersion(Base):
    __tablename__ = "program_versions"
    __table_args__ = (
        UniqueConstraint("program_id", "version", name="uq_program_version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    program_type: Mapped[str] = mapped_column(String(16), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment="JSON NutritionSnapshot | TrainingSnapshot",
    )
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
