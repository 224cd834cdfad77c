"""
ProgramExplainability — why the engine produced a given version.

Append-only; at least one row per program version.

decision_ref values:
  "program_generation", "why_paused", "why_lowered_intensity", "why_changed"
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Float, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class ProgramExplainability(Base):
    __tablename__ = "program_explainability"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    program_type: Mapped[str] = mapped_column(String(16), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    decision_ref: Mapped[str] = mapped_column(String(32), nullable=False)
    knowledge_refs: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    guard_notes: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON {reason_code, input_context, diff_summary, safety_notes}",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
