"""
ProgramGuardEvent — every time a safety guard fires.

Append-only.

flags (JSON array) values:
  "medical_block"  — explicit medical block or reported pain >= 4
  "low_confidence" — knowledge confidence below the block threshold
  "pose_risk"      — latest motion-risk flag is danger (training only)
  "fatigue" / "overload" — load guard on a meso adaptation
  "manual_pause"   — user paused the program
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class RiskLevel(str, enum.Enum):
    safe = "safe"
    caution = "caution"
    danger = "danger"


class ProgramGuardEvent(Base):
    __tablename__ = "program_guard_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    program_type: Mapped[str] = mapped_column(String(16), nullable=False)
    risk_level: Mapped[str] = mapped_column(
        Enum(RiskLevel, name="risk_level_enum"), nullable=False
    )
    flags: Mapped[str] = mapped_column(Text, nullable=False, comment="JSON array of flag strings")
    blocked_actions: Mapped[str] = mapped_column(
        Text, nullable=False, comment="JSON array of blocked action names"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
