"""
Program — the root of a versioned nutrition or training plan.

`version` starts at 1 and grows by exactly one per generate/adapt/replan.
It is only ever moved through VersionManager.bump(), which does a
compare-and-swap on the current value.

status values:
  "active"  — structure is live and being delivered
  "paused"  — a safety guard (or the user) stopped delivery
  "blocked" — reserved for administrative blocks; never resumed by the engine
"""
from datetime import datetime, date
import enum

from sqlalchemy import Integer, String, Text, DateTime, Date, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class ProgramType(str, enum.Enum):
    nutrition = "nutrition"
    training = "training"


class ProgramStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    blocked = "blocked"


class Program(Base):
    __tablename__ = "programs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    program_type: Mapped[str] = mapped_column(
        Enum(ProgramType, name="program_type_enum"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        Enum(ProgramStatus, name="program_status_enum"),
        nullable=False,
        default=ProgramStatus.active,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    knowledge_version_ref: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON: {program_type, effective_confidence, source, version}",
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
