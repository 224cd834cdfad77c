"""
ProgramSession — the deliverable for one (program, date).

Status is a forward-only state machine:

    planned ──► completed
       └──────► skipped

Terminal sessions are never rewritten by structure rebuilds.
"""
from datetime import datetime, date
import enum

from sqlalchemy import Integer, String, Text, DateTime, Date, Enum, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class SessionStatus(str, enum.Enum):
    planned = "planned"
    completed = "completed"
    skipped = "skipped"


class ProgramSession(Base):
    __tablename__ = "program_sessions"
    __table_args__ = (
        UniqueConstraint("program_id", "date", name="uq_program_session_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    program_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    session_type: Mapped[str] = mapped_column(
        String(32), nullable=False, comment='"meal_plan" or "workout_plan"'
    )
    plan_payload: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(SessionStatus, name="session_status_enum"),
        nullable=False,
        default=SessionStatus.planned,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
