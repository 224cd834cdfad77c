"""
ProgramGenerationJob — audit row for every generate_program call.

status: "running" → "completed" | "blocked"
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class ProgramGenerationJob(Base):
    __tablename__ = "program_generation_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    program_type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="running")
    input_context: Mapped[str | None] = mapped_column(Text, nullable=True)
    output_program_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("programs.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
