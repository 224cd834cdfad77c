"""
MotionRiskFlag — output of pose-based motion-risk detection.

Append-only; the engine only looks at the most recent flag per user.
severity: "safe" | "caution" | "danger"
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class MotionRiskFlag(Base):
    __tablename__ = "motion_risk_flags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    flag_type: Mapped[str] = mapped_column(String(64), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
