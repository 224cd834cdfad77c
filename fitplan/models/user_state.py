"""
UserState — aggregated physiological / behavioral signals per user.

Written by the user-state aggregator (diary + workout history); the engine
only reads it. One row per user, refreshed in place.

fatigue_index and adherence_score are produced in [0, 1].
"""
from datetime import datetime
from sqlalchemy import Integer, String, Float, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class UserState(Base):
    __tablename__ = "user_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    current_weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    trend_weight_7d: Mapped[float | None] = mapped_column(Float, nullable=True)
    trend_weight_30d: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_calories: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_protein: Mapped[float | None] = mapped_column(Float, nullable=True)
    training_load_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    fatigue_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    adherence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    recovery_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    consistency_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
