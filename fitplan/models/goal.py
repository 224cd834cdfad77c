from datetime import datetime
from sqlalchemy import Integer, String, Numeric, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from decimal import Decimal

from fitplan.db.base import Base


class UserGoal(Base):
    """Daily macro targets a user committed to; the base for nutrition day targets."""

    __tablename__ = "user_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    calories: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    protein: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    fat: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    carbs: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
