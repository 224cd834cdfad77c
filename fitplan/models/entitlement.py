from datetime import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from fitplan.db.base import Base


class UserEntitlement(Base):
    """Feature flags from the subscription system. Missing row means config defaults."""

    __tablename__ = "user_entitlements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="free")
    can_generate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_adapt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
