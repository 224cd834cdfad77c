"""
External collaborators of the program engine.

The engine depends only on the Protocols below. The Sql* classes are the
default implementations backed by the collaborator tables
(user_entitlements, ai_trust_scores, user_states, user_goals,
motion_risk_flags); tests swap in plain fakes.

Public API
----------
EntitlementGate.can_generate_program(user_id) / can_adapt_program(user_id) -> bool
TrustLedger.get_trust_score(user_id) -> int ; update_trust_score(user_id, delta) -> int
UserStateProvider.build_state(user_id, period) -> UserSignals
GoalStore.get_goal(user_id) -> Goals | None
MotionRiskProvider.latest_flag(user_id) -> MotionRisk | None
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Optional, Protocol

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitplan.core.config import settings
from fitplan.models.entitlement import UserEntitlement
from fitplan.models.goal import UserGoal
from fitplan.models.motion_risk import MotionRiskFlag
from fitplan.models.trust import AiTrustScore
from fitplan.models.user_state import UserState
from fitplan.services.skeleton import Goals


TRUST_MIN = 0
TRUST_MAX = 100


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass
class StatePeriod:
    from_date: date
    to_date: date

    @classmethod
    def trailing(cls, end: date, days: int) -> "StatePeriod":
        return cls(from_date=end - timedelta(days=days - 1), to_date=end)


@dataclass
class UserSignals:
    current_weight: Optional[float] = None
    trend_weight_7d: Optional[float] = None
    trend_weight_30d: Optional[float] = None
    training_load_index: Optional[float] = None
    fatigue_index: Optional[float] = None
    adherence_score: Optional[float] = None
    recovery_score: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MotionRisk:
    id: int
    severity: str

    @property
    def is_danger(self) -> bool:
        return self.severity == "danger"


def clamp_trust(value: float) -> int:
    return int(max(TRUST_MIN, min(TRUST_MAX, round(value))))


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class EntitlementGate(Protocol):
    def can_generate_program(self, user_id: str) -> bool: ...
    def can_adapt_program(self, user_id: str) -> bool: ...


class TrustLedger(Protocol):
    def get_trust_score(self, user_id: str) -> int: ...
    def update_trust_score(self, user_id: str, delta: int) -> int: ...


class UserStateProvider(Protocol):
    def build_state(self, user_id: str, period: StatePeriod) -> UserSignals: ...


class GoalStore(Protocol):
    def get_goal(self, user_id: str) -> Optional[Goals]: ...


class MotionRiskProvider(Protocol):
    def latest_flag(self, user_id: str) -> Optional[MotionRisk]: ...


# ---------------------------------------------------------------------------
# SQL-backed defaults
# ---------------------------------------------------------------------------

class SqlEntitlementGate:
    """Reads user_entitlements. Fails closed: a lookup error denies the action."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, user_id: str) -> Optional[UserEntitlement]:
        return (
            self.db.query(UserEntitlement)
            .filter(UserEntitlement.user_id == user_id)
            .first()
        )

    def can_generate_program(self, user_id: str) -> bool:
        try:
            row = self._row(user_id)
        except SQLAlchemyError:
            logger.warning(f"Entitlement lookup failed for {user_id}; denying generation")
            return False
        return settings.DEFAULT_CAN_GENERATE if row is None else bool(row.can_generate)

    def can_adapt_program(self, user_id: str) -> bool:
        try:
            row = self._row(user_id)
        except SQLAlchemyError:
            logger.warning(f"Entitlement lookup failed for {user_id}; denying adaptation")
            return False
        return settings.DEFAULT_CAN_ADAPT if row is None else bool(row.can_adapt)


class SqlTrustLedger:
    def __init__(self, db: Session):
        self.db = db

    def _row(self, user_id: str) -> Optional[AiTrustScore]:
        return (
            self.db.query(AiTrustScore)
            .filter(AiTrustScore.user_id == user_id)
            .first()
        )

    def get_trust_score(self, user_id: str) -> int:
        row = self._row(user_id)
        return settings.DEFAULT_TRUST_SCORE if row is None else int(row.trust_score)

    def update_trust_score(self, user_id: str, delta: int) -> int:
        """Apply delta clamped to [0, 100]. Flushes; the caller commits."""
        row = self._row(user_id)
        current = settings.DEFAULT_TRUST_SCORE if row is None else row.trust_score
        nxt = clamp_trust(current + delta)
        if row is None:
            self.db.add(AiTrustScore(user_id=user_id, trust_score=nxt))
        else:
            row.trust_score = nxt
        self.db.flush()
        return nxt


class SqlUserStateProvider:
    """
    Returns the aggregator's latest row for the user. The period is accepted
    for interface parity; the stored row is already aggregated over a
    trailing window by the producer.
    """

    def __init__(self, db: Session):
        self.db = db

    def build_state(self, user_id: str, period: StatePeriod) -> UserSignals:
        row = self.db.query(UserState).filter(UserState.user_id == user_id).first()
        if row is None:
            return UserSignals()
        return UserSignals(
            current_weight=row.current_weight,
            trend_weight_7d=row.trend_weight_7d,
            trend_weight_30d=row.trend_weight_30d,
            training_load_index=row.training_load_index,
            fatigue_index=row.fatigue_index,
            adherence_score=row.adherence_score,
            recovery_score=row.recovery_score,
        )


class SqlGoalStore:
    def __init__(self, db: Session):
        self.db = db

    def get_goal(self, user_id: str) -> Optional[Goals]:
        row = self.db.query(UserGoal).filter(UserGoal.user_id == user_id).first()
        if row is None:
            return None
        return Goals(
            calories=float(row.calories),
            protein=float(row.protein),
            fat=float(row.fat),
            carbs=float(row.carbs),
        )


class SqlMotionRiskProvider:
    def __init__(self, db: Session):
        self.db = db

    def latest_flag(self, user_id: str) -> Optional[MotionRisk]:
        row = (
            self.db.query(MotionRiskFlag)
            .filter(MotionRiskFlag.user_id == user_id)
            .order_by(MotionRiskFlag.created_at.desc(), MotionRiskFlag.id.desc())
            .first()
        )
        if row is None:
            return None
        return MotionRisk(id=row.id, severity=row.severity)
