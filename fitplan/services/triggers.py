"""
Trigger evaluator — turns state, feedback and context into adaptation triggers.

Triggers (detection order is preserved in TriggerSet.names)
-----------------------------------------------------------
  plateau                 |trend_weight_7d - trend_weight_30d| <= 0.2
  fatigue_spike           fatigue_index >= 70 OR feedback.difficulty >= 4
                          OR feedback.energy <= 2
  overload                training_load_index >= 80
  adherence_drop          adherence_score < 0.5 OR any skipped dates
  trust_drop              trust_score < 40
  knowledge_version_bump  stored knowledge version != freshly resolved one
  confidence_drop         confidence < 0.6
  risk_flag               medical block OR pain >= 4 OR danger motion-risk flag

NOTE (units): the aggregator produces fatigue_index in [0, 1], yet the
fatigue threshold is 70. The comparison is kept literal until the intended
unit is confirmed; in practice only feedback can raise fatigue_spike.

Zero I/O.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from fitplan.services.collaborators import UserSignals


# ---------------------------------------------------------------------------
# Trigger names
# ---------------------------------------------------------------------------

class Trigger:
    PLATEAU                = "plateau"
    FATIGUE_SPIKE          = "fatigue_spike"
    OVERLOAD               = "overload"
    ADHERENCE_DROP         = "adherence_drop"
    TRUST_DROP             = "trust_drop"
    KNOWLEDGE_VERSION_BUMP = "knowledge_version_bump"
    CONFIDENCE_DROP        = "confidence_drop"
    RISK_FLAG              = "risk_flag"


# Thresholds
FATIGUE_THRESHOLD     = 70
OVERLOAD_THRESHOLD    = 80
ADHERENCE_THRESHOLD   = 0.5
PLATEAU_WEIGHT_DELTA  = 0.2
TRUST_LOW_THRESHOLD   = 40
CONFIDENCE_BLOCK_THRESHOLD = 0.6
PAIN_BLOCK_THRESHOLD  = 4
DIFFICULTY_THRESHOLD  = 4
LOW_ENERGY_THRESHOLD  = 2


# ---------------------------------------------------------------------------
# Input / result types
# ---------------------------------------------------------------------------

@dataclass
class TriggerInputs:
    program_type: str
    state: UserSignals
    trust_score: float
    confidence: float
    feedback: dict[str, Any] = field(default_factory=dict)
    skipped_dates: list[date] = field(default_factory=list)
    stored_knowledge_version: Optional[str] = None
    fresh_knowledge_version: Optional[str] = None
    medical_blocked: bool = False
    pose_risk_flag_id: Optional[int] = None


@dataclass
class TriggerSet:
    names: list[str] = field(default_factory=list)
    pose_risk_flag_id: Optional[int] = None

    def add(self, name: str) -> None:
        if name not in self.names:
            self.names.append(name)

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def __bool__(self) -> bool:
        return bool(self.names)

    @property
    def first(self) -> Optional[str]:
        return self.names[0] if self.names else None

    @property
    def plateau(self) -> bool:
        return Trigger.PLATEAU in self.names

    @property
    def fatigue_spike(self) -> bool:
        return Trigger.FATIGUE_SPIKE in self.names

    @property
    def overload(self) -> bool:
        return Trigger.OVERLOAD in self.names

    @property
    def adherence_drop(self) -> bool:
        return Trigger.ADHERENCE_DROP in self.names

    @property
    def trust_drop(self) -> bool:
        return Trigger.TRUST_DROP in self.names

    @property
    def knowledge_version_bump(self) -> bool:
        return Trigger.KNOWLEDGE_VERSION_BUMP in self.names


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _num(source: dict[str, Any], key: str, default: float) -> float:
    value = source.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def feedback_pain(feedback: dict[str, Any]) -> float:
    return _num(feedback, "pain", 0)


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------

def _is_plateau(state: UserSignals) -> bool:
    if state.trend_weight_7d is None or state.trend_weight_30d is None:
        return False
    return abs(state.trend_weight_7d - state.trend_weight_30d) <= PLATEAU_WEIGHT_DELTA


def _is_fatigue_spike(state: UserSignals, feedback: dict[str, Any]) -> bool:
    return (
        (state.fatigue_index or 0) >= FATIGUE_THRESHOLD
        or _num(feedback, "difficulty", 0) >= DIFFICULTY_THRESHOLD
        or _num(feedback, "energy", 5) <= LOW_ENERGY_THRESHOLD
    )


def _is_overload(state: UserSignals) -> bool:
    return (state.training_load_index or 0) >= OVERLOAD_THRESHOLD


def _is_adherence_drop(state: UserSignals, skipped_dates: list[date]) -> bool:
    adherence = state.adherence_score if state.adherence_score is not None else 1.0
    return adherence < ADHERENCE_THRESHOLD or len(skipped_dates) > 0


def _is_version_bump(stored: Optional[str], fresh: Optional[str]) -> bool:
    return bool(stored) and stored != fresh


# ---------------------------------------------------------------------------
# Public — main entry point
# ---------------------------------------------------------------------------

def evaluate_triggers(inputs: TriggerInputs) -> TriggerSet:
    """Evaluate every trigger rule against one adaptation context."""
    triggers = TriggerSet(pose_risk_flag_id=inputs.pose_risk_flag_id)

    if _is_plateau(inputs.state):
        triggers.add(Trigger.PLATEAU)
    if _is_fatigue_spike(inputs.state, inputs.feedback):
        triggers.add(Trigger.FATIGUE_SPIKE)
    if _is_overload(inputs.state):
        triggers.add(Trigger.OVERLOAD)
    if _is_adherence_drop(inputs.state, inputs.skipped_dates):
        triggers.add(Trigger.ADHERENCE_DROP)
    if inputs.trust_score < TRUST_LOW_THRESHOLD:
        triggers.add(Trigger.TRUST_DROP)
    if _is_version_bump(inputs.stored_knowledge_version, inputs.fresh_knowledge_version):
        triggers.add(Trigger.KNOWLEDGE_VERSION_BUMP)
    if inputs.confidence < CONFIDENCE_BLOCK_THRESHOLD:
        triggers.add(Trigger.CONFIDENCE_DROP)
    if inputs.medical_blocked or (
        inputs.program_type == "training" and inputs.pose_risk_flag_id is not None
    ):
        triggers.add(Trigger.RISK_FLAG)

    return triggers
