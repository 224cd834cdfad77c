"""
Program skeleton builder — deterministic time partitioning.

A program window [start, start + duration - 1] is split into phases, each
phase into blocks, and every calendar day in the window gets exactly one
DayPlan carrying either nutrition targets or a training session plan.

Invariants
----------
  - Phases are contiguous, non-overlapping and cover the window exactly.
  - Block durations inside a phase sum to the phase length.
  - build_days() yields one DayPlan per date, oldest → newest.

Zero I/O. Persistence lives in ProgramGateway.persist_structure().

Public API
----------
build_skeleton(start, duration_days, trust_score)        -> list[PhasePlan]
build_deload_skeleton(start, duration_days)              -> list[PhasePlan]
build_days(start, duration_days, program_type, goals, confidence, ...) -> list[DayPlan]
plan_depth_for(trust_score)                              -> "basic" | "full"
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TRUST_THRESHOLD = 50
LOW_CONFIDENCE_THRESHOLD = 0.75
CONSERVATIVE_FACTOR = 0.9
REFEED_CARBS_FACTOR = 1.1

DELOAD_SHARE = 0.2
DELOAD_MIN_DAYS = 2
DELOAD_MAX_DAYS = 5


class PhaseType:
    BUILD  = "build"
    DELOAD = "deload"


class PlanDepth:
    BASIC = "basic"
    FULL  = "full"


_GOAL_FOR = {
    PhaseType.BUILD: "progress",
    PhaseType.DELOAD: "recovery",
}


# ---------------------------------------------------------------------------
# Plan types (plain dataclasses — no ORM)
# ---------------------------------------------------------------------------

@dataclass
class Goals:
    calories: float
    protein: float
    fat: float
    carbs: float


@dataclass
class BlockPlan:
    block_type: str
    block_goal: str
    duration_days: int


@dataclass
class PhasePlan:
    name: str
    phase_type: str
    phase_goal: str
    start_date: date
    end_date: date
    blocks: list[BlockPlan] = field(default_factory=list)

    @property
    def length(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


@dataclass
class DayPlan:
    day: date
    targets: Optional[dict[str, int]] = None
    session_plan: Optional[dict[str, str]] = None

    @property
    def payload(self) -> dict:
        return self.targets if self.targets is not None else (self.session_plan or {})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def plan_depth_for(trust_score: float) -> str:
    return PlanDepth.BASIC if trust_score < TRUST_THRESHOLD else PlanDepth.FULL


def deload_length(duration_days: int) -> int:
    """clamp(round(duration * 0.2), 2, 5)"""
    raw = round_half_up(duration_days * DELOAD_SHARE)
    return max(DELOAD_MIN_DAYS, min(DELOAD_MAX_DAYS, raw))


def _phase(index: int, phase_type: str, start: date, length: int) -> PhasePlan:
    goal = _GOAL_FOR[phase_type]
    return PhasePlan(
        name=f"phase_{index + 1}",
        phase_type=phase_type,
        phase_goal=goal,
        start_date=start,
        end_date=start + timedelta(days=length - 1),
        blocks=[BlockPlan(block_type=phase_type, block_goal=goal, duration_days=length)],
    )


# ---------------------------------------------------------------------------
# Skeletons
# ---------------------------------------------------------------------------

def build_skeleton(start: date, duration_days: int, trust_score: float) -> list[PhasePlan]:
    """
    Low trust (< 50) → a single build phase.
    Otherwise → two phases of ceil(duration / 2) days, the last one a deload.

    The final phase absorbs the remainder so the window is never overrun
    (e.g. 7 days → 4 + 3).
    """
    count = 1 if trust_score < TRUST_THRESHOLD else 2
    phase_len = math.ceil(duration_days / count)

    phases: list[PhasePlan] = []
    offset = 0
    for index in range(count):
        length = min(phase_len, duration_days - offset)
        is_final = index == count - 1
        phase_type = PhaseType.DELOAD if (is_final and count > 1) else PhaseType.BUILD
        phases.append(_phase(index, phase_type, start + timedelta(days=offset), length))
        offset += length
    return phases


def build_deload_skeleton(start: date, duration_days: int) -> list[PhasePlan]:
    """One phase: a front-loaded deload block, then a build block for the rest."""
    deload_days = deload_length(duration_days)
    remaining = max(1, duration_days - deload_days)
    return [
        PhasePlan(
            name="phase_1",
            phase_type=PhaseType.BUILD,
            phase_goal=_GOAL_FOR[PhaseType.BUILD],
            start_date=start,
            end_date=start + timedelta(days=duration_days - 1),
            blocks=[
                BlockPlan(
                    block_type=PhaseType.DELOAD,
                    block_goal=_GOAL_FOR[PhaseType.DELOAD],
                    duration_days=deload_days,
                ),
                BlockPlan(
                    block_type=PhaseType.BUILD,
                    block_goal=_GOAL_FOR[PhaseType.BUILD],
                    duration_days=remaining,
                ),
            ],
        )
    ]


# ---------------------------------------------------------------------------
# Day targeting
# ---------------------------------------------------------------------------

def _nutrition_targets(
    goals: Goals, conservative: float, adjustment: float, refeed: bool
) -> dict[str, int]:
    carbs_factor = REFEED_CARBS_FACTOR if refeed else 1.0
    return {
        "calories": round_half_up(goals.calories * conservative * adjustment),
        "protein": round_half_up(goals.protein * conservative * adjustment),
        "fat": round_half_up(goals.fat * conservative * adjustment),
        "carbs": round_half_up(goals.carbs * conservative * adjustment * carbs_factor),
    }


def _session_plan(index: int, confidence: float, plan_depth: str) -> dict[str, str]:
    even = index % 2 == 0
    if plan_depth == PlanDepth.BASIC or confidence < LOW_CONFIDENCE_THRESHOLD:
        intensity = "low"
    else:
        intensity = "moderate" if even else "low"
    if plan_depth == PlanDepth.BASIC:
        focus = "recovery"
    else:
        focus = "strength" if even else "recovery"
    return {"focus": focus, "intensity": intensity}


def build_days(
    start: date,
    duration_days: int,
    program_type: str,
    goals: Goals,
    confidence: float,
    *,
    adjustment_factor: float = 1.0,
    plan_depth: str = PlanDepth.FULL,
    refeed: bool = False,
) -> list[DayPlan]:
    """
    Nutrition: targets = goal × conservative × adjustment, rounded.
               conservative = 0.9 when confidence < 0.75; refeed adds +10% carbs.
    Training:  intensity "low" on basic depth or low confidence, otherwise
               "moderate" on even day indexes and "low" on odd ones.
    """
    conservative = CONSERVATIVE_FACTOR if confidence < LOW_CONFIDENCE_THRESHOLD else 1.0
    days: list[DayPlan] = []
    for index in range(duration_days):
        day = start + timedelta(days=index)
        if program_type == "nutrition":
            targets = _nutrition_targets(goals, conservative, adjustment_factor, refeed)
            days.append(DayPlan(day=day, targets=targets))
        else:
            days.append(DayPlan(day=day, session_plan=_session_plan(index, confidence, plan_depth)))
    return days
