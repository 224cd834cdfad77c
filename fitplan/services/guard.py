"""
Guard gate — safety vetoes that run independently of strategy selection.

Lane 1 — program pause (generate + adapt)
  Trips when the user is medically blocked (explicit `medical_blocked`
  constraint or feedback.pain >= 4) OR knowledge confidence < 0.6.
  Effect: strategy "pause", program status "paused", a danger guard event
  with flags from {medical_block, low_confidence}. No structure rebuild.

Lane 2 — motion risk (training only, adapt)
  When the user's latest motion-risk flag is "danger", today's planned
  session is forced to skipped (payload carries the flag id) and a danger
  guard event with flag "pose_risk" is written. The program keeps running.

Load guard
  A meso adaptation records a caution (fatigue) / danger (overload) event.

A trip is a normal outcome, never an exception.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from loguru import logger

from fitplan.models.guard_event import RiskLevel
from fitplan.models.program import Program
from fitplan.models.session import SessionStatus
from fitplan.services.collaborators import MotionRisk
from fitplan.services.gateway import ProgramGateway
from fitplan.services.triggers import (
    CONFIDENCE_BLOCK_THRESHOLD,
    PAIN_BLOCK_THRESHOLD,
    feedback_pain,
)


class GuardFlag:
    MEDICAL_BLOCK  = "medical_block"
    LOW_CONFIDENCE = "low_confidence"
    POSE_RISK      = "pose_risk"
    FATIGUE        = "fatigue"
    OVERLOAD       = "overload"
    MANUAL_PAUSE   = "manual_pause"


@dataclass
class GuardVerdict:
    tripped: bool
    flags: list[str] = field(default_factory=list)
    medical_blocked: bool = False
    confidence_blocked: bool = False

    @property
    def risk_level(self) -> str:
        return RiskLevel.danger.value if self.tripped else RiskLevel.safe.value

    def safety_notes(self) -> dict[str, bool]:
        return {
            "medical_blocked": self.medical_blocked,
            "confidence_blocked": self.confidence_blocked,
        }


# ---------------------------------------------------------------------------
# Lane 1 — pause
# ---------------------------------------------------------------------------

def is_medical_blocked(constraints: dict[str, Any]) -> bool:
    feedback = constraints.get("feedback") or {}
    return bool(constraints.get("medical_blocked")) or feedback_pain(feedback) >= PAIN_BLOCK_THRESHOLD


def evaluate_guard(medical_blocked: bool, confidence: float) -> GuardVerdict:
    confidence_blocked = confidence < CONFIDENCE_BLOCK_THRESHOLD
    flags: list[str] = []
    if medical_blocked:
        flags.append(GuardFlag.MEDICAL_BLOCK)
    if confidence_blocked:
        flags.append(GuardFlag.LOW_CONFIDENCE)
    return GuardVerdict(
        tripped=bool(flags),
        flags=flags,
        medical_blocked=medical_blocked,
        confidence_blocked=confidence_blocked,
    )


def record_pause(
    gateway: ProgramGateway,
    program: Program,
    verdict: GuardVerdict,
    blocked_action: str,
) -> None:
    gateway.add_guard_event(
        program,
        risk_level=RiskLevel.danger.value,
        flags=verdict.flags,
        blocked_actions=[blocked_action],
    )
    logger.warning(
        f"Guard paused program {program.id}: flags={verdict.flags} action={blocked_action}"
    )


# ---------------------------------------------------------------------------
# Lane 2 — motion risk
# ---------------------------------------------------------------------------

def apply_motion_risk_lane(
    gateway: ProgramGateway,
    program: Program,
    risk: Optional[MotionRisk],
    today: date,
) -> Optional[int]:
    """
    Returns the danger flag id when the lane fired, else None.
    Only a still-planned session is forced to skipped.
    """
    if risk is None or not risk.is_danger:
        return None

    gateway.add_guard_event(
        program,
        risk_level=RiskLevel.danger.value,
        flags=[GuardFlag.POSE_RISK],
        blocked_actions=["training_day"],
    )
    session = gateway.get_session(program.id, today)
    if session is not None and session.status == SessionStatus.planned:
        gateway.transition_session(
            program.id,
            today,
            SessionStatus.skipped.value,
            payload_patch={"blocked_by_pose_guard_flag_id": risk.id},
        )
    logger.warning(f"Motion-risk flag {risk.id} blocked training day {today} of program {program.id}")
    return risk.id


# ---------------------------------------------------------------------------
# Load guard
# ---------------------------------------------------------------------------

def record_load_guard(
    gateway: ProgramGateway,
    program: Program,
    fatigue_spike: bool,
    overload: bool,
) -> None:
    if not (fatigue_spike or overload):
        return
    flags = []
    if fatigue_spike:
        flags.append(GuardFlag.FATIGUE)
    if overload:
        flags.append(GuardFlag.OVERLOAD)
    gateway.add_guard_event(
        program,
        risk_level=(RiskLevel.danger if overload else RiskLevel.caution).value,
        flags=flags,
        blocked_actions=["intensity_increase"] if overload else [],
    )
