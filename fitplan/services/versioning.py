"""
Version manager + explainability recorder.

Every generate / adapt / replan writes exactly one ProgramVersion and at
least one ProgramExplainability row for that version, even when the
adaptation changes nothing material.
"""
from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from fitplan.core.errors import VersionConflictError
from fitplan.models.program import Program
from fitplan.services.gateway import ProgramGateway
from fitplan.services.snapshots import ProgramSnapshot


class VersionReason:
    INITIAL_GENERATION = "initial_generation"
    GUARD_PAUSE        = "guard_pause"
    ADAPTATION_REPLAN  = "adaptation_replan"
    CONSTRAINT_REPLAN  = "constraint_replan"


class DecisionRef:
    PROGRAM_GENERATION    = "program_generation"
    WHY_PAUSED            = "why_paused"
    WHY_LOWERED_INTENSITY = "why_lowered_intensity"
    WHY_CHANGED           = "why_changed"


class VersionManager:
    def __init__(self, gateway: ProgramGateway):
        self.gateway = gateway

    def initial(self, program: Program, snapshot: ProgramSnapshot, reason: str) -> int:
        self.gateway.add_version(program, 1, snapshot.to_dict(), reason)
        return 1

    def bump(
        self,
        program: Program,
        expected_version: int,
        snapshot: ProgramSnapshot,
        reason: str,
        **changes: Any,
    ) -> int:
        """
        Compare-and-swap the program to expected_version + 1, then append the
        snapshot. Raises VersionConflictError if another writer got there first.
        """
        if not self.gateway.cas_bump_version(program, expected_version, **changes):
            logger.warning(
                f"Version race on program {program.id}: expected {expected_version}"
            )
            raise VersionConflictError(program_id=program.id, expected_version=expected_version)
        next_version = expected_version + 1
        self.gateway.add_version(program, next_version, snapshot.to_dict(), reason)
        return next_version


class ExplainabilityRecorder:
    def __init__(self, gateway: ProgramGateway):
        self.gateway = gateway

    def record(
        self,
        program: Program,
        version: int,
        decision_ref: str,
        *,
        knowledge_refs: Optional[dict] = None,
        confidence: Optional[float] = None,
        reason_code: str,
        input_context: Optional[dict] = None,
        diff_summary: Optional[dict] = None,
        safety_notes: Optional[dict] = None,
    ) -> None:
        self.gateway.add_explainability(
            program,
            version=version,
            decision_ref=decision_ref,
            knowledge_refs=knowledge_refs,
            confidence=confidence,
            guard_notes={
                "reason_code": reason_code,
                "input_context": input_context or {},
                "diff_summary": diff_summary or {},
                "safety_notes": safety_notes or {},
            },
        )
