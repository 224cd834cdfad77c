"""
Program persistence gateway — the engine's only seam to SQLAlchemy.

Rules
-----
- Writes are flushed, never committed here except in unit_of_work():
  one commit per use case, rollback on any failure. A structure rebuild
  therefore lands completely or not at all.
- Append-only tables (versions, adaptations, guard events, explainability)
  only ever get INSERTs.
- Sessions move forward only (planned → completed | skipped). Rebuilds
  refresh planned sessions and never touch terminal ones.
- The program version counter moves only through cas_bump_version().
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterator, Optional

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fitplan.core.config import settings
from fitplan.core.errors import (
    InvalidSessionTransitionError,
    NotFoundError,
    PersistenceError,
)
from fitplan.models.adaptation import ProgramAdaptation
from fitplan.models.explainability import ProgramExplainability
from fitplan.models.feedback import ProgramFeedback
from fitplan.models.generation_job import ProgramGenerationJob
from fitplan.models.guard_event import ProgramGuardEvent
from fitplan.models.program import Program
from fitplan.models.session import ProgramSession, SessionStatus
from fitplan.models.structure import ProgramBlock, ProgramDay, ProgramPhase
from fitplan.models.version import ProgramVersion
from fitplan.services.skeleton import DayPlan, PhasePlan


SESSION_TYPE_FOR = {
    "nutrition": "meal_plan",
    "training": "workout_plan",
}

_ALLOWED_TRANSITIONS = {
    (SessionStatus.planned.value, SessionStatus.completed.value),
    (SessionStatus.planned.value, SessionStatus.skipped.value),
}


# ---------------------------------------------------------------------------
# Tiny utilities
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _ev(v) -> str:
    """Return bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def jdump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def jload(text: Optional[str]) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ProgramGateway:
    def __init__(self, db: Session):
        self.db = db

    # -- unit of work -------------------------------------------------------

    @contextmanager
    def unit_of_work(self, operation: str) -> Iterator["ProgramGateway"]:
        """Commit once on success; roll back everything on failure."""
        try:
            yield self
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"{operation} aborted, transaction rolled back: {exc}")
            raise PersistenceError(f"{operation} failed: {exc.__class__.__name__}", operation) from exc
        except Exception:
            self.db.rollback()
            raise

    # -- programs -----------------------------------------------------------

    def get_program(self, program_id: int, program_type: Optional[str] = None) -> Program:
        q = self.db.query(Program).filter(Program.id == program_id)
        if program_type is not None:
            q = q.filter(Program.program_type == program_type)
        program = q.first()
        if program is None:
            raise NotFoundError("Program", program_id)
        return program

    def create_program(
        self,
        user_id: str,
        program_type: str,
        status: str,
        start_date: date,
        end_date: date,
        knowledge_version_ref: dict,
    ) -> Program:
        program = Program(
            user_id=user_id,
            program_type=program_type,
            status=status,
            version=1,
            knowledge_version_ref=jdump(knowledge_version_ref),
            start_date=start_date,
            end_date=end_date,
        )
        self.db.add(program)
        self.db.flush()
        return program

    def cas_bump_version(self, program: Program, expected_version: int, **changes: Any) -> bool:
        """
        UPDATE programs SET version = expected + 1, ... WHERE id = :id AND version = :expected.
        Returns False when another writer already moved the version.
        """
        result = self.db.execute(
            update(Program)
            .where(Program.id == program.id, Program.version == expected_version)
            .values(version=expected_version + 1, **changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self.db.refresh(program)
        return True

    def set_status(self, program: Program, status: str) -> None:
        program.status = status
        self.db.flush()

    # -- generation jobs ----------------------------------------------------

    def create_job(self, user_id: str, program_type: str, input_context: dict) -> ProgramGenerationJob:
        job = ProgramGenerationJob(
            user_id=user_id,
            program_type=program_type,
            status="running",
            input_context=jdump(input_context),
        )
        self.db.add(job)
        self.db.flush()
        return job

    def finish_job(self, job: ProgramGenerationJob, status: str, program_id: int) -> None:
        job.status = status
        job.output_program_id = program_id
        self.db.flush()

    # -- structure ----------------------------------------------------------

    def retire_structure(self, program_id: int) -> None:
        """Archive (or delete) the live phases/blocks/days of a program."""
        if settings.STRUCTURE_RETENTION == "delete":
            phase_ids = [
                pid for (pid,) in self.db.query(ProgramPhase.id)
                .filter(ProgramPhase.program_id == program_id)
                .all()
            ]
            self.db.query(ProgramDay).filter(
                ProgramDay.program_id == program_id
            ).delete(synchronize_session=False)
            if phase_ids:
                self.db.query(ProgramBlock).filter(
                    ProgramBlock.phase_id.in_(phase_ids)
                ).delete(synchronize_session=False)
            self.db.query(ProgramPhase).filter(
                ProgramPhase.program_id == program_id
            ).delete(synchronize_session=False)
            return

        stamp = _now()
        self.db.execute(
            update(ProgramPhase)
            .where(ProgramPhase.program_id == program_id, ProgramPhase.superseded_at.is_(None))
            .values(superseded_at=stamp)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(
            update(ProgramDay)
            .where(ProgramDay.program_id == program_id, ProgramDay.superseded_at.is_(None))
            .values(superseded_at=stamp)
            .execution_options(synchronize_session=False)
        )

    def persist_structure(
        self,
        program: Program,
        version: int,
        phases: list[PhasePlan],
        days: list[DayPlan],
        constraints: dict[str, Any],
    ) -> None:
        """
        Replace the live structure of `program` with `phases` / `days`.

        Days are consumed in order, block by block; each block takes
        `duration_days` of them. Sessions are upserted per date while planned.
        """
        program_type = _ev(program.program_type)
        self.retire_structure(program.id)

        constraints_json = jdump(constraints)
        day_index = 0
        for phase in phases:
            phase_row = ProgramPhase(
                program_id=program.id,
                program_version=version,
                name=phase.name,
                phase_type=phase.phase_type,
                phase_goal=phase.phase_goal,
                start_date=phase.start_date,
                end_date=phase.end_date,
            )
            self.db.add(phase_row)
            self.db.flush()

            for block in phase.blocks:
                block_row = ProgramBlock(
                    phase_id=phase_row.id,
                    block_type=block.block_type,
                    block_goal=block.block_goal,
                    duration_days=block.duration_days,
                )
                self.db.add(block_row)
                self.db.flush()

                block_days = days[day_index:day_index + block.duration_days]
                day_index += block.duration_days
                for day in block_days:
                    self.db.add(ProgramDay(
                        block_id=block_row.id,
                        program_id=program.id,
                        day=day.day,
                        targets=jdump(day.targets) if day.targets is not None else None,
                        session_plan=(
                            jdump(day.session_plan) if day.session_plan is not None else None
                        ),
                        constraints_applied=constraints_json,
                    ))
                    self._upsert_session(program.id, program_type, day)
        self.db.flush()

    def _upsert_session(self, program_id: int, program_type: str, day: DayPlan) -> None:
        session = self.get_session(program_id, day.day)
        session_type = SESSION_TYPE_FOR[program_type]
        if session is None:
            self.db.add(ProgramSession(
                program_id=program_id,
                day=day.day,
                session_type=session_type,
                plan_payload=jdump(day.payload),
                status=SessionStatus.planned,
            ))
        elif _ev(session.status) == SessionStatus.planned.value:
            session.session_type = session_type
            session.plan_payload = jdump(day.payload)

    # -- sessions -----------------------------------------------------------

    def get_session(self, program_id: int, day: date) -> Optional[ProgramSession]:
        return (
            self.db.query(ProgramSession)
            .filter(ProgramSession.program_id == program_id, ProgramSession.day == day)
            .first()
        )

    def transition_session(
        self,
        program_id: int,
        day: date,
        target: str,
        payload_patch: Optional[dict[str, Any]] = None,
    ) -> ProgramSession:
        session = self.get_session(program_id, day)
        if session is None:
            raise NotFoundError("Session", f"{program_id}@{day}")
        current = _ev(session.status)
        if (current, target) not in _ALLOWED_TRANSITIONS:
            raise InvalidSessionTransitionError(day=day, current=current, target=target)
        session.status = SessionStatus(target)
        if payload_patch:
            payload = jload(session.plan_payload) or {}
            payload.update(payload_patch)
            session.plan_payload = jdump(payload)
        self.db.flush()
        return session

    def skip_planned_sessions(
        self,
        program_id: int,
        days: list[date],
        payload_patch: Optional[dict[str, Any]] = None,
    ) -> int:
        """Move every still-planned session on `days` to skipped. Returns the count."""
        if not days:
            return 0
        sessions = (
            self.db.query(ProgramSession)
            .filter(
                ProgramSession.program_id == program_id,
                ProgramSession.day.in_(days),
                ProgramSession.status == SessionStatus.planned,
            )
            .all()
        )
        for session in sessions:
            self.transition_session(program_id, session.day, SessionStatus.skipped.value, payload_patch)
        return len(sessions)

    # -- append-only audit --------------------------------------------------

    def add_version(self, program: Program, version: int, snapshot: dict, reason: str) -> ProgramVersion:
        row = ProgramVersion(
            program_id=program.id,
            program_type=_ev(program.program_type),
            version=version,
            snapshot=jdump(snapshot),
            reason=reason,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def add_adaptation(
        self,
        program: Program,
        from_version: int,
        to_version: int,
        trigger: str,
        summary: dict,
    ) -> ProgramAdaptation:
        row = ProgramAdaptation(
            program_id=program.id,
            program_type=_ev(program.program_type),
            from_version=from_version,
            to_version=to_version,
            trigger=trigger,
            summary=jdump(summary),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def add_guard_event(
        self,
        program: Program,
        risk_level: str,
        flags: list[str],
        blocked_actions: list[str],
    ) -> ProgramGuardEvent:
        row = ProgramGuardEvent(
            program_id=program.id,
            program_type=_ev(program.program_type),
            risk_level=risk_level,
            flags=jdump(flags),
            blocked_actions=jdump(blocked_actions),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def add_explainability(
        self,
        program: Program,
        version: int,
        decision_ref: str,
        knowledge_refs: Optional[dict],
        confidence: Optional[float],
        guard_notes: dict,
    ) -> ProgramExplainability:
        row = ProgramExplainability(
            program_id=program.id,
            program_type=_ev(program.program_type),
            version=version,
            decision_ref=decision_ref,
            knowledge_refs=jdump(knowledge_refs) if knowledge_refs is not None else None,
            confidence=confidence,
            guard_notes=jdump(guard_notes),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def add_feedback(self, program: Program, **ratings: Any) -> ProgramFeedback:
        row = ProgramFeedback(
            program_id=program.id,
            program_type=_ev(program.program_type),
            **ratings,
        )
        self.db.add(row)
        self.db.flush()
        return row

    # -- read models --------------------------------------------------------

    def list_current_days(self, program_id: int) -> list[tuple[ProgramDay, Optional[ProgramSession]]]:
        days = (
            self.db.query(ProgramDay)
            .filter(ProgramDay.program_id == program_id, ProgramDay.superseded_at.is_(None))
            .order_by(ProgramDay.day.asc())
            .all()
        )
        sessions = {
            s.day: s
            for s in self.db.query(ProgramSession)
            .filter(ProgramSession.program_id == program_id)
            .all()
        }
        return [(d, sessions.get(d.day)) for d in days]

    def list_current_phases(self, program_id: int) -> list[ProgramPhase]:
        return (
            self.db.query(ProgramPhase)
            .filter(ProgramPhase.program_id == program_id, ProgramPhase.superseded_at.is_(None))
            .order_by(ProgramPhase.start_date.asc(), ProgramPhase.id.asc())
            .all()
        )

    def list_blocks(self, phase_id: int) -> list[ProgramBlock]:
        return (
            self.db.query(ProgramBlock)
            .filter(ProgramBlock.phase_id == phase_id)
            .order_by(ProgramBlock.id.asc())
            .all()
        )

    def list_versions(self, program_id: int) -> list[ProgramVersion]:
        return (
            self.db.query(ProgramVersion)
            .filter(ProgramVersion.program_id == program_id)
            .order_by(ProgramVersion.version.asc())
            .all()
        )

    def list_explainability(
        self, program_id: int, version: Optional[int] = None
    ) -> list[ProgramExplainability]:
        q = self.db.query(ProgramExplainability).filter(
            ProgramExplainability.program_id == program_id
        )
        if version is not None:
            q = q.filter(ProgramExplainability.version == version)
        return q.order_by(
            ProgramExplainability.version.desc(), ProgramExplainability.id.desc()
        ).all()

    def list_guard_events(self, program_id: int) -> list[ProgramGuardEvent]:
        return (
            self.db.query(ProgramGuardEvent)
            .filter(ProgramGuardEvent.program_id == program_id)
            .order_by(ProgramGuardEvent.id.asc())
            .all()
        )

    def list_adaptations(self, program_id: int) -> list[ProgramAdaptation]:
        return (
            self.db.query(ProgramAdaptation)
            .filter(ProgramAdaptation.program_id == program_id)
            .order_by(ProgramAdaptation.id.asc())
            .all()
        )
