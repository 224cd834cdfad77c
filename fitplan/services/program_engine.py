"""
Program engine — the use cases that build and adapt programs.

Each use case reads its signals first, then performs all writes inside one
gateway.unit_of_work(): a failure anywhere rolls the whole use case back.

Public API
----------
generate_program(user_id, program_type, start_date, duration_days, constraints) -> GenerationResult
adapt_program(program_id, program_type, constraints, knowledge_version_ref)     -> AdaptationResult
replan_program(program_id, program_type, constraints)                          -> ReplanResult
complete_day(program_id, program_type, day)                                    -> DayResult
skip_day(program_id, program_type, day, reason)                                -> DayResult
submit_feedback(program_id, program_type, ratings...)                          -> FeedbackResult
pause_program / resume_program                                                 -> Program
get_program / list_days / list_versions / get_explainability                   (read models)

build_engine(db) wires the SQL-backed collaborators for the HTTP layer.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from loguru import logger
from sqlalchemy.orm import Session

from fitplan.core.config import settings
from fitplan.core.errors import (
    AuthorizationError,
    GoalContextMissingError,
    NotFoundError,
    ProgramBlockedError,
    ValidationError,
)
from fitplan.models.guard_event import RiskLevel
from fitplan.models.program import Program, ProgramStatus
from fitplan.models.session import SessionStatus
from fitplan.services.collaborators import (
    EntitlementGate,
    GoalStore,
    MotionRiskProvider,
    SqlEntitlementGate,
    SqlGoalStore,
    SqlMotionRiskProvider,
    SqlTrustLedger,
    SqlUserStateProvider,
    StatePeriod,
    TrustLedger,
    UserStateProvider,
)
from fitplan.services.gateway import ProgramGateway, jdump, jload, _ev
from fitplan.services.guard import (
    GuardFlag,
    apply_motion_risk_lane,
    evaluate_guard,
    is_medical_blocked,
    record_load_guard,
    record_pause,
)
from fitplan.services.knowledge import KnowledgeConfidenceResolver
from fitplan.services.skeleton import (
    Goals,
    build_days,
    build_deload_skeleton,
    build_skeleton,
    plan_depth_for,
)
from fitplan.services.snapshots import make_snapshot
from fitplan.services.strategy import Strategy, select_strategy
from fitplan.services.triggers import TriggerInputs, evaluate_triggers
from fitplan.services.versioning import (
    DecisionRef,
    ExplainabilityRecorder,
    VersionManager,
    VersionReason,
)


TRUST_DELTA_COMPLETE = 2
TRUST_DELTA_SKIP = -3


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class GenerationResult:
    program_id: int
    program_type: str
    version: int
    status: str


@dataclass
class AdaptationResult:
    program_id: int
    program_type: str
    from_version: int
    to_version: int
    strategy: str
    triggers: list[str]
    status: str
    adjustment_factor: float = 1.0
    refeed: bool = False


@dataclass
class ReplanResult:
    program_id: int
    program_type: str
    from_version: int
    to_version: int


@dataclass
class DayResult:
    program_id: int
    day: date
    session_status: str
    trust_score: int
    adaptation: Optional[AdaptationResult] = None


@dataclass
class FeedbackResult:
    feedback_id: int
    adaptation: Optional[AdaptationResult] = None


@dataclass
class _Context:
    """Signals gathered before any write."""
    trust_score: int
    goals: Goals
    confidence: float
    state: Any = None
    constraints: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _window_length(program: Program) -> int:
    return max(settings.MIN_DURATION_DAYS, (program.end_date - program.start_date).days + 1)


def _parse_dates(raw: Any) -> list[date]:
    if not raw:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("skipped_dates must be a list of ISO dates.")
    parsed: list[date] = []
    for item in raw:
        if isinstance(item, date):
            parsed.append(item)
            continue
        try:
            parsed.append(date.fromisoformat(str(item)))
        except ValueError as exc:
            raise ValidationError(
                f"Invalid date in skipped_dates: {item!r}",
                details={"value": str(item)},
            ) from exc
    return parsed


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ProgramEngine:
    def __init__(
        self,
        gateway: ProgramGateway,
        *,
        entitlements: EntitlementGate,
        trust: TrustLedger,
        user_state: UserStateProvider,
        goals: GoalStore,
        knowledge: KnowledgeConfidenceResolver,
        motion_risk: MotionRiskProvider,
        today: Callable[[], date] = _today,
    ):
        self.gateway = gateway
        self.entitlements = entitlements
        self.trust = trust
        self.user_state = user_state
        self.goals = goals
        self.knowledge = knowledge
        self.motion_risk = motion_risk
        self.today = today
        self.versions = VersionManager(gateway)
        self.explain = ExplainabilityRecorder(gateway)

    # -- shared reads -------------------------------------------------------

    def _context(self, user_id: str, program_type: str, constraints: Optional[dict]) -> _Context:
        goals = self.goals.get_goal(user_id)
        if goals is None:
            raise GoalContextMissingError(user_id)
        period = StatePeriod.trailing(self.today(), settings.USER_STATE_WINDOW_DAYS)
        return _Context(
            trust_score=self.trust.get_trust_score(user_id),
            goals=goals,
            confidence=self.knowledge.resolve_confidence(program_type),
            state=self.user_state.build_state(user_id, period),
            constraints=dict(constraints or {}),
        )

    def _load_for_adapt(
        self, program_id: int, program_type: str, user_id: Optional[str]
    ) -> Program:
        if user_id is not None and not self.entitlements.can_adapt_program(user_id):
            raise AuthorizationError(user_id, "adapt a program")
        program = self.gateway.get_program(program_id, program_type)
        if user_id is None:
            if not self.entitlements.can_adapt_program(program.user_id):
                raise AuthorizationError(program.user_id, "adapt a program")
        elif program.user_id != user_id:
            raise NotFoundError("Program", program_id)
        return program

    # -- generate -----------------------------------------------------------

    def generate_program(
        self,
        user_id: str,
        program_type: str,
        start_date: Optional[date] = None,
        duration_days: Optional[int] = None,
        constraints: Optional[dict[str, Any]] = None,
    ) -> GenerationResult:
        if not self.entitlements.can_generate_program(user_id):
            raise AuthorizationError(user_id, "generate a program")

        duration = _clamp(
            duration_days or settings.DEFAULT_DURATION_DAYS,
            settings.MIN_DURATION_DAYS,
            settings.MAX_DURATION_DAYS,
        )
        start = start_date or self.today()
        end = start + timedelta(days=duration - 1)

        ctx = self._context(user_id, program_type, constraints)
        verdict = evaluate_guard(is_medical_blocked(ctx.constraints), ctx.confidence)
        knowledge_ref = self.knowledge.current_version_ref(program_type, ctx.confidence)
        plan_depth = plan_depth_for(ctx.trust_score)

        with self.gateway.unit_of_work("generate_program") as gw:
            job = gw.create_job(user_id, program_type, {
                "user_state": ctx.state.to_dict(),
                "goals": asdict(ctx.goals),
                "constraints": ctx.constraints,
                "trust_score": ctx.trust_score,
                "effective_confidence": ctx.confidence,
            })

            if verdict.tripped:
                program = gw.create_program(
                    user_id, program_type, ProgramStatus.paused, start, end, knowledge_ref
                )
                record_pause(gw, program, verdict, "program_generation")
                snapshot = make_snapshot(
                    program_type,
                    status=ProgramStatus.paused.value,
                    trust_score=ctx.trust_score,
                    effective_confidence=ctx.confidence,
                    constraints=ctx.constraints,
                    plan_depth=plan_depth,
                    strategy=Strategy.PAUSE,
                    knowledge_version_ref=knowledge_ref,
                )
                self.versions.initial(program, snapshot, VersionReason.GUARD_PAUSE)
                self.explain.record(
                    program, 1, DecisionRef.WHY_PAUSED,
                    knowledge_refs=knowledge_ref,
                    confidence=ctx.confidence,
                    reason_code=VersionReason.GUARD_PAUSE,
                    input_context={"trust_score": ctx.trust_score, "user_state": ctx.state.to_dict()},
                    diff_summary={"status": ProgramStatus.paused.value},
                    safety_notes=verdict.safety_notes(),
                )
                gw.finish_job(job, "blocked", program.id)
            else:
                phases = build_skeleton(start, duration, ctx.trust_score)
                days = build_days(
                    start, duration, program_type, ctx.goals, ctx.confidence,
                    plan_depth=plan_depth,
                )
                program = gw.create_program(
                    user_id, program_type, ProgramStatus.active, start, end, knowledge_ref
                )
                gw.persist_structure(program, 1, phases, days, ctx.constraints)
                snapshot = make_snapshot(
                    program_type,
                    status=ProgramStatus.active.value,
                    phases=phases,
                    trust_score=ctx.trust_score,
                    effective_confidence=ctx.confidence,
                    constraints=ctx.constraints,
                    plan_depth=plan_depth,
                    knowledge_version_ref=knowledge_ref,
                )
                self.versions.initial(program, snapshot, VersionReason.INITIAL_GENERATION)
                self.explain.record(
                    program, 1, DecisionRef.PROGRAM_GENERATION,
                    knowledge_refs=knowledge_ref,
                    confidence=ctx.confidence,
                    reason_code=VersionReason.INITIAL_GENERATION,
                    input_context={"trust_score": ctx.trust_score},
                    diff_summary={"plan_depth": plan_depth, "phases": len(phases)},
                    safety_notes={"constraints_applied": bool(ctx.constraints)},
                )
                gw.finish_job(job, "completed", program.id)

        status = _ev(program.status)
        logger.info(
            f"Generated {program_type} program {program.id} for {user_id}: "
            f"status={status} days={duration} trust={ctx.trust_score} confidence={ctx.confidence}"
        )
        return GenerationResult(
            program_id=program.id,
            program_type=program_type,
            version=1,
            status=status,
        )

    # -- adapt --------------------------------------------------------------

    def adapt_program(
        self,
        program_id: int,
        program_type: str,
        constraints: Optional[dict[str, Any]] = None,
        knowledge_version_ref: Optional[dict[str, Any]] = None,
        *,
        user_id: Optional[str] = None,
    ) -> AdaptationResult:
        program = self._load_for_adapt(program_id, program_type, user_id)
        owner = program.user_id
        ctx = self._context(owner, program_type, constraints)

        skipped_dates = _parse_dates(ctx.constraints.get("skipped_dates"))
        feedback = ctx.constraints.get("feedback") or {}
        medical_blocked = is_medical_blocked(ctx.constraints)

        stored_ref = jload(program.knowledge_version_ref) or {}
        fresh_ref = knowledge_version_ref or self.knowledge.current_version_ref(
            program_type, ctx.confidence
        )

        risk = self.motion_risk.latest_flag(owner) if program_type == "training" else None
        pose_flag_id = risk.id if risk is not None and risk.is_danger else None

        triggers = evaluate_triggers(TriggerInputs(
            program_type=program_type,
            state=ctx.state,
            trust_score=ctx.trust_score,
            confidence=ctx.confidence,
            feedback=feedback,
            skipped_dates=skipped_dates,
            stored_knowledge_version=stored_ref.get("version"),
            fresh_knowledge_version=fresh_ref.get("version"),
            medical_blocked=medical_blocked,
            pose_risk_flag_id=pose_flag_id,
        ))

        from_version = program.version
        start = program.start_date
        duration = _window_length(program)
        plan_depth = plan_depth_for(ctx.trust_score)
        input_context = {"trust_score": ctx.trust_score, "user_state": ctx.state.to_dict()}

        with self.gateway.unit_of_work("adapt_program") as gw:
            gw.skip_planned_sessions(
                program.id,
                skipped_dates,
                {"reason": ctx.constraints.get("skip_reason", "user_override")},
            )
            if program_type == "training":
                apply_motion_risk_lane(gw, program, risk, self.today())

            verdict = evaluate_guard(medical_blocked, ctx.confidence)
            if verdict.tripped:
                record_pause(gw, program, verdict, "program_adaptation")
                # a guard pause never lifts a block
                held = (
                    ProgramStatus.blocked
                    if _ev(program.status) == ProgramStatus.blocked.value
                    else ProgramStatus.paused
                )
                snapshot = make_snapshot(
                    program_type,
                    status=held.value,
                    trust_score=ctx.trust_score,
                    effective_confidence=ctx.confidence,
                    constraints=ctx.constraints,
                    plan_depth=plan_depth,
                    triggers=triggers.names,
                    strategy=Strategy.PAUSE,
                    knowledge_version_ref=fresh_ref,
                    pose_guard_flag_id=pose_flag_id,
                )
                to_version = self.versions.bump(
                    program, from_version, snapshot, VersionReason.GUARD_PAUSE,
                    status=held,
                )
                self.explain.record(
                    program, to_version, DecisionRef.WHY_PAUSED,
                    knowledge_refs=fresh_ref,
                    confidence=ctx.confidence,
                    reason_code=VersionReason.GUARD_PAUSE,
                    input_context=input_context,
                    diff_summary={"status": held.value},
                    safety_notes=verdict.safety_notes(),
                )
                result = AdaptationResult(
                    program_id=program.id,
                    program_type=program_type,
                    from_version=from_version,
                    to_version=to_version,
                    strategy=Strategy.PAUSE,
                    triggers=list(triggers.names),
                    status=held.value,
                )
            else:
                decision = select_strategy(triggers, program_type, skipped_dates)
                if decision.uses_deload_skeleton:
                    phases = build_deload_skeleton(start, duration)
                else:
                    phases = build_skeleton(start, duration, ctx.trust_score)
                days = build_days(
                    start, duration, program_type, ctx.goals, ctx.confidence,
                    adjustment_factor=decision.adjustment_factor,
                    plan_depth=plan_depth,
                    refeed=decision.refeed,
                )
                snapshot = make_snapshot(
                    program_type,
                    status=_ev(program.status),
                    phases=phases,
                    trust_score=ctx.trust_score,
                    effective_confidence=ctx.confidence,
                    constraints=ctx.constraints,
                    plan_depth=plan_depth,
                    triggers=triggers.names,
                    strategy=decision.strategy,
                    adjustment_factor=decision.adjustment_factor,
                    knowledge_version_ref=fresh_ref,
                    refeed=decision.refeed,
                    pose_guard_flag_id=pose_flag_id,
                )
                to_version = self.versions.bump(
                    program, from_version, snapshot, VersionReason.ADAPTATION_REPLAN,
                    knowledge_version_ref=jdump(fresh_ref),
                )
                gw.persist_structure(program, to_version, phases, days, ctx.constraints)
                gw.add_adaptation(
                    program, from_version, to_version,
                    trigger=triggers.first or "none",
                    summary={
                        "strategy": decision.strategy,
                        "triggers": triggers.names,
                        "adjustment_factor": decision.adjustment_factor,
                        "refeed": decision.refeed,
                    },
                )
                record_load_guard(gw, program, triggers.fatigue_spike, triggers.overload)
                self.explain.record(
                    program, to_version,
                    (
                        DecisionRef.WHY_LOWERED_INTENSITY
                        if decision.strategy == Strategy.MESO
                        else DecisionRef.WHY_CHANGED
                    ),
                    knowledge_refs=fresh_ref,
                    confidence=ctx.confidence,
                    reason_code=decision.strategy,
                    input_context=input_context,
                    diff_summary={
                        "adjustment_factor": decision.adjustment_factor,
                        "refeed": decision.refeed,
                        "plan_depth": plan_depth,
                    },
                    safety_notes={
                        "fatigue_spike": triggers.fatigue_spike,
                        "overload": triggers.overload,
                        "adherence_drop": triggers.adherence_drop,
                        "trust_drop": triggers.trust_drop,
                        "plateau": triggers.plateau,
                        "pose_risk": pose_flag_id is not None,
                        "pose_guard_flag_id": pose_flag_id,
                    },
                )
                result = AdaptationResult(
                    program_id=program.id,
                    program_type=program_type,
                    from_version=from_version,
                    to_version=to_version,
                    strategy=decision.strategy,
                    triggers=list(triggers.names),
                    status=_ev(program.status),
                    adjustment_factor=decision.adjustment_factor,
                    refeed=decision.refeed,
                )

        logger.info(
            f"Adapted program {program.id}: v{from_version}→v{result.to_version} "
            f"strategy={result.strategy} triggers={result.triggers}"
        )
        return result

    # -- replan -------------------------------------------------------------

    def replan_program(
        self,
        program_id: int,
        program_type: str,
        constraints: Optional[dict[str, Any]] = None,
    ) -> ReplanResult:
        """Rebuild the structure for the existing window; no trigger evaluation."""
        program = self.gateway.get_program(program_id, program_type)
        ctx = self._context(program.user_id, program_type, constraints)

        from_version = program.version
        start = program.start_date
        duration = _window_length(program)
        plan_depth = plan_depth_for(ctx.trust_score)
        phases = build_skeleton(start, duration, ctx.trust_score)
        days = build_days(
            start, duration, program_type, ctx.goals, ctx.confidence, plan_depth=plan_depth
        )
        knowledge_ref = jload(program.knowledge_version_ref)

        with self.gateway.unit_of_work("replan_program") as gw:
            snapshot = make_snapshot(
                program_type,
                status=_ev(program.status),
                phases=phases,
                trust_score=ctx.trust_score,
                effective_confidence=ctx.confidence,
                constraints=ctx.constraints,
                plan_depth=plan_depth,
                knowledge_version_ref=knowledge_ref,
            )
            to_version = self.versions.bump(
                program, from_version, snapshot, VersionReason.CONSTRAINT_REPLAN
            )
            gw.persist_structure(program, to_version, phases, days, ctx.constraints)
            self.explain.record(
                program, to_version, DecisionRef.WHY_CHANGED,
                knowledge_refs=knowledge_ref,
                confidence=ctx.confidence,
                reason_code=VersionReason.CONSTRAINT_REPLAN,
                input_context={"trust_score": ctx.trust_score},
                diff_summary={"plan_depth": plan_depth, "phases": len(phases)},
                safety_notes={"constraints_applied": bool(ctx.constraints)},
            )

        logger.info(f"Replanned program {program.id}: v{from_version}→v{to_version}")
        return ReplanResult(
            program_id=program.id,
            program_type=program_type,
            from_version=from_version,
            to_version=to_version,
        )

    # -- delivery -----------------------------------------------------------

    def complete_day(self, program_id: int, program_type: str, day: date) -> DayResult:
        program = self.gateway.get_program(program_id, program_type)
        with self.gateway.unit_of_work("complete_day") as gw:
            session = gw.transition_session(program.id, day, SessionStatus.completed.value)
            trust = self.trust.update_trust_score(program.user_id, TRUST_DELTA_COMPLETE)
        logger.info(f"Program {program.id} day {day} completed; trust={trust}")
        return DayResult(
            program_id=program.id,
            day=day,
            session_status=_ev(session.status),
            trust_score=trust,
        )

    def skip_day(
        self,
        program_id: int,
        program_type: str,
        day: date,
        reason: str = "user_override",
    ) -> DayResult:
        """
        Skip one session, lower trust by 3, then adapt with the skipped date.
        The skip stands even when the user is not entitled to adaptation: the
        AuthorizationError from the chained adapt is logged, not raised, and
        the result carries adaptation=None.
        """
        program = self.gateway.get_program(program_id, program_type)
        with self.gateway.unit_of_work("skip_day") as gw:
            session = gw.transition_session(
                program.id, day, SessionStatus.skipped.value, {"reason": reason}
            )
            trust = self.trust.update_trust_score(program.user_id, TRUST_DELTA_SKIP)
        logger.info(f"Program {program.id} day {day} skipped ({reason}); trust={trust}")

        adaptation = None
        try:
            adaptation = self.adapt_program(
                program.id,
                program_type,
                constraints={"skipped_dates": [day.isoformat()], "skip_reason": reason},
            )
        except AuthorizationError as exc:
            logger.info(f"Skip on program {program.id} recorded without adaptation: {exc.message}")

        return DayResult(
            program_id=program.id,
            day=day,
            session_status=_ev(session.status),
            trust_score=trust,
            adaptation=adaptation,
        )

    def submit_feedback(
        self,
        program_id: int,
        program_type: str,
        *,
        energy: Optional[int] = None,
        hunger: Optional[int] = None,
        difficulty: Optional[int] = None,
        pain: Optional[int] = None,
        motivation: Optional[int] = None,
        notes: Optional[str] = None,
        program_session_id: Optional[int] = None,
        user_id: Optional[str] = None,
    ) -> FeedbackResult:
        program = self.gateway.get_program(program_id, program_type)
        if user_id is not None and program.user_id != user_id:
            raise NotFoundError("Program", program_id)

        ratings = {
            "energy": energy,
            "hunger": hunger,
            "difficulty": difficulty,
            "pain": pain,
            "motivation": motivation,
        }
        with self.gateway.unit_of_work("submit_feedback") as gw:
            row = gw.add_feedback(
                program, program_session_id=program_session_id, notes=notes, **ratings
            )

        adaptation = None
        try:
            adaptation = self.adapt_program(
                program.id,
                program_type,
                constraints={"feedback": {k: v for k, v in ratings.items() if v is not None}},
            )
        except AuthorizationError as exc:
            logger.info(f"Feedback {row.id} stored without adaptation: {exc.message}")
        return FeedbackResult(feedback_id=row.id, adaptation=adaptation)

    def pause_program(self, program_id: int, program_type: str, reason: str) -> Program:
        """
        Manual pause. Keeps the current version; the audit trail still grows.
        Paused and blocked programs are returned unchanged.
        """
        program = self.gateway.get_program(program_id, program_type)
        if _ev(program.status) in (ProgramStatus.paused.value, ProgramStatus.blocked.value):
            return program
        with self.gateway.unit_of_work("pause_program") as gw:
            gw.set_status(program, ProgramStatus.paused)
            gw.add_guard_event(
                program,
                risk_level=RiskLevel.caution.value,
                flags=[GuardFlag.MANUAL_PAUSE],
                blocked_actions=["program_delivery"],
            )
            knowledge_ref = jload(program.knowledge_version_ref) or {}
            self.explain.record(
                program, program.version, DecisionRef.WHY_PAUSED,
                knowledge_refs=knowledge_ref,
                confidence=knowledge_ref.get("effective_confidence"),
                reason_code=GuardFlag.MANUAL_PAUSE,
                diff_summary={"status": ProgramStatus.paused.value},
                safety_notes={"reason": reason},
            )
        logger.info(f"Program {program.id} paused manually: {reason}")
        return program

    def resume_program(self, program_id: int, program_type: str) -> Program:
        program = self.gateway.get_program(program_id, program_type)
        status = _ev(program.status)
        if status == ProgramStatus.blocked.value:
            raise ProgramBlockedError(program.id)
        if status == ProgramStatus.active.value:
            return program
        with self.gateway.unit_of_work("resume_program") as gw:
            gw.set_status(program, ProgramStatus.active)
        logger.info(f"Program {program.id} resumed")
        return program

    # -- read models --------------------------------------------------------

    def get_program(self, program_id: int, program_type: Optional[str] = None) -> Program:
        return self.gateway.get_program(program_id, program_type)

    def list_days(self, program_id: int):
        self.gateway.get_program(program_id)
        return self.gateway.list_current_days(program_id)

    def list_versions(self, program_id: int):
        self.gateway.get_program(program_id)
        return self.gateway.list_versions(program_id)

    def get_explainability(self, program_id: int, version: Optional[int] = None):
        self.gateway.get_program(program_id)
        return self.gateway.list_explainability(program_id, version)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_engine(db: Session) -> ProgramEngine:
    """ProgramEngine over the SQL-backed collaborators sharing one Session."""
    return ProgramEngine(
        ProgramGateway(db),
        entitlements=SqlEntitlementGate(db),
        trust=SqlTrustLedger(db),
        user_state=SqlUserStateProvider(db),
        goals=SqlGoalStore(db),
        knowledge=KnowledgeConfidenceResolver(db),
        motion_risk=SqlMotionRiskProvider(db),
    )
