"""
Programs router.

POST /programs                              — generate a program
GET  /programs/{id}                         — program header
POST /programs/{id}/adapt                   — evaluate triggers and adapt
POST /programs/{id}/replan                  — rebuild structure under new constraints
POST /programs/{id}/days/{day}/complete     — mark a session completed (+2 trust)
POST /programs/{id}/days/{day}/skip         — mark a session skipped (−3 trust) and adapt
POST /programs/{id}/feedback                — store 1–5 ratings and adapt
POST /programs/{id}/pause | /resume         — manual delivery control
GET  /programs/{id}/days | versions | explainability

The caller is identified by the X-User-Id header; a program owned by
someone else is reported as not found.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from fitplan.core.errors import NotFoundError
from fitplan.db.base import get_db
from fitplan.models.program import Program
from fitplan.schemas.program import (
    AdaptationResponse,
    AdaptProgramRequest,
    DayActionResponse,
    ExplainabilityListResponse,
    ExplainabilityResponse,
    FeedbackRequest,
    FeedbackResponse,
    GenerateProgramRequest,
    GenerationResponse,
    PauseProgramRequest,
    ProgramDayListResponse,
    ProgramDayResponse,
    ProgramResponse,
    ProgramVersionListResponse,
    ProgramVersionResponse,
    ReplanProgramRequest,
    ReplanResponse,
    SkipDayRequest,
)
from fitplan.services.gateway import _ev, jload
from fitplan.services.program_engine import (
    AdaptationResult,
    DayResult,
    ProgramEngine,
    build_engine,
)

router = APIRouter(prefix="/programs", tags=["programs"])


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_engine(db: Session = Depends(get_db)) -> ProgramEngine:
    return build_engine(db)


def current_user(
    x_user_id: str = Header(min_length=1, max_length=64, description="Caller identity."),
) -> str:
    return x_user_id


def _owned(engine: ProgramEngine, program_id: int, user_id: str) -> Program:
    program = engine.get_program(program_id)
    if program.user_id != user_id:
        raise NotFoundError("Program", program_id)
    return program


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _program_to_response(p: Program) -> ProgramResponse:
    return ProgramResponse(
        id=p.id,
        user_id=p.user_id,
        program_type=_ev(p.program_type),
        status=_ev(p.status),
        version=p.version,
        start_date=str(p.start_date),
        end_date=str(p.end_date),
        knowledge_version_ref=jload(p.knowledge_version_ref),
    )


def _adaptation_to_response(r: Optional[AdaptationResult]) -> Optional[AdaptationResponse]:
    if r is None:
        return None
    return AdaptationResponse(
        program_id=r.program_id,
        program_type=r.program_type,
        from_version=r.from_version,
        to_version=r.to_version,
        strategy=r.strategy,
        triggers=r.triggers,
        status=r.status,
        adjustment_factor=r.adjustment_factor,
        refeed=r.refeed,
    )


def _day_result_to_response(r: DayResult) -> DayActionResponse:
    return DayActionResponse(
        program_id=r.program_id,
        day=str(r.day),
        session_status=r.session_status,
        trust_score=r.trust_score,
        adaptation=_adaptation_to_response(r.adaptation),
    )


# ---------------------------------------------------------------------------
# Generate / read
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=GenerationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a nutrition or training program",
    responses={
        201: {"description": 'Program created. `status` is "paused" when a safety guard tripped.'},
        403: {"description": "User is not entitled to generate programs."},
        422: {"description": "Invalid request, or no nutrition goals on file."},
    },
)
def generate_program(
    body: GenerateProgramRequest,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    """
    Build phases, blocks and days for the requested window and write
    version 1. A medical block or knowledge confidence below 0.6 produces
    a paused program with no structure instead of an error.
    """
    result = engine.generate_program(
        user_id=user_id,
        program_type=body.program_type,
        start_date=body.start_date,
        duration_days=body.duration_days,
        constraints=body.constraints,
    )
    return GenerationResponse(**result.__dict__)


@router.get("/{program_id}", response_model=ProgramResponse, summary="Get a program")
def get_program(
    program_id: int,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    return _program_to_response(_owned(engine, program_id, user_id))


# ---------------------------------------------------------------------------
# Adapt / replan
# ---------------------------------------------------------------------------

@router.post(
    "/{program_id}/adapt",
    response_model=AdaptationResponse,
    summary="Adapt a program to the user's latest state",
    responses={
        403: {"description": "User is not entitled to adapt programs."},
        404: {"description": "Program not found."},
        409: {"description": "Another adaptation bumped the version first."},
    },
)
def adapt_program(
    program_id: int,
    body: AdaptProgramRequest,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    """
    ### Strategies
    | Strategy | When |
    |---|---|
    | `pause` | medical block, pain ≥ 4 or confidence < 0.6 |
    | `meso`  | fatigue spike or overload (deload skeleton) |
    | `macro` | trust drop, knowledge bump, or nothing to fix |
    | `micro` | plateau, adherence drop or skipped dates |
    """
    result = engine.adapt_program(
        program_id,
        body.program_type,
        constraints=body.constraints,
        knowledge_version_ref=body.knowledge_version_ref,
        user_id=user_id,
    )
    return _adaptation_to_response(result)


@router.post(
    "/{program_id}/replan",
    response_model=ReplanResponse,
    summary="Rebuild program structure under new constraints",
)
def replan_program(
    program_id: int,
    body: ReplanProgramRequest,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    _owned(engine, program_id, user_id)
    result = engine.replan_program(program_id, body.program_type, constraints=body.constraints)
    return ReplanResponse(**result.__dict__)


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

@router.post(
    "/{program_id}/days/{day}/complete",
    response_model=DayActionResponse,
    summary="Mark the session on `day` as completed",
    responses={409: {"description": "Session is already completed or skipped."}},
)
def complete_day(
    program_id: int,
    day: date,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    program = _owned(engine, program_id, user_id)
    result = engine.complete_day(program.id, _ev(program.program_type), day)
    return _day_result_to_response(result)


@router.post(
    "/{program_id}/days/{day}/skip",
    response_model=DayActionResponse,
    summary="Skip the session on `day` and adapt the program",
    responses={409: {"description": "Session is already completed or skipped."}},
)
def skip_day(
    program_id: int,
    day: date,
    body: Optional[SkipDayRequest] = None,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    program = _owned(engine, program_id, user_id)
    reason = body.reason if body else "user_override"
    result = engine.skip_day(program.id, _ev(program.program_type), day, reason)
    return _day_result_to_response(result)


@router.post(
    "/{program_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit 1–5 feedback ratings",
)
def submit_feedback(
    program_id: int,
    body: FeedbackRequest,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    program = _owned(engine, program_id, user_id)
    result = engine.submit_feedback(
        program.id,
        _ev(program.program_type),
        energy=body.energy,
        hunger=body.hunger,
        difficulty=body.difficulty,
        pain=body.pain,
        motivation=body.motivation,
        notes=body.notes,
        program_session_id=body.program_session_id,
        user_id=user_id,
    )
    return FeedbackResponse(
        feedback_id=result.feedback_id,
        adaptation=_adaptation_to_response(result.adaptation),
    )


@router.post("/{program_id}/pause", response_model=ProgramResponse, summary="Pause delivery")
def pause_program(
    program_id: int,
    body: Optional[PauseProgramRequest] = None,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    program = _owned(engine, program_id, user_id)
    reason = body.reason if body else "user_request"
    return _program_to_response(
        engine.pause_program(program.id, _ev(program.program_type), reason)
    )


@router.post(
    "/{program_id}/resume",
    response_model=ProgramResponse,
    summary="Resume a paused program",
    responses={409: {"description": "Program is blocked."}},
)
def resume_program(
    program_id: int,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    program = _owned(engine, program_id, user_id)
    return _program_to_response(engine.resume_program(program.id, _ev(program.program_type)))


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

@router.get("/{program_id}/days", response_model=ProgramDayListResponse, summary="Current days")
def list_days(
    program_id: int,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    _owned(engine, program_id, user_id)
    items = [
        ProgramDayResponse(
            day=str(d.day),
            targets=jload(d.targets),
            session_plan=jload(d.session_plan),
            session_status=_ev(s.status) if s else None,
            session_type=s.session_type if s else None,
        )
        for d, s in engine.list_days(program_id)
    ]
    return ProgramDayListResponse(total=len(items), items=items)


@router.get(
    "/{program_id}/versions",
    response_model=ProgramVersionListResponse,
    summary="Version history (oldest first)",
)
def list_versions(
    program_id: int,
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    _owned(engine, program_id, user_id)
    items = [
        ProgramVersionResponse(
            version=v.version,
            reason=v.reason,
            snapshot=jload(v.snapshot),
            created_at=v.created_at.isoformat() if v.created_at else "",
        )
        for v in engine.list_versions(program_id)
    ]
    return ProgramVersionListResponse(total=len(items), items=items)


@router.get(
    "/{program_id}/explainability",
    response_model=ExplainabilityListResponse,
    summary="Why each version looks the way it does (newest first)",
)
def get_explainability(
    program_id: int,
    version: Optional[int] = Query(default=None, ge=1, description="Limit to one version."),
    user_id: str = Depends(current_user),
    engine: ProgramEngine = Depends(get_engine),
):
    _owned(engine, program_id, user_id)
    items = [
        ExplainabilityResponse(
            version=e.version,
            decision_ref=e.decision_ref,
            knowledge_refs=jload(e.knowledge_refs),
            confidence=e.confidence,
            guard_notes=jload(e.guard_notes),
            created_at=e.created_at.isoformat() if e.created_at else "",
        )
        for e in engine.get_explainability(program_id, version)
    ]
    return ExplainabilityListResponse(total=len(items), items=items)
