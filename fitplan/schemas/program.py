"""
Program request / response schemas.

POST /programs                                → GenerateProgramRequest → GenerationResponse
GET  /programs/{id}                           → ProgramResponse
POST /programs/{id}/adapt                     → AdaptProgramRequest    → AdaptationResponse
POST /programs/{id}/replan                    → ReplanProgramRequest   → ReplanResponse
POST /programs/{id}/days/{day}/complete|skip  → DayActionResponse
POST /programs/{id}/feedback                  → FeedbackRequest        → FeedbackResponse
GET  /programs/{id}/days | versions | explainability
"""
from __future__ import annotations

import enum
from datetime import date
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgramTypeIn(str, enum.Enum):
    nutrition = "nutrition"
    training = "training"


Rating = Annotated[Optional[int], Field(ge=1, le=5)]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class GenerateProgramRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    program_type: ProgramTypeIn = Field(examples=["nutrition", "training"])
    start_date: Optional[date] = Field(
        default=None,
        description="First day of the program. Defaults to today (UTC).",
        examples=["2026-03-01"],
    )
    duration_days: Optional[int] = Field(
        default=None,
        ge=7,
        le=56,
        description="Program length in days. Defaults to 28.",
    )
    constraints: dict[str, Any] = Field(
        default_factory=dict,
        description='Free-form constraints, e.g. {"medical_blocked": true}.',
    )


class AdaptProgramRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    program_type: ProgramTypeIn
    constraints: dict[str, Any] = Field(
        default_factory=dict,
        description=(
            'Accepts "skipped_dates" (ISO dates), "feedback" (1–5 ratings) '
            'and "medical_blocked".'
        ),
    )
    knowledge_version_ref: Optional[dict[str, Any]] = Field(
        default=None,
        description="Knowledge version to compare against the stored one.",
    )


class ReplanProgramRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    program_type: ProgramTypeIn
    constraints: dict[str, Any] = Field(default_factory=dict)


class SkipDayRequest(BaseModel):
    reason: str = Field(default="user_override", min_length=1, max_length=64)


class FeedbackRequest(BaseModel):
    program_session_id: Optional[int] = None
    energy: Rating = None
    hunger: Rating = None
    difficulty: Rating = None
    pain: Rating = None
    motivation: Rating = None
    notes: Optional[str] = Field(default=None, max_length=2_000)


class PauseProgramRequest(BaseModel):
    reason: str = Field(default="user_request", min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class GenerationResponse(BaseModel):
    program_id: int
    program_type: str
    version: int
    status: str = Field(description='"active" or "paused" (safety guard tripped).')


class AdaptationResponse(BaseModel):
    program_id: int
    program_type: str
    from_version: int
    to_version: int
    strategy: str = Field(description='"micro" | "meso" | "macro" | "pause"')
    triggers: list[str]
    status: str
    adjustment_factor: float
    refeed: bool


class ReplanResponse(BaseModel):
    program_id: int
    program_type: str
    from_version: int
    to_version: int


class DayActionResponse(BaseModel):
    program_id: int
    day: str
    session_status: str
    trust_score: int
    adaptation: Optional[AdaptationResponse] = None


class FeedbackResponse(BaseModel):
    feedback_id: int
    adaptation: Optional[AdaptationResponse] = None


class ProgramResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    program_type: str
    status: str
    version: int
    start_date: str
    end_date: str
    knowledge_version_ref: Optional[dict[str, Any]] = None


class ProgramDayResponse(BaseModel):
    day: str
    targets: Optional[dict[str, Any]] = None
    session_plan: Optional[dict[str, Any]] = None
    session_status: Optional[str] = None
    session_type: Optional[str] = None


class ProgramDayListResponse(BaseModel):
    total: int
    items: list[ProgramDayResponse]


class ProgramVersionResponse(BaseModel):
    version: int
    reason: str
    snapshot: Optional[dict[str, Any]] = None
    created_at: str


class ProgramVersionListResponse(BaseModel):
    total: int
    items: list[ProgramVersionResponse]


class ExplainabilityResponse(BaseModel):
    version: int
    decision_ref: str
    knowledge_refs: Optional[dict[str, Any]] = None
    confidence: Optional[float] = None
    guard_notes: Optional[dict[str, Any]] = None
    created_at: str


class ExplainabilityListResponse(BaseModel):
    total: int
    items: list[ExplainabilityResponse]
