"""
Version snapshots — what gets frozen into program_versions.snapshot.

One dataclass per program type, with a `program_type` tag, so readers can
dispatch on the tag instead of probing optional keys. Refeed only exists
for nutrition; the motion-risk flag only exists for training.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Literal, Optional, Union

from fitplan.services.skeleton import PhasePlan


@dataclass
class _SnapshotBase:
    status: str
    trust_score: float
    effective_confidence: float
    constraints: dict[str, Any]
    phases: list[PhasePlan] = field(default_factory=list)
    plan_depth: Optional[str] = None
    triggers: list[str] = field(default_factory=list)
    strategy: Optional[str] = None
    adjustment_factor: float = 1.0
    knowledge_version_ref: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phases"] = [p.to_dict() for p in self.phases]
        return data


@dataclass
class NutritionSnapshot(_SnapshotBase):
    program_type: Literal["nutrition"] = "nutrition"
    refeed: bool = False


@dataclass
class TrainingSnapshot(_SnapshotBase):
    program_type: Literal["training"] = "training"
    pose_guard_flag_id: Optional[int] = None


ProgramSnapshot = Union[NutritionSnapshot, TrainingSnapshot]


def make_snapshot(
    program_type: str,
    *,
    refeed: bool = False,
    pose_guard_flag_id: Optional[int] = None,
    **fields: Any,
) -> ProgramSnapshot:
    if program_type == "nutrition":
        return NutritionSnapshot(refeed=refeed, **fields)
    if program_type == "training":
        return TrainingSnapshot(pose_guard_flag_id=pose_guard_flag_id, **fields)
    raise ValueError(f"Unknown program type: {program_type!r}")
