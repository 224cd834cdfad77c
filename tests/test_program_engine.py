"""
Tests for the program engine use cases.

Covered scenarios:
  A) generation        — phases, days, sessions, version 1, explainability, job
  B) generation guard  — medical block / low confidence → paused program, no structure
  C) adaptation        — meso / micro / macro paths, versions, audit rows
  D) adaptation guard  — pain ≥ 4 → pause, structure untouched
  E) delivery          — complete / skip, trust deltas, forward-only sessions
  F) concurrency       — a stale version loses the compare-and-swap

Each test uses its own user_id; programs are isolated by id.
"""
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import update

from fitplan.core.config import settings
from fitplan.core.errors import (
    AuthorizationError,
    GoalContextMissingError,
    InvalidSessionTransitionError,
    NotFoundError,
    ProgramBlockedError,
    ValidationError,
    VersionConflictError,
)
from fitplan.models.generation_job import ProgramGenerationJob
from fitplan.models.program import Program, ProgramStatus
from fitplan.models.structure import ProgramBlock, ProgramDay, ProgramPhase
from fitplan.services.collaborators import MotionRisk, UserSignals
from fitplan.services.gateway import _ev, jload
from fitplan.services.snapshots import make_snapshot
from fitplan.services.strategy import Strategy
from fitplan.services.triggers import Trigger
from fitplan.services.versioning import DecisionRef, VersionManager, VersionReason

from conftest import TODAY, FakeState, TestingSessionLocal


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _generate(engine, user_id: str, program_type: str = "nutrition", **kwargs):
    kwargs.setdefault("start_date", TODAY)
    return engine.generate_program(user_id, program_type, **kwargs)


def _sessions(engine, program_id: int) -> dict:
    return {d.day: s for d, s in engine.list_days(program_id)}


# ---------------------------------------------------------------------------
# A) Generation
# ---------------------------------------------------------------------------

class TestGenerate:
    def test_nutrition_program_structure(self, make_engine):
        engine = make_engine(trust=60)
        result = _generate(engine, "gen-a1")

        assert result.version == 1
        assert result.status == "active"

        phases = engine.gateway.list_current_phases(result.program_id)
        assert [p.phase_type for p in phases] == ["build", "deload"]
        assert phases[0].start_date == TODAY
        assert phases[-1].end_date == TODAY + timedelta(days=27)

        days = engine.list_days(result.program_id)
        assert len(days) == 28
        first_day, first_session = days[0]
        assert jload(first_day.targets) == {
            "calories": 2000, "protein": 150, "fat": 70, "carbs": 200,
        }
        assert _ev(first_session.status) == "planned"
        assert first_session.session_type == "meal_plan"

    def test_version_and_explainability_written(self, make_engine):
        engine = make_engine()
        result = _generate(engine, "gen-a2")

        versions = engine.list_versions(result.program_id)
        assert [(v.version, v.reason) for v in versions] == [(1, VersionReason.INITIAL_GENERATION)]
        snapshot = jload(versions[0].snapshot)
        assert snapshot["program_type"] == "nutrition"
        assert snapshot["plan_depth"] == "full"
        assert len(snapshot["phases"]) == 2

        notes = engine.get_explainability(result.program_id)
        assert [n.decision_ref for n in notes] == [DecisionRef.PROGRAM_GENERATION]
        assert notes[0].version == 1

    def test_generation_job_completed(self, db, make_engine):
        engine = make_engine()
        result = _generate(engine, "gen-a3")
        job = (
            db.query(ProgramGenerationJob)
            .filter(ProgramGenerationJob.user_id == "gen-a3")
            .one()
        )
        assert job.status == "completed"
        assert job.output_program_id == result.program_id

    def test_low_trust_single_phase_basic_training(self, make_engine):
        engine = make_engine(trust=30)
        result = _generate(engine, "gen-a4", "training", duration_days=14)

        phases = engine.gateway.list_current_phases(result.program_id)
        assert len(phases) == 1
        days = engine.list_days(result.program_id)
        assert len(days) == 14
        assert all(
            jload(d.session_plan) == {"focus": "recovery", "intensity": "low"} for d, _ in days
        )
        assert all(s.session_type == "workout_plan" for _, s in days)

    def test_duration_is_clamped(self, make_engine):
        engine = make_engine()
        long_run = _generate(engine, "gen-a5", duration_days=100)
        short_run = _generate(engine, "gen-a5", duration_days=3)
        assert len(engine.list_days(long_run.program_id)) == 56
        assert len(engine.list_days(short_run.program_id)) == 7

    def test_odd_window_is_fully_covered(self, make_engine):
        engine = make_engine(trust=80)
        result = _generate(engine, "gen-a6", duration_days=7)
        phases = engine.gateway.list_current_phases(result.program_id)
        lengths = [(p.end_date - p.start_date).days + 1 for p in phases]
        assert lengths == [4, 3]
        assert len(engine.list_days(result.program_id)) == 7

    def test_conservative_targets_on_moderate_confidence(self, make_engine):
        engine = make_engine(confidence=0.7)
        result = _generate(engine, "gen-a7", duration_days=7)
        day, _ = engine.list_days(result.program_id)[0]
        assert jload(day.targets)["calories"] == 1800

    def test_missing_goals_writes_nothing(self, db, make_engine):
        engine = make_engine(goals=None)
        with pytest.raises(GoalContextMissingError):
            _generate(engine, "gen-a8")
        assert db.query(Program).filter(Program.user_id == "gen-a8").count() == 0
        assert (
            db.query(ProgramGenerationJob)
            .filter(ProgramGenerationJob.user_id == "gen-a8")
            .count()
        ) == 0

    def test_not_entitled(self, db, make_engine):
        engine = make_engine(can_generate=False)
        with pytest.raises(AuthorizationError):
            _generate(engine, "gen-a9")
        assert db.query(Program).filter(Program.user_id == "gen-a9").count() == 0


# ---------------------------------------------------------------------------
# B) Generation guard
# ---------------------------------------------------------------------------

class TestGenerateGuard:
    def test_medical_block_pauses(self, db, make_engine):
        engine = make_engine()
        result = _generate(engine, "guard-b1", constraints={"medical_blocked": True})

        assert result.status == "paused"
        assert result.version == 1
        assert engine.list_days(result.program_id) == []
        assert engine.gateway.list_current_phases(result.program_id) == []

        events = engine.gateway.list_guard_events(result.program_id)
        assert len(events) == 1
        assert _ev(events[0].risk_level) == "danger"
        assert jload(events[0].flags) == ["medical_block"]
        assert jload(events[0].blocked_actions) == ["program_generation"]

        versions = engine.list_versions(result.program_id)
        assert versions[0].reason == VersionReason.GUARD_PAUSE
        notes = engine.get_explainability(result.program_id)
        assert notes[0].decision_ref == DecisionRef.WHY_PAUSED

        job = db.query(ProgramGenerationJob).filter(
            ProgramGenerationJob.output_program_id == result.program_id
        ).one()
        assert job.status == "blocked"

    def test_low_confidence_pauses(self, make_engine):
        engine = make_engine(confidence=0.5)
        result = _generate(engine, "guard-b2")
        assert result.status == "paused"
        events = engine.gateway.list_guard_events(result.program_id)
        assert jload(events[0].flags) == ["low_confidence"]


# ---------------------------------------------------------------------------
# C) Adaptation
# ---------------------------------------------------------------------------

class TestAdapt:
    def test_fatigue_feedback_deloads_with_refeed(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c1")

        result = engine.adapt_program(
            gen.program_id, "nutrition", constraints={"feedback": {"difficulty": 5}}
        )

        assert result.strategy == Strategy.MESO
        assert result.triggers == [Trigger.FATIGUE_SPIKE]
        assert result.from_version == 1
        assert result.to_version == 2
        assert result.adjustment_factor == 0.8
        assert result.refeed is True

        phases = engine.gateway.list_current_phases(gen.program_id)
        assert len(phases) == 1
        blocks = engine.gateway.list_blocks(phases[0].id)
        assert [(b.block_type, b.duration_days) for b in blocks] == [("deload", 5), ("build", 23)]

        day, _ = engine.list_days(gen.program_id)[0]
        assert jload(day.targets) == {"calories": 1600, "protein": 120, "fat": 56, "carbs": 176}

        adaptations = engine.gateway.list_adaptations(gen.program_id)
        assert [(a.from_version, a.to_version, a.trigger) for a in adaptations] == [
            (1, 2, Trigger.FATIGUE_SPIKE)
        ]
        events = engine.gateway.list_guard_events(gen.program_id)
        assert [(_ev(e.risk_level), jload(e.flags)) for e in events] == [("caution", ["fatigue"])]

        notes = engine.get_explainability(gen.program_id, version=2)
        assert [n.decision_ref for n in notes] == [DecisionRef.WHY_LOWERED_INTENSITY]

    def test_skipped_dates_micro_adjust(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c2")
        skipped = TODAY + timedelta(days=2)

        result = engine.adapt_program(
            gen.program_id, "nutrition", constraints={"skipped_dates": [skipped.isoformat()]}
        )

        assert result.strategy == Strategy.MICRO
        assert result.adjustment_factor == 0.9
        sessions = _sessions(engine, gen.program_id)
        assert _ev(sessions[skipped].status) == "skipped"
        assert _ev(sessions[TODAY].status) == "planned"
        assert jload(sessions[TODAY].plan_payload)["calories"] == 1800

    def test_quiet_state_is_macro_and_still_versioned(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c3")

        result = engine.adapt_program(gen.program_id, "nutrition")

        assert result.strategy == Strategy.MACRO
        assert result.triggers == []
        assert result.to_version == 2
        assert engine.gateway.list_adaptations(gen.program_id)[0].trigger == "none"
        notes = engine.get_explainability(gen.program_id, version=2)
        assert notes[0].decision_ref == DecisionRef.WHY_CHANGED

    def test_knowledge_bump_updates_stored_ref(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c4")

        result = engine.adapt_program(
            gen.program_id, "nutrition", knowledge_version_ref={"version": "v2"}
        )

        assert result.strategy == Strategy.MACRO
        assert Trigger.KNOWLEDGE_VERSION_BUMP in result.triggers
        program = engine.get_program(gen.program_id)
        assert jload(program.knowledge_version_ref) == {"version": "v2"}

    def test_resolver_version_change_is_a_bump(self, make_engine):
        gen = _generate(make_engine(knowledge_version="v1"), "adapt-c5")
        result = make_engine(knowledge_version="v2").adapt_program(gen.program_id, "nutrition")
        assert result.triggers == [Trigger.KNOWLEDGE_VERSION_BUMP]

    def test_versions_grow_by_one(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c6")
        for _ in range(3):
            engine.adapt_program(gen.program_id, "nutrition")

        assert [v.version for v in engine.list_versions(gen.program_id)] == [1, 2, 3, 4]
        assert engine.get_program(gen.program_id).version == 4
        for version in (1, 2, 3, 4):
            assert engine.get_explainability(gen.program_id, version=version)

    def test_superseded_structure_is_archived(self, db, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c7")
        engine.adapt_program(gen.program_id, "nutrition")

        all_phases = db.query(ProgramPhase).filter(ProgramPhase.program_id == gen.program_id).all()
        archived = [p for p in all_phases if p.superseded_at is not None]
        live = [p for p in all_phases if p.superseded_at is None]
        assert len(archived) == 2
        assert {p.program_version for p in live} == {2}
        assert len(engine.list_days(gen.program_id)) == 28

    def test_superseded_structure_is_deleted(self, db, make_engine, monkeypatch):
        monkeypatch.setattr(settings, "STRUCTURE_RETENTION", "delete")
        engine = make_engine()
        gen = _generate(engine, "adapt-c7b")
        counts = (
            db.query(ProgramPhase).count(),
            db.query(ProgramBlock).count(),
            db.query(ProgramDay).count(),
        )

        engine.adapt_program(gen.program_id, "nutrition")
        engine.adapt_program(gen.program_id, "nutrition")

        # same skeleton shape each time, so nothing accumulates
        assert (
            db.query(ProgramPhase).count(),
            db.query(ProgramBlock).count(),
            db.query(ProgramDay).count(),
        ) == counts
        phases = db.query(ProgramPhase).filter(ProgramPhase.program_id == gen.program_id).all()
        assert {p.program_version for p in phases} == {3}
        assert all(p.superseded_at is None for p in phases)

        days = db.query(ProgramDay).filter(ProgramDay.program_id == gen.program_id).all()
        assert len(days) == 28
        assert len({d.day for d in days}) == 28
        assert len(engine.list_days(gen.program_id)) == 28

    def test_terminal_sessions_survive_rebuild(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c8")
        engine.complete_day(gen.program_id, "nutrition", TODAY)

        engine.adapt_program(
            gen.program_id, "nutrition", constraints={"feedback": {"energy": 1}}
        )

        sessions = _sessions(engine, gen.program_id)
        assert _ev(sessions[TODAY].status) == "completed"
        assert jload(sessions[TODAY].plan_payload)["calories"] == 2000
        tomorrow = TODAY + timedelta(days=1)
        assert jload(sessions[tomorrow].plan_payload)["calories"] == 1600

    def test_not_entitled_leaves_program_untouched(self, make_engine):
        gen = _generate(make_engine(), "adapt-c9")
        with pytest.raises(AuthorizationError):
            make_engine(can_adapt=False).adapt_program(gen.program_id, "nutrition")
        assert make_engine().get_program(gen.program_id).version == 1

    def test_wrong_program_type_is_not_found(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c10")
        with pytest.raises(NotFoundError):
            engine.adapt_program(gen.program_id, "training")

    def test_other_users_program_is_not_found(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c11")
        with pytest.raises(NotFoundError):
            engine.adapt_program(gen.program_id, "nutrition", user_id="someone-else")

    def test_motion_risk_blocks_today_for_training(self, make_engine):
        gen = _generate(make_engine(), "adapt-c12", "training")
        engine = make_engine(risk=MotionRisk(id=77, severity="danger"))

        result = engine.adapt_program(gen.program_id, "training")

        assert Trigger.RISK_FLAG in result.triggers
        sessions = _sessions(engine, gen.program_id)
        assert _ev(sessions[TODAY].status) == "skipped"
        assert jload(sessions[TODAY].plan_payload)["blocked_by_pose_guard_flag_id"] == 77
        events = engine.gateway.list_guard_events(gen.program_id)
        assert jload(events[0].flags) == ["pose_risk"]
        assert jload(events[0].blocked_actions) == ["training_day"]
        snapshot = jload(engine.list_versions(gen.program_id)[-1].snapshot)
        assert snapshot["pose_guard_flag_id"] == 77

    def test_caution_motion_risk_is_ignored(self, make_engine):
        gen = _generate(make_engine(), "adapt-c13", "training")
        engine = make_engine(risk=MotionRisk(id=78, severity="caution"))
        result = engine.adapt_program(gen.program_id, "training")
        assert Trigger.RISK_FLAG not in result.triggers
        assert engine.gateway.list_guard_events(gen.program_id) == []

    def test_overload_records_danger_load_event(self, make_engine):
        gen = _generate(make_engine(), "adapt-c14", "training")
        engine = make_engine(signals=UserSignals(training_load_index=85))
        result = engine.adapt_program(gen.program_id, "training")
        assert result.strategy == Strategy.MESO
        assert result.refeed is False
        events = engine.gateway.list_guard_events(gen.program_id)
        assert [(_ev(e.risk_level), jload(e.flags)) for e in events] == [("danger", ["overload"])]

    def test_invalid_skipped_date_rejected(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "adapt-c15")
        with pytest.raises(ValidationError):
            engine.adapt_program(
                gen.program_id, "nutrition", constraints={"skipped_dates": ["not-a-date"]}
            )
        assert engine.get_program(gen.program_id).version == 1


# ---------------------------------------------------------------------------
# D) Adaptation guard
# ---------------------------------------------------------------------------

class TestAdaptGuard:
    def test_pain_pauses_without_rebuild(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "guard-d1")

        result = engine.adapt_program(
            gen.program_id, "nutrition", constraints={"feedback": {"pain": 5}}
        )

        assert result.strategy == Strategy.PAUSE
        assert result.status == "paused"
        assert result.to_version == 2
        assert Trigger.RISK_FLAG in result.triggers
        assert _ev(engine.get_program(gen.program_id).status) == "paused"

        live = engine.gateway.list_current_phases(gen.program_id)
        assert {p.program_version for p in live} == {1}
        assert engine.gateway.list_adaptations(gen.program_id) == []

        versions = engine.list_versions(gen.program_id)
        assert versions[-1].reason == VersionReason.GUARD_PAUSE
        notes = engine.get_explainability(gen.program_id, version=2)
        assert notes[0].decision_ref == DecisionRef.WHY_PAUSED
        events = engine.gateway.list_guard_events(gen.program_id)
        assert jload(events[-1].blocked_actions) == ["program_adaptation"]


# ---------------------------------------------------------------------------
# E) Delivery
# ---------------------------------------------------------------------------

class TestDelivery:
    def test_complete_raises_trust(self, make_engine):
        engine = make_engine(trust=60)
        gen = _generate(engine, "day-e1")
        result = engine.complete_day(gen.program_id, "nutrition", TODAY)
        assert result.session_status == "completed"
        assert result.trust_score == 62

    def test_complete_twice_is_rejected(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "day-e2")
        engine.complete_day(gen.program_id, "nutrition", TODAY)
        with pytest.raises(InvalidSessionTransitionError):
            engine.complete_day(gen.program_id, "nutrition", TODAY)

    def test_skip_after_complete_is_rejected(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "day-e3")
        engine.complete_day(gen.program_id, "nutrition", TODAY)
        with pytest.raises(InvalidSessionTransitionError):
            engine.skip_day(gen.program_id, "nutrition", TODAY)

    def test_unknown_day_is_not_found(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "day-e4", duration_days=7)
        with pytest.raises(NotFoundError):
            engine.complete_day(gen.program_id, "nutrition", TODAY + timedelta(days=30))

    def test_skip_lowers_trust_and_adapts(self, make_engine):
        engine = make_engine(trust=60)
        gen = _generate(engine, "day-e5")

        result = engine.skip_day(gen.program_id, "nutrition", TODAY, reason="travel")

        assert result.session_status == "skipped"
        assert result.trust_score == 57
        assert result.adaptation is not None
        assert result.adaptation.strategy == Strategy.MICRO
        assert Trigger.ADHERENCE_DROP in result.adaptation.triggers
        session = _sessions(engine, gen.program_id)[TODAY]
        assert jload(session.plan_payload)["reason"] == "travel"

    def test_skip_stands_without_adapt_entitlement(self, make_engine):
        engine = make_engine(can_adapt=False)
        gen = _generate(engine, "day-e6")

        result = engine.skip_day(gen.program_id, "nutrition", TODAY)

        assert result.session_status == "skipped"
        assert result.adaptation is None
        assert engine.get_program(gen.program_id).version == 1

    def test_trust_is_clamped(self, make_engine):
        engine = make_engine(trust=99)
        gen = _generate(engine, "day-e7")
        assert engine.complete_day(gen.program_id, "nutrition", TODAY).trust_score == 100

    def test_feedback_stored_and_adapts(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "day-e8")
        result = engine.submit_feedback(gen.program_id, "nutrition", energy=1, notes="wiped")
        assert result.feedback_id > 0
        assert result.adaptation.strategy == Strategy.MESO

    def test_complete_does_not_resume_paused_program(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "day-e9")
        engine.pause_program(gen.program_id, "nutrition", "vacation")
        engine.complete_day(gen.program_id, "nutrition", TODAY)
        assert _ev(engine.get_program(gen.program_id).status) == "paused"


# ---------------------------------------------------------------------------
# Manual pause / resume
# ---------------------------------------------------------------------------

class TestPauseResume:
    def test_pause_keeps_version(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "pause-1")
        program = engine.pause_program(gen.program_id, "nutrition", "vacation")

        assert _ev(program.status) == "paused"
        assert program.version == 1
        events = engine.gateway.list_guard_events(gen.program_id)
        assert jload(events[0].flags) == ["manual_pause"]
        refs = [n.decision_ref for n in engine.get_explainability(gen.program_id, version=1)]
        assert DecisionRef.WHY_PAUSED in refs

    def test_resume(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "pause-2")
        engine.pause_program(gen.program_id, "nutrition", "vacation")
        assert _ev(engine.resume_program(gen.program_id, "nutrition").status) == "active"

    def test_blocked_cannot_resume(self, db, make_engine):
        engine = make_engine()
        gen = _generate(engine, "pause-3")
        program = engine.get_program(gen.program_id)
        program.status = ProgramStatus.blocked
        db.commit()
        with pytest.raises(ProgramBlockedError):
            engine.resume_program(gen.program_id, "nutrition")

    def test_pause_then_resume_keeps_block(self, db, make_engine):
        engine = make_engine()
        gen = _generate(engine, "pause-4")
        program = engine.get_program(gen.program_id)
        program.status = ProgramStatus.blocked
        db.commit()

        paused = engine.pause_program(gen.program_id, "nutrition", "vacation")
        assert _ev(paused.status) == "blocked"
        assert engine.gateway.list_guard_events(gen.program_id) == []
        with pytest.raises(ProgramBlockedError):
            engine.resume_program(gen.program_id, "nutrition")
        assert _ev(engine.get_program(gen.program_id).status) == "blocked"

    def test_guard_trip_keeps_block(self, db, make_engine):
        engine = make_engine()
        gen = _generate(engine, "pause-5")
        program = engine.get_program(gen.program_id)
        program.status = ProgramStatus.blocked
        db.commit()

        result = engine.adapt_program(
            gen.program_id, "nutrition", constraints={"medical_blocked": True}
        )
        assert result.strategy == Strategy.PAUSE
        assert result.status == "blocked"
        assert _ev(engine.get_program(gen.program_id).status) == "blocked"
        with pytest.raises(ProgramBlockedError):
            engine.resume_program(gen.program_id, "nutrition")


# ---------------------------------------------------------------------------
# Replan
# ---------------------------------------------------------------------------

class TestReplan:
    def test_replan_bumps_version(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "replan-1")
        result = engine.replan_program(gen.program_id, "nutrition", {"vegetarian": True})

        assert (result.from_version, result.to_version) == (1, 2)
        versions = engine.list_versions(gen.program_id)
        assert versions[-1].reason == VersionReason.CONSTRAINT_REPLAN
        day, _ = engine.list_days(gen.program_id)[0]
        assert jload(day.constraints_applied) == {"vegetarian": True}


# ---------------------------------------------------------------------------
# F) Concurrency
# ---------------------------------------------------------------------------

class _RacingState(FakeState):
    """Moves the program version from another connection mid-adaptation."""

    def __init__(self, program_id: int):
        super().__init__()
        self.program_id = program_id

    def build_state(self, user_id, period):
        other = TestingSessionLocal()
        try:
            other.execute(
                update(Program).where(Program.id == self.program_id).values(version=2)
            )
            other.commit()
        finally:
            other.close()
        return super().build_state(user_id, period)


class TestConcurrency:
    def test_stale_expected_version_raises(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "race-1")
        program = engine.get_program(gen.program_id)
        snapshot = make_snapshot(
            "nutrition", status="active", trust_score=60,
            effective_confidence=1.0, constraints={},
        )
        with pytest.raises(VersionConflictError):
            with engine.gateway.unit_of_work("test"):
                VersionManager(engine.gateway).bump(
                    program, 0, snapshot, VersionReason.CONSTRAINT_REPLAN
                )
        assert engine.get_program(gen.program_id).version == 1

    def test_concurrent_writer_wins(self, make_engine):
        engine = make_engine()
        gen = _generate(engine, "race-2")
        engine.user_state = _RacingState(gen.program_id)

        with pytest.raises(VersionConflictError):
            engine.adapt_program(gen.program_id, "nutrition")

        assert engine.gateway.list_adaptations(gen.program_id) == []
        assert [v.version for v in engine.list_versions(gen.program_id)] == [1]
