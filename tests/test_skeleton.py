"""
Tests for skeleton and day building.

Covered:
  - trust < 50 → one build phase; otherwise build + deload halves
  - phases tile the window exactly, including odd lengths
  - deload skeleton: front-loaded deload block clamped to [2, 5] days
  - nutrition targets: conservative factor, adjustment factor, refeed carbs
  - training session plans by plan depth and confidence
"""
from datetime import date, timedelta

import pytest

from fitplan.services.skeleton import (
    Goals,
    PhaseType,
    PlanDepth,
    build_days,
    build_deload_skeleton,
    build_skeleton,
    deload_length,
    plan_depth_for,
    round_half_up,
)

START = date(2030, 3, 1)
GOALS = Goals(calories=2000, protein=150, fat=70, carbs=200)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.4) == 2

    def test_plan_depth_threshold(self):
        assert plan_depth_for(49) == PlanDepth.BASIC
        assert plan_depth_for(50) == PlanDepth.FULL

    @pytest.mark.parametrize("duration,expected", [
        (7, 2),     # round(1.4) = 1 → clamped up to 2
        (14, 3),    # round(2.8) = 3
        (28, 5),    # round(5.6) = 6 → clamped down to 5
        (56, 5),
    ])
    def test_deload_length(self, duration, expected):
        assert deload_length(duration) == expected


# ---------------------------------------------------------------------------
# Skeletons
# ---------------------------------------------------------------------------

class TestBuildSkeleton:
    def test_low_trust_single_build_phase(self):
        phases = build_skeleton(START, 28, trust_score=40)
        assert len(phases) == 1
        assert phases[0].phase_type == PhaseType.BUILD
        assert phases[0].start_date == START
        assert phases[0].end_date == START + timedelta(days=27)

    def test_trust_at_threshold_builds_two_phases(self):
        phases = build_skeleton(START, 28, trust_score=50)
        assert [p.phase_type for p in phases] == [PhaseType.BUILD, PhaseType.DELOAD]
        assert [p.length for p in phases] == [14, 14]

    def test_odd_duration_last_phase_absorbs_remainder(self):
        phases = build_skeleton(START, 7, trust_score=80)
        assert [p.length for p in phases] == [4, 3]
        assert phases[-1].end_date == START + timedelta(days=6)

    def test_phases_are_contiguous(self):
        phases = build_skeleton(START, 29, trust_score=90)
        assert phases[1].start_date == phases[0].end_date + timedelta(days=1)
        assert sum(p.length for p in phases) == 29

    def test_each_phase_has_one_block_of_its_length(self):
        for phase in build_skeleton(START, 28, trust_score=70):
            assert len(phase.blocks) == 1
            assert phase.blocks[0].duration_days == phase.length
            assert phase.blocks[0].block_type == phase.phase_type


class TestBuildDeloadSkeleton:
    def test_front_loaded_deload_block(self):
        phases = build_deload_skeleton(START, 28)
        assert len(phases) == 1
        blocks = phases[0].blocks
        assert [b.block_type for b in blocks] == [PhaseType.DELOAD, PhaseType.BUILD]
        assert [b.duration_days for b in blocks] == [5, 23]

    def test_blocks_cover_window(self):
        phases = build_deload_skeleton(START, 10)
        assert sum(b.duration_days for b in phases[0].blocks) == 10
        assert phases[0].length == 10


# ---------------------------------------------------------------------------
# Days
# ---------------------------------------------------------------------------

class TestNutritionDays:
    def test_one_day_per_window_day(self):
        days = build_days(START, 14, "nutrition", GOALS, 1.0)
        assert len(days) == 14
        assert days[0].day == START
        assert days[-1].day == START + timedelta(days=13)

    def test_full_confidence_targets_equal_goals(self):
        day = build_days(START, 7, "nutrition", GOALS, 1.0)[0]
        assert day.targets == {"calories": 2000, "protein": 150, "fat": 70, "carbs": 200}
        assert day.session_plan is None

    def test_low_confidence_applies_conservative_factor(self):
        day = build_days(START, 7, "nutrition", GOALS, 0.7)[0]
        assert day.targets == {"calories": 1800, "protein": 135, "fat": 63, "carbs": 180}

    def test_adjustment_and_refeed(self):
        day = build_days(
            START, 7, "nutrition", GOALS, 1.0, adjustment_factor=0.8, refeed=True
        )[0]
        assert day.targets["calories"] == 1600
        assert day.targets["protein"] == 120
        assert day.targets["carbs"] == 176


class TestTrainingDays:
    def test_full_depth_alternates(self):
        days = build_days(START, 4, "training", GOALS, 1.0, plan_depth=PlanDepth.FULL)
        assert days[0].session_plan == {"focus": "strength", "intensity": "moderate"}
        assert days[1].session_plan == {"focus": "recovery", "intensity": "low"}
        assert days[0].targets is None

    def test_basic_depth_is_recovery_low(self):
        days = build_days(START, 4, "training", GOALS, 1.0, plan_depth=PlanDepth.BASIC)
        assert all(d.session_plan == {"focus": "recovery", "intensity": "low"} for d in days)

    def test_low_confidence_forces_low_intensity(self):
        days = build_days(START, 4, "training", GOALS, 0.7, plan_depth=PlanDepth.FULL)
        assert days[0].session_plan == {"focus": "strength", "intensity": "low"}
