"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Engine-level tests swap the SQL collaborators for in-memory fakes.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_fitplan.db")

from datetime import date
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fitplan.db.base import Base, get_db
from fitplan.main import app
from fitplan.services.collaborators import MotionRisk, StatePeriod, UserSignals, clamp_trust
from fitplan.services.gateway import ProgramGateway
from fitplan.services.program_engine import ProgramEngine
from fitplan.services.skeleton import Goals

SQLITE_URL = "sqlite:///./test_fitplan.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2030, 1, 1)
DEFAULT_GOALS = Goals(calories=2000, protein=150, fat=70, carbs=200)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

class FakeEntitlements:
    def __init__(self, can_generate: bool = True, can_adapt: bool = True):
        self.can_generate = can_generate
        self.can_adapt = can_adapt

    def can_generate_program(self, user_id: str) -> bool:
        return self.can_generate

    def can_adapt_program(self, user_id: str) -> bool:
        return self.can_adapt


class FakeTrust:
    def __init__(self, score: int = 60):
        self.score = score

    def get_trust_score(self, user_id: str) -> int:
        return self.score

    def update_trust_score(self, user_id: str, delta: int) -> int:
        self.score = clamp_trust(self.score + delta)
        return self.score


class FakeState:
    def __init__(self, signals: Optional[UserSignals] = None):
        self.signals = signals or UserSignals()

    def build_state(self, user_id: str, period: StatePeriod) -> UserSignals:
        return self.signals


class FakeGoals:
    def __init__(self, goals: Optional[Goals] = DEFAULT_GOALS):
        self.goals = goals

    def get_goal(self, user_id: str) -> Optional[Goals]:
        return self.goals


class FakeKnowledge:
    def __init__(self, confidence: float = 1.0, version: str = "v1"):
        self.confidence = confidence
        self.version = version

    def resolve_confidence(self, program_type: str) -> float:
        return self.confidence

    def current_version_ref(self, program_type: str, confidence: float) -> dict:
        return {
            "program_type": program_type,
            "effective_confidence": confidence,
            "source": "foods" if program_type == "nutrition" else "exercises",
            "version": self.version,
        }


class FakeMotionRisk:
    def __init__(self, risk: Optional[MotionRisk] = None):
        self.risk = risk

    def latest_flag(self, user_id: str) -> Optional[MotionRisk]:
        return self.risk


@pytest.fixture()
def make_engine(db):
    """
    Build a ProgramEngine over the test DB with fake collaborators.
    The fakes are reachable afterwards as engine.entitlements, engine.trust, ...
    """
    def _make(
        *,
        trust: int = 60,
        goals: Optional[Goals] = DEFAULT_GOALS,
        signals: Optional[UserSignals] = None,
        confidence: float = 1.0,
        knowledge_version: str = "v1",
        can_generate: bool = True,
        can_adapt: bool = True,
        risk: Optional[MotionRisk] = None,
        today: date = TODAY,
    ) -> ProgramEngine:
        return ProgramEngine(
            ProgramGateway(db),
            entitlements=FakeEntitlements(can_generate, can_adapt),
            trust=FakeTrust(trust),
            user_state=FakeState(signals),
            goals=FakeGoals(goals),
            knowledge=FakeKnowledge(confidence, knowledge_version),
            motion_risk=FakeMotionRisk(risk),
            today=lambda: today,
        )

    return _make
