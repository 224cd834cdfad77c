"""
Knowledge confidence resolver.

nutrition → the MINIMUM confidence among up to 50 core food items
            (worst case wins; no data → 1.0)
training  → always 1.0
"""
from __future__ import annotations

import math

from sqlalchemy.orm import Session

from fitplan.core.config import settings
from fitplan.models.knowledge import KnowledgeItem


SAMPLE_SIZE = 50
CORE_SOURCE = "core"

_SOURCE_FOR = {
    "nutrition": "foods",
    "training": "exercises",
}


class KnowledgeConfidenceResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve_confidence(self, program_type: str) -> float:
        if program_type == "training":
            return 1.0
        rows = (
            self.db.query(KnowledgeItem.confidence_score)
            .filter(KnowledgeItem.kind == "food", KnowledgeItem.source == CORE_SOURCE)
            .limit(SAMPLE_SIZE)
            .all()
        )
        values = []
        for (score,) in rows:
            value = 1.0 if score is None else float(score)
            if math.isfinite(value):
                values.append(value)
        if not values:
            return 1.0
        return min(values)

    def current_version_ref(self, program_type: str, confidence: float) -> dict:
        return {
            "program_type": program_type,
            "effective_confidence": confidence,
            "source": _SOURCE_FOR[program_type],
            "version": settings.KNOWLEDGE_VERSION,
        }
