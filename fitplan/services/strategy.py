"""
Strategy selector — maps a TriggerSet to exactly one adaptation strategy.

Runs only after the guard gate has NOT tripped. First match wins:

  1. fatigue_spike or overload            → meso   (deload skeleton)
  2. trust_drop or knowledge_version_bump → macro
  3. no plateau, no adherence_drop and no skipped dates → macro
  4. otherwise                            → micro

Adjustment factor (applied to day targets):
  fatigue_spike / overload → 0.8
  adherence_drop           → 0.9
  plateau                  → 0.95
  otherwise                → 1.0

refeed is set only for a fatigue_spike on a nutrition program.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from fitplan.services.triggers import TriggerSet


class Strategy:
    MICRO = "micro"
    MESO  = "meso"
    MACRO = "macro"
    PAUSE = "pause"


DELOAD_FACTOR         = 0.8
ADHERENCE_FACTOR      = 0.9
MICRO_ADJUST_FACTOR   = 0.95


@dataclass
class StrategyDecision:
    strategy: str
    adjustment_factor: float
    refeed: bool

    @property
    def uses_deload_skeleton(self) -> bool:
        return self.strategy == Strategy.MESO


def _adjustment_factor(triggers: TriggerSet) -> float:
    if triggers.fatigue_spike or triggers.overload:
        return DELOAD_FACTOR
    if triggers.adherence_drop:
        return ADHERENCE_FACTOR
    if triggers.plateau:
        return MICRO_ADJUST_FACTOR
    return 1.0


def select_strategy(
    triggers: TriggerSet,
    program_type: str,
    skipped_dates: list[date],
) -> StrategyDecision:
    if triggers.fatigue_spike or triggers.overload:
        strategy = Strategy.MESO
    elif triggers.trust_drop or triggers.knowledge_version_bump:
        strategy = Strategy.MACRO
    elif not triggers.plateau and not triggers.adherence_drop and not skipped_dates:
        strategy = Strategy.MACRO
    else:
        strategy = Strategy.MICRO

    return StrategyDecision(
        strategy=strategy,
        adjustment_factor=_adjustment_factor(triggers),
        refeed=triggers.fatigue_spike and program_type == "nutrition",
    )
