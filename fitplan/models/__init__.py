from .program import Program
from .structure import ProgramPhase, ProgramBlock, ProgramDay
from .session import ProgramSession
from .version import ProgramVersion
from .adaptation import ProgramAdaptation
from .guard_event import ProgramGuardEvent
from .explainability import ProgramExplainability
from .generation_job import ProgramGenerationJob
from .feedback import ProgramFeedback
from .goal import UserGoal
from .trust import AiTrustScore
from .user_state import UserState
from .knowledge import KnowledgeItem
from .motion_risk import MotionRiskFlag
from .entitlement import UserEntitlement

__all__ = [
    "Program",
    "ProgramPhase",
    "ProgramBlock",
    "ProgramDay",
    "ProgramSession",
    "ProgramVersion",
    "ProgramAdaptation",
    "ProgramGuardEvent",
    "ProgramExplainability",
    "ProgramGenerationJob",
    "ProgramFeedback",
    "UserGoal",
    "AiTrustScore",
    "UserState",
    "KnowledgeItem",
    "MotionRiskFlag",
    "UserEntitlement",
]
