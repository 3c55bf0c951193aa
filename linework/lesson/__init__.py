"""
Lesson sessions: state, assessment scoring and the state machine.
"""

from linework.lesson.assessment import AssessmentResult, CriterionScore, assess, calculate_xp
from linework.lesson.machine import (
    CompletionRecorder,
    CompletionResult,
    Guidance,
    LessonStateMachine,
    StepResult,
)
from linework.lesson.state import InstructionOutcome, LessonPhase, LessonState, session_key

__all__ = [
    "AssessmentResult",
    "CompletionRecorder",
    "CompletionResult",
    "CriterionScore",
    "Guidance",
    "InstructionOutcome",
    "LessonPhase",
    "LessonState",
    "LessonStateMachine",
    "StepResult",
    "assess",
    "calculate_xp",
    "session_key",
]
