"""
Serializable lesson session state.

A LessonState is owned by one active session. exit() persists it under a
per-learner, per-lesson key so restore() can pick the lesson up later.
Timestamps are ISO strings so the record round-trips through JSON unchanged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class LessonPhase(str, Enum):
    """Lifecycle phases of a lesson session."""

    NOT_STARTED = "not_started"
    THEORY = "theory"
    READY_FOR_PRACTICE = "ready_for_practice"
    PRACTICE = "practice"
    READY_FOR_ASSESSMENT = "ready_for_assessment"
    COMPLETED = "completed"
    PAUSED = "paused"


PAUSABLE = (LessonPhase.THEORY, LessonPhase.PRACTICE)


@dataclass
class InstructionOutcome:
    """Latest validation outcome for one practice instruction."""

    passed: bool
    accuracy: float
    auto: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstructionOutcome:
        return cls(**data)


@dataclass
class LessonState:
    """Session-scoped progress through one lesson."""

    lesson_id: str
    learner_id: str = "default"
    phase: LessonPhase = LessonPhase.NOT_STARTED
    paused_from: LessonPhase | None = None

    # Progress, as fractions in [0, 1]
    theory_progress: float = 0.0
    practice_progress: float = 0.0
    current_instruction: int = 0

    # Failed attempts and latest outcome per instruction index
    attempts: dict[int, int] = field(default_factory=dict)
    outcomes: dict[int, InstructionOutcome] = field(default_factory=dict)

    # Active-time clock: accumulated seconds plus the running interval, if any
    started_at: str | None = None  # ISO format
    running_since: str | None = None  # ISO format, None while paused or suspended
    active_seconds: float = 0.0
    instruction_started_seconds: float = 0.0  # active time when the current step began

    saved_at: str | None = None  # ISO format, set when suspended

    def elapsed_seconds(self, now: datetime) -> float:
        """Active time: wall-clock minus paused and suspended intervals."""
        elapsed = self.active_seconds
        if self.running_since is not None:
            elapsed += max(0.0, (now - datetime.fromisoformat(self.running_since)).total_seconds())
        return elapsed

    def stop_clock(self, now: datetime) -> None:
        self.active_seconds = self.elapsed_seconds(now)
        self.running_since = None

    def start_clock(self, now: datetime) -> None:
        if self.running_since is None:
            self.running_since = now.isoformat()

    def failed_attempts(self) -> int:
        return sum(self.attempts.values())

    def is_expired(self, now: datetime, expiry_hours: int) -> bool:
        """Suspended sessions older than expiry_hours are stale."""
        if self.saved_at is None:
            return False
        return now - datetime.fromisoformat(self.saved_at) > timedelta(hours=expiry_hours)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "lesson_id": self.lesson_id,
            "learner_id": self.learner_id,
            "phase": self.phase.value,
            "paused_from": self.paused_from.value if self.paused_from else None,
            "theory_progress": self.theory_progress,
            "practice_progress": self.practice_progress,
            "current_instruction": self.current_instruction,
            "attempts": {str(index): count for index, count in self.attempts.items()},
            "outcomes": {str(index): outcome.to_dict() for index, outcome in self.outcomes.items()},
            "started_at": self.started_at,
            "running_since": self.running_since,
            "active_seconds": self.active_seconds,
            "instruction_started_seconds": self.instruction_started_seconds,
            "saved_at": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LessonState:
        """Create from dictionary."""
        data = dict(data)
        data["phase"] = LessonPhase(data["phase"])
        if data.get("paused_from"):
            data["paused_from"] = LessonPhase(data["paused_from"])
        data["attempts"] = {int(index): int(count) for index, count in data.get("attempts", {}).items()}
        data["outcomes"] = {
            int(index): InstructionOutcome.from_dict(outcome)
            for index, outcome in data.get("outcomes", {}).items()
        }
        return cls(**data)


def session_key(learner_id: str, lesson_id: str) -> str:
    """Storage key of a suspended session."""
    return f"session:{learner_id}:{lesson_id}"
