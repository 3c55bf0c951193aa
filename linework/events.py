"""
Presentation event sinks.

Hints, goal notices and progress changes are emitted fire-and-forget;
a sink must never raise into the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

# Event names
HINT = "hint"
LESSON_STARTED = "lesson_started"
LESSON_COMPLETED = "lesson_completed"
LESSON_EXITED = "lesson_exited"
PROGRESS_CHANGED = "progress_changed"
DAILY_GOAL_REACHED = "daily_goal_reached"
LEVEL_UP = "level_up"
ACHIEVEMENT_UNLOCKED = "achievement_unlocked"


class EventSink(Protocol):
    def emit(self, event: str, payload: dict[str, Any]) -> None:
        ...


class LoggingEventSink:
    """Writes events to the log."""

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        logger.info(f"[{event}] {payload}")


@dataclass
class MemoryEventSink:
    """Keeps emitted events in order."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, dict(payload)))

    def named(self, event: str) -> list[dict[str, Any]]:
        """Payloads of every event with this name."""
        return [payload for name, payload in self.events if name == event]

    def clear(self) -> None:
        self.events.clear()
