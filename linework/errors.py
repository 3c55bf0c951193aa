"""
Exception hierarchy for linework.

- GraphError: catalog defects, fatal at load time
- StateError: lesson session misuse; the session is left untouched
- ValidationRuleError: curriculum data defects found while scoring strokes
- PersistenceError: storage failures
"""

from __future__ import annotations


class LineworkError(Exception):
    """Base class for all linework errors."""


# =============================================================================
# Curriculum Graph
# =============================================================================


class GraphError(LineworkError):
    """Raised when the lesson catalog is inconsistent."""


class CyclicPrerequisite(GraphError):
    """Registering a tree would make a lesson reachable from itself."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Prerequisite cycle: {' -> '.join(cycle)}")


class DanglingPrerequisite(GraphError):
    """A lesson names a prerequisite that is not registered."""

    def __init__(self, lesson_id: str, missing_id: str):
        self.lesson_id = lesson_id
        self.missing_id = missing_id
        super().__init__(f"Lesson {lesson_id} requires unknown lesson {missing_id}")


class DuplicateLesson(GraphError):
    """The same lesson id is registered twice."""

    def __init__(self, lesson_id: str):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson {lesson_id} is already registered")


class NotFound(GraphError):
    """Lookup of an unknown lesson or skill tree."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found: {item_id}")


class CatalogError(LineworkError):
    """A catalog file could not be read or does not match the schema."""


# =============================================================================
# Lesson State Machine
# =============================================================================


class StateError(LineworkError):
    """An operation is not valid in the session's current phase."""

    def __init__(self, attempted: str, phase: str, detail: str | None = None):
        self.attempted = attempted
        self.phase = phase
        message = f"Cannot {attempted} while in phase {phase}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class InvalidPhase(StateError):
    """Transition attempted from the wrong phase."""


class InvalidInstructionIndex(StateError):
    """A step was submitted for an instruction other than the current one."""


class SessionActive(StateError):
    """start() called while another lesson session is still live."""


class NoActiveSession(StateError):
    """Operation requires a lesson session but none is active."""


# =============================================================================
# Validation Rule Engine
# =============================================================================


class ValidationRuleError(LineworkError):
    """A validation rule in the catalog cannot be evaluated."""


class UnknownRuleType(ValidationRuleError):
    """The rule names a type with no registered evaluator."""

    def __init__(self, rule_type: str):
        self.rule_type = rule_type
        super().__init__(f"Unknown validation rule type: {rule_type}")


class InvalidRuleParameters(ValidationRuleError):
    """The rule parameters are malformed for its type."""


class InvalidDrawingData(ValidationRuleError):
    """The drawing handed over by the canvas is malformed (e.g. non-finite coordinates)."""


# =============================================================================
# Persistence
# =============================================================================


class PersistenceError(LineworkError):
    """Reading or writing a storage key failed."""

    def __init__(self, key: str, reason: str | None = None):
        self.key = key
        message = f"Storage operation failed for key {key}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
