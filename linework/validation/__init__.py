"""
Validation rule engine for practice steps.

Each rule type (line_count, shape_accuracy, perspective_lines, ...) has one
evaluator class registered with @register. Evaluators:
- evaluate(): score a drawing against a rule, purely
- hint(): provide a progressive fallback hint

The set of rule types is closed: importing this package fails if any
RuleType has no evaluator.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from linework.curriculum.models import ValidationRule, normalize_rule_type
from linework.errors import UnknownRuleType

if TYPE_CHECKING:
    from .base import DrawingData, RuleEvaluator, RuleResult


class RuleType(str, Enum):
    """Supported validation rule types."""

    LINE_COUNT = "line_count"
    LINE_DETECTION = "line_detection"
    SHAPE_ACCURACY = "shape_accuracy"
    SHAPE_COMPLETION = "shape_completion"
    SHAPE_CONSTRUCTION = "shape_construction"
    POINT_PLACEMENT = "point_placement"
    PERSPECTIVE_LINES = "perspective_lines"
    SHADING_ELEMENT = "shading_element"
    SHADING_GRADATION = "shading_gradation"
    CAST_SHADOW = "cast_shadow"
    CYLINDRICAL_SHADING = "cylindrical_shading"
    FORM_CONSTRUCTION = "form_construction"
    COMPLETION = "completion"
    STROKE_COUNT = "stroke_count"
    COLOR_MATCH = "color_match"


# Evaluator registry - populated by @register decorator
RULES: dict[RuleType, "RuleEvaluator"] = {}


def register(rule_type: RuleType):
    """Decorator to register a rule evaluator."""
    def decorator(cls):
        if rule_type in RULES:
            raise RuntimeError(f"Duplicate evaluator for rule type {rule_type.value}")
        RULES[rule_type] = cls()
        return cls
    return decorator


def resolve_rule_type(rule_type: str | RuleType) -> RuleType:
    """Map a tag to its RuleType, raising UnknownRuleType for anything else."""
    if isinstance(rule_type, RuleType):
        return rule_type
    try:
        return RuleType(normalize_rule_type(rule_type))
    except ValueError:
        raise UnknownRuleType(rule_type) from None


def get_evaluator(rule_type: str | RuleType) -> "RuleEvaluator":
    """Get the evaluator for a rule type."""
    return RULES[resolve_rule_type(rule_type)]


def evaluate(rule: ValidationRule, drawing: "DrawingData | dict[str, Any] | None") -> "RuleResult":
    """
    Score drawing data against a rule.

    Raises:
        UnknownRuleType: the rule's type has no evaluator (a catalog defect)
        InvalidDrawingData: the drawing cannot be read (e.g. NaN coordinates)
    """
    evaluator = get_evaluator(rule.type)
    return evaluator.evaluate(rule, DrawingData.coerce(drawing))


def fallback_hint(rule: ValidationRule, attempt: int) -> str | None:
    """Evaluator-provided hint for when the lesson defines none."""
    return get_evaluator(rule.type).hint(rule, attempt)


# Import evaluators to trigger registration
from .base import DrawingData, RuleResult  # noqa: E402
from . import lines  # noqa: E402
from . import shapes  # noqa: E402
from . import counting  # noqa: E402
from . import perspective  # noqa: E402
from . import shading  # noqa: E402
from . import color  # noqa: E402

_missing = [rule_type.value for rule_type in RuleType if rule_type not in RULES]
if _missing:
    raise RuntimeError(f"Rule types without an evaluator: {', '.join(_missing)}")

__all__ = [
    "DrawingData",
    "RULES",
    "RuleResult",
    "RuleType",
    "evaluate",
    "fallback_hint",
    "get_evaluator",
    "register",
    "resolve_rule_type",
]
