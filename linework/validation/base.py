"""
Base protocol and types for validation rule evaluators.
"""

from __future__ import annotations

import math
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from linework.curriculum.models import ValidationRule
from linework.errors import InvalidDrawingData


class Point(BaseModel):
    """A sampled pen position. Accepts {x, y, ...} or an [x, y] pair."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    x: float
    y: float
    pressure: float = 1.0
    timestamp: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_pair(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            if len(data) < 2:
                raise ValueError("a point needs at least x and y")
            return {"x": data[0], "y": data[1]}
        return data


class Stroke(BaseModel):
    """One continuous pen-down to pen-up path."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    id: str | None = None
    points: list[Point] = Field(default_factory=list)
    color: str = "#000000"
    opacity: float = 1.0
    size: float = 2.0

    @property
    def mean_pressure(self) -> float:
        if not self.points:
            return 0.0
        return sum(p.pressure for p in self.points) / len(self.points)


class DrawingData(BaseModel):
    """Everything the canvas hands over for one practice step."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    strokes: list[Stroke] = Field(default_factory=list)
    points: list[Point] = Field(default_factory=list)
    completion_rate: float = 0.0
    colors: list[str] = Field(default_factory=list)

    @classmethod
    def coerce(cls, data: DrawingData | dict | None) -> DrawingData:
        if data is None:
            return cls()
        if isinstance(data, DrawingData):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidDrawingData(f"Malformed drawing data: {e}") from e

    def used_colors(self) -> list[str]:
        """Explicit palette colours plus every stroke colour, in first-seen order."""
        seen: list[str] = []
        for color in [*self.colors, *(stroke.color for stroke in self.strokes)]:
            if color not in seen:
                seen.append(color)
        return seen


class RuleResult(BaseModel):
    """Outcome of scoring a drawing against one rule."""

    model_config = ConfigDict(frozen=True)

    passed: bool
    accuracy: float = Field(ge=0.0, le=1.0)
    details: dict[str, Any] = Field(default_factory=dict)


class RuleEvaluator(Protocol):
    """Protocol for rule type evaluators."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        """Score the drawing. Must be pure: no I/O, no mutation of inputs."""
        ...

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        """Progressive fallback hint for failed attempt N."""
        ...


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp into [low, high]. NaN scores as low."""
    value = float(value)
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def param_int(rule: ValidationRule, *names: str, default: int) -> int:
    """First present parameter among names (snake_case or camelCase) as int."""
    for name in names:
        if rule.params.get(name) is not None:
            return int(rule.params[name])
    return default


def param_float(rule: ValidationRule, *names: str, default: float) -> float:
    for name in names:
        if rule.params.get(name) is not None:
            return float(rule.params[name])
    return default


def counted(observed: int, minimum: int, maximum: int | None = None) -> RuleResult:
    """Bounds check shared by the counting rules."""
    within = observed >= minimum and (maximum is None or observed <= maximum)
    accuracy = 1.0 if minimum <= 0 else clamp(observed / minimum)
    if maximum is not None and observed > maximum:
        accuracy = clamp(maximum / observed)
    return RuleResult(
        passed=within,
        accuracy=accuracy,
        details={"observed": observed, "min": minimum, "max": maximum},
    )


def best_of(scores: list[float], needed: int) -> float:
    """Mean of the `needed` best scores; missing entries count as zero."""
    needed = max(1, needed)
    top = sorted(scores, reverse=True)[:needed]
    return sum(top) / needed
