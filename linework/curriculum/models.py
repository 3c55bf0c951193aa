"""
Catalog models for skill trees and lessons.

Everything here is static configuration: it is validated once when the
catalog is loaded and never mutated afterwards (models are frozen).
Learner-specific state lives in linework.progress and linework.lesson.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class SkillCategory(str, Enum):
    """Topic grouping for skill trees."""

    FUNDAMENTALS = "fundamentals"
    TECHNIQUES = "techniques"
    STYLES = "styles"
    DIGITAL_TOOLS = "digital_tools"
    TRADITIONAL_MEDIA = "traditional_media"
    SPECIALIZED = "specialized"


class CatalogModel(BaseModel):
    """Base for immutable catalog records."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def normalize_rule_type(value: str) -> str:
    """Catalog files use both 'stroke-count' and 'stroke_count'."""
    return value.strip().lower().replace("-", "_")


class ValidationRule(CatalogModel):
    """Declarative check applied to a practice step's drawing."""

    type: str
    params: dict[str, Any] = Field(default_factory=dict)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        return normalize_rule_type(value)


class Hint(CatalogModel):
    """Hint surfaced when its trigger fires, e.g. 'instruction_0_fail'."""

    id: str
    trigger: str = Field(validation_alias=AliasChoices("trigger", "trigger_condition"))
    content: str
    type: Literal["tip", "correction", "encouragement"] = "tip"


class PracticeInstruction(CatalogModel):
    step: int
    text: str
    required_action: str | None = None
    highlight_area: dict[str, float] | None = None
    validation: ValidationRule | None = None


class TheorySegment(CatalogModel):
    type: Literal["text", "image", "video", "interactive"] = "text"
    content: Any = None
    duration: float = Field(default=30.0, ge=0, description="Seconds")
    asset_url: str | None = None


class TheoryContent(CatalogModel):
    segments: list[TheorySegment] = Field(default_factory=list)
    estimated_duration: float = 0.0


class PracticeContent(CatalogModel):
    instructions: list[PracticeInstruction] = Field(default_factory=list)
    hints: list[Hint] = Field(default_factory=list)
    reference_image: str | None = None
    tools_required: list[str] = Field(default_factory=list)
    estimated_duration: float = 0.0

    def hint_for(self, trigger: str) -> Hint | None:
        """First hint registered for the trigger, if any."""
        for hint in self.hints:
            if hint.trigger == trigger:
                return hint
        return None


class AssessmentCriterion(CatalogModel):
    """
    A weighted scoring criterion.

    Automatic criteria are scored from the recorded practice outcomes of
    `instructions` (all instructions when omitted).
    """

    id: str
    description: str = ""
    weight: float = Field(gt=0)
    evaluation_type: Literal["automatic", "self", "peer"] = "automatic"
    instructions: list[int] | None = None


class BonusCondition(CatalogModel):
    kind: Literal["max_duration_seconds", "min_score", "no_failed_attempts"]
    value: float = 0.0


class BonusObjective(CatalogModel):
    id: str
    description: str = ""
    xp_bonus: int = Field(default=0, ge=0)
    condition: BonusCondition


class Assessment(CatalogModel):
    criteria: list[AssessmentCriterion] = Field(default_factory=list)
    passing_score: float = Field(default=0.7, ge=0.0, le=1.0)
    bonus_objectives: list[BonusObjective] = Field(default_factory=list)


class UnlockRequirement(CatalogModel):
    """Predicate gating availability: {kind: lesson|level|xp|achievement, value}."""

    kind: Literal["lesson", "level", "xp", "achievement"] = Field(
        validation_alias=AliasChoices("kind", "type")
    )
    value: str | int | float

    def describe(self) -> str:
        if self.kind == "lesson":
            return f"complete lesson {self.value}"
        if self.kind == "level":
            return f"reach level {self.value}"
        if self.kind == "xp":
            return f"earn {self.value} XP"
        return f"unlock achievement {self.value}"


class LearningObjective(CatalogModel):
    id: str
    description: str


class Lesson(CatalogModel):
    """The atomic instructional unit: theory, practice and assessment."""

    id: str
    skill_tree_id: str = ""
    title: str
    description: str = ""
    order: int
    difficulty: int = Field(default=1, ge=1, le=5)
    duration_minutes: int = 10
    prerequisites: list[str] = Field(default_factory=list)
    unlock_requirements: list[UnlockRequirement] = Field(default_factory=list)
    objectives: list[LearningObjective] = Field(default_factory=list)
    theory: TheoryContent = Field(default_factory=TheoryContent)
    practice: PracticeContent = Field(default_factory=PracticeContent)
    assessment: Assessment = Field(default_factory=Assessment)
    reward_xp: int = Field(default=100, ge=0)
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_criteria_instructions(self) -> Lesson:
        total = len(self.practice.instructions)
        for criterion in self.assessment.criteria:
            for index in criterion.instructions or []:
                if not 0 <= index < total:
                    raise ValueError(
                        f"criterion {criterion.id} replays instruction {index}, "
                        f"but lesson {self.id} has {total} instructions"
                    )
        return self

    @property
    def required_lesson_ids(self) -> list[str]:
        """Prerequisites plus lesson-kind unlock requirements, deduplicated in order."""
        ids = list(self.prerequisites)
        for requirement in self.unlock_requirements:
            if requirement.kind == "lesson" and str(requirement.value) not in ids:
                ids.append(str(requirement.value))
        return ids

    def asset_urls(self) -> list[str]:
        """Image/video theory assets plus the practice reference image."""
        urls = [
            segment.asset_url
            for segment in self.theory.segments
            if segment.type in ("image", "video") and segment.asset_url
        ]
        if self.practice.reference_image:
            urls.append(self.practice.reference_image)
        return urls


class SkillTree(CatalogModel):
    """Ordered collection of lessons sharing a topic."""

    id: str
    name: str
    description: str = ""
    category: SkillCategory = SkillCategory.FUNDAMENTALS
    lessons: list[Lesson] = Field(default_factory=list)
    total_xp: int = 0

    @model_validator(mode="before")
    @classmethod
    def _attach_lessons(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        tree_id = data.get("id", "")
        lessons = []
        for lesson in data.get("lessons") or []:
            if isinstance(lesson, Lesson):
                lesson = lesson.model_copy(update={"skill_tree_id": tree_id})
            else:
                lesson = {**lesson, "skill_tree_id": tree_id}
            lessons.append(lesson)
        data["lessons"] = lessons
        return data

    @model_validator(mode="after")
    def _unique_lesson_order(self) -> SkillTree:
        seen: dict[int, str] = {}
        for lesson in self.lessons:
            if lesson.order in seen:
                raise ValueError(
                    f"lessons {seen[lesson.order]} and {lesson.id} share order {lesson.order} in tree {self.id}"
                )
            seen[lesson.order] = lesson.id
        return self

    @model_validator(mode="after")
    def _default_total_xp(self) -> SkillTree:
        if not self.total_xp:
            object.__setattr__(self, "total_xp", sum(lesson.reward_xp for lesson in self.lessons))
        return self

    def completion_percentage(self, completed_ids: set[str] | list[str]) -> float:
        """Share of this tree's lessons in completed_ids, in [0, 1]."""
        if not self.lessons:
            return 0.0
        completed = set(completed_ids)
        done = sum(1 for lesson in self.lessons if lesson.id in completed)
        return done / len(self.lessons)
