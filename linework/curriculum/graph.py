"""
Curriculum Graph.

Static lesson catalog plus prerequisite and unlock queries:
- register(): validates a skill tree (no dangling edges, no cycles)
- is_unlocked(): prerequisites + unlock predicates against learner facts
- available_lessons() / recommend_next(): deterministic ordering by
  tree priority, then lesson order, then lesson id
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx
from loguru import logger

from linework.curriculum.models import Lesson, SkillTree, UnlockRequirement
from linework.errors import (
    CyclicPrerequisite,
    DanglingPrerequisite,
    DuplicateLesson,
    GraphError,
    NotFound,
)


@dataclass(frozen=True)
class LearnerFacts:
    """What unlock predicates are evaluated against."""

    level: int = 1
    xp: int = 0
    achievements: frozenset[str] = field(default_factory=frozenset)


def _lesson_key(lesson: Lesson) -> tuple[int, str]:
    return (lesson.order, lesson.id)


class CurriculumGraph:
    """
    Registry of skill trees with a prerequisite DAG over their lessons.

    Edges run from prerequisite to dependent lesson. Trees keep the priority
    of their registration order.
    """

    def __init__(self, trees: Iterable[SkillTree] = ()):
        self._trees: dict[str, SkillTree] = {}
        self._lessons: dict[str, Lesson] = {}
        self._tree_of: dict[str, str] = {}
        self._dag = nx.DiGraph()
        for tree in trees:
            self.register(tree)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, tree: SkillTree) -> None:
        """
        Validate and add a skill tree.

        Raises:
            DuplicateLesson: a lesson id is already registered
            DanglingPrerequisite: a prerequisite names an unknown lesson
            CyclicPrerequisite: the new edges would close a cycle
        """
        if tree.id in self._trees:
            raise GraphError(f"Skill tree {tree.id} is already registered")

        incoming: dict[str, Lesson] = {}
        for lesson in tree.lessons:
            if lesson.id in self._lessons or lesson.id in incoming:
                raise DuplicateLesson(lesson.id)
            incoming[lesson.id] = lesson

        known = self._lessons.keys() | incoming.keys()
        candidate = self._dag.copy()
        for lesson in tree.lessons:
            candidate.add_node(lesson.id)
            for required_id in lesson.required_lesson_ids:
                if required_id not in known:
                    raise DanglingPrerequisite(lesson.id, required_id)
                candidate.add_edge(required_id, lesson.id)

        if not nx.is_directed_acyclic_graph(candidate):
            edges = nx.find_cycle(candidate)
            cycle = [source for source, _ in edges] + [edges[0][0]]
            raise CyclicPrerequisite(cycle)

        self._dag = candidate
        self._trees[tree.id] = tree
        self._lessons.update(incoming)
        for lesson_id in incoming:
            self._tree_of[lesson_id] = tree.id
        logger.debug(f"Registered skill tree {tree.id} with {len(tree.lessons)} lessons")

    # =========================================================================
    # Lookup
    # =========================================================================

    def trees(self) -> list[SkillTree]:
        """Skill trees in priority order."""
        return list(self._trees.values())

    def get_tree(self, tree_id: str) -> SkillTree:
        try:
            return self._trees[tree_id]
        except KeyError:
            raise NotFound("skill tree", tree_id) from None

    def get_lesson(self, lesson_id: str) -> Lesson:
        try:
            return self._lessons[lesson_id]
        except KeyError:
            raise NotFound("lesson", lesson_id) from None

    def tree_of(self, lesson_id: str) -> SkillTree:
        self.get_lesson(lesson_id)
        return self._trees[self._tree_of[lesson_id]]

    def lessons(self, tree_id: str | None = None) -> list[Lesson]:
        """All lessons (or one tree's), sorted by order then id."""
        if tree_id is not None:
            pool = self.get_tree(tree_id).lessons
        else:
            pool = list(self._lessons.values())
        return sorted(pool, key=_lesson_key)

    def __contains__(self, lesson_id: object) -> bool:
        return lesson_id in self._lessons

    def __len__(self) -> int:
        return len(self._lessons)

    # =========================================================================
    # Unlock Queries
    # =========================================================================

    @staticmethod
    def requirement_met(
        requirement: UnlockRequirement,
        completed: set[str] | frozenset[str],
        facts: LearnerFacts,
    ) -> bool:
        """Evaluate a single unlock predicate. Pure."""
        if requirement.kind == "lesson":
            return str(requirement.value) in completed
        if requirement.kind == "level":
            return facts.level >= float(requirement.value)
        if requirement.kind == "xp":
            return facts.xp >= float(requirement.value)
        return str(requirement.value) in facts.achievements

    def is_unlocked(
        self,
        lesson: Lesson | str,
        completed: Iterable[str],
        facts: LearnerFacts | None = None,
    ) -> bool:
        """
        True iff every prerequisite is completed and every unlock predicate holds.

        Checks run in list order and stop at the first failure.
        """
        if isinstance(lesson, str):
            lesson = self.get_lesson(lesson)
        done = frozenset(completed)
        facts = facts or LearnerFacts()

        for prerequisite_id in lesson.prerequisites:
            if prerequisite_id not in done:
                return False
        for requirement in lesson.unlock_requirements:
            if not self.requirement_met(requirement, done, facts):
                return False
        return True

    def blocking_requirements(
        self,
        lesson: Lesson | str,
        completed: Iterable[str],
        facts: LearnerFacts | None = None,
    ) -> list[str]:
        """Human-readable list of everything still gating the lesson."""
        if isinstance(lesson, str):
            lesson = self.get_lesson(lesson)
        done = frozenset(completed)
        facts = facts or LearnerFacts()

        blocking = [
            f"complete lesson {prerequisite_id}"
            for prerequisite_id in lesson.prerequisites
            if prerequisite_id not in done
        ]
        for requirement in lesson.unlock_requirements:
            if not self.requirement_met(requirement, done, facts):
                description = requirement.describe()
                if description not in blocking:
                    blocking.append(description)
        return blocking

    def available_lessons(
        self,
        tree_id: str | None = None,
        completed: Iterable[str] = (),
        facts: LearnerFacts | None = None,
    ) -> list[Lesson]:
        """Unlocked lessons sorted ascending by order, ties broken by id."""
        done = frozenset(completed)
        return [
            lesson for lesson in self.lessons(tree_id) if self.is_unlocked(lesson, done, facts)
        ]

    def recommend(
        self,
        completed: Iterable[str],
        facts: LearnerFacts | None = None,
        count: int = 3,
    ) -> list[Lesson]:
        """Up to `count` available, not yet completed lessons by tree priority then order."""
        done = frozenset(completed)
        picks: list[Lesson] = []
        for tree in self._trees.values():
            for lesson in self.available_lessons(tree.id, done, facts):
                if lesson.id in done:
                    continue
                picks.append(lesson)
                if len(picks) >= count:
                    return picks
        return picks

    def recommend_next(
        self,
        completed: Iterable[str],
        facts: LearnerFacts | None = None,
    ) -> Lesson | None:
        """First available-but-not-completed lesson; None when the curriculum is exhausted."""
        picks = self.recommend(completed, facts, count=1)
        return picks[0] if picks else None

    # =========================================================================
    # Graph Views
    # =========================================================================

    def prerequisite_chain(self, lesson_id: str) -> list[Lesson]:
        """All transitive prerequisites of a lesson, each after its own prerequisites."""
        self.get_lesson(lesson_id)
        ancestors = nx.ancestors(self._dag, lesson_id)
        subgraph = self._dag.subgraph(ancestors)
        ordered = nx.lexicographical_topological_sort(
            subgraph, key=lambda node: _lesson_key(self._lessons[node])
        )
        return [self._lessons[node] for node in ordered]

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._dag)
