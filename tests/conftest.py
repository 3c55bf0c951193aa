"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from linework.config import Settings  # noqa: E402
from linework.curriculum import CurriculumGraph, SkillTree  # noqa: E402
from linework.errors import PersistenceError  # noqa: E402
from linework.events import MemoryEventSink  # noqa: E402
from linework.storage import MemoryStorage  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine components wired together)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# =============================================================================
# Time, settings and collaborators
# =============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, days: int = 0) -> datetime:
        self.now += timedelta(seconds=seconds, days=days)
        return self.now


class FailingStorage(MemoryStorage):
    """Memory storage whose writes fail until `fail_writes` is cleared."""

    def __init__(self):
        super().__init__()
        self.fail_writes = True
        self.write_attempts = 0

    async def set(self, key, value):
        self.write_attempts += 1
        if self.fail_writes:
            raise PersistenceError(key, "disk full")
        await super().set(key, value)


class FailingAssetLoader:
    """Asset loader that fails every preload and records the URLs it was asked for."""

    def __init__(self):
        self.requested = []

    async def preload(self, url):
        self.requested.append(url)
        raise ConnectionError(f"cannot reach {url}")


@pytest.fixture
def clock():
    """Fake clock starting Monday 2026-03-02 09:00 UTC."""
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment's data directory."""
    return Settings(storage_backend="memory", data_dir=tmp_path, learner_id="learner-1")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def failing_storage():
    return FailingStorage()


@pytest.fixture
def failing_assets():
    return FailingAssetLoader()


@pytest.fixture
def sink():
    return MemoryEventSink()


# =============================================================================
# Catalog builders
# =============================================================================


def make_lesson(lesson_id, order, **fields):
    """Plain-dict lesson with sensible defaults; fields override anything."""
    lesson = {
        "id": lesson_id,
        "title": lesson_id.replace("-", " ").title(),
        "order": order,
        "theory": {"segments": [{"type": "text", "content": "Intro", "duration": 30}]},
        "practice": {"instructions": [{"step": 1, "text": "Draw anything"}]},
        "reward_xp": 100,
    }
    lesson.update(fields)
    return lesson


def make_tree(tree_id, lessons, **fields):
    return SkillTree.model_validate({"id": tree_id, "name": tree_id.title(), "lessons": lessons, **fields})


@pytest.fixture
def lesson_factory():
    return make_lesson


@pytest.fixture
def tree_factory():
    return make_tree


@pytest.fixture
def basics_tree():
    """
    L1 -> L2 -> L3 chain, plus L4 gated by level 2.

    L1 has a line-count step, an unvalidated step and a circle step.
    """
    l1 = make_lesson(
        "L1",
        1,
        theory={
            "segments": [
                {"type": "text", "content": "Lines", "duration": 30},
                {"type": "image", "content": "Demo", "asset_url": "images/demo.png", "duration": 20},
            ]
        },
        practice={
            "instructions": [
                {
                    "step": 1,
                    "text": "Draw five lines",
                    "validation": {"type": "line_count", "params": {"min_lines": 5}, "threshold": 0.9},
                },
                {"step": 2, "text": "Look at the reference"},
                {
                    "step": 3,
                    "text": "Draw a circle",
                    "validation": {"type": "shape_accuracy", "params": {"target_shape": "circle"}},
                },
            ],
            "hints": [
                {"id": "h-lines", "trigger": "instruction_0_fail", "content": "Use your shoulder", "type": "correction"},
                {"id": "h-slow", "trigger": "instruction_2_timeout", "content": "Trace it in the air first"},
            ],
            "reference_image": "images/reference.png",
        },
        assessment={
            "passing_score": 0.7,
            "criteria": [
                {"id": "lines", "description": "Straight lines", "weight": 1, "instructions": [0]},
                {"id": "circle", "description": "Round circle", "weight": 1, "instructions": [2]},
            ],
        },
        objectives=[{"id": "obj-1", "description": "Draw lines"}],
    )
    l2 = make_lesson("L2", 2, prerequisites=["L1"])
    l3 = make_lesson("L3", 3, prerequisites=["L2"])
    l4 = make_lesson("L4", 4, unlock_requirements=[{"kind": "level", "value": 2}])
    return make_tree("basics", [l1, l2, l3, l4])


@pytest.fixture
def extra_tree():
    """Second tree whose first lesson depends on L1 from the basics tree."""
    return make_tree(
        "extra",
        [
            make_lesson("X1", 1, unlock_requirements=[{"type": "lesson", "value": "L1"}]),
            make_lesson("X2", 2, prerequisites=["X1"], unlock_requirements=[{"kind": "achievement", "value": "perfect_score"}]),
        ],
        category="techniques",
    )


@pytest.fixture
def graph(basics_tree, extra_tree):
    return CurriculumGraph([basics_tree, extra_tree])


# =============================================================================
# Stroke builders
# =============================================================================


class Strokes:
    """Builders for plain-dict stroke data as the canvas would send it."""

    @staticmethod
    def line(x0, y0, x1, y1, samples=12, **fields):
        points = [
            {"x": x0 + (x1 - x0) * i / (samples - 1), "y": y0 + (y1 - y0) * i / (samples - 1)}
            for i in range(samples)
        ]
        return {"points": points, **fields}

    @staticmethod
    def circle(cx, cy, radius, samples=48, **fields):
        points = [
            {
                "x": cx + radius * math.cos(2 * math.pi * i / samples),
                "y": cy + radius * math.sin(2 * math.pi * i / samples),
            }
            for i in range(samples + 1)
        ]
        return {"points": points, **fields}

    @staticmethod
    def zigzag(x0, y0, width, height, teeth=6, **fields):
        points = []
        for i in range(teeth * 2 + 1):
            points.append({"x": x0 + width * i / (teeth * 2), "y": y0 + (height if i % 2 else 0)})
        return {"points": points, **fields}

    @staticmethod
    def polygon(corners, per_side=10, **fields):
        points = []
        closed = list(corners) + [corners[0]]
        for (x0, y0), (x1, y1) in zip(closed, closed[1:]):
            for i in range(per_side):
                t = i / per_side
                points.append({"x": x0 + (x1 - x0) * t, "y": y0 + (y1 - y0) * t})
        points.append({"x": corners[0][0], "y": corners[0][1]})
        return {"points": points, **fields}

    def parallel_lines(self, count, length=200, spacing=20):
        return {"strokes": [self.line(0, i * spacing, length, i * spacing) for i in range(count)]}


@pytest.fixture
def strokes():
    return Strokes()
