"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def cli(tmp_path):
    """Run 'python -m linework.cli' against an isolated data directory."""
    env = {
        **os.environ,
        "LINEWORK_DATA_DIR": str(tmp_path),
        "LINEWORK_STORAGE_BACKEND": "json",
        "LINEWORK_LEARNER_ID": "smoke",
        "COLUMNS": "200",
        "PYTHONIOENCODING": "utf-8",
    }
    env.pop("LINEWORK_CATALOG_PATH", None)

    def run(command: str, timeout: int = 60) -> tuple[int, str, str]:
        result = subprocess.run(
            [sys.executable, "-m", "linework.cli", *command.split()],
            cwd=PROJECT_ROOT,
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
        )
        return result.returncode, result.stdout, result.stderr

    return run


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli):
        """Main help should display without errors."""
        code, stdout, stderr = cli("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "linework" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize(
        "command",
        ["trees", "lessons", "path", "recommend", "progress", "set-goal", "reset-daily", "check-catalog"],
    )
    def test_command_help(self, cli, command):
        code, stdout, stderr = cli(f"{command} --help")
        assert code == 0, f"{command} help failed: {stderr}"
        assert "Usage" in stdout


class TestCurriculumCommands:
    """Browse the bundled catalog."""

    def test_trees(self, cli):
        code, stdout, stderr = cli("trees")
        assert code == 0, stderr
        assert "drawing-fundamentals" in stdout
        assert "color-theory" in stdout

    def test_lessons_show_lock_status(self, cli):
        code, stdout, stderr = cli("lessons --tree drawing-fundamentals")
        assert code == 0, stderr
        assert "available" in stdout
        assert "locked" in stdout

    def test_lessons_unknown_tree(self, cli):
        code, stdout, _ = cli("lessons --tree nope")
        assert code == 1
        assert "not found" in stdout

    def test_path(self, cli):
        code, stdout, stderr = cli("path lesson-light-shadow")
        assert code == 0, stderr
        assert stdout.index("lesson-lines-shapes") < stdout.index("lesson-perspective-basics")

    def test_recommend_fresh_learner(self, cli):
        code, stdout, stderr = cli("recommend --count 3")
        assert code == 0, stderr
        assert "lesson-lines-shapes" in stdout


class TestProgressCommands:
    """Progress commands persist to the JSON store."""

    def test_progress_for_new_learner(self, cli):
        code, stdout, stderr = cli("progress")
        assert code == 0, stderr
        assert "Level 1" in stdout
        assert "0/7" in stdout

    def test_set_goal_is_clamped_and_persisted(self, cli):
        code, stdout, stderr = cli("set-goal 1000")
        assert code == 0, stderr
        assert "clamped to 500" in stdout

        code, stdout, _ = cli("progress")
        assert "0/500 XP" in stdout

    def test_reset_daily(self, cli):
        code, stdout, stderr = cli("reset-daily")
        assert code == 0, stderr
        assert "reset" in stdout


class TestCheckCatalog:
    """Catalog validation command."""

    def test_bundled_catalog_is_valid(self, cli):
        code, stdout, stderr = cli("check-catalog")
        assert code == 0, stderr
        assert "2 trees, 7 lessons" in stdout

    def test_unknown_rule_type_fails(self, cli, tmp_path):
        catalog = tmp_path / "catalog.yaml"
        catalog.write_text(
            """
skill_trees:
  - id: t
    name: T
    lessons:
      - id: a
        title: A
        order: 1
        practice:
          instructions:
            - {step: 1, text: Sparkle, validation: {type: sparkle}}
""",
            encoding="utf-8",
        )
        code, stdout, _ = cli(f"check-catalog {catalog}")
        assert code == 1
        assert "sparkle" in stdout

    def test_cyclic_catalog_fails(self, cli, tmp_path):
        catalog = tmp_path / "cycle.yaml"
        catalog.write_text(
            """
skill_trees:
  - id: t
    name: T
    lessons:
      - {id: a, title: A, order: 1, prerequisites: [b]}
      - {id: b, title: B, order: 2, prerequisites: [a]}
""",
            encoding="utf-8",
        )
        code, stdout, _ = cli(f"check-catalog {catalog}")
        assert code == 1
        assert "cycle" in stdout.lower()
