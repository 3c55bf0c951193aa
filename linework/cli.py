"""
Linework CLI - browse the curriculum and inspect learner progress.

Usage:
    linework trees                     # Skill trees in the catalog
    linework lessons --tree ID         # Lessons with lock status
    linework path LESSON_ID            # Prerequisite chain for a lesson
    linework recommend --count 3       # What to study next
    linework progress                  # XP, level, streak, daily goal
    linework check-catalog [PATH]      # Validate a YAML catalog
    linework set-goal XP               # Set the daily XP goal
    linework reset-daily               # Start a new day's goal tracking
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from linework.config import configure_logging, get_settings
from linework.curriculum import CurriculumGraph, load_catalog
from linework.errors import CatalogError, GraphError, UnknownRuleType
from linework.progress import ProgressLedger, xp_for_level
from linework.storage import create_storage
from linework.validation import resolve_rule_type

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="linework",
    help="Linework - freehand drawing curriculum engine",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

LearnerOption = Annotated[
    str | None, typer.Option("--learner", "-l", help="Learner id (defaults to LINEWORK_LEARNER_ID)")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Linework curriculum engine."""
    settings = get_settings()
    if verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(settings)


def _graph(path: Path | None = None) -> CurriculumGraph:
    """Load the catalog or exit with the error shown."""
    try:
        return load_catalog(path or get_settings().catalog_path)
    except (CatalogError, GraphError) as e:
        console.print(f"[red]Catalog error: {escape(str(e))}[/]")
        raise typer.Exit(1) from e


def _ledger(graph: CurriculumGraph) -> ProgressLedger:
    settings = get_settings()
    return ProgressLedger(graph, create_storage(settings), settings=settings)


# =============================================================================
# Curriculum Commands
# =============================================================================


@app.command()
def trees() -> None:
    """List skill trees in priority order."""
    graph = _graph()
    table = Table(title="Skill Trees")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Category", style="magenta")
    table.add_column("Lessons", justify="right")
    table.add_column("XP", justify="right", style="green")
    for tree in graph.trees():
        table.add_row(tree.id, tree.name, tree.category.value, str(len(tree.lessons)), str(tree.total_xp))
    console.print(table)


@app.command()
def lessons(
    tree: Annotated[str | None, typer.Option("--tree", "-t", help="Only this skill tree")] = None,
    learner: LearnerOption = None,
) -> None:
    """List lessons with their lock status for a learner."""
    graph = _graph()
    ledger = _ledger(graph)
    learner_id = learner or get_settings().learner_id

    async def _collect():
        return await ledger.completed_lessons(learner_id), await ledger.learner_facts(learner_id)

    completed, facts = asyncio.run(_collect())
    try:
        pool = graph.lessons(tree)
    except GraphError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1) from e

    table = Table(title=f"Lessons{f' in {tree}' if tree else ''}")
    table.add_column("Order", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Difficulty", justify="center")
    table.add_column("XP", justify="right", style="green")
    table.add_column("Status")
    for lesson in pool:
        if lesson.id in completed:
            status = "[green]✓ completed[/]"
        elif graph.is_unlocked(lesson, completed, facts):
            status = "[cyan]available[/]"
        else:
            status = "[dim]locked: " + ", ".join(graph.blocking_requirements(lesson, completed, facts)) + "[/]"
        table.add_row(
            str(lesson.order), lesson.id, lesson.title, "★" * lesson.difficulty, str(lesson.reward_xp), status
        )
    console.print(table)


@app.command()
def path(lesson_id: Annotated[str, typer.Argument(help="Lesson to trace")]) -> None:
    """Show every lesson that must be completed before LESSON_ID."""
    graph = _graph()
    try:
        chain = graph.prerequisite_chain(lesson_id)
        target = graph.get_lesson(lesson_id)
    except GraphError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1) from e

    if not chain:
        console.print(f"[green]{target.title}[/] has no prerequisites.")
        return
    for step, lesson in enumerate(chain, start=1):
        console.print(f"  {step}. [cyan]{lesson.id}[/] {lesson.title}")
    console.print(f"  → [bold]{target.id}[/] {target.title}")


@app.command()
def recommend(
    count: Annotated[int, typer.Option("--count", "-n", help="Number of lessons")] = 3,
    learner: LearnerOption = None,
) -> None:
    """Recommend the next lessons to study."""
    graph = _graph()
    ledger = _ledger(graph)
    picks = asyncio.run(ledger.recommend(count, learner or get_settings().learner_id))
    if not picks:
        console.print("[green]Curriculum complete. Nothing left to recommend! 🎉[/]")
        return
    for lesson in picks:
        console.print(f"  [cyan]{lesson.id}[/] {lesson.title} [dim]({lesson.duration_minutes} min, {lesson.reward_xp} XP)[/]")


# =============================================================================
# Progress Commands
# =============================================================================


@app.command()
def progress(learner: LearnerOption = None) -> None:
    """Show XP, level, streak and daily goal."""
    graph = _graph()
    ledger = _ledger(graph)
    summary = asyncio.run(ledger.summary(learner or get_settings().learner_id))

    console.print(
        Panel(
            f"[bold cyan]Level {summary.level}[/]  {summary.total_xp} XP "
            f"[dim](next level at {xp_for_level(summary.level + 1)} XP)[/]\n"
            f"Streak: {summary.current_streak} days (longest {summary.longest_streak})\n"
            f"Daily goal: {summary.daily_progress}/{summary.daily_goal} XP",
            title=f"Progress: {summary.learner_id}",
            border_style="cyan",
        )
    )

    table = Table(title="Curriculum")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Lessons completed", f"{summary.completed_lessons}/{summary.total_lessons}")
    table.add_row("Overall completion", f"{summary.completion_percentage:.0%}")
    table.add_row("Trees in progress", ", ".join(summary.trees_in_progress) or "-")
    table.add_row("Achievements", ", ".join(summary.achievements) or "-")
    table.add_row("Recommended next", summary.recommended_next or "-")
    console.print(table)


@app.command("set-goal")
def set_goal(
    xp: Annotated[int, typer.Argument(help="Daily XP goal")],
    learner: LearnerOption = None,
) -> None:
    """Set the daily XP goal (clamped to the configured range)."""
    graph = _graph()
    ledger = _ledger(graph)
    goal = asyncio.run(ledger.set_daily_goal(xp, learner or get_settings().learner_id))
    if goal != xp:
        console.print(f"[yellow]Goal clamped to {goal} XP[/]")
    console.print(f"[green]Daily goal set to {goal} XP[/]")


@app.command("reset-daily")
def reset_daily(learner: LearnerOption = None) -> None:
    """Reset today's goal progress."""
    graph = _graph()
    ledger = _ledger(graph)
    asyncio.run(ledger.reset_daily_progress(learner or get_settings().learner_id))
    console.print("[green]Daily progress reset[/]")


# =============================================================================
# Content Pipeline
# =============================================================================


@app.command("check-catalog")
def check_catalog(
    catalog: Annotated[Path | None, typer.Argument(help="Catalog YAML (bundled catalog if omitted)")] = None,
) -> None:
    """Validate a catalog: schema, rule types, dangling and cyclic prerequisites."""
    graph = _graph(catalog)
    problems = []
    for lesson in graph.lessons():
        for index, instruction in enumerate(lesson.practice.instructions):
            if instruction.validation is None:
                continue
            try:
                resolve_rule_type(instruction.validation.type)
            except UnknownRuleType as e:
                problems.append(f"{lesson.id} instruction {index}: {e}")

    if problems:
        for problem in problems:
            console.print(f"[red]✗ {escape(problem)}[/]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Catalog OK:[/] {len(graph.trees())} trees, {len(graph)} lessons")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
