"""
Typer CLI for the mastery-loop engine.

Commands:
    mastery run QUESTIONS_FILE --user U     - Drive a mastery loop in the terminal
    mastery profile --user U                - Show the user's weakness profile
    mastery weak --user U --limit N         - List the weakest topics
    mastery compose --user U --subject S    - Plan a weak-topic-biased quiz
    mastery init-db                         - Create the profile tables

Usage:
    mastery --help
    mastery run physics_quiz.json --user alice --subject Physics
    mastery compose --user alice --subject Physics --count 10 --kind mixed
"""

from __future__ import annotations

import asyncio
import json
import string
import sys
from pathlib import Path
from typing import Sequence

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import get_settings
from mastery_loop.adaptive import MasteryLoopController, Mastered, Quiz, Remediation
from mastery_loop.core.errors import GenerationError, InvalidSubmission
from mastery_loop.core.models import GradingMode, Question, QuestionKind, SessionResult, Trend
from mastery_loop.generation import ChatCompletionClient, RemediationContentService
from mastery_loop.learning import SqlProfileBackend, WeaknessProfileStore
from mastery_loop.quiz import QuizComposer, QuizRequest
from mastery_loop.study.scoring import PASS_THRESHOLD

app = typer.Typer(
    help="mastery: adaptive quiz -> remediation -> retry loop with weakness tracking",
    no_args_is_help=True,
)

console = Console()

LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"

TREND_STYLES = {
    Trend.IMPROVING: "[green]improving[/green]",
    Trend.DECLINING: "[red]declining[/red]",
    Trend.STABLE: "[dim]stable[/dim]",
}


def _configure_logging(verbose: bool) -> None:
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else settings.log_level, format=LOG_FORMAT)
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Adaptive mastery loop and weakness tracking."""
    _configure_logging(verbose)


# ========================================
# Helpers
# ========================================


def _open_profile(user: str, database_url: str | None) -> WeaknessProfileStore:
    from mastery_loop.db.database import create_db_engine, get_engine

    engine = create_db_engine(database_url) if database_url else get_engine()
    return WeaknessProfileStore.from_settings(user, backend=SqlProfileBackend(engine))


def _build_content() -> tuple[RemediationContentService, ChatCompletionClient | None]:
    settings = get_settings()
    client = ChatCompletionClient.from_settings() if settings.has_generator_configured() else None
    if client is None:
        logger.info("No generator API key configured; remediation uses offline content")
    content = RemediationContentService(client, flashcard_count=settings.remediation_flashcard_count)
    return content, client


def _load_questions(path: Path) -> tuple[list[Question], str]:
    """Read a question file: a JSON array, or {"subject": ..., "questions": [...]}."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        rprint(f"[red]✗[/red] Cannot read {path}: {e}")
        raise typer.Exit(code=1)

    subject = ""
    if isinstance(data, dict):
        subject = data.get("subject") or ""
        data = data.get("questions") or []
    if not isinstance(data, list) or not data:
        rprint(f"[red]✗[/red] {path} contains no questions")
        raise typer.Exit(code=1)

    try:
        questions = [Question.from_dict(item, i) for i, item in enumerate(data)]
    except (TypeError, ValueError, AttributeError) as e:
        rprint(f"[red]✗[/red] Invalid question in {path}: {e}")
        raise typer.Exit(code=1)
    return questions, subject


def _show_result(result: SessionResult, attempt: int) -> None:
    table = Table(title=f"Attempt {attempt}: {result.score_percent}%", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Topic", style="cyan")
    table.add_column("Your answer", max_width=40)
    table.add_column("Correct answer", max_width=40, style="dim")
    table.add_column("", justify="center")

    for n, item in enumerate(result.items, 1):
        mark = "[green]✓[/green]" if item.is_correct else "[red]✗[/red]"
        table.add_row(str(n), item.topic, item.user_answer or "-", item.correct_answer, mark)
    console.print(table)

    if result.passed:
        rprint(f"[green]Passed[/green] (pass mark {PASS_THRESHOLD}%)")
    else:
        rprint(f"[red]Below {PASS_THRESHOLD}%[/red]; weak topics: [yellow]{', '.join(result.weak_topics)}[/yellow]")


# ========================================
# Loop driver
# ========================================


def option_label(index: int) -> str:
    """Spreadsheet-style label for a 0-based option index: A..Z, AA, AB, ..."""
    label = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, len(string.ascii_uppercase))
        label = string.ascii_uppercase[rem] + label
    return label


def option_choices(options: Sequence[str]) -> dict[str, str]:
    """Map answer labels to MCQ options; every option gets a label."""
    return {option_label(i): option for i, option in enumerate(options)}


def _ask_questions(controller: MasteryLoopController, state: Quiz) -> None:
    console.rule(f"Attempt {state.attempt}")
    for n, question in enumerate(state.questions, 1):
        console.print(f"\n[bold]{n}. {question.text}[/bold] [dim]({question.topic})[/dim]")
        if question.kind == QuestionKind.MCQ:
            choices = option_choices(question.options)
            for letter, option in choices.items():
                console.print(f"   {letter}) {option}")
            raw = Prompt.ask("Answer", console=console).strip()
            answer = choices.get(raw.upper(), raw)
        else:
            answer = Prompt.ask("Answer", console=console)
        controller.submit_answer(question.id, answer)


async def _wait_out_dwell(controller: MasteryLoopController) -> None:
    state = controller.state
    if state.seconds_remaining <= 0:
        return
    with console.status(f"Review for at least {state.seconds_remaining:.0f}s...") as status:
        while controller.state.seconds_remaining > 0:
            remaining = controller.state.seconds_remaining
            status.update(f"Review for {remaining:.0f}s more...")
            await asyncio.sleep(min(1.0, remaining))


async def _settle_or_retry(controller: MasteryLoopController) -> bool:
    """Wait for generator work; offer retries on transport failure. False = give up."""
    await controller.settle()
    while controller.pending_error is not None:
        rprint(f"[red]✗[/red] Content generator failed: {controller.pending_error}")
        if not Confirm.ask("Retry?", default=True, console=console):
            return False
        await controller.retry_generation()
    return True


async def _run_remediation(controller: MasteryLoopController) -> bool:
    if not await _settle_or_retry(controller):
        return False
    state = controller.state
    console.print(Panel(Markdown(state.notes or ""), title="Remediation notes", border_style="yellow"))
    await _wait_out_dwell(controller)
    await controller.advance_remediation()

    if not await _settle_or_retry(controller):
        return False
    cards = controller.state.flashcards or ()
    table = Table(title="Flashcards", show_header=True, show_lines=True)
    table.add_column("Question", style="cyan", max_width=50)
    table.add_column("Answer", max_width=50)
    for card in cards:
        table.add_row(card.question, card.answer)
    console.print(table)
    await _wait_out_dwell(controller)
    await controller.advance_remediation()
    return True


async def _run_loop(
    questions: list[Question],
    profile: WeaknessProfileStore,
    subject: str,
    grading: GradingMode,
) -> Mastered | None:
    content, client = _build_content()
    controller = MasteryLoopController.from_settings(
        profile, content=content, subject=subject, grading=grading
    )
    try:
        controller.start(questions)
        while True:
            state = controller.state
            if isinstance(state, Mastered):
                break
            if isinstance(state, Quiz):
                _ask_questions(controller, state)
                try:
                    await controller.submit_quiz()
                except InvalidSubmission as e:
                    rprint(f"[yellow]Answer every question first:[/yellow] {', '.join(e.unanswered)}")
                    continue
                _show_result(controller.results[-1], len(controller.results))
            elif isinstance(state, Remediation):
                if not await _run_remediation(controller):
                    controller.abandon()
                    return None

        report = await controller.final_report()
        mastered = controller.state
        console.print(Panel(report.overall_analysis or "Mastered.", title="Assessment", border_style="green"))
        if report.strengths:
            rprint(f"[green]Strengths:[/green] {', '.join(report.strengths)}")
        if report.weaknesses:
            rprint(f"[yellow]To revisit:[/yellow] {', '.join(report.weaknesses)}")
        return mastered
    finally:
        if client is not None:
            await client.close()


# ========================================
# Commands
# ========================================


@app.command("run")
def run_loop(
    questions_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON question file"),
    user: str = typer.Option(..., "--user", "-u", help="Profile owner"),
    subject: str = typer.Option("", "--subject", "-s", help="Subject for questions that carry none"),
    grading: GradingMode = typer.Option(GradingMode.BINARY, "--grading", help="Score reduction"),
    db: str | None = typer.Option(None, "--db", help="Database URL (defaults to settings)"),
) -> None:
    """Quiz until mastered; failed attempts go through timed remediation."""
    questions, file_subject = _load_questions(questions_file)
    profile = _open_profile(user, db)

    try:
        mastered = asyncio.run(_run_loop(questions, profile, subject or file_subject, grading))
    except GenerationError as e:
        logger.error(f"Generation failed: {e}")
        raise typer.Exit(code=1)

    if mastered is None:
        rprint("[yellow]Loop abandoned; profile unchanged.[/yellow]")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] Mastered after {mastered.attempts} attempt(s)")


@app.command("profile")
def show_profile(
    user: str = typer.Option(..., "--user", "-u", help="Profile owner"),
    db: str | None = typer.Option(None, "--db", help="Database URL (defaults to settings)"),
) -> None:
    """Show every topic in the user's weakness profile, worst first."""
    records = _open_profile(user, db).snapshot()
    if not records:
        rprint(f"[dim]No topics recorded for {user} yet.[/dim]")
        return

    table = Table(title=f"Weakness profile: {user}", show_header=True)
    table.add_column("Topic", style="cyan")
    table.add_column("Subject", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Correct", justify="right")
    table.add_column("Trend")

    threshold = get_settings().weak_score_threshold
    for record in records:
        style = "red" if record.score < threshold else "green"
        table.add_row(
            record.topic,
            record.subject or "-",
            f"[{style}]{record.score}[/{style}]",
            str(record.total_attempts),
            str(record.correct_attempts),
            TREND_STYLES[record.recent_trend],
        )
    console.print(table)


@app.command("weak")
def show_weak(
    user: str = typer.Option(..., "--user", "-u", help="Profile owner"),
    limit: int = typer.Option(5, "--limit", "-n", help="Maximum topics"),
    below: int | None = typer.Option(None, "--below", help="Score cutoff (defaults to settings)"),
    subject: str | None = typer.Option(None, "--subject", "-s", help="Only topics of this subject"),
    db: str | None = typer.Option(None, "--db", help="Database URL (defaults to settings)"),
) -> None:
    """List the user's weakest topics."""
    topics = _open_profile(user, db).weak_topics(limit, score_below=below, subject=subject)
    if not topics:
        rprint("[green]No weak topics.[/green]")
        return
    for n, topic in enumerate(topics, 1):
        rprint(f"  {n}. [yellow]{topic}[/yellow]")


@app.command("compose")
def compose_quiz(
    user: str = typer.Option(..., "--user", "-u", help="Profile owner"),
    subject: str = typer.Option(..., "--subject", "-s", help="Quiz subject"),
    count: int = typer.Option(10, "--count", "-c", min=1, help="Number of questions"),
    kind: str = typer.Option("mcq", "--kind", "-k", help="mcq, short_answer or mixed"),
    difficulty: str = typer.Option("medium", "--difficulty", "-d", help="easy, medium, hard or adaptive"),
    no_weak: bool = typer.Option(False, "--no-weak", help="Do not bias toward weak topics"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Generate the quiz and write it to this JSON file"
    ),
    db: str | None = typer.Option(None, "--db", help="Database URL (defaults to settings)"),
) -> None:
    """Plan a quiz; with --output, also generate it."""
    try:
        request = QuizRequest(
            subject=subject,
            count=count,
            kind=kind,
            difficulty=difficulty,
            target_weak_topics=not no_weak,
        )
    except ValueError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    composer = QuizComposer.from_settings(_open_profile(user, db))
    plan = composer.compose(request)

    table = Table(title=f"{subject}: {count} question(s), {plan.weak_slot_count} on weak topics")
    table.add_column("Slot", justify="right", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Topic")
    for slot in plan.slots:
        table.add_row(f"q{slot.position}", slot.kind.value, f"[yellow]{slot.topic}[/yellow]" if slot.topic else "-")
    console.print(table)

    if output is None:
        return

    settings = get_settings()
    if not settings.has_generator_configured():
        rprint("[red]✗[/red] Set GENERATOR_API_KEY to generate questions")
        raise typer.Exit(code=1)

    async def _generate() -> list[Question]:
        async with ChatCompletionClient.from_settings() as client:
            return await composer.generate_questions(client, plan)

    try:
        questions = asyncio.run(_generate())
    except GenerationError as e:
        logger.error(f"Quiz generation failed: {e}")
        raise typer.Exit(code=1)

    payload = {
        "subject": subject,
        "questions": [
            {
                "id": q.id,
                "type": q.kind.value,
                "question": q.text,
                "options": list(q.options),
                "correctAnswer": q.correct_answer,
                "explanation": q.explanation,
                "difficulty": q.difficulty.value,
                "topic": q.topic,
                "chapter": q.chapter,
                "marks": q.marks,
            }
            for q in questions
        ],
    }
    output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    rprint(f"[green]✓[/green] Wrote {len(questions)} question(s) to {output}")


@app.command("init-db")
def init_database(
    db: str | None = typer.Option(None, "--db", help="Database URL (defaults to settings)"),
) -> None:
    """
    Create the weakness profile tables.

    Safe to run multiple times (idempotent).
    """
    from mastery_loop.db.database import create_db_engine, get_engine, init_db

    init_db(create_db_engine(db) if db else get_engine())
    rprint("[green]✓[/green] Database initialized!")


if __name__ == "__main__":
    app()
