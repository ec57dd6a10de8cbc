"""
Quiz Grader CLI Application.

Operator tool over the JSON attempt store: score a submission, show a
student's attempt history or a quiz's statistics, and try the grading
oracle on a single answer.
"""

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from quizgrader.config import get_settings
from quizgrader.grading import GradingOracleClient
from quizgrader.logging_config import configure_logging
from quizgrader.models import Quiz, SubmissionResult
from quizgrader.scoring import (
    AttemptHistoryAggregator,
    AttemptScorer,
    ResultsAnalytics,
    SubmissionValidationError,
)
from quizgrader.storage import JsonFileRepository, StorageError

# Create Typer app
app = typer.Typer(
    name="quiz-grader",
    help="Quiz submission scoring with LLM-assisted short-answer grading",
    add_completion=False,
)

console = Console()

DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", "-d", help="Attempt store directory (default from settings)"),
]


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Log level (default from settings)"),
    ] = None,
) -> None:
    """Configure logging before any command runs."""
    configure_logging(log_level.upper() if log_level else get_settings().log_level)


@app.command()
def submit(
    quiz_file: Annotated[Path, typer.Argument(help="Path to the quiz JSON file")],
    answers_file: Annotated[Path, typer.Argument(help="Path to the answers JSON file")],
    student: Annotated[str, typer.Option("--student", "-s", help="Student identifier")],
    section: Annotated[
        Optional[str],
        typer.Option("--section", help="Section the attempt is scored under"),
    ] = None,
    data_dir: DataDirOption = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show per-question results"),
    ] = False,
) -> None:
    """
    Score a student's answers to a quiz.

    Only one attempt is scored per assignment; submitting again shows the
    stored attempt.
    """
    settings = get_settings()
    quiz = _load_quiz(quiz_file)
    answers = _load_answers(answers_file)

    try:
        repository = JsonFileRepository(data_dir or settings.data_directory)
        repository.save_quiz(quiz)
        assignment = repository.get_or_create_assignment(quiz.id, student)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Grading {quiz.question_count} questions...", total=None)
            scorer = AttemptScorer(repository, settings=settings)
            result = scorer.submit(quiz, None, assignment, answers, section_id=section)

    except SubmissionValidationError as e:
        console.print(f"[red]Invalid submission:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    except StorageError as e:
        console.print(f"[red]Submission failed, please retry:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _display_submission(result, quiz, verbose)


@app.command()
def history(
    quiz_file: Annotated[Path, typer.Argument(help="Path to the quiz JSON file")],
    student: Annotated[str, typer.Option("--student", "-s", help="Student identifier")],
    data_dir: DataDirOption = None,
) -> None:
    """Show a student's attempts on a quiz."""
    settings = get_settings()
    quiz = _load_quiz(quiz_file)

    try:
        repository = JsonFileRepository(data_dir or settings.data_directory)
        assignment = repository.find_assignment(quiz.id, student)
        attempts = (
            repository.list_attempts(quiz_id=quiz.id, assignment_id=assignment.id)
            if assignment
            else []
        )
    except StorageError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    summary = AttemptHistoryAggregator().summarize(attempts, quiz.max_attempts)

    table = Table(title=f"Attempts: {quiz.title}")
    table.add_column("#", justify="right")
    table.add_column("Submitted")
    table.add_column("Score", justify="right")
    table.add_column("Percentage", justify="right")

    for view in summary.attempts:
        table.add_row(
            str(view.attempt_number),
            view.submitted_at.strftime("%Y-%m-%d %H:%M"),
            f"{view.score}/{view.max_score}",
            f"{view.percentage}%",
        )

    console.print(table)
    console.print(
        f"\n[bold]Best:[/bold] {summary.best_score} ({summary.best_percentage}%)   "
        f"[bold]Attempts remaining:[/bold] {summary.attempts_remaining} of {summary.max_attempts}"
    )


@app.command()
def stats(
    quiz_file: Annotated[Path, typer.Argument(help="Path to the quiz JSON file")],
    section: Annotated[
        Optional[str],
        typer.Option("--section", help="Only count attempts from this section"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show aggregate results and the gradebook for a quiz."""
    settings = get_settings()
    quiz = _load_quiz(quiz_file)

    try:
        repository = JsonFileRepository(data_dir or settings.data_directory)
        attempts = repository.list_attempts(quiz_id=quiz.id, section_id=section)
    except StorageError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    summary = ResultsAnalytics.quiz_statistics(attempts, quiz.questions, section_id=section)

    console.print(
        Panel(
            f"Attempts: {summary.total_attempts}\n"
            f"Students: {summary.unique_students}\n"
            f"Average score: {summary.average_percentage}%\n"
            f"Pass rate: {summary.pass_rate}%",
            title=quiz.title + (f" (section {section})" if section else ""),
        )
    )

    if summary.questions:
        table = Table(title="Question Success Rates")
        table.add_column("Question", style="cyan")
        table.add_column("Correct", justify="right")
        table.add_column("Success", justify="right")
        for q in summary.questions:
            table.add_row(q.prompt[:60], f"{q.correct_answers}/{q.attempts}", f"{q.success_rate}%")
        console.print(table)

    gradebook = ResultsAnalytics.gradebook(attempts)
    if gradebook:
        table = Table(title="Gradebook")
        table.add_column("Student", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Percentage", justify="right")
        table.add_column("Attempts", justify="right")
        for entry in gradebook:
            table.add_row(
                entry.student_id,
                f"{entry.score}/{entry.max_score}",
                f"{entry.percentage}%",
                str(entry.attempt_count),
            )
        console.print(table)


@app.command()
def grade_answer(
    question: Annotated[str, typer.Argument(help="The question text")],
    answer: Annotated[str, typer.Argument(help="The student's answer")],
    reference: Annotated[
        Optional[str],
        typer.Option("--reference", "-r", help="Reference answer"),
    ] = None,
    points: Annotated[
        int,
        typer.Option("--points", "-p", min=1, help="Maximum points for the question"),
    ] = 1,
) -> None:
    """Grade a single short answer with the oracle (or the fallback scorer)."""
    oracle = GradingOracleClient(get_settings())
    grade = oracle.grade(question, answer, reference, points)

    console.print(
        Panel(
            f"[bold]{grade.score} / {grade.max_points}[/bold]\n"
            f"Confidence: {grade.confidence}%\n"
            f"Graded by: {grade.source.value}",
            title="Grade",
        )
    )
    console.print(Panel(grade.rationale, title="Feedback"))
    if grade.keywords:
        console.print(f"[bold]Keywords:[/bold] {', '.join(grade.keywords)}")
    for suggestion in grade.suggestions:
        console.print(f"  • {suggestion}")


@app.command()
def health() -> None:
    """
    Check if the grading oracle is operational.

    Verifies configuration and API connectivity.
    """
    settings = get_settings()
    console.print("[bold]Quiz Grader Health Check[/bold]\n")

    console.print("[dim]Checking configuration...[/dim]")
    console.print(f"  API Base URL: {settings.oracle_base_url}")
    console.print(f"  Model: {settings.oracle_model}")
    console.print(f"  Timeout: {settings.oracle_timeout_seconds}s, retries: {settings.oracle_max_retries}")
    console.print(f"  Data directory: {settings.data_directory}")

    if not settings.oracle_configured:
        console.print("\n[yellow]⚠ No API key configured; short answers use the fallback scorer[/yellow]")
        raise typer.Exit(1)

    console.print("\n[dim]Checking API connectivity...[/dim]")
    if GradingOracleClient(settings).health_check():
        console.print("[green]✓ API is reachable[/green]")
    else:
        console.print("[red]✗ API is not reachable[/red]")
        raise typer.Exit(1)

    console.print("\n[green]All systems operational[/green]")


def _load_quiz(path: Path) -> Quiz:
    """Read and validate a quiz file, exiting with a message on failure."""
    try:
        return Quiz.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot read quiz file {path}: {escape(str(e))}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid quiz file {path}:[/red]\n{escape(str(e))}")
        raise typer.Exit(1)


def _load_answers(path: Path) -> dict[str, Any]:
    """Read an answers file: a JSON object mapping question ids to answers."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot read answers file {path}: {escape(str(e))}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid answers file {path}:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print(f"[red]Invalid answers file {path}:[/red] expected a JSON object")
        raise typer.Exit(1)
    return data


def _display_submission(result: SubmissionResult, quiz: Quiz, verbose: bool = False) -> None:
    """Display a scored attempt."""
    attempt = result.attempt

    if result.duplicate:
        console.print("[yellow]⚠ This assignment was already submitted; showing the stored attempt[/yellow]")

    score_color = "green" if attempt.percentage >= 70 else "yellow" if attempt.percentage >= 50 else "red"
    console.print(
        Panel(
            f"[{score_color}][bold]{attempt.score} / {attempt.max_score}[/bold] "
            f"({attempt.percentage}%)[/{score_color}]",
            title="Final Score",
        )
    )

    if attempt.reduced_confidence:
        console.print(
            "[yellow]Submission succeeded; some answers were graded with reduced confidence[/yellow]"
        )

    if verbose:
        questions = {q.id: q for q in quiz.questions}
        table = Table(title="Question Breakdown")
        table.add_column("Question", style="cyan")
        table.add_column("Type")
        table.add_column("Points", justify="right")
        table.add_column("Status")

        for r in result.results:
            prompt = questions[r.question_id].prompt if r.question_id in questions else r.question_id
            status = "✅" if r.points_awarded == r.max_points else "⚠️"
            table.add_row(prompt[:50], r.question_type.value, f"{r.points_awarded}/{r.max_points}", status)

        console.print(table)

        for question_id, detail in attempt.feedback.items():
            title = questions[question_id].prompt[:50] if question_id in questions else question_id
            console.print(
                Panel(
                    f"{detail.rationale}\n[dim]Confidence: {detail.confidence}%[/dim]",
                    title=title,
                )
            )


if __name__ == "__main__":
    app()
