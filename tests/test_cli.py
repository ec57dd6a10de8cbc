"""Tests for the command-line interface."""

import json
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from quizgrader.config import Settings
from quizgrader.main import app
from quizgrader.models import Quiz

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_settings(offline_settings: Settings) -> Generator[Settings, None, None]:
    """Run every command offline, on a wide console, without touching logging."""
    with (
        patch("quizgrader.main.get_settings", return_value=offline_settings),
        patch("quizgrader.main.configure_logging"),
        patch("quizgrader.main.console", Console(width=200)),
    ):
        yield offline_settings


@pytest.fixture
def quiz_file(temp_dir: Path, sample_quiz: Quiz) -> Path:
    path = temp_dir / "quiz.json"
    path.write_text(sample_quiz.model_dump_json(indent=2), encoding="utf-8")
    return path


@pytest.fixture
def answers_file(temp_dir: Path) -> Path:
    path = temp_dir / "answers.json"
    path.write_text(json.dumps({"q1": "A", "q2": "Plants use sunlight."}), encoding="utf-8")
    return path


def _submit(quiz_file: Path, answers_file: Path, *extra: str):
    return runner.invoke(
        app, ["submit", str(quiz_file), str(answers_file), "--student", "student-1", *extra]
    )


class TestSubmitCommand:
    """Tests for `submit`."""

    def test_submit_scores_attempt(self, quiz_file: Path, answers_file: Path) -> None:
        """Test a submission is scored and stored."""
        result = _submit(quiz_file, answers_file, "--verbose")

        assert result.exit_code == 0, result.output
        assert "2 / 5" in result.output
        assert "40%" in result.output
        assert "reduced confidence" in result.output

    def test_resubmit_shows_stored_attempt(self, quiz_file: Path, answers_file: Path) -> None:
        """Test a second submission reports the stored attempt."""
        _submit(quiz_file, answers_file)
        result = _submit(quiz_file, answers_file)

        assert result.exit_code == 0
        assert "already submitted" in result.output

    def test_invalid_quiz_file(self, temp_dir: Path, answers_file: Path) -> None:
        """Test a malformed quiz file is rejected."""
        bad = temp_dir / "bad.json"
        bad.write_text('{"id": "q", "questions": "nope"}', encoding="utf-8")

        result = _submit(bad, answers_file)

        assert result.exit_code == 1
        assert "Invalid quiz file" in result.output

    def test_missing_answers_file(self, quiz_file: Path, temp_dir: Path) -> None:
        """Test an unreadable answers file is reported."""
        result = _submit(quiz_file, temp_dir / "missing.json")

        assert result.exit_code == 1
        assert "Cannot read answers file" in result.output

    def test_answers_must_be_object(self, quiz_file: Path, temp_dir: Path) -> None:
        """Test an answers file holding a list is rejected."""
        path = temp_dir / "list.json"
        path.write_text('["A", "B"]', encoding="utf-8")

        result = _submit(quiz_file, path)

        assert result.exit_code == 1
        assert "expected a JSON object" in result.output

    def test_non_string_answer(self, quiz_file: Path, temp_dir: Path) -> None:
        """Test validation errors exit with a message."""
        path = temp_dir / "numbers.json"
        path.write_text('{"q1": 1}', encoding="utf-8")

        result = _submit(quiz_file, path)

        assert result.exit_code == 1
        assert "Invalid submission" in result.output


class TestReportCommands:
    """Tests for `history` and `stats`."""

    def test_history(self, quiz_file: Path, answers_file: Path) -> None:
        """Test the attempt history of a student."""
        _submit(quiz_file, answers_file)

        result = runner.invoke(app, ["history", str(quiz_file), "--student", "student-1"])

        assert result.exit_code == 0, result.output
        assert "2/5" in result.output
        assert "Attempts remaining: 0 of 1" in result.output

    def test_history_without_attempts(self, quiz_file: Path) -> None:
        """Test a student who never submitted."""
        result = runner.invoke(app, ["history", str(quiz_file), "--student", "nobody"])

        assert result.exit_code == 0
        assert "Attempts remaining: 1 of 1" in result.output

    def test_stats(self, quiz_file: Path, answers_file: Path) -> None:
        """Test quiz statistics and the gradebook."""
        _submit(quiz_file, answers_file, "--section", "sec-1")

        result = runner.invoke(app, ["stats", str(quiz_file), "--section", "sec-1"])

        assert result.exit_code == 0, result.output
        assert "Attempts: 1" in result.output
        assert "Average score: 40%" in result.output
        assert "student-1" in result.output


class TestOracleCommands:
    """Tests for `grade-answer` and `health`."""

    def test_grade_answer_offline(self) -> None:
        """Test grading without an oracle uses the fallback scorer."""
        result = runner.invoke(
            app, ["grade-answer", "What is photosynthesis?", "Plants use sunlight.", "--points", "10"]
        )

        assert result.exit_code == 0, result.output
        assert "3 / 10" in result.output
        assert "fallback" in result.output

    def test_health_without_key(self) -> None:
        """Test the health check fails without an API key."""
        result = runner.invoke(app, ["health"])

        assert result.exit_code == 1
        assert "No API key configured" in result.output
