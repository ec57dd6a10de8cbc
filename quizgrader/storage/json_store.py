"""
JSON file repository.

Stores one JSON document per entity under a root directory:

    <root>/quizzes/<quiz id>.json
    <root>/assignments/<assignment id>.json
    <root>/attempts/<assignment id>.json

Attempt files are named after their assignment and published with a hard
link, which refuses to replace an existing file: a second attempt for the
same assignment fails at the filesystem level.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from quizgrader.models import Assignment, Attempt, Quiz
from quizgrader.storage.base import AttemptRepository, StorageError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class JsonFileRepository(AttemptRepository):
    """File-backed store for the command-line tool and small deployments."""

    def __init__(self, root: Path | str):
        self._root = Path(root)
        self._quizzes = self._root / "quizzes"
        self._assignments = self._root / "assignments"
        self._attempts = self._root / "attempts"

        try:
            for directory in (self._quizzes, self._assignments, self._attempts):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create store at {self._root}: {e}", cause=e) from e

    @property
    def root(self) -> Path:
        return self._root

    # ==========================================================================
    # Quizzes
    # ==========================================================================

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        return self._read(self._path(self._quizzes, quiz_id), Quiz)

    def save_quiz(self, quiz: Quiz) -> None:
        self._write(self._path(self._quizzes, quiz.id), quiz)

    # ==========================================================================
    # Assignments
    # ==========================================================================

    def get_assignment(self, assignment_id: str) -> Assignment | None:
        return self._read(self._path(self._assignments, assignment_id), Assignment)

    def find_assignment(self, quiz_id: str, student_id: str) -> Assignment | None:
        for path in sorted(self._assignments.glob("*.json")):
            assignment = self._read(path, Assignment)
            if assignment and assignment.quiz_id == quiz_id and assignment.student_id == student_id:
                return assignment
        return None

    def save_assignment(self, assignment: Assignment) -> None:
        self._write(self._path(self._assignments, assignment.id), assignment)

    # ==========================================================================
    # Attempts
    # ==========================================================================

    def find_attempt(self, assignment_id: str, student_id: str) -> Attempt | None:
        attempt = self._read(self._path(self._attempts, assignment_id), Attempt)
        if attempt is not None and attempt.student_id == student_id:
            return attempt
        return None

    def add_attempt(self, attempt: Attempt) -> None:
        """Publish the attempt with a hard link so it appears complete or not at all."""
        path = self._path(self._attempts, attempt.assignment_id)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(attempt.model_dump_json(indent=2))
            os.link(tmp_name, path)
        except FileExistsError as e:
            raise StorageError(
                f"Assignment {attempt.assignment_id} already has an attempt", cause=e
            ) from e
        except OSError as e:
            logger.error("Failed to write attempt %s: %s", attempt.id, e)
            raise StorageError(f"Cannot write attempt {attempt.id}: {e}", cause=e) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def _all_attempts(self) -> Iterable[Attempt]:
        for path in sorted(self._attempts.glob("*.json")):
            attempt = self._read(path, Attempt)
            if attempt is not None:
                yield attempt

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _path(directory: Path, entity_id: str) -> Path:
        if not _SAFE_ID.match(entity_id):
            raise StorageError(f"Identifier not usable as a file name: {entity_id!r}")
        return directory / f"{entity_id}.json"

    @staticmethod
    def _read(path: Path, model: type[ModelT]) -> ModelT | None:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}", cause=e) from e

        try:
            return model.model_validate_json(content)
        except ValidationError as e:
            raise StorageError(f"Corrupt record in {path}", cause=e) from e

    @staticmethod
    def _write(path: Path, record: BaseModel) -> None:
        """Write atomically: temp file in the same directory, then replace."""
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(record.model_dump_json(indent=2))
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            raise StorageError(f"Cannot write {path}: {e}", cause=e) from e
