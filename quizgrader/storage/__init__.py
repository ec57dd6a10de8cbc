"""
Persistence Module.

Repository interface for quizzes, assignments and attempts, with
in-memory and JSON-file implementations.
"""

from quizgrader.storage.base import AttemptRepository, StorageError
from quizgrader.storage.json_store import JsonFileRepository
from quizgrader.storage.memory import InMemoryRepository

__all__ = [
    "AttemptRepository",
    "InMemoryRepository",
    "JsonFileRepository",
    "StorageError",
]
