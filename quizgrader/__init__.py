"""
Quiz Grader - quiz submission scoring with LLM-assisted short-answer grading.

Objective questions are scored by exact match; short answers are graded by
an LLM oracle with a deterministic local fallback. Each assignment gets at
most one scored attempt.
"""

__version__ = "1.0.0"
__author__ = "Quiz Grader Team"
