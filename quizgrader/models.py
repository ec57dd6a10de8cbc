"""
Pydantic models for the quiz grader.

These models define the schemas for:
- Quizzes, questions and student assignments
- Per-question grading output and scored attempts
- Read-only reporting views (attempt history, statistics, gradebook)

All models are immutable; state changes produce updated copies.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)

from quizgrader.rounding import mean


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque identifier."""
    return str(uuid4())


# ==============================================================================
# Enumerations
# ==============================================================================


class QuestionType(str, Enum):
    """Question type; drives how an answer is scored."""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"

    @property
    def is_objective(self) -> bool:
        """Objective questions are scored by exact match."""
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


class GradeSource(str, Enum):
    """Where a short-answer grade came from."""

    ORACLE = "oracle"  # Parsed from the grading oracle's reply
    FALLBACK = "fallback"  # Local heuristic, oracle unavailable or unparseable
    EMPTY = "empty"  # Blank answer, no oracle call
    ERROR = "error"  # Oracle call crashed, half credit awarded


# ==============================================================================
# Quiz Models
# ==============================================================================


class Question(BaseModel):
    """
    A single quiz question.

    Multiple-choice questions carry their options and, when a correct
    answer is set, it must be one of them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique question identifier")

    quiz_id: str | None = Field(
        default=None,
        description="Owning quiz, when known",
    )

    type: QuestionType = Field(..., description="Question type")

    prompt: str = Field(..., min_length=1, description="Question text shown to the student")

    options: tuple[str, ...] = Field(
        default=(),
        description="Answer options (multiple choice only)",
    )

    correct_answer: str | None = Field(
        default=None,
        description="Ground truth for objective types, reference answer for short answers",
    )

    points: int = Field(default=1, gt=0, description="Maximum points for this question")

    order: int = Field(default=0, description="Presentation order within the quiz")

    @model_validator(mode="after")
    def validate_options(self) -> "Question":
        """Check options against the question type."""
        if self.type == QuestionType.MULTIPLE_CHOICE:
            if self.correct_answer is not None and self.correct_answer not in self.options:
                raise ValueError(
                    f"Correct answer '{self.correct_answer}' of question {self.id} "
                    f"is not one of its options"
                )
        elif self.options:
            raise ValueError(f"Only multiple-choice questions carry options (question {self.id})")
        return self


class Quiz(BaseModel):
    """
    A quiz and its questions.

    Time limit and availability window are advisory; the surrounding
    application enforces them, the grader does not.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique quiz identifier")

    title: str = Field(..., min_length=1, max_length=500, description="Quiz title")

    description: str = Field(default="", description="Optional quiz description")

    max_attempts: int = Field(
        default=1,
        gt=0,
        description="Maximum submissions per student per assignment",
    )

    time_limit: int | None = Field(
        default=None,
        gt=0,
        description="Time limit in minutes",
    )

    start_date: datetime | None = Field(default=None, description="Start of availability window")

    end_date: datetime | None = Field(default=None, description="End of availability window")

    passing_score: int | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Minimum percentage to pass; every attempt passes when unset",
    )

    questions: tuple[Question, ...] = Field(default=(), description="Quiz questions")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def max_score(self) -> int:
        """Total points available in the quiz."""
        return sum(q.points for q in self.questions)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def question_count(self) -> int:
        """Return the number of questions."""
        return len(self.questions)

    @property
    def ordered_questions(self) -> tuple[Question, ...]:
        """Questions sorted by their presentation order."""
        return tuple(sorted(self.questions, key=lambda q: q.order))

    @model_validator(mode="after")
    def validate_quiz(self) -> "Quiz":
        """Ensure unique question ids and a consistent window."""
        ids = [q.id for q in self.questions]
        if len(ids) != len(set(ids)):
            duplicates = {i for i in ids if ids.count(i) > 1}
            raise ValueError(f"Duplicate question ids found: {duplicates}")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Assignment(BaseModel):
    """The binding of one quiz to one student, tracking completion."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="Unique assignment identifier")

    quiz_id: str = Field(..., min_length=1, description="Assigned quiz")

    student_id: str = Field(..., min_length=1, description="Opaque student identifier")

    due_date: datetime | None = Field(default=None, description="Optional due date")

    assigned_at: datetime = Field(default_factory=utcnow, description="When it was assigned")

    is_completed: bool = Field(default=False, description="Whether an attempt was scored")

    completed_at: datetime | None = Field(default=None, description="When it was completed")

    def mark_completed(self, when: datetime | None = None) -> "Assignment":
        """Return a completed copy of this assignment."""
        return self.model_copy(update={"is_completed": True, "completed_at": when or utcnow()})


# ==============================================================================
# Grading Result Models
# ==============================================================================


class OracleGrade(BaseModel):
    """Score and rationale for one short answer."""

    model_config = ConfigDict(frozen=True, strict=True)

    score: int = Field(..., ge=0, description="Points awarded")

    max_points: int = Field(..., gt=0, description="Maximum points for the question")

    rationale: str = Field(..., description="Explanation of the score")

    confidence: int = Field(..., ge=0, le=100, description="Grader confidence (0-100)")

    keywords: tuple[str, ...] = Field(default=(), description="Key concepts expected")

    suggestions: tuple[str, ...] = Field(default=(), description="Improvement suggestions")

    source: GradeSource = Field(default=GradeSource.ORACLE, description="Origin of the grade")

    @model_validator(mode="after")
    def validate_score_range(self) -> "OracleGrade":
        """Ensure the score does not exceed the question's points."""
        if self.score > self.max_points:
            raise ValueError(
                f"Score ({self.score}) cannot exceed max points ({self.max_points})"
            )
        return self


class GradingDetail(BaseModel):
    """Per-question feedback stored with an attempt (short answers only)."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0)

    max_points: int = Field(..., gt=0)

    rationale: str = Field(...)

    confidence: int = Field(..., ge=0, le=100)

    keywords: tuple[str, ...] = Field(default=())

    suggestions: tuple[str, ...] = Field(default=())

    graded_at: datetime = Field(default_factory=utcnow)

    error: bool = Field(default=False, description="Set when the oracle call crashed")

    source: GradeSource = Field(default=GradeSource.ORACLE)

    @classmethod
    def from_grade(cls, grade: OracleGrade) -> "GradingDetail":
        """Build a feedback record from an oracle grade."""
        return cls(
            score=grade.score,
            max_points=grade.max_points,
            rationale=grade.rationale,
            confidence=grade.confidence,
            keywords=grade.keywords,
            suggestions=grade.suggestions,
            source=grade.source,
        )

    @property
    def reduced_confidence(self) -> bool:
        """Whether this grade was produced without a usable oracle reply."""
        return self.error or self.source in (GradeSource.FALLBACK, GradeSource.ERROR)


class QuestionResult(BaseModel):
    """Outcome of evaluating one submitted answer."""

    model_config = ConfigDict(frozen=True)

    question_id: str

    question_type: QuestionType

    points_awarded: int = Field(..., ge=0)

    max_points: int = Field(..., gt=0)

    is_correct: bool | None = Field(
        default=None,
        description="Exact-match outcome; None for short answers",
    )

    feedback: GradingDetail | None = Field(
        default=None,
        description="Grading detail; only set for answered short answers",
    )


class Attempt(BaseModel):
    """
    The scored outcome of one submission.

    Created once per assignment and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)

    assignment_id: str = Field(..., min_length=1)

    student_id: str = Field(..., min_length=1)

    quiz_id: str = Field(..., min_length=1)

    section_id: str | None = Field(default=None, description="Enrollment context")

    answers: dict[str, str] = Field(default_factory=dict, description="Question id -> answer")

    score: int = Field(..., ge=0)

    max_score: int = Field(..., ge=0)

    percentage: int = Field(..., ge=0, le=100)

    passed: bool

    feedback: dict[str, GradingDetail] = Field(default_factory=dict)

    correct: dict[str, bool] = Field(
        default_factory=dict,
        description="Question id -> exact-match outcome, for answered objective questions",
    )

    submitted_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def validate_score(self) -> "Attempt":
        """Ensure the score does not exceed the maximum."""
        if self.score > self.max_score:
            raise ValueError(f"Score ({self.score}) cannot exceed max score ({self.max_score})")
        return self

    @property
    def reduced_confidence(self) -> bool:
        """Whether any answer was graded by fallback or after an oracle error."""
        return any(detail.reduced_confidence for detail in self.feedback.values())

    @property
    def average_confidence(self) -> int | None:
        """Mean confidence over graded short answers, None without any."""
        if not self.feedback:
            return None
        return mean([detail.confidence for detail in self.feedback.values()])


class SubmissionResult(BaseModel):
    """What a submission returns: the attempt and whether it already existed."""

    model_config = ConfigDict(frozen=True)

    attempt: Attempt

    duplicate: bool = Field(
        default=False,
        description="True when an attempt already existed and was returned unchanged",
    )

    results: tuple[QuestionResult, ...] = Field(
        default=(),
        description="Per-question results (empty for duplicates)",
    )


# ==============================================================================
# Reporting Models
# ==============================================================================


class AttemptView(BaseModel):
    """An attempt as shown in a student's attempt history."""

    model_config = ConfigDict(frozen=True)

    attempt_number: int = Field(..., ge=1)

    id: str

    score: int

    max_score: int

    percentage: int

    passed: bool

    submitted_at: datetime

    feedback: dict[str, GradingDetail] = Field(default_factory=dict)


class AttemptHistory(BaseModel):
    """Summary of all attempts for one assignment."""

    model_config = ConfigDict(frozen=True)

    attempts: tuple[AttemptView, ...] = Field(default=(), description="Newest first")

    best_score: int = 0

    best_percentage: int = 0

    total_attempts: int = 0

    max_attempts: int = 1

    attempts_remaining: int = 0


class QuestionStatistics(BaseModel):
    """Success rate of one objective question across attempts."""

    model_config = ConfigDict(frozen=True)

    question_id: str

    prompt: str

    question_type: QuestionType

    attempts: int = Field(..., ge=0, description="Attempts that answered the question")

    correct_answers: int = Field(..., ge=0)

    success_rate: int = Field(..., ge=0, le=100, description="Percentage answered correctly")


class QuizStatistics(BaseModel):
    """Aggregate results for a quiz, optionally restricted to one section."""

    model_config = ConfigDict(frozen=True)

    quiz_id: str | None = None

    section_id: str | None = None

    total_attempts: int = 0

    unique_students: int = 0

    average_percentage: int = 0

    pass_rate: int = 0

    average_confidence: int | None = None

    last_attempt_at: datetime | None = None

    questions: tuple[QuestionStatistics, ...] = ()


class GradebookEntry(BaseModel):
    """Latest result of one student on one quiz."""

    model_config = ConfigDict(frozen=True)

    student_id: str

    quiz_id: str

    attempt_id: str

    score: int

    max_score: int

    percentage: int

    attempt_count: int

    submitted_at: datetime
