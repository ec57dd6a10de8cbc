"""
Prompt builder for short-answer grading.

Constructs the grading instruction sent to the oracle:
- A scoring rubric scaled to the question's points
- Comparison against a reference answer when one exists
- A fixed, line-labeled reply format that the response parser understands
"""

from decimal import ROUND_HALF_UP, Decimal


class PromptBuilder:
    """
    Builds grading prompts for short-answer questions.

    The rubric bands are expressed both as a percentage and as points for
    the specific question, so the oracle scores directly on the question's
    scale.
    """

    SYSTEM_PROMPT = """You are an expert educational grader. Grade short answers fairly and consistently.

RULES:
1. Grade only the content of the answer. Spelling, grammar and style do not affect the score.
2. Two identical answers MUST receive identical scores.
3. Never award more than the maximum points or less than zero.
4. Reply ONLY in the labeled-line format you are given. Do not add any other text."""

    # (fraction of max points, band description)
    RUBRIC_BANDS: tuple[tuple[Decimal, str], ...] = (
        (Decimal("1.0"), "Complete and accurate; covers every key point"),
        (Decimal("0.8"), "Mostly accurate with minor gaps"),
        (Decimal("0.6"), "Partially correct; some key points missing"),
        (Decimal("0.4"), "Limited understanding; significant gaps or errors"),
    )

    @staticmethod
    def build_grading_prompt(
        question: str,
        student_answer: str,
        reference_answer: str | None,
        max_points: int,
    ) -> str:
        """
        Build the user prompt for grading one short answer.

        Args:
            question: The question text.
            student_answer: The student's answer.
            reference_answer: Reference answer, if the question has one.
            max_points: Maximum points for the question.

        Returns:
            The formatted user prompt.
        """
        rubric_text = PromptBuilder._format_rubric(max_points)

        if reference_answer:
            reference_text = f"""REFERENCE ANSWER:
---BEGIN REFERENCE---
{reference_answer}
---END REFERENCE---

Compare the student answer against the reference answer. Award points for each
key idea of the reference that the student expresses, in any wording."""
        else:
            reference_text = """No reference answer is available. Assess whether the student answer shows
a correct general understanding of the topic the question asks about."""

        return f"""GRADING TASK

QUESTION:
{question}

MAXIMUM POINTS: {max_points}

{reference_text}

STUDENT ANSWER:
---BEGIN ANSWER---
{student_answer}
---END ANSWER---

{rubric_text}

OUTPUT FORMAT (respond with ONLY these lines):
FEEDBACK: <one or two sentences of constructive feedback explaining the score>
SCORE: <whole number between 0 and {max_points}>
CONFIDENCE: <whole number between 0 and 100, how certain you are of the score>
KEYWORDS: <comma-separated key concepts a complete answer includes>
SUGGESTIONS: <semicolon-separated suggestions for improvement>"""

    @staticmethod
    def _format_rubric(max_points: int) -> str:
        """Format the rubric bands in points for this question."""
        lines: list[str] = ["SCORING RUBRIC:"]
        points = Decimal(max_points)
        lowest = points

        for fraction, description in PromptBuilder.RUBRIC_BANDS:
            lowest = (points * fraction).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            lines.append(f"- {int(fraction * 100)}% ({lowest} points): {description}")

        if lowest > 0:
            lines.append(f"- <40% (less than {lowest} points): Mostly incorrect or off-topic")
        lines.append("- 0% (0 points): Blank, irrelevant, or states that the student does not know")
        return "\n".join(lines)

    @staticmethod
    def get_system_prompt() -> str:
        """Get the system prompt for short-answer grading."""
        return PromptBuilder.SYSTEM_PROMPT
