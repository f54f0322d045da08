"""Auto-grading of submitted answers against an activity's answer key."""

from decimal import Decimal
from typing import Any


def _normalize(text: str | None) -> str:
    return " ".join((text or "").split()).casefold()


def max_score_for(questions: list[dict[str, Any]]) -> int:
    return sum(int(q.get("marks", 1)) for q in questions)


def grade_answers(
    questions: list[dict[str, Any]],
    answers: list[dict[str, str]],
) -> tuple[Decimal | None, Decimal | None]:
    """
    Score answers by exact (whitespace- and case-insensitive) match.

    Returns (score, max_score). Both are None when any question has no
    ``correct_response``: such activities are graded manually later.
    """
    if not questions or any(q.get("correct_response") is None for q in questions):
        return None, None

    responses = {a["question_id"]: a["response"] for a in answers}
    score = 0
    for q in questions:
        given = responses.get(q["question_id"])
        if given is not None and _normalize(given) == _normalize(q["correct_response"]):
            score += int(q.get("marks", 1))

    return Decimal(score), Decimal(max_score_for(questions))
