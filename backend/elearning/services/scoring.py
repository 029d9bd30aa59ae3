from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone

from elearning.core.config import settings
from elearning.core.errors import IncompleteSubmission
from elearning.schemas.quiz import AttemptResult, QuestionOutcome, QuizDefinition


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer ``round(numerator / denominator)`` with .5 rounded up, for non-negative inputs."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(100 * part, whole)


def utc_now_iso() -> str:
    # Same shape as JavaScript's Date.toISOString(), which existing records use.
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def score_attempt(
    quiz: QuizDefinition,
    answers: Mapping[int, int],
    *,
    previous_best: int = 0,
    pass_threshold: int | None = None,
    now: str | None = None,
) -> AttemptResult:
    """Score a complete submission. Pure: nothing is read from or written to the store.

    Every question index must have an answer, otherwise ``IncompleteSubmission`` is
    raised. Answers for indexes the quiz does not have are ignored.
    """
    total = len(quiz.questions)
    missing = [idx for idx in range(total) if idx not in answers]
    if missing:
        raise IncompleteSubmission(missing)

    threshold = int(settings.pass_threshold if pass_threshold is None else pass_threshold)

    per_question: dict[int, QuestionOutcome] = {}
    correct = 0
    for idx, question in enumerate(quiz.questions):
        selected = int(answers[idx])
        ok = selected == question.correct_index
        if ok:
            correct += 1
        per_question[idx] = QuestionOutcome(selected=selected, correct=question.correct_index, is_correct=ok)

    score = percentage(correct, total)
    return AttemptResult(
        score=score,
        best_score=max(score, int(previous_best or 0)),
        passed=score >= threshold,
        per_question=per_question,
        confirmed=False,
        timestamp=now or utc_now_iso(),
    )
