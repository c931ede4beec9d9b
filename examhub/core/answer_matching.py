"""
Answer matching for test executions.

A question snapshot may carry its correct answer in two encodings: a markup
form (KaTeX expression) and a plain text form. The snapshot's is_markup flag
says which one was authored as authoritative; the other is a fallback when
the preferred form is missing.

Comparison is exact string equality after normalization. There is no
partial credit and no numeric tolerance.
"""
import re
from dataclasses import dataclass
from typing import Optional, Union

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class MarkupAnswer:
    """Correct answer authored as a markup (KaTeX) expression."""

    text: str


@dataclass(frozen=True)
class PlainAnswer:
    """Correct answer authored as plain text."""

    text: str


CorrectAnswer = Union[MarkupAnswer, PlainAnswer]


def normalize_answer(answer: Optional[str]) -> str:
    """
    Normalize an answer for comparison.

    Lower-cases, trims, and removes every character that is not a lowercase
    ASCII letter or digit, so case, whitespace and punctuation never cause a
    mismatch.

    Example:
        >>> normalize_answer("  x = 2, y = -3 ")
        'x2y3'
    """
    return _NON_ALNUM.sub("", (answer or "").strip().lower())


def select_correct_answer(
    correct_answer: Optional[str],
    correct_answer_plain: Optional[str],
    is_markup: bool,
) -> Optional[CorrectAnswer]:
    """
    Pick the correct-answer form to grade against.

    Markup questions prefer the markup form and fall back to the plain form;
    plain questions do the opposite. Empty strings count as missing.

    Returns:
        The tagged correct answer, or None if neither form is present
    """
    if is_markup:
        if correct_answer:
            return MarkupAnswer(correct_answer)
        if correct_answer_plain:
            return PlainAnswer(correct_answer_plain)
    else:
        if correct_answer_plain:
            return PlainAnswer(correct_answer_plain)
        if correct_answer:
            return MarkupAnswer(correct_answer)
    return None


def answers_match(correct: Optional[CorrectAnswer], submitted: Optional[str]) -> bool:
    """
    Compare a submitted answer against a tagged correct answer.

    An unanswered question (None) and a question without any correct answer
    never match.
    """
    if correct is None or submitted is None:
        return False
    return normalize_answer(submitted) == normalize_answer(correct.text)


def check_answer(question, submitted_answer: Optional[str]) -> bool:
    """
    Decide whether a submitted answer is correct for a question snapshot.

    Args:
        question: Any object exposing correct_answer, correct_answer_plain and
            is_markup (a QuestionSnapshot or a Question row)
        submitted_answer: The student's answer, possibly None

    Returns:
        True iff the normalized submission equals the normalized selected
        correct answer
    """
    correct = select_correct_answer(
        question.correct_answer,
        question.correct_answer_plain,
        bool(question.is_markup),
    )
    return answers_match(correct, submitted_answer)
