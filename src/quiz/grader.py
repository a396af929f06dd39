"""Quiz parsing and grading.

The parser reads the numbered plain-text format the quiz prompt asks for::

    1. What is osmosis?
       A) ...
       B) ...
       Correct Answer: B

    1. Question 1: What is osmosis?
       Expected Answer: Movement of water across a membrane

It is line-pattern matching, not a grammar: malformed model output produces
a malformed quiz rather than an error.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("pointer.quiz")

MULTIPLE_CHOICE = "multiple-choice"
SHORT_ANSWER = "short-answer"
QUIZ_TYPES = (MULTIPLE_CHOICE, SHORT_ANSWER)

_QUESTION_RE = re.compile(r"^(\d+)\.\s*(.*)$")
_OPTION_RE = re.compile(r"^([A-D])\)\s*(.*)$")
_ANSWER_RE = re.compile(r"(?:correct\s+)?answer\s*:\s*\**\s*([A-D])\b", re.IGNORECASE)
_EXPECTED_RE = re.compile(r"expected\s+answer\s*:\s*(.*)$", re.IGNORECASE)


class QuizCompleteError(RuntimeError):
    """An answer was submitted to a quiz that is already complete."""


@dataclass
class QuizQuestion:
    id: str
    question: str
    options: list[str] = field(default_factory=list)
    correct_answer: str = ""
    user_answer: str | None = None
    is_correct: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "user_answer": self.user_answer,
            "is_correct": self.is_correct,
        }


def parse_quiz(text: str, quiz_type: str, count: int | None = None) -> list[QuizQuestion]:
    """Parse model output into questions, truncated to ``count``."""
    questions: list[QuizQuestion] = []
    current: QuizQuestion | None = None

    for raw_line in (text or "").split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        m = _QUESTION_RE.match(line)
        if m:
            if current is not None:
                questions.append(current)
            current = QuizQuestion(id=f"q{len(questions) + 1}", question=m.group(2).strip())
            continue

        if current is None:
            continue

        if quiz_type == MULTIPLE_CHOICE:
            opt = _OPTION_RE.match(line)
            if opt:
                current.options.append(opt.group(2).strip())
                continue
            ans = _ANSWER_RE.search(line)
            if ans:
                current.correct_answer = ans.group(1).upper()
                continue
            if not current.options:
                current.question = f"{current.question} {line}".strip()
            continue

        expected = _EXPECTED_RE.search(line)
        if expected:
            current.correct_answer = expected.group(1).strip()
            continue
        if not current.correct_answer:
            current.question = f"{current.question} {line}".strip()

    if current is not None:
        questions.append(current)

    if count is not None:
        questions = questions[:max(count, 0)]
    logger.info("Parsed %d %s question(s)", len(questions), quiz_type)
    return questions


def _significant_tokens(text: str) -> list[str]:
    return [tok for tok in text.split() if len(tok) > 2]


def grade_answer(question: QuizQuestion, answer: str, quiz_type: str) -> bool:
    """Check one answer against the parsed correct answer."""
    answer = answer or ""
    if quiz_type == MULTIPLE_CHOICE:
        return answer.strip().upper() == question.correct_answer.strip().upper()

    user_clean = answer.lower().strip()
    correct_clean = question.correct_answer.lower().strip()
    if user_clean == correct_clean:
        return True

    correct_words = _significant_tokens(correct_clean)
    user_words = _significant_tokens(user_clean)
    matching = [
        word for word in correct_words
        if any(user_word in word or word in user_word for user_word in user_words)
    ]
    return len(matching) >= math.ceil(len(correct_words) * 0.5)


def score_percent(correct: int, total: int) -> int:
    """Integer percentage, rounding halves up."""
    if total <= 0:
        return 0
    return int(math.floor(100 * correct / total + 0.5))


@dataclass
class QuizSession:
    """One quiz being taken, question by question."""

    id: str
    quiz_type: str
    questions: list[QuizQuestion]
    current_index: int = 0
    correct_count: int = 0
    is_complete: bool = False
    score: int | None = None
    raw_text: str = ""

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def submit(self, answer: str) -> bool:
        """Grade ``answer`` for the current question and advance.

        Answering the last question completes the quiz and freezes the score.
        """
        if self.is_complete:
            raise QuizCompleteError(f"Quiz {self.id} is already complete")
        if not self.questions:
            raise QuizCompleteError(f"Quiz {self.id} has no questions")

        question = self.questions[self.current_index]
        question.user_answer = answer
        question.is_correct = grade_answer(question, answer, self.quiz_type)
        if question.is_correct:
            self.correct_count += 1

        if self.current_index == len(self.questions) - 1:
            self.is_complete = True
            self.score = score_percent(self.correct_count, len(self.questions))
            logger.info("Quiz %s complete: %d/%d (%d%%)", self.id, self.correct_count, len(self.questions), self.score)
        else:
            self.current_index += 1
        return question.is_correct

    def to_dict(self, reveal: bool | None = None) -> dict[str, Any]:
        """Serialize; unanswered correct answers stay hidden until completion."""
        reveal = self.is_complete if reveal is None else reveal
        questions = []
        for q in self.questions:
            d = q.to_dict()
            if not reveal and q.user_answer is None:
                d["correct_answer"] = None
            questions.append(d)
        return {
            "id": self.id,
            "quiz_type": self.quiz_type,
            "questions": questions,
            "current_index": self.current_index,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "is_complete": self.is_complete,
            "score": self.score,
        }
