"""Comprehension quizzes: one oracle-written quiz per book, cached in the store."""

from __future__ import annotations

import logging
from typing import Any

from readme_ai.engine import Clock, TextSource, utc_now
from readme_ai.models import BookQuiz, QuizQuestion
from readme_ai.oracle import Oracle, OracleParams, extract_json_array
from readme_ai.prompts import QUIZ_OPTION_COUNT, QUIZ_SYSTEM_PROMPT, build_quiz_prompt
from readme_ai.store import SignalStore

logger = logging.getLogger(__name__)


class QuizGenerationError(RuntimeError):
    """The oracle call failed or its reply held no usable question."""


def parse_quiz_question(raw: Any) -> QuizQuestion | None:
    """Return *raw* as a :class:`QuizQuestion`, or ``None`` if it is malformed.

    A question needs non-empty text, exactly four non-empty string options
    and an integer ``correctAnswer`` indexing one of them.
    """
    if not isinstance(raw, dict):
        return None
    question = raw.get("question")
    options = raw.get("options")
    answer = raw.get("correctAnswer")
    if not isinstance(question, str) or not question.strip():
        return None
    if not isinstance(options, list) or len(options) != QUIZ_OPTION_COUNT:
        return None
    if not all(isinstance(o, str) and o.strip() for o in options):
        return None
    # JSON true/false parse to bool, which is an int subclass.
    if isinstance(answer, bool) or not isinstance(answer, int):
        return None
    if not 0 <= answer < QUIZ_OPTION_COUNT:
        return None
    return QuizQuestion(question.strip(), tuple(options), answer)


def parse_quiz(text: str) -> list[QuizQuestion]:
    """Return the well-formed questions in an oracle reply, in reply order."""
    raw = extract_json_array(text)
    if raw is None:
        return []
    questions = []
    for item in raw:
        question = parse_quiz_question(item)
        if question is None:
            logger.warning("Dropping malformed quiz question: %r", item)
            continue
        questions.append(question)
    return questions


class QuizGenerator:
    """Generates a book's comprehension quiz once, then serves the stored copy.

    The answers children give to these quizzes become the quiz-result
    records the signal aggregator scores.

    Args:
        store: Holds books and cached quizzes.
        oracle: Writes the questions.
        text_source: Returns the extracted text for a book.
        clock: Timestamp source for ``createdAt``.
        temperature: Sampling temperature passed to the oracle.
        max_tokens: Completion length cap passed to the oracle.
    """

    def __init__(
        self,
        store: SignalStore,
        oracle: Oracle,
        text_source: TextSource,
        clock: Clock = utc_now,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._text_source = text_source
        self._clock = clock
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get_or_create(self, book_id: str) -> tuple[BookQuiz, bool]:
        """Return the quiz for *book_id* and whether it came from the cache.

        A cached quiz is returned without reading the book or calling the
        oracle.  Otherwise a new quiz is generated from the book's text and
        stored before it is returned.

        Args:
            book_id: The book to quiz on. Must be non-empty.

        Returns:
            ``(quiz, cached)``.

        Raises:
            ValueError: If *book_id* is empty.
            LookupError: If the book does not exist.
            QuizGenerationError: If no valid question could be generated.
        """
        if not book_id:
            raise ValueError("book_id must be non-empty")

        cached = self._store.get_book_quiz(book_id)
        if cached is not None:
            logger.info("Quiz already exists for book %r, returning cached version", book_id)
            return cached, True

        book = self._store.get_book(book_id)
        if book is None:
            raise LookupError(f"Book not found: {book_id}")

        questions = self.generate_questions(book.title, book.author, self._text_source(book))
        quiz = BookQuiz(
            book_id=book_id,
            book_title=book.title,
            questions=tuple(questions),
            created_at=self._clock(),
        )
        self._store.save_book_quiz(quiz)
        logger.info("Saved %d-question quiz for book %r", len(questions), book_id)
        return quiz, False

    def generate_questions(self, title: str, author: str, text: str) -> list[QuizQuestion]:
        """Ask the oracle for questions about a book and keep the valid ones.

        Raises:
            QuizGenerationError: If the oracle fails or no question survives
                validation.
        """
        prompt = build_quiz_prompt(title, author, text)
        params = OracleParams(
            system_prompt=QUIZ_SYSTEM_PROMPT,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        try:
            reply = self._oracle.complete(prompt, params)
        except Exception as exc:
            raise QuizGenerationError(f"Quiz oracle call failed for {title!r}") from exc
        logger.debug("Quiz oracle reply for %r: %s", title, reply)

        questions = parse_quiz(reply)
        if not questions:
            raise QuizGenerationError(f"Could not parse a quiz for {title!r}")
        return questions
