"""Tests for readme_ai.quiz: question validation and the cached quiz generator."""

from __future__ import annotations

import json

import pytest

from conftest import TS, FakeOracle
from readme_ai.models import BookQuiz, BookRecord, QuizQuestion
from readme_ai.oracle import OracleError
from readme_ai.prompts import QUIZ_EXCERPT_CHARS, QUIZ_SYSTEM_PROMPT
from readme_ai.quiz import (
    QuizGenerationError,
    QuizGenerator,
    parse_quiz,
    parse_quiz_question,
)


def _question(**overrides) -> dict:
    raw = {
        "question": "Who climbs the hill?",
        "options": ["A knight", "A hen", "A cat", "A dog"],
        "correctAnswer": 0,
    }
    raw.update(overrides)
    return raw


def _reply(*questions: dict) -> str:
    return "Here is your quiz:\n" + json.dumps(list(questions))


def _make_generator(store, reply, text_source=None) -> tuple[QuizGenerator, FakeOracle]:
    oracle = FakeOracle(reply)
    generator = QuizGenerator(
        store=store,
        oracle=oracle,
        text_source=text_source or (lambda book: f"Text of {book.title}"),
        clock=lambda: TS,
        temperature=0.7,
        max_tokens=1000,
    )
    return generator, oracle


# ---------------------------------------------------------------------------
# Question validation
# ---------------------------------------------------------------------------


class TestParseQuizQuestion:
    def test_valid_question(self) -> None:
        assert parse_quiz_question(_question(correctAnswer=3)) == QuizQuestion(
            "Who climbs the hill?", ("A knight", "A hen", "A cat", "A dog"), 3
        )

    @pytest.mark.parametrize("raw", [
        "not a dict",
        _question(question=""),
        _question(question=None),
        _question(options=["a", "b", "c"]),
        _question(options=["a", "b", "c", "d", "e"]),
        _question(options=["a", "b", "", "d"]),
        _question(options=["a", "b", 3, "d"]),
        _question(options="abcd"),
        _question(correctAnswer=4),
        _question(correctAnswer=-1),
        _question(correctAnswer="0"),
        _question(correctAnswer=True),
        _question(correctAnswer=None),
    ])
    def test_malformed_rejected(self, raw) -> None:
        assert parse_quiz_question(raw) is None


class TestParseQuiz:
    def test_malformed_questions_dropped_in_order(self) -> None:
        reply = _reply(
            _question(question="First?"),
            _question(correctAnswer=9),
            _question(question="Third?"),
        )
        assert [q.question for q in parse_quiz(reply)] == ["First?", "Third?"]

    @pytest.mark.parametrize("reply", ["", "no quiz today", '{"question": "x"}', "[not json]"])
    def test_unparseable_reply(self, reply: str) -> None:
        assert parse_quiz(reply) == []


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class TestGetOrCreate:
    def test_generates_and_stores(self, store) -> None:
        generator, _ = _make_generator(store, _reply(_question(), _question(question="Why?")))
        quiz, cached = generator.get_or_create("b1")
        assert cached is False
        assert quiz.book_id == "b1"
        assert quiz.book_title == "Dragon Hill"
        assert quiz.created_at == TS
        assert quiz.generated_by == "ai"
        assert len(quiz.questions) == 2
        assert store.get_book_quiz("b1") == quiz

    def test_cached_quiz_skips_oracle_and_text(self, store) -> None:
        existing = BookQuiz("b1", "Dragon Hill", (QuizQuestion("Q?", ("a", "b", "c", "d"), 1),), TS)
        store.save_book_quiz(existing)

        def text_source(book: BookRecord) -> str:
            raise AssertionError("text should not be read for a cached quiz")

        generator, oracle = _make_generator(store, _reply(_question()), text_source=text_source)
        assert generator.get_or_create("b1") == (existing, True)
        assert oracle.prompts == []

    def test_second_call_served_from_cache(self, store) -> None:
        generator, oracle = _make_generator(store, _reply(_question()))
        first, _ = generator.get_or_create("b1")
        second, cached = generator.get_or_create("b1")
        assert cached is True
        assert second == first
        assert len(oracle.prompts) == 1

    def test_empty_book_id_rejected(self, store) -> None:
        generator, oracle = _make_generator(store, _reply(_question()))
        with pytest.raises(ValueError):
            generator.get_or_create("")
        assert oracle.prompts == []

    def test_unknown_book(self, store) -> None:
        generator, _ = _make_generator(store, _reply(_question()))
        with pytest.raises(LookupError):
            generator.get_or_create("missing")

    @pytest.mark.parametrize("reply", [
        OracleError("timeout"),
        "I could not think of any questions.",
        _reply(_question(options=["only", "two"])),
    ])
    def test_failure_raises_and_caches_nothing(self, store, reply) -> None:
        generator, _ = _make_generator(store, reply)
        with pytest.raises(QuizGenerationError):
            generator.get_or_create("b1")
        assert store.get_book_quiz("b1") is None

    def test_text_failure_propagates(self, store) -> None:
        def text_source(book: BookRecord) -> str:
            raise FileNotFoundError(book.book_id)

        generator, _ = _make_generator(store, _reply(_question()), text_source=text_source)
        with pytest.raises(FileNotFoundError):
            generator.get_or_create("b1")
        assert store.get_book_quiz("b1") is None


class TestPrompt:
    def test_prompt_and_params(self, store) -> None:
        generator, oracle = _make_generator(store, _reply(_question()))
        generator.get_or_create("b1")
        prompt = oracle.prompts[0]
        assert "Book Title: Dragon Hill" in prompt
        assert "Author: A. Author" in prompt
        assert "index (0-3)" in prompt
        params = oracle.params[0]
        assert params.system_prompt == QUIZ_SYSTEM_PROMPT
        assert params.temperature == pytest.approx(0.7)
        assert params.max_tokens == 1000

    def test_excerpt_truncated(self, store) -> None:
        text = "a" * QUIZ_EXCERPT_CHARS + "b" * 50
        generator, oracle = _make_generator(store, _reply(_question()), text_source=lambda book: text)
        generator.get_or_create("b1")
        excerpt_line = oracle.prompts[0].split("Content excerpt: ")[1].split("\n")[0]
        assert excerpt_line == "a" * QUIZ_EXCERPT_CHARS
