"""Shared pytest fixtures for all readme_ai tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from readme_ai.models import BookRecord
from readme_ai.oracle import Oracle, OracleParams
from readme_ai.store import InMemorySignalStore
from readme_ai.vocabulary import Vocabulary


TS = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeOracle(Oracle):
    """Deterministic oracle: returns *reply* (or raises it) and records prompts."""

    def __init__(self, reply: str | Exception = "") -> None:
        self.reply = reply
        self.prompts: list[str] = []
        self.params: list[OracleParams] = []

    def complete(self, prompt: str, params: OracleParams) -> str:
        self.prompts.append(prompt)
        self.params.append(params)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


# ---------------------------------------------------------------------------
# Vocabulary fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def small_vocabulary() -> Vocabulary:
    """A compact vocabulary without "music" or "13+"."""
    return Vocabulary(
        traits=("curious", "kind", "brave", "responsible"),
        tags=("adventure", "animals", "friendship", "family"),
        ages=("6+", "8+", "10"),
        default_tag_pool=("animals", "family"),
        default_tag_companion="friendship",
        default_trait_pool=("kind", "brave"),
        default_trait_companion="responsible",
        default_age="6+",
    )


# ---------------------------------------------------------------------------
# Book fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def book_brave() -> BookRecord:
    return BookRecord(
        "b1", "Dragon Hill", "A. Author",
        traits=["brave", "adventurous"], tags=["adventure", "bravery"],
        age_rating="7+", description="A small knight climbs a big hill.",
    )


@pytest.fixture
def book_kind() -> BookRecord:
    return BookRecord(
        "b2", "The Helpful Hen", "B. Author",
        traits=["kind", "helpful"], tags=["kindness", "animals"], age_rating="6+",
    )


@pytest.fixture
def book_curious() -> BookRecord:
    return BookRecord(
        "b3", "Why Is The Sky", "C. Author",
        traits=["curious"], tags=["learning"], age_rating="8+",
    )


@pytest.fixture
def book_hidden() -> BookRecord:
    return BookRecord(
        "b4", "Draft Book", "D. Author",
        traits=["calm"], tags=["family"], is_visible=False,
    )


@pytest.fixture
def sample_books(book_brave, book_kind, book_curious, book_hidden) -> list[BookRecord]:
    return [book_brave, book_kind, book_curious, book_hidden]


@pytest.fixture
def store(sample_books) -> InMemorySignalStore:
    return InMemorySignalStore(sample_books)
