"""Core domain dataclasses shared across all readme_ai modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Reading-progress page ratio at which an unfinished book counts as engagement.
HIGH_PROGRESS_RATIO = 0.70

# Quiz score ratio treated as a strong comprehension signal.
QUIZ_SCORE_RATIO = 0.80

# A reading session at least this long counts as a "long" session.
LONG_SESSION_SECONDS = 1800


class InteractionType(str, Enum):
    """Kinds of explicit book interaction recorded by the app."""

    FAVORITE = "favorite"
    BOOKMARK = "bookmark"

    @classmethod
    def positive(cls) -> frozenset[str]:
        """Interaction type values that imply positive affinity."""
        return frozenset(t.value for t in cls)


@dataclass
class BookRecord:
    """A single book in the catalogue.

    Attributes:
        book_id: Document ID of the book.
        title: Human-readable title.
        author: Author name.
        traits: Personality traits of readers who would enjoy the book.
        tags: Thematic / genre tags.
        age_rating: Age-band label, or ``None`` when not yet rated.
        is_visible: Whether the book may be shown to (and recommended for) users.
        pdf_url: Location of the book's source PDF.
        needs_tagging: ``True`` until the tagging pipeline has run successfully.
        description: Free-text blurb.
        tagged_at: When the book was last tagged, if ever.
    """

    book_id: str
    title: str
    author: str
    traits: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    age_rating: str | None = None
    is_visible: bool = True
    pdf_url: str | None = None
    needs_tagging: bool = False
    description: str = ""
    tagged_at: datetime | None = None


@dataclass(frozen=True)
class InteractionRecord:
    user_id: str
    book_id: str
    type: str


@dataclass(frozen=True)
class ReadingProgressRecord:
    """Completion or partial progress of one book by one user."""

    user_id: str
    book_id: str
    is_completed: bool
    current_page: int = 0
    total_pages: int = 0

    @property
    def page_ratio(self) -> float:
        """Fraction of pages read; ``0.0`` when the page count is unknown."""
        if self.total_pages <= 0:
            return 0.0
        return self.current_page / self.total_pages

    @property
    def is_high_progress(self) -> bool:
        return not self.is_completed and self.page_ratio >= HIGH_PROGRESS_RATIO


@dataclass(frozen=True)
class ReadingSessionRecord:
    user_id: str
    book_id: str
    session_duration_seconds: float


@dataclass(frozen=True)
class QuizAttemptRecord:
    """A user's score on a book's comprehension quiz."""

    user_id: str
    book_id: str
    score: float
    total_questions: int

    @property
    def score_ratio(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.score / self.total_questions


@dataclass(frozen=True)
class QuizAnalyticsRecord:
    """Result of the personality quiz: the user's base trait profile."""

    user_id: str
    dominant_traits: tuple[str, ...]
    completed_at: datetime | None = None


@dataclass(frozen=True)
class Candidate:
    """Minimal projection of a visible book sent to the ranking oracle."""

    book_id: str
    title: str
    author: str
    traits: tuple[str, ...]
    age_rating: str | None
    description: str = ""


@dataclass(frozen=True)
class UserSignals:
    """Ranked trait (and tag) profile derived for one user.

    Attributes:
        top_traits: Up to *k* traits, strongest first.
        top_tags: Up to *k* tags, strongest first.
    """

    top_traits: tuple[str, ...] = ()
    top_tags: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.top_traits and not self.top_tags


@dataclass(frozen=True)
class TaggingResult:
    """Validated (tags, traits, age rating) triple for one book."""

    tags: tuple[str, ...]
    traits: tuple[str, ...]
    age_rating: str
    used_fallback: bool = False


@dataclass(frozen=True)
class QuizQuestion:
    """One multiple-choice comprehension question.

    Attributes:
        question: The question text.
        options: Exactly four answer options.
        correct_answer: Index into *options* of the right answer.
    """

    question: str
    options: tuple[str, ...]
    correct_answer: int


@dataclass(frozen=True)
class BookQuiz:
    """A generated quiz, stored once per book and shared by every reader."""

    book_id: str
    book_title: str
    questions: tuple[QuizQuestion, ...]
    created_at: datetime | None = None
    generated_by: str = "ai"
