"""Signal store interface and the in-memory implementation."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from readme_ai.models import (
    BookQuiz,
    BookRecord,
    InteractionRecord,
    QuizAnalyticsRecord,
    QuizAttemptRecord,
    ReadingProgressRecord,
    ReadingSessionRecord,
    TaggingResult,
)


class SignalStore(ABC):
    """Abstract access to the user-signal collections and the book catalogue.

    Reads are filter-and-fetch queries keyed by user or book ID.  The only
    writes are the last-writer-wins updates made by the batch jobs
    (recommendations onto a user, tagging output and lifecycle flags onto a
    book, a generated quiz keyed by book), so implementations need no locking
    beyond what their backing store provides.
    """

    # ------------------------------------------------------------------
    # Per-user signal reads
    # ------------------------------------------------------------------

    @abstractmethod
    def list_interactions(self, user_id: str) -> list[InteractionRecord]:
        """Return every interaction record for *user_id*."""

    @abstractmethod
    def list_progress(self, user_id: str) -> list[ReadingProgressRecord]:
        """Return every reading-progress record for *user_id*."""

    @abstractmethod
    def list_sessions(self, user_id: str) -> list[ReadingSessionRecord]:
        """Return every reading-session record for *user_id*."""

    @abstractmethod
    def list_quiz_attempts(self, user_id: str) -> list[QuizAttemptRecord]:
        """Return every book-quiz attempt for *user_id*."""

    @abstractmethod
    def latest_quiz_analytics(self, user_id: str) -> QuizAnalyticsRecord | None:
        """Return the most recent personality-quiz result, or ``None``."""

    @abstractmethod
    def list_active_user_ids(self) -> list[str]:
        """Return unique IDs of users with at least one signal record."""

    # ------------------------------------------------------------------
    # Catalogue reads
    # ------------------------------------------------------------------

    @abstractmethod
    def get_book(self, book_id: str) -> BookRecord | None:
        """Return a single book, or ``None`` if it no longer exists."""

    @abstractmethod
    def list_books(self, visible_only: bool = False) -> list[BookRecord]:
        """Return the catalogue, optionally restricted to visible books."""

    @abstractmethod
    def list_books_needing_tagging(self) -> list[BookRecord]:
        """Return every book whose ``needs_tagging`` flag is set."""

    @abstractmethod
    def get_book_quiz(self, book_id: str) -> BookQuiz | None:
        """Return the cached comprehension quiz for *book_id*, or ``None``."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @abstractmethod
    def save_recommendations(
        self, user_id: str, book_ids: list[str], updated_at: datetime
    ) -> None:
        """Merge ``aiRecommendations`` and ``lastRecommendationUpdate`` onto the user."""

    @abstractmethod
    def save_book_tags(
        self, book_id: str, result: TaggingResult, tagged_at: datetime
    ) -> None:
        """Write validated tagging output and clear ``needs_tagging``."""

    @abstractmethod
    def save_book_quiz(self, quiz: BookQuiz) -> None:
        """Store *quiz* under its book ID, replacing any previous quiz."""

    @abstractmethod
    def flag_book_for_tagging(self, book_id: str, clear_metadata: bool = False) -> None:
        """Set ``needs_tagging`` and reset ``tagged_at``.

        Args:
            book_id: The book to flag.
            clear_metadata: Also empty the book's traits and tags (used when
                the source PDF changed).
        """


class InMemorySignalStore(SignalStore):
    """Thread-safe dict-backed :class:`SignalStore`.

    Used by the test suite and for local dry runs.  Record lists keep
    insertion order, which stands in for the document store's natural
    iteration order.
    """

    def __init__(self, books: Iterable[BookRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._books: dict[str, BookRecord] = {b.book_id: b for b in books}
        self._interactions: list[InteractionRecord] = []
        self._progress: list[ReadingProgressRecord] = []
        self._sessions: list[ReadingSessionRecord] = []
        self._quiz_attempts: list[QuizAttemptRecord] = []
        self._quiz_analytics: list[QuizAnalyticsRecord] = []
        self._quizzes: dict[str, BookQuiz] = {}
        self.users: dict[str, dict] = {}

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_book(self, book: BookRecord) -> None:
        with self._lock:
            self._books[book.book_id] = book

    def remove_book(self, book_id: str) -> None:
        with self._lock:
            self._books.pop(book_id, None)

    def add_records(self, *records: object) -> None:
        """Append signal records, dispatching on their type."""
        targets = {
            InteractionRecord: self._interactions,
            ReadingProgressRecord: self._progress,
            ReadingSessionRecord: self._sessions,
            QuizAttemptRecord: self._quiz_attempts,
            QuizAnalyticsRecord: self._quiz_analytics,
        }
        with self._lock:
            for record in records:
                try:
                    targets[type(record)].append(record)
                except KeyError:
                    raise TypeError(
                        f"Unsupported record type: {type(record).__name__}"
                    ) from None

    # ------------------------------------------------------------------
    # SignalStore
    # ------------------------------------------------------------------

    def list_interactions(self, user_id: str) -> list[InteractionRecord]:
        with self._lock:
            return [r for r in self._interactions if r.user_id == user_id]

    def list_progress(self, user_id: str) -> list[ReadingProgressRecord]:
        with self._lock:
            return [r for r in self._progress if r.user_id == user_id]

    def list_sessions(self, user_id: str) -> list[ReadingSessionRecord]:
        with self._lock:
            return [r for r in self._sessions if r.user_id == user_id]

    def list_quiz_attempts(self, user_id: str) -> list[QuizAttemptRecord]:
        with self._lock:
            return [r for r in self._quiz_attempts if r.user_id == user_id]

    def latest_quiz_analytics(self, user_id: str) -> QuizAnalyticsRecord | None:
        with self._lock:
            dated = [
                r for r in self._quiz_analytics
                if r.user_id == user_id and r.completed_at is not None
            ]
        if not dated:
            return None
        return max(dated, key=lambda r: r.completed_at)

    def list_active_user_ids(self) -> list[str]:
        with self._lock:
            collections = (
                self._progress,
                self._quiz_analytics,
                self._interactions,
                self._sessions,
                self._quiz_attempts,
            )
            seen: dict[str, None] = {}
            for records in collections:
                for record in records:
                    seen.setdefault(record.user_id, None)
        return list(seen)

    def get_book(self, book_id: str) -> BookRecord | None:
        with self._lock:
            return self._books.get(book_id)

    def list_books(self, visible_only: bool = False) -> list[BookRecord]:
        with self._lock:
            books = list(self._books.values())
        if visible_only:
            return [b for b in books if b.is_visible]
        return books

    def list_books_needing_tagging(self) -> list[BookRecord]:
        with self._lock:
            return [b for b in self._books.values() if b.needs_tagging]

    def get_book_quiz(self, book_id: str) -> BookQuiz | None:
        with self._lock:
            return self._quizzes.get(book_id)

    def save_recommendations(
        self, user_id: str, book_ids: list[str], updated_at: datetime
    ) -> None:
        with self._lock:
            user = self.users.setdefault(user_id, {})
            user["aiRecommendations"] = list(book_ids)
            user["lastRecommendationUpdate"] = updated_at

    def save_book_tags(
        self, book_id: str, result: TaggingResult, tagged_at: datetime
    ) -> None:
        with self._lock:
            book = self._books.get(book_id)
            if book is None:
                raise KeyError(book_id)
            self._books[book_id] = replace(
                book,
                tags=list(result.tags),
                traits=list(result.traits),
                age_rating=result.age_rating,
                needs_tagging=False,
                tagged_at=tagged_at,
            )

    def save_book_quiz(self, quiz: BookQuiz) -> None:
        with self._lock:
            self._quizzes[quiz.book_id] = quiz

    def flag_book_for_tagging(self, book_id: str, clear_metadata: bool = False) -> None:
        with self._lock:
            book = self._books.get(book_id)
            if book is None:
                raise KeyError(book_id)
            changes: dict = {"needs_tagging": True, "tagged_at": None}
            if clear_metadata:
                changes.update(traits=[], tags=[])
            self._books[book_id] = replace(book, **changes)
