"""Signal aggregator: turns one user's reading behaviour into a ranked trait profile."""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from readme_ai.models import (
    LONG_SESSION_SECONDS,
    QUIZ_SCORE_RATIO,
    BookRecord,
    InteractionRecord,
    InteractionType,
    QuizAnalyticsRecord,
    QuizAttemptRecord,
    ReadingProgressRecord,
    ReadingSessionRecord,
    UserSignals,
)
from readme_ai.store import SignalStore
from readme_ai.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

# A book needs this many long sessions before sustained engagement counts.
_MIN_LONG_SESSIONS = 2


@dataclass(frozen=True)
class SignalWeights:
    """Per-occurrence weight added to a book's traits for each kind of signal.

    The exact values are tunable; the relative ordering is not:

    ==============  ======  =============================================
    Signal          Weight  Meaning
    ==============  ======  =============================================
    favorite        3.0     Favorited or bookmarked the book
    reread          2.5     Second and later completion of the same book
    completed       2.0     First completion of a book
    quiz_score      2.0     Scored at least 80% on the book's quiz
    session         1.0     Two or more reading sessions of 30+ minutes
    high_progress   1.0     Unfinished, but at least 70% of pages read
    quiz_prior      0.5     Dominant trait from the personality quiz
    ==============  ======  =============================================

    Raises:
        ValueError: If the weights break the required ordering.
    """

    favorite: float = 3.0
    reread: float = 2.5
    completed: float = 2.0
    quiz_score: float = 2.0
    session: float = 1.0
    high_progress: float = 1.0
    quiz_prior: float = 0.5

    def __post_init__(self) -> None:
        behavioural = (
            self.reread, self.completed, self.quiz_score, self.session, self.high_progress,
        )
        if not self.favorite > max(behavioural):
            raise ValueError("favorite weight must exceed every other weight")
        if not self.reread > self.completed:
            raise ValueError("reread weight must exceed completed weight")
        if not min(self.completed, self.quiz_score) > max(self.session, self.high_progress):
            raise ValueError(
                "completed and quiz_score weights must exceed session and high_progress weights"
            )
        if not 0 < self.quiz_prior < min(behavioural):
            raise ValueError("quiz_prior weight must be positive and below every behavioural weight")


DEFAULT_WEIGHTS = SignalWeights()


@dataclass
class SignalScores:
    """Accumulated weights for one user, built fresh on every pass.

    Dicts keep first-insertion order, which is what breaks ties in
    :func:`top_k`.
    """

    trait_scores: dict[str, float] = field(default_factory=dict)
    tag_scores: dict[str, float] = field(default_factory=dict)

    def add_traits(self, traits: list[str] | tuple[str, ...], weight: float) -> None:
        for trait in traits:
            self.trait_scores[trait] = self.trait_scores.get(trait, 0.0) + weight

    def add_tags(self, tags: list[str] | tuple[str, ...], weight: float) -> None:
        for tag in tags:
            self.tag_scores[tag] = self.tag_scores.get(tag, 0.0) + weight


class SignalAggregator:
    """Aggregates favourites, completions, progress, quizzes and sessions.

    Each call reads the user's five signal collections concurrently, then
    fetches the referenced books (deduplicated) in a second concurrent stage,
    and accumulates each book's traits and tags with the weight of the signal
    that referenced it.  Books missing from the catalogue are skipped.

    Args:
        store: Source of signal records and book metadata.
        vocabulary: Traits/tags outside this vocabulary are ignored.
        weights: Per-signal weights.
        top_k: Length cap for ``top_traits`` and ``top_tags``.
        max_workers: Thread pool size for the concurrent reads.
    """

    def __init__(
        self,
        store: SignalStore,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
        weights: SignalWeights = DEFAULT_WEIGHTS,
        top_k: int = 5,
        max_workers: int = 8,
    ) -> None:
        self._store = store
        self._vocabulary = vocabulary
        self._weights = weights
        self._top_k = top_k
        self._max_workers = max_workers

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def aggregate_signals(self, user_id: str) -> UserSignals:
        """Return the user's top traits and tags, strongest first.

        Never raises: any store error is logged and yields an empty profile
        so the recommendation step can still run.

        Args:
            user_id: The user to profile.

        Returns:
            :class:`~readme_ai.models.UserSignals` with at most ``top_k``
            traits and tags.  Ties keep first-encountered order.
        """
        try:
            scores = self.compute_scores(user_id)
        except Exception:
            logger.exception("Error aggregating signals for user=%r", user_id)
            return UserSignals()

        signals = UserSignals(
            top_traits=top_k(scores.trait_scores, self._top_k),
            top_tags=top_k(scores.tag_scores, self._top_k),
        )
        logger.info("User %r top traits: %s", user_id, list(signals.top_traits))
        return signals

    def compute_scores(self, user_id: str) -> SignalScores:
        """Build the full trait and tag weight maps for *user_id*.

        Unlike :meth:`aggregate_signals` this propagates store errors.
        """
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            quiz_future = pool.submit(self._store.latest_quiz_analytics, user_id)
            interactions_future = pool.submit(self._store.list_interactions, user_id)
            progress_future = pool.submit(self._store.list_progress, user_id)
            attempts_future = pool.submit(self._store.list_quiz_attempts, user_id)
            sessions_future = pool.submit(self._store.list_sessions, user_id)

            quiz = quiz_future.result()
            contributions = self._book_contributions(
                interactions_future.result(),
                progress_future.result(),
                attempts_future.result(),
                sessions_future.result(),
            )

            book_ids = list(dict.fromkeys(book_id for book_id, _ in contributions))
            books = dict(zip(book_ids, pool.map(self._store.get_book, book_ids)))

        scores = SignalScores()
        self._apply_quiz_prior(scores, quiz)

        missing: set[str] = set()
        for book_id, weight in contributions:
            book = books.get(book_id)
            if book is None:
                missing.add(book_id)
                continue
            self._apply_book(scores, book, weight)
        if missing:
            logger.debug(
                "Skipped %d signal book(s) missing from catalogue for user=%r: %s",
                len(missing), user_id, sorted(missing),
            )
        return scores

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _book_contributions(
        self,
        interactions: list[InteractionRecord],
        progress: list[ReadingProgressRecord],
        attempts: list[QuizAttemptRecord],
        sessions: list[ReadingSessionRecord],
    ) -> list[tuple[str, float]]:
        """Return ``(book_id, weight)`` pairs in signal order."""
        w = self._weights
        out: list[tuple[str, float]] = []

        positive = InteractionType.positive()
        out.extend((r.book_id, w.favorite) for r in interactions if r.type in positive)

        completions: Counter[str] = Counter()
        for record in progress:
            if record.is_completed:
                completions[record.book_id] += 1
                weight = w.completed if completions[record.book_id] == 1 else w.reread
                out.append((record.book_id, weight))

        out.extend((r.book_id, w.high_progress) for r in progress if r.is_high_progress)

        out.extend(
            (r.book_id, w.quiz_score) for r in attempts if r.score_ratio >= QUIZ_SCORE_RATIO
        )

        long_sessions: Counter[str] = Counter(
            s.book_id for s in sessions if s.session_duration_seconds >= LONG_SESSION_SECONDS
        )
        out.extend(
            (book_id, w.session)
            for book_id, count in long_sessions.items()
            if count >= _MIN_LONG_SESSIONS
        )

        return out

    def _apply_quiz_prior(self, scores: SignalScores, quiz: QuizAnalyticsRecord | None) -> None:
        if quiz is None:
            return
        scores.add_traits(self._vocabulary.filter_traits(quiz.dominant_traits), self._weights.quiz_prior)

    def _apply_book(self, scores: SignalScores, book: BookRecord, weight: float) -> None:
        scores.add_traits(self._vocabulary.filter_traits(book.traits), weight)
        scores.add_tags(self._vocabulary.filter_tags(book.tags), weight)


def top_k(scores: dict[str, float], k: int) -> tuple[str, ...]:
    """Return the *k* highest-weighted keys of *scores*.

    The sort is stable, so equal weights keep dict insertion order (the
    first-encountered label wins).  That order depends on signal read order
    and is not a global determinism guarantee.
    """
    if not scores or k <= 0:
        return ()
    labels = list(scores)
    weights = np.fromiter(scores.values(), dtype=np.float64, count=len(labels))
    order = np.argsort(-weights, kind="stable")[:k]
    return tuple(labels[i] for i in order)
