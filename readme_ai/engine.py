"""Batch jobs: per-user recommendation runs and per-book tagging runs."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from readme_ai.aggregator import SignalAggregator
from readme_ai.catalogue import BookCatalogue
from readme_ai.lifecycle import needs_retag_on_update, needs_tagging_on_create
from readme_ai.models import BookRecord, Candidate, TaggingResult
from readme_ai.recommendations import RecommendationAdapter
from readme_ai.store import SignalStore
from readme_ai.tagging import TaggingPipeline

logger = logging.getLogger(__name__)

# Extracts the text of a book's source document (PDF download + parse).
TextSource = Callable[[BookRecord], str]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def directory_text_source(root: str | Path) -> TextSource:
    """Return a :data:`TextSource` reading ``<root>/<book_id>.txt``.

    The files are produced by the PDF extraction step, which runs outside
    this package.  A missing file raises ``FileNotFoundError``.
    """
    base = Path(root)

    def read(book: BookRecord) -> str:
        return (base / f"{book.book_id}.txt").read_text(encoding="utf-8")

    return read


@dataclass
class JobSummary:
    """Outcome of one batch run.

    Attributes:
        processed: IDs handled successfully, in completion order.
        failed: IDs whose processing raised or was abandoned.
    """

    processed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.processed) + len(self.failed)


class RecommendationJob:
    """Aggregates signals, asks the oracle for a ranking and persists it.

    Args:
        store: Where recommendations are written and active users are found.
        catalogue: Source of candidate books.
        aggregator: Builds each user's trait profile.
        adapter: Ranks candidates for a profile.
        clock: Timestamp source for ``lastRecommendationUpdate``.
        max_workers: Users processed concurrently by :meth:`run_all`.
    """

    def __init__(
        self,
        store: SignalStore,
        catalogue: BookCatalogue,
        aggregator: SignalAggregator,
        adapter: RecommendationAdapter,
        clock: Clock = utc_now,
        max_workers: int = 4,
    ) -> None:
        self._store = store
        self._catalogue = catalogue
        self._aggregator = aggregator
        self._adapter = adapter
        self._clock = clock
        self._max_workers = max_workers

    def run_for_user(
        self, user_id: str, candidates: list[Candidate] | None = None
    ) -> list[str]:
        """Recommend for one user and persist the (possibly empty) list.

        Args:
            user_id: The user to recommend for. Must be non-empty.
            candidates: Candidate set to rank; defaults to the catalogue's
                current visible books.

        Returns:
            The persisted list of book IDs.

        Raises:
            ValueError: If *user_id* is empty.
        """
        if not user_id:
            raise ValueError("user_id must be non-empty")
        if candidates is None:
            candidates = self._catalogue.list_candidates()

        signals = self._aggregator.aggregate_signals(user_id)
        if signals.is_empty:
            logger.info("No usable signals for user %r; ranking without a profile", user_id)
        book_ids = self._adapter.recommend(signals.top_traits, candidates, signals.top_tags)
        self._store.save_recommendations(user_id, book_ids, self._clock())
        logger.info("Saved %d recommendation(s) for user %r", len(book_ids), user_id)
        return book_ids

    def run_all(self) -> JobSummary:
        """Refresh the catalogue and run :meth:`run_for_user` for every active user.

        A failure for one user is logged and counted; it never stops the run.
        """
        self._catalogue.refresh()
        candidates = self._catalogue.list_candidates()
        user_ids = self._store.list_active_user_ids()
        logger.info(
            "Recommending for %d user(s) against %d candidate book(s)",
            len(user_ids), len(candidates),
        )

        summary = JobSummary()

        def run_one(user_id: str) -> None:
            try:
                self.run_for_user(user_id, candidates)
            except Exception:
                logger.exception("Error processing recommendations for user %r", user_id)
                summary.failed.append(user_id)
            else:
                summary.processed.append(user_id)

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            list(pool.map(run_one, user_ids))

        logger.info(
            "Recommendations completed: %d/%d users", len(summary.processed), summary.total
        )
        return summary


class TaggingJob:
    """Runs the tagging pipeline over flagged books and persists the results.

    Args:
        store: Where flagged books are read and results written.
        pipeline: The :class:`~readme_ai.tagging.TaggingPipeline`.
        text_source: Returns the extracted text for a book.
        clock: Timestamp source for ``taggedAt``.
        max_workers: Books processed concurrently by :meth:`run_pending`.
    """

    def __init__(
        self,
        store: SignalStore,
        pipeline: TaggingPipeline,
        text_source: TextSource,
        clock: Clock = utc_now,
        max_workers: int = 4,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._text_source = text_source
        self._clock = clock
        self._max_workers = max_workers

    def tag_one(self, book: BookRecord) -> TaggingResult | None:
        """Tag a single book and persist the result.

        If the book's text cannot be obtained the book is left flagged for a
        later run and ``None`` is returned.  Oracle failures do not count:
        the pipeline always yields a valid triple.

        Raises:
            ValueError: If the book has no ID.
        """
        if not book.book_id:
            raise ValueError("book_id must be non-empty")
        try:
            text = self._text_source(book)
        except Exception:
            logger.exception("Could not extract text for %r (%s)", book.title, book.book_id)
            return None

        result = self._pipeline.tag_book(book.title, book.author, text, book.description)
        self._store.save_book_tags(book.book_id, result, self._clock())
        logger.info(
            "Tagged %r: tags=%s traits=%s age=%s",
            book.title, list(result.tags), list(result.traits), result.age_rating,
        )
        return result

    def run_pending(self) -> JobSummary:
        """Tag every book whose ``needs_tagging`` flag is set."""
        books = self._store.list_books_needing_tagging()
        logger.info("Found %d book(s) needing tagging", len(books))
        summary = JobSummary()

        def run_one(book: BookRecord) -> None:
            try:
                result = self.tag_one(book)
            except Exception:
                logger.exception("Error tagging book %r", book.book_id)
                result = None
            if result is None:
                summary.failed.append(book.book_id)
            else:
                summary.processed.append(book.book_id)

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            list(pool.map(run_one, books))

        logger.info("Tagging completed: %d/%d books", len(summary.processed), summary.total)
        return summary

    # ------------------------------------------------------------------
    # Catalogue change hooks
    # ------------------------------------------------------------------

    def on_book_created(self, book: BookRecord) -> bool:
        """Flag a new book for tagging when it is complete but untagged.

        Returns:
            ``True`` if the book was flagged.
        """
        if not needs_tagging_on_create(book):
            logger.info("Book %r not flagged for tagging", book.title)
            return False
        self._store.flag_book_for_tagging(book.book_id)
        logger.info("Flagged %r for tagging", book.title)
        return True

    def on_book_updated(self, before: BookRecord, after: BookRecord) -> bool:
        """Re-flag a book whose PDF changed, clearing its old traits and tags.

        Returns:
            ``True`` if the book was re-flagged.
        """
        if not needs_retag_on_update(before, after):
            return False
        self._store.flag_book_for_tagging(after.book_id, clear_metadata=True)
        logger.info("Re-flagged %r for tagging after PDF change", after.title)
        return True
