"""Book catalogue: caches visible books from the signal store and projects candidates."""

from __future__ import annotations

import logging
import threading

from readme_ai.models import BookRecord, Candidate
from readme_ai.store import SignalStore

logger = logging.getLogger(__name__)

# Candidate descriptions are trimmed before they reach the ranking prompt.
_DESCRIPTION_LIMIT = 100


class BookCatalogue:
    """Snapshot of the visible catalogue used to select recommendation candidates.

    The snapshot is loaded by :meth:`refresh`, normally once at the start of a
    batch run so every user in the run is ranked against the same candidate
    set.  All public methods are thread-safe.

    Args:
        store: The :class:`~readme_ai.store.SignalStore` holding the books.
    """

    def __init__(self, store: SignalStore) -> None:
        self._store = store
        self._lock = threading.RLock()
        self._books: list[BookRecord] = []

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Reload the visible books from the store.

        On failure, logs an error and preserves the existing snapshot so a
        batch run can continue with slightly stale data.
        """
        try:
            books = self._store.list_books(visible_only=True)
            with self._lock:
                self._books = list(books)
            logger.info("Book catalogue refreshed: %d visible books loaded.", len(books))
        except Exception:
            logger.exception(
                "Failed to refresh book catalogue; keeping existing %d books.",
                len(self._books),
            )

    def list_candidates(self) -> list[Candidate]:
        """Return every visible book stripped to the fields used for ranking.

        No ranking happens here; the order is catalogue order.
        """
        with self._lock:
            books = list(self._books)
        return [to_candidate(b) for b in books]


def to_candidate(book: BookRecord) -> Candidate:
    """Project *book* onto the minimal :class:`Candidate` shape."""
    return Candidate(
        book_id=book.book_id,
        title=book.title,
        author=book.author,
        traits=tuple(book.traits),
        age_rating=book.age_rating,
        description=(book.description or "")[:_DESCRIPTION_LIMIT],
    )
