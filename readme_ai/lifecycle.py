"""Rules deciding when a book enters (or re-enters) the tagging queue."""

from __future__ import annotations

from readme_ai.models import BookRecord


def has_usable_metadata(book: BookRecord) -> bool:
    """True when the book already carries at least one real trait and tag.

    Legacy uploads sometimes stored ``[""]``; blank labels do not count.
    """
    return any(t.strip() for t in book.traits) and any(t.strip() for t in book.tags)


def has_required_fields(book: BookRecord) -> bool:
    return bool(book.title and book.author and book.pdf_url)


def needs_tagging_on_create(book: BookRecord) -> bool:
    """Whether a newly created book should be flagged for tagging."""
    return has_required_fields(book) and not has_usable_metadata(book)


def needs_retag_on_update(before: BookRecord, after: BookRecord) -> bool:
    """Whether an update replaced the book's source PDF.

    A changed, non-empty ``pdf_url`` invalidates the previous tagging, so
    the caller clears traits and tags and flags the book again.
    """
    return bool(after.pdf_url) and before.pdf_url != after.pdf_url
