"""
Firestore-backed signal store.

Collections read:
    book_interactions   { userId, bookId, type }
    reading_progress    { userId, bookId, isCompleted, currentPage, totalPages }
    reading_sessions    { userId, bookId, sessionDurationSeconds }
    quiz_results        { userId, bookId, score, totalQuestions }
    quiz_analytics      { userId, dominantTraits, completedAt }
    books               { title, author, traits, tags, ageRating, isVisible, ... }
    book_quizzes        { bookId, bookTitle, questions, createdAt, generatedBy }

Collections written:
    users/{userId}      { aiRecommendations, lastRecommendationUpdate }  (merge)
    books/{bookId}      { tags, traits, ageRating, needsTagging, taggedAt }
    book_quizzes/{bookId}  (whole document, as read above)
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from readme_ai.models import (
    BookQuiz,
    BookRecord,
    InteractionRecord,
    QuizAnalyticsRecord,
    QuizAttemptRecord,
    QuizQuestion,
    ReadingProgressRecord,
    ReadingSessionRecord,
    TaggingResult,
)
from readme_ai.store import SignalStore

logger = logging.getLogger(__name__)

INTERACTIONS = "book_interactions"
PROGRESS = "reading_progress"
SESSIONS = "reading_sessions"
QUIZ_RESULTS = "quiz_results"
QUIZ_ANALYTICS = "quiz_analytics"
BOOKS = "books"
BOOK_QUIZZES = "book_quizzes"
USERS = "users"

# Collections scanned (userId only) to find users worth recommending for.
_ACTIVITY_COLLECTIONS = (PROGRESS, QUIZ_ANALYTICS, INTERACTIONS, SESSIONS, QUIZ_RESULTS)


class FirestoreSignalStore(SignalStore):
    """
    :class:`SignalStore` over a Firestore client.

    The client is injected so tests can pass a mock; use
    :meth:`from_credentials` to build one from a service-account file.
    """

    def __init__(self, client: Any):
        self._db = client

    @classmethod
    def from_credentials(
        cls,
        credentials_path: Optional[Union[Path, str]] = None,
        project_id: Optional[str] = None,
    ) -> "FirestoreSignalStore":
        """Initialise the default Firebase app (once) and return a store on it."""
        import firebase_admin
        from firebase_admin import credentials, firestore

        if not firebase_admin._apps:
            opts = {"projectId": project_id} if project_id else None
            if credentials_path:
                cred = credentials.Certificate(str(Path(credentials_path).resolve()))
                firebase_admin.initialize_app(cred, opts)
            else:
                firebase_admin.initialize_app(options=opts)
        return cls(firestore.client())

    # ------------------------------------------------------------------
    # Per-user signal reads
    # ------------------------------------------------------------------

    def list_interactions(self, user_id: str) -> list[InteractionRecord]:
        out = []
        for d in self._by_user(INTERACTIONS, user_id):
            book_id = d.get("bookId")
            if not book_id:
                continue
            # Older app builds wrote the interaction kind under "action".
            kind = d.get("type") or d.get("action") or ""
            out.append(InteractionRecord(user_id=user_id, book_id=book_id, type=kind))
        return out

    def list_progress(self, user_id: str) -> list[ReadingProgressRecord]:
        out = []
        for d in self._by_user(PROGRESS, user_id):
            book_id = d.get("bookId")
            if not book_id:
                continue
            out.append(
                ReadingProgressRecord(
                    user_id=user_id,
                    book_id=book_id,
                    is_completed=bool(d.get("isCompleted", False)),
                    current_page=_as_int(d.get("currentPage")),
                    total_pages=_as_int(d.get("totalPages")),
                )
            )
        return out

    def list_sessions(self, user_id: str) -> list[ReadingSessionRecord]:
        out = []
        for d in self._by_user(SESSIONS, user_id):
            book_id = d.get("bookId")
            if not book_id:
                continue
            out.append(
                ReadingSessionRecord(
                    user_id=user_id,
                    book_id=book_id,
                    session_duration_seconds=_as_float(d.get("sessionDurationSeconds")),
                )
            )
        return out

    def list_quiz_attempts(self, user_id: str) -> list[QuizAttemptRecord]:
        out = []
        for d in self._by_user(QUIZ_RESULTS, user_id):
            book_id = d.get("bookId")
            if not book_id:
                continue
            out.append(
                QuizAttemptRecord(
                    user_id=user_id,
                    book_id=book_id,
                    score=_as_float(d.get("score")),
                    total_questions=_as_int(d.get("totalQuestions")),
                )
            )
        return out

    def latest_quiz_analytics(self, user_id: str) -> QuizAnalyticsRecord | None:
        from firebase_admin import firestore

        query = (
            self._db.collection(QUIZ_ANALYTICS)
            .where("userId", "==", user_id)
            .order_by("completedAt", direction=firestore.Query.DESCENDING)
            .limit(1)
        )
        for doc in query.stream():
            d = doc.to_dict() or {}
            traits = d.get("dominantTraits") or []
            return QuizAnalyticsRecord(
                user_id=user_id,
                dominant_traits=tuple(t for t in traits if isinstance(t, str)),
                completed_at=_as_datetime(d.get("completedAt")),
            )
        return None

    def list_active_user_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for name in _ACTIVITY_COLLECTIONS:
            for doc in self._db.collection(name).select(["userId"]).stream():
                user_id = (doc.to_dict() or {}).get("userId")
                if user_id:
                    seen.setdefault(user_id, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Catalogue reads
    # ------------------------------------------------------------------

    def get_book(self, book_id: str) -> BookRecord | None:
        doc = self._db.collection(BOOKS).document(book_id).get()
        if not doc.exists:
            return None
        return _book_from_doc(doc.id, doc.to_dict() or {})

    def list_books(self, visible_only: bool = False) -> list[BookRecord]:
        query = self._db.collection(BOOKS)
        if visible_only:
            query = query.where("isVisible", "==", True)
        return [_book_from_doc(doc.id, doc.to_dict() or {}) for doc in query.stream()]

    def list_books_needing_tagging(self) -> list[BookRecord]:
        query = self._db.collection(BOOKS).where("needsTagging", "==", True)
        return [_book_from_doc(doc.id, doc.to_dict() or {}) for doc in query.stream()]

    def get_book_quiz(self, book_id: str) -> BookQuiz | None:
        doc = self._db.collection(BOOK_QUIZZES).document(book_id).get()
        if not doc.exists:
            return None
        return _quiz_from_doc(doc.id, doc.to_dict() or {})

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_recommendations(
        self, user_id: str, book_ids: list[str], updated_at: datetime
    ) -> None:
        self._db.collection(USERS).document(user_id).set(
            {
                "aiRecommendations": list(book_ids),
                "lastRecommendationUpdate": updated_at,
            },
            merge=True,
        )

    def save_book_tags(
        self, book_id: str, result: TaggingResult, tagged_at: datetime
    ) -> None:
        self._db.collection(BOOKS).document(book_id).update(
            {
                "tags": list(result.tags),
                "traits": list(result.traits),
                "ageRating": result.age_rating,
                "needsTagging": False,
                "taggedAt": tagged_at,
            }
        )

    def save_book_quiz(self, quiz: BookQuiz) -> None:
        self._db.collection(BOOK_QUIZZES).document(quiz.book_id).set(
            {
                "bookId": quiz.book_id,
                "bookTitle": quiz.book_title,
                "questions": [
                    {
                        "question": q.question,
                        "options": list(q.options),
                        "correctAnswer": q.correct_answer,
                    }
                    for q in quiz.questions
                ],
                "createdAt": quiz.created_at,
                "generatedBy": quiz.generated_by,
            }
        )

    def flag_book_for_tagging(self, book_id: str, clear_metadata: bool = False) -> None:
        update: dict[str, Any] = {"needsTagging": True, "taggedAt": None}
        if clear_metadata:
            update["traits"] = []
            update["tags"] = []
        self._db.collection(BOOKS).document(book_id).update(update)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _by_user(self, collection: str, user_id: str) -> list[dict]:
        query = self._db.collection(collection).where("userId", "==", user_id)
        return [doc.to_dict() or {} for doc in query.stream()]


def _book_from_doc(book_id: str, d: dict) -> BookRecord:
    return BookRecord(
        book_id=book_id,
        title=d.get("title") or "",
        author=d.get("author") or "",
        traits=[t for t in d.get("traits") or [] if isinstance(t, str) and t],
        tags=[t for t in d.get("tags") or [] if isinstance(t, str) and t],
        age_rating=d.get("ageRating") or None,
        is_visible=bool(d.get("isVisible", False)),
        pdf_url=d.get("pdfUrl") or None,
        needs_tagging=bool(d.get("needsTagging", False)),
        description=d.get("description") or "",
        tagged_at=_as_datetime(d.get("taggedAt")),
    )


def _quiz_from_doc(book_id: str, d: dict) -> BookQuiz:
    questions = []
    for q in d.get("questions") or []:
        if not isinstance(q, dict):
            continue
        questions.append(
            QuizQuestion(
                question=str(q.get("question") or ""),
                options=tuple(str(o) for o in q.get("options") or []),
                correct_answer=_as_int(q.get("correctAnswer")),
            )
        )
    return BookQuiz(
        book_id=d.get("bookId") or book_id,
        book_title=d.get("bookTitle") or "",
        questions=tuple(questions),
        created_at=_as_datetime(d.get("createdAt")),
        generated_by=d.get("generatedBy") or "ai",
    )

def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_datetime(value: Any) -> Optional[datetime]:
    """Firestore timestamps arrive as datetimes; tolerate ISO strings too."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
    return None
