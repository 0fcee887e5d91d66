"""Entry point: wires all components and runs one batch job.

Usage::

    python main.py recommend              # every user with reading activity
    python main.py recommend --user UID   # a single user
    python main.py tag --text-dir texts/  # every book flagged needsTagging
    python main.py quiz --book BID --text-dir texts/  # one book's comprehension quiz
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import config
from readme_ai.aggregator import SignalAggregator
from readme_ai.catalogue import BookCatalogue
from readme_ai.engine import RecommendationJob, TaggingJob, directory_text_source
from readme_ai.firestore_store import FirestoreSignalStore
from readme_ai.oracle import OpenAIOracle
from readme_ai.quiz import QuizGenerationError, QuizGenerator
from readme_ai.recommendations import RecommendationAdapter
from readme_ai.store import SignalStore
from readme_ai.tagging import TaggingPipeline
from readme_ai.vocabulary import DEFAULT_VOCABULARY

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_recommendation_job(
    store: SignalStore, catalogue: BookCatalogue
) -> RecommendationJob:
    """Construct a :class:`RecommendationJob` with all dependencies wired.

    Args:
        store: The signal store to read from and write to.
        catalogue: Candidate source; refreshed by the job on full runs.

    Returns:
        A ready-to-run :class:`~readme_ai.engine.RecommendationJob`.
    """
    oracle = OpenAIOracle(
        model=config.OPENAI_MODEL_RECOMMEND,
        timeout_seconds=config.ORACLE_TIMEOUT_SECONDS,
    )
    return RecommendationJob(
        store=store,
        catalogue=catalogue,
        aggregator=SignalAggregator(
            store,
            vocabulary=DEFAULT_VOCABULARY,
            top_k=config.TOP_TRAITS_LIMIT,
            max_workers=config.AGGREGATOR_MAX_WORKERS,
        ),
        adapter=RecommendationAdapter(
            oracle,
            temperature=config.RECOMMEND_TEMPERATURE,
            max_tokens=config.RECOMMEND_MAX_TOKENS,
        ),
        max_workers=config.JOB_MAX_WORKERS,
    )


def build_tagging_job(store: SignalStore, text_dir: str) -> TaggingJob:
    """Construct a :class:`TaggingJob` reading extracted text from *text_dir*."""
    oracle = OpenAIOracle(
        model=config.OPENAI_MODEL_TAGGING,
        timeout_seconds=config.ORACLE_TIMEOUT_SECONDS,
    )
    pipeline = TaggingPipeline(
        oracle,
        vocabulary=DEFAULT_VOCABULARY,
        temperature=config.TAGGING_TEMPERATURE,
        max_tokens=config.TAGGING_MAX_TOKENS,
    )
    return TaggingJob(
        store=store,
        pipeline=pipeline,
        text_source=directory_text_source(text_dir),
        max_workers=config.JOB_MAX_WORKERS,
    )


def build_quiz_generator(store: SignalStore, text_dir: str) -> QuizGenerator:
    """Construct a :class:`QuizGenerator` reading extracted text from *text_dir*."""
    oracle = OpenAIOracle(
        model=config.OPENAI_MODEL_QUIZ,
        timeout_seconds=config.ORACLE_TIMEOUT_SECONDS,
    )
    return QuizGenerator(
        store=store,
        oracle=oracle,
        text_source=directory_text_source(text_dir),
        temperature=config.QUIZ_TEMPERATURE,
        max_tokens=config.QUIZ_MAX_TOKENS,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reading-app AI batch jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    rec = sub.add_parser("recommend", help="Generate AI book recommendations")
    rec.add_argument("--user", help="Only this user ID (default: all active users)")

    tag = sub.add_parser("tag", help="Tag books flagged needsTagging")
    tag.add_argument(
        "--text-dir",
        required=True,
        help="Directory holding <bookId>.txt files extracted from each book's PDF",
    )

    quiz = sub.add_parser("quiz", help="Generate (or fetch the cached) quiz for one book")
    quiz.add_argument("--book", required=True, help="Book ID")
    quiz.add_argument(
        "--text-dir",
        required=True,
        help="Directory holding <bookId>.txt files extracted from each book's PDF",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the requested job and return a process exit code.

    Startup sequence:
    1. Check the OpenAI key is configured.
    2. Connect to Firestore.
    3. Build and run the job.
    """
    args = parse_args(argv)

    if not os.getenv("OPENAI_API_KEY"):
        logger.error("OPENAI_API_KEY environment variable is required")
        return 2

    logger.info("Connecting to Firestore (project=%s)", config.FIREBASE_PROJECT_ID or "default")
    store = FirestoreSignalStore.from_credentials(
        credentials_path=config.FIREBASE_CREDENTIALS_PATH,
        project_id=config.FIREBASE_PROJECT_ID,
    )

    if args.command == "recommend":
        catalogue = BookCatalogue(store)
        job = build_recommendation_job(store, catalogue)
        if args.user:
            catalogue.refresh()
            job.run_for_user(args.user)
            return 0
        summary = job.run_all()
    elif args.command == "tag":
        summary = build_tagging_job(store, args.text_dir).run_pending()
    else:
        try:
            quiz, cached = build_quiz_generator(store, args.text_dir).get_or_create(args.book)
        except (LookupError, OSError, QuizGenerationError):
            logger.exception("Quiz generation failed for book %r", args.book)
            return 1
        logger.info(
            "Quiz for %r: %d question(s)%s",
            quiz.book_title, len(quiz.questions), " (cached)" if cached else "",
        )
        return 0

    return 0 if not summary.failed else 1


if __name__ == "__main__":
    sys.exit(main())
