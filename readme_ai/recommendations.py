"""Recommendation oracle adapter and the validator applied to its output."""

from __future__ import annotations

import logging
from typing import Iterable

from readme_ai.models import Candidate
from readme_ai.oracle import Oracle, OracleParams, extract_json_array
from readme_ai.prompts import RECOMMEND_SYSTEM_PROMPT, build_recommendation_prompt

logger = logging.getLogger(__name__)


def validate_recommendations(raw_ids: Iterable[object], candidate_ids: Iterable[str]) -> list[str]:
    """Filter oracle output down to legal, unique candidate IDs.

    Keeps only IDs present in *candidate_ids*, drops repeats (first
    occurrence wins) and never reorders.  Any length, including zero, is a
    valid result.

    Args:
        raw_ids: IDs in the order the oracle returned them.
        candidate_ids: IDs of the candidates offered to the oracle this run.

    Returns:
        Filtered list of book IDs, oracle order preserved.
    """
    allowed = set(candidate_ids)
    seen: set[str] = set()
    out: list[str] = []
    for book_id in raw_ids:
        if not isinstance(book_id, str) or book_id not in allowed or book_id in seen:
            continue
        seen.add(book_id)
        out.append(book_id)
    return out


class RecommendationAdapter:
    """Asks the oracle to rank candidates for a trait profile.

    Args:
        oracle: The text-completion oracle.
        temperature: Sampling temperature for ranking calls.
        max_tokens: Output cap for ranking calls.
    """

    def __init__(
        self,
        oracle: Oracle,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._oracle = oracle
        self._params = OracleParams(
            system_prompt=RECOMMEND_SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def recommend(
        self,
        top_traits: tuple[str, ...] | list[str],
        candidates: list[Candidate],
        top_tags: tuple[str, ...] | list[str] = (),
    ) -> list[str]:
        """Return an ordered, validated list of recommended book IDs.

        Oracle failures (unreachable, timeout, no array in the reply,
        invalid JSON) are logged and yield ``[]``; an empty recommendation
        list is a normal outcome, not an error.

        Args:
            top_traits: The user's strongest traits, best first.
            candidates: Visible books eligible for this run.
            top_tags: Optional strongest tags, best first.

        Returns:
            Book IDs drawn from *candidates*, in oracle order, without repeats.
        """
        if not candidates:
            logger.info("No candidate books; skipping oracle call.")
            return []

        prompt = build_recommendation_prompt(top_traits, candidates, top_tags)
        logger.debug("Recommendation prompt: %s", prompt)
        try:
            reply = self._oracle.complete(prompt, self._params)
        except Exception:
            logger.exception("Recommendation oracle call failed")
            return []

        raw_ids = extract_json_array(reply)
        if raw_ids is None:
            logger.warning("Could not parse a JSON array from oracle reply; returning no recommendations.")
            return []

        valid = validate_recommendations(raw_ids, (c.book_id for c in candidates))
        if len(valid) != len(raw_ids):
            logger.info(
                "Dropped %d invalid or repeated book ID(s) from oracle output.",
                len(raw_ids) - len(valid),
            )
        return valid
