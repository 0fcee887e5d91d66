"""Tagging pipeline: extracted book text -> validated (tags, traits, age rating)."""

from __future__ import annotations

import logging
import random

from readme_ai.models import TaggingResult
from readme_ai.oracle import Oracle, OracleParams, extract_json_object
from readme_ai.prompts import TAGGING_SYSTEM_PROMPT, build_tagging_prompt
from readme_ai.vocabulary import DEFAULT_VOCABULARY, Vocabulary

logger = logging.getLogger(__name__)

# Extracted text is capped before it reaches the pipeline's prompt builder.
MAX_TEXT_CHARS = 8000


class TaggingPipeline:
    """Classifies a book against the fixed vocabularies via the oracle.

    Every field of the oracle's reply is filtered against *vocabulary*.
    A field left empty by filtering falls back to a default:

    * ``tags``: one random tag from the default pool plus the fixed companion
      tag, so untaggable books do not all collapse onto the same pair;
    * ``traits``: the same policy with the trait pool and companion;
    * ``age_rating``: the vocabulary's fixed default age.

    If the oracle call or parsing fails outright, all three fields take
    their default.  :meth:`tag_book` therefore never raises.

    Args:
        oracle: The text-completion oracle.
        vocabulary: Permitted labels and fallback pools.
        rng: Random source for the fallback draws.
        temperature: Sampling temperature for tagging calls.
        max_tokens: Output cap for tagging calls.
    """

    def __init__(
        self,
        oracle: Oracle,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
        rng: random.Random | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._oracle = oracle
        self._vocabulary = vocabulary
        self._rng = rng if rng is not None else random.Random()
        self._params = OracleParams(
            system_prompt=TAGGING_SYSTEM_PROMPT,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def tag_book(
        self,
        title: str,
        author: str,
        extracted_text: str,
        description: str = "",
    ) -> TaggingResult:
        """Return a non-empty, vocabulary-valid tagging triple for the book.

        Args:
            title: Book title.
            author: Book author.
            extracted_text: Text extracted from the book's PDF.
            description: Optional blurb.

        Returns:
            A :class:`~readme_ai.models.TaggingResult`; ``used_fallback`` is
            set when any field had to be defaulted.
        """
        try:
            prompt = build_tagging_prompt(
                self._vocabulary,
                title,
                author,
                (extracted_text or "")[:MAX_TEXT_CHARS],
                description,
            )
            reply = self._oracle.complete(prompt, self._params)
            parsed = extract_json_object(reply)
            if parsed is None:
                raise ValueError("no JSON object found in oracle reply")
        except Exception:
            logger.exception("Tagging failed for %r; using default tags.", title)
            return self.default_result()

        return self._validate(title, parsed)

    def default_result(self) -> TaggingResult:
        """Return a fully defaulted triple (random pool draw for tags and traits)."""
        return TaggingResult(
            tags=self._default_tags(),
            traits=self._default_traits(),
            age_rating=self._vocabulary.default_age,
            used_fallback=True,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate(self, title: str, parsed: dict) -> TaggingResult:
        vocab = self._vocabulary
        used_fallback = False

        tags = vocab.filter_tags(_as_list(parsed.get("tags")))
        if not tags:
            logger.warning("No usable tags for %r; drawing defaults.", title)
            tags = list(self._default_tags())
            used_fallback = True

        traits = vocab.filter_traits(_as_list(parsed.get("traits")))
        if not traits:
            logger.warning("No usable traits for %r; drawing defaults.", title)
            traits = list(self._default_traits())
            used_fallback = True

        age_rating = parsed.get("ageRating")
        if not vocab.is_age(age_rating):
            logger.info("Age rating %r for %r not allowed; using %s.", age_rating, title, vocab.default_age)
            age_rating = vocab.default_age
            used_fallback = True

        return TaggingResult(
            tags=tuple(tags),
            traits=tuple(traits),
            age_rating=age_rating,
            used_fallback=used_fallback,
        )

    def _default_tags(self) -> tuple[str, ...]:
        vocab = self._vocabulary
        return _pair(self._rng.choice(vocab.default_tag_pool), vocab.default_tag_companion)

    def _default_traits(self) -> tuple[str, ...]:
        vocab = self._vocabulary
        return _pair(self._rng.choice(vocab.default_trait_pool), vocab.default_trait_companion)


def _as_list(value: object) -> list:
    return value if isinstance(value, list) else []


def _pair(drawn: str, companion: str) -> tuple[str, ...]:
    return (drawn,) if drawn == companion else (drawn, companion)
