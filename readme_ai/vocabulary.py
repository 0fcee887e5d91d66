"""Fixed vocabularies for traits, tags and age ratings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

# Traits grouped by personality dimension.  Order matters: it is the order the
# tagging prompt lists them in.
TRAIT_DIMENSIONS: dict[str, tuple[str, ...]] = {
    "Openness": (
        "curious", "imaginative", "creative", "adventurous", "artistic", "inventive",
    ),
    "Conscientiousness": (
        "hardworking", "careful", "persistent", "focused", "responsible", "organized",
    ),
    "Extraversion": (
        "outgoing", "energetic", "talkative", "playful", "cheerful", "social",
        "enthusiastic",
    ),
    "Agreeableness": (
        "kind", "helpful", "caring", "friendly", "cooperative", "gentle", "sharing",
    ),
    "Emotional Stability": (
        "calm", "relaxed", "positive", "brave", "confident", "easygoing",
    ),
}

ALLOWED_TRAITS: tuple[str, ...] = tuple(
    trait for traits in TRAIT_DIMENSIONS.values() for trait in traits
)

ALLOWED_TAGS: tuple[str, ...] = (
    "adventure", "fantasy", "friendship", "animals", "family",
    "learning", "kindness", "creativity", "imagination", "responsibility",
    "cooperation", "resilience", "organization", "enthusiasm", "positivity",
    "bravery", "sharing", "art", "exploration", "teamwork", "emotions",
    "self-acceptance", "problem-solving", "leadership", "confidence", "patience",
    "generosity", "helpfulness", "playfulness", "curiosity", "innovation",
)

ALLOWED_AGES: tuple[str, ...] = ("6+", "7+", "8+", "9+", "10", "12")


@dataclass(frozen=True)
class Vocabulary:
    """Immutable set of permitted labels plus the tagging fallback policy.

    Components receive a :class:`Vocabulary` at construction time, so a test
    can hand in a small vocabulary instead of the full production one.

    Attributes:
        traits: Permitted personality traits, in prompt order.
        tags: Permitted thematic tags, in prompt order.
        ages: Permitted age-band labels.
        trait_dimensions: Optional grouping of *traits* used in prompts.
        default_tag_pool: Tags one of which is drawn at random when the
            oracle yields no usable tag.
        default_tag_companion: Fixed tag appended to the random draw.
        default_trait_pool: Traits one of which is drawn at random when the
            oracle yields no usable trait.
        default_trait_companion: Fixed trait appended to the random draw.
        default_age: Age rating used when the oracle's is absent or invalid.
    """

    traits: tuple[str, ...]
    tags: tuple[str, ...]
    ages: tuple[str, ...]
    default_tag_pool: tuple[str, ...]
    default_tag_companion: str
    default_trait_pool: tuple[str, ...]
    default_trait_companion: str
    default_age: str
    trait_dimensions: tuple[tuple[str, tuple[str, ...]], ...] = ()

    def __post_init__(self) -> None:
        for label, pool, companion, allowed in (
            ("tag", self.default_tag_pool, self.default_tag_companion, self.tags),
            ("trait", self.default_trait_pool, self.default_trait_companion, self.traits),
        ):
            if not pool:
                raise ValueError(f"default {label} pool must be non-empty")
            unknown = [v for v in (*pool, companion) if v not in allowed]
            if unknown:
                raise ValueError(f"default {label}s not in vocabulary: {unknown!r}")
        if self.default_age not in self.ages:
            raise ValueError(f"default age {self.default_age!r} not in vocabulary")

    def is_trait(self, value: object) -> bool:
        return isinstance(value, str) and value in self.traits

    def is_tag(self, value: object) -> bool:
        return isinstance(value, str) and value in self.tags

    def is_age(self, value: object) -> bool:
        return isinstance(value, str) and value in self.ages

    def filter_traits(self, values: Iterable[object]) -> list[str]:
        """Keep vocabulary traits from *values*, first occurrence wins."""
        return _filter_unique(values, self.is_trait)

    def filter_tags(self, values: Iterable[object]) -> list[str]:
        """Keep vocabulary tags from *values*, first occurrence wins."""
        return _filter_unique(values, self.is_tag)


def _filter_unique(values: Iterable[object], keep) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if keep(value) and value not in seen:
            seen.add(value)
            out.append(value)
    return out


DEFAULT_VOCABULARY = Vocabulary(
    traits=ALLOWED_TRAITS,
    tags=ALLOWED_TAGS,
    ages=ALLOWED_AGES,
    default_tag_pool=("learning", "emotions", "creativity", "animals", "family"),
    default_tag_companion="friendship",
    default_trait_pool=("kind", "creative", "persistent", "social", "brave"),
    default_trait_companion="responsible",
    default_age="6+",
    trait_dimensions=tuple(TRAIT_DIMENSIONS.items()),
)
