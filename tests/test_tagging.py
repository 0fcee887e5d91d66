"""Tests for readme_ai.tagging.TaggingPipeline."""

from __future__ import annotations

import json
import random
from unittest.mock import MagicMock

import pytest

from conftest import FakeOracle
from readme_ai.oracle import OracleError
from readme_ai.prompts import TAGGING_EXCERPT_CHARS
from readme_ai.tagging import MAX_TEXT_CHARS, TaggingPipeline
from readme_ai.vocabulary import DEFAULT_VOCABULARY


def _reply(**fields) -> str:
    return "Sure! " + json.dumps(fields) + " Hope this helps."


def _fixed_rng(index: int) -> MagicMock:
    """An rng whose choice() always returns pool[index]."""
    rng = MagicMock()
    rng.choice.side_effect = lambda pool: pool[index]
    return rng


def _tag(pipeline: TaggingPipeline):
    return pipeline.tag_book("Dragon Hill", "A. Author", "Once upon a time...", "A knight.")


def _assert_valid(result, vocab) -> None:
    assert result.tags and set(result.tags) <= set(vocab.tags)
    assert result.traits and set(result.traits) <= set(vocab.traits)
    assert result.age_rating in vocab.ages


# ---------------------------------------------------------------------------
# Oracle success path
# ---------------------------------------------------------------------------


class TestValidOutput:
    def test_valid_fields_kept_in_order(self) -> None:
        oracle = FakeOracle(_reply(tags=["family", "adventure"], traits=["brave", "kind"], ageRating="8+"))
        result = _tag(TaggingPipeline(oracle))
        assert result.tags == ("family", "adventure")
        assert result.traits == ("brave", "kind")
        assert result.age_rating == "8+"
        assert result.used_fallback is False

    def test_invalid_entries_filtered(self) -> None:
        oracle = FakeOracle(_reply(tags=["adventure", "music", 7], traits=["grumpy", "kind"], ageRating="6+"))
        result = _tag(TaggingPipeline(oracle))
        assert result.tags == ("adventure",)
        assert result.traits == ("kind",)

    def test_duplicates_collapsed(self) -> None:
        oracle = FakeOracle(_reply(tags=["family", "family"], traits=["kind", "kind"], ageRating="6+"))
        result = _tag(TaggingPipeline(oracle))
        assert result.tags == ("family",)
        assert result.traits == ("kind",)

    def test_idempotent_with_deterministic_oracle(self) -> None:
        oracle = FakeOracle(_reply(tags=["animals"], traits=["curious"], ageRating="7+"))
        pipeline = TaggingPipeline(oracle, rng=random.Random(1))
        assert _tag(pipeline) == _tag(pipeline)

    def test_rng_untouched_when_output_valid(self) -> None:
        rng = MagicMock()
        oracle = FakeOracle(_reply(tags=["animals"], traits=["curious"], ageRating="7+"))
        _tag(TaggingPipeline(oracle, rng=rng))
        rng.choice.assert_not_called()


# ---------------------------------------------------------------------------
# Per-field fallbacks
# ---------------------------------------------------------------------------


class TestFieldFallbacks:
    def test_scenario_out_of_vocabulary_tag_and_age(self, small_vocabulary) -> None:
        oracle = FakeOracle('{"tags":["music"],"traits":["curious"],"ageRating":"13+"}')
        pipeline = TaggingPipeline(oracle, vocabulary=small_vocabulary, rng=_fixed_rng(0))
        result = _tag(pipeline)
        assert "music" not in result.tags
        assert result.tags == ("animals", "friendship")
        assert result.traits == ("curious",)
        assert result.age_rating == "6+"
        assert result.used_fallback is True

    @pytest.mark.parametrize("index", range(len(DEFAULT_VOCABULARY.default_tag_pool)))
    def test_each_tag_draw(self, index: int) -> None:
        oracle = FakeOracle(_reply(tags=[], traits=["kind"], ageRating="6+"))
        result = _tag(TaggingPipeline(oracle, rng=_fixed_rng(index)))
        assert result.tags == (DEFAULT_VOCABULARY.default_tag_pool[index], "friendship")

    @pytest.mark.parametrize("index", range(len(DEFAULT_VOCABULARY.default_trait_pool)))
    def test_each_trait_draw(self, index: int) -> None:
        oracle = FakeOracle(_reply(tags=["family"], traits=["nonsense"], ageRating="6+"))
        result = _tag(TaggingPipeline(oracle, rng=_fixed_rng(index)))
        assert result.traits == (DEFAULT_VOCABULARY.default_trait_pool[index], "responsible")

    def test_missing_fields_all_default(self) -> None:
        oracle = FakeOracle("{}")
        result = _tag(TaggingPipeline(oracle, rng=_fixed_rng(0)))
        assert result.tags == ("learning", "friendship")
        assert result.traits == ("kind", "responsible")
        assert result.age_rating == "6+"

    def test_non_list_fields_treated_as_empty(self) -> None:
        oracle = FakeOracle(_reply(tags="adventure", traits=None, ageRating=8))
        result = _tag(TaggingPipeline(oracle, rng=_fixed_rng(1)))
        _assert_valid(result, DEFAULT_VOCABULARY)
        assert result.tags == ("emotions", "friendship")
        assert result.age_rating == "6+"

    def test_draw_equal_to_companion_not_repeated(self, small_vocabulary) -> None:
        rng = MagicMock()
        rng.choice.return_value = "friendship"
        oracle = FakeOracle(_reply(tags=[], traits=["kind"], ageRating="6+"))
        result = _tag(TaggingPipeline(oracle, vocabulary=small_vocabulary, rng=rng))
        assert result.tags == ("friendship",)


# ---------------------------------------------------------------------------
# Total failure
# ---------------------------------------------------------------------------


class TestTotalFailure:
    @pytest.mark.parametrize("reply", [
        OracleError("timeout"),
        RuntimeError("connection reset"),
        "no json here",
        "{not valid json}",
        "",
    ])
    def test_failure_returns_defaults(self, reply) -> None:
        result = _tag(TaggingPipeline(FakeOracle(reply), rng=_fixed_rng(2)))
        assert result.tags == ("creativity", "friendship")
        assert result.traits == ("persistent", "responsible")
        assert result.age_rating == "6+"
        assert result.used_fallback is True

    def test_failure_uses_same_defaults_as_field_fallback(self) -> None:
        failed = _tag(TaggingPipeline(FakeOracle(OracleError("x")), rng=_fixed_rng(3)))
        empty = _tag(TaggingPipeline(FakeOracle("{}"), rng=_fixed_rng(3)))
        assert failed == empty

    def test_vocabulary_closure_with_real_rng(self) -> None:
        pipeline = TaggingPipeline(FakeOracle(OracleError("x")), rng=random.Random(42))
        for _ in range(25):
            _assert_valid(_tag(pipeline), DEFAULT_VOCABULARY)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


class TestPrompt:
    def test_prompt_names_vocabularies(self, small_vocabulary) -> None:
        oracle = FakeOracle("{}")
        _tag(TaggingPipeline(oracle, vocabulary=small_vocabulary, rng=_fixed_rng(0)))
        prompt = oracle.prompts[0]
        assert "adventure, animals, friendship, family" in prompt
        assert "curious, kind, brave, responsible" in prompt
        assert "6+, 8+, 10" in prompt
        assert "Dragon Hill" in prompt

    def test_excerpt_truncated(self) -> None:
        oracle = FakeOracle("{}")
        text = "a" * TAGGING_EXCERPT_CHARS + "b" * 100
        TaggingPipeline(oracle, rng=_fixed_rng(0)).tag_book("T", "A", text)
        assert "a" * TAGGING_EXCERPT_CHARS in oracle.prompts[0]
        assert "b" not in oracle.prompts[0].split("Content excerpt:")[1].split("\n")[0]

    def test_limits_are_consistent(self) -> None:
        assert TAGGING_EXCERPT_CHARS < MAX_TEXT_CHARS

    def test_generation_params_passed(self) -> None:
        oracle = FakeOracle("{}")
        TaggingPipeline(oracle, temperature=0.7, max_tokens=200, rng=_fixed_rng(0)).tag_book("T", "A", "x")
        assert oracle.params[0].temperature == pytest.approx(0.7)
        assert oracle.params[0].max_tokens == 200
