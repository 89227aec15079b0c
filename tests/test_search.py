"""
Tests for recipe_core/retrieval.py search orchestration

Tests SimilaritySearchEngine with a mocked embedding client, retriever
and recipe store. No real models or vector index are loaded.

Why mocks?
- search() embeds the query through the LLM provider
- the retriever needs a populated Chroma index
- Mocking replaces these with controlled fakes so we test OUR logic,
  not ChromaDB or HuggingFace infrastructure
"""

import pytest
from unittest.mock import MagicMock

from recipe_core.config import CANDIDATE_OVERFETCH, DEFAULT_SEARCH_LIMIT
from recipe_core.errors import InvalidArgument, ProviderError
from recipe_core.models import SimilarityQuery
from recipe_core.retrieval import SimilaritySearchEngine


@pytest.fixture
def engine(fake_client, spicy_tofu_candidates, detail_store):
    retriever = MagicMock()
    retriever.find_by_similarity.return_value = spicy_tofu_candidates
    return SimilaritySearchEngine(fake_client, retriever, detail_store)


class TestQueryValidation:
    """Malformed queries are rejected before any external call."""

    def test_prompt_and_structured_fields(self, engine):
        with pytest.raises(InvalidArgument, match="not both"):
            engine.search(SimilarityQuery(prompt="tofu", title="Tofu Curry"))

        engine.embedding_client.embed.assert_not_called()

    @pytest.mark.parametrize("query", [SimilarityQuery(), SimilarityQuery(prompt="   ", title="")])
    def test_blank_query(self, engine, query):
        with pytest.raises(InvalidArgument):
            engine.search(query)

        engine.retriever.find_by_similarity.assert_not_called()

    @pytest.mark.parametrize("limit", [0, -5])
    def test_non_positive_limit(self, engine, limit):
        with pytest.raises(InvalidArgument, match="Limit"):
            engine.search(SimilarityQuery(title="Tofu", limit=limit))

    def test_invalid_argument_is_value_error(self, engine):
        with pytest.raises(ValueError):
            engine.search(SimilarityQuery())


class TestSearch:

    def test_spicy_tofu_end_to_end(self, engine):
        """Duplicate title 2 is dropped; 1 ranks ahead of 3."""
        results = engine.search(SimilarityQuery(prompt="spicy tofu", exclude_ingredients=""))

        assert [r.id for r in results] == [1, 3]
        assert results[0].similarity_rank == 2
        assert results[0].percent_similarity == pytest.approx(95.0)

    def test_prompt_query_uses_default_limit_and_no_title_filter(self, engine, fake_client):
        engine.search(SimilarityQuery(prompt="spicy tofu", limit=3))

        fake_client.embed.assert_called_once_with("spicy tofu")
        engine.retriever.find_by_similarity.assert_called_once_with(
            fake_client.embed.return_value, DEFAULT_SEARCH_LIMIT + CANDIDATE_OVERFETCH, None
        )

    def test_structured_query_embeds_description_and_filters_title(self, engine, fake_client):
        engine.search(SimilarityQuery(title="Tofu", cuisine="chinese", limit=5))

        fake_client.embed.assert_called_once_with("Title: Tofu, Cuisine: chinese")
        engine.retriever.find_by_similarity.assert_called_once_with(
            fake_client.embed.return_value, 5 + CANDIDATE_OVERFETCH, "Tofu"
        )

    def test_structured_exclusions_applied(self, engine, spicy_tofu_candidates):
        """With the duplicate first in line, the egg exclusion removes it."""
        engine.retriever.find_by_similarity.return_value = [spicy_tofu_candidates[1], spicy_tofu_candidates[2]]

        results = engine.search(SimilarityQuery(cuisine="chinese", exclude_ingredients="Egg"))

        assert [r.id for r in results] == [3]

    def test_prompt_query_ignores_exclusions(self, engine, spicy_tofu_candidates):
        """Free-text searches never apply ingredient exclusions."""
        engine.retriever.find_by_similarity.return_value = [spicy_tofu_candidates[1]]

        results = engine.search(SimilarityQuery(prompt="tofu"))

        assert [r.id for r in results] == [2]

    def test_structured_limit_truncates(self, engine):
        results = engine.search(SimilarityQuery(cuisine="chinese", limit=1))

        assert len(results) == 1

    def test_no_candidates_returns_empty(self, engine):
        engine.retriever.find_by_similarity.return_value = []

        assert engine.search(SimilarityQuery(prompt="durian ice cream")) == []
        engine.recipe_store.fetch_details.assert_not_called()

    def test_provider_error_propagates(self, engine, fake_client):
        fake_client.embed.side_effect = ProviderError("embed", "quota exceeded")

        with pytest.raises(ProviderError, match="quota exceeded"):
            engine.search(SimilarityQuery(prompt="tofu"))

    def test_failed_detail_fetch_keeps_candidate(self, engine, sample_details):
        def fetch(recipe_id):
            if recipe_id == 3:
                raise ConnectionError("database unavailable")
            return sample_details[recipe_id]

        engine.recipe_store.fetch_details.side_effect = fetch

        results = engine.search(SimilarityQuery(prompt="plain rice"))

        rice = [r for r in results if r.id == 3]
        assert len(rice) == 1
        assert rice[0].includes_ingredients_count == 0
        assert rice[0].cuisines == []
