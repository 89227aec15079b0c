"""
Tests for recipe_core/store.py and recipe_core/cache.py

Stores run against a throwaway SQLite database in tmp_path.
"""

import pytest
from unittest.mock import MagicMock

from recipe_core.cache import IngredientNameCache
from recipe_core.errors import NotFound
from recipe_core.models import ModelPrice, RecipeDraft
from recipe_core.store import SqlFailureStore, SqlPriceTable, seed_prices


@pytest.fixture
def tofu_id(recipe_store):
    return recipe_store.add_recipe(
        title="spicy tofu",
        instructions="fry tofu",
        ingredients=["Tofu", "chili paste", "tofu "],
        cuisines=["Chinese", "chinese", "Sichuan"],
        source="data/recipes.json",
    )


class TestSqlRecipeStore:

    def test_add_and_fetch_details(self, recipe_store, tofu_id):
        detail = recipe_store.fetch_details(tofu_id)

        assert detail.title == "spicy tofu"
        assert sorted(detail.ingredients) == ["chili paste", "tofu"]
        assert sorted(detail.cuisines) == ["chinese", "sichuan"]

    def test_fetch_missing(self, recipe_store):
        assert recipe_store.fetch_recipe(999) is None
        assert recipe_store.fetch_details(999) is None

    def test_commit_writes_enriched_fields(self, recipe_store, tofu_id):
        draft = recipe_store.fetch_recipe(tofu_id)
        draft.title = "Spicy Tofu"
        draft.summary = "Fried tofu with chili."
        draft.embedding = [0.5] * 768

        recipe_store.commit(draft)

        stored = recipe_store.fetch_recipe(tofu_id)
        assert stored.title == "Spicy Tofu"
        assert stored.embedding == [0.5] * 768

    def test_commit_missing_raises(self, recipe_store):
        with pytest.raises(NotFound):
            recipe_store.commit(RecipeDraft(id=999, title="x", instructions="y"))

    def test_unenriched_ids_and_status(self, recipe_store, tofu_id):
        other_id = recipe_store.add_recipe(title="rice", instructions="boil rice")
        assert recipe_store.unenriched_ids() == [tofu_id, other_id]

        draft = recipe_store.fetch_recipe(tofu_id)
        draft.embedding = [0.1] * 768
        recipe_store.commit(draft)

        assert recipe_store.unenriched_ids() == [other_id]
        assert recipe_store.unenriched_ids(limit=0) == []
        status = recipe_store.status()
        assert (status.total, status.completed) == (2, 1)
        assert status.percentage == pytest.approx(50.0)

    def test_title_lookup_is_case_insensitive(self, recipe_store, tofu_id):
        assert recipe_store.ids_with_title_containing("TOFU") == [tofu_id]
        assert recipe_store.ids_with_title_containing("noodle") == []

    def test_ingested_sources(self, recipe_store, tofu_id):
        assert recipe_store.ingested_sources() == {"data/recipes.json"}

    def test_add_recipes_in_one_batch(self, recipe_store):
        ids = recipe_store.add_recipes(
            [
                {"title": "rice", "instructions": "Boil.", "ingredients": ["rice"], "cuisines": []},
                {"title": "fried rice", "instructions": "Fry.", "ingredients": ["rice", "egg"], "cuisines": ["chinese"]},
            ],
            source="data/rice.json",
        )

        assert len(ids) == 2
        assert sorted(recipe_store.fetch_details(ids[1]).ingredients) == ["egg", "rice"]
        assert recipe_store.ingested_sources() == {"data/rice.json"}

    def test_add_recipes_rolls_back_on_failure(self, recipe_store):
        """A failing recipe leaves none of the batch behind, so the source can be retried."""
        recipes = [
            {"title": "rice", "instructions": "Boil.", "ingredients": ["rice"]},
            {"instructions": "no title"},
        ]

        with pytest.raises(KeyError):
            recipe_store.add_recipes(recipes, source="data/broken.json")

        assert recipe_store.ingested_sources() == set()
        assert recipe_store.status().total == 0


class TestSqlFailureStore:

    def test_record_and_list(self, sessions, recipe_store):
        failures = SqlFailureStore(sessions)

        failures.record(3, "Summary is null", "summarize")
        failures.record(3, "Commit failed", "commit")

        records = failures.for_recipe(3)
        assert [r.stage for r in records] == ["summarize", "commit"]

    def test_status_counts_failed_recipes_once(self, sessions, recipe_store):
        failures = SqlFailureStore(sessions)

        failures.record(3, "Summary is null", "summarize")
        failures.record(3, "Commit failed", "commit")
        failures.record(4, "Title is empty or null", "title")

        assert recipe_store.status().failed == 2


class TestPrices:

    def test_seed_keeps_existing_price(self, sessions):
        table = SqlPriceTable(sessions)
        table.upsert(ModelPrice("gemini-test", 1.0, 2.0))

        seed_prices(table, [ModelPrice("gemini-test", 9.0, 9.0), ModelPrice("other", 3.0, 4.0)])

        assert table.lookup("gemini-test").input_per_mtok_usd == 1.0
        assert table.lookup("other").output_per_mtok_usd == 4.0

    def test_lookup_is_exact(self, sessions):
        table = SqlPriceTable(sessions)
        table.upsert(ModelPrice("gemini-test", 1.0, 2.0))

        assert table.lookup("gemini") is None


class TestIngredientNameCache:

    def test_get_or_insert_inserts_once(self):
        inserter = MagicMock(return_value=1)
        cache = IngredientNameCache(lambda last_id: [], inserter)

        assert cache.get_or_insert(" Tofu ") == 1
        assert cache.get_or_insert("tofu") == 1
        inserter.assert_called_once_with("tofu")
        assert cache.name_for(1) == "tofu"

    def test_refresh_picks_up_rows_from_elsewhere(self):
        rows = [(4, "rice"), (7, "egg")]
        cache = IngredientNameCache(lambda last_id: [r for r in rows if r[0] > last_id], MagicMock())

        assert cache.refresh_if_stale() == 2
        assert cache.last_seen_id == 7
        assert cache.refresh_if_stale() == 0

        rows.append((9, "leek"))
        assert cache.name_for(9) == "leek"
        assert len(cache) == 3

    def test_miss_refreshes_before_inserting(self):
        inserter = MagicMock()
        cache = IngredientNameCache(lambda last_id: [(5, "egg")] if last_id < 5 else [], inserter)

        assert cache.get_or_insert("EGG") == 5
        inserter.assert_not_called()

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_rejected(self, name):
        cache = IngredientNameCache(lambda last_id: [], MagicMock())

        with pytest.raises(ValueError):
            cache.get_or_insert(name)

    def test_store_cache_is_shared_across_recipes(self, recipe_store):
        recipe_store.add_recipe(title="a", instructions="", ingredients=["tofu"])
        recipe_store.add_recipe(title="b", instructions="", ingredients=["Tofu", "rice"])

        assert len(recipe_store.ingredient_cache) == 2
