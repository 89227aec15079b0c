"""
Recipe Core - SQL Stores

Repository classes over the ORM tables in db.py. Each method opens its own
short-lived session so the stores are safe to share between request
threads and the detail-fetch pool.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import sessionmaker

from recipe_core.cache import IngredientNameCache
from recipe_core.db import (
    Cuisine,
    Ingredient,
    LlmModelPrice,
    LlmQueryLog,
    Recipe,
    RecipeUpdateFailure,
)
from recipe_core.errors import NotFound
from recipe_core.models import (
    EnrichmentStatus,
    FailureRecord,
    ModelPrice,
    QueryLog,
    RecipeDetail,
    RecipeDraft,
)

logger = logging.getLogger(__name__)


# ============================================================================
# RECIPES
# ============================================================================

class SqlRecipeStore:
    """Recipes with their ingredient and cuisine names."""

    def __init__(self, sessions: sessionmaker):
        self._sessions = sessions
        self.ingredient_cache = IngredientNameCache(self._ingredients_after, self._insert_ingredient)

    def _ingredients_after(self, last_id: int) -> List[Tuple[int, str]]:
        with self._sessions() as session:
            rows = session.execute(
                select(Ingredient.id, Ingredient.name).where(Ingredient.id > last_id).order_by(Ingredient.id)
            )
            return [(row.id, row.name) for row in rows]

    def _insert_ingredient(self, name: str) -> int:
        with self._sessions.begin() as session:
            ingredient = Ingredient(name=name)
            session.add(ingredient)
            session.flush()
            return ingredient.id

    def _cuisine(self, session, name: str) -> Cuisine:
        normalized = name.strip().lower()
        cuisine = session.scalar(select(Cuisine).where(Cuisine.name == normalized))
        if cuisine is None:
            cuisine = Cuisine(name=normalized)
            session.add(cuisine)
        return cuisine

    def _ingredient_ids(self, ingredients: Iterable[str]) -> List[int]:
        # Resolved before the recipe transaction opens; the cache commits in its own session
        return sorted({self.ingredient_cache.get_or_insert(name) for name in ingredients if name and name.strip()})

    def _add(self, session, title, instructions, ingredient_ids, cuisines, source) -> Recipe:
        recipe = Recipe(title=title, instructions=instructions or "", source=source)
        recipe.ingredients = [session.get(Ingredient, ingredient_id) for ingredient_id in ingredient_ids]
        cuisine_names = {name.strip().lower() for name in cuisines if name and name.strip()}
        recipe.cuisines = [self._cuisine(session, name) for name in sorted(cuisine_names)]
        session.add(recipe)
        session.flush()
        return recipe

    def add_recipe(
        self,
        title: str,
        instructions: str,
        ingredients: Iterable[str] = (),
        cuisines: Iterable[str] = (),
        source: Optional[str] = None,
    ) -> int:
        """Insert a raw (unenriched) recipe and return its id."""
        ingredient_ids = self._ingredient_ids(ingredients)
        with self._sessions.begin() as session:
            return self._add(session, title, instructions, ingredient_ids, cuisines, source).id

    def add_recipes(self, recipes: Iterable[dict], source: Optional[str] = None) -> List[int]:
        """
        Insert a batch of raw recipes in one transaction.

        Either every recipe is stored or none is, so a source is never left
        half-ingested. Ingredient names created along the way are kept.

        Args:
            recipes: Dicts with title, instructions, ingredients and cuisines
            source: Source tag applied to every recipe

        Returns:
            Ids of the inserted recipes, in input order
        """
        recipes = list(recipes)
        ingredient_ids = [self._ingredient_ids(recipe.get("ingredients", ())) for recipe in recipes]
        with self._sessions.begin() as session:
            return [
                self._add(
                    session,
                    recipe["title"],
                    recipe.get("instructions", ""),
                    ids,
                    recipe.get("cuisines", ()),
                    source,
                ).id
                for recipe, ids in zip(recipes, ingredient_ids)
            ]

    def fetch_recipe(self, recipe_id: int) -> Optional[RecipeDraft]:
        with self._sessions() as session:
            recipe = session.get(Recipe, recipe_id)
            if recipe is None:
                return None
            return RecipeDraft(
                id=recipe.id,
                title=recipe.title,
                instructions=recipe.instructions,
                ingredients=[ingredient.name for ingredient in recipe.ingredients],
                summary=recipe.summary,
                embedding=recipe.embedding,
            )

    def fetch_details(self, recipe_id: int) -> Optional[RecipeDetail]:
        with self._sessions() as session:
            recipe = session.get(Recipe, recipe_id)
            if recipe is None:
                return None
            return RecipeDetail(
                id=recipe.id,
                title=recipe.title,
                ingredients=[ingredient.name for ingredient in recipe.ingredients],
                cuisines=[cuisine.name for cuisine in recipe.cuisines],
            )

    def commit(self, draft: RecipeDraft) -> None:
        """Write all enriched fields of a draft in a single update."""
        with self._sessions.begin() as session:
            recipe = session.get(Recipe, draft.id)
            if recipe is None:
                raise NotFound(f"Recipe not found with ID: {draft.id}")
            recipe.title = draft.title
            recipe.instructions = draft.instructions
            recipe.summary = draft.summary
            recipe.embedding = list(draft.embedding) if draft.embedding is not None else None
            recipe.enriched_at = datetime.now(timezone.utc)

    def unenriched_ids(self, limit: Optional[int] = None) -> List[int]:
        """Ids of recipes that have no embedding yet, lowest id first."""
        query = select(Recipe.id).where(Recipe.embedding.is_(None)).order_by(Recipe.id)
        if limit is not None:
            query = query.limit(limit)
        with self._sessions() as session:
            return list(session.scalars(query))

    def ids_with_title_containing(self, fragment: str) -> List[int]:
        """Ids of recipes whose title contains fragment, ignoring case."""
        query = select(Recipe.id).where(func.lower(Recipe.title).contains(fragment.strip().lower()))
        with self._sessions() as session:
            return list(session.scalars(query))

    def ingested_sources(self) -> set:
        with self._sessions() as session:
            return set(session.scalars(select(Recipe.source).where(Recipe.source.is_not(None)).distinct()))

    def status(self) -> EnrichmentStatus:
        with self._sessions() as session:
            total = session.scalar(select(func.count(Recipe.id))) or 0
            completed = session.scalar(select(func.count(Recipe.id)).where(Recipe.embedding.is_not(None))) or 0
            failed = session.scalar(select(func.count(distinct(RecipeUpdateFailure.recipe_id)))) or 0
        return EnrichmentStatus(total=total, completed=completed, failed=failed)


# ============================================================================
# FAILURES
# ============================================================================

class SqlFailureStore:
    """Append-only log of recipes the enrichment batch could not process."""

    def __init__(self, sessions: sessionmaker):
        self._sessions = sessions

    def record(self, recipe_id: int, reason: str, stage: str = "unknown") -> FailureRecord:
        with self._sessions.begin() as session:
            row = RecipeUpdateFailure(recipe_id=recipe_id, reason=reason, stage=stage)
            session.add(row)
            session.flush()
            return FailureRecord(recipe_id=row.recipe_id, reason=row.reason, stage=row.stage, timestamp=row.timestamp)

    def for_recipe(self, recipe_id: int) -> List[FailureRecord]:
        with self._sessions() as session:
            rows = session.scalars(
                select(RecipeUpdateFailure)
                .where(RecipeUpdateFailure.recipe_id == recipe_id)
                .order_by(RecipeUpdateFailure.id)
            )
            return [
                FailureRecord(recipe_id=row.recipe_id, reason=row.reason, stage=row.stage, timestamp=row.timestamp)
                for row in rows
            ]


# ============================================================================
# PRICING
# ============================================================================

class SqlPriceTable:
    """Model prices keyed by exact model-family string."""

    def __init__(self, sessions: sessionmaker):
        self._sessions = sessions

    def lookup(self, model_family: str) -> Optional[ModelPrice]:
        with self._sessions() as session:
            row = session.get(LlmModelPrice, model_family)
            if row is None:
                return None
            return ModelPrice(
                model_family=row.model_family,
                input_per_mtok_usd=row.input_per_mtok_usd,
                output_per_mtok_usd=row.output_per_mtok_usd,
                effective_from=row.effective_from,
            )

    def upsert(self, price: ModelPrice) -> None:
        with self._sessions.begin() as session:
            session.merge(LlmModelPrice(
                model_family=price.model_family,
                input_per_mtok_usd=price.input_per_mtok_usd,
                output_per_mtok_usd=price.output_per_mtok_usd,
                effective_from=price.effective_from,
            ))


def _to_query_log(row: LlmQueryLog) -> QueryLog:
    return QueryLog(
        id=row.id,
        model=row.model,
        prompt=row.prompt,
        response=row.response,
        recipe_id=row.recipe_id,
        total_tokens=row.total_tokens,
        prompt_tokens=row.prompt_tokens,
        response_tokens=row.response_tokens,
        reasoning_tokens=row.reasoning_tokens or 0,
        input_cost=row.input_cost or 0.0,
        output_cost=row.output_cost or 0.0,
        total_cost=row.total_cost or 0.0,
        priced=row.priced,
        created_at=row.created_at,
    )


class SqlQueryLogStore:
    """Write-once LLM query logs; only the cost columns are updated later."""

    def __init__(self, sessions: sessionmaker):
        self._sessions = sessions

    def add(self, log: QueryLog) -> QueryLog:
        with self._sessions.begin() as session:
            session.add(LlmQueryLog(
                id=log.id,
                recipe_id=log.recipe_id,
                model=log.model,
                prompt=log.prompt,
                response=log.response,
                total_tokens=log.total_tokens,
                prompt_tokens=log.prompt_tokens,
                response_tokens=log.response_tokens,
                reasoning_tokens=log.reasoning_tokens,
                priced=False,
                created_at=log.created_at,
            ))
        return log

    def get(self, log_id: str) -> Optional[QueryLog]:
        with self._sessions() as session:
            row = session.get(LlmQueryLog, log_id)
            return _to_query_log(row) if row is not None else None

    def save(self, log: QueryLog) -> QueryLog:
        """Persist the cost fields and priced flag of an existing log."""
        with self._sessions.begin() as session:
            row = session.get(LlmQueryLog, log.id)
            if row is None:
                raise NotFound(f"LLM query log not found with ID: {log.id}")
            row.input_cost = log.input_cost
            row.output_cost = log.output_cost
            row.total_cost = log.total_cost
            row.priced = log.priced
            session.flush()
            return _to_query_log(row)

    def unpriced_ids(self) -> List[str]:
        with self._sessions() as session:
            query = select(LlmQueryLog.id).where(LlmQueryLog.priced.is_not(True)).order_by(LlmQueryLog.created_at)
            return list(session.scalars(query))


def seed_prices(table: SqlPriceTable, prices: Sequence[ModelPrice]) -> None:
    """Insert prices for model families that have none yet; existing rows are kept."""
    for price in prices:
        if table.lookup(price.model_family) is not None:
            continue
        table.upsert(price)
        logger.info(f"Price for {price.model_family}: ${price.input_per_mtok_usd}/M in, ${price.output_per_mtok_usd}/M out")
