"""
Recipe Core - Enrichment Pipeline

Runs every raw recipe through the LLM once:

    FETCHED -> REWRITTEN -> TITLED -> SUMMARIZED -> EMBEDDED -> COMMITTED

Each stage returns a StageResult. The first failing stage ends the item
with exactly one failure record and the batch moves on to the next item.
Items outside this run's id partitions are skipped before any store call,
so several machines can split one table between them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Union

from tqdm import tqdm

from recipe_core.config import ALLOWED_PARTITIONS, BATCH_CHUNK_SIZE, PARTITION_COUNT
from recipe_core.errors import NotFound, ProviderError
from recipe_core.models import EnrichmentRunStats, FailureRecord, RecipeDraft
from recipe_core.ports import EmbeddingClient, FailureStore, RecipeStore
from recipe_core.validation import (
    clean_title,
    sanitize_title,
    validate_embedding,
    validate_rewritten_instructions,
    validate_summary,
    validate_title,
)

logger = logging.getLogger(__name__)

# (committed draft, embedded document text) -> None
VectorIndexer = Callable[[RecipeDraft, str], None]


# ============================================================================
# STAGE RESULTS
# ============================================================================

@dataclass
class StageResult:
    """Outcome of one stage: a value, or the reason and stage name it failed with."""
    value: Any = None
    reason: Optional[str] = None
    stage: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, value: Any) -> "StageResult":
        return cls(value=value)

    @classmethod
    def failure(cls, stage: str, reason: str) -> "StageResult":
        return cls(reason=reason, stage=stage)


def embedding_document(draft: RecipeDraft, title: Optional[str] = None) -> str:
    """
    Build the text a recipe is embedded from.

    `title` overrides the draft's current title.

    Example:
        "Title: Tofu Stir Fry\\n Ingredients: tofu, soy sauce\\n Instructions: Fry the tofu..."
    """
    ingredients = ", ".join(draft.ingredients) if draft.ingredients else "No ingredients"
    return f"Title: {title or draft.title}\n Ingredients: {ingredients}\n Instructions: {draft.summary}"


def chunked(items: Sequence[int], size: int) -> Iterator[List[int]]:
    """Yield consecutive slices of at most `size` items."""
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


# ============================================================================
# PIPELINE
# ============================================================================

class EnrichmentPipeline:
    """Rewrite, retitle, summarize and embed recipes, one at a time."""

    def __init__(
        self,
        client: EmbeddingClient,
        recipe_store: RecipeStore,
        failure_store: FailureStore,
        allowed_partitions: Iterable[int] = ALLOWED_PARTITIONS,
        vector_indexer: Optional[VectorIndexer] = None,
    ):
        self.client = client
        self.recipe_store = recipe_store
        self.failure_store = failure_store
        self.allowed_partitions = frozenset(allowed_partitions)
        self.vector_indexer = vector_indexer

    def in_partition(self, recipe_id: int) -> bool:
        return recipe_id % PARTITION_COUNT in self.allowed_partitions

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _rewrite(self, draft: RecipeDraft) -> StageResult:
        rewritten = self.client.rewrite(draft.instructions, recipe_id=draft.id)
        reason = validate_rewritten_instructions(rewritten)
        if reason:
            return StageResult.failure("rewrite", reason)
        return StageResult.success(rewritten)

    def _title(self, draft: RecipeDraft) -> StageResult:
        formatted = clean_title(self.client.format_title(sanitize_title(draft.title), recipe_id=draft.id))
        reason = validate_title(formatted)
        if reason:
            return StageResult.failure("title", reason)
        return StageResult.success(formatted)

    def _summarize(self, draft: RecipeDraft) -> StageResult:
        summary = self.client.summarize(draft.instructions, recipe_id=draft.id)
        reason = validate_summary(summary)
        if reason:
            return StageResult.failure("summarize", reason)
        return StageResult.success(summary)

    def _embed(self, recipe_id: int, document: str) -> StageResult:
        embedding = self.client.embed(document, recipe_id=recipe_id)
        reason = validate_embedding(embedding)
        if reason:
            return StageResult.failure("embed", reason)
        return StageResult.success(embedding)

    def _enrich(self, recipe_id: int) -> StageResult:
        draft = self.recipe_store.fetch_recipe(recipe_id)
        if draft is None:
            return StageResult.failure("fetch", f"Recipe not found with ID: {recipe_id}")

        source_title = draft.title

        # Each stage reads the fields set by the ones before it
        for stage, field_name in (
            (self._rewrite, "instructions"),
            (self._title, "title"),
            (self._summarize, "summary"),
        ):
            result = stage(draft)
            if not result.ok:
                return result
            setattr(draft, field_name, result.value)

        # The vector is built from the recipe's own title, not the formatted one
        document = embedding_document(draft, title=source_title)
        result = self._embed(draft.id, document)
        if not result.ok:
            return result
        draft.embedding = result.value

        return StageResult.success((draft, document))

    # ------------------------------------------------------------------
    # Per item
    # ------------------------------------------------------------------

    def _record_failure(self, recipe_id: int, reason: str, stage: str) -> FailureRecord:
        record = FailureRecord(recipe_id=recipe_id, reason=reason, stage=stage)
        try:
            self.failure_store.record(recipe_id, reason, stage)
        except Exception as e:
            logger.error(f"Could not record failure for recipe {recipe_id}: {e}")
        return record

    def process_item(self, recipe_id: int, ignore_partition: bool = False) -> Union[RecipeDraft, FailureRecord, None]:
        """
        Enrich and commit one recipe.

        Args:
            recipe_id: Recipe to process
            ignore_partition: Process the recipe even outside this run's partitions

        Returns:
            The committed draft, the failure record, or None when the id is
            outside the allowed partitions
        """
        if not ignore_partition and not self.in_partition(recipe_id):
            logger.debug(f"Skipping recipe {recipe_id}: partition {recipe_id % PARTITION_COUNT} not allowed")
            return None

        try:
            result = self._enrich(recipe_id)
        except ProviderError as e:
            result = StageResult.failure(e.operation, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error enriching recipe {recipe_id}")
            result = StageResult.failure("unknown", f"Unexpected error: {e}")

        if not result.ok:
            logger.warning(f"⚠️  Recipe {recipe_id} failed at {result.stage}: {result.reason}")
            return self._record_failure(recipe_id, result.reason, result.stage)

        draft, document = result.value
        try:
            self.recipe_store.commit(draft)
        except NotFound as e:
            return self._record_failure(recipe_id, str(e), "commit")
        except Exception as e:
            logger.error(f"❌ Commit failed for recipe {recipe_id}: {e}")
            return self._record_failure(recipe_id, f"Commit failed: {e}", "commit")

        if self.vector_indexer is not None:
            try:
                self.vector_indexer(draft, document)
            except Exception as e:
                # The committed row still counts; the index catches up on the next re-index
                logger.error(f"Failed to index vector for recipe {recipe_id}: {e}")

        logger.debug(f"✓ Enriched recipe {recipe_id}: {draft.title}")
        return draft

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def run(self, recipe_ids: Sequence[int], chunk_size: int = BATCH_CHUNK_SIZE) -> EnrichmentRunStats:
        """
        Process ids chunk by chunk, one item at a time.

        A failing item never stops the run; it is counted and recorded.
        """
        stats = EnrichmentRunStats()
        ids = list(recipe_ids)

        with tqdm(total=len(ids), desc="Enriching recipes", unit="recipe") as pbar:
            for chunk_number, chunk in enumerate(chunked(ids, chunk_size), start=1):
                logger.debug(f"Chunk {chunk_number}: {len(chunk)} recipe(s)")
                for recipe_id in chunk:
                    stats.seen += 1
                    outcome = self.process_item(recipe_id)
                    if outcome is None:
                        stats.skipped += 1
                    elif isinstance(outcome, FailureRecord):
                        stats.failed += 1
                    else:
                        stats.committed += 1
                    pbar.update(1)

        logger.info(
            f"📊 Enrichment run: {stats.seen} seen, {stats.committed} committed, "
            f"{stats.failed} failed, {stats.skipped} skipped"
        )
        return stats
