"""
Recipe Core - Collaborator Interfaces

Structural types for everything the search engine and the enrichment
pipeline talk to. The concrete adapters live in embeddings.py, llm.py
and store.py; tests substitute MagicMocks.
"""

from typing import List, Optional, Protocol, Sequence

from recipe_core.models import (
    FailureRecord,
    ModelPrice,
    QueryLog,
    RecipeDetail,
    RecipeDraft,
    SimilarityCandidate,
)


class EmbeddingClient(Protocol):
    def rewrite(self, text: str, recipe_id: Optional[int] = None) -> str:
        """Return cleaned-up cooking instructions."""
        ...

    def format_title(self, title: str, recipe_id: Optional[int] = None) -> str:
        """Return a clean, capitalized recipe title."""
        ...

    def summarize(self, text: str, recipe_id: Optional[int] = None) -> str:
        """Return a 1-2 sentence summary."""
        ...

    def embed(self, text: str, recipe_id: Optional[int] = None) -> List[float]:
        """Return the embedding vector for text."""
        ...


class CandidateRetriever(Protocol):
    def find_by_similarity(
        self,
        embedding: Sequence[float],
        limit: int,
        title_filter: Optional[str] = None,
    ) -> List[SimilarityCandidate]:
        """
        Return up to `limit` candidates ordered by descending similarity,
        optionally restricted to titles containing `title_filter`.
        """
        ...


class RecipeStore(Protocol):
    def fetch_recipe(self, recipe_id: int) -> Optional[RecipeDraft]:
        ...

    def fetch_details(self, recipe_id: int) -> Optional[RecipeDetail]:
        ...

    def commit(self, draft: RecipeDraft) -> None:
        ...


class FailureStore(Protocol):
    def record(self, recipe_id: int, reason: str, stage: str = "unknown") -> FailureRecord:
        ...


class PriceTable(Protocol):
    def lookup(self, model_family: str) -> Optional[ModelPrice]:
        ...


class QueryLogStore(Protocol):
    def add(self, log: QueryLog) -> QueryLog:
        ...

    def get(self, log_id: str) -> Optional[QueryLog]:
        ...

    def save(self, log: QueryLog) -> QueryLog:
        ...

    def unpriced_ids(self) -> List[str]:
        ...
