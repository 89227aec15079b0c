"""
Recipe Core - Similarity Search Ranking

Turns a raw nearest-neighbour candidate list into the ranked results
returned by search:

1. Dedup by case-insensitive title (first, most similar, occurrence wins)
2. Fetch ingredient/cuisine details concurrently; failed fetches drop out
3. Remove candidates containing an excluded ingredient
4. Score each candidate (title overlap, word overlap, ingredient count,
   cuisine match)
5. Sort and truncate to the requested limit

Only titleSimilarityRank, similarityRank and includesIngredientsCount take
part in the sort. Cuisine match and percent similarity are reported with
each result but do not change the order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Dict, Iterable, List, Optional, Set

from recipe_core.config import (
    CANDIDATE_OVERFETCH,
    CUISINE_MATCH_SCORE,
    DEFAULT_SEARCH_LIMIT,
    DETAIL_FETCH_TIMEOUT_SECONDS,
    DETAIL_FETCH_WORKERS,
    STOPWORDS,
)
from recipe_core.errors import InvalidArgument
from recipe_core.models import RankedCandidate, RecipeDetail, SimilarityCandidate, SimilarityQuery
from recipe_core.ports import CandidateRetriever, EmbeddingClient, RecipeStore

logger = logging.getLogger(__name__)


# ============================================================================
# CANDIDATE PREPARATION
# ============================================================================

def dedupe_by_title(candidates: Iterable[SimilarityCandidate]) -> List[SimilarityCandidate]:
    """
    Keep the first candidate for each title, compared case-insensitively.

    Candidates arrive in descending similarity, so the survivor of each
    group is its most similar member. Input order is preserved.
    """
    seen: Set[str] = set()
    unique = []
    for candidate in candidates:
        key = (candidate.title or "").strip().lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def fetch_details_concurrently(
    recipe_store: RecipeStore,
    recipe_ids: Iterable[int],
    max_workers: int = DETAIL_FETCH_WORKERS,
    timeout: float = DETAIL_FETCH_TIMEOUT_SECONDS,
) -> Dict[int, RecipeDetail]:
    """
    Fetch details for every id in parallel and join on all of them.

    A fetch that raises, returns nothing or does not finish within
    `timeout` seconds is left out of the result; it never fails the batch.

    Returns:
        Mapping of recipe id to its details, for the fetches that succeeded
    """
    ids = list(dict.fromkeys(recipe_ids))
    if not ids:
        return {}

    details: Dict[int, RecipeDetail] = {}
    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(ids))))
    try:
        futures = {executor.submit(recipe_store.fetch_details, recipe_id): recipe_id for recipe_id in ids}
        try:
            for future in as_completed(futures, timeout=timeout):
                recipe_id = futures[future]
                try:
                    detail = future.result()
                except Exception as e:
                    logger.warning(f"Failed to fetch details for recipe {recipe_id}: {e}")
                    continue
                if detail is None:
                    logger.debug(f"Recipe {recipe_id} not found while fetching details")
                    continue
                details[recipe_id] = detail
        except FuturesTimeout:
            missing = [recipe_id for future, recipe_id in futures.items() if not future.done()]
            logger.warning(f"Timed out fetching details for {len(missing)} recipe(s): {missing}")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return details


def parse_exclusions(exclude_ingredients: Optional[str]) -> Set[str]:
    """
    Split a comma-separated exclusion list into normalized names.

    Example:
        >>> sorted(parse_exclusions(" Egg, ,PEANUT "))
        ['egg', 'peanut']
    """
    if not exclude_ingredients:
        return set()
    return {part.strip().lower() for part in exclude_ingredients.split(",") if part.strip()}


def filter_excluded(
    candidates: Iterable[SimilarityCandidate],
    details: Dict[int, RecipeDetail],
    excluded: Set[str],
) -> List[SimilarityCandidate]:
    """
    Drop candidates using an excluded ingredient.

    A candidate whose details could not be fetched has no known ingredients,
    so it cannot match an exclusion and is kept.
    """
    kept = []
    for candidate in candidates:
        detail = details.get(candidate.id)
        if detail is None:
            kept.append(candidate)
            continue
        ingredients = {name.strip().lower() for name in detail.ingredients}
        if excluded & ingredients:
            logger.debug(f"Excluding recipe {candidate.id}: contains {sorted(excluded & ingredients)}")
            continue
        kept.append(candidate)
    return kept


# ============================================================================
# SCORING
# ============================================================================

def score_title(query_title: Optional[str], candidate_title: Optional[str]) -> int:
    """
    Count candidate title words that appear inside the query title.

    Both titles are lowercased and trimmed. Each whitespace-separated word
    of the candidate title scores 1 when it is a substring of the query
    title; one more point is added when both titles have the same number
    of words. No query title scores 0.

    Example:
        >>> score_title("chicken soup", "chicken noodle soup")
        2
        >>> score_title("chicken soup", "Chicken Soup")
        3
    """
    if not query_title or not query_title.strip() or not candidate_title:
        return 0

    query = query_title.strip().lower()
    candidate_words = candidate_title.strip().lower().split()

    score = sum(1 for word in candidate_words if word in query)
    if len(candidate_words) == len(query.split()):
        score += 1
    return score


def tokenize_words(*texts: Optional[str]) -> Set[str]:
    """Lowercased whitespace-separated words of all texts, minus stopwords."""
    words: Set[str] = set()
    for text in texts:
        if text:
            words.update(word for word in text.lower().split() if word not in STOPWORDS)
    return words


def query_words(query: SimilarityQuery) -> Set[str]:
    """Word bag for a query: the prompt, or the structured text fields."""
    if query.is_prompt_based:
        return tokenize_words(query.prompt)
    return tokenize_words(
        query.title,
        query.cuisine,
        query.include_ingredients,
        query.meal_type,
        query.detail_level,
    )


def score_words(query_bag: Set[str], candidate: SimilarityCandidate) -> int:
    """Size of the overlap between the query words and the candidate's title + summary."""
    return len(query_bag & tokenize_words(candidate.title, candidate.summary))


def score_cuisine(query_cuisine: Optional[str], cuisines: Iterable[str]) -> int:
    """CUISINE_MATCH_SCORE when the query cuisine and a recipe cuisine contain one another."""
    if not query_cuisine or not query_cuisine.strip():
        return 0
    wanted = query_cuisine.strip().lower()
    for cuisine in cuisines:
        name = cuisine.strip().lower()
        if name and (wanted in name or name in wanted):
            return CUISINE_MATCH_SCORE
    return 0


def rank_candidates(
    candidates: Iterable[SimilarityCandidate],
    details: Dict[int, RecipeDetail],
    query: SimilarityQuery,
) -> List[RankedCandidate]:
    """Attach every score to each candidate. Order is unchanged."""
    bag = query_words(query)
    query_title = (query.title or "").strip().lower()

    ranked = []
    for candidate in candidates:
        detail = details.get(candidate.id)
        ingredients = detail.ingredients if detail else []
        cuisines = detail.cuisines if detail else []
        candidate_title = (candidate.title or "").strip().lower()

        ranked.append(RankedCandidate(
            candidate=candidate,
            title_similarity_rank=score_title(query.title, candidate.title),
            similarity_rank=score_words(bag, candidate),
            cuisine_match_rank=score_cuisine(query.cuisine, cuisines),
            includes_ingredients_count=len(ingredients),
            exact_title_match=bool(query_title) and candidate_title == query_title,
            prefix_title_match=bool(query_title) and candidate_title.startswith(query_title),
            cuisines=list(cuisines),
        ))
    return ranked


def sort_and_limit(ranked: Iterable[RankedCandidate], limit: int) -> List[RankedCandidate]:
    """
    Order by title score, then word score, then ingredient count (all
    descending) and keep the first `limit`. The sort is stable, so ties keep
    their retrieval (similarity) order.
    """
    ordered = sorted(
        ranked,
        key=lambda r: (r.title_similarity_rank, r.similarity_rank, r.includes_ingredients_count),
        reverse=True,
    )
    return ordered[:limit]


# ============================================================================
# SEARCH ORCHESTRATION
# ============================================================================

class SimilaritySearchEngine:
    """
    End-to-end search: validate, embed, retrieve, then rank.

    Each call builds its own working set, so one engine serves concurrent
    requests as long as its collaborators do.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        retriever: CandidateRetriever,
        recipe_store: RecipeStore,
        overfetch: int = CANDIDATE_OVERFETCH,
    ):
        self.embedding_client = embedding_client
        self.retriever = retriever
        self.recipe_store = recipe_store
        self.overfetch = overfetch

    @staticmethod
    def validate(query: SimilarityQuery) -> None:
        """
        Reject malformed queries before any external call.

        Raises:
            InvalidArgument: Both or neither of prompt and structured fields
                are given, or the limit is not positive
        """
        if query.is_prompt_based and query.has_structured_fields:
            raise InvalidArgument("Provide either a prompt or structured fields, not both")
        if not query.is_prompt_based and not query.has_structured_fields:
            raise InvalidArgument("Query must contain a prompt or at least one structured field")
        if query.limit <= 0:
            raise InvalidArgument(f"Limit must be positive, got {query.limit}")

    def search(self, query: SimilarityQuery) -> List[RankedCandidate]:
        """
        Find and rank recipes for a query.

        Prompt-based queries return up to DEFAULT_SEARCH_LIMIT results and
        ignore ingredient exclusions; structured queries return up to
        query.limit results and restrict candidates to matching titles
        when a title is given.

        Returns:
            Ranked results (possibly empty)

        Raises:
            InvalidArgument: For malformed queries
            ProviderError: When embedding the query fails
        """
        self.validate(query)

        if query.is_prompt_based:
            limit = DEFAULT_SEARCH_LIMIT
            text = query.prompt.strip()
            title_filter = None
            excluded: Set[str] = set()
        else:
            limit = query.limit
            text = query.describe()
            title_filter = query.title.strip() if query.title and query.title.strip() else None
            excluded = parse_exclusions(query.exclude_ingredients)

        logger.info(f"🔍 Searching for: {text} (limit {limit})")
        embedding = self.embedding_client.embed(text)

        candidates = self.retriever.find_by_similarity(embedding, limit + self.overfetch, title_filter)
        if not candidates:
            logger.info("No recipes found matching the query")
            return []

        unique = dedupe_by_title(candidates)
        details = fetch_details_concurrently(self.recipe_store, [c.id for c in unique])
        kept = filter_excluded(unique, details, excluded)
        results = sort_and_limit(rank_candidates(kept, details, query), limit)

        logger.info(
            f"✓ {len(candidates)} candidate(s), {len(unique)} unique, "
            f"{len(kept)} after filtering, returning {len(results)}"
        )
        return results
