"""
Recipe Search - FastAPI REST API

Provides programmatic access to recipe similarity search, enrichment
progress and LLM usage pricing. Uses the same recipe_core/ module as the
enrich.py batch.

Run with:
    uvicorn api:app --reload

Docs at:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from recipe_core import (
    ChromaCandidateRetriever,
    EnrichmentPipeline,
    FailureRecord,
    InvalidArgument,
    PricingService,
    ProviderError,
    RecipeLLMClient,
    SimilarityQuery,
    SimilaritySearchEngine,
    SqlFailureStore,
    SqlPriceTable,
    SqlQueryLogStore,
    SqlRecipeStore,
    create_chroma_client,
    create_embeddings,
    create_session_factory,
    create_usage_recorder,
    initialize_llm,
    initialize_vectorstore,
    recipe_collection,
    upsert_recipe_vector,
)

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# App setup
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Recipe Search API",
    description="Recipe similarity search over LLM-enriched recipes, with enrichment status and usage pricing.",
    version="1.0.0",
)

# Initialize components once at startup (cached for all requests)
recipe_store = None
pricing_service = None
search_engine = None
pipeline = None


@app.on_event("startup")
async def startup():
    """Initialize stores, search and enrichment when the server starts."""
    global recipe_store, pricing_service, search_engine, pipeline

    sessions = create_session_factory()
    recipe_store = SqlRecipeStore(sessions)
    query_logs = SqlQueryLogStore(sessions)
    pricing_service = PricingService(SqlPriceTable(sessions), query_logs)

    try:
        embeddings = create_embeddings()
        chroma_client = create_chroma_client()
        vectorstore = initialize_vectorstore(embeddings, client=chroma_client)
        collection = recipe_collection(chroma_client)
        client = RecipeLLMClient(initialize_llm(), embeddings, create_usage_recorder(sessions))
    except FileNotFoundError as e:
        # Index not found: server starts but search endpoints fail gracefully
        logger.warning(f"Warning: {e}")
        return
    except ValueError as e:
        # API key not found: no LLM client, so neither search nor enrichment
        logger.warning(f"Warning: {e}")
        return

    search_engine = SimilaritySearchEngine(
        client,
        ChromaCandidateRetriever(vectorstore, title_index=recipe_store.ids_with_title_containing),
        recipe_store,
    )
    pipeline = EnrichmentPipeline(
        client,
        recipe_store,
        SqlFailureStore(sessions),
        vector_indexer=lambda draft, document: upsert_recipe_vector(collection, draft, document),
    )


# -----------------------------------------------------------------------------
# Request/Response schemas
# -----------------------------------------------------------------------------

class SearchResult(BaseModel):
    """A single ranked recipe."""

    id: int = Field(..., description="Recipe ID")
    title: str = Field(..., description="Recipe title")
    summary: str = Field(..., description="Generated recipe summary")
    similarity: float = Field(..., description="Cosine similarity in [-1, 1]")
    percent_similarity: float = Field(..., description="Similarity mapped to 0-100")
    title_similarity_rank: int = Field(..., description="Title word overlap score")
    similarity_rank: int = Field(..., description="Word overlap score against title and summary")
    cuisine_match_rank: int = Field(..., description="10 when the requested cuisine matches, else 0")
    includes_ingredients_count: int = Field(..., description="Number of ingredients in the recipe")
    exact_title_match: bool = Field(..., description="Title equals the requested title")
    prefix_title_match: bool = Field(..., description="Title starts with the requested title")
    cuisines: list[str] = Field(default_factory=list, description="Recipe cuisines")


class SearchResponse(BaseModel):
    """Response body for /search endpoint."""

    message: str = Field(..., description="Result summary")
    results: list[SearchResult] = Field(..., description="Ranked recipes, best first")


class EnrichmentStatusResponse(BaseModel):
    """Response body for /enrichment/status endpoint."""

    total: int = Field(..., description="Recipes in the database")
    completed: int = Field(..., description="Recipes with a committed embedding")
    failed: int = Field(..., description="Recorded enrichment failures")
    percentage: float = Field(..., description="Completed share of all recipes, 0-100")


class EnrichResponse(BaseModel):
    """Response body for /recipes/{id}/enrich endpoint."""

    recipe_id: int = Field(..., description="Recipe ID")
    status: str = Field(..., description="'committed' or 'failed'")
    title: Optional[str] = Field(None, description="Formatted title (committed only)")
    summary: Optional[str] = Field(None, description="Generated summary (committed only)")
    stage: Optional[str] = Field(None, description="Stage that failed (failed only)")
    reason: Optional[str] = Field(None, description="Failure reason (failed only)")


class QueryLogResponse(BaseModel):
    """Response body for /query-logs/{id}/price endpoint."""

    id: str
    model: str
    prompt_tokens: int
    response_tokens: int
    reasoning_tokens: int
    total_tokens: int
    input_cost: float
    output_cost: float
    total_cost: float
    priced: bool


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------

@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns the status of all components:
    - database: Are the recipe tables reachable?
    - search: Are the vector index and LLM client ready?
    - enrichment: Can single recipes be enriched?
    """
    return {
        "status": "healthy",
        "components": {
            "database": recipe_store is not None,
            "search": search_engine is not None,
            "enrichment": pipeline is not None,
        },
    }


@app.post("/search", response_model=SearchResponse)
def search(request: SimilarityQuery):
    """Search for recipes by free-text prompt or structured fields.

    Send either `prompt` or any of the structured fields, never both.
    """
    if search_engine is None:
        raise HTTPException(
            status_code=503,
            detail="Search not available. Run 'python enrich.py' and set GOOGLE_API_KEY in .env.",
        )

    try:
        results = search_engine.search(request)
    except InvalidArgument as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return SearchResponse(
        message=f"Found {len(results)} recipe(s)" if results else "No recipes found matching your query.",
        results=[SearchResult(**result.to_dict()) for result in results],
    )


@app.get("/enrichment/status", response_model=EnrichmentStatusResponse)
def enrichment_status():
    """Report how many recipes have been enriched so far."""
    if recipe_store is None:
        raise HTTPException(status_code=503, detail="Database not available.")

    status = recipe_store.status()
    return EnrichmentStatusResponse(
        total=status.total,
        completed=status.completed,
        failed=status.failed,
        percentage=status.percentage,
    )


@app.post("/recipes/{recipe_id}/enrich", response_model=EnrichResponse)
def enrich_recipe(recipe_id: int):
    """Run the enrichment pipeline for one recipe, whatever its partition."""
    if pipeline is None:
        raise HTTPException(
            status_code=503,
            detail="Enrichment not available. Add GOOGLE_API_KEY to .env file.",
        )

    outcome = pipeline.process_item(recipe_id, ignore_partition=True)
    if isinstance(outcome, FailureRecord):
        return EnrichResponse(recipe_id=recipe_id, status="failed", stage=outcome.stage, reason=outcome.reason)

    return EnrichResponse(recipe_id=recipe_id, status="committed", title=outcome.title, summary=outcome.summary)


@app.post("/query-logs/{log_id}/price", response_model=QueryLogResponse)
def price_query_log(log_id: str):
    """Compute (or recompute) the cost of one LLM query log."""
    if pricing_service is None:
        raise HTTPException(status_code=503, detail="Database not available.")

    log = pricing_service.calculate_price(log_id)
    if log is None:
        raise HTTPException(
            status_code=404,
            detail=f"Query log {log_id} not found or no price for its model.",
        )

    return QueryLogResponse(
        id=log.id,
        model=log.model,
        prompt_tokens=log.prompt_tokens,
        response_tokens=log.response_tokens,
        reasoning_tokens=log.reasoning_tokens,
        total_tokens=log.total_tokens,
        input_cost=log.input_cost,
        output_cost=log.output_cost,
        total_cost=log.total_cost,
        priced=log.priced,
    )
