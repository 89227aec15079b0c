"""
Recipe Core - LLM Usage Accounting

Every chat completion the enrichment client makes is written to the
query log with its token counts, then priced against the model price
table in a second step.

Cost formula (prices are per million tokens):
    input_cost  = (prompt_tokens + reasoning_tokens) / 1e6 * input_per_mtok_usd
    output_cost = response_tokens / 1e6 * output_per_mtok_usd
    total_cost  = input_cost + output_cost
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional

from recipe_core.config import DEFAULT_MODEL_PRICES
from recipe_core.models import ModelPrice, QueryLog
from recipe_core.ports import PriceTable, QueryLogStore
from recipe_core.store import SqlPriceTable, SqlQueryLogStore, seed_prices

logger = logging.getLogger(__name__)

TOKENS_PER_MILLION = 1_000_000.0


def calculate_costs(log: QueryLog, price: ModelPrice) -> QueryLog:
    """
    Return a copy of the log with its three cost fields computed from price.

    Costs are recomputed from the token counts every time, so pricing the
    same log twice gives the same numbers.

    Example:
        >>> log = QueryLog(id="q1", model="m", prompt="", response="",
        ...                prompt_tokens=500_000, response_tokens=200_000)
        >>> priced = calculate_costs(log, ModelPrice("m", 10.0, 20.0))
        >>> priced.input_cost, priced.output_cost, priced.total_cost
        (5.0, 4.0, 9.0)
    """
    prompt_millions = log.prompt_tokens / TOKENS_PER_MILLION
    reasoning_millions = (log.reasoning_tokens or 0) / TOKENS_PER_MILLION
    response_millions = log.response_tokens / TOKENS_PER_MILLION

    input_cost = (prompt_millions + reasoning_millions) * price.input_per_mtok_usd
    output_cost = response_millions * price.output_per_mtok_usd

    return replace(
        log,
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        priced=True,
    )


class PricingService:
    """Prices stored query logs against the model price table."""

    def __init__(self, price_table: PriceTable, query_logs: QueryLogStore):
        self.price_table = price_table
        self.query_logs = query_logs

    def calculate_price(self, query_log_id: str) -> Optional[QueryLog]:
        """
        Compute and persist the cost of one query log.

        Returns:
            The updated log, or None when the log or its model price is missing
        """
        log = self.query_logs.get(query_log_id)
        if log is None:
            logger.warning(f"LLM query log with ID {query_log_id} not found")
            return None

        price = self.price_table.lookup(log.model)
        if price is None:
            logger.warning(f"No price found for model family: {log.model}")
            return None

        return self.query_logs.save(calculate_costs(log, price))

    def reprice_pending(self) -> int:
        """Price every log still flagged as unpriced. Returns how many were priced."""
        priced = 0
        for log_id in self.query_logs.unpriced_ids():
            if self.calculate_price(log_id) is not None:
                priced += 1
        logger.info(f"Priced {priced} pending query log(s)")
        return priced


class QueryLogRecorder:
    """
    Two-phase writer for LLM usage: insert the log unpriced, then price it.

    Failures are logged and swallowed; accounting must never break the
    LLM call it describes.
    """

    def __init__(self, query_logs: QueryLogStore, pricing: PricingService):
        self.query_logs = query_logs
        self.pricing = pricing

    def record(
        self,
        model: str,
        prompt: str,
        response: str,
        prompt_tokens: int = 0,
        response_tokens: int = 0,
        reasoning_tokens: int = 0,
        total_tokens: Optional[int] = None,
        response_id: Optional[str] = None,
        recipe_id: Optional[int] = None,
    ) -> Optional[QueryLog]:
        log = QueryLog(
            id=response_id or uuid.uuid4().hex,
            model=model,
            prompt=prompt,
            response=response,
            recipe_id=recipe_id,
            prompt_tokens=prompt_tokens,
            response_tokens=response_tokens,
            reasoning_tokens=reasoning_tokens,
            total_tokens=total_tokens if total_tokens is not None else prompt_tokens + response_tokens,
        )
        try:
            saved = self.query_logs.add(log)
            logger.debug(f"Saved LLM query log with ID: {saved.id}")
            return self.pricing.calculate_price(saved.id) or saved
        except Exception as e:
            logger.warning(f"Failed to save LLM query log: {e}", exc_info=True)
            return None


def create_usage_recorder(sessions) -> QueryLogRecorder:
    """
    Wire the SQL query-log store and price table into a recorder.

    Seed prices from config are inserted for model families that have none.
    """
    price_table = SqlPriceTable(sessions)
    seed_prices(price_table, [
        ModelPrice(model_family=model, input_per_mtok_usd=input_price, output_per_mtok_usd=output_price)
        for model, (input_price, output_price) in DEFAULT_MODEL_PRICES.items()
    ])
    query_logs = SqlQueryLogStore(sessions)
    return QueryLogRecorder(query_logs, PricingService(price_table, query_logs))
