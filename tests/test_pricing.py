"""
Tests for recipe_core/pricing.py

calculate_costs is pure; PricingService and QueryLogRecorder are tested
against both mocked and real (SQLite) stores.
"""

import pytest
from unittest.mock import MagicMock

from recipe_core.models import ModelPrice, QueryLog
from recipe_core.pricing import PricingService, QueryLogRecorder, calculate_costs, create_usage_recorder
from recipe_core.store import SqlPriceTable, SqlQueryLogStore


@pytest.fixture
def sample_log():
    return QueryLog(
        id="log-1",
        model="gemini-test",
        prompt="Summarize...",
        response="A summary.",
        prompt_tokens=500_000,
        response_tokens=200_000,
        total_tokens=700_000,
    )


@pytest.fixture
def sample_price():
    return ModelPrice(model_family="gemini-test", input_per_mtok_usd=10.0, output_per_mtok_usd=20.0)


@pytest.fixture
def sql_pricing(sessions, sample_price):
    price_table = SqlPriceTable(sessions)
    price_table.upsert(sample_price)
    query_logs = SqlQueryLogStore(sessions)
    return PricingService(price_table, query_logs)


class TestCalculateCosts:

    def test_known_costs(self, sample_log, sample_price):
        priced = calculate_costs(sample_log, sample_price)

        assert priced.input_cost == pytest.approx(5.0)
        assert priced.output_cost == pytest.approx(4.0)
        assert priced.total_cost == pytest.approx(9.0)
        assert priced.priced is True

    def test_reasoning_tokens_billed_as_input(self, sample_log, sample_price):
        sample_log.reasoning_tokens = 100_000

        priced = calculate_costs(sample_log, sample_price)

        assert priced.input_cost == pytest.approx(6.0)
        assert priced.total_cost == pytest.approx(10.0)

    def test_does_not_mutate_input(self, sample_log, sample_price):
        calculate_costs(sample_log, sample_price)

        assert sample_log.priced is False
        assert sample_log.total_cost == 0.0


class TestPricingService:

    def test_missing_log_returns_none(self, sample_price):
        query_logs = MagicMock()
        query_logs.get.return_value = None
        price_table = MagicMock()

        assert PricingService(price_table, query_logs).calculate_price("nope") is None
        price_table.lookup.assert_not_called()
        query_logs.save.assert_not_called()

    def test_missing_price_returns_none(self, sample_log):
        query_logs = MagicMock()
        query_logs.get.return_value = sample_log
        price_table = MagicMock()
        price_table.lookup.return_value = None

        assert PricingService(price_table, query_logs).calculate_price("log-1") is None
        query_logs.save.assert_not_called()

    def test_prices_and_persists(self, sql_pricing, sample_log):
        sql_pricing.query_logs.add(sample_log)

        result = sql_pricing.calculate_price("log-1")

        assert result.total_cost == pytest.approx(9.0)
        stored = sql_pricing.query_logs.get("log-1")
        assert stored.priced is True
        assert stored.input_cost == pytest.approx(5.0)

    def test_idempotent(self, sql_pricing, sample_log):
        sql_pricing.query_logs.add(sample_log)

        first = sql_pricing.calculate_price("log-1")
        second = sql_pricing.calculate_price("log-1")

        assert second.total_cost == pytest.approx(first.total_cost)
        assert second.input_cost == pytest.approx(5.0)

    def test_reprice_pending_after_price_added(self, sessions, sample_log, sample_price):
        price_table = SqlPriceTable(sessions)
        query_logs = SqlQueryLogStore(sessions)
        service = PricingService(price_table, query_logs)
        query_logs.add(sample_log)

        assert service.reprice_pending() == 0
        assert query_logs.unpriced_ids() == ["log-1"]

        price_table.upsert(sample_price)

        assert service.reprice_pending() == 1
        assert query_logs.unpriced_ids() == []


class TestQueryLogRecorder:

    def test_inserts_then_prices(self, sql_pricing):
        recorder = QueryLogRecorder(sql_pricing.query_logs, sql_pricing)

        log = recorder.record(
            model="gemini-test",
            prompt="p",
            response="r",
            prompt_tokens=500_000,
            response_tokens=200_000,
            response_id="resp-1",
            recipe_id=7,
        )

        assert log.id == "resp-1"
        assert log.priced is True
        assert log.total_tokens == 700_000
        assert sql_pricing.query_logs.get("resp-1").recipe_id == 7

    def test_generates_id_when_missing(self, sql_pricing):
        recorder = QueryLogRecorder(sql_pricing.query_logs, sql_pricing)

        log = recorder.record(model="gemini-test", prompt="p", response="r")

        assert log.id

    def test_unpriced_model_stays_pending(self, sql_pricing):
        recorder = QueryLogRecorder(sql_pricing.query_logs, sql_pricing)

        log = recorder.record(model="unknown-model", prompt="p", response="r", response_id="resp-2")

        assert log.priced is False
        assert sql_pricing.query_logs.unpriced_ids() == ["resp-2"]

    def test_store_error_is_swallowed(self):
        query_logs = MagicMock()
        query_logs.add.side_effect = RuntimeError("database is locked")

        recorder = QueryLogRecorder(query_logs, MagicMock())

        assert recorder.record(model="m", prompt="p", response="r") is None

    def test_create_usage_recorder_seeds_prices(self, sessions):
        recorder = create_usage_recorder(sessions)

        assert recorder.pricing.price_table.lookup("gemini-flash-latest") is not None
