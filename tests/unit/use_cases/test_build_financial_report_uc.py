"""Tests for BuildFinancialReportUseCase."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from storeledger.application.use_cases.build_financial_report import (
    BuildFinancialReportUseCase,
)
from storeledger.core.entities.report import ReportWindow, RevenueRecognition
from storeledger.core.exceptions import SourceUnavailableError
from storeledger.core.services.aggregation_engine import AggregationEngine


@pytest.fixture
def store(sample_order, sample_transactions) -> AsyncMock:
    store = AsyncMock()
    store.fetch_orders.return_value = [sample_order]
    store.fetch_transactions.return_value = sample_transactions
    return store


@pytest.fixture
def engine() -> AggregationEngine:
    return AggregationEngine(default_recognition=RevenueRecognition.ORDER_PRODUCT)


class TestBuildFinancialReport:
    async def test_builds_summary(self, store, engine):
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)
        result = await uc.execute()

        assert result.summary.net_profit == 120.0
        assert result.summary.window == ReportWindow.unbounded()
        store.fetch_orders.assert_awaited_once()
        store.fetch_transactions.assert_awaited_once()

    async def test_window_passed_to_store(self, store, engine):
        window = ReportWindow(start=date(2024, 1, 1), end=date(2024, 1, 31))
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)
        result = await uc.execute(window)

        store.fetch_orders.assert_awaited_once_with(window)
        store.fetch_transactions.assert_awaited_once_with(window)
        assert result.summary.window == window

    async def test_recognition(self, store, engine):
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)
        result = await uc.execute(recognition=RevenueRecognition.COLLECTIONS)
        assert result.summary.recognition == RevenueRecognition.COLLECTIONS
        assert result.summary.total_sales == 250.0

    async def test_store_failure_aborts(self, store, engine):
        store.fetch_transactions.side_effect = RuntimeError("connection reset")
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)

        with pytest.raises(SourceUnavailableError) as exc_info:
            await uc.execute()

        assert exc_info.value.details["source"] == "transactions"
        assert "connection reset" in exc_info.value.message

    async def test_source_unavailable_propagates(self, store, engine):
        original = SourceUnavailableError("orders", "locked")
        store.fetch_orders.side_effect = original
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)

        with pytest.raises(SourceUnavailableError) as exc_info:
            await uc.execute()
        assert exc_info.value is original
        store.fetch_transactions.assert_not_awaited()

    async def test_missing_snapshot(self, store, engine):
        store.fetch_orders.return_value = None
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)

        with pytest.raises(SourceUnavailableError):
            await uc.execute()


class TestOrderStatement:
    async def test_statement(self, store, engine):
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)
        result = await uc.order_statement()

        assert len(result.orders) == 1
        assert result.orders[0].serial == "ORD-001"
        assert result.orders[0].remaining == 150.0
        assert result.diagnostics == []

    async def test_statement_diagnostics(self, store, engine):
        store.fetch_orders.return_value = [{"serial": "ORD-X", "items": None}]
        uc = BuildFinancialReportUseCase(ledger_store=store, engine=engine)
        result = await uc.order_statement()

        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].record_id == "ORD-X"
