"""Tests for CarryForwardProfitUseCase."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from storeledger.application.use_cases.build_financial_report import (
    BuildFinancialReportUseCase,
)
from storeledger.application.use_cases.carry_forward_profit import CarryForwardProfitUseCase
from storeledger.core.entities.report import ReportWindow, RevenueRecognition
from storeledger.core.entities.transaction import Transaction
from storeledger.core.exceptions import CarryForwardConflictError, ValidationError
from storeledger.core.services.aggregation_engine import AggregationEngine

JANUARY = ReportWindow(start=date(2024, 1, 1), end=date(2024, 1, 31))


def _echo_insert(transaction: Transaction) -> Transaction:
    return transaction.model_copy(update={"id": "7"})


@pytest.fixture
def store(sample_order, sample_transactions) -> AsyncMock:
    store = AsyncMock()
    store.fetch_orders.return_value = [sample_order]
    store.fetch_transactions.return_value = sample_transactions
    store.find_by_idempotency_key.return_value = None
    store.find_carry_forward.return_value = None
    store.insert_transaction.side_effect = _echo_insert
    return store


def _use_case(store: AsyncMock) -> CarryForwardProfitUseCase:
    engine = AggregationEngine(default_recognition=RevenueRecognition.ORDER_PRODUCT)
    report = BuildFinancialReportUseCase(ledger_store=store, engine=engine)
    return CarryForwardProfitUseCase(ledger_store=store, report_use_case=report)


class TestCarryForwardProfit:
    async def test_posts_period_profit(self, store):
        result = await _use_case(store).execute(JANUARY)

        # January holds the order and four transactions, net 60
        assert result.posted
        assert result.net_profit == 60.0
        assert result.transaction.id == "7"
        store.fetch_orders.assert_awaited_once_with(JANUARY)

    async def test_second_post_refused(self, store):
        uc = _use_case(store)
        first = await uc.execute(JANUARY)
        store.find_by_idempotency_key.return_value = first.transaction

        with pytest.raises(CarryForwardConflictError):
            await uc.execute(JANUARY)
        assert store.insert_transaction.await_count == 1

    async def test_loss_not_posted(self, store):
        store.fetch_transactions.return_value = [
            {"type": "expense", "amount": 10_000, "created_at": "2024-01-10"}
        ]
        result = await _use_case(store).execute(JANUARY)

        assert not result.posted
        assert result.reason == "non_positive_profit"
        store.insert_transaction.assert_not_awaited()

    async def test_open_period_needs_key(self, store):
        with pytest.raises(ValidationError):
            await _use_case(store).execute(ReportWindow(start=date(2024, 1, 1)))
        store.fetch_orders.assert_not_awaited()

    async def test_open_period_with_key(self, store):
        result = await _use_case(store).execute(
            ReportWindow.unbounded(), idempotency_key="opening-balance"
        )
        assert result.posted
        store.find_by_idempotency_key.assert_awaited_once_with("opening-balance")

    async def test_undated_order_not_carried_into_consecutive_periods(self, store):
        store.fetch_orders.return_value = [
            {"serial": "ORD-9", "items": [{"quantity": 1, "price": 300, "cost": 100}]}
        ]
        store.fetch_transactions.return_value = []
        uc = _use_case(store)

        january = await uc.execute(JANUARY)
        february = await uc.execute(
            ReportWindow(start=date(2024, 2, 1), end=date(2024, 2, 29))
        )

        assert [january.posted, february.posted] == [False, False]
        assert store.insert_transaction.await_count == 0
