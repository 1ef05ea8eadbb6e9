"""Tests for AggregationEngine."""

import random
from datetime import date

import pytest

from storeledger.core.entities.order import OrderStatus
from storeledger.core.entities.report import (
    DiagnosticKind,
    ReportWindow,
    RevenueRecognition,
)
from storeledger.core.entities.transaction import CategoryTag
from storeledger.core.exceptions import SourceUnavailableError
from storeledger.core.services.aggregation_engine import AggregationEngine


@pytest.fixture
def engine() -> AggregationEngine:
    return AggregationEngine(
        default_recognition=RevenueRecognition.ORDER_PRODUCT, exclude_cancelled=True
    )


def _order(serial: str, created: str | None, price: float, cost: float, **extra) -> dict:
    return {
        "serial": serial,
        "dateCreated": created,
        "status": extra.pop("status", "confirmed"),
        "items": [{"productType": "Mug", "size": "L", "quantity": 1, "price": price, "cost": cost}],
        **extra,
    }


class TestEmptyAndMissing:
    def test_empty_inputs(self, engine):
        summary = engine.aggregate([], [])
        assert summary.net_profit == 0.0
        assert summary.total_sales == 0.0
        assert summary.cash_flow == 0.0
        assert summary.monthly == []
        assert summary.available_years == []
        assert summary.diagnostics == []

    def test_missing_orders(self, engine):
        with pytest.raises(SourceUnavailableError) as exc_info:
            engine.aggregate(None, [])
        assert exc_info.value.details["source"] == "orders"

    def test_missing_transactions(self, engine):
        with pytest.raises(SourceUnavailableError):
            engine.aggregate([], None)


class TestEndToEnd:
    def test_narrow_profit(self, engine):
        """One order and one tagged expense give a net profit of 50."""
        summary = engine.aggregate(
            [
                {
                    "total": 500,
                    "shippingCost": 50,
                    "discount": 0,
                    "items": [{"price": 500, "cost": 300, "quantity": 1, "itemDiscount": 0}],
                }
            ],
            [{"direction": "expense", "amount": 100, "description": "[materials] glue"}],
        )

        assert summary.total_sales == 500.0
        assert summary.total_costs == 300.0
        assert summary.total_shipping == 50.0
        assert summary.total_expenses == 100.0
        assert summary.expenses_by_category[CategoryTag.MATERIALS] == 100.0
        assert summary.net_profit == 50.0
        assert summary.diagnostics == []
        assert summary.undated_records == 2
        assert summary.monthly == []

    def test_full_figures(self, engine, sample_order, sample_transactions):
        summary = engine.aggregate([sample_order], sample_transactions)

        assert summary.recognition == RevenueRecognition.ORDER_PRODUCT
        assert summary.total_sales == 450.0
        assert summary.total_costs == 300.0
        assert summary.total_shipping == 50.0
        assert summary.total_discounts == 30.0
        assert summary.total_deposits == 100.0
        assert summary.total_collections == 250.0
        assert summary.total_cost_payments == 200.0
        assert summary.total_shipping_payments == 50.0
        assert summary.total_expenses == 40.0
        assert summary.total_other_income == 60.0
        assert summary.total_income == 510.0
        assert summary.net_profit == 120.0
        assert summary.cash_flow == 120.0
        assert summary.remaining_costs == 100.0
        assert summary.remaining_shipping == 0.0
        assert summary.total_receivable == 150.0
        assert summary.order_count == 1
        assert summary.transaction_count == 5
        assert summary.income_by_category[CategoryTag.SALES] == 250.0
        assert summary.income_by_category[CategoryTag.OTHER] == 60.0

    def test_product_breakdown(self, engine, sample_order):
        summary = engine.aggregate([sample_order], [])
        lines = {line.product: line for line in summary.product_breakdown}
        assert list(lines) == ["Mug - L", "Shirt - M"]
        assert lines["Mug - L"].quantity == 2.0
        assert lines["Mug - L"].total_sales == 300.0
        assert lines["Mug - L"].profit == 120.0
        assert lines["Shirt - M"].total_sales == 180.0


class TestRecognition:
    """Revenue is taken from one source only."""

    def test_order_total(self, engine, sample_order, sample_transactions):
        summary = engine.aggregate(
            [sample_order], sample_transactions, recognition=RevenueRecognition.ORDER_TOTAL
        )
        assert summary.total_sales == 500.0
        assert summary.net_profit == 520.0

    def test_collections(self, engine, sample_order, sample_transactions):
        summary = engine.aggregate(
            [sample_order], sample_transactions, recognition=RevenueRecognition.COLLECTIONS
        )
        assert summary.total_sales == 250.0
        assert summary.net_profit == 270.0

    def test_collection_not_double_counted(self, engine, sample_order, sample_transactions):
        """A collection for an order does not add to order-based revenue."""
        without = engine.aggregate([sample_order], [])
        with_txs = engine.aggregate([sample_order], sample_transactions[:1])
        assert without.total_sales == with_txs.total_sales

    def test_string_recognition(self, engine, sample_order):
        summary = engine.aggregate([sample_order], [], recognition="order_total")
        assert summary.recognition == RevenueRecognition.ORDER_TOTAL

    def test_configured_default(self, monkeypatch, sample_order):
        monkeypatch.setenv("REPORT_DEFAULT_RECOGNITION", "collections")
        summary = AggregationEngine().aggregate([sample_order], [])
        assert summary.recognition == RevenueRecognition.COLLECTIONS
        assert summary.total_sales == 0.0


class TestDeterminism:
    def test_repeatable(self, engine, sample_order, sample_transactions):
        first = engine.aggregate([sample_order], sample_transactions)
        second = engine.aggregate([sample_order], sample_transactions)
        assert first.model_dump_json() == second.model_dump_json()

    def test_input_order_irrelevant(self, engine):
        orders = [
            _order(f"ORD-{i}", f"2024-0{i % 9 + 1}-10T12:00:00", 0.1 * i, 0.07 * i)
            for i in range(1, 30)
        ]
        transactions = [
            {"id": i, "type": "expense", "amount": 0.3 * i, "description": "[cost] ink",
             "created_at": f"2024-0{i % 9 + 1}-11T08:00:00"}
            for i in range(1, 30)
        ] + [{"id": 99, "type": "expense", "amount": -1}, {"id": 98, "type": "weird"}]

        shuffled_orders = orders[:]
        shuffled_txs = transactions[:]
        random.Random(7).shuffle(shuffled_orders)
        random.Random(7).shuffle(shuffled_txs)

        first = engine.aggregate(orders, transactions)
        second = engine.aggregate(shuffled_orders, shuffled_txs)
        assert first.model_dump_json() == second.model_dump_json()


class TestBalances:
    def test_remaining_costs_not_clamped(self, engine):
        summary = engine.aggregate(
            [_order("ORD-1", "2024-01-05", 200, 100)],
            [{"type": "cost_payment", "amount": 150, "created_at": "2024-01-06"}],
        )
        assert summary.remaining_costs == -50.0

    def test_settlement_payments_are_not_expenses(self, engine):
        summary = engine.aggregate(
            [],
            [
                {"type": "cost_payment", "amount": 150},
                {"type": "shipping_payment", "amount": 20},
            ],
        )
        assert summary.total_expenses == 0.0
        assert summary.net_profit == 0.0
        assert summary.cash_flow == -170.0


class TestCancelledOrders:
    def test_excluded_from_money_but_counted(self, engine):
        summary = engine.aggregate(
            [
                _order("ORD-1", "2024-01-05", 200, 100),
                _order("ORD-2", "2024-01-06", 300, 100, status="cancelled"),
            ],
            [],
        )
        assert summary.total_sales == 200.0
        assert summary.order_count == 1
        assert summary.orders_by_status == {
            OrderStatus.CONFIRMED: 1,
            OrderStatus.CANCELLED: 1,
        }

    def test_included_when_configured(self):
        engine = AggregationEngine(exclude_cancelled=False)
        summary = engine.aggregate(
            [_order("ORD-2", "2024-01-06", 300, 100, status="cancelled")], []
        )
        assert summary.total_sales == 300.0


class TestWindowAndMonthly:
    def test_window_filters_dated_records(self, engine, sample_order, sample_transactions):
        window = ReportWindow(start=date(2024, 1, 1), end=date(2024, 1, 31))
        summary = engine.aggregate([sample_order], sample_transactions, window=window)
        assert summary.transaction_count == 4
        assert summary.total_other_income == 0.0
        assert summary.window == window

    def test_out_of_window_diagnostics_dropped(self, engine):
        window = ReportWindow(start=date(2024, 1, 1), end=date(2024, 1, 31))
        summary = engine.aggregate(
            [],
            [
                {"id": 1, "type": "expense", "amount": -5, "created_at": "2023-06-01"},
                {"id": 2, "type": "expense", "amount": -5, "created_at": "2024-01-10"},
            ],
            window=window,
        )
        assert [d.record_id for d in summary.diagnostics] == ["2"]

    def test_monthly_buckets(self, engine, sample_order, sample_transactions):
        summary = engine.aggregate([sample_order], sample_transactions)
        assert [b.key for b in summary.monthly] == [(2024, "01"), (2024, "02")]

        january, february = summary.monthly
        assert january.order_count == 1
        assert january.transaction_count == 4
        assert january.net_profit == 60.0
        assert january.cash_flow == 60.0
        assert february.total_other_income == 60.0
        assert february.net_profit == 60.0

    def test_available_years_descending(self, engine):
        summary = engine.aggregate(
            [
                _order("ORD-1", "2022-05-01", 10, 5),
                _order("ORD-2", "2024-05-01", 10, 5),
                _order("ORD-3", "2023-05-01", 10, 5),
            ],
            [],
        )
        assert summary.available_years == [2024, 2023, 2022]

    def test_unparseable_timestamp_left_out_of_bounded_window(self, engine):
        summary = engine.aggregate(
            [_order("ORD-1", "soon", 100, 40)],
            [],
            window=ReportWindow(start=date(2024, 1, 1), end=date(2024, 1, 31)),
        )
        assert summary.total_sales == 0.0
        assert summary.order_count == 0
        assert summary.undated_records == 1
        assert [d.kind for d in summary.diagnostics] == [
            DiagnosticKind.UNDATED_RECORD,
            DiagnosticKind.UNPARSEABLE_TIMESTAMP,
        ]

    def test_unparseable_timestamp_kept_in_unbounded_window(self, engine):
        summary = engine.aggregate([_order("ORD-1", "soon", 100, 40)], [])
        assert summary.total_sales == 100.0
        assert summary.undated_records == 1
        assert [d.kind for d in summary.diagnostics] == [DiagnosticKind.UNPARSEABLE_TIMESTAMP]

    def test_undated_records_counted_in_no_bounded_window(self, engine):
        orders = [
            _order("ORD-1", None, 300, 100),
            _order("ORD-2", "2024-01-10", 50, 20),
        ]
        transactions = [{"type": "expense", "amount": 30, "description": "[other] fee"}]
        january = engine.aggregate(
            orders, transactions, ReportWindow(start=date(2024, 1, 1), end=date(2024, 1, 31))
        )
        february = engine.aggregate(
            orders, transactions, ReportWindow(start=date(2024, 2, 1), end=date(2024, 2, 29))
        )

        assert january.net_profit == 30.0
        assert january.order_count == 1
        assert january.total_expenses == 0.0
        assert february.net_profit == 0.0
        for summary in (january, february):
            assert summary.undated_records == 2
            undated = [
                d for d in summary.diagnostics if d.kind == DiagnosticKind.UNDATED_RECORD
            ]
            assert [(d.record_type, d.record_id) for d in undated] == [
                ("order", "ORD-1"),
                ("transaction", None),
            ]


class TestStatement:
    def test_statement_sorted_and_includes_cancelled(self, engine, sample_transactions):
        statement = engine.statement_for(
            [
                _order("ORD-001", "2024-01-20", 100, 50),
                _order("ORD-000", "2024-01-01", 100, 50, status="cancelled"),
            ],
            sample_transactions,
        )
        assert [f.serial for f in statement] == ["ORD-000", "ORD-001"]
        assert statement[1].collected == 250.0
        assert statement[1].remaining == -150.0
