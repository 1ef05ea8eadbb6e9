"""
Aggregation engine.

Reduces a window of orders and transactions into a FinancialSummary. The
reduction is pure and synchronous: the same multiset of input records always
produces a byte-identical summary, whatever order the records arrive in.
All money sums use math.fsum and every grouped output is sorted.

Revenue is single-sourced per summary. RevenueRecognition states whether it
comes from orders or from collection transactions; the other source is then
ignored for revenue so nothing is counted twice.
"""

import math
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from storeledger.config import get_logger, get_settings
from storeledger.core.entities.order import Order, OrderFinancials, OrderStatus
from storeledger.core.entities.report import (
    Diagnostic,
    DiagnosticKind,
    FinancialSummary,
    MonthlyBucket,
    ProductLine,
    ReportWindow,
    RevenueRecognition,
)
from storeledger.core.entities.transaction import (
    CategoryTag,
    Transaction,
    TransactionKind,
)
from storeledger.core.exceptions import SourceUnavailableError
from storeledger.core.services.record_normalizer import RecordNormalizer

logger = get_logger(__name__)

OrderInput = Mapping[str, Any] | Order
TransactionInput = Mapping[str, Any] | Transaction

SETTLEMENT_KINDS = (TransactionKind.SHIPPING_PAYMENT, TransactionKind.COST_PAYMENT)


@dataclass
class _Totals:
    """Figures shared by the whole-window summary and each monthly bucket."""

    total_sales: float = 0.0
    total_costs: float = 0.0
    total_shipping: float = 0.0
    total_discounts: float = 0.0
    total_deposits: float = 0.0
    total_collections: float = 0.0
    total_shipping_payments: float = 0.0
    total_cost_payments: float = 0.0
    total_expenses: float = 0.0
    total_other_income: float = 0.0
    total_income: float = 0.0
    net_profit: float = 0.0
    cash_flow: float = 0.0
    expenses_by_category: dict[CategoryTag, float] = field(default_factory=dict)
    income_by_category: dict[CategoryTag, float] = field(default_factory=dict)


def _fsum_by_tag(transactions: list[Transaction]) -> dict[CategoryTag, float]:
    return {
        tag: math.fsum(t.amount for t in transactions if t.category == tag)
        for tag in CategoryTag
    }


def _undated_diagnostic(
    record_type: str, record_id: str | None, window: ReportWindow
) -> Diagnostic:
    return Diagnostic(
        kind=DiagnosticKind.UNDATED_RECORD,
        record_type=record_type,
        record_id=record_id,
        fields=["created_at"],
        message=f"Undated record left out of window {window.label()}",
        details={"window": window.label()},
    )


class AggregationEngine:
    """
    Reduces normalized records into a FinancialSummary.

    Raw record mappings are normalized on the way in, and the normalizer's
    diagnostics are returned on the summary.
    """

    def __init__(
        self,
        normalizer: RecordNormalizer | None = None,
        default_recognition: RevenueRecognition | None = None,
        exclude_cancelled: bool | None = None,
    ):
        settings = get_settings().reporting
        self._normalizer = normalizer or RecordNormalizer()
        self._default_recognition = default_recognition or RevenueRecognition(
            settings.default_recognition
        )
        self._exclude_cancelled = (
            exclude_cancelled
            if exclude_cancelled is not None
            else settings.exclude_cancelled_orders
        )

    def aggregate(
        self,
        orders: Iterable[OrderInput] | None,
        transactions: Iterable[TransactionInput] | None,
        window: ReportWindow | None = None,
        recognition: RevenueRecognition | None = None,
    ) -> FinancialSummary:
        """
        Compute the financial summary of a window.

        Args:
            orders: Order records (raw mappings or Order entities).
            transactions: Transaction records (raw mappings or Transaction).
            window: Date range; records dated outside it are excluded.
                Undated records are kept only when the window is unbounded.
            recognition: Revenue model this summary trusts. Falls back to
                the configured default.

        Returns:
            FinancialSummary with diagnostics.

        Raises:
            SourceUnavailableError: If either record collection is missing.
        """
        if orders is None:
            raise SourceUnavailableError("orders", "no snapshot supplied")
        if transactions is None:
            raise SourceUnavailableError("transactions", "no snapshot supplied")

        window = window or ReportWindow.unbounded()
        recognition = (
            RevenueRecognition(recognition) if recognition else self._default_recognition
        )
        diagnostics: list[Diagnostic] = []

        all_orders, txs, excluded_undated = self._normalize(
            orders, transactions, window, diagnostics
        )

        status_counts = Counter(o.status for o in all_orders)
        active = [
            o for o in all_orders if not (self._exclude_cancelled and o.is_cancelled)
        ]
        statement = self.order_statement(active, txs)
        totals = self._reduce(statement, txs, recognition)
        monthly, undated = self._group_by_month(active, txs, recognition)

        summary = FinancialSummary(
            recognition=recognition,
            window=window,
            total_sales=totals.total_sales,
            total_costs=totals.total_costs,
            total_shipping=totals.total_shipping,
            total_discounts=totals.total_discounts,
            total_deposits=totals.total_deposits,
            total_income=totals.total_income,
            net_profit=totals.net_profit,
            total_collections=totals.total_collections,
            total_shipping_payments=totals.total_shipping_payments,
            total_cost_payments=totals.total_cost_payments,
            cash_flow=totals.cash_flow,
            remaining_costs=totals.total_costs - totals.total_cost_payments,
            remaining_shipping=totals.total_shipping - totals.total_shipping_payments,
            total_receivable=math.fsum(f.remaining for f in statement),
            total_expenses=totals.total_expenses,
            total_other_income=totals.total_other_income,
            expenses_by_category=totals.expenses_by_category,
            income_by_category=totals.income_by_category,
            order_count=len(active),
            transaction_count=len(txs),
            orders_by_status={s: status_counts[s] for s in OrderStatus if status_counts[s]},
            product_breakdown=self._product_breakdown(active),
            monthly=monthly,
            available_years=sorted({b.year for b in monthly}, reverse=True),
            undated_records=undated + excluded_undated,
            diagnostics=sorted(diagnostics, key=Diagnostic.sort_key),
        )

        logger.info(
            "aggregation_complete",
            recognition=recognition.value,
            window=window.label(),
            orders=summary.order_count,
            transactions=summary.transaction_count,
            net_profit=summary.net_profit,
            diagnostics=len(summary.diagnostics),
        )
        return summary

    def statement_for(
        self,
        orders: Iterable[OrderInput],
        transactions: Iterable[TransactionInput],
        window: ReportWindow | None = None,
        diagnostics: list[Diagnostic] | None = None,
    ) -> list[OrderFinancials]:
        """Per-order financials for a window, cancelled orders included."""
        diagnostics = diagnostics if diagnostics is not None else []
        window_orders, txs, _ = self._normalize(
            orders, transactions, window or ReportWindow.unbounded(), diagnostics
        )
        return self.order_statement(window_orders, txs)

    def _normalize(
        self,
        orders: Iterable[OrderInput],
        transactions: Iterable[TransactionInput],
        window: ReportWindow,
        diagnostics: list[Diagnostic],
    ) -> tuple[list[Order], list[Transaction], int]:
        """
        Normalize records, keeping those (and their diagnostics) inside the window.

        Undated records are left out of any restricted window. Each one gets an
        UNDATED_RECORD diagnostic and is counted in the returned total.
        """
        excluded_undated = 0

        normalized_orders: list[Order] = []
        for raw in orders:
            found: list[Diagnostic] = []
            order = self._normalizer.normalize_order_record(raw, found)
            if window.contains(order.created_at):
                normalized_orders.append(order)
                diagnostics.extend(found)
            elif order.created_at is None:
                excluded_undated += 1
                diagnostics.extend(found)
                diagnostics.append(_undated_diagnostic("order", order.serial, window))

        normalized_txs: list[Transaction] = []
        for raw in transactions:
            found = []
            transaction = self._normalizer.normalize_transaction(raw, found)
            if window.contains(transaction.created_at):
                normalized_txs.append(transaction)
                diagnostics.extend(found)
            elif transaction.created_at is None:
                excluded_undated += 1
                diagnostics.extend(found)
                diagnostics.append(
                    _undated_diagnostic("transaction", transaction.id, window)
                )

        if excluded_undated:
            logger.info(
                "undated_records_excluded",
                window=window.label(),
                count=excluded_undated,
            )
        return normalized_orders, normalized_txs, excluded_undated

    def order_statement(
        self, orders: Iterable[Order], transactions: Iterable[Transaction]
    ) -> list[OrderFinancials]:
        """Per-order financials with collections matched by order reference."""
        collected: dict[str, list[float]] = defaultdict(list)
        for t in transactions:
            if t.is_collection and t.order_ref:
                collected[t.order_ref].append(t.amount)

        statement = [
            self._normalizer.financials(
                o, math.fsum(collected.get(o.serial, ())) if o.serial else 0.0
            )
            for o in orders
        ]
        return sorted(
            statement,
            key=lambda f: (f.created_at.isoformat() if f.created_at else "", f.serial or ""),
        )

    @staticmethod
    def _reduce(
        statement: list[OrderFinancials],
        txs: list[Transaction],
        recognition: RevenueRecognition,
    ) -> _Totals:
        totals = _Totals()
        totals.total_costs = math.fsum(f.product_cost for f in statement)
        totals.total_shipping = math.fsum(f.shipping for f in statement)
        totals.total_discounts = math.fsum(f.discount for f in statement)
        totals.total_deposits = math.fsum(f.deposit for f in statement)

        income = [t for t in txs if t.is_income]
        collections = [t for t in income if t.is_collection]
        general_income = [t for t in income if not t.is_collection]
        expenses = [t for t in txs if t.is_expense and t.kind not in SETTLEMENT_KINDS]

        totals.total_collections = math.fsum(t.amount for t in collections)
        totals.total_shipping_payments = math.fsum(
            t.amount for t in txs if t.kind == TransactionKind.SHIPPING_PAYMENT
        )
        totals.total_cost_payments = math.fsum(
            t.amount for t in txs if t.kind == TransactionKind.COST_PAYMENT
        )
        totals.total_expenses = math.fsum(t.amount for t in expenses)
        totals.total_other_income = math.fsum(
            t.amount for t in general_income if t.category == CategoryTag.OTHER
        )
        totals.expenses_by_category = _fsum_by_tag(expenses)
        totals.income_by_category = _fsum_by_tag(income)

        if recognition == RevenueRecognition.ORDER_PRODUCT:
            totals.total_sales = math.fsum(f.product_revenue for f in statement)
        elif recognition == RevenueRecognition.ORDER_TOTAL:
            totals.total_sales = math.fsum(f.total for f in statement)
        else:
            totals.total_sales = math.fsum(
                t.amount for t in income if t.category == CategoryTag.SALES
            )

        totals.total_income = totals.total_sales + totals.total_other_income
        if recognition == RevenueRecognition.ORDER_PRODUCT:
            totals.net_profit = (
                totals.total_sales
                - totals.total_costs
                - totals.total_shipping
                + totals.total_other_income
                - totals.total_expenses
            )
        else:
            totals.net_profit = totals.total_income - totals.total_expenses

        totals.cash_flow = (
            totals.total_collections
            + totals.total_deposits
            + totals.total_other_income
            - totals.total_shipping_payments
            - totals.total_cost_payments
            - totals.total_expenses
        )
        return totals

    def _group_by_month(
        self,
        orders: list[Order],
        txs: list[Transaction],
        recognition: RevenueRecognition,
    ) -> tuple[list[MonthlyBucket], int]:
        """Bucket records by (year, zero-padded month); undated records are skipped."""
        order_groups: dict[tuple[int, str], list[Order]] = defaultdict(list)
        tx_groups: dict[tuple[int, str], list[Transaction]] = defaultdict(list)
        undated = 0

        for o in orders:
            if o.created_at is None:
                undated += 1
                continue
            order_groups[(o.created_at.year, f"{o.created_at.month:02d}")].append(o)
        for t in txs:
            if t.created_at is None:
                undated += 1
                continue
            tx_groups[(t.created_at.year, f"{t.created_at.month:02d}")].append(t)

        buckets: list[MonthlyBucket] = []
        for key in sorted(set(order_groups) | set(tx_groups)):
            month_orders = order_groups.get(key, [])
            month_txs = tx_groups.get(key, [])
            statement = self.order_statement(month_orders, month_txs)
            totals = self._reduce(statement, month_txs, recognition)
            buckets.append(
                MonthlyBucket(
                    year=key[0],
                    month=key[1],
                    order_count=len(month_orders),
                    transaction_count=len(month_txs),
                    total_sales=totals.total_sales,
                    total_costs=totals.total_costs,
                    total_shipping=totals.total_shipping,
                    total_expenses=totals.total_expenses,
                    total_other_income=totals.total_other_income,
                    net_profit=totals.net_profit,
                    cash_flow=totals.cash_flow,
                )
            )
        if undated:
            logger.debug("undated_records_skipped", count=undated)
        return buckets, undated

    @staticmethod
    def _product_breakdown(orders: list[Order]) -> list[ProductLine]:
        quantities: dict[str, list[float]] = defaultdict(list)
        sales: dict[str, list[float]] = defaultdict(list)
        costs: dict[str, list[float]] = defaultdict(list)
        for o in orders:
            for item in o.items:
                key = item.product_key
                quantities[key].append(item.quantity)
                sales[key].append(item.line_total)
                costs[key].append(item.line_cost)

        lines = []
        for key in sorted(quantities):
            total_sales = math.fsum(sales[key])
            total_cost = math.fsum(costs[key])
            lines.append(
                ProductLine(
                    product=key,
                    quantity=math.fsum(quantities[key]),
                    total_sales=total_sales,
                    total_cost=total_cost,
                    profit=total_sales - total_cost,
                )
            )
        return lines
