"""Build Financial Report Use Case - one snapshot read, one reduction."""

from dataclasses import dataclass, field

from storeledger.config import get_logger, report_context
from storeledger.core.entities.order import OrderFinancials
from storeledger.core.entities.report import (
    Diagnostic,
    FinancialSummary,
    ReportWindow,
    RevenueRecognition,
)
from storeledger.core.exceptions import SourceUnavailableError
from storeledger.core.interfaces.ledger_store import ILedgerStore, RawRecord
from storeledger.core.services.aggregation_engine import AggregationEngine

logger = get_logger(__name__)


@dataclass
class FinancialReportResult:
    """Result of building a financial report."""

    summary: FinancialSummary


@dataclass
class OrderStatementResult:
    """Per-order financials for a window."""

    window: ReportWindow
    orders: list[OrderFinancials]
    diagnostics: list[Diagnostic] = field(default_factory=list)


class BuildFinancialReportUseCase:
    """
    Read the window's records and reduce them to a FinancialSummary.

    Any failure to read either collection aborts the report; no partial or
    zeroed summary is ever returned.
    """

    def __init__(
        self,
        ledger_store: ILedgerStore | None = None,
        engine: AggregationEngine | None = None,
    ):
        self._ledger_store = ledger_store
        self._engine = engine or AggregationEngine()

    async def _get_ledger_store(self) -> ILedgerStore:
        if self._ledger_store is None:
            from storeledger.infrastructure.storage.sqlite import get_ledger_store

            self._ledger_store = await get_ledger_store()
        return self._ledger_store

    async def _load(self, window: ReportWindow) -> tuple[list[RawRecord], list[RawRecord]]:
        store = await self._get_ledger_store()
        try:
            orders = await store.fetch_orders(window)
        except SourceUnavailableError:
            raise
        except Exception as e:
            logger.error("report_orders_unavailable", window=window.label(), exc_info=True)
            raise SourceUnavailableError("orders", str(e)) from e
        try:
            transactions = await store.fetch_transactions(window)
        except SourceUnavailableError:
            raise
        except Exception as e:
            logger.error(
                "report_transactions_unavailable", window=window.label(), exc_info=True
            )
            raise SourceUnavailableError("transactions", str(e)) from e

        if orders is None:
            raise SourceUnavailableError("orders", "store returned no snapshot")
        if transactions is None:
            raise SourceUnavailableError("transactions", "store returned no snapshot")
        return orders, transactions

    async def execute(
        self,
        window: ReportWindow | None = None,
        recognition: RevenueRecognition | None = None,
    ) -> FinancialReportResult:
        """Execute build financial report use case."""
        window = window or ReportWindow.unbounded()
        recognition = RevenueRecognition(recognition) if recognition else None
        with report_context(
            report_window=window.label(),
            recognition=recognition.value if recognition else "default",
        ):
            logger.info("financial_report_started")
            orders, transactions = await self._load(window)
            summary = self._engine.aggregate(orders, transactions, window, recognition)
            logger.info(
                "financial_report_complete",
                net_profit=summary.net_profit,
                cash_flow=summary.cash_flow,
                diagnostics=len(summary.diagnostics),
            )
        return FinancialReportResult(summary=summary)

    async def order_statement(self, window: ReportWindow | None = None) -> OrderStatementResult:
        """Per-order totals, payments and remaining balances for the window."""
        window = window or ReportWindow.unbounded()
        orders, transactions = await self._load(window)
        diagnostics: list[Diagnostic] = []
        statement = self._engine.statement_for(orders, transactions, window, diagnostics)
        return OrderStatementResult(
            window=window,
            orders=statement,
            diagnostics=sorted(diagnostics, key=Diagnostic.sort_key),
        )
