"""Carry Forward Profit Use Case - report a closed period and post its profit."""

from storeledger.application.use_cases.build_financial_report import (
    BuildFinancialReportUseCase,
)
from storeledger.config import get_logger
from storeledger.core.entities.report import ReportWindow, RevenueRecognition
from storeledger.core.exceptions import ValidationError
from storeledger.core.interfaces.ledger_store import ILedgerStore
from storeledger.core.services.carry_forward import CarryForwardResult, CarryForwardService

logger = get_logger(__name__)


class CarryForwardProfitUseCase:
    """Compute a period's summary and carry its net profit forward once."""

    def __init__(
        self,
        ledger_store: ILedgerStore | None = None,
        report_use_case: BuildFinancialReportUseCase | None = None,
        service: CarryForwardService | None = None,
    ):
        self._ledger_store = ledger_store
        self._report = report_use_case
        self._service = service

    async def _get_ledger_store(self) -> ILedgerStore:
        if self._ledger_store is None:
            from storeledger.infrastructure.storage.sqlite import get_ledger_store

            self._ledger_store = await get_ledger_store()
        return self._ledger_store

    async def execute(
        self,
        period: ReportWindow,
        idempotency_key: str | None = None,
        recognition: RevenueRecognition | None = None,
    ) -> CarryForwardResult:
        """Execute carry forward use case."""
        if not period.is_bounded and not idempotency_key:
            raise ValidationError(
                "period", "an open period needs an explicit idempotency key", period.label()
            )

        store = await self._get_ledger_store()
        report = self._report or BuildFinancialReportUseCase(ledger_store=store)
        service = self._service or CarryForwardService(store)

        result = await report.execute(period, recognition)
        outcome = await service.carry_forward(result.summary, period, idempotency_key)

        logger.info(
            "carry_forward_profit_complete",
            period=outcome.period_label,
            posted=outcome.posted,
            net_profit=outcome.net_profit,
        )
        return outcome
