"""Application use cases."""

from storeledger.application.use_cases.build_financial_report import (
    BuildFinancialReportUseCase,
    FinancialReportResult,
    OrderStatementResult,
)
from storeledger.application.use_cases.carry_forward_profit import CarryForwardProfitUseCase
from storeledger.application.use_cases.record_expense import RecordExpenseUseCase

__all__ = [
    "BuildFinancialReportUseCase",
    "FinancialReportResult",
    "OrderStatementResult",
    "CarryForwardProfitUseCase",
    "RecordExpenseUseCase",
]
