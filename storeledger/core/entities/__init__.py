"""Core domain entities."""

from storeledger.core.entities.order import (
    Order,
    OrderFinancials,
    OrderItem,
    OrderStatus,
)
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
    Categorization,
    CategoryTag,
    Transaction,
    TransactionDirection,
    TransactionKind,
)

__all__ = [
    # Order entities
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderFinancials",
    # Transaction entities
    "Transaction",
    "TransactionDirection",
    "TransactionKind",
    "CategoryTag",
    "Categorization",
    # Report entities
    "ReportWindow",
    "RevenueRecognition",
    "Diagnostic",
    "DiagnosticKind",
    "FinancialSummary",
    "MonthlyBucket",
    "ProductLine",
]
