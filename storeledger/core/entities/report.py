"""Report window, diagnostics and financial summary entities."""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from storeledger.core.entities.order import OrderStatus
from storeledger.core.entities.transaction import CategoryTag


class RevenueRecognition(str, Enum):
    """
    Which source a summary trusts for revenue.

    ORDER_PRODUCT and ORDER_TOTAL read revenue from orders only, COLLECTIONS
    reads it from sales-tagged income transactions only. No summary mixes
    the two sources.
    """

    ORDER_PRODUCT = "order_product"
    ORDER_TOTAL = "order_total"
    COLLECTIONS = "collections"

    @property
    def from_orders(self) -> bool:
        return self != RevenueRecognition.COLLECTIONS


class ReportWindow(BaseModel):
    """Inclusive date range used to select records for a report."""

    start: date | None = None
    end: date | None = None

    @model_validator(mode="after")
    def check_order(self) -> "ReportWindow":
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")
        return self

    @classmethod
    def unbounded(cls) -> "ReportWindow":
        return cls()

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: datetime | date | None) -> bool:
        """
        Check a timestamp against the window.

        Undated records match only the unbounded window, so no undated record
        is counted in two neighbouring periods.
        """
        if moment is None:
            return self.is_unbounded
        day = moment.date() if isinstance(moment, datetime) else moment
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True

    def label(self) -> str:
        """Human-readable period label, e.g. '2024/01/01 - 2024/01/31'."""
        if not self.start and not self.end:
            return "all periods"
        start = self.start.strftime("%Y/%m/%d") if self.start else "..."
        end = self.end.strftime("%Y/%m/%d") if self.end else "..."
        return f"{start} - {end}"


class DiagnosticKind(str, Enum):
    """Kind of non-fatal anomaly found while reconciling records."""

    MALFORMED_RECORD = "malformed_record"
    UNKNOWN_CATEGORY = "unknown_category"
    UNPARSEABLE_TIMESTAMP = "unparseable_timestamp"
    TOTAL_MISMATCH = "total_mismatch"
    UNDATED_RECORD = "undated_record"


class Diagnostic(BaseModel):
    """A non-fatal anomaly returned alongside a summary."""

    kind: DiagnosticKind
    record_type: str
    record_id: str | None = None
    fields: list[str] = Field(default_factory=list)
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)

    def sort_key(self) -> tuple[str, str, str, str, str, str]:
        return (
            self.kind.value,
            self.record_type,
            self.record_id or "",
            ",".join(self.fields),
            self.message,
            json.dumps(self.details, sort_keys=True, default=str),
        )


class ProductLine(BaseModel):
    """Sales and cost totals for one product type and size."""

    product: str
    quantity: float = 0.0
    total_sales: float = 0.0
    total_cost: float = 0.0
    profit: float = 0.0


class MonthlyBucket(BaseModel):
    """Figures for one calendar month of a trend chart."""

    year: int
    month: str  # zero-padded, "01".."12"
    order_count: int = 0
    transaction_count: int = 0
    total_sales: float = 0.0
    total_costs: float = 0.0
    total_shipping: float = 0.0
    total_expenses: float = 0.0
    total_other_income: float = 0.0
    net_profit: float = 0.0
    cash_flow: float = 0.0

    @property
    def key(self) -> tuple[int, str]:
        return (self.year, self.month)


class FinancialSummary(BaseModel):
    """
    Derived figures for one report window.

    Pure Pydantic model, never persisted. Recomputed on every request by
    AggregationEngine.
    """

    recognition: RevenueRecognition
    window: ReportWindow = Field(default_factory=ReportWindow)

    total_sales: float = 0.0
    total_costs: float = 0.0
    total_shipping: float = 0.0
    total_discounts: float = 0.0
    total_deposits: float = 0.0
    total_income: float = 0.0
    net_profit: float = 0.0

    total_collections: float = 0.0
    total_shipping_payments: float = 0.0
    total_cost_payments: float = 0.0
    cash_flow: float = 0.0
    remaining_costs: float = 0.0
    remaining_shipping: float = 0.0
    total_receivable: float = 0.0

    total_expenses: float = 0.0
    total_other_income: float = 0.0
    expenses_by_category: dict[CategoryTag, float] = Field(default_factory=dict)
    income_by_category: dict[CategoryTag, float] = Field(default_factory=dict)

    order_count: int = 0
    transaction_count: int = 0
    orders_by_status: dict[OrderStatus, int] = Field(default_factory=dict)
    product_breakdown: list[ProductLine] = Field(default_factory=list)
    monthly: list[MonthlyBucket] = Field(default_factory=list)
    available_years: list[int] = Field(default_factory=list)
    undated_records: int = 0

    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def profit_margin(self) -> float | None:
        """Net profit as a percentage of sales, None when there were no sales."""
        if not self.total_sales:
            return None
        return self.net_profit / self.total_sales * 100
