"""Ledger transaction entities."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TransactionDirection(str, Enum):
    """Whether money came in or went out."""

    INCOME = "income"
    EXPENSE = "expense"


class TransactionKind(str, Enum):
    """
    What a transaction settles.

    Collections and cost/shipping payments settle obligations derived from
    orders and are reported separately from general income and expenses.
    """

    ORDER_COLLECTION = "order_collection"
    SHIPPING_PAYMENT = "shipping_payment"
    COST_PAYMENT = "cost_payment"
    GENERAL = "general"


class CategoryTag(str, Enum):
    """Reporting category of a transaction."""

    COST = "cost"
    SHIPPING = "shipping"
    MATERIALS = "materials"
    SALES = "sales"
    OTHER = "other"


class Transaction(BaseModel):
    """
    A ledger entry in canonical form.

    amount is always a non-negative magnitude; the sign is implied by
    direction. description holds the text with any bracket tag removed, the
    tag itself lives in category.
    """

    id: str | None = None
    direction: TransactionDirection
    kind: TransactionKind = TransactionKind.GENERAL
    amount: float = Field(default=0.0, ge=0)
    category: CategoryTag = CategoryTag.OTHER
    description: str = ""
    order_ref: str | None = None
    idempotency_key: str | None = None
    created_at: datetime | None = None

    @property
    def is_income(self) -> bool:
        return self.direction == TransactionDirection.INCOME

    @property
    def is_expense(self) -> bool:
        return self.direction == TransactionDirection.EXPENSE

    @property
    def is_collection(self) -> bool:
        """Money received from a customer against an order."""
        if not self.is_income:
            return False
        if self.kind == TransactionKind.ORDER_COLLECTION:
            return True
        return self.category == CategoryTag.SALES and bool(self.order_ref)

    @property
    def signed_amount(self) -> float:
        return self.amount if self.is_income else -self.amount


class Categorization(BaseModel):
    """Result of interpreting a transaction's category encoding."""

    tag: CategoryTag
    clean_description: str
