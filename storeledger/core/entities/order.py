"""Order domain entities."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class OrderStatus(str, Enum):
    """Order workflow status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """A single ordered product line."""

    product_type: str = ""
    size: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    unit_cost: float = 0.0
    item_discount: float = 0.0
    line_total: float = 0.0  # quantity * unit_price - item_discount
    line_cost: float = 0.0  # quantity * unit_cost
    profit: float = 0.0  # line_total - line_cost

    @model_validator(mode="after")
    def compute_line(self) -> "OrderItem":
        """Compute line_total, line_cost and profit from the raw line values."""
        self.line_total = self.quantity * self.unit_price - self.item_discount
        self.line_cost = self.quantity * self.unit_cost
        self.profit = self.line_total - self.line_cost
        return self

    @property
    def product_key(self) -> str:
        if self.size:
            return f"{self.product_type} - {self.size}"
        return self.product_type


class Order(BaseModel):
    """
    A customer order in canonical form.

    Produced by RecordNormalizer from whichever raw schema variant the store
    returned. Every numeric field is fully defaulted, so downstream code never
    null-coalesces.
    """

    serial: str | None = None
    account_id: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime | None = None
    items: list[OrderItem] = Field(default_factory=list)
    shipping_cost: float = 0.0
    discount: float = 0.0
    deposit: float = 0.0
    recorded_total: float | None = None  # denormalized total as stored

    subtotal: float = 0.0  # sum of item line totals
    product_cost: float = 0.0  # sum of item line costs
    total: float = 0.0  # subtotal + shipping_cost - discount

    @model_validator(mode="after")
    def compute_totals(self) -> "Order":
        """Compute subtotal, product_cost and total from items."""
        if self.items:
            self.subtotal = sum(i.line_total for i in self.items)
            self.product_cost = sum(i.line_cost for i in self.items)
        self.total = self.subtotal + self.shipping_cost - self.discount
        return self

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED


class OrderFinancials(BaseModel):
    """
    Derived money view of one order.

    Carries both the narrow product-only view (product_revenue) and the full
    order-total view (total). Values are never clamped: a negative remaining
    balance means the customer overpaid or was refunded.
    """

    serial: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime | None = None
    subtotal: float = 0.0
    shipping: float = 0.0
    discount: float = 0.0
    deposit: float = 0.0
    total: float = 0.0
    product_revenue: float = 0.0  # subtotal - discount
    product_cost: float = 0.0
    collected: float = 0.0  # matched collection transactions
    paid: float = 0.0  # deposit + collected
    remaining: float = 0.0  # total - paid

    @property
    def product_margin(self) -> float:
        return self.product_revenue - self.product_cost

    @property
    def is_settled(self) -> bool:
        return self.remaining <= 0
