"""
Record normalizer.

Turns the raw order and transaction shapes found in the store (camelCase
storefront orders, snake_case admin orders, legacy-typed transactions) into
fully defaulted Order / Transaction entities. This is the only place that
null-coalesces: everything downstream can rely on every numeric field being
a float.

Anomalies never raise. A record with values that had to be replaced gets a
single MALFORMED_RECORD diagnostic listing every offending field.
"""

import math
import re
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any

from storeledger.config import get_logger, get_settings
from storeledger.core.entities.order import Order, OrderFinancials, OrderItem, OrderStatus
from storeledger.core.entities.report import Diagnostic, DiagnosticKind
from storeledger.core.entities.transaction import (
    Transaction,
    TransactionDirection,
    TransactionKind,
)
from storeledger.core.exceptions import ConfigurationError, MalformedRecordError
from storeledger.core.services.transaction_categorizer import TransactionCategorizer

logger = get_logger(__name__)

_MISSING = object()

# "1,234.50" style grouping; any other comma makes the value unreadable
THOUSANDS_GROUPED = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d*)?$")

# Field aliases, first present key wins
ORDER_SERIAL_KEYS = ("serial", "order_serial", "id")
ORDER_ACCOUNT_KEYS = ("account_id", "user_id")
ORDER_TIMESTAMP_KEYS = ("dateCreated", "date_created", "created_at")
ORDER_SHIPPING_KEYS = ("shippingCost", "shipping_cost")
ORDER_TOTAL_KEYS = ("total", "total_amount")
ITEM_PRODUCT_KEYS = ("productType", "product_type")
ITEM_PRICE_KEYS = ("price", "unit_price")
ITEM_COST_KEYS = ("cost", "unit_cost")
ITEM_DISCOUNT_KEYS = ("itemDiscount", "item_discount")
TX_TYPE_KEYS = ("transaction_type", "type", "direction")
TX_ORDER_KEYS = ("order_ref", "order_serial", "order_id")

# Workflow states used by older storefront builds
LEGACY_STATUS_MAP: dict[str, OrderStatus] = {
    "senttoprinter": OrderStatus.PROCESSING,
    "readyfordelivery": OrderStatus.PROCESSING,
    "completed": OrderStatus.DELIVERED,
}


def _pick(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return _MISSING


def _to_float(value: Any) -> float | None:
    """Convert a raw numeric value, None when it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if "," in text:
            if not THOUSANDS_GROUPED.match(text):
                return None
            text = text.replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a record timestamp into an aware UTC datetime.

    Naive values are taken to be UTC. Raises ValueError when the value is
    present but cannot be interpreted.
    """
    if value is None or value is _MISSING or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    elif isinstance(value, str):
        moment = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"unsupported timestamp type {type(value).__name__}")
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


class RecordNormalizer:
    """Normalizes raw orders and transactions into canonical entities."""

    def __init__(
        self,
        categorizer: TransactionCategorizer | None = None,
        total_tolerance: float | None = None,
    ):
        self._categorizer = categorizer or TransactionCategorizer()
        self._tolerance = (
            total_tolerance
            if total_tolerance is not None
            else get_settings().reporting.total_tolerance
        )
        if self._tolerance < 0:
            raise ConfigurationError(
                f"total_tolerance must be >= 0, got {self._tolerance}",
                details={"total_tolerance": self._tolerance},
            )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def normalize_order(
        self,
        raw: Mapping[str, Any] | Order,
        transactions: Iterable[Mapping[str, Any] | Transaction] = (),
        diagnostics: list[Diagnostic] | None = None,
    ) -> OrderFinancials:
        """
        Normalize one order and derive its financial view.

        Args:
            raw: Raw order record or an already normalized Order.
            transactions: Transactions to match collections against. Only
                collections referencing this order's serial count as paid.
            diagnostics: Optional list that receives anomalies.

        Returns:
            OrderFinancials with both the narrow and full views.
        """
        order = self.normalize_order_record(raw, diagnostics)
        collected = 0.0
        if order.serial:
            txs = [self.normalize_transaction(t, diagnostics) for t in transactions]
            collected = math.fsum(
                t.amount for t in txs if t.is_collection and t.order_ref == order.serial
            )
        return self.financials(order, collected)

    @staticmethod
    def financials(order: Order, collected: float = 0.0) -> OrderFinancials:
        """Build the derived view of an order given its matched collections."""
        paid = order.deposit + collected
        return OrderFinancials(
            serial=order.serial,
            status=order.status,
            created_at=order.created_at,
            subtotal=order.subtotal,
            shipping=order.shipping_cost,
            discount=order.discount,
            deposit=order.deposit,
            total=order.total,
            product_revenue=order.subtotal - order.discount,
            product_cost=order.product_cost,
            collected=collected,
            paid=paid,
            remaining=order.total - paid,
        )

    def normalize_order_record(
        self,
        raw: Mapping[str, Any] | Order,
        diagnostics: list[Diagnostic] | None = None,
    ) -> Order:
        """Normalize one raw order into an Order entity."""
        if isinstance(raw, Order):
            return raw
        if not isinstance(raw, Mapping):
            self._report_malformed(diagnostics, "order", None, ["record"])
            return Order()

        bad: list[str] = []
        serial = _pick(raw, ORDER_SERIAL_KEYS)
        serial = str(serial) if serial not in (None, _MISSING) else None
        account = _pick(raw, ORDER_ACCOUNT_KEYS)
        account = str(account) if account not in (None, _MISSING) else None

        status = self._status(raw.get("status"), bad)
        created_at = self._timestamp(
            _pick(raw, ORDER_TIMESTAMP_KEYS), diagnostics, "order", serial, "created_at"
        )
        items = self._items(raw, bad)

        shipping = self._number(_pick(raw, ORDER_SHIPPING_KEYS), "shipping_cost", bad)
        discount = self._number(raw.get("discount"), "discount", bad)
        deposit = self._number(raw.get("deposit"), "deposit", bad)

        recorded_total: float | None = None
        raw_total = _pick(raw, ORDER_TOTAL_KEYS)
        if raw_total not in (None, _MISSING):
            recorded_total = _to_float(raw_total)
            if recorded_total is None:
                bad.append("total")

        if items or recorded_total is None:
            order = Order(
                serial=serial,
                account_id=account,
                status=status,
                created_at=created_at,
                items=items,
                shipping_cost=shipping,
                discount=discount,
                deposit=deposit,
                recorded_total=recorded_total,
            )
            if recorded_total is not None:
                self._check_recorded_total(order, diagnostics)
        else:
            # Admin schema: no line items, only the stored total (and profit)
            subtotal = recorded_total - shipping + discount
            product_cost = 0.0
            raw_profit = raw.get("profit")
            if raw_profit is not None:
                profit = _to_float(raw_profit)
                if profit is None:
                    bad.append("profit")
                else:
                    product_cost = recorded_total - profit - shipping
            order = Order(
                serial=serial,
                account_id=account,
                status=status,
                created_at=created_at,
                shipping_cost=shipping,
                discount=discount,
                deposit=deposit,
                recorded_total=recorded_total,
                subtotal=subtotal,
                product_cost=product_cost,
            )

        if bad:
            self._report_malformed(diagnostics, "order", serial, bad)
        return order

    def _items(self, raw: Mapping[str, Any], bad: list[str]) -> list[OrderItem]:
        if "items" not in raw:
            return []
        raw_items = raw["items"]
        if not isinstance(raw_items, (list, tuple)):
            bad.append("items")
            return []

        items: list[OrderItem] = []
        for index, raw_item in enumerate(raw_items):
            prefix = f"items[{index}]"
            if not isinstance(raw_item, Mapping):
                bad.append(prefix)
                continue
            quantity = self._number(raw_item.get("quantity"), f"{prefix}.quantity", bad)
            if quantity <= 0 and f"{prefix}.quantity" not in bad:
                bad.append(f"{prefix}.quantity")
            product = _pick(raw_item, ITEM_PRODUCT_KEYS)
            size = raw_item.get("size")
            items.append(
                OrderItem(
                    product_type=str(product) if product not in (None, _MISSING) else "",
                    size=str(size) if size is not None else "",
                    quantity=quantity,
                    unit_price=self._number(
                        _pick(raw_item, ITEM_PRICE_KEYS), f"{prefix}.price", bad
                    ),
                    unit_cost=self._number(
                        _pick(raw_item, ITEM_COST_KEYS), f"{prefix}.cost", bad
                    ),
                    item_discount=self._number(
                        _pick(raw_item, ITEM_DISCOUNT_KEYS), f"{prefix}.item_discount", bad
                    ),
                )
            )
        return items

    def _check_recorded_total(
        self, order: Order, diagnostics: list[Diagnostic] | None
    ) -> None:
        """Accept either stored-total convention, flag anything else."""
        recorded = order.recorded_total
        if recorded is None:
            return
        with_shipping = order.subtotal + order.shipping_cost - order.discount
        without_shipping = order.subtotal - order.discount
        if (
            abs(recorded - with_shipping) <= self._tolerance
            or abs(recorded - without_shipping) <= self._tolerance
        ):
            return
        if diagnostics is not None:
            diagnostics.append(
                Diagnostic(
                    kind=DiagnosticKind.TOTAL_MISMATCH,
                    record_type="order",
                    record_id=order.serial,
                    fields=["total"],
                    message=(
                        f"Recorded total {recorded} does not match computed "
                        f"total {with_shipping}"
                    ),
                    details={"recorded_total": recorded, "computed_total": with_shipping},
                )
            )

    @staticmethod
    def _status(value: Any, bad: list[str]) -> OrderStatus:
        if value is None:
            return OrderStatus.PENDING
        text = str(value).strip()
        try:
            return OrderStatus(text.lower())
        except ValueError:
            pass
        mapped = LEGACY_STATUS_MAP.get(text.lower())
        if mapped is not None:
            return mapped
        bad.append("status")
        return OrderStatus.PENDING

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def normalize_transaction(
        self,
        raw: Mapping[str, Any] | Transaction,
        diagnostics: list[Diagnostic] | None = None,
    ) -> Transaction:
        """Normalize one raw transaction into a Transaction entity."""
        if isinstance(raw, Transaction):
            return raw
        if not isinstance(raw, Mapping):
            self._report_malformed(diagnostics, "transaction", None, ["record"])
            return Transaction(direction=TransactionDirection.EXPENSE)

        bad: list[str] = []
        tx_id = raw.get("id")
        tx_id = str(tx_id) if tx_id is not None else None

        raw_type = _pick(raw, TX_TYPE_KEYS)
        raw_type = raw_type if isinstance(raw_type, str) else None
        resolved = self._categorizer.resolve_direction(raw_type)
        if resolved is None:
            bad.append("transaction_type")
            direction, kind = TransactionDirection.EXPENSE, TransactionKind.GENERAL
        else:
            direction, kind = resolved

        amount = self._number(raw.get("amount"), "amount", bad)
        if amount < 0:
            bad.append("amount")
            amount = abs(amount)

        categorization = self._categorizer.categorize(
            raw.get("description"),
            legacy_type=raw_type,
            diagnostics=diagnostics,
            record_id=tx_id,
        )

        order_ref = _pick(raw, TX_ORDER_KEYS)
        order_ref = str(order_ref) if order_ref not in (None, _MISSING, "") else None
        key = raw.get("idempotency_key")

        transaction = Transaction(
            id=tx_id,
            direction=direction,
            kind=kind,
            amount=amount,
            category=categorization.tag,
            description=categorization.clean_description,
            order_ref=order_ref,
            idempotency_key=str(key) if key else None,
            created_at=self._timestamp(
                raw.get("created_at"), diagnostics, "transaction", tx_id, "created_at"
            ),
        )

        if bad:
            self._report_malformed(diagnostics, "transaction", tx_id, bad)
        return transaction

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _number(value: Any, field: str, bad: list[str]) -> float:
        """Missing and null become 0 silently, non-numeric becomes 0 and is flagged."""
        if value is None or value is _MISSING:
            return 0.0
        number = _to_float(value)
        if number is None:
            bad.append(field)
            return 0.0
        return number

    @staticmethod
    def _timestamp(
        value: Any,
        diagnostics: list[Diagnostic] | None,
        record_type: str,
        record_id: str | None,
        field: str,
    ) -> datetime | None:
        try:
            return parse_timestamp(value)
        except (ValueError, TypeError):
            if diagnostics is not None:
                diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.UNPARSEABLE_TIMESTAMP,
                        record_type=record_type,
                        record_id=record_id,
                        fields=[field],
                        message=f"Unparseable timestamp {str(value)[:50]!r}",
                    )
                )
            return None

    @staticmethod
    def _report_malformed(
        diagnostics: list[Diagnostic] | None,
        record_type: str,
        record_id: str | None,
        fields: list[str],
    ) -> None:
        error = MalformedRecordError(record_type, record_id, fields)
        logger.debug("malformed_record", record_type=record_type, record_id=record_id, fields=fields)
        if diagnostics is None:
            return
        diagnostics.append(
            Diagnostic(
                kind=DiagnosticKind.MALFORMED_RECORD,
                record_type=record_type,
                record_id=record_id,
                fields=fields,
                message=error.message,
                details=error.details,
            )
        )
