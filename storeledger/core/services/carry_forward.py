"""
Carry-forward operator.

Posts a period's net profit as a sales-tagged income transaction so that it
rolls into later periods. Every post carries an idempotency key. A key that
has been used before, or a period label that already has a carry-forward
(including rows posted without a key), is refused instead of inflating
future income.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from storeledger.config import get_logger, get_settings
from storeledger.core.entities.report import FinancialSummary, ReportWindow
from storeledger.core.entities.transaction import (
    CategoryTag,
    Transaction,
    TransactionDirection,
    TransactionKind,
)
from storeledger.core.exceptions import (
    CarryForwardConflictError,
    DuplicateTransactionError,
    ValidationError,
)
from storeledger.core.interfaces.ledger_store import ILedgerStore

logger = get_logger(__name__)


def carry_forward_key(period: ReportWindow) -> str:
    """Default idempotency key for a period, e.g. 'carry-forward:2024-01-01:2024-01-31'."""
    if not period.is_bounded:
        raise ValidationError("period", "carry-forward needs both start and end dates")
    return f"carry-forward:{period.start.isoformat()}:{period.end.isoformat()}"


@dataclass
class CarryForwardResult:
    """Outcome of a carry-forward attempt."""

    period_label: str
    net_profit: float
    posted: bool
    transaction: Transaction | None = None
    reason: str | None = None


class CarryForwardService:
    """Posts period profit through the ledger store, at most once per period."""

    def __init__(self, ledger_store: ILedgerStore, label: str | None = None):
        self._store = ledger_store
        self._label = label or get_settings().reporting.carry_forward_label

    async def carry_forward(
        self,
        summary: FinancialSummary,
        period: ReportWindow,
        idempotency_key: str | None = None,
    ) -> CarryForwardResult:
        """
        Carry a period's net profit forward.

        Args:
            summary: Summary computed for the period.
            period: Bounded period the summary covers.
            idempotency_key: Caller-supplied key. Defaults to one derived
                from the period dates.

        Returns:
            CarryForwardResult; posted is False when there was no profit.

        Raises:
            ValidationError: If the period is not bounded and no key is given.
            CarryForwardConflictError: If the key has already been posted, or
                the period label already has a carry-forward.
        """
        period_label = period.label()

        if summary.net_profit <= 0:
            logger.info(
                "carry_forward_skipped",
                period=period_label,
                net_profit=summary.net_profit,
            )
            return CarryForwardResult(
                period_label=period_label,
                net_profit=summary.net_profit,
                posted=False,
                reason="non_positive_profit",
            )

        key = idempotency_key or carry_forward_key(period)
        existing = await self._store.find_by_idempotency_key(key)
        if existing is None:
            # Rows posted without a key are recognised by their period label
            existing = await self._store.find_carry_forward(period_label)
        if existing is not None:
            logger.warning(
                "carry_forward_conflict",
                period=period_label,
                idempotency_key=key,
                existing_id=existing.id,
            )
            raise CarryForwardConflictError(period_label, key, existing.id)

        transaction = Transaction(
            direction=TransactionDirection.INCOME,
            kind=TransactionKind.GENERAL,
            amount=summary.net_profit,
            category=CategoryTag.SALES,
            description=f"{self._label} {period_label}",
            idempotency_key=key,
            created_at=datetime.now(UTC),
        )
        try:
            transaction = await self._store.insert_transaction(transaction)
        except DuplicateTransactionError as e:
            # Another operator posted the same period between check and insert
            raise CarryForwardConflictError(period_label, key) from e

        logger.info(
            "carry_forward_posted",
            period=period_label,
            amount=transaction.amount,
            transaction_id=transaction.id,
        )
        return CarryForwardResult(
            period_label=period_label,
            net_profit=summary.net_profit,
            posted=True,
            transaction=transaction,
        )
