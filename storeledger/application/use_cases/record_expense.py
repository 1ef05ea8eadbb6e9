"""Record Expense Use Case - posts a categorized expense transaction."""

from datetime import UTC, datetime

from storeledger.config import get_logger
from storeledger.core.entities.transaction import (
    CategoryTag,
    Transaction,
    TransactionDirection,
    TransactionKind,
)
from storeledger.core.exceptions import ValidationError
from storeledger.core.interfaces.ledger_store import ILedgerStore

logger = get_logger(__name__)


class RecordExpenseUseCase:
    """Record a general expense under one of the reporting categories."""

    def __init__(self, ledger_store: ILedgerStore | None = None):
        self._ledger_store = ledger_store

    async def _get_ledger_store(self) -> ILedgerStore:
        if self._ledger_store is None:
            from storeledger.infrastructure.storage.sqlite import get_ledger_store

            self._ledger_store = await get_ledger_store()
        return self._ledger_store

    async def execute(
        self,
        category: CategoryTag | str,
        description: str,
        amount: float,
        order_ref: str | None = None,
        created_at: datetime | None = None,
    ) -> Transaction:
        """Execute record expense use case."""
        try:
            tag = CategoryTag(category)
        except ValueError:
            raise ValidationError(
                "category",
                f"must be one of {', '.join(t.value for t in CategoryTag)}",
                category,
            ) from None
        if amount <= 0:
            raise ValidationError("amount", "must be greater than zero", amount)
        if not description or not description.strip():
            raise ValidationError("description", "must not be empty", description)

        store = await self._get_ledger_store()
        transaction = await store.insert_transaction(
            Transaction(
                direction=TransactionDirection.EXPENSE,
                kind=TransactionKind.GENERAL,
                amount=amount,
                category=tag,
                description=description.strip(),
                order_ref=order_ref,
                created_at=created_at or datetime.now(UTC),
            )
        )

        logger.info(
            "expense_recorded",
            transaction_id=transaction.id,
            category=tag.value,
            amount=amount,
        )
        return transaction
