"""Abstract interface for the order and transaction record source."""

from abc import ABC, abstractmethod
from typing import Any

from storeledger.core.entities.report import ReportWindow
from storeledger.core.entities.transaction import Transaction

RawRecord = dict[str, Any]


class ILedgerStore(ABC):
    """
    Interface for the persistent store orders and transactions live in.

    Reads return raw records in whatever schema variant the store holds;
    RecordNormalizer turns them into entities. Implementations raise
    SourceUnavailableError when a snapshot cannot be read.
    """

    @abstractmethod
    async def fetch_orders(self, window: ReportWindow) -> list[RawRecord]:
        """Get raw order records created within the window."""
        pass

    @abstractmethod
    async def fetch_transactions(self, window: ReportWindow) -> list[RawRecord]:
        """Get raw transaction records created within the window."""
        pass

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        """Append a transaction and return it with its assigned id."""
        pass

    @abstractmethod
    async def find_by_idempotency_key(self, key: str) -> Transaction | None:
        """Get the transaction posted under an idempotency key, if any."""
        pass

    @abstractmethod
    async def find_carry_forward(self, period_label: str) -> Transaction | None:
        """
        Get an income transaction already carrying a period's profit forward.

        Matches on the period label at the end of the description, so rows
        posted without an idempotency key are found too.
        """
        pass
