"""SQLite implementation of the order and transaction record source."""

import json
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite

from storeledger.config import get_logger
from storeledger.core.entities.report import ReportWindow
from storeledger.core.entities.transaction import Transaction
from storeledger.core.exceptions import (
    DatabaseError,
    DuplicateTransactionError,
    SourceUnavailableError,
)
from storeledger.core.interfaces.ledger_store import ILedgerStore, RawRecord
from storeledger.core.services.record_normalizer import RecordNormalizer
from storeledger.core.services.transaction_categorizer import (
    TransactionCategorizer,
    format_description,
)
from storeledger.infrastructure.storage.sqlite.connection import (
    get_connection,
    get_transaction,
)

logger = get_logger(__name__)

# Stored types of general income rows, where carry-forwards live
INCOME_TYPES = ("income", "other_income")


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _window_clause(column: str, window: ReportWindow) -> tuple[str, list[Any]]:
    """
    SQL filter for an inclusive date window.

    Dated rows are compared in UTC through SQLite's datetime(), the same
    calendar the engine uses. Rows SQLite cannot date are still returned so
    the engine can count them as undated and report them.
    """
    conditions: list[str] = []
    params: list[Any] = []
    if window.start:
        conditions.append(f"datetime({column}) >= datetime(?)")
        params.append(window.start.isoformat())
    if window.end:
        conditions.append(f"datetime({column}) < datetime(?)")
        params.append((window.end + timedelta(days=1)).isoformat())
    if not conditions:
        return "", []
    return (
        f"WHERE (datetime({column}) IS NULL OR ({' AND '.join(conditions)}))",
        params,
    )


class SQLiteLedgerStore(ILedgerStore):
    """SQLite implementation of the ledger record source."""

    def __init__(
        self,
        categorizer: TransactionCategorizer | None = None,
        normalizer: RecordNormalizer | None = None,
    ):
        self._categorizer = categorizer or TransactionCategorizer()
        self._normalizer = normalizer or RecordNormalizer(self._categorizer)

    async def fetch_orders(self, window: ReportWindow) -> list[RawRecord]:
        """Get raw order records created within the window."""
        where, params = _window_clause("date_created", window)
        try:
            async with get_connection() as conn:
                cursor = await conn.execute(
                    f"SELECT * FROM orders {where} ORDER BY date_created, serial",
                    params,
                )
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as e:
            logger.error("fetch_orders_failed", error=str(e))
            raise SourceUnavailableError("orders", str(e)) from e

        records = [self._row_to_order_record(row) for row in rows]
        logger.debug("orders_fetched", window=window.label(), count=len(records))
        return records

    async def fetch_transactions(self, window: ReportWindow) -> list[RawRecord]:
        """Get raw transaction records created within the window."""
        where, params = _window_clause("created_at", window)
        try:
            async with get_connection() as conn:
                cursor = await conn.execute(
                    f"SELECT * FROM transactions {where} ORDER BY created_at, id",
                    params,
                )
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as e:
            logger.error("fetch_transactions_failed", error=str(e))
            raise SourceUnavailableError("transactions", str(e)) from e

        records = [dict(row) for row in rows]
        logger.debug("transactions_fetched", window=window.label(), count=len(records))
        return records

    async def insert_transaction(self, transaction: Transaction) -> Transaction:
        """Append a transaction in the bracket-tag wire convention."""
        created_at = transaction.created_at or datetime.now(UTC)
        try:
            async with get_transaction() as conn:
                cursor = await conn.execute(
                    """
                    INSERT INTO transactions (
                        transaction_type, amount, description,
                        order_serial, idempotency_key, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        self._categorizer.legacy_type_for(
                            transaction.direction, transaction.kind
                        ),
                        transaction.amount,
                        format_description(transaction.category, transaction.description),
                        transaction.order_ref,
                        transaction.idempotency_key,
                        created_at.isoformat(),
                    ),
                )
                new_id = cursor.lastrowid
        except aiosqlite.IntegrityError as e:
            if transaction.idempotency_key:
                raise DuplicateTransactionError(transaction.idempotency_key) from e
            raise DatabaseError("insert_transaction", str(e)) from e
        except (aiosqlite.Error, OSError) as e:
            logger.error("insert_transaction_failed", error=str(e))
            raise DatabaseError("insert_transaction", str(e)) from e

        logger.info(
            "transaction_inserted",
            transaction_id=new_id,
            direction=transaction.direction.value,
            category=transaction.category.value,
            amount=transaction.amount,
        )
        return transaction.model_copy(update={"id": str(new_id), "created_at": created_at})

    async def find_by_idempotency_key(self, key: str) -> Transaction | None:
        """Get the transaction posted under an idempotency key, if any."""
        try:
            async with get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT * FROM transactions WHERE idempotency_key = ?",
                    (key,),
                )
                row = await cursor.fetchone()
        except (aiosqlite.Error, OSError) as e:
            raise SourceUnavailableError("transactions", str(e)) from e

        if row is None:
            return None
        return self._normalizer.normalize_transaction(dict(row))

    async def find_carry_forward(self, period_label: str) -> Transaction | None:
        """Get the first income transaction whose description ends with the period label."""
        pattern = "%" + _escape_like(period_label)
        try:
            async with get_connection() as conn:
                cursor = await conn.execute(
                    f"""
                    SELECT * FROM transactions
                    WHERE transaction_type IN ({", ".join("?" for _ in INCOME_TYPES)})
                      AND rtrim(description) LIKE ? ESCAPE '\\'
                    ORDER BY id
                    LIMIT 1
                    """,
                    (*INCOME_TYPES, pattern),
                )
                row = await cursor.fetchone()
        except (aiosqlite.Error, OSError) as e:
            raise SourceUnavailableError("transactions", str(e)) from e

        if row is None:
            return None
        return self._normalizer.normalize_transaction(dict(row))

    @staticmethod
    def _row_to_order_record(row: aiosqlite.Row) -> RawRecord:
        """Convert a database row to a raw order record with decoded items."""
        record = dict(row)
        items = record.get("items")
        if isinstance(items, str):
            try:
                record["items"] = json.loads(items)
            except ValueError:
                # Left as text; the normalizer reports it as malformed
                logger.warning("order_items_undecodable", serial=record.get("serial"))
        return record
