"""SQLite storage implementations."""

from storeledger.infrastructure.storage.sqlite.connection import (
    ConnectionPool,
    close_pool,
    get_connection,
    get_pool,
    get_transaction,
)
from storeledger.infrastructure.storage.sqlite.ledger_store import SQLiteLedgerStore

# Type aliases for convenience
LedgerStore = SQLiteLedgerStore

# Singleton instances
_ledger_store: SQLiteLedgerStore | None = None


async def get_ledger_store() -> SQLiteLedgerStore:
    """Get singleton ledger store instance."""
    global _ledger_store
    if _ledger_store is None:
        _ledger_store = SQLiteLedgerStore()
    return _ledger_store


__all__ = [
    # Connection
    "ConnectionPool",
    "get_pool",
    "close_pool",
    "get_connection",
    "get_transaction",
    # Store classes
    "SQLiteLedgerStore",
    "LedgerStore",
    # Factory functions
    "get_ledger_store",
]
