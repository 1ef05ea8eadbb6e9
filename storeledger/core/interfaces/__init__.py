"""Core interfaces (ports) for dependency injection."""

from storeledger.core.interfaces.ledger_store import ILedgerStore, RawRecord

__all__ = [
    "ILedgerStore",
    "RawRecord",
]
