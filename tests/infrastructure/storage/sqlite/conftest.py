"""Pytest fixtures for SQLite storage tests."""

import json
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_ledger.db"


@pytest.fixture
def mock_settings(temp_db_path: Path):
    """Mock settings with temp database path."""
    mock = MagicMock()
    mock.storage.db_path = temp_db_path
    mock.storage.pool_size = 1
    mock.storage.busy_timeout = 5000
    return mock


@pytest.fixture
async def ledger_db(mock_settings) -> AsyncGenerator[Path, None]:
    """Point the global pool at a fresh database and close it afterwards."""
    import storeledger.infrastructure.storage.sqlite.connection as conn_module

    conn_module._pool = None
    with patch.object(conn_module, "get_settings", return_value=mock_settings):
        try:
            yield mock_settings.storage.db_path
        finally:
            await conn_module.close_pool()


async def _insert_order(
    serial: str,
    date_created: str | None,
    items: list[dict] | str,
    status: str = "confirmed",
    shipping_cost: float | None = None,
    discount: float | None = None,
    deposit: float | None = None,
    total: float | None = None,
) -> None:
    """Seed one order row through the global pool."""
    from storeledger.infrastructure.storage.sqlite.connection import get_transaction

    async with get_transaction() as conn:
        await conn.execute(
            """
            INSERT INTO orders (
                serial, status, date_created, items,
                shipping_cost, discount, deposit, total
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                serial,
                status,
                date_created,
                items if isinstance(items, str) else json.dumps(items),
                shipping_cost,
                discount,
                deposit,
                total,
            ),
        )


@pytest.fixture
def seed_order(ledger_db):
    """Insert order rows into the test database."""
    return _insert_order


async def _insert_transaction_row(
    transaction_type: str,
    amount: float,
    description: str,
    created_at: str,
    order_serial: str | None = None,
) -> None:
    """Seed one transaction row as older tooling wrote it, without an idempotency key."""
    from storeledger.infrastructure.storage.sqlite.connection import get_transaction

    async with get_transaction() as conn:
        await conn.execute(
            """
            INSERT INTO transactions (
                transaction_type, amount, description, order_serial, created_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (transaction_type, amount, description, order_serial, created_at),
        )


@pytest.fixture
def seed_transaction_row(ledger_db):
    """Insert raw transaction rows into the test database."""
    return _insert_transaction_row
