"""SQLite schema for the order and transaction tables."""

import aiosqlite

# Stored in PRAGMA user_version; bump when SCHEMA_STATEMENTS change
SCHEMA_VERSION = 1

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS orders (
        serial TEXT PRIMARY KEY,
        user_id TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        date_created TEXT,
        items TEXT NOT NULL DEFAULT '[]',
        shipping_cost REAL,
        discount REAL,
        deposit REAL,
        total REAL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_date_created ON orders(date_created)",
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        transaction_type TEXT NOT NULL,
        amount REAL NOT NULL DEFAULT 0.0,
        description TEXT,
        order_serial TEXT,
        idempotency_key TEXT,
        created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_transactions_created_at ON transactions(created_at)",
    # Duplicate carry-forward posts fail here even when two admins race
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_idempotency_key
    ON transactions(idempotency_key) WHERE idempotency_key IS NOT NULL
    """,
)


async def apply_schema(conn: aiosqlite.Connection) -> int:
    """Create missing tables and indexes. Returns the schema version in effect."""
    cursor = await conn.execute("PRAGMA user_version")
    row = await cursor.fetchone()
    current = row[0] if row else 0
    if current >= SCHEMA_VERSION:
        return current

    for statement in SCHEMA_STATEMENTS:
        await conn.execute(statement)
    await conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
    await conn.commit()
    return SCHEMA_VERSION
