"""Pytest configuration and fixtures."""

from collections.abc import Generator

import pytest

from storeledger.config import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Re-read settings for every test so env patches do not leak."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def sample_order() -> dict:
    """Storefront order in the camelCase schema."""
    return {
        "serial": "ORD-001",
        "dateCreated": "2024-01-15T10:30:00+00:00",
        "status": "confirmed",
        "items": [
            {
                "productType": "Mug",
                "size": "L",
                "quantity": 2,
                "price": 150.0,
                "cost": 90.0,
                "itemDiscount": 0,
            },
            {
                "productType": "Shirt",
                "size": "M",
                "quantity": 1,
                "price": 200.0,
                "cost": 120.0,
                "itemDiscount": 20.0,
            },
        ],
        "shippingCost": 50.0,
        "discount": 30.0,
        "deposit": 100.0,
        "total": 500.0,
    }


@pytest.fixture
def sample_transactions() -> list[dict]:
    """Mixed legacy-typed and bracket-tagged transactions."""
    return [
        {
            "id": 1,
            "transaction_type": "order_collection",
            "amount": 250.0,
            "description": "Collection for ORD-001",
            "order_serial": "ORD-001",
            "created_at": "2024-01-20T09:00:00+00:00",
        },
        {
            "id": 2,
            "transaction_type": "expense",
            "amount": 40.0,
            "description": "[materials] glue",
            "created_at": "2024-01-21T09:00:00+00:00",
        },
        {
            "id": 3,
            "transaction_type": "cost_payment",
            "amount": 200.0,
            "description": "Workshop payment",
            "created_at": "2024-01-22T09:00:00+00:00",
        },
        {
            "id": 4,
            "transaction_type": "shipping_payment",
            "amount": 50.0,
            "description": "Courier",
            "created_at": "2024-01-23T09:00:00+00:00",
        },
        {
            "id": 5,
            "transaction_type": "income",
            "amount": 60.0,
            "description": "[other] sold scrap",
            "created_at": "2024-02-02T09:00:00+00:00",
        },
    ]
