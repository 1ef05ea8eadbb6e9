"""
Core business logic services.

Layer-pure services that depend only on:
- storeledger/core/entities/*
- storeledger/core/interfaces/*
- storeledger/core/exceptions.py

NO infrastructure imports. All dependencies injected via constructor.
"""

from storeledger.core.services.aggregation_engine import AggregationEngine
from storeledger.core.services.carry_forward import (
    CarryForwardResult,
    CarryForwardService,
    carry_forward_key,
)
from storeledger.core.services.record_normalizer import RecordNormalizer, parse_timestamp
from storeledger.core.services.transaction_categorizer import (
    LEGACY_TYPE_MAP,
    TransactionCategorizer,
    format_description,
)

__all__ = [
    # Record Normalizer
    "RecordNormalizer",
    "parse_timestamp",
    # Transaction Categorizer
    "TransactionCategorizer",
    "LEGACY_TYPE_MAP",
    "format_description",
    # Aggregation Engine
    "AggregationEngine",
    # Carry-Forward
    "CarryForwardService",
    "CarryForwardResult",
    "carry_forward_key",
]
