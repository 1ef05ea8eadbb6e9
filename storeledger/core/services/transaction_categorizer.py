"""
Transaction categorizer.

Historical transactions encode their reporting category two ways: a bracket
tag at the start of the free-text description ("[materials] glue") and the
legacy enumerated transaction type (order_collection, cost_payment, ...).
This module is the only place allowed to interpret either encoding.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from storeledger.config import get_logger
from storeledger.core.entities.report import Diagnostic, DiagnosticKind
from storeledger.core.entities.transaction import (
    Categorization,
    CategoryTag,
    Transaction,
    TransactionDirection,
    TransactionKind,
)
from storeledger.core.exceptions import UnknownCategoryError

logger = get_logger(__name__)

TAGGED_DESCRIPTION = re.compile(
    r"^\[(cost|shipping|materials|sales|other)\]\s*(.*)$",
    re.IGNORECASE | re.DOTALL,
)
ANY_BRACKET_TAG = re.compile(r"^\[([^\]]*)\]\s*(.*)$", re.DOTALL)


@dataclass(frozen=True)
class LegacyType:
    """How one legacy transaction type maps onto the structured fields."""

    direction: TransactionDirection
    kind: TransactionKind
    category: CategoryTag


# The one mapping table between the legacy type enum and the structured fields.
LEGACY_TYPE_MAP: dict[str, LegacyType] = {
    "order_collection": LegacyType(
        TransactionDirection.INCOME, TransactionKind.ORDER_COLLECTION, CategoryTag.SALES
    ),
    "shipping_payment": LegacyType(
        TransactionDirection.EXPENSE, TransactionKind.SHIPPING_PAYMENT, CategoryTag.SHIPPING
    ),
    "cost_payment": LegacyType(
        TransactionDirection.EXPENSE, TransactionKind.COST_PAYMENT, CategoryTag.COST
    ),
    "expense": LegacyType(
        TransactionDirection.EXPENSE, TransactionKind.GENERAL, CategoryTag.OTHER
    ),
    "other_income": LegacyType(
        TransactionDirection.INCOME, TransactionKind.GENERAL, CategoryTag.SALES
    ),
}

# Plain directions carry no category of their own.
DIRECTION_ONLY_TYPES: dict[str, TransactionDirection] = {
    "income": TransactionDirection.INCOME,
    "expense": TransactionDirection.EXPENSE,
}


def format_description(tag: CategoryTag | str, text: str) -> str:
    """Encode a category into a description using the bracket wire convention."""
    value = tag.value if isinstance(tag, CategoryTag) else CategoryTag(tag).value
    text = (text or "").strip()
    return f"[{value}] {text}" if text else f"[{value}]"


class TransactionCategorizer:
    """Extracts a CategoryTag from a description or legacy type. Never raises."""

    def categorize(
        self,
        subject: str | Mapping[str, Any] | Transaction | None,
        legacy_type: str | None = None,
        diagnostics: list[Diagnostic] | None = None,
        record_id: str | None = None,
    ) -> Categorization:
        """
        Categorize a transaction.

        Args:
            subject: Description text, raw transaction record, or Transaction.
            legacy_type: Legacy type / direction value, when subject is text.
            diagnostics: Optional list that receives an UNKNOWN_CATEGORY entry
                when the description carries an unrecognized bracket tag.
            record_id: Transaction id used in the diagnostic.

        Returns:
            Categorization with tag and description stripped of its tag.
        """
        description, legacy_type, record_id = self._unpack(subject, legacy_type, record_id)

        match = TAGGED_DESCRIPTION.match(description)
        if match:
            return Categorization(
                tag=CategoryTag(match.group(1).lower()),
                clean_description=match.group(2),
            )

        unknown = ANY_BRACKET_TAG.match(description)
        if unknown and diagnostics is not None:
            error = UnknownCategoryError(unknown.group(1), description)
            diagnostics.append(
                Diagnostic(
                    kind=DiagnosticKind.UNKNOWN_CATEGORY,
                    record_type="transaction",
                    record_id=record_id,
                    fields=["description"],
                    message=error.message,
                    details=error.details,
                )
            )
            logger.debug("unknown_category_tag", tag=unknown.group(1), record_id=record_id)

        legacy = self.interpret_legacy_type(legacy_type)
        if legacy is not None:
            return Categorization(tag=legacy.category, clean_description=description)

        return Categorization(tag=CategoryTag.OTHER, clean_description=description)

    def interpret_legacy_type(self, legacy_type: str | None) -> LegacyType | None:
        """Look up a legacy enumerated type. Plain income/expense return None."""
        if not isinstance(legacy_type, str):
            return None
        return LEGACY_TYPE_MAP.get(legacy_type.strip().lower())

    def resolve_direction(
        self, legacy_type: str | None
    ) -> tuple[TransactionDirection, TransactionKind] | None:
        """
        Map a raw type/direction value to direction and kind.

        Returns None when the value is neither a plain direction nor a known
        legacy type.
        """
        legacy = self.interpret_legacy_type(legacy_type)
        if legacy is not None:
            return legacy.direction, legacy.kind
        if isinstance(legacy_type, str):
            direction = DIRECTION_ONLY_TYPES.get(legacy_type.strip().lower())
            if direction is not None:
                return direction, TransactionKind.GENERAL
        return None

    def legacy_type_for(
        self, direction: TransactionDirection, kind: TransactionKind
    ) -> str:
        """Type value to store for a structured transaction."""
        if kind != TransactionKind.GENERAL:
            return kind.value
        return direction.value

    @staticmethod
    def _unpack(
        subject: str | Mapping[str, Any] | Transaction | None,
        legacy_type: str | None,
        record_id: str | None,
    ) -> tuple[str, str | None, str | None]:
        if isinstance(subject, Transaction):
            # Already structured: re-encode so an explicit tag wins over kind.
            return (
                format_description(subject.category, subject.description),
                legacy_type,
                record_id or subject.id,
            )
        if isinstance(subject, Mapping):
            description = subject.get("description")
            if legacy_type is None:
                legacy_type = (
                    subject.get("transaction_type")
                    or subject.get("type")
                    or subject.get("direction")
                )
            if record_id is None and subject.get("id") is not None:
                record_id = str(subject.get("id"))
        else:
            description = subject

        if description is None:
            description = ""
        elif not isinstance(description, str):
            description = str(description)
        return description, legacy_type, record_id
