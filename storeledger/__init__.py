"""Financial reconciliation and reporting engine for storefront orders."""

__version__ = "1.0.0"
