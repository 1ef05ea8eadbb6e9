"""Application layer - use cases orchestrating core services."""
