"""Logging and metrics."""

from fieldsales_ai.shared.observability.logging import configure_logging

__all__ = ["configure_logging"]
