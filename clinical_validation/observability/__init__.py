"""Logging configuration for the validation engine."""

from clinical_validation.observability.logger import order_context, setup_logging

__all__ = ["order_context", "setup_logging"]
