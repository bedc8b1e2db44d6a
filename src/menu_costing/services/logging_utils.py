"""Service layer logging utilities.

Saga steps, persistence failures and data-integrity warnings share one
record shape: the message reads "<operation>: <outcome>" followed by the
entity IDs involved, and every context field is also attached to the record
through ``extra`` for handlers that read structured fields.

Usage:
    from menu_costing.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="flush_draft_lines",
        outcome="partial_failure",
        level=logging.WARNING,
        recipe_id=12,
        failed=2,
    )
    # "flush_draft_lines: partial_failure (recipe_id=12)"
"""

import logging
from typing import Any, Dict

SERVICE_LOGGER_PREFIX = "menu_costing.services"

# Attributes every LogRecord already has; extra may not overwrite them.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def get_service_logger(name: str) -> logging.Logger:
    """
    Logger for a service module, always under ``menu_costing.services``.

    Example:
        >>> get_service_logger("menu_costing.services.costing").name
        'menu_costing.services.costing'
    """
    return logging.getLogger(f"{SERVICE_LOGGER_PREFIX}.{name.rsplit('.', 1)[-1]}")


def _record_fields(operation: str, outcome: str, context: Dict[str, Any]) -> Dict[str, Any]:
    fields = {"operation": operation, "outcome": outcome}
    for key, value in context.items():
        fields[f"ctx_{key}" if key in _RESERVED else key] = value
    return fields


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "add_recipes_to_event")
        outcome: Outcome description (e.g., "success", "validation_failed")
        level: Log level (default: INFO)
        **context: Context fields. Keys ending in ``_id`` are also written
            into the message; a key that clashes with a LogRecord attribute
            (``name``, ``args``...) is stored as ``ctx_<key>``.
    """
    if not logger.isEnabledFor(level):
        return
    ids = ", ".join(f"{key}={value}" for key, value in context.items() if key.endswith("_id"))
    message = f"{operation}: {outcome}" + (f" ({ids})" if ids else "")
    logger.log(level, message, extra=_record_fields(operation, outcome, context))
