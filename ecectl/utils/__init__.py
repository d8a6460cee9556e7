"""Utility functions and helpers for the ecectl application."""
import json
import logging
from typing import Any

from ..config import Config

logger = logging.getLogger(__name__)


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(
                redact_key.lower() in str(k).lower()
                for redact_key in Config.REDACT_KEYS
            ) else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data


def log_json(context: str, value: Any, log: logging.Logger = logger) -> None:
    """Log a value as indented JSON at DEBUG level, with secrets redacted."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    try:
        rendered = json.dumps(redact_sensitive_data(value), indent=2, sort_keys=True, default=str)
    except (TypeError, ValueError) as e:
        log.debug(f"{context}: error rendering value as JSON: {e}. {value!r}")
        return
    log.debug(f"{context}: {rendered}")
