"""Custom exceptions for the rating backtest engine.

All modules should raise subclasses of RatingBacktestError instead of
generic ones. Each exception carries an optional context dict for
debugging; secret-looking keys are redacted when the error is rendered.
"""

from __future__ import annotations


class RatingBacktestError(Exception):
    """Base exception for all rating backtest errors.

    Args:
        message: Human-readable error description.
        context: Optional dict of structured data for logging/debugging.
    """

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            safe_context = {
                k: "[REDACTED]" if _is_secret_key(k) else v for k, v in self.context.items()
            }
            return f"{super().__str__()} | context={safe_context}"
        return super().__str__()


class ConfigurationError(RatingBacktestError):
    """A required setting is missing or invalid."""


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    secret_words = {"key", "secret", "password", "token", "credential"}
    key_lower = key.lower()
    return any(word in key_lower for word in secret_words)
