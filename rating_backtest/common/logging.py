"""Structured logging setup for the rating backtest engine.

Every log line includes: timestamp, level, run id (when inside a run),
module tag, message, and structured data. Secrets are automatically
redacted from log output, including the price API key that travels in
request query strings.

Usage:
    from rating_backtest.common.logging import get_logger
    logger = get_logger("FETCH")
    logger.info("History fetched", extra={"data": {"ticker": "NVDA", "points": 480}})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import UTC, datetime

# Module tags for structured logging
MODULE_TAGS = {
    "FETCH",
    "SELECT",
    "ORACLE",
    "RUN",
    "BACKTEST",
    "SYSTEM",
    "TEST",
}

# Set by the run pipeline so every line logged inside a run carries its id
run_id_var: ContextVar[str] = ContextVar("run_id", default="")

# Regex to find secret-looking values in JSON strings
_SECRET_KEY_PATTERN = re.compile(
    r'"([^"]*(?:key|secret|password|token|credential)[^"]*)":\s*"([^"]*)"',
    re.IGNORECASE,
)

# apikey=... inside URLs
_APIKEY_QUERY_PATTERN = re.compile(r"(apikey=)[^&\s\"']+", re.IGNORECASE)


def _redact_secrets(text: str) -> str:
    """Replace secret-looking values with [REDACTED] in a string."""
    text = _SECRET_KEY_PATTERN.sub(r'"\1": "[REDACTED]"', text)
    return _APIKEY_QUERY_PATTERN.sub(r"\1[REDACTED]", text)


class StructuredFormatter(logging.Formatter):
    """Formats log records as structured, human-readable lines.

    Output format:
        2025-02-15T10:30:00Z | INFO | run=1a2b3c4d | FETCH | History fetched | {"ticker": "NVDA"}
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        level = record.levelname
        module_tag = getattr(record, "module_tag", "SYSTEM")
        run_id = run_id_var.get()

        data = getattr(record, "data", None)
        if data is not None:
            try:
                data_str = json.dumps(data, default=str, ensure_ascii=False)
            except (TypeError, ValueError):
                data_str = str(data)
            data_str = _redact_secrets(data_str)
        else:
            data_str = ""

        message = _redact_secrets(record.getMessage())

        parts = [timestamp, level]
        if run_id:
            parts.append(f"run={run_id[:8]}")
        parts.extend([module_tag, message])
        if data_str:
            parts.append(data_str)

        return " | ".join(parts)


class ModuleTagLogger(logging.LoggerAdapter):
    """Logger adapter that injects module_tag and supports structured data.

    Usage:
        logger = get_logger("ORACLE")
        logger.info("Decision cached", extra={"data": {"ticker": "AAPL"}})
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra", {})
        extra["module_tag"] = self.extra.get("module_tag", "SYSTEM")
        kwargs["extra"] = extra
        return msg, kwargs


# Cache loggers to avoid duplicate handlers
_loggers: dict[str, ModuleTagLogger] = {}


def get_logger(module_tag: str) -> ModuleTagLogger:
    """Get a structured logger with the given module tag.

    Args:
        module_tag: One of the MODULE_TAGS (FETCH, SELECT, ORACLE, etc.)

    Returns:
        A logger adapter that injects the module tag into every log line.
    """
    if module_tag in _loggers:
        return _loggers[module_tag]

    logger = logging.getLogger(f"rating_backtest.{module_tag.lower()}")

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

    adapter = ModuleTagLogger(logger, {"module_tag": module_tag})
    _loggers[module_tag] = adapter
    return adapter
