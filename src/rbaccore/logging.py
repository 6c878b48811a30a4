"""Centralized logging utilities for the reconciliation engine.

This module provides:
- Logging configuration from RbacConfig
- Safe preview utilities for sensitive data
- Secret redaction
- Structured logging with run and scope fields
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .config import LogLevel, RbacConfig
from .naming import Scope


# Patterns for detecting secrets (common patterns to redact)
SECRET_PATTERNS = [
    r'(?i)(?:password|passwd|pwd|secret|token|private[_-]?key|api[_-]?key|auth[_-]?token)\s*[:=]\s*["\']?([^"\'\s&]+)',
    r'(?i)(?:bearer|basic)\s+([a-zA-Z0-9+/=]+)',
    r'(?i)://([^:/@\s]+):([^@\s]+)@',  # credentials embedded in URLs
    r'[a-f0-9]{40,}',  # Long hex strings (could be hashes or keys)
    r'(?i)(?:-----BEGIN\s+(?:RSA\s+)?(?:ENCRYPTED\s+)?(?:PRIVATE\s+)?KEY-----).*?(?:-----END\s+(?:RSA\s+)?(?:ENCRYPTED\s+)?(?:PRIVATE\s+)?KEY-----)',
]

# Fields stamped by RunLoggerAdapter and rendered by ReconciliationFormatter.
RUN_FIELDS = ("run_id", "environment", "database", "schema")

_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", *RUN_FIELDS,
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a safe, length-bounded preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A single-line, truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


def redact_secrets(text: str, replacement: str = "[REDACTED]") -> str:
    """Redact secret patterns (passwords, tokens, keys, URL credentials) from text."""
    if not isinstance(text, str):
        return text

    result = text
    for pattern in SECRET_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE | re.DOTALL)

    return result


def safe_log_value(value: Any, limit: int = 240, redact: bool = True) -> str:
    """Create a safe log value with preview and optional redaction.

    Combines safe_preview() and redact_secrets().
    """
    preview = safe_preview(value, limit=limit)
    if redact:
        preview = redact_secrets(preview)
    return preview


class ReconciliationFormatter(logging.Formatter):
    """Formatter adding run and scope fields, as JSON or plain text.

    Messages and extra fields are redacted before output.
    """

    def __init__(
        self,
        json_format: bool = True,
        redact_secrets: bool = True,
        service_name: Optional[str] = None,
        *args: Any,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.json_format = json_format
        self.redact_secrets = redact_secrets
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service_name:
            log_data["service"] = self.service_name

        run_fields = {key: getattr(record, key) for key in RUN_FIELDS if getattr(record, key, None)}
        log_data.update(run_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_data[key] = safe_log_value(value, redact=self.redact_secrets)

        if self.redact_secrets:
            log_data["message"] = redact_secrets(log_data["message"])

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        if "run_id" in run_fields:
            parts.append(f"run_id={run_fields['run_id']}")
        if "schema" in run_fields:
            parts.append(
                f"scope={run_fields.get('environment', '')}:{run_fields.get('database', '')}.{run_fields['schema']}"
            )
        parts.append(f": {log_data['message']}")
        line = " ".join(parts)
        if "exception" in log_data:
            line += "\n" + log_data["exception"]
        return line


class RunLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps run_id and scope fields on every record.

    Usage:
        log = get_run_logger(__name__, run_id, scope)
        log.info("Inspected schema")
    """

    def __init__(
        self,
        logger: logging.Logger,
        run_id: Optional[str] = None,
        scope: Optional[Scope] = None,
    ):
        super().__init__(logger, {})
        self.run_id = run_id
        self.scope = scope

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        run_id = kwargs.pop("run_id", self.run_id)
        if run_id:
            extra["run_id"] = run_id
        if self.scope is not None:
            extra.setdefault("environment", self.scope.environment.value)
            extra.setdefault("database", self.scope.full_database)
            extra.setdefault("schema", self.scope.schema)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    config: Optional[RbacConfig] = None,
    json_format: Optional[bool] = None,
    redact_secrets: bool = True,
) -> None:
    """Configure the root logger for the engine or the gRPC service.

    Args:
        config: RbacConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
        redact_secrets: Whether to redact secrets (default: True)
    """
    if config is None:
        from .config import load_config_from_env

        config = load_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    # use_enum_values stores the plain string
    log_level = level_map.get(LogLevel(config.log_level), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        ReconciliationFormatter(
            json_format=config.log_json if json_format is None else json_format,
            redact_secrets=redact_secrets,
            service_name=config.service_name,
        )
    )
    root_logger.addHandler(console_handler)


def get_run_logger(
    name: str,
    run_id: Optional[str] = None,
    scope: Optional[Scope] = None,
) -> RunLoggerAdapter:
    """Get a logger adapter bound to one reconciliation run.

    Example:
        log = get_run_logger(__name__, run_id="a1b2", scope=scope)
        log.info("3 action(s) planned")
    """
    return RunLoggerAdapter(logging.getLogger(name), run_id=run_id, scope=scope)


__all__ = [
    "safe_preview",
    "redact_secrets",
    "safe_log_value",
    "ReconciliationFormatter",
    "RunLoggerAdapter",
    "setup_logging",
    "get_run_logger",
]
