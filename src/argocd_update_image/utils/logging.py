# ABOUTME: Structured logging, correlation IDs, secret masking and audit trail
# ABOUTME: Configures structlog once per run and records write operations

"""
Structured logging with correlation IDs and audit trails.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

1. STRUCTURED LOGGING: structlog events with consistent fields, rendered as
   colored text for a terminal or JSON for log shippers.

2. CORRELATION IDs: one identifier attached to every log line of a run.
   Inside GitHub Actions this is the workflow run id, so the action's log
   lines can be matched to the workflow that produced them.

3. SECRET MASKING: request bodies (login credentials) and error bodies can
   carry tokens or passwords. mask_secrets() scrubs them before they are
   logged.

4. AUDIT LOGGING: every write against ArgoCD (image patch, sync, ...) is
   recorded with its target and outcome.

=============================================================================
WHY structlog?
=============================================================================

Traditional logging:
    logger.info(f"Patched {app} with {image}")

Structured logging:
    logger.info("Patched application", app=app, image=image)

The second form can be filtered by field (`jq 'select(.app == "web")'`)
instead of by regular expression.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path


# =============================================================================
# CORRELATION ID
# =============================================================================

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get current correlation ID or generate new one.

    Outside GitHub Actions no run id is available; an 8 character UUID
    prefix is generated on first use and reused for the rest of the run.

    Returns:
        Correlation ID string.
    """
    cid = correlation_id.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id.set(cid)
    return cid


def set_correlation_id(cid: str) -> None:
    """Set correlation ID for current context ("" regenerates on next access)."""
    correlation_id.set(cid)


def add_correlation_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor adding the correlation ID to every event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


# =============================================================================
# SECRET MASKING
# =============================================================================

MASK = "***MASKED***"

# Regular expressions to find and mask sensitive data inside STRINGS.
# Each tuple is (pattern, replacement); re.I makes matching case-insensitive.
SECRET_PATTERNS = [
    (re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(secret[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), rf"\1{MASK}"),
    (re.compile(r"(bearer\s+)[^\s\"']+", re.I), rf"\1{MASK}"),
]

# Keys in dictionaries whose values are always masked
SENSITIVE_KEYS = frozenset(
    [
        "token",
        "password",
        "secret",
        "api_key",
        "apikey",
        "api-key",
        "authorization",
        "credential",
        "credentials",
    ]
)


def mask_secrets(data: Any) -> Any:
    """
    Mask sensitive values in arbitrary data before logging it.

    Recurses through dicts and lists. Dict values whose key looks sensitive
    are replaced outright; strings are scrubbed with SECRET_PATTERNS; every
    other type is returned unchanged.

    Example:
        >>> mask_secrets({"username": "admin", "password": "hunter2"})
        {'username': 'admin', 'password': '***MASKED***'}
    """
    if isinstance(data, str):
        masked = data
        for pattern, replacement in SECRET_PATTERNS:
            masked = pattern.sub(replacement, masked)
        return masked

    if isinstance(data, dict):
        return {
            k: MASK if str(k).lower() in SENSITIVE_KEYS else mask_secrets(v)
            for k, v in data.items()
        }

    if isinstance(data, list):
        return [mask_secrets(item) for item in data]

    return data


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging.

    Call it once at startup; calling it again reconfigures (e.g. after the
    settings have been read and the requested level is known).

    PROCESSOR PIPELINE:
    -------------------
    1. merge_contextvars: Adds any bound context variables
    2. add_log_level: Adds "level" field
    3. TimeStamper: Adds ISO-format timestamp
    4. add_correlation_id: Adds the run's correlation ID
    5. Renderer: JSON or colored console text

    Args:
        level: "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
        json_output: Output JSON lines instead of console text
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# AUDIT LOGGING
# =============================================================================


class AuditLogger:
    """
    Audit logger for write operations against ArgoCD.

    Each entry records:
    - timestamp: UTC ISO 8601
    - correlation_id: Run identifier
    - action: Operation name ("update_image", "sync", ...)
    - target: Application name
    - result: "success" or "error"
    - details: Optional extra context (image, patch, error message)

    Entries are appended as JSON lines to log_path when one is given,
    otherwise they go through structlog like every other log line.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: JSON-lines file to append to, or None for structlog.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        action: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record one auditable action."""
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "correlation_id": get_correlation_id(),
            "action": action,
            "target": target,
            "result": result,
        }
        if details:
            entry["details"] = details

        if self._log_path:
            with self._log_path.open("a") as f:
                f.write(json.dumps(entry) + "\n")
        else:
            self._logger.info(
                "audit",
                action=action,
                target=target,
                result=result,
                details=details,
            )

    def log_write(
        self,
        action: str,
        target: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a successful write operation."""
        self.log(action, target, "success", details)

    def log_error(
        self,
        action: str,
        target: str,
        error: str,
    ) -> None:
        """Record a failed operation with its error message."""
        self.log(action, target, "error", {"error": error})
