"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the custom exceptions for the sentiment tracker.

- Provides clear exception hierarchy
- Enables specific error handling
- Includes context for debugging

Provider-side failures live in providers.exceptions; this module
covers configuration, storage and scheduling.

============================================================
EXCEPTION HIERARCHY
============================================================
TrackerError (base)
├── ConfigurationError
│   └── InvalidConfigError
├── StorageError
│   ├── StorageTierError
│   ├── LegacyTierQuotaError
│   └── ImportDataError
└── SchedulerError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, degraded operation."""

    HIGH = "high"
    """Serious issue, operation cannot continue."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class TrackerError(Exception):
    """
    Base exception for all tracker errors.

    All exceptions carry:
    - severity: for log level decisions
    - context: for debugging
    - recoverable: whether the caller can continue
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(TrackerError):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# STORAGE ERRORS
# ============================================================

class StorageError(TrackerError):
    """Base class for persistence errors."""

    default_severity = Severity.MEDIUM
    default_recoverable = True


class StorageTierError(StorageError):
    """A durable tier failed to read or write."""

    def __init__(
        self,
        message: str,
        tier: Optional[str] = None,
        collection: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if tier:
            context["tier"] = tier
        if collection:
            context["collection"] = collection

        super().__init__(message, context=context, **kwargs)


class LegacyTierQuotaError(StorageTierError):
    """Serialized legacy blob exceeds the tier's byte ceiling."""

    default_severity = Severity.LOW

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            f"Legacy blob of {size_bytes} bytes exceeds limit of {max_bytes}",
            tier="legacy",
            context={"size_bytes": size_bytes, "max_bytes": max_bytes},
        )
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class ImportDataError(StorageError):
    """Import document is malformed."""

    def __init__(self, message: str, missing_key: Optional[str] = None):
        context = {"missing_key": missing_key} if missing_key else {}
        super().__init__(message, context=context)


# ============================================================
# SCHEDULER ERRORS
# ============================================================

class SchedulerError(TrackerError):
    """Scheduler misuse or invalid schedule parameters."""

    default_recoverable = False


__all__ = [
    "Severity",
    "TrackerError",
    "ConfigurationError",
    "InvalidConfigError",
    "StorageError",
    "StorageTierError",
    "LegacyTierQuotaError",
    "ImportDataError",
    "SchedulerError",
]
