"""
Provider Exceptions - Custom error hierarchy.

These exceptions are for internal control flow and logging only.
Providers NEVER raise to callers from public methods - they return None.

The retry wrapper keys off the `retryable` flag: rate-limit, quota and
overload failures are retried with backoff; everything else is terminal.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class ProviderError(Exception):
    """Base exception for all provider errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.provider_name = provider_name
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "provider_name": self.provider_name,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


# ─────────────────────────────────────────────────────────────
# Retryable
# ─────────────────────────────────────────────────────────────


class RateLimitError(ProviderError):
    """Rate limit exceeded (HTTP 429 or RESOURCE_EXHAUSTED)."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        retry_after_seconds: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, details)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class QuotaExhaustedError(RateLimitError):
    """Quota exhausted for the provider account."""
    pass


class ServerOverloadError(ProviderError):
    """Provider is temporarily overloaded (HTTP 503)."""

    retryable = True


# ─────────────────────────────────────────────────────────────
# Terminal
# ─────────────────────────────────────────────────────────────


class FetchError(ProviderError):
    """Request failed for a non-retryable reason."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, details)
        self.status_code = status_code
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "url": self.url,
        })
        return data


class AuthenticationError(FetchError):
    """Credentials rejected (HTTP 401/403)."""
    pass


class ParseError(ProviderError):
    """Response body is not decodable JSON."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        raw_data: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, provider_name, details)
        self.raw_data = raw_data[:500] if raw_data else None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["raw_data_preview"] = self.raw_data[:100] if self.raw_data else None
        return data


class SchemaValidationError(ProviderError):
    """Decoded response does not match the expected schema."""
    pass


class ProviderNotConfiguredError(ProviderError):
    """Provider is missing required credentials or endpoint."""
    pass


# ─────────────────────────────────────────────────────────────
# Classification helpers
# ─────────────────────────────────────────────────────────────


_RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota", "exhausted")
_OVERLOAD_MARKERS = ("503", "overloaded", "unavailable")


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether a failure is worth retrying.

    Provider errors carry their own flag; foreign exceptions are
    classified by message so SDK-style errors ("RESOURCE_EXHAUSTED",
    "quota exceeded", "503 Service Unavailable") still back off.
    """
    if isinstance(error, ProviderError):
        return error.retryable
    text = str(error).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS + _OVERLOAD_MARKERS)


def error_for_status(
    status: int,
    body: str,
    provider_name: str,
    url: Optional[str] = None,
) -> ProviderError:
    """Map an HTTP error status to the matching provider error."""
    preview = body[:500]
    lowered = preview.lower()
    if status == 429:
        if "quota" in lowered or "exhausted" in lowered:
            return QuotaExhaustedError(
                f"{provider_name} quota exhausted",
                provider_name=provider_name,
                details={"response": preview},
            )
        return RateLimitError(
            f"{provider_name} rate limit exceeded",
            provider_name=provider_name,
            details={"response": preview},
        )
    if status == 503:
        return ServerOverloadError(
            f"{provider_name} overloaded (503)",
            provider_name=provider_name,
            details={"response": preview},
        )
    if status in (401, 403):
        return AuthenticationError(
            f"{provider_name} rejected credentials ({status})",
            provider_name=provider_name,
            status_code=status,
            url=url,
        )
    return FetchError(
        f"{provider_name} API error: {status}",
        provider_name=provider_name,
        status_code=status,
        url=url,
        details={"response": preview},
    )
