"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations

from fieldsales_ai.domain.enums import VendorErrorKind


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


class UnknownProviderError(DomainError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider {provider!r} is not registered", code="UNKNOWN_PROVIDER")
        self.provider = provider


# ── Routing ──────────────────────────────────────────────────
class CredentialMissingError(DomainError):
    """The selected provider has no API credential configured."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"[{provider}] credential not configured",
            code="CREDENTIAL_MISSING",
        )
        self.provider = provider


class NoProviderAvailableError(DomainError):
    """Raised only when the registry holds no providers at all."""

    def __init__(self, message: str = "No provider is registered") -> None:
        super().__init__(message, code="NO_PROVIDER_AVAILABLE")


# ── Budget ───────────────────────────────────────────────────
class BudgetExceeded(DomainError):
    """Spend passed the daily or monthly limit.  Logged and metered, never raised."""

    def __init__(self, message: str, percentage: float) -> None:
        super().__init__(message, code="BUDGET_EXCEEDED")
        self.percentage = percentage


# ── Vendor calls ─────────────────────────────────────────────
class VendorError(DomainError):
    """A vendor call failed.  ``kind`` carries the normalised failure class."""

    kind: VendorErrorKind = VendorErrorKind.NETWORK
    transient: bool = True

    def __init__(self, provider: str, message: str, *, code: str = "VENDOR_ERROR") -> None:
        super().__init__(f"[{provider}] {message}", code=code)
        self.provider = provider


class VendorTransientError(VendorError):
    """Network failure, 5xx, or any other error worth retrying later."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, code="VENDOR_UNAVAILABLE")


class VendorTimeoutError(VendorTransientError):
    def __init__(self, provider: str, timeout_s: float) -> None:
        super().__init__(provider, f"Timeout after {timeout_s}s")
        self.timeout_s = timeout_s


class VendorRateLimitedError(VendorError):
    """HTTP 429.  Transient: the provider is not blacklisted."""

    kind = VendorErrorKind.RATE_LIMIT

    def __init__(self, provider: str, message: str = "Rate limited", *, retry_after: float | None = None) -> None:
        super().__init__(provider, message, code="VENDOR_RATE_LIMITED")
        self.retry_after = retry_after


class VendorAuthError(VendorError):
    """Credential rejected (401/403).  Treated as transient, reported distinctly."""

    kind = VendorErrorKind.AUTH

    def __init__(self, provider: str, message: str = "Credential rejected") -> None:
        super().__init__(provider, message, code="VENDOR_AUTH_FAILED")


class VendorInvalidResponseError(VendorError):
    kind = VendorErrorKind.INVALID_RESPONSE

    def __init__(self, provider: str, message: str = "Invalid response") -> None:
        super().__init__(provider, message, code="VENDOR_INVALID_RESPONSE")
