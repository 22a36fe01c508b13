"""
Error hierarchy for the presale admission engine.

Every rejection the engine can produce is a PresaleError subclass carrying a
stable machine-readable code and the HTTP status the API maps it to:

- ValidationError: malformed input, no state change
- IneligibleError: phase/tier mismatch, retry once the phase changes
- DuplicateTransactionError: transaction id already used for another payload
- CapExceededError: hard cap reached, terminal for the attempt
- StorageFailure: transient infrastructure fault, retry with backoff
- ConfigurationMissing / ConfigurationInvalid: deployment errors
"""

from typing import Any, Optional


class PresaleError(Exception):
    """Base exception for all presale errors."""

    code = "PRESALE_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict[str, Any]:
        """Convert to the API error envelope."""
        body: dict[str, Any] = {
            "status": "error",
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PresaleError):
    code = "VALIDATION_ERROR"
    http_status = 400


class AmountOutOfBoundsError(ValidationError):
    code = "AMOUNT_OUT_OF_BOUNDS"


class IneligibleError(PresaleError):
    """Wallet tier does not allow investing in the current phase."""

    code = "NOT_ELIGIBLE"
    http_status = 403

    def __init__(self, message: str, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details={"reason": reason, **(details or {})})
        self.reason = reason


class PresaleNotStartedError(IneligibleError):
    code = "PRESALE_NOT_STARTED"


class PresaleEndedError(IneligibleError):
    code = "PRESALE_ENDED"


class DuplicateTransactionError(PresaleError):
    code = "DUPLICATE_TRANSACTION"
    http_status = 409


class CapExceededError(PresaleError):
    code = "HARD_CAP_EXCEEDED"
    http_status = 409


class StorageFailure(PresaleError):
    code = "STORAGE_FAILURE"
    http_status = 503


class ConfigurationMissing(PresaleError):
    code = "CONFIGURATION_MISSING"
    http_status = 500


class ConfigurationInvalid(PresaleError):
    code = "CONFIGURATION_INVALID"
    http_status = 500


class AuthenticationError(PresaleError):
    code = "UNAUTHORIZED"
    http_status = 401


class NotFoundError(PresaleError):
    code = "NOT_FOUND"
    http_status = 404
