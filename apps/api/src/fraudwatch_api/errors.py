"""Error taxonomy for the FraudWatch core.

Each error carries the HTTP status it maps to and a short machine-readable
code. Validation and rate-limit failures are turned into structured results
at the component boundary; only routes let them reach the exception handler.
"""


class FraudWatchError(Exception):
    """Base class for all FraudWatch errors."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class ValidationError(FraudWatchError):
    """Malformed entity, content or one-time code."""

    status_code = 400
    code = "invalid"


class NotFoundError(FraudWatchError):
    """No one-time code or alert for the given key/id."""

    status_code = 404
    code = "not_found"


class RateLimitError(FraudWatchError):
    """One-time code cooldown active or attempts exhausted."""

    status_code = 429
    code = "rate_limited"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        wait_seconds: int | None = None,
    ):
        super().__init__(message, code)
        self.wait_seconds = wait_seconds

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.wait_seconds is not None:
            data["wait_seconds"] = self.wait_seconds
        return data


class ExpiredError(FraudWatchError):
    """One-time code or alert past its lifetime."""

    status_code = 410
    code = "expired"


class AuthenticationError(FraudWatchError):
    """Missing or invalid session credential."""

    status_code = 401
    code = "unauthenticated"


class TransientStoreError(FraudWatchError):
    """External report or user store unreachable."""

    status_code = 503
    code = "store_unavailable"


class ConfigurationError(Exception):
    """Raised when configuration is missing or malformed."""

    pass
