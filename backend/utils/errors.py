"""
Service exceptions

Services raise these instead of HTTPException so they stay usable from
scheduled jobs and scripts. server.py renders them as {"detail": message}.
"""


class ServiceError(Exception):
    """Base error carrying the HTTP status the API should answer with."""
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self):
        return {"detail": self.message}


class ValidationFailedError(ServiceError):
    status_code = 400


class PermissionDeniedError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class PriceUnavailableError(ServiceError):
    """
    Raised when the price feed is down and mock fallback is blocked.

    Used in production to signal honest data unavailability instead of
    fabricating prices.
    """
    status_code = 503

    def __init__(self, currency: str, reason: str):
        self.currency = currency
        self.reason = reason
        super().__init__(f"[{currency}] Price unavailable: {reason}")
