"""
Exchange Error Taxonomy

Every engine failure is raised as a subclass of ExchangeError carrying a
stable error code and the HTTP status the API layer maps it to. Messages are
written for end users; the UI surfaces them verbatim.
"""
from typing import Any, Optional


class ExchangeError(Exception):
    """Base class for all exchange engine errors"""

    code = "EXCHANGE_ERROR"
    http_status = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
            "message": self.message,
        }


class ValidationError(ExchangeError):
    """Malformed input rejected before any side effect"""

    code = "VALIDATION_ERROR"
    http_status = 400


class SelfRequest(ValidationError):
    code = "SELF_REQUEST"


class InsufficientBalance(ExchangeError):
    """Ledger debit would take a balance below zero"""

    code = "INSUFFICIENT_BALANCE"
    http_status = 400


class InsufficientTokens(InsufficientBalance):
    """Sender cannot afford a request"""

    code = "INSUFFICIENT_TOKENS"


class NotAuthorized(ExchangeError):
    code = "NOT_AUTHORIZED"
    http_status = 403


class NotFound(ExchangeError):
    code = "NOT_FOUND"
    http_status = 404


class DuplicateRequest(ExchangeError):
    code = "DUPLICATE_REQUEST"
    http_status = 409


class AlreadyResolved(ExchangeError):
    """Request is no longer PENDING; safe to treat as terminal"""

    code = "ALREADY_RESOLVED"
    http_status = 409


class AlreadyCompleted(ExchangeError):
    """Session is already done; safe to treat as terminal"""

    code = "ALREADY_COMPLETED"
    http_status = 409


class AlreadyRated(ExchangeError):
    """The rater already rated this session"""

    code = "ALREADY_RATED"
    http_status = 409
