"""
Error taxonomy for the fundraising core.

Every error carries a stable machine-readable ``kind`` and the HTTP status the
API layer answers with. Errors are raised where they are detected and surface
unchanged at the caller boundary.
"""
from typing import Any, Dict, Optional


class FundraisingError(Exception):
    """Base class for all domain errors"""

    kind = "error"
    status_code = 500
    expose_message = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        """Shape used by the API error handler"""
        body: Dict[str, Any] = {
            "error": self.kind,
            "message": self.message if self.expose_message else "An internal error occurred",
        }
        if self.details and self.expose_message:
            body["details"] = self.details
        return body


class ValidationError(FundraisingError):
    """Malformed or missing input. Never retried."""

    kind = "validation_error"
    status_code = 400


class AuthorizationError(FundraisingError):
    """Caller lacks the role or ownership required"""

    kind = "authorization_error"
    status_code = 403


class NotFoundError(FundraisingError):
    """Referenced entity is absent (or not visible to the caller)"""

    kind = "not_found"
    status_code = 404


class ConflictError(FundraisingError):
    """Operation would break a structural invariant"""

    kind = "conflict"
    status_code = 409


class ConsistencyError(FundraisingError):
    """Totals bookkeeping found a donation already applied. Indicates a bug."""

    kind = "consistency_error"
    status_code = 500
    expose_message = False


class StoreUnavailableError(FundraisingError):
    """Ledger store timed out or stayed unreachable after bounded retries"""

    kind = "store_unavailable"
    status_code = 503
