"""
Error taxonomy for the signaling protocol.

Every failure a method can report maps onto one of these classes. They reuse
FastAPI's ``HTTPException`` so the status code doubles as the machine-readable
error kind on the wire, while ``detail`` stays the plain-text message older
clients display.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class RelayError(HTTPException):
    """Base class for failures reported back to the caller as an error frame."""

    code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(status_code=self.code, detail=message or self.message)

    def to_wire(self) -> Dict[str, Any]:
        return {"message": self.detail, "code": self.status_code}


class BadRequest(RelayError):
    code = status.HTTP_400_BAD_REQUEST
    message = "Bad Request"


class Unauthorized(RelayError):
    code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class Forbidden(RelayError):
    code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class NotFound(RelayError):
    code = status.HTTP_404_NOT_FOUND
    message = "Not Found"


class PreconditionFailed(RelayError):
    code = status.HTTP_412_PRECONDITION_FAILED
    message = "Precondition Failed"


class ContentTooLarge(RelayError):
    code = 413
    message = "Content Too Large"


class TooManyRequests(RelayError):
    code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too Many Requests"


class InternalError(RelayError):
    pass


class ConnectionTerminated(Exception):
    """Raised when the caller is untrusted and the whole connection must be dropped."""

    def __init__(self, reason: str = "Policy violation"):
        super().__init__(reason)
        self.reason = reason
