"""
Domain exceptions.

Services raise these; the application-level handler in `app.main` turns
them into HTTP responses via `to_http_exception()`. Batch jobs catch them
per item and record them in their reports instead.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input fails a rule pydantic cannot express (field-level details)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenException(DomainException):
    """Raised when the actor does not own the resource."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    status_code = HTTP_422_UNPROCESSABLE


class InvalidTransitionException(ConflictException):
    """Raised when a status change is not allowed by the lifecycle tables."""

    def __init__(self, entity: str, current: str, event: str):
        super().__init__(
            message=f"Cannot {event} a {entity} with status '{current}'",
            code="INVALID_TRANSITION",
            details={"entity": entity, "status": current, "event": event},
        )


class DuplicateReviewException(ConflictException):
    """Raised when the (client, content) review constraint rejects an insert."""

    def __init__(self, content_type: str, content_id: int):
        super().__init__(
            message="You have already reviewed this",
            code="DUPLICATE_REVIEW",
            details={"content_type": content_type, "content_id": content_id},
        )


class CollaboratorFailure(DomainException):
    """Raised when an external collaborator (e.g. the notifier) fails."""

    status_code = status.HTTP_502_BAD_GATEWAY
