# backend/urbanserve/core/exceptions.py
"""
Domain-specific exceptions for the booking and settlement engine.

Services raise these; the API layer converts them with
``to_http_exception()`` so no raw exception leaks out of a route.
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
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when a concurrent writer changed the record first."""

    status_code = status.HTTP_409_CONFLICT


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class IllegalStateException(DomainException):
    """Raised when a transition is not permitted from the current status."""

    status_code = HTTP_422_UNPROCESSABLE

    def __init__(
        self,
        message: str,
        *,
        current_status: Optional[str] = None,
        target_status: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if current_status is not None:
            details["current_status"] = current_status
        if target_status is not None:
            details["target_status"] = target_status
        super().__init__(message=message, code="ILLEGAL_STATE", details=details)


class IneligibleProfessionalException(DomainException):
    """Raised when a professional cannot be assigned to a service."""

    status_code = HTTP_422_UNPROCESSABLE

    def __init__(self, reason: str, *, professional_id: str, service_id: str) -> None:
        super().__init__(
            message=f"Professional is not eligible for this service: {reason}",
            code="INELIGIBLE_PROFESSIONAL",
            details={
                "reason": reason,
                "professional_id": professional_id,
                "service_id": service_id,
            },
        )
        self.reason = reason


class PaymentGatewayException(DomainException):
    """Raised when the payment gateway is unreachable or rejects a call."""

    status_code = status.HTTP_502_BAD_GATEWAY


class SignatureVerificationException(DomainException):
    """Raised when a gateway callback or webhook signature does not match."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Payment signature verification failed") -> None:
        super().__init__(message=message, code="INVALID_SIGNATURE")


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations.
    """
