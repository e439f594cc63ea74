# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the Medtik platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
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
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


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


# Specific business exceptions


class SlotUnavailableException(ConflictException):
    """Raised when a slot is already reserved or was taken by a concurrent request."""

    def __init__(self, slot_id: int, message: Optional[str] = None):
        super().__init__(
            message=message or "This slot is no longer available; please choose another slot",
            code="SLOT_UNAVAILABLE",
            details={"slot_id": slot_id, "retryable": True},
        )


class AvailabilityOverlapException(ConflictException):
    """Raised when a new slot overlaps with an existing slot of the same doctor."""

    def __init__(
        self,
        specific_date: str,
        new_range: str,
        conflicting_range: str,
    ):
        super().__init__(
            message=(
                f"Overlapping slot on {specific_date}: {new_range} conflicts with {conflicting_range}"
            ),
            code="AVAILABILITY_OVERLAP",
            details={
                "date": specific_date,
                "new_slot": new_range,
                "conflicting_slot": conflicting_range,
            },
        )


class PricingUnavailableException(ValidationException):
    """Raised when a doctor has no price for the requested service/currency."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="PRICING_UNAVAILABLE", details=details or {})


class SignatureInvalidException(ValidationException):
    """Raised when a payment callback fails HMAC verification."""

    def __init__(self) -> None:
        super().__init__(message="Invalid signature", code="SIGNATURE_INVALID")


class InvalidTransitionException(BusinessRuleException):
    """Raised when a lifecycle transition is not allowed from the current state."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            message=f"Cannot move {entity} from {current} to {target}",
            code="INVALID_TRANSITION",
            details={"entity": entity, "from": current, "to": target},
        )


class GatewayException(DomainException):
    """Raised when the payment gateway could not start a checkout."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        merged = {"retryable": True}
        merged.update(details or {})
        super().__init__(message=message, code="GATEWAY_ERROR", details=merged)


class RefundFailedException(DomainException):
    """Raised when the gateway rejects or fails a refund request."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, payment_id: int, reason: str):
        super().__init__(
            message=f"Refund failed for payment {payment_id}: {reason}",
            code="REFUND_FAILED",
            details={"payment_id": payment_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
