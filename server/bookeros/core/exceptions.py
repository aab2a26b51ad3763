"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://bookeros.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[list[Dict[str, str]]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_permissions: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_permissions:
            extensions["required_permissions"] = required_permissions

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


# Business logic exceptions

class InvalidBookingStateError(ConflictError):
    """Exception when a booking is not in a status that allows the operation."""

    def __init__(self, booking_id: str, status: str, operation: str):
        super().__init__(
            detail=f"Booking {booking_id} cannot be used for '{operation}' while in status '{status}'"
        )
        self.problem_details.update({
            "code": "INVALID_BOOKING_STATE",
            "booking_id": booking_id,
            "booking_status": status,
        })


class TicketAlreadyRedeemedError(ProblemDetailsException):
    """Exception when a ticket is redeemed a second time."""

    def __init__(self, booking_id: str, redeemed_at: datetime):
        super().__init__(
            status_code=400,
            title="Ticket Already Redeemed",
            detail=f"Ticket for booking {booking_id} was already redeemed at {redeemed_at.isoformat()}Z",
            type_uri=f"{PROBLEM_BASE_URI}/ticket-already-redeemed",
            extensions={
                "code": "ALREADY_REDEEMED",
                "booking_id": booking_id,
                "redeemed_at": redeemed_at.isoformat() + "Z",
            },
        )


class DateUnavailableError(ConflictError):
    """Exception when a tour date has been blocked by the operator."""

    def __init__(self, tour_id: str, date: str, reason: Optional[str] = None):
        super().__init__(detail=f"Tour {tour_id} is not available on {date}")
        self.problem_details.update({
            "code": "DATE_BLOCKED",
            "tour_id": tour_id,
            "date": date,
            "reason": reason,
        })


class CapacityExceededError(ConflictError):
    """Exception when a tour date does not have enough free seats."""

    def __init__(self, tour_id: str, requested_seats: int, available_seats: int):
        super().__init__(
            detail=(
                f"Tour {tour_id} has insufficient capacity. "
                f"Requested: {requested_seats}, Available: {available_seats}"
            ),
            conflicting_resource={
                "tour_id": tour_id,
                "requested_seats": requested_seats,
                "available_seats": available_seats,
            }
        )
        self.problem_details.update({"code": "FULL", "retryable": False})


class PaymentNotCompletedError(ProblemDetailsException):
    """Exception when the gateway reports that a checkout has not been paid."""

    def __init__(self, booking_id: str, gateway_status: str):
        super().__init__(
            status_code=400,
            title="Payment Not Completed",
            detail=f"Payment for booking {booking_id} is not completed (gateway status: {gateway_status})",
            type_uri=f"{PROBLEM_BASE_URI}/payment-not-completed",
            extensions={
                "code": "PAYMENT_NOT_COMPLETED",
                "booking_id": booking_id,
                "gateway_status": gateway_status,
                "retryable": True,
            },
        )


class PaymentGatewayError(ProblemDetailsException):
    """Exception when the payment gateway fails or rejects an operation."""

    def __init__(self, operation: str, detail: Optional[str] = None):
        super().__init__(
            status_code=500,
            title="Payment Gateway Error",
            detail=detail or f"The payment gateway could not complete '{operation}'",
            type_uri=f"{PROBLEM_BASE_URI}/payment-gateway-error",
            extensions={"code": "GATEWAY_ERROR", "operation": operation},
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as a 400 Problem Details response."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    problem = ValidationError(violations=violations, instance=str(request.url.path))
    return await problem_details_handler(request, problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )

    problem_details = {
        "type": f"{PROBLEM_BASE_URI}/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
