"""
Custom exception classes for the Collection Decisioning Service.
"""
from typing import Any, Dict, Optional
import uuid

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """Base exception for API errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.detail,
            "correlation_id": self.correlation_id,
            "context": self.context,
        }


class NotFoundError(BaseAPIException):
    """Exception for unknown recommendations or approvals."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{entity} '{entity_id}' not found",
            error_code="DEC_001",
            context={"entity": entity, "entity_id": entity_id},
        )


class InvalidApprovalTransitionError(BaseAPIException):
    """Exception for approval actions not allowed from the current state."""

    def __init__(
        self,
        detail: str,
        recommendation_id: Optional[str] = None,
        approval_id: Optional[str] = None,
        current_status: Optional[str] = None,
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="DEC_002",
            context={
                "recommendation_id": recommendation_id,
                "approval_id": approval_id,
                "current_status": current_status,
            },
        )


class GenerationInProgressError(BaseAPIException):
    """Exception for a second concurrent generation on the same invoice."""

    def __init__(self, invoice_id: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A recommendation is already being generated for invoice '{invoice_id}'",
            error_code="DEC_003",
            context={"invoice_id": invoice_id},
        )


class GenerationFailedError(BaseAPIException):
    """Exception raised when both the bound capability and the fallback fail."""

    def __init__(
        self,
        invoice_id: str,
        primary_model: str,
        fallback_model: str,
        primary_error: Optional[str] = None,
        fallback_error: Optional[str] = None,
    ):
        self.invoice_id = invoice_id
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=(
                f"Recommendation generation failed for invoice '{invoice_id}': "
                f"{primary_model} and fallback {fallback_model} both failed"
            ),
            error_code="DEC_004",
            context={
                "invoice_id": invoice_id,
                "primary_model": primary_model,
                "fallback_model": fallback_model,
                "primary_error": primary_error,
                "fallback_error": fallback_error,
            },
        )


class InvalidApprovalRequestError(BaseAPIException):
    """Exception for approval requests missing required content."""

    def __init__(self, detail: str, recommendation_id: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code="DEC_006",
            context={"recommendation_id": recommendation_id},
        )


class ServiceUnavailableError(BaseAPIException):
    """Exception for external service unavailability."""

    def __init__(
        self,
        service_name: str,
        detail: Optional[str] = None,
        retry_after: Optional[int] = None,
        **context
    ):
        self.service_name = service_name
        self.retry_after = retry_after
        if not detail:
            detail = f"External service '{service_name}' is currently unavailable"

        headers = {}
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="DEC_005",
            headers=headers,
            context={"service_name": service_name, "retry_after": retry_after, **context},
        )


# Drafting capability exceptions
class AIServiceError(Exception):
    """Base exception for drafting capability errors."""

    pass


class AIServiceTimeoutError(AIServiceError):
    """Exception for drafting capability timeouts."""

    pass


class AIServiceRateLimitError(AIServiceError):
    """Exception for drafting capability rate limit errors."""

    pass


class AIServiceAuthenticationError(AIServiceError):
    """Exception for drafting capability authentication errors."""

    pass


class DraftParseError(AIServiceError):
    """Exception for capability output that is not a usable draft."""

    def __init__(self, detail: str, raw_content: Optional[str] = None):
        self.raw_content = raw_content
        super().__init__(detail)


class GenerationCancelledError(AIServiceError):
    """Exception for a generation call cancelled by the caller."""

    pass


# External Service Exceptions
class ExternalServiceError(Exception):
    """Exception for external service call errors."""

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: Optional[int] = None,
        **context
    ):
        self.service_name = service_name
        self.status_code = status_code
        self.message = message
        self.context = context
        super().__init__(f"[{service_name}] {message}")


class DeliveryError(ExternalServiceError):
    """Exception for a collection action that could not be delivered."""

    def __init__(self, message: str, **context):
        super().__init__(service_name="Email Delivery", message=message, **context)


def get_user_friendly_error_message(error_code: str) -> str:
    """Get user-friendly error message for error code."""
    error_messages = {
        "DEC_001": "The requested record could not be found.",
        "DEC_002": "This action is not allowed for the record's current state.",
        "DEC_003": "A recommendation for this invoice is already being prepared.",
        "DEC_004": "Draft generation failed. The invoice remains available for a manual retry.",
        "DEC_005": "Service temporarily unavailable. Please try again later.",
        "DEC_006": "The approval request is incomplete.",
    }
    return error_messages.get(error_code, "An error occurred. Please try again.")
