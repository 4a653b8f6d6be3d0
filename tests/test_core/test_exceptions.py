"""
Tests for custom exception hierarchy.
"""
from fastapi import HTTPException, status

from collection_decisioning.core.exceptions import (
    AIServiceError,
    BaseAPIException,
    DeliveryError,
    DraftParseError,
    ExternalServiceError,
    GenerationCancelledError,
    GenerationFailedError,
    GenerationInProgressError,
    InvalidApprovalRequestError,
    InvalidApprovalTransitionError,
    NotFoundError,
    ServiceUnavailableError,
    get_user_friendly_error_message,
)


class TestBaseAPIException:
    """Test base API exception."""

    def test_basic_creation(self):
        """Test basic exception creation."""
        exc = BaseAPIException(status_code=400, detail="Test error", error_code="TEST_ERROR")

        assert isinstance(exc, HTTPException)
        assert exc.status_code == 400
        assert exc.detail == "Test error"
        assert exc.correlation_id is not None  # Auto-generated
        assert exc.context == {}

    def test_to_dict(self):
        exc = BaseAPIException(
            status_code=400,
            detail="Test error",
            error_code="TEST_ERROR",
            correlation_id="test-correlation-123",
            context={"field": "value"},
        )

        assert exc.to_dict() == {
            "error": True,
            "error_code": "TEST_ERROR",
            "message": "Test error",
            "correlation_id": "test-correlation-123",
            "context": {"field": "value"},
        }


class TestDecisioningExceptions:
    """Test workflow and generation exceptions."""

    def test_not_found(self):
        exc = NotFoundError("Recommendation", "rec_123")

        assert exc.status_code == status.HTTP_404_NOT_FOUND
        assert exc.error_code == "DEC_001"
        assert exc.detail == "Recommendation 'rec_123' not found"

    def test_invalid_transition(self):
        exc = InvalidApprovalTransitionError(
            "Rejected approvals cannot be executed",
            recommendation_id="rec_123",
            approval_id="appr_456",
            current_status="rejected",
        )

        assert exc.status_code == status.HTTP_409_CONFLICT
        assert exc.error_code == "DEC_002"
        assert exc.context["current_status"] == "rejected"

    def test_generation_in_progress(self):
        exc = GenerationInProgressError("inv_001")

        assert exc.status_code == status.HTTP_409_CONFLICT
        assert exc.error_code == "DEC_003"
        assert "inv_001" in exc.detail

    def test_generation_failed(self):
        exc = GenerationFailedError(
            invoice_id="inv_001",
            primary_model="claude-3-5-sonnet",
            fallback_model="gpt-4o-mini",
            primary_error="timeout",
            fallback_error="rate limited",
        )

        assert exc.status_code == status.HTTP_502_BAD_GATEWAY
        assert exc.error_code == "DEC_004"
        assert exc.invoice_id == "inv_001"
        assert exc.context["fallback_model"] == "gpt-4o-mini"

    def test_invalid_approval_request(self):
        exc = InvalidApprovalRequestError("Modified approvals require modified content")

        assert exc.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert exc.error_code == "DEC_006"

    def test_service_unavailable_retry_after(self):
        exc = ServiceUnavailableError("Email Delivery", retry_after=30)

        assert exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert exc.headers == {"Retry-After": "30"}
        assert exc.detail == "External service 'Email Delivery' is currently unavailable"


class TestServiceExceptions:
    """Test non-HTTP exceptions."""

    def test_drafting_exceptions_share_base(self):
        assert issubclass(DraftParseError, AIServiceError)
        assert issubclass(GenerationCancelledError, AIServiceError)

    def test_draft_parse_error_keeps_raw_content(self):
        exc = DraftParseError("not json", raw_content="oops")

        assert str(exc) == "not json"
        assert exc.raw_content == "oops"

    def test_external_service_error(self):
        exc = ExternalServiceError("Salesforce", "HTTP 500: boom", status_code=500)

        assert str(exc) == "[Salesforce] HTTP 500: boom"
        assert exc.message == "HTTP 500: boom"
        assert exc.status_code == 500

    def test_delivery_error(self):
        exc = DeliveryError("No contact email", customer_id="cust_001")

        assert isinstance(exc, ExternalServiceError)
        assert exc.service_name == "Email Delivery"
        assert exc.context == {"customer_id": "cust_001"}


class TestUserFriendlyMessages:
    def test_known_codes(self):
        for code in ("DEC_001", "DEC_002", "DEC_003", "DEC_004", "DEC_005", "DEC_006"):
            assert get_user_friendly_error_message(code) != "An error occurred. Please try again."

    def test_unknown_code(self):
        assert get_user_friendly_error_message("NOPE") == "An error occurred. Please try again."
