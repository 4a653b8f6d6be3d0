"""
Tests for structured logging helpers.
"""
from unittest.mock import MagicMock, patch

from collection_decisioning.core.logging import (
    add_correlation_id,
    add_request_context,
    add_service_context,
    correlation_context,
    get_correlation_id,
    invoice_id_var,
    log_business_event,
    user_id_var,
)


class TestCorrelationContext:
    """Test request-scoped context variables."""

    def test_sets_and_restores_values(self):
        with correlation_context(correlation_id="corr-123", invoice_id="inv_001", user_id="u1"):
            assert get_correlation_id() == "corr-123"
            assert invoice_id_var.get() == "inv_001"
            assert user_id_var.get() == "u1"

        assert invoice_id_var.get() is None
        assert user_id_var.get() is None

    def test_nested_contexts(self):
        with correlation_context(correlation_id="outer"):
            with correlation_context(invoice_id="inv_002"):
                assert get_correlation_id() == "outer"
                assert invoice_id_var.get() == "inv_002"
            assert invoice_id_var.get() is None
            assert get_correlation_id() == "outer"


class TestProcessors:
    """Test structlog processors."""

    def test_correlation_id_added(self):
        with correlation_context(correlation_id="corr-abc"):
            event = add_correlation_id(None, "info", {"event": "test"})

        assert event["correlation_id"] == "corr-abc"

    def test_request_context_added(self):
        with correlation_context(invoice_id="inv_003", user_id="reviewer_1"):
            event = add_request_context(None, "info", {"event": "test"})

        assert event["invoice_id"] == "inv_003"
        assert event["user_id"] == "reviewer_1"

    def test_explicit_fields_win(self):
        with correlation_context(invoice_id="inv_003"):
            event = add_request_context(None, "info", {"event": "test", "invoice_id": "inv_999"})

        assert event["invoice_id"] == "inv_999"

    def test_service_context_added(self):
        event = add_service_context(None, "info", {"event": "test"})

        assert event["service"] == "collection-decisioning"
        assert event["version"]


class TestBusinessEvents:
    def test_log_business_event(self):
        business_logger = MagicMock()
        with patch(
            "collection_decisioning.core.logging.get_business_logger",
            return_value=business_logger,
        ):
            log_business_event("recommendation_generated", recommendation_id="rec_1")

        business_logger.info.assert_called_once_with(
            "Business event",
            event_type="recommendation_generated",
            recommendation_id="rec_1",
        )
