"""
Tests for the approval workflow API endpoints.
"""
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from collection_decisioning.core.exceptions import DeliveryError


class TestApprovalAPI:
    """Test cases for approval API endpoints."""

    @pytest.fixture
    def recommendation_id(self, client: TestClient, api_prefix, collection_payload):
        """Create a pending recommendation through the API."""
        response = client.post(f"{api_prefix}/collections/recommendations", json=collection_payload())
        assert response.status_code == status.HTTP_201_CREATED
        return response.json()["recommendation"]["id"]

    def _approve(self, client, api_prefix, recommendation_id, action="approved", **extra):
        body = {"recommendation_id": recommendation_id, "user_id": "reviewer_1", "action": action}
        body.update(extra)
        return client.post(f"{api_prefix}/collections/approvals", json=body)

    def test_approve_and_execute(
        self, client, api_prefix, recommendation_id, mock_delivery_client
    ):
        response = self._approve(client, api_prefix, recommendation_id, execute_immediately=True)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["status"] == "executed"
        assert data["executed"] is True
        assert data["approval"]["outcome"] == "sent"
        assert data["approval"]["recommendation_id"] == recommendation_id
        mock_delivery_client.send_collection_email.assert_awaited_once()

    def test_approve_then_execute_separately(self, client, api_prefix, recommendation_id):
        approval = self._approve(client, api_prefix, recommendation_id).json()["approval"]

        response = client.post(f"{api_prefix}/collections/approvals/{approval['id']}/execute")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "executed"

    def test_unknown_recommendation(self, client, api_prefix):
        response = self._approve(client, api_prefix, "rec_missing")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "DEC_001"

    def test_modified_requires_content(self, client, api_prefix, recommendation_id):
        response = self._approve(client, api_prefix, recommendation_id, action="modified")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error_code"] == "DEC_006"

    def test_second_decision_conflicts(self, client, api_prefix, recommendation_id):
        self._approve(client, api_prefix, recommendation_id, action="rejected")

        response = self._approve(client, api_prefix, recommendation_id)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error_code"] == "DEC_002"

    def test_rejected_cannot_execute(self, client, api_prefix, recommendation_id):
        approval = self._approve(
            client, api_prefix, recommendation_id, action="rejected"
        ).json()["approval"]

        response = client.post(f"{api_prefix}/collections/approvals/{approval['id']}/execute")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_delivery_failure_reported_not_raised(
        self, client, api_prefix, recommendation_id, mock_delivery_client
    ):
        mock_delivery_client.send_collection_email.side_effect = DeliveryError("mailbox full")

        response = self._approve(client, api_prefix, recommendation_id, execute_immediately=True)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["executed"] is False
        assert data["status"] == "approved"
        assert data["approval"]["outcome"] == "failed"
        assert "mailbox full" in data["execution_error"]

    def test_customer_response(self, client, api_prefix, recommendation_id):
        approval = self._approve(
            client, api_prefix, recommendation_id, execute_immediately=True
        ).json()["approval"]

        response = client.post(
            f"{api_prefix}/collections/approvals/{approval['id']}/customer-response",
            json={"user_id": "ar_clerk"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["approval"]["outcome"] == "customer_responded"
        assert response.json()["status"] == "executed"

    def test_analytics(self, client, api_prefix, recommendation_id):
        self._approve(client, api_prefix, recommendation_id, execute_immediately=True)

        response = client.get(f"{api_prefix}/collections/approvals/analytics?days=7")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["period_days"] == 7
        assert data["total_approvals"] == 1
        assert data["approval_rate"] == 100.0
        assert data["success_rate"] == 100.0

    def test_audit_logs(self, client, api_prefix, recommendation_id):
        self._approve(client, api_prefix, recommendation_id)

        response = client.get(
            f"{api_prefix}/collections/approvals/audit-logs",
            params={"recommendation_id": recommendation_id},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total_count"] == 2
        assert [log["action"] for log in data["audit_logs"]] == ["approved", "registered"]
