"""Email delivery client for executing approved collection actions."""

from typing import Any, Dict, Optional

import structlog

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.core.circuit_breaker import CircuitBreakerConfig, ServiceClient
from collection_decisioning.core.exceptions import DeliveryError, ExternalServiceError

logger = structlog.get_logger(__name__)


class EmailDeliveryClient:
    """Sends final collection content through the email delivery service."""

    def __init__(self, service_client: ServiceClient):
        self.service_client = service_client

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EmailDeliveryClient":
        settings = settings or get_settings()
        return cls(
            ServiceClient(
                "Email Delivery",
                settings.email_delivery_url,
                timeout_seconds=settings.email_delivery_timeout,
                circuit_breaker_config=CircuitBreakerConfig(
                    failure_threshold=settings.email_delivery_failure_threshold,
                    timeout=settings.circuit_breaker_timeout,
                ),
            )
        )

    async def send_collection_email(
        self,
        recipient: Optional[str],
        subject: str,
        body: str,
        customer_id: str,
        invoice_id: str,
        recommendation_id: str,
    ) -> Dict[str, Any]:
        """
        Send a collection email.

        Raises:
            DeliveryError: If there is no recipient or the delivery service fails
        """
        if not recipient:
            raise DeliveryError(
                f"No contact email for customer '{customer_id}'", customer_id=customer_id
            )

        logger.info(
            "Sending collection email",
            customer_id=customer_id,
            invoice_id=invoice_id,
            recommendation_id=recommendation_id,
        )

        try:
            return await self.service_client.post(
                "/emails",
                json={
                    "to": recipient,
                    "subject": subject,
                    "body": body,
                    "metadata": {
                        "customer_id": customer_id,
                        "invoice_id": invoice_id,
                        "recommendation_id": recommendation_id,
                    },
                },
            )
        except ExternalServiceError as e:
            raise DeliveryError(
                e.message,
                status_code=e.status_code,
                customer_id=customer_id,
                invoice_id=invoice_id,
            ) from e

    async def close(self) -> None:
        await self.service_client.close()

    def get_circuit_status(self) -> Dict[str, Any]:
        return self.service_client.get_circuit_status()
