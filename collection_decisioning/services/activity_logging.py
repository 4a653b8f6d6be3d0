"""
Best-effort CRM/ERP activity logging for executed collection actions.

Activity notes go to Salesforce and NetSuite concurrently under a short
overall timeout. Failures are logged as warnings and never propagate.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import structlog

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.core.circuit_breaker import CircuitBreakerConfig, ServiceClient
from collection_decisioning.core.retry import (
    create_async_retry_decorator,
    get_activity_log_retry_config,
)
from collection_decisioning.models.collections import utcnow

logger = structlog.get_logger(__name__)

ACTIVITY_SOURCE = "Collection Decisioning Service"


def _activity_text(invoice_number: str, strategy: str, outcome: str) -> str:
    return (
        f"Collection Strategy: {strategy}\n"
        f"Invoice: {invoice_number}\n"
        f"Outcome: {outcome}\n"
        f"Generated by {ACTIVITY_SOURCE}\n"
        f"Date: {utcnow().isoformat()}"
    )


class ActivityClient(ABC):
    """Base for CRM/ERP clients that record collection activity."""

    name = "activity"

    def __init__(self, service_client: ServiceClient):
        self.service_client = service_client
        self._post = create_async_retry_decorator(
            get_activity_log_retry_config(), service_name=service_client.service_name
        )(service_client.post)

    @abstractmethod
    async def log_collection_activity(
        self, external_id: str, invoice_number: str, strategy: str, outcome: str
    ) -> Dict[str, Any]:
        """Record one collection activity note against the external account."""

    async def close(self) -> None:
        await self.service_client.close()


class SalesforceClient(ActivityClient):
    """Records collection activity as Salesforce account tasks."""

    name = "salesforce"

    async def log_collection_activity(
        self, external_id: str, invoice_number: str, strategy: str, outcome: str
    ) -> Dict[str, Any]:
        return await self._post(
            "/tasks",
            json={
                "account_id": external_id,
                "subject": f"Collection Activity - {invoice_number}",
                "description": _activity_text(invoice_number, strategy, outcome),
            },
        )


class NetSuiteClient(ActivityClient):
    """Records collection activity as NetSuite customer notes."""

    name = "netsuite"

    async def log_collection_activity(
        self, external_id: str, invoice_number: str, strategy: str, outcome: str
    ) -> Dict[str, Any]:
        return await self._post(
            "/customer-notes",
            json={
                "customer_id": external_id,
                "title": f"Collection Activity - {invoice_number}",
                "note": _activity_text(invoice_number, strategy, outcome),
            },
        )


class CRMActivityLogger:
    """Fans activity notes out to every configured CRM/ERP client."""

    def __init__(self, clients: List[ActivityClient], timeout: float = 5.0):
        self.clients = clients
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CRMActivityLogger":
        settings = settings or get_settings()
        breaker_config = CircuitBreakerConfig(
            failure_threshold=settings.crm_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
        )
        return cls(
            clients=[
                SalesforceClient(
                    ServiceClient(
                        "Salesforce",
                        settings.salesforce_url,
                        timeout_seconds=settings.crm_timeout,
                        circuit_breaker_config=breaker_config,
                    )
                ),
                NetSuiteClient(
                    ServiceClient(
                        "NetSuite",
                        settings.netsuite_url,
                        timeout_seconds=settings.crm_timeout,
                        circuit_breaker_config=breaker_config,
                    )
                ),
            ],
            timeout=settings.activity_log_timeout,
        )

    async def log_collection_activity(
        self,
        external_id: Optional[str],
        invoice_number: str,
        strategy: str,
        description: str,
    ) -> Dict[str, bool]:
        """
        Log a collection activity in every system.

        Args:
            external_id: Customer's CRM/ERP account id; nothing is logged without it
            invoice_number: Invoice the activity concerns
            strategy: Collection strategy that was executed
            description: Activity outcome description

        Returns:
            Per-system success flags
        """
        if not external_id:
            logger.info(
                "Skipping activity logging, customer has no external id",
                invoice_number=invoice_number,
            )
            return {}

        calls = [
            client.log_collection_activity(external_id, invoice_number, strategy, description)
            for client in self.clients
        ]

        try:
            outcomes = await asyncio.wait_for(
                asyncio.gather(*calls, return_exceptions=True), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Activity logging timed out",
                invoice_number=invoice_number,
                timeout=self.timeout,
            )
            return {client.name: False for client in self.clients}

        results = {}
        for client, outcome in zip(self.clients, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(
                    "Failed to log collection activity",
                    system=client.name,
                    invoice_number=invoice_number,
                    error=str(outcome),
                )
                results[client.name] = False
            else:
                results[client.name] = True

        logger.info("Collection activity logged", invoice_number=invoice_number, results=results)
        return results

    async def close(self) -> None:
        for client in self.clients:
            await client.close()
