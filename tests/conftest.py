"""
Pytest configuration and fixtures for the Collection Decisioning Service.
"""
import asyncio
import random
from datetime import datetime, timedelta
from typing import Callable, Generator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from collection_decisioning.config import Settings
from collection_decisioning.core.dependencies import get_approval_service, get_collection_pipeline
from collection_decisioning.main import app
from collection_decisioning.models.collections import Customer, Invoice
from collection_decisioning.models.recommendation import DraftResponse
from collection_decisioning.models.routing import ModelTier, RoutingContext
from collection_decisioning.services.approval_service import ApprovalService
from collection_decisioning.services.collection_pipeline import CollectionPipeline
from collection_decisioning.services.drafting import DraftingCapability
from collection_decisioning.services.recommendation_service import RecommendationGenerator
from collection_decisioning.utils.model_routing import ModelRouter
from collection_decisioning.utils.relationship_scoring import RelationshipScorer

AS_OF = datetime(2024, 6, 1, 12, 0, 0)


def build_draft(**overrides) -> DraftResponse:
    payload = {
        "recommendedAction": "send_payment_reminder",
        "confidence": 88,
        "tone": "gentle",
        "timing": "immediate",
        "draftEmail": {
            "subject": "Payment reminder for Invoice #INV-2024-001",
            "body": "Hi Acme team,\n\nA quick reminder that invoice INV-2024-001 is now due.",
        },
        "reasoning": "Good payment history suggests a gentle reminder is enough",
        "alternatives": [],
    }
    payload.update(overrides)
    return DraftResponse.model_validate(payload)


class StubDraftingCapability(DraftingCapability):
    """Drafting capability returning a canned draft, optionally slow or failing."""

    def __init__(
        self,
        tier: ModelTier,
        model: str,
        draft: Optional[DraftResponse] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        super().__init__(tier, model)
        self.draft_response = draft or build_draft()
        self.error = error
        self.delay = delay
        self.prompts = []

    async def draft(self, prompt: str) -> DraftResponse:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.draft_response


class SimulatedDraftingCapability(DraftingCapability):
    """Seeded stand-in for a real model: tier-shaped drafts with some jitter."""

    ACTIONS = {
        ModelTier.ROUTINE: ("send_payment_reminder", "gentle", 85),
        ModelTier.STRATEGIC: ("schedule_account_review_call", "standard", 80),
        ModelTier.SENSITIVE: ("executive_outreach", "firm", 75),
    }

    def __init__(self, tier: ModelTier, model: str, seed: int = 7):
        super().__init__(tier, model)
        self.random = random.Random(seed)

    async def draft(self, prompt: str) -> DraftResponse:
        action, tone, base_confidence = self.ACTIONS[self.tier]
        alternatives = []
        if self.tier != ModelTier.ROUTINE:
            alternatives = [
                {
                    "approach": "payment_plan",
                    "confidence": self.random.randint(60, 80),
                    "description": "Offer a short instalment plan",
                    "timeline": "2 weeks",
                }
            ]
        return build_draft(
            recommendedAction=action,
            tone=tone,
            confidence=base_confidence + self.random.randint(0, 10),
            alternatives=alternatives,
        )


@pytest.fixture
def as_of() -> datetime:
    """Fixed evaluation time so days past due never drifts."""
    return AS_OF


@pytest.fixture
def test_settings() -> Settings:
    """Settings with defaults only, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def make_customer() -> Callable[..., Customer]:
    def _make(**overrides) -> Customer:
        data = {
            "id": "cust_001",
            "name": "Acme Logistics",
            "external_id": "001ACME",
            "account_value": 20000.0,
            "health_score": 82.0,
            "payment_terms": "NET30",
            "support_ticket_count": 1,
            "contact_email": "ap@acme.example",
        }
        data.update(overrides)
        return Customer(**data)

    return _make


@pytest.fixture
def make_invoice(as_of) -> Callable[..., Invoice]:
    def _make(days_past_due: int = 0, amount: float = 5000.0, **overrides) -> Invoice:
        due_date = as_of - timedelta(days=days_past_due)
        data = {
            "id": "inv_001",
            "invoice_number": "INV-2024-001",
            "amount": amount,
            "issue_date": due_date - timedelta(days=30),
            "due_date": due_date,
        }
        data.update(overrides)
        return Invoice(**data)

    return _make


@pytest.fixture
def scorer(test_settings) -> RelationshipScorer:
    return RelationshipScorer.from_settings(test_settings)


@pytest.fixture
def router(test_settings) -> ModelRouter:
    return ModelRouter(test_settings)


@pytest.fixture
def make_context(scorer, as_of) -> Callable[[Customer, Invoice], RoutingContext]:
    """Build a routing context from a fresh score."""

    def _make(customer: Customer, invoice: Invoice) -> RoutingContext:
        result = scorer.score(customer, invoice, as_of=as_of)
        return RoutingContext.from_score(customer, invoice, result, as_of=as_of)

    return _make


@pytest.fixture
def routine_context(make_customer, make_invoice, make_context) -> RoutingContext:
    """Small, healthy account that routes to ROUTINE."""
    return make_context(make_customer(), make_invoice(days_past_due=0, amount=5000.0))


@pytest.fixture
def strategic_context(make_customer, make_invoice, make_context) -> RoutingContext:
    """$45K account with a $15,750 invoice 12 days overdue."""
    return make_context(
        make_customer(id="cust_techflow", name="TechFlow Solutions", account_value=45000.0),
        make_invoice(days_past_due=12, amount=15750.0, id="inv_techflow"),
    )


@pytest.fixture
def sensitive_context(make_customer, make_invoice, make_context) -> RoutingContext:
    """$95K account with an invoice 127 days overdue."""
    return make_context(
        make_customer(id="cust_global", name="Global Manufacturing", account_value=95000.0),
        make_invoice(days_past_due=127, amount=28500.0, id="inv_global"),
    )


@pytest.fixture
def capabilities(test_settings):
    """One stub drafting capability per tier."""
    return {
        ModelTier.ROUTINE: StubDraftingCapability(ModelTier.ROUTINE, test_settings.routine_model),
        ModelTier.STRATEGIC: StubDraftingCapability(
            ModelTier.STRATEGIC,
            test_settings.strategic_model,
            draft=build_draft(recommendedAction="schedule_account_review_call", tone="standard"),
        ),
        ModelTier.SENSITIVE: StubDraftingCapability(
            ModelTier.SENSITIVE,
            test_settings.sensitive_model,
            draft=build_draft(recommendedAction="executive_outreach", tone="firm", timing="escalate"),
        ),
    }


@pytest.fixture
def generator(capabilities, test_settings) -> RecommendationGenerator:
    return RecommendationGenerator(capabilities, settings=test_settings)


@pytest.fixture
def mock_delivery_client():
    """Delivery client that accepts every email."""
    client = MagicMock()
    client.send_collection_email = AsyncMock(return_value={"id": "email_001", "status": "queued"})
    return client


@pytest.fixture
def mock_activity_logger():
    """Activity logger that reports success in every system."""
    activity_logger = MagicMock()
    activity_logger.log_collection_activity = AsyncMock(
        return_value={"salesforce": True, "netsuite": True}
    )
    return activity_logger


@pytest.fixture
def approval_service(mock_delivery_client, mock_activity_logger) -> ApprovalService:
    return ApprovalService(
        delivery_client=mock_delivery_client,
        activity_logger=mock_activity_logger,
    )


@pytest.fixture
def simulated_capabilities(test_settings):
    return {
        ModelTier.ROUTINE: SimulatedDraftingCapability(ModelTier.ROUTINE, test_settings.routine_model),
        ModelTier.STRATEGIC: SimulatedDraftingCapability(
            ModelTier.STRATEGIC, test_settings.strategic_model
        ),
        ModelTier.SENSITIVE: SimulatedDraftingCapability(
            ModelTier.SENSITIVE, test_settings.sensitive_model
        ),
    }


@pytest.fixture
def pipeline(scorer, router, generator, approval_service) -> CollectionPipeline:
    return CollectionPipeline(
        scorer=scorer,
        router=router,
        generator=generator,
        approval_service=approval_service,
    )


@pytest.fixture
def api_prefix(test_settings) -> str:
    """Get the API prefix from settings."""
    return test_settings.api_prefix


@pytest.fixture
def make_draft() -> Callable[..., DraftResponse]:
    """Factory for parsed drafts; keyword arguments override the camelCase payload."""
    return build_draft


@pytest.fixture
def client(pipeline, approval_service) -> Generator[TestClient, None, None]:
    """Test client wired to the stub pipeline and in-memory approval service."""
    app.dependency_overrides[get_collection_pipeline] = lambda: pipeline
    app.dependency_overrides[get_approval_service] = lambda: approval_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_headers() -> dict:
    """Sample request headers with correlation ID."""
    return {
        "X-Correlation-ID": "test-correlation-123",
        "Content-Type": "application/json",
    }


@pytest.fixture
def collection_payload(make_customer, make_invoice, as_of) -> Callable[..., dict]:
    """JSON body for the collection endpoints."""

    def _make(customer=None, invoice=None, **extra) -> dict:
        payload = {
            "customer": (customer or make_customer()).model_dump(mode="json"),
            "invoice": (invoice or make_invoice()).model_dump(mode="json"),
            "as_of": as_of.isoformat(),
        }
        payload.update(extra)
        return payload

    return _make
