"""
Collection decisioning pipeline: score, route, generate, register.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from collection_decisioning.core.exceptions import InvalidApprovalTransitionError
from collection_decisioning.core.logging import correlation_context
from collection_decisioning.models.collections import Customer, Invoice, utcnow
from collection_decisioning.models.recommendation import CollectionRecommendation
from collection_decisioning.models.routing import RoutingContext, RoutingDecision
from collection_decisioning.models.scoring import ScoreResult
from collection_decisioning.services.approval_service import ApprovalService
from collection_decisioning.services.recommendation_service import RecommendationGenerator
from collection_decisioning.utils.model_routing import ModelRouter
from collection_decisioning.utils.relationship_scoring import RelationshipScorer

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RoutedInvoice:
    """Score, context and routing decision for one invoice."""

    score: ScoreResult
    context: RoutingContext
    decision: RoutingDecision


class CollectionPipeline:
    """Runs an invoice through scoring, routing and recommendation generation."""

    def __init__(
        self,
        scorer: RelationshipScorer,
        router: ModelRouter,
        generator: RecommendationGenerator,
        approval_service: ApprovalService,
    ):
        self.scorer = scorer
        self.router = router
        self.generator = generator
        self.approval_service = approval_service

    def score(
        self, customer: Customer, invoice: Invoice, as_of: Optional[datetime] = None
    ) -> ScoreResult:
        return self.scorer.score(customer, invoice, as_of=as_of)

    def route(
        self, customer: Customer, invoice: Invoice, as_of: Optional[datetime] = None
    ) -> RoutedInvoice:
        """Score the invoice and route it; the stored relationship score is ignored."""
        as_of = as_of or utcnow()
        score = self.scorer.score(customer, invoice, as_of=as_of)
        context = RoutingContext.from_score(customer, invoice, score, as_of=as_of)
        decision = self.router.route(context)
        return RoutedInvoice(score=score, context=context, decision=decision)

    async def recommend(
        self,
        customer: Customer,
        invoice: Invoice,
        as_of: Optional[datetime] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CollectionRecommendation:
        """
        Produce a pending recommendation for an invoice.

        Scoring or routing errors propagate before anything is generated or
        registered. Generation errors leave the invoice without a
        recommendation so it can be retried.

        Raises:
            InvalidApprovalTransitionError: If the invoice already has a
                pending recommendation
        """
        with correlation_context(invoice_id=invoice.id):
            existing = self.approval_service.find_pending_for_invoice(invoice.id)
            if existing is not None:
                raise InvalidApprovalTransitionError(
                    f"Invoice '{invoice.id}' already has a pending recommendation",
                    recommendation_id=existing.recommendation.id,
                    current_status=existing.status.value,
                )

            routed = self.route(customer, invoice, as_of=as_of)

            logger.info(
                "Generating collection recommendation",
                customer_id=customer.id,
                model_tier=routed.decision.model_tier.value,
                relationship_score=routed.score.score,
                confidence=routed.score.confidence,
            )

            recommendation = await self.generator.generate(
                routed.context, routed.decision, timeout=timeout, cancel_event=cancel_event
            )
            self.approval_service.register_recommendation(recommendation, routed.context)
            return recommendation
