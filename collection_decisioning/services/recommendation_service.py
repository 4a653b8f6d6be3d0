"""
Recommendation generator.

Calls the drafting capability bound to a routing decision's tier and turns the
draft into a CollectionRecommendation with business impact and escalation
triggers. Any failure of the bound capability (error, timeout, caller
cancellation, open circuit, unparseable output) falls back exactly once to the
ROUTINE capability. If the fallback fails too, GenerationFailedError is raised
and nothing is created.
"""
import asyncio
from typing import Dict, Optional, Set, Tuple

import structlog

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.core.exceptions import (
    AIServiceTimeoutError,
    GenerationCancelledError,
    GenerationFailedError,
    GenerationInProgressError,
)
from collection_decisioning.core.logging import log_business_event
from collection_decisioning.models.recommendation import (
    CollectionRecommendation,
    DraftResponse,
    Timing,
    Tone,
)
from collection_decisioning.models.routing import ModelTier, RoutingContext, RoutingDecision
from collection_decisioning.services.drafting import DraftingCapability
from collection_decisioning.utils.business_impact import BusinessImpactCalculator
from collection_decisioning.utils.escalation_triggers import (
    build_escalation_triggers,
    fallback_trigger,
)
from collection_decisioning.utils.prompt_templates import build_prompt

logger = structlog.get_logger(__name__)

# Applied when a draft omits tone/timing or uses a label we do not recognise
TIER_DEFAULTS: Dict[ModelTier, Tuple[Tone, Timing]] = {
    ModelTier.ROUTINE: (Tone.GENTLE, Timing.IMMEDIATE),
    ModelTier.STRATEGIC: (Tone.STANDARD, Timing.IMMEDIATE),
    ModelTier.SENSITIVE: (Tone.FIRM, Timing.ESCALATE),
}

FALLBACK_TIER = ModelTier.ROUTINE


class RecommendationGenerator:
    """Generates collection recommendations from routing decisions."""

    def __init__(
        self,
        capabilities: Dict[ModelTier, DraftingCapability],
        settings: Optional[Settings] = None,
        impact_calculator: Optional[BusinessImpactCalculator] = None,
    ):
        missing = [tier.value for tier in ModelTier if tier not in capabilities]
        if missing:
            raise ValueError(f"No drafting capability configured for tiers: {missing}")

        self.capabilities = capabilities
        self.settings = settings or get_settings()
        self.impact_calculator = impact_calculator or BusinessImpactCalculator(self.settings)
        self._in_flight: Set[str] = set()

    def is_generating(self, invoice_id: str) -> bool:
        return invoice_id in self._in_flight

    async def generate(
        self,
        context: RoutingContext,
        decision: RoutingDecision,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CollectionRecommendation:
        """
        Generate a recommendation for a routed context.

        Args:
            context: Routing context the decision was made for
            decision: Routing decision selecting the tier and prompt
            timeout: Per-call timeout in seconds (defaults to settings)
            cancel_event: Optional event; setting it aborts the current call

        Returns:
            CollectionRecommendation, possibly drafted by the fallback

        Raises:
            GenerationInProgressError: If the invoice already has a generation in flight
            GenerationFailedError: If both the bound capability and the fallback fail
        """
        invoice_id = context.invoice.id
        if invoice_id in self._in_flight:
            logger.warning("Generation already in progress", invoice_id=invoice_id)
            raise GenerationInProgressError(invoice_id)

        self._in_flight.add(invoice_id)
        try:
            return await self._generate(context, decision, timeout, cancel_event)
        finally:
            self._in_flight.discard(invoice_id)

    async def _generate(
        self,
        context: RoutingContext,
        decision: RoutingDecision,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> CollectionRecommendation:
        primary = self.capabilities[decision.model_tier]

        try:
            draft = await self._invoke(primary, decision.prompt_template, timeout, cancel_event)
        except Exception as primary_error:
            logger.warning(
                "Drafting capability failed, falling back",
                invoice_id=context.invoice.id,
                model_tier=decision.model_tier.value,
                model=primary.model,
                error_type=type(primary_error).__name__,
                error=str(primary_error),
            )
            failure = primary_error
        else:
            return self._build_recommendation(context, decision, draft, primary)

        fallback = self.capabilities[FALLBACK_TIER]
        try:
            draft = await self._invoke(
                fallback, build_prompt(FALLBACK_TIER, context), timeout, cancel_event
            )
        except Exception as fallback_error:
            logger.error(
                "Fallback drafting capability failed",
                invoice_id=context.invoice.id,
                primary_model=primary.model,
                fallback_model=fallback.model,
                error_type=type(fallback_error).__name__,
                error=str(fallback_error),
            )
            log_business_event(
                "recommendation_generation_failed",
                invoice_id=context.invoice.id,
                model_tier=decision.model_tier.value,
            )
            raise GenerationFailedError(
                invoice_id=context.invoice.id,
                primary_model=primary.model,
                fallback_model=fallback.model,
                primary_error=str(failure),
                fallback_error=str(fallback_error),
            ) from fallback_error

        return self._build_recommendation(
            context, decision, draft, fallback, original_model=primary.model
        )

    async def _invoke(
        self,
        capability: DraftingCapability,
        prompt: str,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> DraftResponse:
        """Run one drafting call bounded by a timeout and an optional cancel event."""
        timeout = self.settings.generation_timeout if timeout is None else timeout

        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelledError("Generation cancelled before drafting started")

        draft_task = asyncio.ensure_future(capability.draft(prompt))
        waiters = {draft_task}
        cancel_task = None
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            pending = [task for task in waiters if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if draft_task in done:
            return draft_task.result()
        if cancel_task is not None and cancel_task in done:
            raise GenerationCancelledError(f"Generation cancelled while drafting with {capability.model}")
        raise AIServiceTimeoutError(
            f"Drafting with {capability.model} exceeded {timeout} seconds"
        )

    def _build_recommendation(
        self,
        context: RoutingContext,
        decision: RoutingDecision,
        draft: DraftResponse,
        capability: DraftingCapability,
        original_model: Optional[str] = None,
    ) -> CollectionRecommendation:
        fallback_used = original_model is not None
        default_tone, default_timing = TIER_DEFAULTS[decision.model_tier]

        confidence = draft.confidence
        triggers = build_escalation_triggers(context, decision.model_tier, self.settings)
        estimated_cost = decision.estimated_cost
        if fallback_used:
            # A lower-capability draft never reports more confidence than the score
            confidence = min(confidence, context.confidence)
            triggers.append(
                fallback_trigger(decision.model_tier, original_model, capability.model)
            )
            estimated_cost = self.settings.routine_cost

        recommendation = CollectionRecommendation(
            customer_id=context.customer.id,
            invoice_id=context.invoice.id,
            model_used=capability.model,
            model_tier=decision.model_tier,
            confidence=confidence,
            recommended_action=draft.recommended_action,
            tone=draft.tone or default_tone,
            timing=draft.timing or default_timing,
            draft_email=draft.draft_email,
            reasoning=draft.reasoning or decision.reasoning,
            alternatives=draft.alternatives,
            business_impact=self.impact_calculator.calculate(context),
            approval_required=decision.approval_required,
            escalation_triggers=triggers,
            fallback_used=fallback_used,
            original_model=original_model,
            estimated_cost=estimated_cost,
        )

        logger.info(
            "Recommendation generated",
            recommendation_id=recommendation.id,
            invoice_id=recommendation.invoice_id,
            model_used=recommendation.model_used,
            model_tier=decision.model_tier.value,
            fallback_used=fallback_used,
            confidence=recommendation.confidence,
        )
        log_business_event(
            "recommendation_generated",
            recommendation_id=recommendation.id,
            customer_id=recommendation.customer_id,
            invoice_id=recommendation.invoice_id,
            model_tier=decision.model_tier.value,
            fallback_used=fallback_used,
        )
        return recommendation
