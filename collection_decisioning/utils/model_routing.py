"""
Model routing engine.

Selects a drafting tier for a routing context with a two-gate rule evaluated
in order (SENSITIVE, then STRATEGIC, else ROUTINE) and binds the tier's fixed
capability, model, cost and review profile. Pure and deterministic.
"""
from typing import Dict, List, Optional

import structlog

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.models.routing import (
    TIER_CAPABILITIES,
    TIER_REVIEW_LEVELS,
    ModelTier,
    RoutingContext,
    RoutingDecision,
    TierProfile,
)
from collection_decisioning.models.scoring import RiskLevel
from collection_decisioning.utils.prompt_templates import build_prompt, format_currency

logger = structlog.get_logger(__name__)


def build_tier_table(settings: Settings) -> Dict[ModelTier, TierProfile]:
    """Tier lookup table: model, cost and review time come from settings."""
    rows = {
        ModelTier.ROUTINE: (
            settings.routine_model,
            settings.routine_cost,
            settings.routine_review_minutes,
        ),
        ModelTier.STRATEGIC: (
            settings.strategic_model,
            settings.strategic_cost,
            settings.strategic_review_minutes,
        ),
        ModelTier.SENSITIVE: (
            settings.sensitive_model,
            settings.sensitive_cost,
            settings.sensitive_review_minutes,
        ),
    }
    return {
        tier: TierProfile(
            tier=tier,
            capability=TIER_CAPABILITIES[tier],
            ai_model=model,
            estimated_cost=cost,
            review_level=TIER_REVIEW_LEVELS[tier],
            estimated_review_time=minutes,
        )
        for tier, (model, cost, minutes) in rows.items()
    }


class ModelRouter:
    """Routes collection contexts to drafting tiers."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.tier_table = build_tier_table(self.settings)

    def route(self, context: RoutingContext) -> RoutingDecision:
        """
        Select a tier and build the routing decision.

        Args:
            context: Routing context built from a fresh score

        Returns:
            RoutingDecision whose reasoning lists every matched condition
        """
        sensitive_reasons = self.sensitive_conditions(context)
        strategic_reasons = self.strategic_conditions(context)

        if sensitive_reasons:
            tier = ModelTier.SENSITIVE
            reasoning = "Executive review required: " + ", ".join(sensitive_reasons)
        elif strategic_reasons:
            tier = ModelTier.STRATEGIC
            reasoning = "Strategic analysis needed: " + ", ".join(strategic_reasons)
        else:
            tier = ModelTier.ROUTINE
            reasoning = (
                "Standard collection process: low-risk account with routine payment "
                f"issue ({context.days_past_due} days overdue)"
            )

        profile = self.tier_table[tier]
        decision = RoutingDecision(
            model_tier=tier,
            capability=profile.capability,
            ai_model=profile.ai_model,
            estimated_cost=profile.estimated_cost,
            review_level=profile.review_level,
            estimated_review_time=profile.estimated_review_time,
            reasoning=reasoning,
            prompt_template=build_prompt(tier, context),
        )

        logger.info(
            "Routing decision made",
            customer_id=context.customer.id,
            invoice_id=context.invoice.id,
            model_tier=tier.value,
            ai_model=profile.ai_model,
            review_level=profile.review_level.value,
            reasoning=reasoning,
        )
        return decision

    def sensitive_conditions(self, context: RoutingContext) -> List[str]:
        s = self.settings
        account_value = context.customer.account_value
        dpd = context.days_past_due

        reasons = []
        if account_value > s.sensitive_account_value:
            reasons.append(f"high-value account ({format_currency(account_value)})")
        if dpd > s.sensitive_days_past_due:
            reasons.append(f"severely overdue ({dpd} days)")
        if context.relationship_score < s.sensitive_relationship_score:
            reasons.append(f"damaged relationship (score: {context.relationship_score})")
        if context.risk_level == RiskLevel.HIGH:
            reasons.append("high churn risk")
        return reasons

    def strategic_conditions(self, context: RoutingContext) -> List[str]:
        s = self.settings
        account_value = context.customer.account_value
        amount = context.invoice.amount

        reasons = []
        if account_value > s.strategic_account_value:
            reasons.append(f"significant account ({format_currency(account_value)})")
        if amount > s.strategic_invoice_amount:
            reasons.append(f"large invoice ({format_currency(amount)})")
        if context.relationship_score < s.strategic_relationship_score:
            reasons.append(f"relationship concerns (score: {context.relationship_score})")
        if context.risk_level == RiskLevel.MEDIUM:
            reasons.append("moderate risk")
        if context.confidence < s.strategic_min_confidence:
            reasons.append(f"low scoring confidence ({context.confidence})")
        return reasons

    def get_tier_profile(self, tier: ModelTier) -> TierProfile:
        return self.tier_table[tier]
