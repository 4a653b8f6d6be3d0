"""
Escalation trigger lists attached to collection recommendations.

Each tier carries a fixed base list, with response windows tightening as tier
severity rises. High risk and high account value add conditional triggers.
"""
from typing import Dict, List, Optional

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.models.routing import ModelTier, RoutingContext
from collection_decisioning.models.scoring import RiskLevel

BASE_TRIGGERS: Dict[ModelTier, List[str]] = {
    ModelTier.ROUTINE: [
        "No response within 48 hours",
        "Payment not received within 7 days",
    ],
    ModelTier.STRATEGIC: [
        "No response within 24 hours",
        "Negative customer feedback",
        "Payment not received within 5 days",
    ],
    ModelTier.SENSITIVE: [
        "No response within 12 hours",
        "Any adverse customer communication",
        "Legal consultation required",
    ],
}

HIGH_RISK_TRIGGERS = [
    "Additional invoices become overdue",
    "Customer usage drops significantly",
]

HIGH_VALUE_TRIGGERS = [
    "Customer requests contract modifications",
    "Competitor engagement detected",
]

FALLBACK_TRIGGER = (
    "Drafted by fallback {fallback_model} instead of {original_model}; "
    "review against {tier} tier expectations"
)


def build_escalation_triggers(
    context: RoutingContext,
    tier: ModelTier,
    settings: Optional[Settings] = None,
) -> List[str]:
    """Tier base list plus the conditional triggers that apply."""
    settings = settings or get_settings()
    triggers = list(BASE_TRIGGERS[tier])

    if context.risk_level == RiskLevel.HIGH:
        triggers.extend(HIGH_RISK_TRIGGERS)

    if context.customer.account_value > settings.escalation_account_value:
        triggers.extend(HIGH_VALUE_TRIGGERS)

    return triggers


def fallback_trigger(tier: ModelTier, original_model: str, fallback_model: str) -> str:
    """Trigger noting that a lower-capability model produced the draft."""
    return FALLBACK_TRIGGER.format(
        fallback_model=fallback_model,
        original_model=original_model,
        tier=tier.value,
    )
