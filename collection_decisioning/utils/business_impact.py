"""
Business impact estimation for collection recommendations.

Relationship risk here uses its own thresholds (70/50 by default), separate
from the scoring risk levels (85/65). The two answer different questions:
relationship fragility versus overall collectability.
"""
from typing import Optional

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.models.recommendation import BusinessImpact
from collection_decisioning.models.routing import RoutingContext
from collection_decisioning.models.scoring import RiskLevel
from collection_decisioning.utils.relationship_scoring import round_half_up

CHURN_MULTIPLIERS = {
    RiskLevel.HIGH: 0.8,
    RiskLevel.MEDIUM: 0.3,
    RiskLevel.LOW: 0.1,
}

BASE_CHURN_PROBABILITY = {
    RiskLevel.HIGH: 0.4,
    RiskLevel.MEDIUM: 0.15,
    RiskLevel.LOW: 0.05,
}

MAX_CHURN_PROBABILITY = 0.85
MAX_TIME_MULTIPLIER = 2.0


class BusinessImpactCalculator:
    """Estimates revenue at risk, relationship risk and churn probability."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.low_risk_min_score = settings.relationship_risk_low_min_score
        self.medium_risk_min_score = settings.relationship_risk_medium_min_score

    def calculate(self, context: RoutingContext) -> BusinessImpact:
        immediate_risk = context.invoice.amount
        churn_exposure = context.customer.account_value * CHURN_MULTIPLIERS[context.risk_level]

        return BusinessImpact(
            revenue_at_risk=round_half_up(immediate_risk + churn_exposure),
            relationship_risk=self.relationship_risk(context.relationship_score),
            churn_probability=self.churn_probability(context.risk_level, context.days_past_due),
        )

    def relationship_risk(self, relationship_score: int) -> RiskLevel:
        if relationship_score >= self.low_risk_min_score:
            return RiskLevel.LOW
        if relationship_score >= self.medium_risk_min_score:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH

    @staticmethod
    def churn_probability(risk_level: RiskLevel, days_past_due: int) -> float:
        time_multiplier = min(MAX_TIME_MULTIPLIER, 1 + days_past_due / 180)
        probability = min(MAX_CHURN_PROBABILITY, BASE_CHURN_PROBABILITY[risk_level] * time_multiplier)
        return round_half_up(probability * 100) / 100
