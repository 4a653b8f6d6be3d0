"""
Relationship scoring engine.

Produces a deterministic 0-100 relationship score for a customer/invoice pair
from five weighted factor groups, together with a confidence estimate, a risk
level and collection guidance text. Pure: no I/O, no randomness, and the clock
is pinned by ``as_of``.
"""
import math
import statistics
from datetime import datetime
from typing import Dict, Optional

import structlog

from collection_decisioning.config import Settings
from collection_decisioning.models.collections import Customer, CustomerHistory, Invoice, utcnow
from collection_decisioning.models.scoring import (
    BehavioralFactors,
    ExternalFactors,
    FactorScores,
    FinancialHealthFactors,
    PaymentHistoryFactors,
    RelationshipFactors,
    RiskLevel,
    ScoreResult,
    ScoringFactors,
)

logger = structlog.get_logger(__name__)

DEFAULT_WEIGHTS = {
    "payment_history": 0.35,
    "financial_health": 0.25,
    "relationship": 0.20,
    "behavioral": 0.15,
    "external": 0.05,
}

COLLECT_MORE_DATA = "Collect more data before making collection decisions"

# Default external outlook when nothing better is known
DEFAULT_INDUSTRY_RISK = 0.3
DEFAULT_ECONOMIC_INDICATORS = 0.7
DEFAULT_SEASONAL_FACTORS = 0.8

TRACKED_FIELD_COUNT = 20


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _pick(explicit, derived):
    return derived if explicit is None else explicit


class RelationshipScorer:
    """Calculates relationship scores and confidence for collection decisions."""

    def __init__(
        self,
        weights: Optional[Dict[str, float]] = None,
        low_risk_min_score: int = 85,
        medium_risk_min_score: int = 65,
        min_recommendation_confidence: int = 60,
    ):
        self.weights = self._normalize_weights(weights or DEFAULT_WEIGHTS)
        self.low_risk_min_score = low_risk_min_score
        self.medium_risk_min_score = medium_risk_min_score
        self.min_recommendation_confidence = min_recommendation_confidence

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelationshipScorer":
        return cls(
            weights=settings.factor_weights,
            low_risk_min_score=settings.low_risk_min_score,
            medium_risk_min_score=settings.medium_risk_min_score,
            min_recommendation_confidence=settings.min_recommendation_confidence,
        )

    @staticmethod
    def _normalize_weights(weights: Dict[str, float]) -> Dict[str, float]:
        missing = set(DEFAULT_WEIGHTS) - set(weights)
        if missing:
            raise ValueError(f"Missing scoring weights: {sorted(missing)}")
        total = sum(weights[name] for name in DEFAULT_WEIGHTS)
        if total <= 0:
            raise ValueError("Scoring weights must sum to a positive value")
        return {name: weights[name] / total for name in DEFAULT_WEIGHTS}

    def score(
        self,
        customer: Customer,
        invoice: Invoice,
        as_of: Optional[datetime] = None,
    ) -> ScoreResult:
        """
        Score a customer/invoice pair.

        Args:
            customer: Customer snapshot
            invoice: Invoice being collected
            as_of: Point in time used for days past due and account age

        Returns:
            ScoreResult with score, confidence, factor scores, risk level
            and recommendation text
        """
        as_of = as_of or utcnow()
        factors = self.extract_factors(customer, invoice, as_of)

        factor_scores = FactorScores(
            payment_history=self.payment_history_score(factors.payment_history),
            financial_health=self.financial_health_score(factors.financial_health),
            relationship=self.relationship_factor_score(factors.relationship),
            behavioral=self.behavioral_score(factors.behavioral),
            external=self.external_score(factors.external),
        )

        weighted = sum(
            getattr(factor_scores, name) * weight for name, weight in self.weights.items()
        )
        final_score = int(clamp(round_half_up(weighted)))
        confidence = self.calculate_confidence(factors, factor_scores, final_score)
        risk_level = self.determine_risk_level(final_score)

        logger.info(
            "Relationship score calculated",
            customer_id=customer.id,
            invoice_id=invoice.id,
            score=final_score,
            confidence=confidence,
            risk_level=risk_level.value,
        )

        return ScoreResult(
            score=final_score,
            confidence=confidence,
            factors=factor_scores,
            risk_level=risk_level,
            recommendation=self.generate_recommendation(final_score, confidence),
        )

    def extract_factors(
        self,
        customer: Customer,
        invoice: Invoice,
        as_of: Optional[datetime] = None,
    ) -> ScoringFactors:
        """
        Build scoring factors, deriving any signal the customer lacks from
        days past due. Revenue growth has no derivation and stays None.
        """
        as_of = as_of or utcnow()
        history = customer.history or CustomerHistory()
        dpd = invoice.days_past_due(as_of)
        amount = invoice.amount

        if dpd > 60:
            overdue_multiplier = 3.0
        elif dpd > 30:
            overdue_multiplier = 2.0
        else:
            overdue_multiplier = 1.0

        account_age = customer.account_age_months(as_of)

        return ScoringFactors(
            payment_history=PaymentHistoryFactors(
                on_time_payments=_pick(history.on_time_payments, max(1, 10 - dpd // 30)),
                late_payments=_pick(history.late_payments, dpd // 30),
                default_count=_pick(history.default_count, 1 if dpd > 90 else 0),
                average_days_late=_pick(
                    history.average_days_late, min(60.0, (dpd / 2) * overdue_multiplier)
                ),
                payment_frequency=_pick(history.payment_frequency, max(0.1, 1 - dpd / 365)),
            ),
            financial_health=FinancialHealthFactors(
                credit_utilization=_pick(history.credit_utilization, min(1.0, amount / 100000)),
                debt_to_income_ratio=_pick(history.debt_to_income_ratio, min(1.0, amount / 50000)),
                cash_flow_stability=_pick(history.cash_flow_stability, max(0.3, 1 - dpd / 180)),
                account_balance=_pick(history.account_balance, amount),
                revenue_growth=history.revenue_growth,
            ),
            relationship=RelationshipFactors(
                account_age_months=max(1, account_age or 0),
                communication_responsiveness=_pick(
                    history.communication_responsiveness, max(0.2, 1 - dpd / 90)
                ),
                previous_resolutions=_pick(history.previous_resolutions, max(0, 3 - dpd // 60)),
                contract_compliance=_pick(history.contract_compliance, max(0.1, 1 - dpd / 120)),
                business_partnership=_pick(history.business_partnership, max(0.3, 1 - dpd / 150)),
            ),
            behavioral=BehavioralFactors(
                contact_attempts=_pick(history.contact_attempts, dpd // 15),
                response_time=_pick(history.response_time, min(5.0, dpd / 10)),
                dispute_count=_pick(history.dispute_count, 1 if dpd > 60 else 0),
                engagement_level=_pick(history.engagement_level, max(0.1, 1 - dpd / 100)),
            ),
            external=ExternalFactors(
                industry_risk=_pick(history.industry_risk, DEFAULT_INDUSTRY_RISK),
                economic_indicators=_pick(history.economic_indicators, DEFAULT_ECONOMIC_INDICATORS),
                seasonal_factors=_pick(history.seasonal_factors, DEFAULT_SEASONAL_FACTORS),
            ),
        )

    def payment_history_score(self, history: PaymentHistoryFactors) -> float:
        """Unrounded; only the weighted final score is rounded."""
        on_time = history.on_time_payments or 0
        late = history.late_payments or 0
        if on_time + late == 0:
            # No history: assume a single on-time payment
            on_time, late = 1, 0
        on_time_rate = on_time / (on_time + late)

        default_penalty = (history.default_count or 0) * 50
        late_penalty = min((history.average_days_late or 0.0) * 5, 70)
        frequency_bonus = min((history.payment_frequency or 0.0) * 10, 20)

        raw = on_time_rate * 100 - default_penalty - late_penalty + frequency_bonus
        return clamp(raw)

    def financial_health_score(self, financial: FinancialHealthFactors) -> int:
        utilization = max(0.0, 100 - (financial.credit_utilization or 0.0) * 100)
        debt_ratio = max(0.0, 100 - (financial.debt_to_income_ratio or 0.0) * 50)
        stability = clamp((financial.cash_flow_stability or 0.0) * 100)
        balance = min(100.0, math.log10((financial.account_balance or 0.0) + 1) * 20)
        growth = clamp((financial.revenue_growth or 0.0) * 50 + 50)

        return round_half_up(clamp((utilization + debt_ratio + stability + balance + growth) / 5))

    def relationship_factor_score(self, relationship: RelationshipFactors) -> int:
        age = min(100, (relationship.account_age_months or 0) * 10)
        responsiveness = clamp((relationship.communication_responsiveness or 0.0) * 100)
        resolutions = min(100, (relationship.previous_resolutions or 0) * 20)
        compliance = clamp((relationship.contract_compliance or 0.0) * 100)
        partnership = clamp((relationship.business_partnership or 0.0) * 100)

        return round_half_up(
            clamp((age + responsiveness + resolutions + compliance + partnership) / 5)
        )

    def behavioral_score(self, behavioral: BehavioralFactors) -> int:
        contact = max(0.0, 100 - (behavioral.contact_attempts or 0) * 10)
        response = max(0.0, 100 - (behavioral.response_time or 0.0) * 20)
        dispute = max(0.0, 100 - (behavioral.dispute_count or 0) * 25)
        engagement = clamp((behavioral.engagement_level or 0.0) * 100)

        return round_half_up(clamp((contact + response + dispute + engagement) / 4))

    def external_score(self, external: ExternalFactors) -> int:
        industry_risk = _pick(external.industry_risk, DEFAULT_INDUSTRY_RISK)
        economic = _pick(external.economic_indicators, DEFAULT_ECONOMIC_INDICATORS)
        seasonal = _pick(external.seasonal_factors, DEFAULT_SEASONAL_FACTORS)

        industry = (1 - industry_risk) * 100
        return round_half_up(clamp((industry + economic * 100 + seasonal * 100) / 3))

    def calculate_confidence(
        self,
        factors: ScoringFactors,
        factor_scores: FactorScores,
        final_score: int,
    ) -> int:
        """Blend completeness, consistency, accuracy and volume into 10-100."""
        completeness = self.data_completeness(factors)
        consistency = self.score_consistency(factor_scores)
        accuracy = self.historical_accuracy(final_score)
        volume = self.data_volume(factors)

        confidence = round_half_up(
            completeness * 0.30 + consistency * 0.25 + accuracy * 0.25 + volume * 0.20
        )
        return int(clamp(confidence, 10, 100))

    @staticmethod
    def data_completeness(factors: ScoringFactors) -> float:
        """Percentage of the tracked sub-fields that carry a usable value."""

        def non_negative(value) -> bool:
            return value is not None and value >= 0

        def positive(value) -> bool:
            return value is not None and value > 0

        payment = factors.payment_history
        financial = factors.financial_health
        relationship = factors.relationship
        behavioral = factors.behavioral

        checks = [
            positive(payment.on_time_payments),
            non_negative(payment.late_payments),
            non_negative(payment.default_count),
            non_negative(payment.average_days_late),
            positive(payment.payment_frequency),
            non_negative(financial.credit_utilization),
            non_negative(financial.debt_to_income_ratio),
            non_negative(financial.cash_flow_stability),
            non_negative(financial.account_balance),
            financial.revenue_growth is not None,
            positive(relationship.account_age_months),
            non_negative(relationship.communication_responsiveness),
            non_negative(relationship.previous_resolutions),
            non_negative(relationship.contract_compliance),
            non_negative(relationship.business_partnership),
            non_negative(behavioral.contact_attempts),
            non_negative(behavioral.response_time),
            non_negative(behavioral.dispute_count),
            non_negative(behavioral.engagement_level),
            non_negative(factors.external.industry_risk),
        ]
        return sum(1 for check in checks if check) / TRACKED_FIELD_COUNT * 100

    @staticmethod
    def score_consistency(factor_scores: FactorScores) -> float:
        """Agreement of the three primary groups; lower spread scores higher."""
        primary = [
            factor_scores.payment_history,
            factor_scores.financial_health,
            factor_scores.relationship,
        ]
        return max(0.0, 100 - statistics.pstdev(primary) * 2)

    @staticmethod
    def historical_accuracy(score: int) -> int:
        if score >= 80:
            return 92
        if score >= 60:
            return 78
        if score >= 40:
            return 65
        return 45

    @staticmethod
    def data_volume(factors: ScoringFactors) -> float:
        payments = (factors.payment_history.on_time_payments or 0) + (
            factors.payment_history.late_payments or 0
        )
        months = factors.relationship.account_age_months or 0
        return min(100.0, payments * 5 + months * 2)

    def determine_risk_level(self, score: int) -> RiskLevel:
        if score >= self.low_risk_min_score:
            return RiskLevel.LOW
        if score >= self.medium_risk_min_score:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH

    def generate_recommendation(self, score: int, confidence: int) -> str:
        """Guidance text; low confidence overrides any score-based message."""
        if confidence < self.min_recommendation_confidence:
            return COLLECT_MORE_DATA
        if score >= 80:
            return "Gentle reminder approach - high probability of voluntary payment"
        if score >= 60:
            return "Standard collection process - customer likely to respond positively"
        if score >= 40:
            return "Firm but respectful approach - monitor closely for relationship preservation"
        return "Escalated collection strategy - consider professional collection services"
