"""
Scoring factor and score result models.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    """Collectability risk derived from the relationship score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PaymentHistoryFactors(BaseModel):
    on_time_payments: Optional[int] = None
    late_payments: Optional[int] = None
    default_count: Optional[int] = None
    average_days_late: Optional[float] = None
    payment_frequency: Optional[float] = None


class FinancialHealthFactors(BaseModel):
    credit_utilization: Optional[float] = None
    debt_to_income_ratio: Optional[float] = None
    cash_flow_stability: Optional[float] = None
    account_balance: Optional[float] = None
    revenue_growth: Optional[float] = None


class RelationshipFactors(BaseModel):
    account_age_months: Optional[int] = None
    communication_responsiveness: Optional[float] = None
    previous_resolutions: Optional[int] = None
    contract_compliance: Optional[float] = None
    business_partnership: Optional[float] = None


class BehavioralFactors(BaseModel):
    contact_attempts: Optional[int] = None
    response_time: Optional[float] = None
    dispute_count: Optional[int] = None
    engagement_level: Optional[float] = None


class ExternalFactors(BaseModel):
    industry_risk: Optional[float] = None
    economic_indicators: Optional[float] = None
    seasonal_factors: Optional[float] = None


class ScoringFactors(BaseModel):
    """
    The five factor groups fed to the scorer.

    Built fresh on every scoring call and never persisted. A sub-field left as
    None counts against data completeness.
    """

    payment_history: PaymentHistoryFactors = Field(default_factory=PaymentHistoryFactors)
    financial_health: FinancialHealthFactors = Field(default_factory=FinancialHealthFactors)
    relationship: RelationshipFactors = Field(default_factory=RelationshipFactors)
    behavioral: BehavioralFactors = Field(default_factory=BehavioralFactors)
    external: ExternalFactors = Field(default_factory=ExternalFactors)


class FactorScores(BaseModel):
    """Per-group sub-scores, each 0-100."""

    payment_history: float = Field(..., ge=0, le=100)
    financial_health: int = Field(..., ge=0, le=100)
    relationship: int = Field(..., ge=0, le=100)
    behavioral: int = Field(..., ge=0, le=100)
    external: int = Field(..., ge=0, le=100)


class ScoreResult(BaseModel):
    """Output of the relationship scoring engine."""

    score: int = Field(..., ge=0, le=100, description="Relationship score")
    confidence: int = Field(..., ge=10, le=100, description="Confidence in the score")
    factors: FactorScores = Field(..., description="Per-factor sub-scores")
    risk_level: RiskLevel = Field(..., description="Risk level derived from the score")
    recommendation: str = Field(..., description="Collection guidance text")

    class Config:
        frozen = True
