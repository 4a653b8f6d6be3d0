"""
Routing models: tiers, review levels, routing context and routing decisions.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from collection_decisioning.models.collections import Customer, Invoice, utcnow
from collection_decisioning.models.scoring import RiskLevel, ScoreResult


class ModelTier(str, Enum):
    """Drafting tiers, ordered by severity."""

    ROUTINE = "ROUTINE"
    STRATEGIC = "STRATEGIC"
    SENSITIVE = "SENSITIVE"

    @property
    def severity(self) -> int:
        return _TIER_SEVERITY[self]


_TIER_SEVERITY = {
    ModelTier.ROUTINE: 0,
    ModelTier.STRATEGIC: 1,
    ModelTier.SENSITIVE: 2,
}


class ReviewLevel(str, Enum):
    """Human review intensity required before execution."""

    QUICK_APPROVE = "quick_approve"
    STRATEGIC_REVIEW = "strategic_review"
    EXECUTIVE_REVIEW = "executive_review"


class CapabilityTag(str, Enum):
    """Drafting capability class bound to a tier."""

    LIGHTWEIGHT_FAST = "lightweight-fast"
    MID_CAPABILITY = "mid-capability"
    FRONTIER_CAPABILITY = "frontier-capability"


# Fixed: a tier always carries the same review level and capability class
TIER_REVIEW_LEVELS = {
    ModelTier.ROUTINE: ReviewLevel.QUICK_APPROVE,
    ModelTier.STRATEGIC: ReviewLevel.STRATEGIC_REVIEW,
    ModelTier.SENSITIVE: ReviewLevel.EXECUTIVE_REVIEW,
}

TIER_CAPABILITIES = {
    ModelTier.ROUTINE: CapabilityTag.LIGHTWEIGHT_FAST,
    ModelTier.STRATEGIC: CapabilityTag.MID_CAPABILITY,
    ModelTier.SENSITIVE: CapabilityTag.FRONTIER_CAPABILITY,
}


class TierProfile(BaseModel):
    """One row of the tier table."""

    tier: ModelTier
    capability: CapabilityTag
    ai_model: str
    estimated_cost: float = Field(..., ge=0)
    review_level: ReviewLevel
    estimated_review_time: float = Field(..., ge=0, description="Minutes")

    class Config:
        frozen = True


class RoutingContext(BaseModel):
    """
    Immutable bundle handed from scoring to routing and generation.

    ``relationship_score``, ``risk_level`` and ``confidence`` always come from
    a fresh ScoreResult; the customer's stored relationship score is never
    used here. ``as_of`` pins the clock so days past due is stable for the
    life of the context.
    """

    customer: Customer
    invoice: Invoice
    relationship_score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    confidence: int = Field(..., ge=0, le=100)
    as_of: datetime = Field(default_factory=utcnow)

    class Config:
        frozen = True

    @classmethod
    def from_score(
        cls,
        customer: Customer,
        invoice: Invoice,
        score_result: ScoreResult,
        as_of: Optional[datetime] = None,
    ) -> "RoutingContext":
        return cls(
            customer=customer,
            invoice=invoice,
            relationship_score=score_result.score,
            risk_level=score_result.risk_level,
            confidence=score_result.confidence,
            as_of=as_of or utcnow(),
        )

    @property
    def days_past_due(self) -> int:
        return self.invoice.days_past_due(self.as_of)


class RoutingDecision(BaseModel):
    """Tier selection plus everything needed to draft and review."""

    model_tier: ModelTier = Field(..., description="Selected tier")
    capability: CapabilityTag = Field(..., description="Capability class for the tier")
    ai_model: str = Field(..., description="Drafting model bound to the tier")
    estimated_cost: float = Field(..., ge=0, description="Estimated cost per request")
    review_level: ReviewLevel = Field(..., description="Required human review")
    estimated_review_time: float = Field(..., ge=0, description="Review time in minutes")
    reasoning: str = Field(..., description="Every condition that selected the tier")
    prompt_template: str = Field(..., description="Assembled drafting prompt")

    class Config:
        frozen = True
        protected_namespaces = ()

    @model_validator(mode="after")
    def validate_tier_profile(self) -> "RoutingDecision":
        expected_review = TIER_REVIEW_LEVELS[self.model_tier]
        if self.review_level != expected_review:
            raise ValueError(
                f"Tier {self.model_tier.value} requires review level "
                f"{expected_review.value}, got {self.review_level.value}"
            )
        if self.capability != TIER_CAPABILITIES[self.model_tier]:
            raise ValueError(
                f"Tier {self.model_tier.value} requires capability "
                f"{TIER_CAPABILITIES[self.model_tier].value}"
            )
        return self

    @property
    def approval_required(self) -> bool:
        return self.review_level != ReviewLevel.QUICK_APPROVE
