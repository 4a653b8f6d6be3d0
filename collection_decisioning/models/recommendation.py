"""
Collection recommendation models and the parsed drafting response.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from collection_decisioning.models.collections import utcnow
from collection_decisioning.models.routing import ModelTier
from collection_decisioning.models.scoring import RiskLevel


class Tone(str, Enum):
    GENTLE = "gentle"
    STANDARD = "standard"
    FIRM = "firm"
    URGENT = "urgent"


class Timing(str, Enum):
    IMMEDIATE = "immediate"
    TOMORROW = "tomorrow"
    NEXT_WEEK = "next-week"
    ESCALATE = "escalate"


TONE_SYNONYMS = {
    "friendly": Tone.GENTLE,
    "friendly_reminder": Tone.GENTLE,
    "soft": Tone.GENTLE,
    "polite": Tone.GENTLE,
    "professional": Tone.STANDARD,
    "neutral": Tone.STANDARD,
    "normal": Tone.STANDARD,
    "assertive": Tone.FIRM,
    "strict": Tone.FIRM,
    "escalated": Tone.URGENT,
    "final_notice": Tone.URGENT,
    "critical": Tone.URGENT,
}

TIMING_SYNONYMS = {
    "now": Timing.IMMEDIATE,
    "today": Timing.IMMEDIATE,
    "asap": Timing.IMMEDIATE,
    "next_day": Timing.TOMORROW,
    "next_week": Timing.NEXT_WEEK,
    "next week": Timing.NEXT_WEEK,
    "nextweek": Timing.NEXT_WEEK,
    "escalation": Timing.ESCALATE,
    "escalated": Timing.ESCALATE,
}


def normalize_tone(value: Any) -> Optional[Tone]:
    """Map a raw tone label to a Tone, or None when it is not recognised."""
    if isinstance(value, Tone):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace("-", "_")
    try:
        return Tone(key)
    except ValueError:
        return TONE_SYNONYMS.get(key)


def normalize_timing(value: Any) -> Optional[Timing]:
    """Map a raw timing label to a Timing, or None when it is not recognised."""
    if isinstance(value, Timing):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    try:
        return Timing(key.replace("_", "-"))
    except ValueError:
        return TIMING_SYNONYMS.get(key)


def new_recommendation_id() -> str:
    return f"rec_{uuid.uuid4().hex[:16]}"


class DraftEmail(BaseModel):
    subject: str = Field(..., description="Email subject line")
    body: str = Field(..., description="Email body")


class AlternativeAction(BaseModel):
    approach: str = Field(..., description="Alternative approach identifier")
    confidence: int = Field(..., ge=0, le=100, description="Success probability")
    description: str = Field(default="", description="What the approach involves")
    timeline: str = Field(default="", description="When it would happen")


class BusinessImpact(BaseModel):
    revenue_at_risk: int = Field(..., ge=0, description="Invoice amount plus expected churn exposure")
    relationship_risk: RiskLevel = Field(..., description="Relationship fragility")
    churn_probability: float = Field(..., ge=0, le=1, description="Likelihood of churn")


class DraftResponse(BaseModel):
    """
    Structured output returned by a drafting capability.

    Accepts the camelCase keys the drafting prompts ask for. Tone and timing
    synonyms are normalised; unrecognised values become None so the caller can
    apply the tier's default.
    """

    recommended_action: str = Field(..., alias="recommendedAction", min_length=1)
    confidence: int = Field(..., ge=0, le=100)
    tone: Optional[Tone] = None
    timing: Optional[Timing] = None
    draft_email: Optional[DraftEmail] = Field(default=None, alias="draftEmail")
    reasoning: str = Field(default="")
    alternatives: List[AlternativeAction] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Any:
        fractional = isinstance(v, float)
        if isinstance(v, str):
            v = v.strip().rstrip("%")
            fractional = "." in v
        try:
            value = float(v)
        except (TypeError, ValueError):
            return v
        # Some models answer on a 0-1 scale
        if fractional and 0 < value <= 1:
            value *= 100
        return int(round(max(0.0, min(100.0, value))))

    @field_validator("tone", mode="before")
    @classmethod
    def coerce_tone(cls, v: Any) -> Optional[Tone]:
        return normalize_tone(v)

    @field_validator("timing", mode="before")
    @classmethod
    def coerce_timing(cls, v: Any) -> Optional[Timing]:
        return normalize_timing(v)

    @field_validator("alternatives", mode="before")
    @classmethod
    def coerce_alternatives(cls, v: Any) -> Any:
        return v or []


class CollectionRecommendation(BaseModel):
    """
    A drafted collection decision awaiting human approval.

    Immutable once created; its approval status is tracked separately by the
    approval service.
    """

    id: str = Field(default_factory=new_recommendation_id, description="Recommendation ID")
    customer_id: str = Field(..., description="Customer the recommendation targets")
    invoice_id: str = Field(..., description="Invoice the recommendation targets")
    model_used: str = Field(..., description="Model that produced the draft")
    model_tier: ModelTier = Field(..., description="Tier selected by routing")
    confidence: int = Field(..., ge=0, le=100, description="Draft confidence")
    recommended_action: str = Field(..., description="Recommended collection action")
    tone: Tone = Field(..., description="Communication tone")
    timing: Timing = Field(..., description="When to act")
    draft_email: Optional[DraftEmail] = Field(default=None, description="Draft email")
    reasoning: str = Field(..., description="Why this action was recommended")
    alternatives: List[AlternativeAction] = Field(default_factory=list)
    business_impact: BusinessImpact = Field(..., description="Revenue and churn exposure")
    approval_required: bool = Field(..., description="Whether review is required before sending")
    escalation_triggers: List[str] = Field(default_factory=list)
    fallback_used: bool = Field(default=False, description="Drafted by the ROUTINE fallback")
    original_model: Optional[str] = Field(
        default=None, description="Model the tier called for, when fallback fired"
    )
    estimated_cost: float = Field(default=0.0, ge=0, description="Estimated drafting cost")
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        frozen = True
        protected_namespaces = ()

    def summary(self) -> str:
        """One-line human summary of the recommendation."""
        action = self.recommended_action.replace("_", " ")
        risk = self.business_impact.relationship_risk.value
        return (
            f"{self.tone.value.upper()} {action} "
            f"({self.confidence}% confidence, {risk} relationship risk)"
        )
