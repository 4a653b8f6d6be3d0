"""
Request and response schemas for scoring, routing and recommendation endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from collection_decisioning.models.collections import Customer, Invoice
from collection_decisioning.models.recommendation import CollectionRecommendation
from collection_decisioning.models.routing import RoutingDecision
from collection_decisioning.models.scoring import ScoreResult


class CollectionRequest(BaseModel):
    """Customer and invoice snapshots to decide on."""

    customer: Customer = Field(..., description="Customer snapshot")
    invoice: Invoice = Field(..., description="Invoice snapshot")
    as_of: Optional[datetime] = Field(
        default=None, description="Evaluation time (defaults to now)"
    )


class RecommendationRequest(CollectionRequest):
    """Collection request with an optional generation timeout."""

    timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Per-call drafting timeout"
    )


class ScoreResponse(BaseModel):
    """Relationship score for an invoice."""

    customer_id: str = Field(..., description="Customer identifier")
    invoice_id: str = Field(..., description="Invoice identifier")
    days_past_due: int = Field(..., description="Days past due at evaluation time")
    result: ScoreResult = Field(..., description="Score result")


class RouteResponse(BaseModel):
    """Score and routing decision for an invoice."""

    score: ScoreResult = Field(..., description="Score the routing was based on")
    decision: RoutingDecision = Field(..., description="Routing decision")


class RecommendationResponse(BaseModel):
    """A generated, pending recommendation."""

    recommendation: CollectionRecommendation = Field(..., description="Recommendation")
    summary: str = Field(..., description="One-line summary")


class PendingRecommendationsResponse(BaseModel):
    """Recommendations awaiting approval."""

    recommendations: List[CollectionRecommendation] = Field(
        ..., description="Pending recommendations, oldest first"
    )
    total_count: int = Field(..., description="Number of pending recommendations")


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: bool = Field(default=True, description="Always true for error responses")
    error_code: Optional[str] = Field(default=None, description="Error code for debugging")
    message: str = Field(..., description="Error message")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    context: Optional[Dict[str, Any]] = Field(default=None, description="Additional error details")
