"""
Approval workflow models: dispositions, execution outcomes and audit entries.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from collection_decisioning.models.collections import utcnow
from collection_decisioning.models.recommendation import CollectionRecommendation
from collection_decisioning.models.routing import RoutingContext


class ApprovalAction(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"


class ApprovalOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    CUSTOMER_RESPONDED = "customer_responded"


class RecommendationStatus(str, Enum):
    """
    Recommendation lifecycle.

    pending -> approved | rejected | modified; approved | modified -> executed.
    rejected and executed are terminal.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    EXECUTED = "executed"


ALLOWED_STATUS_TRANSITIONS = {
    RecommendationStatus.PENDING: {
        RecommendationStatus.APPROVED,
        RecommendationStatus.REJECTED,
        RecommendationStatus.MODIFIED,
    },
    RecommendationStatus.APPROVED: {RecommendationStatus.EXECUTED},
    RecommendationStatus.MODIFIED: {RecommendationStatus.EXECUTED},
    RecommendationStatus.REJECTED: set(),
    RecommendationStatus.EXECUTED: set(),
}


class Approval(BaseModel):
    """One human disposition on a recommendation."""

    id: str = Field(default_factory=lambda: f"appr_{uuid.uuid4().hex[:16]}")
    recommendation_id: str = Field(..., description="Recommendation being approved")
    user_id: str = Field(..., description="Reviewer who made the decision")
    action: ApprovalAction = Field(..., description="Disposition")
    modified_content: Optional[str] = Field(
        default=None, description="Reviewer-edited content for modified approvals"
    )
    approved_at: datetime = Field(default_factory=utcnow)
    executed_at: Optional[datetime] = Field(default=None, description="Last execution attempt")
    outcome: Optional[ApprovalOutcome] = Field(default=None, description="Execution outcome")

    @property
    def is_executable(self) -> bool:
        return self.action != ApprovalAction.REJECTED


class ApprovalAuditLog(BaseModel):
    """Audit entry for every approval workflow transition."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    recommendation_id: str = Field(..., description="Recommendation affected")
    approval_id: Optional[str] = Field(default=None, description="Approval affected")
    action: str = Field(..., description="Transition performed")
    performed_by: str = Field(..., description="User or system actor")
    previous_status: Optional[str] = Field(default=None)
    new_status: Optional[str] = Field(default=None)
    outcome: Optional[str] = Field(default=None)
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class ApprovalResult(BaseModel):
    """Result of creating (and optionally executing) an approval."""

    approval: Approval
    status: RecommendationStatus
    executed: bool = False
    execution_error: Optional[str] = None


class ApprovalAnalytics(BaseModel):
    """Aggregate approval statistics over a time window."""

    period_days: int
    total_approvals: int = 0
    approved: int = 0
    rejected: int = 0
    modified: int = 0
    executed: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    customer_responses: int = 0
    approval_rate: float = 0.0
    execution_rate: float = 0.0
    success_rate: float = 0.0


class TrackedRecommendation(BaseModel):
    """A registered recommendation with the context it was generated for."""

    recommendation: CollectionRecommendation
    context: RoutingContext
    status: RecommendationStatus = RecommendationStatus.PENDING
    registered_at: datetime = Field(default_factory=utcnow)
