"""
Request and response schemas for approval workflow API endpoints.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from collection_decisioning.models.approval import (
    Approval,
    ApprovalAction,
    ApprovalAuditLog,
    RecommendationStatus,
)


class ApprovalRequest(BaseModel):
    """Request schema for reviewer approval actions."""

    recommendation_id: str = Field(..., description="Recommendation being decided")
    user_id: str = Field(..., description="Reviewer performing the action")
    action: ApprovalAction = Field(..., description="approved, rejected or modified")
    modified_content: Optional[str] = Field(
        default=None, description="Edited content (required for modified)"
    )
    execute_immediately: bool = Field(
        default=False, description="Execute approved/modified actions right away"
    )


class ApprovalResponse(BaseModel):
    """Response schema for approval and execution actions."""

    approval: Approval = Field(..., description="Approval record")
    status: RecommendationStatus = Field(..., description="Recommendation status")
    executed: bool = Field(..., description="Whether the action was sent")
    execution_error: Optional[str] = Field(
        default=None, description="Why execution failed, when it did"
    )


class CustomerResponseRequest(BaseModel):
    """Request schema for recording a customer response."""

    user_id: str = Field(default="system", description="Who recorded the response")


class AuditLogResponse(BaseModel):
    """Response schema for audit log retrieval."""

    audit_logs: List[ApprovalAuditLog] = Field(..., description="Audit entries, newest first")
    total_count: int = Field(..., description="Number of entries returned")
