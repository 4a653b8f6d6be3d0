"""
Approval workflow API endpoints for reviewer decisions and execution.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query

from collection_decisioning.core.dependencies import get_approval_service
from collection_decisioning.models.approval import ApprovalAnalytics, ApprovalResult
from collection_decisioning.schemas.approval import (
    ApprovalRequest,
    ApprovalResponse,
    AuditLogResponse,
    CustomerResponseRequest,
)
from collection_decisioning.schemas.recommendation import ErrorResponse
from collection_decisioning.services.approval_service import ApprovalService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/collections/approvals", tags=["approval"])

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Recommendation or approval not found"},
    409: {"model": ErrorResponse, "description": "Action not allowed in the current state"},
}


def _to_response(result: ApprovalResult) -> ApprovalResponse:
    return ApprovalResponse(
        approval=result.approval,
        status=result.status,
        executed=result.executed,
        execution_error=result.execution_error,
    )


@router.post(
    "",
    response_model=ApprovalResponse,
    status_code=201,
    responses={**ERROR_RESPONSES, 422: {"model": ErrorResponse, "description": "Invalid request"}},
    summary="Approve, reject or modify a recommendation",
)
async def create_approval(
    request: ApprovalRequest,
    approval_service: ApprovalService = Depends(get_approval_service),
) -> ApprovalResponse:
    """
    Record a reviewer's decision on a pending recommendation.

    With ``execute_immediately`` an approved or modified recommendation is
    sent right away. A failed send still returns 201: the approval stands and
    its outcome is ``failed``.
    """
    result = await approval_service.create_approval(
        recommendation_id=request.recommendation_id,
        user_id=request.user_id,
        action=request.action,
        modified_content=request.modified_content,
        execute_immediately=request.execute_immediately,
    )
    return _to_response(result)


@router.post(
    "/{approval_id}/execute",
    response_model=ApprovalResponse,
    responses=ERROR_RESPONSES,
    summary="Execute an approved recommendation",
)
async def execute_approval(
    approval_id: str,
    approval_service: ApprovalService = Depends(get_approval_service),
) -> ApprovalResponse:
    result = await approval_service.execute_approval(approval_id)
    return _to_response(result)


@router.post(
    "/{approval_id}/customer-response",
    response_model=ApprovalResponse,
    responses=ERROR_RESPONSES,
    summary="Record a customer response to a sent action",
)
async def record_customer_response(
    approval_id: str,
    request: CustomerResponseRequest,
    approval_service: ApprovalService = Depends(get_approval_service),
) -> ApprovalResponse:
    approval = await approval_service.record_customer_response(approval_id, user_id=request.user_id)
    tracked = approval_service.get_recommendation(approval.recommendation_id)
    return ApprovalResponse(approval=approval, status=tracked.status, executed=True)


@router.get(
    "/analytics",
    response_model=ApprovalAnalytics,
    summary="Approval statistics",
)
async def get_approval_analytics(
    days: int = Query(default=30, ge=1, le=365, description="Look-back window in days"),
    approval_service: ApprovalService = Depends(get_approval_service),
) -> ApprovalAnalytics:
    return approval_service.get_approval_analytics(days)


@router.get(
    "/audit-logs",
    response_model=AuditLogResponse,
    summary="Approval audit trail",
)
async def get_audit_logs(
    recommendation_id: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    approval_service: ApprovalService = Depends(get_approval_service),
) -> AuditLogResponse:
    logs = approval_service.get_audit_logs(recommendation_id=recommendation_id, limit=limit)
    return AuditLogResponse(audit_logs=logs, total_count=len(logs))
