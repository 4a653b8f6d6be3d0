"""
Approval and execution workflow for collection recommendations.
"""
from datetime import timedelta
from typing import Dict, List, Optional, Set

import structlog

from collection_decisioning.core.exceptions import (
    ExternalServiceError,
    InvalidApprovalRequestError,
    InvalidApprovalTransitionError,
    NotFoundError,
)
from collection_decisioning.core.logging import log_business_event
from collection_decisioning.models.approval import (
    ALLOWED_STATUS_TRANSITIONS,
    Approval,
    ApprovalAction,
    ApprovalAnalytics,
    ApprovalAuditLog,
    ApprovalOutcome,
    ApprovalResult,
    RecommendationStatus,
    TrackedRecommendation,
)
from collection_decisioning.models.collections import utcnow
from collection_decisioning.models.recommendation import CollectionRecommendation
from collection_decisioning.models.routing import RoutingContext
from collection_decisioning.services.activity_logging import CRMActivityLogger
from collection_decisioning.services.delivery import EmailDeliveryClient

logger = structlog.get_logger(__name__)

ACTION_STATUSES = {
    ApprovalAction.APPROVED: RecommendationStatus.APPROVED,
    ApprovalAction.REJECTED: RecommendationStatus.REJECTED,
    ApprovalAction.MODIFIED: RecommendationStatus.MODIFIED,
}

ACTIVITY_DESCRIPTION = "Email sent via Collection Decisioning Service"


class ApprovalService:
    """Service for managing recommendation approvals and their execution."""

    def __init__(
        self,
        delivery_client: EmailDeliveryClient,
        activity_logger: CRMActivityLogger,
    ):
        self.delivery_client = delivery_client
        self.activity_logger = activity_logger

        # In-memory storage; persistence belongs to the storage layer
        self._recommendations: Dict[str, TrackedRecommendation] = {}
        self._approvals: Dict[str, Approval] = {}
        self._approval_by_recommendation: Dict[str, str] = {}
        self._audit_logs: List[ApprovalAuditLog] = []
        self._executing: Set[str] = set()

    def register_recommendation(
        self, recommendation: CollectionRecommendation, context: RoutingContext
    ) -> TrackedRecommendation:
        """Register a freshly generated recommendation as pending."""
        if recommendation.id in self._recommendations:
            raise InvalidApprovalTransitionError(
                "Recommendation is already registered",
                recommendation_id=recommendation.id,
                current_status=self._recommendations[recommendation.id].status.value,
            )

        existing = self.find_pending_for_invoice(recommendation.invoice_id)
        if existing is not None:
            raise InvalidApprovalTransitionError(
                f"Invoice '{recommendation.invoice_id}' already has a pending recommendation",
                recommendation_id=existing.recommendation.id,
                current_status=existing.status.value,
            )

        tracked = TrackedRecommendation(recommendation=recommendation, context=context)
        self._recommendations[recommendation.id] = tracked

        self._audit(
            recommendation_id=recommendation.id,
            action="registered",
            performed_by="system",
            new_status=RecommendationStatus.PENDING,
            details={"model_used": recommendation.model_used, "fallback_used": recommendation.fallback_used},
        )
        logger.info(
            "Recommendation registered for approval",
            recommendation_id=recommendation.id,
            invoice_id=recommendation.invoice_id,
            approval_required=recommendation.approval_required,
        )
        return tracked

    async def create_approval(
        self,
        recommendation_id: str,
        user_id: str,
        action: ApprovalAction,
        modified_content: Optional[str] = None,
        execute_immediately: bool = False,
    ) -> ApprovalResult:
        """
        Record a human disposition on a pending recommendation.

        Args:
            recommendation_id: Recommendation being decided
            user_id: Reviewer making the decision
            action: approved, rejected or modified
            modified_content: Edited content, required for modified
            execute_immediately: Execute approved/modified recommendations now

        Returns:
            ApprovalResult with the approval and any execution outcome

        Raises:
            NotFoundError: If the recommendation is unknown
            InvalidApprovalTransitionError: If the recommendation is not pending
            InvalidApprovalRequestError: If modified content is missing
        """
        tracked = self._get_tracked(recommendation_id)

        if (
            tracked.status != RecommendationStatus.PENDING
            or recommendation_id in self._approval_by_recommendation
        ):
            raise InvalidApprovalTransitionError(
                f"Recommendation '{recommendation_id}' has already been decided",
                recommendation_id=recommendation_id,
                current_status=tracked.status.value,
            )

        if action == ApprovalAction.MODIFIED and not (modified_content or "").strip():
            raise InvalidApprovalRequestError(
                "Modified approvals require modified content",
                recommendation_id=recommendation_id,
            )

        approval = Approval(
            recommendation_id=recommendation_id,
            user_id=user_id,
            action=action,
            modified_content=modified_content if action == ApprovalAction.MODIFIED else None,
        )
        self._approvals[approval.id] = approval
        self._approval_by_recommendation[recommendation_id] = approval.id

        previous = tracked.status
        self._transition(tracked, ACTION_STATUSES[action])
        self._audit(
            recommendation_id=recommendation_id,
            approval_id=approval.id,
            action=action.value,
            performed_by=user_id,
            previous_status=previous,
            new_status=tracked.status,
        )

        logger.info(
            "Approval created",
            approval_id=approval.id,
            recommendation_id=recommendation_id,
            action=action.value,
            user_id=user_id,
        )
        log_business_event(
            "recommendation_approval",
            approval_id=approval.id,
            recommendation_id=recommendation_id,
            action=action.value,
            user_id=user_id,
        )

        if execute_immediately and action != ApprovalAction.REJECTED:
            return await self._execute(approval, tracked)

        return ApprovalResult(approval=approval.model_copy(), status=tracked.status)

    async def execute_approval(self, approval_id: str) -> ApprovalResult:
        """
        Execute an approved or modified recommendation.

        Failed attempts may be retried; a rejected or already-sent approval
        cannot be executed.

        Raises:
            NotFoundError: If the approval is unknown
            InvalidApprovalTransitionError: If the approval cannot be executed
        """
        approval = self._get_approval(approval_id)
        tracked = self._get_tracked(approval.recommendation_id)

        if not approval.is_executable:
            raise InvalidApprovalTransitionError(
                "Rejected approvals cannot be executed",
                recommendation_id=approval.recommendation_id,
                approval_id=approval_id,
                current_status=tracked.status.value,
            )

        if approval.outcome in (ApprovalOutcome.SENT, ApprovalOutcome.CUSTOMER_RESPONDED):
            raise InvalidApprovalTransitionError(
                "Approval has already been executed",
                recommendation_id=approval.recommendation_id,
                approval_id=approval_id,
                current_status=tracked.status.value,
            )

        return await self._execute(approval, tracked)

    async def record_customer_response(self, approval_id: str, user_id: str = "system") -> Approval:
        """Mark a sent collection action as answered by the customer."""
        approval = self._get_approval(approval_id)

        if approval.outcome != ApprovalOutcome.SENT:
            raise InvalidApprovalTransitionError(
                "Customer responses can only be recorded for sent actions",
                recommendation_id=approval.recommendation_id,
                approval_id=approval_id,
                current_status=approval.outcome.value if approval.outcome else None,
            )

        approval.outcome = ApprovalOutcome.CUSTOMER_RESPONDED
        self._audit(
            recommendation_id=approval.recommendation_id,
            approval_id=approval_id,
            action="customer_responded",
            performed_by=user_id,
            outcome=approval.outcome.value,
        )
        log_business_event(
            "customer_responded",
            approval_id=approval_id,
            recommendation_id=approval.recommendation_id,
        )
        return approval.model_copy()

    async def _execute(self, approval: Approval, tracked: TrackedRecommendation) -> ApprovalResult:
        if approval.id in self._executing:
            raise InvalidApprovalTransitionError(
                "Approval is already being executed",
                recommendation_id=approval.recommendation_id,
                approval_id=approval.id,
                current_status=tracked.status.value,
            )

        self._executing.add(approval.id)
        try:
            return await self._send(approval, tracked)
        finally:
            self._executing.discard(approval.id)

    async def _send(self, approval: Approval, tracked: TrackedRecommendation) -> ApprovalResult:
        recommendation = tracked.recommendation
        context = tracked.context
        subject, body = self._final_content(approval, tracked)

        try:
            await self.delivery_client.send_collection_email(
                recipient=context.customer.contact_email,
                subject=subject,
                body=body,
                customer_id=recommendation.customer_id,
                invoice_id=recommendation.invoice_id,
                recommendation_id=recommendation.id,
            )
        except ExternalServiceError as e:
            # The approval stands; only the outcome records the failure
            approval.outcome = ApprovalOutcome.FAILED
            approval.executed_at = utcnow()
            self._audit(
                recommendation_id=recommendation.id,
                approval_id=approval.id,
                action="execution_failed",
                performed_by="system",
                outcome=approval.outcome.value,
                details={"error": str(e)},
            )
            logger.error(
                "Collection action execution failed",
                approval_id=approval.id,
                recommendation_id=recommendation.id,
                error=str(e),
            )
            return ApprovalResult(
                approval=approval.model_copy(),
                status=tracked.status,
                executed=False,
                execution_error=str(e),
            )

        approval.outcome = ApprovalOutcome.SENT
        approval.executed_at = utcnow()
        previous = tracked.status
        self._transition(tracked, RecommendationStatus.EXECUTED)
        self._audit(
            recommendation_id=recommendation.id,
            approval_id=approval.id,
            action="executed",
            performed_by="system",
            previous_status=previous,
            new_status=tracked.status,
            outcome=approval.outcome.value,
        )
        log_business_event(
            "collection_action_executed",
            approval_id=approval.id,
            recommendation_id=recommendation.id,
            invoice_id=recommendation.invoice_id,
        )

        await self._log_activity(tracked)

        return ApprovalResult(approval=approval.model_copy(), status=tracked.status, executed=True)

    async def _log_activity(self, tracked: TrackedRecommendation) -> None:
        """Best-effort CRM/ERP logging; never affects the execution result."""
        try:
            await self.activity_logger.log_collection_activity(
                external_id=tracked.context.customer.external_id,
                invoice_number=tracked.context.invoice.invoice_number,
                strategy=tracked.recommendation.recommended_action,
                description=ACTIVITY_DESCRIPTION,
            )
        except Exception as e:
            logger.warning(
                "Failed to log collection activity",
                recommendation_id=tracked.recommendation.id,
                error=str(e),
            )

    @staticmethod
    def _final_content(approval: Approval, tracked: TrackedRecommendation):
        recommendation = tracked.recommendation
        invoice_number = tracked.context.invoice.invoice_number
        draft = recommendation.draft_email

        subject = draft.subject if draft else f"Payment reminder for Invoice #{invoice_number}"
        if approval.modified_content:
            body = approval.modified_content
        elif draft:
            body = draft.body
        else:
            body = recommendation.reasoning
        return subject, body

    def _transition(self, tracked: TrackedRecommendation, new_status: RecommendationStatus) -> None:
        if new_status not in ALLOWED_STATUS_TRANSITIONS[tracked.status]:
            raise InvalidApprovalTransitionError(
                f"Cannot move recommendation from {tracked.status.value} to {new_status.value}",
                recommendation_id=tracked.recommendation.id,
                current_status=tracked.status.value,
            )
        tracked.status = new_status

    def _audit(
        self,
        recommendation_id: str,
        action: str,
        performed_by: str,
        approval_id: Optional[str] = None,
        previous_status: Optional[RecommendationStatus] = None,
        new_status: Optional[RecommendationStatus] = None,
        outcome: Optional[str] = None,
        details: Optional[Dict] = None,
    ) -> None:
        self._audit_logs.append(
            ApprovalAuditLog(
                recommendation_id=recommendation_id,
                approval_id=approval_id,
                action=action,
                performed_by=performed_by,
                previous_status=previous_status.value if previous_status else None,
                new_status=new_status.value if new_status else None,
                outcome=outcome,
                details=details or {},
            )
        )

    def _get_tracked(self, recommendation_id: str) -> TrackedRecommendation:
        tracked = self._recommendations.get(recommendation_id)
        if tracked is None:
            raise NotFoundError("Recommendation", recommendation_id)
        return tracked

    def _get_approval(self, approval_id: str) -> Approval:
        approval = self._approvals.get(approval_id)
        if approval is None:
            raise NotFoundError("Approval", approval_id)
        return approval

    def get_recommendation(self, recommendation_id: str) -> TrackedRecommendation:
        return self._get_tracked(recommendation_id)

    def get_approval(self, approval_id: str) -> Approval:
        return self._get_approval(approval_id).model_copy()

    def find_pending_for_invoice(self, invoice_id: str) -> Optional[TrackedRecommendation]:
        for tracked in self._recommendations.values():
            if (
                tracked.recommendation.invoice_id == invoice_id
                and tracked.status == RecommendationStatus.PENDING
            ):
                return tracked
        return None

    def get_pending_recommendations(self) -> List[CollectionRecommendation]:
        """Pending recommendations, oldest first."""
        pending = [
            tracked
            for tracked in self._recommendations.values()
            if tracked.status == RecommendationStatus.PENDING
        ]
        pending.sort(key=lambda tracked: tracked.registered_at)
        return [tracked.recommendation for tracked in pending]

    def get_audit_logs(
        self, recommendation_id: Optional[str] = None, limit: int = 100
    ) -> List[ApprovalAuditLog]:
        """Most recent audit entries first."""
        logs = self._audit_logs
        if recommendation_id:
            logs = [log for log in logs if log.recommendation_id == recommendation_id]
        return list(reversed(logs))[:limit]

    def get_approval_analytics(self, days: int = 30) -> ApprovalAnalytics:
        """Approval statistics for approvals made in the last ``days`` days."""
        threshold = utcnow() - timedelta(days=days)
        approvals = [a for a in self._approvals.values() if a.approved_at >= threshold]

        total = len(approvals)
        approved = sum(1 for a in approvals if a.action == ApprovalAction.APPROVED)
        rejected = sum(1 for a in approvals if a.action == ApprovalAction.REJECTED)
        modified = sum(1 for a in approvals if a.action == ApprovalAction.MODIFIED)
        executed = sum(1 for a in approvals if a.executed_at is not None)
        successful = sum(
            1
            for a in approvals
            if a.outcome in (ApprovalOutcome.SENT, ApprovalOutcome.CUSTOMER_RESPONDED)
        )
        failed = sum(1 for a in approvals if a.outcome == ApprovalOutcome.FAILED)
        responded = sum(1 for a in approvals if a.outcome == ApprovalOutcome.CUSTOMER_RESPONDED)

        def rate(numerator: int, denominator: int) -> float:
            return round(numerator / denominator * 100, 2) if denominator else 0.0

        return ApprovalAnalytics(
            period_days=days,
            total_approvals=total,
            approved=approved,
            rejected=rejected,
            modified=modified,
            executed=executed,
            successful_executions=successful,
            failed_executions=failed,
            customer_responses=responded,
            approval_rate=rate(approved, total),
            execution_rate=rate(executed, approved + modified),
            success_rate=rate(successful, executed),
        )
