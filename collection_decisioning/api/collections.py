"""
Collection decisioning API endpoints: scoring, routing and recommendations.
"""
import structlog
from fastapi import APIRouter, Depends

from collection_decisioning.core.dependencies import get_approval_service, get_collection_pipeline
from collection_decisioning.models.collections import utcnow
from collection_decisioning.schemas.recommendation import (
    CollectionRequest,
    ErrorResponse,
    PendingRecommendationsResponse,
    RecommendationRequest,
    RecommendationResponse,
    RouteResponse,
    ScoreResponse,
)
from collection_decisioning.services.approval_service import ApprovalService
from collection_decisioning.services.collection_pipeline import CollectionPipeline

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/collections", tags=["collections"])


@router.post(
    "/score",
    response_model=ScoreResponse,
    summary="Score a customer/invoice pair",
)
async def score_invoice(
    request: CollectionRequest,
    pipeline: CollectionPipeline = Depends(get_collection_pipeline),
) -> ScoreResponse:
    """Compute the relationship score, confidence and risk level for an invoice."""
    as_of = request.as_of or utcnow()
    result = pipeline.score(request.customer, request.invoice, as_of=as_of)
    return ScoreResponse(
        customer_id=request.customer.id,
        invoice_id=request.invoice.id,
        days_past_due=request.invoice.days_past_due(as_of),
        result=result,
    )


@router.post(
    "/route",
    response_model=RouteResponse,
    summary="Score and route an invoice to a drafting tier",
)
async def route_invoice(
    request: CollectionRequest,
    pipeline: CollectionPipeline = Depends(get_collection_pipeline),
) -> RouteResponse:
    routed = pipeline.route(request.customer, request.invoice, as_of=request.as_of)
    return RouteResponse(score=routed.score, decision=routed.decision)


@router.post(
    "/recommendations",
    response_model=RecommendationResponse,
    status_code=201,
    responses={
        409: {"model": ErrorResponse, "description": "Generation in progress or a pending recommendation exists"},
        502: {"model": ErrorResponse, "description": "Drafting and fallback both failed"},
    },
    summary="Generate a collection recommendation",
)
async def create_recommendation(
    request: RecommendationRequest,
    pipeline: CollectionPipeline = Depends(get_collection_pipeline),
) -> RecommendationResponse:
    """
    Score, route and draft a recommendation, then queue it for approval.

    When drafting fails on both the bound capability and the fallback, no
    recommendation is created and the invoice can be retried.
    """
    recommendation = await pipeline.recommend(
        request.customer,
        request.invoice,
        as_of=request.as_of,
        timeout=request.timeout_seconds,
    )
    return RecommendationResponse(
        recommendation=recommendation,
        summary=recommendation.summary(),
    )


@router.get(
    "/recommendations/pending",
    response_model=PendingRecommendationsResponse,
    summary="List recommendations awaiting approval",
)
async def get_pending_recommendations(
    approval_service: ApprovalService = Depends(get_approval_service),
) -> PendingRecommendationsResponse:
    recommendations = approval_service.get_pending_recommendations()
    return PendingRecommendationsResponse(
        recommendations=recommendations,
        total_count=len(recommendations),
    )
