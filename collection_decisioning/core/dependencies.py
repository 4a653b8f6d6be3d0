"""
Dependency injection for FastAPI application.

Provides factory functions for creating service instances with proper
dependency injection and configuration.
"""

from functools import lru_cache

from collection_decisioning.config import get_settings
from collection_decisioning.services.activity_logging import CRMActivityLogger
from collection_decisioning.services.approval_service import ApprovalService
from collection_decisioning.services.collection_pipeline import CollectionPipeline
from collection_decisioning.services.delivery import EmailDeliveryClient
from collection_decisioning.services.drafting import build_capability_registry
from collection_decisioning.services.recommendation_service import RecommendationGenerator
from collection_decisioning.utils.model_routing import ModelRouter
from collection_decisioning.utils.relationship_scoring import RelationshipScorer


@lru_cache()
def get_relationship_scorer() -> RelationshipScorer:
    """Get relationship scorer configured from settings."""
    return RelationshipScorer.from_settings(get_settings())


@lru_cache()
def get_model_router() -> ModelRouter:
    """Get model router configured from settings."""
    return ModelRouter(get_settings())


@lru_cache()
def get_recommendation_generator() -> RecommendationGenerator:
    """Get recommendation generator with one drafting capability per tier."""
    settings = get_settings()
    return RecommendationGenerator(build_capability_registry(settings), settings=settings)


@lru_cache()
def get_approval_service() -> ApprovalService:
    """Get approval service with delivery and activity logging clients."""
    settings = get_settings()
    return ApprovalService(
        delivery_client=EmailDeliveryClient.from_settings(settings),
        activity_logger=CRMActivityLogger.from_settings(settings),
    )


@lru_cache()
def get_collection_pipeline() -> CollectionPipeline:
    """Get the collection decisioning pipeline."""
    return CollectionPipeline(
        scorer=get_relationship_scorer(),
        router=get_model_router(),
        generator=get_recommendation_generator(),
        approval_service=get_approval_service(),
    )
