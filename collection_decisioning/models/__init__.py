"""
Models package for the Collection Decisioning Service.
"""
from .approval import Approval, ApprovalAction, ApprovalOutcome, RecommendationStatus
from .collections import Customer, CustomerHistory, Invoice, InvoiceStatus
from .recommendation import CollectionRecommendation, DraftResponse, Timing, Tone
from .routing import ModelTier, ReviewLevel, RoutingContext, RoutingDecision
from .scoring import RiskLevel, ScoreResult, ScoringFactors

__all__ = [
    "Approval",
    "ApprovalAction",
    "ApprovalOutcome",
    "CollectionRecommendation",
    "Customer",
    "CustomerHistory",
    "DraftResponse",
    "Invoice",
    "InvoiceStatus",
    "ModelTier",
    "RecommendationStatus",
    "ReviewLevel",
    "RiskLevel",
    "RoutingContext",
    "RoutingDecision",
    "ScoreResult",
    "ScoringFactors",
    "Timing",
    "Tone",
]
