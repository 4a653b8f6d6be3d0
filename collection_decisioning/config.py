"""
Configuration and environment variables for the Collection Decisioning Service.

Every scoring weight, risk threshold and routing tier parameter can be
overridden from the environment (or a ``.env`` file) so the pipeline can be
recalibrated without code changes.
"""
from typing import Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Service Configuration
    app_name: str = "Collection Decisioning Service"
    version: str = "1.0.0"
    debug: bool = False

    # API Configuration
    api_prefix: str = "/api/v1"

    # Host and Port
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Scoring factor weights (normalised to sum to 1.0 by the scorer)
    weight_payment_history: float = 0.35
    weight_financial_health: float = 0.25
    weight_relationship: float = 0.20
    weight_behavioral: float = 0.15
    weight_external: float = 0.05

    # Risk level thresholds on the relationship score
    low_risk_min_score: int = 85
    medium_risk_min_score: int = 65

    # Confidence below this always yields the "collect more data" message
    min_recommendation_confidence: int = 60

    # Business impact relationship-risk thresholds (distinct from risk levels)
    relationship_risk_low_min_score: int = 70
    relationship_risk_medium_min_score: int = 50

    # Routing gates: SENSITIVE
    sensitive_account_value: float = 100000.0
    sensitive_days_past_due: int = 90
    sensitive_relationship_score: int = 40

    # Routing gates: STRATEGIC
    strategic_account_value: float = 25000.0
    strategic_invoice_amount: float = 10000.0
    strategic_relationship_score: int = 65
    strategic_min_confidence: int = 70

    # Escalation trigger for high-value accounts
    escalation_account_value: float = 50000.0

    # Tier table: drafting model, cost per request and review time (minutes)
    routine_model: str = "gpt-4o-mini"
    routine_cost: float = 0.001
    routine_review_minutes: float = 0.5

    strategic_model: str = "claude-3-5-sonnet"
    strategic_cost: float = 0.05
    strategic_review_minutes: float = 3.0

    sensitive_model: str = "claude-opus-4"
    sensitive_cost: float = 0.20
    sensitive_review_minutes: float = 20.0

    # LLM gateway (OpenAI-compatible endpoint, e.g. a LiteLLM proxy)
    llm_api_key: str = ""  # empty for gateways that do not check keys
    llm_base_url: Optional[str] = None
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1000
    llm_timeout: int = 30

    # Generation timeout applied to each capability call (seconds)
    generation_timeout: float = 45.0

    # Drafting capability circuit breaker
    llm_failure_threshold: int = 3
    circuit_breaker_timeout: int = 300  # 5 minutes

    # External Service URLs
    email_delivery_url: str = "http://localhost:8010"
    salesforce_url: str = "http://localhost:8011"
    netsuite_url: str = "http://localhost:8012"

    # External Service Timeouts (seconds)
    email_delivery_timeout: int = 30
    crm_timeout: int = 10
    activity_log_timeout: float = 5.0

    # External service circuit breakers
    email_delivery_failure_threshold: int = 3
    crm_failure_threshold: int = 5

    @field_validator(
        "weight_payment_history",
        "weight_financial_health",
        "weight_relationship",
        "weight_behavioral",
        "weight_external",
    )
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if v < 0.0:
            raise ValueError("Scoring weights must not be negative")
        return v

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("LLM temperature must be between 0.0 and 2.0")
        return v

    @property
    def factor_weights(self) -> Dict[str, float]:
        """Scoring weights keyed by factor group name."""
        return {
            "payment_history": self.weight_payment_history,
            "financial_health": self.weight_financial_health,
            "relationship": self.weight_relationship,
            "behavioral": self.weight_behavioral,
            "external": self.weight_external,
        }

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env file


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
