"""
Drafting capabilities: one per routing tier.

Each capability wraps an OpenAI-compatible chat completion endpoint (a
LiteLLM-style gateway when ``llm_base_url`` is set) behind its own circuit
breaker, asks for a JSON object and parses it into a ``DraftResponse``.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import openai
import structlog
from pydantic import ValidationError

from collection_decisioning.config import Settings, get_settings
from collection_decisioning.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from collection_decisioning.core.exceptions import (
    AIServiceAuthenticationError,
    AIServiceError,
    AIServiceRateLimitError,
    AIServiceTimeoutError,
    DraftParseError,
)
from collection_decisioning.models.recommendation import DraftResponse
from collection_decisioning.models.routing import ModelTier

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an accounts receivable collections specialist. You recommend how to "
    "collect an overdue invoice while preserving the customer relationship. "
    "Always answer with a single JSON object and nothing else."
)


def parse_draft_response(content: Optional[str]) -> DraftResponse:
    """
    Parse raw capability output into a DraftResponse.

    Raises:
        DraftParseError: If the content is empty, not JSON, or misses required fields
    """
    if not content or not content.strip():
        raise DraftParseError("Empty drafting response", raw_content=content)

    text = content.strip()
    if text.startswith("```"):
        # Strip a markdown code fence around the JSON
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0].strip()

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise DraftParseError(f"Drafting response is not valid JSON: {e}", raw_content=content)

    if not isinstance(payload, dict):
        raise DraftParseError("Drafting response is not a JSON object", raw_content=content)

    try:
        return DraftResponse.model_validate(payload)
    except ValidationError as e:
        raise DraftParseError(
            f"Drafting response failed validation: {e.error_count()} errors",
            raw_content=content,
        )


class DraftingCapability(ABC):
    """A drafting model bound to one routing tier."""

    def __init__(self, tier: ModelTier, model: str):
        self.tier = tier
        self.model = model

    @abstractmethod
    async def draft(self, prompt: str) -> DraftResponse:
        """Draft a collection recommendation for the assembled prompt."""

    def get_status(self) -> Dict[str, Any]:
        return {"tier": self.tier.value, "model": self.model}


class OpenAIDraftingCapability(DraftingCapability):
    """Drafting capability backed by an OpenAI-compatible chat completion API."""

    def __init__(
        self,
        tier: ModelTier,
        model: str,
        client: openai.AsyncOpenAI,
        settings: Optional[Settings] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        super().__init__(tier, model)
        settings = settings or get_settings()
        self.client = client
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            service_name=f"drafting:{model}",
            config=CircuitBreakerConfig(
                failure_threshold=settings.llm_failure_threshold,
                timeout=settings.circuit_breaker_timeout,
            ),
        )

    async def draft(self, prompt: str) -> DraftResponse:
        """
        Draft a recommendation through the circuit breaker.

        Raises:
            ServiceUnavailableError: If the capability's circuit is open
            AIServiceError: If the completion call fails
            DraftParseError: If the output cannot be parsed
        """
        return await self.circuit_breaker.call_async(self._complete, prompt)

    async def _complete(self, prompt: str) -> DraftResponse:
        logger.info("Requesting draft", tier=self.tier.value, model=self.model)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as e:
            logger.error("Drafting rate limit exceeded", model=self.model, error=str(e))
            raise AIServiceRateLimitError(f"Rate limit exceeded: {str(e)}")
        except openai.APITimeoutError as e:
            logger.error("Drafting API timeout", model=self.model, error=str(e))
            raise AIServiceTimeoutError(f"API timeout: {str(e)}")
        except openai.AuthenticationError as e:
            logger.error("Drafting authentication failed", model=self.model, error=str(e))
            raise AIServiceAuthenticationError(f"Authentication failed: {str(e)}")
        except openai.APIError as e:
            logger.error("Drafting API error", model=self.model, error=str(e))
            raise AIServiceError(f"API error: {str(e)}")

        if not response.choices:
            raise DraftParseError("Drafting response contained no choices")

        draft = parse_draft_response(response.choices[0].message.content)

        logger.info(
            "Draft received",
            tier=self.tier.value,
            model=self.model,
            recommended_action=draft.recommended_action,
            confidence=draft.confidence,
            tokens_used=response.usage.total_tokens if response.usage else None,
        )
        return draft

    def get_status(self) -> Dict[str, Any]:
        status = super().get_status()
        status["circuit_breaker"] = self.circuit_breaker.get_status()
        return status


def build_capability_registry(
    settings: Optional[Settings] = None,
    client: Optional[openai.AsyncOpenAI] = None,
) -> Dict[ModelTier, DraftingCapability]:
    """One drafting capability per tier, sharing a single API client."""
    settings = settings or get_settings()
    client = client or openai.AsyncOpenAI(
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout,
        max_retries=0,
    )

    models = {
        ModelTier.ROUTINE: settings.routine_model,
        ModelTier.STRATEGIC: settings.strategic_model,
        ModelTier.SENSITIVE: settings.sensitive_model,
    }
    return {
        tier: OpenAIDraftingCapability(tier=tier, model=model, client=client, settings=settings)
        for tier, model in models.items()
    }
