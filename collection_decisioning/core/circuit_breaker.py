"""
Circuit breakers for drafting capabilities and outbound HTTP integrations.

Each drafting tier, the email delivery service and each CRM/ERP system get
their own breaker, so one failing model or integration never blocks the
others.
"""
import asyncio
import functools
import math
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

import httpx
import structlog

from collection_decisioning.core.exceptions import ExternalServiceError, ServiceUnavailableError

logger = structlog.get_logger(__name__)

RESPONSE_TIME_WINDOW = 100


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Thresholds for one breaker. ``timeout`` is the open period in seconds."""

    failure_threshold: int = 5
    success_threshold: int = 3
    timeout: int = 60
    half_open_max_calls: int = 5


@dataclass
class CircuitBreakerMetrics:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    circuit_open_count: int = 0
    last_state_change: Optional[float] = None
    response_times: Deque[float] = field(
        default_factory=lambda: deque(maxlen=RESPONSE_TIME_WINDOW)
    )

    @property
    def failure_rate(self) -> float:
        return self.failed_calls / self.total_calls if self.total_calls else 0.0

    @property
    def average_response_time(self) -> float:
        if not self.response_times:
            return 0.0
        return sum(self.response_times) / len(self.response_times)

    def record(self, success: bool, response_time: float) -> None:
        self.total_calls += 1
        if success:
            self.successful_calls += 1
        else:
            self.failed_calls += 1
        self.response_times.append(response_time)


class CircuitBreaker:
    """
    Async circuit breaker.

    CLOSED counts consecutive failures and opens at ``failure_threshold``.
    OPEN rejects calls with ``ServiceUnavailableError`` until ``timeout``
    seconds have passed since the last failure, then lets a limited number of
    probe calls through in HALF_OPEN. ``success_threshold`` probe successes
    close the circuit; any probe failure reopens it.

    Cancelled calls are neither successes nor failures.
    """

    def __init__(
        self,
        service_name: str = "Unknown Service",
        config: Optional[CircuitBreakerConfig] = None,
    ):
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0
        self.last_failure_time: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()

    def __call__(self, func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.call_async(func, *args, **kwargs)

        return wrapper

    @property
    def is_available(self) -> bool:
        return self.state != CircuitState.OPEN

    def seconds_until_retry(self) -> Optional[int]:
        if self.state != CircuitState.OPEN or self.last_failure_time is None:
            return None
        remaining = self.config.timeout - (time.time() - self.last_failure_time)
        return max(0, math.ceil(remaining))

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Run ``func`` under the breaker.

        Raises:
            ServiceUnavailableError: If the circuit is open or the half-open
                probe limit is used up
        """
        self._admit()
        started = time.time()

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            if self.state == CircuitState.HALF_OPEN:
                self.half_open_calls = max(0, self.half_open_calls - 1)
            raise
        except Exception:
            self._record_failure(time.time() - started)
            raise

        self._record_success(time.time() - started)
        return result

    def _admit(self) -> None:
        if self.state == CircuitState.OPEN:
            retry_after = self.seconds_until_retry()
            if retry_after:
                logger.warning(
                    "Circuit open, rejecting call",
                    service=self.service_name,
                    failure_count=self.failure_count,
                    retry_after=retry_after,
                )
                raise ServiceUnavailableError(
                    self.service_name,
                    f"Circuit breaker is OPEN for {self.service_name}",
                    retry_after=retry_after,
                )
            self._set_state(CircuitState.HALF_OPEN)

        if self.state == CircuitState.HALF_OPEN:
            if self.half_open_calls >= self.config.half_open_max_calls:
                logger.warning(
                    "Circuit half-open probe limit reached",
                    service=self.service_name,
                    half_open_calls=self.half_open_calls,
                )
                raise ServiceUnavailableError(
                    self.service_name,
                    f"Circuit breaker half-open limit reached for {self.service_name}",
                )
            self.half_open_calls += 1

    def _record_success(self, response_time: float) -> None:
        self.metrics.record(True, response_time)

        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.success_threshold:
                self._set_state(CircuitState.CLOSED)
        else:
            self.failure_count = 0

    def _record_failure(self, response_time: float) -> None:
        self.metrics.record(False, response_time)
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN or (
            self.state == CircuitState.CLOSED
            and self.failure_count >= self.config.failure_threshold
        ):
            self._set_state(CircuitState.OPEN)

    def _set_state(self, new_state: CircuitState) -> None:
        previous = self.state
        self.state = new_state
        self.success_count = 0
        self.half_open_calls = 0
        self.metrics.last_state_change = time.time()

        if new_state == CircuitState.OPEN:
            self.metrics.circuit_open_count += 1
            logger.warning(
                "Circuit breaker opened",
                service=self.service_name,
                previous_state=previous.value,
                failure_count=self.failure_count,
                threshold=self.config.failure_threshold,
            )
        else:
            if new_state == CircuitState.CLOSED:
                self.failure_count = 0
            logger.info(
                "Circuit breaker state changed",
                service=self.service_name,
                previous_state=previous.value,
                new_state=new_state.value,
            )

    def get_status(self) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "state": self.state.value,
            "is_available": self.is_available,
            "failure_count": self.failure_count,
            "failure_threshold": self.config.failure_threshold,
            "retry_after_seconds": self.seconds_until_retry(),
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "successful_calls": self.metrics.successful_calls,
                "failed_calls": self.metrics.failed_calls,
                "failure_rate": round(self.metrics.failure_rate, 4),
                "average_response_time": round(self.metrics.average_response_time, 3),
                "circuit_open_count": self.metrics.circuit_open_count,
            },
        }

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.half_open_calls = 0
        self.last_failure_time = None
        self.metrics = CircuitBreakerMetrics()
        logger.info("Circuit breaker manually reset", service=self.service_name)


class ServiceClient:
    """
    JSON-over-HTTP client for delivery and CRM/ERP integrations.

    Every request goes through the client's own circuit breaker. Transport
    errors, non-2xx responses and open circuits all surface as
    ``ExternalServiceError`` so callers handle one exception type.
    """

    def __init__(
        self,
        service_name: str,
        base_url: str,
        timeout_seconds: float = 30,
        circuit_breaker_config: Optional[CircuitBreakerConfig] = None,
    ):
        self.service_name = service_name
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.circuit_breaker = CircuitBreaker(service_name, circuit_breaker_config)
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout_seconds)

    async def get(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        return await self.request("POST", endpoint, **kwargs)

    async def request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Send a request and decode the body.

        Non-JSON bodies come back as ``{"data": <text>, "status_code": <code>}``.

        Raises:
            ExternalServiceError: On HTTP or transport errors, or an open circuit
        """
        try:
            response = await self.circuit_breaker.call_async(self._send, method, endpoint, **kwargs)
        except ServiceUnavailableError as e:
            raise ExternalServiceError(
                service_name=self.service_name,
                message=f"Service unavailable: {e.detail}",
            ) from e

        try:
            return response.json()
        except ValueError:
            return {"data": response.text, "status_code": response.status_code}

    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        log = logger.bind(service_name=self.service_name, method=method, endpoint=endpoint)

        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            log.error("Request error in service call", error=str(e))
            raise ExternalServiceError(
                service_name=self.service_name,
                message=f"Request failed: {str(e)}",
            ) from e

        if response.is_error:
            log.error("HTTP error in service call", status_code=response.status_code)
            raise ExternalServiceError(
                service_name=self.service_name,
                message=f"HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    async def health_check(self) -> bool:
        try:
            await self.get("/health", timeout=5.0)
        except ExternalServiceError as e:
            logger.warning("Health check failed", service_name=self.service_name, error=str(e))
            return False
        return True

    def get_circuit_status(self) -> Dict[str, Any]:
        return self.circuit_breaker.get_status()

    async def close(self) -> None:
        await self.client.aclose()
