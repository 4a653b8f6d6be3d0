"""
Tests for circuit breaker implementation.
"""
import time

import httpx
import pytest

from collection_decisioning.core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    ServiceClient,
)
from collection_decisioning.core.exceptions import ExternalServiceError, ServiceUnavailableError


class TestCircuitBreakerConfig:
    """Test circuit breaker configuration."""

    def test_default_config(self):
        """Test default configuration values."""
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.success_threshold == 3
        assert config.timeout == 60
        assert config.half_open_max_calls == 5


class TestCircuitBreaker:
    """Test circuit breaker functionality."""

    @pytest.fixture
    def circuit_breaker(self):
        """Create a circuit breaker for testing."""
        config = CircuitBreakerConfig(
            failure_threshold=3,
            success_threshold=2,
            timeout=1,  # Short timeout for testing
        )
        return CircuitBreaker("Test Service", config)

    @pytest.fixture
    def failing_function(self):
        """Create a function that always fails."""
        async def fail_func():
            raise ExternalServiceError("Test Service", "Service unavailable")
        return fail_func

    @pytest.fixture
    def successful_function(self):
        """Create a function that always succeeds."""
        async def success_func():
            return {"data": "success"}
        return success_func

    @pytest.mark.asyncio
    async def test_initial_closed_state(self, circuit_breaker):
        """Test circuit breaker starts in closed state."""
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0
        assert circuit_breaker.get_status()["is_available"] is True

    @pytest.mark.asyncio
    async def test_successful_call_resets_failure_count(
        self, circuit_breaker, successful_function, failing_function
    ):
        """Test successful calls reset failure count."""
        for _ in range(2):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)
        assert circuit_breaker.failure_count == 2

        result = await circuit_breaker.call_async(successful_function)
        assert result == {"data": "success"}
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failure_threshold(self, circuit_breaker, failing_function):
        """Test circuit opens after failure threshold is reached."""
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        assert circuit_breaker.state == CircuitState.OPEN
        assert circuit_breaker.failure_count == 3

        # Next call should be rejected immediately
        with pytest.raises(ServiceUnavailableError):
            await circuit_breaker.call_async(failing_function)
        assert circuit_breaker.metrics.total_calls == 3

    @pytest.mark.asyncio
    async def test_circuit_closes_after_success_threshold(
        self, circuit_breaker, successful_function, failing_function
    ):
        """Test circuit half-opens after timeout and closes on successes."""
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        time.sleep(1.1)  # Slightly longer than configured timeout

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.HALF_OPEN

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_failure_in_half_open_reopens(
        self, circuit_breaker, successful_function, failing_function
    ):
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        time.sleep(1.1)

        await circuit_breaker.call_async(successful_function)
        assert circuit_breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(ExternalServiceError):
            await circuit_breaker.call_async(failing_function)
        assert circuit_breaker.state == CircuitState.OPEN
        assert circuit_breaker.metrics.circuit_open_count == 2

    @pytest.mark.asyncio
    async def test_decorator_usage(self, circuit_breaker):
        @circuit_breaker
        async def add(a, b):
            return a + b

        assert await add(2, 3) == 5
        assert circuit_breaker.metrics.successful_calls == 1

    @pytest.mark.asyncio
    async def test_reset(self, circuit_breaker, failing_function):
        for _ in range(3):
            with pytest.raises(ExternalServiceError):
                await circuit_breaker.call_async(failing_function)

        circuit_breaker.reset()

        assert circuit_breaker.state == CircuitState.CLOSED
        assert circuit_breaker.metrics.total_calls == 0


class TestServiceClient:
    """Test the circuit-breaker protected HTTP client."""

    def _client(self, handler, failure_threshold=5):
        client = ServiceClient(
            "CRM",
            "http://crm.test/",
            circuit_breaker_config=CircuitBreakerConfig(failure_threshold=failure_threshold),
        )
        client.client = httpx.AsyncClient(
            base_url="http://crm.test", transport=httpx.MockTransport(handler)
        )
        return client

    def test_trailing_slash_stripped(self):
        assert self._client(lambda request: httpx.Response(200)).base_url == "http://crm.test"

    @pytest.mark.asyncio
    async def test_json_response(self):
        client = self._client(lambda request: httpx.Response(200, json={"ok": True}))

        assert await client.get("/status") == {"ok": True}

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        client = self._client(lambda request: httpx.Response(200, text="pong"))

        assert await client.get("/ping") == {"data": "pong", "status_code": 200}

    @pytest.mark.asyncio
    async def test_http_error_mapped(self):
        client = self._client(lambda request: httpx.Response(404, text="missing"))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.post("/tasks", json={})

        assert exc_info.value.status_code == 404
        assert exc_info.value.service_name == "CRM"

    @pytest.mark.asyncio
    async def test_connection_error_mapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self._client(handler)

        with pytest.raises(ExternalServiceError, match="Request failed"):
            await client.get("/status")

    @pytest.mark.asyncio
    async def test_open_circuit_mapped(self):
        client = self._client(lambda request: httpx.Response(500), failure_threshold=1)

        with pytest.raises(ExternalServiceError):
            await client.get("/status")
        with pytest.raises(ExternalServiceError, match="Service unavailable"):
            await client.get("/status")

        assert client.get_circuit_status()["state"] == "open"

    @pytest.mark.asyncio
    async def test_health_check(self):
        healthy = self._client(lambda request: httpx.Response(200, json={"status": "ok"}))
        unhealthy = self._client(lambda request: httpx.Response(503))

        assert await healthy.health_check() is True
        assert await unhealthy.health_check() is False
