"""Client for the remote orchestrator service.

Unrelated to the search core: a health-checked HTTP client whose calls are
each bounded by a timeout. Timeouts surface as OrchestratorTimeoutError and
are not retried.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from .config import OrchestratorConfig
from .error_handling import (
    ErrorEvent, ErrorSeverity, OrchestratorTimeoutError,
    OrchestratorUnavailableError, ServiceHealth
)


class OrchestratorClient:
    """Async client for the orchestrator's /pantheon endpoints."""

    def __init__(self,
                 config: Optional[OrchestratorConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or OrchestratorConfig()
        self.health = ServiceHealth(name="orchestrator")
        self._client = httpx.AsyncClient(
            base_url=self.config.url,
            timeout=self.config.timeout_s,
            transport=transport,
            headers={'Content-Type': 'application/json'}
        )

    @property
    def available(self) -> bool:
        return self.health.is_available

    async def close(self) -> None:
        await self._client.aclose()

    async def check_health(self) -> bool:
        """Probe the status endpoint and cache availability."""
        try:
            response = await self._client.get("/pantheon/status")
        except httpx.HTTPError as e:
            self._record_failure(e)
            logger.warning(f"Orchestrator not available: {e}")
            return False

        if response.is_success:
            self.health.record_success()
            return True

        self._record_failure(RuntimeError(f"status {response.status_code}"))
        logger.warning(f"Orchestrator health check returned {response.status_code}")
        return False

    async def orchestrate(self, text: str, context: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        return await self._request("POST", "/pantheon/orchestrate", {'text': text, 'context': context})

    async def orchestrate_batch(self,
                                texts: List[str],
                                context: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = await self._request("POST", "/pantheon/orchestrate-batch", {'texts': texts, 'context': context})
        return (data or {}).get('results', [])

    async def get_status(self) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/pantheon/status")

    async def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Optional[Dict[str, Any]]:
        if not self.available:
            raise OrchestratorUnavailableError("Orchestrator backend not available")

        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            self._record_failure(e)
            raise OrchestratorTimeoutError(
                f"Request timeout after {self.config.timeout_s * 1000:.0f}ms"
            ) from e
        except httpx.HTTPError as e:
            self._record_failure(e)
            logger.error(f"Orchestrator {path} error: {e}")
            return None

        if not response.is_success:
            logger.error(f"Orchestrator {path} failed: {response.status_code}")
            return None

        self.health.record_success()
        return response.json()

    def _record_failure(self, error: Exception) -> None:
        self.health.record_failure(ErrorEvent.from_exception("orchestrator", error, ErrorSeverity.HIGH))
