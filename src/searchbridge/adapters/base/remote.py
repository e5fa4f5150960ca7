"""Remote adapter base — Shared ``httpx`` plumbing for JSON-over-HTTP backends.

Transport failures (refused connections, timeouts) are retried with
``tenacity``: ``num_retries`` more attempts with a fixed
``retry_interval_seconds`` pause, failing over to the next configured
base URL before each retry. HTTP error statuses are never
retried: they surface immediately as ``BackendQueryError`` carrying the
backend's own message.
"""

from __future__ import annotations

import logging
import time
from abc import abstractmethod
from datetime import UTC, datetime
from typing import Any

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from searchbridge.adapters.base.adapter import AdapterHealth, SearchAdapter
from searchbridge.adapters.base.exceptions import BackendQueryError, ConnectionError

logger = logging.getLogger(__name__)


class RemoteSearchAdapter(SearchAdapter):
    """Base class for adapters talking to a search server over HTTP.

    Args:
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``
            in tests). Defaults to a real network transport.
        **config: Adapter settings, validated against ``config_model``.
    """

    health_path: str = "/health"

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None, **config: Any) -> None:
        super().__init__(**config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._node = 0

    @abstractmethod
    def _base_urls(self) -> list[str]:
        """Base URLs of the backend nodes, in failover order."""

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        """Headers sent with every request (authentication, content type)."""

    @property
    def _timeout(self) -> float:
        return 30.0

    @property
    def _num_retries(self) -> int:
        return int(getattr(self._config, "num_retries", 0))

    @property
    def _retry_interval(self) -> float:
        return float(getattr(self._config, "retry_interval_seconds", 0.0))

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Create the ``httpx.AsyncClient``. No request is sent."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers=self._headers(),
            transport=self._transport,
        )
        self._node = 0
        await super().initialize()
        logger.info("Initialized %s adapter (nodes: %s)", self.name, ", ".join(self._base_urls()))

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().shutdown()

    async def health_check(self) -> AdapterHealth:
        if not self._client:
            return AdapterHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            resp = await self._client.get(self._base_urls()[self._node] + self.health_path)
            latency_ms = int((time.monotonic() - start) * 1000)
            return AdapterHealth(
                status="healthy" if resp.status_code == 200 else "degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=None if resp.status_code == 200 else f"{self.name} returned HTTP {resp.status_code}",
            )
        except httpx.HTTPError as e:
            return AdapterHealth(status="unhealthy", message=str(e))

    # ── HTTP ─────────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        allow_404: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, retrying transport failures across nodes.

        Args:
            method: HTTP method.
            path: Path relative to the node base URL.
            operation: Adapter operation name, used to tag errors.
            allow_404: Return 404 responses instead of raising.
            **kwargs: Passed to ``httpx.AsyncClient.request`` (params, json, content, headers).

        Raises:
            ConnectionError: If every attempt failed at the transport level.
            BackendQueryError: If the backend answered with an error status.
        """
        if not self._client:
            raise ConnectionError(f"{self.name} client not initialized", adapter=self.name, operation=operation)

        attempts = 1 + self._num_retries
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self._retry_interval),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=lambda state: self._next_node(method, path, state, attempts),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    resp = await self._client.request(method, self._base_urls()[self._node] + path, **kwargs)
        except httpx.TransportError as e:
            url = self._base_urls()[self._node] + path
            logger.warning("%s %s %s failed (attempt %d/%d): %s", self.name, method, url, attempts, attempts, e)
            self._node = (self._node + 1) % len(self._base_urls())
            raise ConnectionError(
                f"Failed to connect to {self.name} after {attempts} attempt(s): {e}",
                adapter=self.name,
                operation=operation,
                cause=e,
            ) from e

        if resp.status_code == 404 and allow_404:
            return resp
        if resp.is_error:
            raise BackendQueryError(
                f"HTTP {resp.status_code}: {self._error_message(resp)}",
                adapter=self.name,
                operation=operation,
            )
        return resp

    def _next_node(self, method: str, path: str, retry_state: RetryCallState, attempts: int) -> None:
        """Log the failed attempt and fail over to the next node before retrying."""
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s %s %s failed (attempt %d/%d): %s",
            self.name,
            method,
            self._base_urls()[self._node] + path,
            retry_state.attempt_number,
            attempts,
            error,
        )
        self._node = (self._node + 1) % len(self._base_urls())

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text or resp.reason_phrase
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return resp.text
