"""
Async HTTP client wrapper for external score feed requests.
Includes timeout management, error classification, and metrics collection.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import FEED_LATENCY, FEED_REQUESTS

logger = get_logger(__name__)


class FeedHTTPError(Exception):
    """Transport-level failure talking to a feed (timeout, connection, HTTP status)."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class FeedHTTPClient:
    """
    Async HTTP client for score feed endpoints.

    One request per call, no retries: the reconciler's next cycle is the retry.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s or settings.feed_request_timeout_s
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        Perform a GET request and decode the JSON body.

        Raises:
            FeedHTTPError: On timeout, connection failure, non-2xx status or
                an undecodable body.
        """
        if not self._client:
            raise RuntimeError("FeedHTTPClient not started. Call start() first.")

        start_time = time.perf_counter()
        status = "error"
        try:
            resp = await self._client.get(path, params=params)
            status = str(resp.status_code)
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException as exc:
            status = "timeout"
            logger.warning("feed_timeout", provider=self._provider, path=path)
            raise FeedHTTPError(self._provider, "request timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "feed_http_error",
                provider=self._provider,
                path=path,
                status=exc.response.status_code,
            )
            raise FeedHTTPError(
                self._provider, f"HTTP {exc.response.status_code}", exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("feed_request_error", provider=self._provider, path=path, error=str(exc))
            raise FeedHTTPError(self._provider, str(exc) or exc.__class__.__name__) from exc
        except ValueError as exc:
            status = "invalid_json"
            raise FeedHTTPError(self._provider, "response body is not JSON") from exc
        finally:
            elapsed_s = time.perf_counter() - start_time
            FEED_LATENCY.labels(provider=self._provider).observe(elapsed_s)
            FEED_REQUESTS.labels(provider=self._provider, status=status).inc()

        logger.debug(
            "feed_request_success",
            provider=self._provider,
            path=path,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return body
