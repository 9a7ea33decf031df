from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import httpx

from intune_reconciler.config.settings import (
    DEFAULT_API_VERSION,
    DEFAULT_GRAPH_BASE_URL,
    EngineSettings,
)
from intune_reconciler.graph.errors import (
    AuthenticationError,
    GraphAPIError,
    GraphErrorCategory,
    PermissionError,
    RateLimitError,
    category_for_status,
)
from intune_reconciler.graph.rate_limiter import RateLimiter
from intune_reconciler.graph.requests import GraphRequest, graph_request_to_batch_entry
from intune_reconciler.utils.cancellation import CancellationToken
from intune_reconciler.utils.logging import get_logger


logger = get_logger(__name__)


TokenProvider = Callable[[], str]


class RateLimitedAsyncClient(httpx.AsyncClient):
    """httpx client that waits on the rate limiter and retries throttled calls."""

    def __init__(self, *args: Any, rate_limiter: RateLimiter, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._rate_limiter = rate_limiter

    async def send(self, request: httpx.Request, **kwargs: Any) -> httpx.Response:  # type: ignore[override]
        limiter = self._rate_limiter
        is_write = request.method.upper() in {"POST", "PUT", "PATCH", "DELETE"}
        attempt = 1

        while True:
            while not await limiter.can_make_request(is_write=is_write):
                delay = await limiter.calculate_delay(is_write=is_write)
                await asyncio.sleep(max(delay, 0.05))
            await limiter.record_request(is_write=is_write)

            try:
                response = await super().send(request, **kwargs)
            except httpx.TimeoutException as exc:
                error = GraphAPIError(
                    message="Network timeout communicating with Microsoft Graph",
                    category=GraphErrorCategory.NETWORK,
                    inner_error=exc,
                )
                if limiter.should_retry(attempt=attempt, error=error):
                    await asyncio.sleep(limiter.calculate_retry_delay(attempt=attempt))
                    attempt += 1
                    continue
                raise error from exc
            except httpx.RequestError as exc:
                raise GraphAPIError(
                    message=f"Network error communicating with Microsoft Graph: {exc}",
                    category=GraphErrorCategory.NETWORK,
                    inner_error=exc,
                ) from exc

            if response.status_code == 429:
                await limiter.record_rate_limit()
                retry_after = response.headers.get("Retry-After")
                if attempt > limiter.max_retries:
                    raise RateLimitError(retry_after=retry_after)
                await asyncio.sleep(
                    limiter.calculate_retry_delay(
                        attempt=attempt,
                        retry_after_header=retry_after,
                    )
                )
                attempt += 1
                continue

            if response.status_code >= 400:
                await response.aread()
                raise _map_response_to_error(response)

            await limiter.reset_rate_limit_tracking()
            logger.debug(
                "Graph request",
                method=request.method,
                url=str(request.url),
                status_code=response.status_code,
                retries=attempt - 1,
            )
            return response


def _map_response_to_error(response: httpx.Response) -> GraphAPIError:
    status = response.status_code
    retry_after = response.headers.get("Retry-After")
    body: Any = {}
    try:
        body = json.loads(response.text) if response.text else {}
    except ValueError:
        body = {}

    error_info = body.get("error") if isinstance(body, dict) else None
    code = None
    message = None
    if isinstance(error_info, dict):
        code = error_info.get("code")
        message = error_info.get("message")

    message = message or response.text or f"Graph request failed with status {status}"

    if status == 401:
        return AuthenticationError(message=message)
    if status == 403:
        return PermissionError(message=message)
    if status == 429:
        return RateLimitError(message=message, retry_after=retry_after)
    return GraphAPIError(
        message=message,
        category=category_for_status(status),
        status_code=status,
        code=code if isinstance(code, str) else None,
        retry_after=retry_after,
    )


@dataclass(slots=True)
class GraphClientConfig:
    base_url: str = DEFAULT_GRAPH_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    user_agent: str = "IntuneReconciler-Python"
    timeout: httpx.Timeout = field(
        default_factory=lambda: httpx.Timeout(connect=10.0, read=60.0, write=30.0, pool=5.0)
    )

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "GraphClientConfig":
        return cls(base_url=settings.graph_base_url, api_version=settings.api_version)


class GraphClient:
    """Minimal Microsoft Graph client used by the assignment transport."""

    def __init__(
        self,
        token_provider: TokenProvider,
        config: GraphClientConfig | None = None,
        *,
        rate_limiter: RateLimiter | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._config = config or GraphClientConfig()
        self._rate_limiter = rate_limiter or RateLimiter()
        self._http_transport = http_transport
        self._http_client: RateLimitedAsyncClient | None = None

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def absolute_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self._config.base_url.rstrip('/')}/{self._config.api_version}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> httpx.Response:
        if cancellation_token:
            cancellation_token.raise_if_cancelled()
        client = self._get_http_client()
        return await client.request(
            method,
            self.absolute_url(path),
            json=json_body,
            headers=headers,
        )

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: Any | None = None,
        headers: dict[str, str] | None = None,
        cancellation_token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        response = await self.request(
            method,
            path,
            json_body=json_body,
            headers=headers,
            cancellation_token=cancellation_token,
        )
        if response.status_code == 204 or not response.content:
            return {}
        payload = response.json()
        return payload if isinstance(payload, dict) else {"value": payload}

    async def execute_batch(
        self,
        requests: Iterable[GraphRequest],
        *,
        cancellation_token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        entries = [
            graph_request_to_batch_entry(request, request_id=str(index))
            for index, request in enumerate(requests, start=1)
        ]
        if not entries:
            return {"responses": []}
        return await self.request_json(
            "POST",
            "/$batch",
            json_body={"requests": entries},
            headers={"Content-Type": "application/json"},
            cancellation_token=cancellation_token,
        )

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_http_client(self) -> RateLimitedAsyncClient:
        if self._http_client is None:

            def bearer_auth(request: httpx.Request) -> httpx.Request:
                request.headers["Authorization"] = f"Bearer {self._token_provider()}"
                return request

            kwargs: dict[str, Any] = {}
            if self._http_transport is not None:
                kwargs["transport"] = self._http_transport
            self._http_client = RateLimitedAsyncClient(
                rate_limiter=self._rate_limiter,
                headers={"User-Agent": self._config.user_agent},
                auth=bearer_auth,
                timeout=self._config.timeout,
                **kwargs,
            )
        return self._http_client


__all__ = [
    "GraphClient",
    "GraphClientConfig",
    "RateLimitedAsyncClient",
    "TokenProvider",
]
