"""Miniflux REST API client."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ...config_loader import MinifluxSettings, load_miniflux_settings


class MinifluxError(Exception):
    """Raised when the Miniflux API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


# 认证失败重试也不会成功
_NO_RETRY_STATUS = {400, 401, 403, 404, 422}


class MinifluxClient:
    """Thin async wrapper over the subset of the Miniflux v1 API used for digests."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.username = username
        self.password = password
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        auth = None
        if self.api_key:
            headers["X-Auth-Token"] = self.api_key
        elif self.username and self.password:
            auth = (self.username, self.password)
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/v1",
            headers=headers,
            auth=auth,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Send a request with retries; returns decoded JSON, or None for 204."""
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._client() as client:
                    response = await client.request(method, path, params=params, json=json)
            except httpx.RequestError as exc:
                error = MinifluxError(f"Miniflux API Error: {exc.__class__.__name__}: {exc}")
            else:
                if response.status_code == 204:
                    return None
                if response.is_success:
                    return response.json()

                error = MinifluxError(
                    f"Miniflux API Error: {response.status_code} {response.reason_phrase} - {response.text}",
                    status_code=response.status_code,
                )
                if response.status_code in _NO_RETRY_STATUS:
                    raise error

            if attempt >= self.max_retries:
                raise error
            delay = self.retry_delay * attempt
            logger.warning(
                f"[Miniflux] {method} {path} 失败，{delay:.1f}s 后重试 "
                f"({attempt}/{self.max_retries}): {error}"
            )
            await asyncio.sleep(delay)

    async def me(self) -> Dict[str, Any]:
        return await self.request("GET", "/me")

    async def get_feeds(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/feeds") or []

    async def get_feed(self, feed_id: int) -> Dict[str, Any]:
        return await self.request("GET", f"/feeds/{int(feed_id)}")

    async def get_categories(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/categories") or []

    async def get_entries(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET /entries; parameters whose value is None are dropped."""
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        return await self.request("GET", "/entries", params=clean) or {}


def get_miniflux_client(settings: Optional[MinifluxSettings] = None) -> Optional[MinifluxClient]:
    """Build a client from configuration, or return None when Miniflux is not configured."""
    settings = settings or load_miniflux_settings()
    if not settings.is_configured:
        return None
    return MinifluxClient(
        settings.url,
        api_key=settings.api_key or None,
        username=settings.username or None,
        password=settings.password or None,
    )
