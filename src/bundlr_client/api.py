"""HTTP transport to a Bundlr node."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .config import get_settings

logger = logging.getLogger(__name__)

USER_AGENT = "bundlr-client-python/0.1.0"


class Api:
    """
    Thin request/response wrapper around the bundler's HTTP API.

    Responses are returned as-is; status checking is left to the caller
    (see ``Utils.check_and_throw``) so each call site can whitelist the
    codes it expects.

    Args:
        base_url: Bundler URL, e.g. ``https://node1.bundlr.network``
        timeout: Request timeout in seconds
        transport: Optional httpx transport (mainly for tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout if timeout is not None else get_settings().timeout_seconds)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"User-Agent": USER_AGENT},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        client = await self._get_client()
        logger.debug(f"GET {self._base_url}{path}")
        return await client.get(path, params=params)

    async def post(
        self,
        path: str,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        client = await self._get_client()
        logger.debug(f"POST {self._base_url}{path}")
        return await client.post(path, json=json, content=content, headers=headers)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
