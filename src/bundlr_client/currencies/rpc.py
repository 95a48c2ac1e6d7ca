"""JSON-RPC 2.0 client used by the EVM and Solana adapters."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from ..errors import ChainQueryError

logger = logging.getLogger(__name__)


class RPCError(ChainQueryError):
    """Error object returned by a JSON-RPC node."""

    def __init__(self, chain: str, method: str, error: Any):
        message = error.get("message", "Unknown RPC error") if isinstance(error, dict) else str(error)
        super().__init__(chain, f"RPC error in {method}: {message}", code="RPC_ERROR")
        self.method = method
        self.error_data = error if isinstance(error, dict) else {}


class JsonRpcClient:
    """Async JSON-RPC client over raw httpx."""

    def __init__(
        self,
        chain: str,
        rpc_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._chain = chain
        self._rpc_url = rpc_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC call and return its ``result``."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        logger.debug(f"{self._chain} rpc {method}")
        try:
            response = await self._client.post(self._rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChainQueryError(self._chain, f"{method} failed: {e}") from e

        if not isinstance(data, dict):
            raise ChainQueryError(self._chain, f"{method} returned {type(data).__name__}, expected an object")
        if "error" in data:
            raise RPCError(self._chain, method, data["error"])
        return data.get("result")

    async def close(self) -> None:
        await self._client.aclose()
