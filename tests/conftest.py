"""
Pytest configuration and fixtures for bundlr_client tests.
"""
from __future__ import annotations

import json
from collections import defaultdict
from typing import Any, Callable, Optional, Union

import base58
import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from nacl.signing import SigningKey

from bundlr_client.currencies.arweave import b64url_encode


class BundlerMock:
    """Route table for a mocked bundler or gateway, keyed by method and path."""

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[httpx.Response]] = defaultdict(list)
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json: Any = None,
        text: Optional[str] = None,
    ) -> None:
        if text is not None:
            response = httpx.Response(status_code, text=text)
        else:
            response = httpx.Response(status_code, json=json)
        self._routes[(method.upper(), path)].append(response)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            raise AssertionError(f"No mocked response for {request.method} {request.url.path}")
        # The last registered response is sticky
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path}" for r in self.requests]


class RpcMock:
    """JSON-RPC node answering from a method -> result table."""

    def __init__(self) -> None:
        self.results: dict[str, Union[Any, Callable[[list], Any]]] = {}
        self.errors: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, list]] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body.get("params", [])
        self.calls.append((method, params))
        if method in self.errors:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]})
        if method not in self.results:
            raise AssertionError(f"No mocked result for {method}")
        result = self.results[method]
        if callable(result):
            result = result(params)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]


def _b64url_int(value: int) -> str:
    return b64url_encode(value.to_bytes((value.bit_length() + 7) // 8, "big"))


@pytest.fixture(scope="session")
def arweave_jwk() -> dict[str, str]:
    """Throwaway RSA JWK in Arweave wallet format."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    numbers = key.private_numbers()
    public = numbers.public_numbers
    return {
        "kty": "RSA",
        "e": _b64url_int(public.e),
        "n": _b64url_int(public.n),
        "d": _b64url_int(numbers.d),
        "p": _b64url_int(numbers.p),
        "q": _b64url_int(numbers.q),
        "dp": _b64url_int(numbers.dmp1),
        "dq": _b64url_int(numbers.dmq1),
        "qi": _b64url_int(numbers.iqmp),
    }


@pytest.fixture
def eth_private_key() -> str:
    """Well-known test key; never holds funds."""
    return "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


@pytest.fixture
def solana_secret_key() -> str:
    """Base58 64-byte secret key (seed + public key)."""
    signing_key = SigningKey(bytes(range(32)))
    return base58.b58encode(bytes(signing_key) + bytes(signing_key.verify_key)).decode()


@pytest.fixture
def bundler_url() -> str:
    return "https://node1.bundlr.test"


@pytest.fixture
def bundler() -> BundlerMock:
    return BundlerMock()


@pytest.fixture
def gateway() -> BundlerMock:
    return BundlerMock()


@pytest.fixture
def rpc() -> RpcMock:
    return RpcMock()


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Replace the polling sleep with a recorder."""
    recorded: list[float] = []

    async def _sleep(seconds: float) -> None:
        recorded.append(seconds)

    monkeypatch.setattr("bundlr_client.utils.sleep", _sleep)
    return recorded
