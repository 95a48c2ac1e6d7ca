"""
Arweave adapter.

Credentials are RSA JWKs (or a public key plus a delegated signing
function). Addresses are the base64url SHA-256 digest of the RSA modulus;
transfers are format-2 transactions signed with RSA-PSS over their deep
hash and broadcast through an Arweave gateway's HTTP API.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
from decimal import ROUND_CEILING, Decimal
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..deep_hash import deep_hash
from ..errors import ChainQueryError, NotFoundError, SigningError
from ..models import CreatedTx, Tx
from .base import AmountLike, Base, BaseCurrency, CurrencyConfig

logger = logging.getLogger(__name__)

ARWEAVE_BASE = Base("winston", 10**12)
PUBLIC_EXPONENT = 65537
PSS_SALT_LENGTH = 32


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    pad = "=" * ((4 - len(value) % 4) % 4)
    return base64.urlsafe_b64decode(value + pad)


def _b64url_int(value: str) -> int:
    return int.from_bytes(b64url_decode(value), "big")


def _json_object(response: httpx.Response, what: str) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as e:
        raise ChainQueryError("arweave", f"{what} returned malformed JSON: {e}") from e
    if not isinstance(body, dict):
        raise ChainQueryError("arweave", f"{what} returned {type(body).__name__}, expected an object")
    return body


def jwk_to_private_key(jwk: dict[str, Any]) -> rsa.RSAPrivateKey:
    """Load an Arweave JWK into a ``cryptography`` private key."""
    try:
        public_numbers = rsa.RSAPublicNumbers(e=_b64url_int(jwk["e"]), n=_b64url_int(jwk["n"]))
        private_numbers = rsa.RSAPrivateNumbers(
            p=_b64url_int(jwk["p"]),
            q=_b64url_int(jwk["q"]),
            d=_b64url_int(jwk["d"]),
            dmp1=_b64url_int(jwk["dp"]),
            dmq1=_b64url_int(jwk["dq"]),
            iqmp=_b64url_int(jwk["qi"]),
            public_numbers=public_numbers,
        )
        return private_numbers.private_key()
    except (KeyError, ValueError, TypeError) as e:
        raise SigningError(f"malformed Arweave JWK: {e}", "arweave") from e


class ArweaveGateway:
    """Minimal async client for an Arweave gateway."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.url, timeout=timeout, transport=transport)

    async def _get(self, path: str) -> httpx.Response:
        try:
            return await self._client.get(path)
        except httpx.HTTPError as e:
            raise ChainQueryError("arweave", f"GET {path} failed: {e}") from e

    async def get_status(self, tx_id: str) -> httpx.Response:
        return await self._get(f"/tx/{tx_id}/status")

    async def get_transaction(self, tx_id: str) -> dict[str, Any]:
        response = await self._get(f"/tx/{tx_id}")
        if response.status_code != 200:
            raise ChainQueryError("arweave", f"fetching tx {tx_id} returned {response.status_code}")
        return _json_object(response, f"fetching tx {tx_id}")

    async def get_info(self) -> dict[str, Any]:
        response = await self._get("/info")
        if response.status_code != 200:
            raise ChainQueryError("arweave", f"fetching network info returned {response.status_code}")
        return _json_object(response, "fetching network info")

    async def get_price(self, byte_size: int, target: Optional[str] = None) -> str:
        path = f"/price/{byte_size}/{target}" if target else f"/price/{byte_size}"
        response = await self._get(path)
        if response.status_code != 200:
            raise ChainQueryError("arweave", f"fetching price returned {response.status_code}")
        return response.text.strip()

    async def get_anchor(self) -> str:
        response = await self._get("/tx_anchor")
        if response.status_code != 200:
            raise ChainQueryError("arweave", f"fetching tx anchor returned {response.status_code}")
        return response.text.strip()

    async def post_transaction(self, tx: dict[str, Any]) -> httpx.Response:
        try:
            return await self._client.post("/tx", json=tx)
        except httpx.HTTPError as e:
            raise ChainQueryError("arweave", f"POST /tx failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


class ArweaveCurrency(BaseCurrency):
    """Arweave chain adapter."""

    DEFAULT_BASE = ARWEAVE_BASE
    DEFAULT_MIN_CONFIRM = 5
    NEEDS_FEE = True
    IS_SLOW = True

    signature_type = 1

    def __init__(self, config: CurrencyConfig):
        super().__init__(config)
        self._jwk: Optional[dict[str, Any]] = None
        self._owner: Optional[str] = None
        self._load_wallet(config.wallet)
        if self._owner is not None:
            self.address = self.owner_to_address(self._owner)

    def _load_wallet(self, wallet: Any) -> None:
        if wallet is None:
            return
        if isinstance(wallet, str):
            try:
                wallet = json.loads(wallet)
            except ValueError:
                # Bare base64url modulus, used with a delegated signer
                self._owner = wallet
                return
        if isinstance(wallet, dict):
            if "n" not in wallet:
                raise SigningError("Arweave JWK is missing its modulus", self.name)
            self._jwk = wallet
            self._owner = wallet["n"]

    def _get_provider(self) -> ArweaveGateway:
        return self._provider.get(self._build_provider)

    def _build_provider(self) -> ArweaveGateway:
        url = self.provider_url or "https://arweave.net"
        get_config = getattr(self.wallet, "get_arweave_config", None)
        if callable(get_config):
            try:
                cfg = get_config()
                protocol = str(cfg.get("protocol", "https")).replace(":", "").replace("/", "")
                port = cfg.get("port")
                url = f"{protocol}://{cfg['host']}" + (f":{port}" if port else "")
            except Exception as e:
                logger.warning(f"Wallet did not provide an Arweave config, using {url}: {e}")
        parsed = urlsplit(url)
        logger.debug(f"Connecting to Arweave gateway {parsed.scheme}://{parsed.netloc}")
        return ArweaveGateway(url, transport=self.config.opts.get("provider_transport"))

    async def get_tx(self, tx_id: str) -> Tx:
        gateway = self._get_provider()
        status = await gateway.get_status(tx_id)
        if status.status_code == 404:
            raise NotFoundError(self.name, tx_id)
        if status.status_code not in (200, 202):
            raise ChainQueryError(self.name, f"status for {tx_id} returned {status.status_code}")

        pending = status.status_code == 202
        tx: dict[str, Any] = {}
        confirmations = 0
        if status.status_code == 200:
            body = _json_object(status, f"status for {tx_id}")
            try:
                confirmations = int(body.get("number_of_confirmations") or 0)
            except (TypeError, ValueError) as e:
                raise ChainQueryError(self.name, f"status for {tx_id} has a bad confirmation count: {e}") from e
            tx = await gateway.get_transaction(tx_id)

        owner = tx.get("owner")
        return Tx(
            from_address=self.owner_to_address(owner) if owner else None,
            to_address=tx.get("target") or None,
            amount=Decimal(tx.get("quantity") or 0),
            pending=pending,
            confirmed=not pending and confirmations >= self.min_confirm,
        )

    def owner_to_address(self, owner: Any) -> str:
        raw = bytes(owner) if isinstance(owner, (bytes, bytearray)) else b64url_decode(owner)
        return b64url_encode(hashlib.sha256(raw).digest())

    def _sign_with_key(self, data: bytes) -> bytes:
        if self._jwk is None:
            raise SigningError("Arweave wallet has no private key", self.name)
        key = jwk_to_private_key(self._jwk)
        return key.sign(
            data,
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=PSS_SALT_LENGTH),
            hashes.SHA256(),
        )

    async def verify(self, public_key: Any, data: bytes, signature: bytes) -> bool:
        if isinstance(public_key, (bytes, bytearray)):
            public_key = bytes(public_key).decode()
        try:
            key = rsa.RSAPublicNumbers(e=PUBLIC_EXPONENT, n=_b64url_int(public_key)).public_key()
            key.verify(
                signature,
                data,
                padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=PSS_SALT_LENGTH),
                hashes.SHA256(),
            )
            return True
        except (InvalidSignature, ValueError):
            return False

    async def get_current_height(self) -> int:
        info = await self._get_provider().get_info()
        return int(info["height"])

    async def get_fee(self, amount: AmountLike, to: Optional[str] = None) -> Decimal:
        # A plain transfer carries no data, so only the base reward applies.
        price = await self._get_provider().get_price(0, to)
        return Decimal(price).to_integral_value(rounding=ROUND_CEILING)

    async def send_tx(self, data: Any) -> httpx.Response:
        response = await self._get_provider().post_transaction(data)
        if response.status_code not in (200, 208):
            raise ChainQueryError(
                self.name, f"broadcast of {data.get('id')} rejected: {response.status_code} {response.text}"
            )
        return response

    async def create_tx(self, amount: AmountLike, to: str, fee: Optional[str] = None) -> CreatedTx:
        if self._owner is None:
            raise SigningError("no Arweave public key configured", self.name)
        gateway = self._get_provider()
        quantity = format(Decimal(amount).to_integral_value(), "f")
        reward = str(fee) if fee is not None else format(await self.get_fee(quantity, to), "f")
        last_tx = await gateway.get_anchor()

        tx: dict[str, Any] = {
            "format": 2,
            "last_tx": last_tx,
            "owner": self._owner,
            "tags": [],
            "target": to,
            "quantity": quantity,
            "data": "",
            "data_size": "0",
            "data_root": "",
            "reward": reward,
        }
        signature = await self.sign(self.signature_data(tx))
        tx["signature"] = b64url_encode(signature)
        tx["id"] = b64url_encode(hashlib.sha256(signature).digest())
        return CreatedTx(id=tx["id"], tx_data=tx)

    @staticmethod
    def signature_data(tx: dict[str, Any]) -> bytes:
        """Deep hash of a format-2 transaction's signed fields."""
        tags = [[b64url_decode(t["name"]), b64url_decode(t["value"])] for t in tx.get("tags", [])]
        return deep_hash([
            str(tx["format"]).encode(),
            b64url_decode(tx["owner"]),
            b64url_decode(tx["target"]),
            tx["quantity"].encode(),
            tx["reward"].encode(),
            b64url_decode(tx["last_tx"]),
            tags,
            tx["data_size"].encode(),
            b64url_decode(tx["data_root"]),
        ])

    async def get_public_key(self) -> str:
        if self._owner is None:
            raise SigningError("no Arweave public key configured", self.name)
        return self._owner
