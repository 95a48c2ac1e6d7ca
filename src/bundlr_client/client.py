"""
Bundlr Python client

Pay a Bundlr node with any supported currency and upload data to it.

Example usage:
    ```python
    from bundlr_client import BundlrClient

    async with BundlrClient("https://node1.bundlr.network", "arweave", jwk) as bundlr:
        await bundlr.ready()
        price = await bundlr.get_price(1024)
        await bundlr.fund(price)
        await bundlr.upload_file("./photo.png")
    ```
"""
from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

import httpx

from .api import Api
from .config import get_settings, make_decimal_context
from .currencies import BaseCurrency, get_currency
from .currencies.base import AmountLike, SigningFunction
from .fund import Fund
from .models import FundResponse, UploadResponse, WithdrawResponse
from .upload import Uploader
from .utils import Utils

logger = logging.getLogger(__name__)


class BundlrClient:
    """
    Client facade: one bundler, one currency, one wallet.

    ``address`` is known right after construction for every shipped adapter,
    but ``ready()`` must be awaited before trusting it in general, since an
    adapter may finish initializing asynchronously.

    Args:
        url: Bundler URL
        currency: Currency name, e.g. ``"arweave"``, ``"matic"``, ``"solana"``
        wallet: Private key in the chain's native form, or a public key when
            a ``signing_function`` is supplied in ``currency_opts``
        timeout: Bundler request timeout in seconds
        provider_url: Override for the chain provider endpoint
        contract_address: Override for a token contract address
        currency_opts: Free-form per-chain options
        transport: Optional httpx transport for the bundler (mainly for tests)
    """

    def __init__(
        self,
        url: str,
        currency: str,
        wallet: Any = None,
        timeout: Optional[float] = None,
        provider_url: Optional[str] = None,
        contract_address: Optional[str] = None,
        currency_opts: Optional[dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        parsed = httpx.URL(url)
        self.api = Api(str(parsed), timeout=timeout, transport=transport)
        self.currency_config: BaseCurrency = get_currency(
            currency,
            wallet,
            bundler_url=str(parsed),
            provider_url=provider_url,
            contract_address=contract_address,
            opts=currency_opts,
        )
        self.currency = self.currency_config.name
        self.address = self.currency_config.address
        self.utils = Utils(self.api, self.currency_config, make_decimal_context(settings.decimal_precision))
        self.funder = Fund(self.utils)
        self.uploader = Uploader(self.api, self.utils)

    @classmethod
    def init(
        cls,
        url: str,
        currency: str,
        private_key: Any = None,
        public_key: Any = None,
        signing_function: Optional[SigningFunction] = None,
        collect_signatures: Any = None,
        **kwargs: Any,
    ) -> "BundlrClient":
        """Construct with either a private key or a delegated signer plus public key."""
        opts = dict(kwargs.pop("currency_opts", None) or {})
        if signing_function is not None:
            opts["signing_function"] = signing_function
        if collect_signatures is not None:
            opts["collect_signatures"] = collect_signatures
        wallet = public_key if signing_function is not None else private_key
        return cls(url, currency, wallet, currency_opts=opts, **kwargs)

    async def ready(self) -> None:
        """Wait for the adapter's asynchronous initialization."""
        await self.currency_config.ready()
        self.address = self.currency_config.address

    async def get_balance(self, address: str) -> Decimal:
        """Bundler balance of ``address`` in atomic units."""
        return await self.utils.get_balance(address)

    async def get_loaded_balance(self) -> Decimal:
        """Bundler balance of this session's address in atomic units."""
        return await self.utils.get_balance(self.address)

    async def get_price(self, num_bytes: int) -> Decimal:
        """Atomic-unit cost of uploading ``num_bytes`` bytes with this currency."""
        return await self.utils.get_price(self.currency, num_bytes)

    async def fund(self, amount: AmountLike, multiplier: float = 1.0) -> FundResponse:
        return await self.funder.fund(amount, multiplier)

    async def withdraw_balance(self, amount: AmountLike) -> WithdrawResponse:
        return await self.funder.withdraw_balance(amount)

    async def upload(self, data: Union[bytes, str]) -> UploadResponse:
        return await self.uploader.upload(data)

    async def upload_file(self, path: Union[str, Path]) -> UploadResponse:
        """Upload the file at ``path`` to the bundler."""
        return await self.uploader.upload_file(path)

    async def close(self) -> None:
        """Close the bundler transport and the chain provider handle."""
        await self.api.close()
        await self.currency_config.close()

    async def __aenter__(self) -> "BundlrClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
