"""Chain adapters and currency selection."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Type

from ..config import get_settings
from ..errors import UnsupportedCurrencyError
from .arweave import ArweaveCurrency
from .base import Base, BaseCurrency, Currency, CurrencyConfig, ProviderCell
from .ethereum import EVM_NETWORKS, EthereumCurrency
from .solana import SolanaCurrency


class CurrencyName(str, Enum):
    """Currencies this client can pay with."""
    ARWEAVE = "arweave"
    ETHEREUM = "ethereum"
    MATIC = "matic"
    BNB = "bnb"
    AVALANCHE = "avalanche"
    FANTOM = "fantom"
    ARBITRUM = "arbitrum"
    SOLANA = "solana"


ADAPTERS: Dict[CurrencyName, Type[BaseCurrency]] = {
    CurrencyName.ARWEAVE: ArweaveCurrency,
    CurrencyName.SOLANA: SolanaCurrency,
    **{CurrencyName(name): EthereumCurrency for name in EVM_NETWORKS},
}


def _default_provider_url(name: CurrencyName) -> Optional[str]:
    settings = get_settings()
    if name == CurrencyName.ARWEAVE:
        return settings.arweave_gateway_url
    if name == CurrencyName.ETHEREUM:
        return settings.ethereum_rpc_url
    if name == CurrencyName.SOLANA:
        return settings.solana_rpc_url
    return None


def get_currency(
    currency: str,
    wallet: Any = None,
    bundler_url: Optional[str] = None,
    provider_url: Optional[str] = None,
    contract_address: Optional[str] = None,
    opts: Optional[dict[str, Any]] = None,
) -> BaseCurrency:
    """
    Build the adapter for ``currency``.

    Raises:
        UnsupportedCurrencyError: if no adapter exists for the name
    """
    try:
        name = CurrencyName(currency.lower())
    except ValueError:
        raise UnsupportedCurrencyError(currency, f"Unknown/unsupported currency {currency}") from None

    adapter = ADAPTERS[name]
    min_confirm = adapter.DEFAULT_MIN_CONFIRM
    if adapter is EthereumCurrency:
        min_confirm = EVM_NETWORKS[name.value].min_confirm

    config = CurrencyConfig(
        name=name.value,
        base=adapter.DEFAULT_BASE,
        wallet=wallet,
        provider_url=provider_url or _default_provider_url(name),
        min_confirm=min_confirm,
        needs_fee=adapter.NEEDS_FEE,
        is_slow=adapter.IS_SLOW,
        bundler_url=bundler_url,
        contract_address=contract_address,
        opts=dict(opts or {}),
    )
    return adapter(config)


__all__ = [
    "ADAPTERS",
    "ArweaveCurrency",
    "Base",
    "BaseCurrency",
    "Currency",
    "CurrencyConfig",
    "CurrencyName",
    "EthereumCurrency",
    "ProviderCell",
    "SolanaCurrency",
    "get_currency",
]
