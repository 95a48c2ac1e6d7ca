"""
Configuration for the Bundlr client.

Settings are read once from the environment (prefix ``BUNDLR_``) and
shared read-only by every client in the process.
"""
from __future__ import annotations

import decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TIMEOUT_SECONDS = 100.0
DEFAULT_DECIMAL_PRECISION = 50
DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_POLL_ATTEMPTS = 15


class BundlrSettings(BaseSettings):
    """Process-wide client settings."""

    model_config = SettingsConfigDict(
        env_prefix="BUNDLR_",
        env_file=".env",
        extra="ignore",
    )

    # Bundler transport
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    # Arbitrary-precision arithmetic (NEAR-style currencies need ~50 digits)
    decimal_precision: int = Field(default=DEFAULT_DECIMAL_PRECISION, ge=28)

    # Best-effort confirmation polling
    confirmation_poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    confirmation_poll_attempts: int = DEFAULT_POLL_ATTEMPTS

    # Default chain providers
    arweave_gateway_url: str = "https://arweave.net"
    ethereum_rpc_url: str = "https://cloudflare-eth.com"
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"


@lru_cache
def get_settings() -> BundlrSettings:
    """Return the cached settings instance."""
    return BundlrSettings()


def make_decimal_context(precision: int | None = None) -> decimal.Context:
    """Build the decimal context used for atomic/decimal unit conversion."""
    if precision is None:
        precision = get_settings().decimal_precision
    return decimal.Context(prec=precision, rounding=decimal.ROUND_HALF_EVEN)
