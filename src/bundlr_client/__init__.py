"""
Bundlr Python client

Pay a Bundlr data-bundling node with one of several chains, then upload.
"""

from .client import BundlrClient
from .config import BundlrSettings, get_settings
from .currencies import CurrencyName, get_currency
from .errors import (
    BundlrError,
    ChainQueryError,
    NotFoundError,
    SigningError,
    TransportError,
    UnsupportedCurrencyError,
    ValidationError,
)
from .fund import Fund
from .models import CreatedTx, FundResponse, Tx, UploadResponse, WithdrawResponse
from .utils import Utils

__version__ = "0.1.0"

__all__ = [
    # Client
    "BundlrClient",
    "Fund",
    "Utils",
    "get_currency",
    "CurrencyName",
    # Config
    "BundlrSettings",
    "get_settings",
    # Errors
    "BundlrError",
    "TransportError",
    "UnsupportedCurrencyError",
    "SigningError",
    "ChainQueryError",
    "NotFoundError",
    "ValidationError",
    # Models
    "Tx",
    "CreatedTx",
    "FundResponse",
    "WithdrawResponse",
    "UploadResponse",
]
