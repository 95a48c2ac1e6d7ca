"""
Currency contract shared by every supported chain.

Chain-agnostic code (``Utils``, ``Fund``) only ever talks to a chain
through this interface. Each adapter translates its chain's transfer,
signature and confirmation model into this minimal shape.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Generic, NamedTuple, Optional, TypeVar, Union

from ..errors import SigningError
from ..models import CreatedTx, Tx

logger = logging.getLogger(__name__)

AmountLike = Union[Decimal, int, str]
SigningFunction = Callable[[bytes], Awaitable[bytes]]

P = TypeVar("P")


class Base(NamedTuple):
    """Atomic unit name and how many atomic units make one whole coin."""
    unit: str
    atomic_per_base: int


@dataclass(frozen=True)
class CurrencyConfig:
    """Immutable per-session configuration for one chain adapter."""
    name: str
    base: Base
    wallet: Any = None
    provider_url: Optional[str] = None
    min_confirm: int = 5
    needs_fee: bool = True
    # True when finality is probabilistic and must be polled for
    is_slow: bool = False
    bundler_url: Optional[str] = None
    contract_address: Optional[str] = None
    opts: dict[str, Any] = field(default_factory=dict)


class ProviderCell(Generic[P]):
    """
    Once-initialized holder for a lazily built provider handle.

    Two concurrent initializers may both build a handle; the second
    simply overwrites the first with an equivalent one built from the
    same immutable configuration.
    """

    def __init__(self) -> None:
        self._value: Optional[P] = None

    def get(self, factory: Callable[[], P]) -> P:
        if self._value is None:
            self._value = factory()
        return self._value

    def set(self, value: Optional[P]) -> None:
        self._value = value

    def peek(self) -> Optional[P]:
        return self._value


class Currency(ABC):
    """Capability set every chain adapter must provide."""

    config: CurrencyConfig
    address: Optional[str]

    @abstractmethod
    async def get_tx(self, tx_id: str) -> Tx:
        """Fetch a transaction; raises ``NotFoundError`` if the chain has no record."""

    @abstractmethod
    def owner_to_address(self, owner: Any) -> str:
        """Derive the chain address for a public key. Pure."""

    @abstractmethod
    async def sign(self, data: bytes) -> bytes:
        """Sign arbitrary payload bytes."""

    @abstractmethod
    async def verify(self, public_key: Any, data: bytes, signature: bytes) -> bool:
        """Verify a signature. Pure."""

    @abstractmethod
    async def get_current_height(self) -> int:
        """Current chain height, slot or block number."""

    @abstractmethod
    async def get_fee(self, amount: AmountLike, to: Optional[str] = None) -> Decimal:
        """Network fee in atomic units for a transfer, rounded up to an integer."""

    @abstractmethod
    async def send_tx(self, data: Any) -> Any:
        """Broadcast signed transaction data. No retries."""

    @abstractmethod
    async def create_tx(self, amount: AmountLike, to: str, fee: Optional[str] = None) -> CreatedTx:
        """Build and sign a native transfer."""

    @abstractmethod
    async def get_public_key(self) -> str:
        """Public key in the chain's native text encoding."""

    async def ready(self) -> None:
        """Finish any asynchronous initialization."""

    async def close(self) -> None:
        """Release any held provider handle."""


class BaseCurrency(Currency):
    """
    Common state and behaviour for chain adapters.

    Subclasses set the class-level defaults and implement the chain
    specific operations plus ``_sign_with_key``.
    """

    # ANS-104 signature type reported with withdrawal requests
    signature_type: int = 0

    def __init__(self, config: CurrencyConfig):
        self.config = config
        self.address: Optional[str] = None
        self._provider: ProviderCell[Any] = ProviderCell()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def base(self) -> Base:
        return self.config.base

    @property
    def min_confirm(self) -> int:
        return self.config.min_confirm

    @property
    def needs_fee(self) -> bool:
        return self.config.needs_fee

    @property
    def is_slow(self) -> bool:
        return self.config.is_slow

    @property
    def wallet(self) -> Any:
        return self.config.wallet

    @property
    def provider_url(self) -> Optional[str]:
        return self.config.provider_url

    @property
    def signing_function(self) -> Optional[SigningFunction]:
        return self.config.opts.get("signing_function")

    async def sign(self, data: bytes) -> bytes:
        if not isinstance(data, (bytes, bytearray)):
            raise SigningError(f"cannot sign {type(data).__name__}, expected bytes", self.name)
        if self.signing_function is not None:
            try:
                signature = await self.signing_function(bytes(data))
            except Exception as e:
                raise SigningError(f"signing function rejected payload: {e}", self.name) from e
            return bytes(signature)
        if self.wallet is None:
            raise SigningError("no signing credential configured", self.name)
        return self._sign_with_key(bytes(data))

    def _sign_with_key(self, data: bytes) -> bytes:
        raise SigningError("local signing is not supported", self.name)

    async def close(self) -> None:
        provider = self._provider.peek()
        if provider is not None and hasattr(provider, "close"):
            await provider.close()
        self._provider.set(None)
