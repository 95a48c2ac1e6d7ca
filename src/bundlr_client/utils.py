"""Chain-agnostic helpers built on a currency adapter and the bundler API."""
from __future__ import annotations

import asyncio
import decimal
import logging
from decimal import Decimal
from typing import Any, Iterable, Optional

import httpx

from .api import Api
from .config import get_settings, make_decimal_context
from .currencies.base import AmountLike, BaseCurrency
from .errors import TransportError, UnsupportedCurrencyError

logger = logging.getLogger(__name__)


async def sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class Utils:
    """
    Helpers shared by the funder, uploader and client facade.

    Args:
        api: Bundler transport
        currency: The session's chain adapter
        decimal_context: Context for atomic/decimal conversions
        poll_interval: Seconds between confirmation polls
        poll_attempts: Maximum number of confirmation polls
    """

    def __init__(
        self,
        api: Api,
        currency: BaseCurrency,
        decimal_context: Optional[decimal.Context] = None,
        poll_interval: Optional[float] = None,
        poll_attempts: Optional[int] = None,
    ):
        settings = get_settings()
        self.api = api
        self.currency_config = currency
        self.currency = currency.name
        self.decimal_context = decimal_context or make_decimal_context(settings.decimal_precision)
        self.poll_interval = settings.confirmation_poll_interval_seconds if poll_interval is None else poll_interval
        self.poll_attempts = settings.confirmation_poll_attempts if poll_attempts is None else poll_attempts

    @staticmethod
    def check_and_throw(
        res: httpx.Response,
        context: Optional[str] = None,
        exceptions: Optional[Iterable[int]] = None,
    ) -> None:
        """
        Raise ``TransportError`` unless the response is 200 or a whitelisted status.

        Args:
            res: Bundler response
            context: What the call was doing, for the error message
            exceptions: Additional acceptable status codes for this call site
        """
        status = res.status_code
        if status == 200 or status in (exceptions or ()):
            return
        raise TransportError(context, status, res.text or res.reason_phrase)

    async def get_nonce(self) -> int:
        """Fresh withdrawal nonce for this session's address."""
        res = await self.api.get(
            f"/account/withdrawals/{self.currency}",
            params={"address": self.currency_config.address},
        )
        Utils.check_and_throw(res, "Getting withdrawal nonce")
        return int(res.json())

    async def get_balance(self, address: str) -> Decimal:
        """Bundler-side balance for ``address`` in atomic units."""
        res = await self.api.get(f"/account/balance/{self.currency}", params={"address": address})
        Utils.check_and_throw(res, "Getting balance")
        body = Utils.response_body(res)
        if not isinstance(body, dict) or "balance" not in body:
            raise TransportError("Getting balance", res.status_code, f"response has no balance: {res.text}")
        return Decimal(str(body["balance"]))

    async def get_bundler_address(self, currency: str) -> str:
        """The bundler's receiving address for ``currency``."""
        res = await self.api.get("/info")
        Utils.check_and_throw(res, "Getting Bundler address")
        address = (res.json().get("addresses") or {}).get(currency)
        if not address:
            raise UnsupportedCurrencyError(currency)
        return address

    async def get_price(self, currency: str, num_bytes: int) -> Decimal:
        """Atomic-unit cost of storing ``num_bytes`` bytes, paid with ``currency``."""
        res = await self.api.get(f"/price/{currency}/{num_bytes}")
        Utils.check_and_throw(res, "Getting storage cost")
        return Decimal(str(res.json()))

    async def confirmation_poll(self, tx_id: str) -> None:
        """
        Wait (best effort) for a funding transaction to confirm.

        Currencies with fast finality return at once. Otherwise the adapter is
        polled at a fixed interval. Any failed poll counts as "not yet
        confirmed", and running out of attempts only logs a warning, since
        the bundler confirms the transaction on its own.
        """
        if not self.currency_config.is_slow:
            return

        for attempt in range(1, self.poll_attempts + 1):
            await sleep(self.poll_interval)
            try:
                tx = await self.currency_config.get_tx(tx_id)
            except Exception as e:
                logger.debug(f"Poll {attempt} for tx {tx_id} failed: {e!r}")
                continue
            if tx.confirmed:
                logger.debug(f"Tx {tx_id} confirmed after {attempt} polls")
                return

        waited = self.poll_interval * self.poll_attempts
        logger.warning(f"Tx {tx_id} didn't finalize after {waited:g} seconds")

    def unit_converter(self, atomic_units: AmountLike) -> Decimal:
        """
        Convert atomic units to whole coins, e.g.
        5_000_000_000 winston -> 0.005 AR
        """
        return self.decimal_context.divide(
            Decimal(str(atomic_units)), Decimal(self.currency_config.base.atomic_per_base)
        )

    @staticmethod
    def response_body(res: httpx.Response) -> Any:
        """Decoded JSON body, or the raw text when it is not JSON."""
        try:
            return res.json()
        except ValueError:
            return res.text
