"""Funding and withdrawal against the bundler's ledger."""
from __future__ import annotations

import logging
from decimal import ROUND_CEILING, Decimal
from typing import Optional

from .currencies.base import AmountLike
from .deep_hash import deep_hash
from .errors import ValidationError
from .models import FundResponse, WithdrawResponse
from .utils import Utils

logger = logging.getLogger(__name__)


def _integer_amount(amount: AmountLike, field: str = "amount") -> Decimal:
    try:
        value = Decimal(str(amount))
    except ArithmeticError:
        raise ValidationError(f"{field} must be a number, got {amount!r}", field) from None
    if not value.is_finite():
        raise ValidationError(f"{field} must be finite, got {amount!r}", field)
    if value != value.to_integral_value() or value <= 0:
        raise ValidationError(f"{field} must be a positive integer number of atomic units", field)
    return value


class Fund:
    """
    Pays the bundler on-chain and tells it about the payment.

    The steps run strictly in order: fee quote, build and sign, broadcast,
    best-effort confirmation wait, remote notification. Nothing is retried;
    a broadcast transaction whose notification failed can be resubmitted
    with ``submit_fund_transaction``.
    """

    def __init__(self, utils: Utils):
        self.utils = utils

    async def fund(self, amount: AmountLike, multiplier: float = 1.0) -> FundResponse:
        """
        Fund the bundler with ``amount`` atomic units.

        Args:
            amount: Atomic units to send
            multiplier: Scales the network fee, e.g. 1.2 to pay 20% more

        Returns:
            FundResponse with the transaction id, quantity, fee and target
        """
        quantity = _integer_amount(amount)
        currency = self.utils.currency_config
        to = await self.utils.get_bundler_address(self.utils.currency)

        fee: Optional[Decimal] = None
        if currency.needs_fee:
            base_fee = await currency.get_fee(quantity, to)
            fee = (base_fee * Decimal(str(multiplier))).to_integral_value(rounding=ROUND_CEILING)

        created = await currency.create_tx(quantity, to, format(fee, "f") if fee is not None else None)
        response = await currency.send_tx(created.tx_data)
        tx_id = created.id if created.id is not None else str(response)
        logger.info(f"Broadcast {self.utils.currency} funding tx {tx_id} of {quantity} to {to}")

        await self.utils.confirmation_poll(tx_id)
        await self.submit_fund_transaction(tx_id)

        return FundResponse(
            id=tx_id,
            quantity=format(quantity, "f"),
            reward=format(fee, "f") if fee is not None else "0",
            target=to,
        )

    async def submit_fund_transaction(self, tx_id: str) -> None:
        """Notify the bundler of a funding transaction so it credits the balance."""
        try:
            res = await self.utils.api.post(f"/account/balance/{self.utils.currency}", json={"tx_id": tx_id})
            Utils.check_and_throw(res, f"Posting transaction {tx_id} information to the bundler", [202])
        except Exception:
            logger.error(f"Funding tx {tx_id} was broadcast but the bundler was not notified")
            raise
        logger.info(f"Bundler notified of funding tx {tx_id}")

    async def withdraw_balance(self, amount: AmountLike) -> WithdrawResponse:
        """
        Request a withdrawal of ``amount`` atomic units from the bundler.

        The request is signed over the deep hash of (currency, amount, nonce)
        with a single-use nonce from the bundler.
        """
        quantity = format(_integer_amount(amount), "f")
        currency = self.utils.currency_config
        nonce = await self.utils.get_nonce()

        payload = deep_hash([
            self.utils.currency.encode(),
            quantity.encode(),
            str(nonce).encode(),
        ])
        signature = await currency.sign(payload)
        data = {
            "publicKey": await currency.get_public_key(),
            "currency": self.utils.currency,
            "amount": quantity,
            "nonce": nonce,
            "signature": signature.hex(),
            "sigType": currency.signature_type,
        }

        res = await self.utils.api.post("/account/withdraw", json=data)
        Utils.check_and_throw(res, "Withdrawing balance")
        logger.info(f"Withdrawal of {quantity} {self.utils.currency} accepted (nonce {nonce})")
        return WithdrawResponse(
            currency=self.utils.currency,
            amount=quantity,
            nonce=nonce,
            status=res.status_code,
            body=Utils.response_body(res),
        )
