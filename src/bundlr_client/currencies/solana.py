"""
Solana adapter.

Uses raw JSON-RPC instead of solana-py: the only transaction ever built
is a single system-program transfer, which is serialized here directly.
"""
from __future__ import annotations

import base64
import logging
import struct
from decimal import ROUND_CEILING, Decimal
from typing import Any, List, Optional

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from ..errors import ChainQueryError, NotFoundError, SigningError, ValidationError
from ..models import CreatedTx, Tx
from .base import AmountLike, Base, BaseCurrency, CurrencyConfig
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)

SOLANA_BASE = Base("lamports", 10**9)
SYSTEM_PROGRAM_ID = bytes(32)
SYSTEM_TRANSFER_INSTRUCTION = 2


def encode_length(n: int) -> bytes:
    """Solana compact-u16 ("shortvec") length prefix."""
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def build_transfer_message(sender: bytes, recipient: bytes, lamports: int, blockhash: str) -> bytes:
    """Serialize a legacy message holding one system transfer."""
    if sender == recipient:
        raise ValidationError("cannot transfer to the sending address", "to")
    instruction_data = struct.pack("<IQ", SYSTEM_TRANSFER_INSTRUCTION, lamports)
    return b"".join([
        # 1 required signature, 0 read-only signed, 1 read-only unsigned (system program)
        bytes([1, 0, 1]),
        encode_length(3),
        sender,
        recipient,
        SYSTEM_PROGRAM_ID,
        base58.b58decode(blockhash),
        encode_length(1),
        bytes([2]),
        encode_length(2),
        bytes([0, 1]),
        encode_length(len(instruction_data)),
        instruction_data,
    ])


class SolanaCurrency(BaseCurrency):
    """Solana chain adapter."""

    DEFAULT_BASE = SOLANA_BASE
    DEFAULT_MIN_CONFIRM = 1
    NEEDS_FEE = False
    IS_SLOW = False

    signature_type = 2

    def __init__(self, config: CurrencyConfig):
        super().__init__(config)
        self._signing_key: Optional[SigningKey] = None
        self._public_key: Optional[bytes] = None
        self._load_wallet(config.wallet)
        if self._public_key is not None:
            self.address = self.owner_to_address(self._public_key)

    def _load_wallet(self, wallet: Any) -> None:
        if wallet is None:
            return
        try:
            raw = base58.b58decode(wallet) if isinstance(wallet, str) else bytes(wallet)
        except ValueError as e:
            raise SigningError(f"Solana key is not valid base58: {e}", self.name) from e
        if len(raw) == 64:
            self._signing_key = SigningKey(raw[:32])
        elif len(raw) == 32 and self.signing_function is not None:
            self._public_key = raw
            return
        elif len(raw) == 32:
            self._signing_key = SigningKey(raw)
        else:
            raise SigningError(f"unexpected Solana key length {len(raw)}", self.name)
        self._public_key = bytes(self._signing_key.verify_key)

    def _get_provider(self) -> JsonRpcClient:
        return self._provider.get(
            lambda: JsonRpcClient(
                self.name,
                self.provider_url or "https://api.mainnet-beta.solana.com",
                transport=self.config.opts.get("provider_transport"),
            )
        )

    async def get_tx(self, tx_id: str) -> Tx:
        rpc = self._get_provider()
        result = await rpc.call("getSignatureStatuses", [[tx_id], {"searchTransactionHistory": True}])
        statuses = result.get("value") if isinstance(result, dict) else None
        if not isinstance(statuses, list):
            raise ChainQueryError(self.name, f"getSignatureStatuses returned an unexpected shape: {result!r}")
        status = statuses[0] if statuses else None
        if status is None:
            raise NotFoundError(self.name, tx_id)

        commitment = status.get("confirmationStatus") or "processed"
        pending = commitment == "processed"
        confirmed = (
            not pending
            and not status.get("err")
            and (commitment == "finalized" or (status.get("confirmations") or 0) >= self.min_confirm)
        )

        source, destination, lamports = None, None, 0
        tx = await rpc.call("getTransaction", [tx_id, {"encoding": "jsonParsed"}])
        for instruction in self._instructions(tx):
            parsed = instruction.get("parsed")
            if instruction.get("program") == "system" and isinstance(parsed, dict) and parsed.get("type") == "transfer":
                info = parsed.get("info", {})
                source, destination, lamports = info.get("source"), info.get("destination"), info.get("lamports", 0)
                break

        return Tx(
            from_address=source,
            to_address=destination,
            amount=Decimal(lamports),
            pending=pending,
            confirmed=confirmed,
        )

    @staticmethod
    def _instructions(tx: Optional[dict[str, Any]]) -> List[dict[str, Any]]:
        if not tx:
            return []
        return tx.get("transaction", {}).get("message", {}).get("instructions", [])

    def owner_to_address(self, owner: Any) -> str:
        raw = base58.b58decode(owner) if isinstance(owner, str) else bytes(owner)
        return base58.b58encode(raw).decode()

    def _sign_with_key(self, data: bytes) -> bytes:
        if self._signing_key is None:
            raise SigningError("Solana wallet has no private key", self.name)
        return self._signing_key.sign(data).signature

    async def verify(self, public_key: Any, data: bytes, signature: bytes) -> bool:
        raw = base58.b58decode(public_key) if isinstance(public_key, str) else bytes(public_key)
        try:
            VerifyKey(raw).verify(data, signature)
            return True
        except (BadSignatureError, ValueError):
            return False

    async def get_current_height(self) -> int:
        return int(await self._get_provider().call("getBlockHeight"))

    async def _latest_blockhash(self) -> str:
        result = await self._get_provider().call("getLatestBlockhash", [{"commitment": "confirmed"}])
        try:
            return result["value"]["blockhash"]
        except (KeyError, TypeError) as e:
            raise ChainQueryError(self.name, f"getLatestBlockhash returned an unexpected shape: {result!r}") from e

    async def get_fee(self, amount: AmountLike, to: Optional[str] = None) -> Decimal:
        if self._public_key is None:
            raise SigningError("no Solana public key configured", self.name)
        recipient = base58.b58decode(to) if to else bytes([1]) * 32
        message = build_transfer_message(
            self._public_key, recipient, int(Decimal(amount)), await self._latest_blockhash()
        )
        result = await self._get_provider().call(
            "getFeeForMessage",
            [base64.b64encode(message).decode(), {"commitment": "confirmed"}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            raise ChainQueryError(self.name, "fee for message is unavailable (blockhash expired?)")
        return Decimal(value).to_integral_value(rounding=ROUND_CEILING)

    async def send_tx(self, data: Any) -> str:
        signature = await self._get_provider().call(
            "sendTransaction", [data, {"encoding": "base64", "skipPreflight": False}]
        )
        logger.info(f"Solana tx sent: {signature}")
        return signature

    async def create_tx(self, amount: AmountLike, to: str, fee: Optional[str] = None) -> CreatedTx:
        # The network deducts the fee itself, so ``fee`` is not encoded.
        if self._public_key is None:
            raise SigningError("no Solana public key configured", self.name)
        message = build_transfer_message(
            self._public_key, base58.b58decode(to), int(Decimal(amount)), await self._latest_blockhash()
        )
        signature = await self.sign(message)
        raw = encode_length(1) + signature + message
        return CreatedTx(
            id=base58.b58encode(signature).decode(),
            tx_data=base64.b64encode(raw).decode(),
        )

    async def get_public_key(self) -> str:
        if self._public_key is None:
            raise SigningError("no Solana public key configured", self.name)
        return base58.b58encode(self._public_key).decode()
