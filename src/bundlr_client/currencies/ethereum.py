"""
EVM adapter covering Ethereum and the EVM-compatible networks the bundler
accepts. Keys are secp256k1 hex private keys handled by ``eth_account``;
the chain is reached over plain JSON-RPC.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account._utils.legacy_transactions import (
    encode_transaction,
    serializable_unsigned_transaction_from_dict,
)
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_utils import keccak, to_checksum_address

from ..errors import NotFoundError, SigningError
from ..models import CreatedTx, Tx
from .base import AmountLike, Base, BaseCurrency, CurrencyConfig
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)

ETHEREUM_BASE = Base("wei", 10**18)
TRANSFER_GAS = 21000


@dataclass(frozen=True)
class EVMNetwork:
    """Defaults for one EVM network."""
    name: str
    chain_id: int
    rpc_url: str
    ticker: str
    min_confirm: int = 5


EVM_NETWORKS: Dict[str, EVMNetwork] = {
    "ethereum": EVMNetwork("ethereum", 1, "https://cloudflare-eth.com", "ETH"),
    "matic": EVMNetwork("matic", 137, "https://polygon-rpc.com", "MATIC"),
    "bnb": EVMNetwork("bnb", 56, "https://bsc-dataseed.binance.org", "BNB"),
    "avalanche": EVMNetwork("avalanche", 43114, "https://api.avax.network/ext/bc/C/rpc", "AVAX"),
    "fantom": EVMNetwork("fantom", 250, "https://rpc.ftm.tools", "FTM"),
    "arbitrum": EVMNetwork("arbitrum", 42161, "https://arb1.arbitrum.io/rpc", "ETH", min_confirm=1),
}


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


class EthereumCurrency(BaseCurrency):
    """Adapter for Ethereum and EVM-compatible chains."""

    DEFAULT_BASE = ETHEREUM_BASE
    DEFAULT_MIN_CONFIRM = 5
    NEEDS_FEE = True
    IS_SLOW = True

    signature_type = 3

    def __init__(self, config: CurrencyConfig):
        super().__init__(config)
        self._network = EVM_NETWORKS.get(config.name, EVM_NETWORKS["ethereum"])
        self._chain_id: Optional[int] = None
        self._private_key: Optional[keys.PrivateKey] = None
        self._public_key: Optional[bytes] = None
        self._load_wallet(config.wallet)
        if self._public_key is not None:
            self.address = self.owner_to_address(self._public_key)

    def _load_wallet(self, wallet: Any) -> None:
        if wallet is None:
            return
        if not isinstance(wallet, (str, bytes)):
            raise SigningError("EVM wallet must be a hex private key or public key", self.name)
        raw = _hex_to_bytes(wallet) if isinstance(wallet, str) else wallet
        if len(raw) == 32:
            self._private_key = keys.PrivateKey(raw)
            self._public_key = b"\x04" + self._private_key.public_key.to_bytes()
        elif len(raw) in (64, 65):
            # Public key only, for use with a delegated signer
            self._public_key = raw if len(raw) == 65 else b"\x04" + raw
        else:
            raise SigningError(f"unexpected EVM key length {len(raw)}", self.name)

    def _get_provider(self) -> JsonRpcClient:
        return self._provider.get(
            lambda: JsonRpcClient(
                self.name,
                self.provider_url or self._network.rpc_url,
                transport=self.config.opts.get("provider_transport"),
            )
        )

    async def ready(self) -> None:
        """Resolve the chain id the provider serves; needed to sign transfers."""
        if self._chain_id is None:
            self._chain_id = int(await self._get_provider().call("eth_chainId"), 16)
            if self._chain_id != self._network.chain_id:
                logger.warning(
                    f"{self.name} provider reports chain id {self._chain_id}, "
                    f"expected {self._network.chain_id}"
                )

    async def get_tx(self, tx_id: str) -> Tx:
        rpc = self._get_provider()
        tx = await rpc.call("eth_getTransactionByHash", [tx_id])
        if tx is None:
            raise NotFoundError(self.name, tx_id)

        receipt = await rpc.call("eth_getTransactionReceipt", [tx_id])
        pending = receipt is None or tx.get("blockNumber") is None
        confirmed = False
        if not pending and int(receipt.get("status", "0x1"), 16) == 1:
            current = await self.get_current_height()
            confirmations = current - int(receipt["blockNumber"], 16) + 1
            confirmed = confirmations >= self.min_confirm

        return Tx(
            from_address=tx.get("from"),
            to_address=tx.get("to"),
            amount=Decimal(int(tx.get("value", "0x0"), 16)),
            pending=pending,
            confirmed=confirmed,
        )

    def owner_to_address(self, owner: Any) -> str:
        raw = _hex_to_bytes(owner) if isinstance(owner, str) else bytes(owner)
        if len(raw) == 65:
            raw = raw[1:]
        return to_checksum_address(keccak(raw)[-20:])

    def _sign_with_key(self, data: bytes) -> bytes:
        if self._private_key is None:
            raise SigningError("EVM wallet has no private key", self.name)
        signed = Account.sign_message(encode_defunct(primitive=data), private_key=self._private_key.to_bytes())
        return bytes(signed.signature)

    async def verify(self, public_key: Any, data: bytes, signature: bytes) -> bool:
        try:
            recovered = Account.recover_message(encode_defunct(primitive=data), signature=signature)
        except Exception:
            return False
        return recovered == self.owner_to_address(public_key)

    async def get_current_height(self) -> int:
        return int(await self._get_provider().call("eth_blockNumber"), 16)

    async def _gas_price(self) -> int:
        return int(await self._get_provider().call("eth_gasPrice"), 16)

    async def get_fee(self, amount: AmountLike, to: Optional[str] = None) -> Decimal:
        fee = Decimal(await self._gas_price()) * TRANSFER_GAS
        return fee.to_integral_value(rounding=ROUND_CEILING)

    async def send_tx(self, data: Any) -> str:
        return await self._get_provider().call("eth_sendRawTransaction", [data])

    async def create_tx(self, amount: AmountLike, to: str, fee: Optional[str] = None) -> CreatedTx:
        if self._private_key is None and self.signing_function is None:
            raise SigningError("EVM wallet has no private key", self.name)
        await self.ready()
        rpc = self._get_provider()

        if fee is not None:
            gas_price = int((Decimal(fee) / TRANSFER_GAS).to_integral_value(rounding=ROUND_CEILING))
        else:
            gas_price = await self._gas_price()
        nonce = int(await rpc.call("eth_getTransactionCount", [self.address, "pending"]), 16)

        transaction = {
            "to": to_checksum_address(to),
            "value": int(Decimal(amount)),
            "gas": TRANSFER_GAS,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self._chain_id,
        }
        if self._private_key is None:
            raw = await self._sign_delegated(transaction)
        else:
            raw = bytes(Account.sign_transaction(transaction, self._private_key.to_bytes()).raw_transaction)
        return CreatedTx(id="0x" + keccak(raw).hex(), tx_data="0x" + raw.hex())

    async def _sign_delegated(self, transaction: dict[str, Any]) -> bytes:
        """
        Sign a legacy transfer through the delegated signer.

        The signer receives the 32-byte EIP-155 signing hash and must return
        a 65-byte recoverable signature ``r || s || v`` (v in 0, 1, 27 or 28).
        """
        unsigned = serializable_unsigned_transaction_from_dict(transaction)
        signature = await self.sign(bytes(unsigned.hash()))
        if len(signature) != 65:
            raise SigningError(f"expected a 65-byte signature, got {len(signature)} bytes", self.name)
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:64], "big")
        recovery = signature[64] - 27 if signature[64] >= 27 else signature[64]
        if recovery not in (0, 1):
            raise SigningError(f"unexpected recovery id {signature[64]}", self.name)
        v = recovery + 35 + 2 * transaction["chainId"]
        return bytes(encode_transaction(unsigned, vrs=(v, r, s)))

    async def get_public_key(self) -> str:
        if self._public_key is None:
            raise SigningError("no EVM public key configured", self.name)
        return "0x" + self._public_key.hex()
