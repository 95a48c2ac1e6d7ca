"""
Tests for funding and withdrawal orchestration.
"""
from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from bundlr_client.api import Api
from bundlr_client.currencies import get_currency
from bundlr_client.deep_hash import deep_hash
from bundlr_client.errors import ChainQueryError, TransportError, UnsupportedCurrencyError, ValidationError
from bundlr_client.fund import Fund
from bundlr_client.models import CreatedTx, Tx
from bundlr_client.utils import Utils


@pytest.fixture
def arweave(arweave_jwk):
    return get_currency("arweave", arweave_jwk)


def _funder(currency, bundler, bundler_url) -> Fund:
    api = Api(bundler_url, transport=bundler.transport)
    return Fund(Utils(api, currency, poll_interval=3.0, poll_attempts=15))


def _stub_chain(monkeypatch, currency, calls, fee="1000", created_id="tx-123", confirmed=True):
    async def get_fee(amount, to=None):
        calls.append(("get_fee", amount, to))
        return Decimal(fee)

    async def create_tx(amount, to, fee=None):
        calls.append(("create_tx", amount, to, fee))
        return CreatedTx(id=created_id, tx_data={"signed": True})

    async def send_tx(data):
        calls.append(("send_tx", data))
        return "broadcast-id"

    async def get_tx(tx_id):
        calls.append(("get_tx", tx_id))
        return Tx(pending=not confirmed, confirmed=confirmed)

    monkeypatch.setattr(currency, "get_fee", get_fee)
    monkeypatch.setattr(currency, "create_tx", create_tx)
    monkeypatch.setattr(currency, "send_tx", send_tx)
    monkeypatch.setattr(currency, "get_tx", get_tx)


class TestFund:
    """Tests for the funding protocol."""

    async def test_fund_runs_steps_in_order(self, arweave, bundler, bundler_url, sleeps, monkeypatch):
        """Should quote, create, broadcast, poll, then notify the bundler."""
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls)
        bundler.add("GET", "/info", json={"addresses": {"arweave": "bundler-ar"}})
        bundler.add("POST", "/account/balance/arweave", status_code=202, json={"confirmed": False})

        result = await _funder(arweave, bundler, bundler_url).fund(5000)

        assert [c[0] for c in calls] == ["get_fee", "create_tx", "send_tx", "get_tx"]
        assert calls[0][2] == "bundler-ar"
        assert calls[1] == ("create_tx", Decimal(5000), "bundler-ar", "1000")
        assert bundler.paths() == ["GET /info", "POST /account/balance/arweave"]
        assert json.loads(bundler.requests[-1].content) == {"tx_id": "tx-123"}
        assert result.id == "tx-123"
        assert result.quantity == "5000"
        assert result.reward == "1000"
        assert result.target == "bundler-ar"

    async def test_fee_multiplier_rounds_up(self, arweave, bundler, bundler_url, sleeps, monkeypatch):
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls, fee="1001")
        bundler.add("GET", "/info", json={"addresses": {"arweave": "bundler-ar"}})
        bundler.add("POST", "/account/balance/arweave", json={})

        result = await _funder(arweave, bundler, bundler_url).fund(1, multiplier=1.1)

        assert result.reward == "1102"

    async def test_rejects_fractional_amount(self, arweave, bundler, bundler_url, monkeypatch):
        """Should fail before touching the bundler or the chain."""
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls)

        with pytest.raises(ValidationError):
            await _funder(arweave, bundler, bundler_url).fund("10.5")

        assert calls == []
        assert bundler.requests == []

    @pytest.mark.parametrize("amount", [0, -5, "abc", "Infinity", "-Infinity", "NaN", "sNaN"])
    async def test_rejects_invalid_amounts(self, arweave, bundler, bundler_url, amount):
        with pytest.raises(ValidationError):
            await _funder(arweave, bundler, bundler_url).fund(amount)

    async def test_unsupported_currency_stops_early(self, arweave, bundler, bundler_url, monkeypatch):
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls)
        bundler.add("GET", "/info", json={"addresses": {"solana": "x"}})

        with pytest.raises(UnsupportedCurrencyError):
            await _funder(arweave, bundler, bundler_url).fund(100)

        assert calls == []

    async def test_create_failure_propagates(self, arweave, bundler, bundler_url, monkeypatch):
        """Should not broadcast when building the transfer fails."""
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls)
        monkeypatch.setattr(arweave, "create_tx", AsyncMock(side_effect=ChainQueryError("arweave", "no anchor")))
        bundler.add("GET", "/info", json={"addresses": {"arweave": "bundler-ar"}})

        with pytest.raises(ChainQueryError):
            await _funder(arweave, bundler, bundler_url).fund(100)

        assert "send_tx" not in [c[0] for c in calls]

    async def test_unconfirmed_poll_does_not_fail(self, arweave, bundler, bundler_url, sleeps, monkeypatch):
        """Should still notify the bundler when polling times out."""
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls, confirmed=False)
        bundler.add("GET", "/info", json={"addresses": {"arweave": "bundler-ar"}})
        bundler.add("POST", "/account/balance/arweave", json={})

        result = await _funder(arweave, bundler, bundler_url).fund(100)

        assert len(sleeps) == 15
        assert result.id == "tx-123"

    async def test_malformed_provider_reply_still_notifies(
        self, arweave_jwk, bundler, bundler_url, gateway, sleeps, monkeypatch
    ):
        """Should notify the bundler even when every confirmation poll gets garbage."""
        arweave = get_currency(
            "arweave", arweave_jwk, provider_url="https://gateway.test",
            opts={"provider_transport": gateway.transport},
        )
        monkeypatch.setattr(arweave, "get_fee", AsyncMock(return_value=Decimal(1000)))
        monkeypatch.setattr(arweave, "create_tx", AsyncMock(return_value=CreatedTx(id="tx-123", tx_data={})))
        monkeypatch.setattr(arweave, "send_tx", AsyncMock(return_value=None))
        gateway.add("GET", "/tx/tx-123/status", text="<html>gateway</html>")
        bundler.add("GET", "/info", json={"addresses": {"arweave": "bundler-ar"}})
        bundler.add("POST", "/account/balance/arweave", json={})

        result = await _funder(arweave, bundler, bundler_url).fund(100)

        assert result.id == "tx-123"
        assert bundler.paths() == ["GET /info", "POST /account/balance/arweave"]
        assert len(gateway.requests) == 15

    async def test_notification_failure_surfaces(self, arweave, bundler, bundler_url, sleeps, monkeypatch):
        """Should raise when the bundler does not acknowledge the payment."""
        calls: list = []
        _stub_chain(monkeypatch, arweave, calls)
        bundler.add("GET", "/info", json={"addresses": {"arweave": "bundler-ar"}})
        bundler.add("POST", "/account/balance/arweave", status_code=400, text="Tx not found")

        with pytest.raises(TransportError, match="tx-123"):
            await _funder(arweave, bundler, bundler_url).fund(100)

    async def test_resubmit_notification(self, arweave, bundler, bundler_url):
        """Should allow retrying the notification with a known tx id."""
        bundler.add("POST", "/account/balance/arweave", status_code=202, json={})

        await _funder(arweave, bundler, bundler_url).submit_fund_transaction("tx-999")

        assert json.loads(bundler.requests[0].content) == {"tx_id": "tx-999"}

    async def test_fast_currency_skips_fee_and_poll(self, solana_secret_key, bundler, bundler_url, sleeps, monkeypatch):
        """Should skip the fee quote and polling, and take the id from the broadcast."""
        solana = get_currency("solana", solana_secret_key)
        calls: list = []
        _stub_chain(monkeypatch, solana, calls, created_id=None)
        bundler.add("GET", "/info", json={"addresses": {"solana": "bundler-sol"}})
        bundler.add("POST", "/account/balance/solana", json={})

        result = await _funder(solana, bundler, bundler_url).fund(100)

        assert [c[0] for c in calls] == ["create_tx", "send_tx"]
        assert calls[0][3] is None
        assert sleeps == []
        assert result.id == "broadcast-id"
        assert result.reward == "0"


class TestWithdraw:
    """Tests for signed withdrawal requests."""

    async def test_withdraw_balance(self, arweave, arweave_jwk, bundler, bundler_url):
        """Should sign currency, amount and a fresh nonce."""
        bundler.add("GET", "/account/withdrawals/arweave", json=3)
        bundler.add("POST", "/account/withdraw", json={"tx_id": "withdraw-1"})

        result = await _funder(arweave, bundler, bundler_url).withdraw_balance(1000)

        body = json.loads(bundler.requests[-1].content)
        assert body["publicKey"] == arweave_jwk["n"]
        assert body["currency"] == "arweave"
        assert body["amount"] == "1000"
        assert body["nonce"] == 3
        assert body["sigType"] == 1
        payload = deep_hash([b"arweave", b"1000", b"3"])
        assert await arweave.verify(arweave_jwk["n"], payload, bytes.fromhex(body["signature"]))
        assert result.nonce == 3
        assert result.status == 200

    async def test_withdraw_rejected(self, arweave, bundler, bundler_url):
        bundler.add("GET", "/account/withdrawals/arweave", json=4)
        bundler.add("POST", "/account/withdraw", status_code=400, text="Insufficient balance")

        with pytest.raises(TransportError, match="Withdrawing balance"):
            await _funder(arweave, bundler, bundler_url).withdraw_balance(1000)
