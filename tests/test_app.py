"""Tests for application wiring: health, metrics, rate limiting and settings."""

from __future__ import annotations

import json
import logging

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import ValidationError
from xrpl.wallet import Wallet

from sidechain_bridge.config import Settings, get_settings
from sidechain_bridge.lib.logger import JsonFormatter
from sidechain_bridge.lib.metrics import MetricsRegistry
from sidechain_bridge.main import create_app
from sidechain_bridge.withdraw.auth import sign_claim
from sidechain_bridge.withdraw.service import WithdrawalRelay

from conftest import NOW_MS

_REQUIRED_ENV = (
    "WITHDRAW_RELAYER_RPC_URL",
    "WITHDRAW_RELAYER_PRIVATE_KEY",
    "WITHDRAW_RELAYER_DESTINATION_CONTRACT_ADDRESS",
    "WITHDRAW_RELAYER_TOKEN_ADDRESS",
)


@pytest.mark.asyncio
async def test_health_reports_approval_state(async_client: AsyncClient, wallet: Wallet) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "data": {"status": "healthy", "approval": "unchecked"}}

    await async_client.post("/withdraw", json=sign_claim(wallet, "1", timestamp_ms=NOW_MS))

    response = await async_client.get("/health")
    assert response.json()["data"]["approval"] == "approved"


@pytest.mark.asyncio
async def test_metrics_endpoint_counts_requests(async_client: AsyncClient, wallet: Wallet) -> None:
    await async_client.post("/withdraw", json=sign_claim(wallet, "1", timestamp_ms=NOW_MS))
    await async_client.post("/withdraw", json={"account": wallet.address})

    response = await async_client.get("/metrics")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["counters"]["relay.withdraw.attempt"] == 2
    assert data["counters"]["relay.withdraw.success"] == 1
    assert data["counters"]["relay.withdraw.invalid_request"] == 1
    assert data["timings"]["relay.withdraw.chain_call"]["count"] == 1


@pytest.mark.asyncio
async def test_rate_limit_returns_429(relay: WithdrawalRelay) -> None:
    settings = get_settings().model_copy(update={"request_rate_limit_per_minute": 2})
    app = create_app(settings, relay=relay)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        statuses = [(await client.post("/withdraw", json={})).status_code for _ in range(3)]

    assert statuses == [400, 400, 429]


@pytest.mark.parametrize("missing", _REQUIRED_ENV)
def test_settings_require_chain_configuration(monkeypatch: pytest.MonkeyPatch, missing: str) -> None:
    monkeypatch.delenv(missing, raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)  # type: ignore[call-arg]


def test_settings_normalize_private_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WITHDRAW_RELAYER_PRIVATE_KEY", "AB" * 32)

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.private_key == "0x" + "ab" * 32
    assert settings.port == 3000
    assert settings.claim_binding == "account"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("WITHDRAW_RELAYER_PRIVATE_KEY", "0x1234"),
        ("WITHDRAW_RELAYER_DESTINATION_CONTRACT_ADDRESS", "ba4c" * 10),
        ("WITHDRAW_RELAYER_CLAIM_BINDING", "anyone"),
    ],
)
def test_settings_reject_bad_values(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)  # type: ignore[call-arg]


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord("relay", logging.INFO, __file__, 1, "relay_withdraw_attempt", None, None)
    record.account = "rExample"
    record.amount = 10**19

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "relay_withdraw_attempt"
    assert payload["level"] == "INFO"
    assert payload["account"] == "rExample"
    assert payload["amount"] == 10**19


def test_metrics_registry_records_timings() -> None:
    registry = MetricsRegistry()

    with registry.timed("chain_call"):
        pass
    registry.observe("chain_call", 2.0)

    summary = registry.timings()["chain_call"]
    assert summary["count"] == 2
    assert summary["max"] == 2.0
    assert summary["total"] >= 2.0

    registry.reset()
    assert registry.timings() == {}
