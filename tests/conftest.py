"""Pytest fixtures for the bridge client and withdrawal relayer tests."""

from collections.abc import AsyncIterator, Iterator
import asyncio
import os
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from xrpl.constants import CryptoAlgorithm
from xrpl.wallet import Wallet

os.environ.setdefault("WITHDRAW_RELAYER_RPC_URL", "http://127.0.0.1:8545")
os.environ.setdefault("WITHDRAW_RELAYER_PRIVATE_KEY", "0x4c0883a69102937d6231471b5dbb6204fe512961708279f2e3e8a5d4b8e3e0a1")
os.environ.setdefault("WITHDRAW_RELAYER_DESTINATION_CONTRACT_ADDRESS", "0x" + "ba4c" * 10)
os.environ.setdefault("WITHDRAW_RELAYER_TOKEN_ADDRESS", "0x" + "70ce" * 10)
os.environ.setdefault("XRPL_MULTISIG_ADDRESS", "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh")

_STORAGE_PATH = Path(__file__).resolve().parent / "__storage"
os.environ.setdefault("STORAGE_DIR", str(_STORAGE_PATH))
_STORAGE_PATH.mkdir(parents=True, exist_ok=True)

from sidechain_bridge.config import get_client_settings, get_settings
from sidechain_bridge.lib.evm_client import ChainReceipt
from sidechain_bridge.lib.metrics import METRICS
from sidechain_bridge.main import create_app
from sidechain_bridge.withdraw.approval import APPROVAL_THRESHOLD
from sidechain_bridge.withdraw.service import WithdrawalRelay

NOW_MS = 1_700_000_000_000
RELAYER_ADDRESS = "0x" + "5e1f" * 10


class FakeClock:
    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


class FakeChain:
    """In-memory stand-in for the sidechain contract and token."""

    def __init__(self, allowance: int = 0) -> None:
        self.current_allowance = allowance
        self.approve_calls: list[int] = []
        self.withdraw_calls: list[tuple[bytes, int, int]] = []
        self.approve_release: asyncio.Event | None = None
        self.approve_error: Exception | None = None
        self.withdraw_error: Exception | None = None
        self.withdraw_delay: float = 0.0
        self.grant_on_approve = True
        self._block = 100

    @property
    def address(self) -> str:
        return RELAYER_ADDRESS

    async def allowance(self) -> int:
        await asyncio.sleep(0)
        return self.current_allowance

    async def approve(self, amount: int) -> ChainReceipt:
        self.approve_calls.append(amount)
        if self.approve_release is not None:
            await self.approve_release.wait()
        if self.approve_error is not None:
            raise self.approve_error
        if self.grant_on_approve:
            self.current_allowance = amount
        return self._receipt("a")

    async def withdraw(self, source_address: bytes, amount: int, *, value: int) -> ChainReceipt:
        self.withdraw_calls.append((source_address, amount, value))
        if self.withdraw_delay:
            await asyncio.sleep(self.withdraw_delay)
        if self.withdraw_error is not None:
            raise self.withdraw_error
        return self._receipt("b")

    def _receipt(self, marker: str) -> ChainReceipt:
        self._block += 1
        return ChainReceipt(
            transaction_hash="0x" + marker * 4 + f"{self._block:060x}",
            block_number=self._block,
            gas_used=21_000 + self._block,
        )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def chain() -> FakeChain:
    """Chain whose allowance is already above the approval threshold."""

    return FakeChain(allowance=APPROVAL_THRESHOLD)


@pytest.fixture()
def relay(chain: FakeChain, clock: FakeClock) -> WithdrawalRelay:
    settings = get_settings()
    return WithdrawalRelay(
        chain,
        gas_fee_wei=settings.gas_fee_wei,
        chain_timeout_seconds=5.0,
        clock=clock,
    )


@pytest.fixture()
def app(relay: WithdrawalRelay) -> FastAPI:
    """Return a relayer app wired to the fake chain."""

    return create_app(get_settings(), relay=relay)


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an `httpx.AsyncClient` bound to the FastAPI app."""

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture(scope="session")
def wallet() -> Wallet:
    return Wallet.create(algorithm=CryptoAlgorithm.SECP256K1)


@pytest.fixture(scope="session")
def other_wallet() -> Wallet:
    return Wallet.create(algorithm=CryptoAlgorithm.SECP256K1)


@pytest.fixture()
def client_settings():
    return get_client_settings()


@pytest.fixture(autouse=True)
def clean_storage() -> Iterator[None]:
    """Ensure the storage directory is empty before and after each test."""

    for child in _STORAGE_PATH.glob("*"):
        if child.is_file():
            child.unlink()
    yield
    for child in _STORAGE_PATH.glob("*"):
        if child.is_file():
            child.unlink()


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    METRICS.reset()
    yield
    METRICS.reset()
