"""Sidechain adapter for the bridge contract and its ERC-20 token, built on web3.py."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from sidechain_bridge.lib.logger import get_logger
from sidechain_bridge.lib.metrics import METRICS

logger = get_logger(__name__)

WITHDRAW_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "withdraw",
        "stateMutability": "payable",
        "inputs": [
            {"name": "sourceAddress", "type": "bytes"},
            {"name": "requestedAmount", "type": "uint256"},
        ],
        "outputs": [],
    }
]

ERC20_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "allowance",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
]


@dataclass(frozen=True)
class ChainReceipt:
    """Subset of a mined transaction receipt reported back to callers."""

    transaction_hash: str
    block_number: int
    gas_used: int


class DestinationChain(Protocol):
    """Operations the relay needs from the sidechain."""

    @property
    def address(self) -> str: ...

    async def allowance(self) -> int: ...

    async def approve(self, amount: int) -> ChainReceipt: ...

    async def withdraw(self, source_address: bytes, amount: int, *, value: int) -> ChainReceipt: ...


class DestinationChainClient:
    """Signs and submits bridge-contract and token calls from the relayer account.

    Nonce allocation, signing and broadcast are serialized by a lock so that
    concurrent withdrawals never reuse a nonce; receipt polling runs outside
    the lock.
    """

    def __init__(
        self,
        *,
        rpc_url: str,
        private_key: str,
        contract_address: str,
        token_address: str,
        request_timeout: float = 60.0,
        receipt_timeout: float = 120.0,
    ) -> None:
        self._rpc_url = rpc_url
        self._receipt_timeout = receipt_timeout
        self._web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self._account: LocalAccount = Account.from_key(private_key)
        self._contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self._contract = self._web3.eth.contract(address=self._contract_address, abi=WITHDRAW_ABI)
        self._token = self._web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token_address),
            abi=ERC20_ABI,
        )
        self._send_lock = asyncio.Lock()
        self._chain_id: int | None = None

    @property
    def address(self) -> str:
        return self._account.address

    async def allowance(self) -> int:
        """Token allowance granted by the relayer account to the bridge contract."""

        try:
            value = await self._token.functions.allowance(self.address, self._contract_address).call()
        except Exception as exc:
            METRICS.increment("evm.requests.allowance_error")
            logger.exception("evm_allowance_error", extra={"owner": self.address, "rpc_url": self._rpc_url})
            raise ChainClientError("allowance", str(exc)) from exc
        return int(value)

    async def approve(self, amount: int) -> ChainReceipt:
        return await self._transact(
            "approve",
            self._token.functions.approve(self._contract_address, amount),
            extra={"spender": self._contract_address, "amount": str(amount)},
        )

    async def withdraw(self, source_address: bytes, amount: int, *, value: int) -> ChainReceipt:
        return await self._transact(
            "withdraw",
            self._contract.functions.withdraw(source_address, amount),
            value=value,
            extra={"source_address": source_address.decode("utf-8", "replace"), "amount": str(amount)},
        )

    async def _transact(
        self,
        action: str,
        call: Any,
        *,
        value: int = 0,
        extra: dict[str, Any] | None = None,
    ) -> ChainReceipt:
        context = {"action": action, "from": self.address, "value": str(value), **(extra or {})}
        METRICS.increment(f"evm.requests.{action}_attempt")
        logger.info("evm_transaction_attempt", extra=context)

        try:
            async with self._send_lock:
                nonce = await self._web3.eth.get_transaction_count(self.address, "pending")
                tx = await call.build_transaction(
                    {
                        "from": self.address,
                        "nonce": nonce,
                        "value": value,
                        "chainId": await self._get_chain_id(),
                    }
                )
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._web3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info("evm_transaction_submitted", extra={**context, "tx_hash": AsyncWeb3.to_hex(tx_hash)})
            receipt = await self._web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout)
        except Exception as exc:
            METRICS.increment(f"evm.requests.{action}_error")
            logger.exception("evm_transaction_error", extra=context)
            raise ChainClientError(action, str(exc)) from exc

        result = ChainReceipt(
            transaction_hash=AsyncWeb3.to_hex(receipt["transactionHash"]),
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt["gasUsed"]),
        )
        if receipt.get("status") != 1:
            METRICS.increment(f"evm.requests.{action}_error")
            logger.error("evm_transaction_reverted", extra={**context, "tx_hash": result.transaction_hash})
            raise ChainClientError(action, f"transaction {result.transaction_hash} reverted")

        METRICS.increment(f"evm.requests.{action}_success")
        logger.info(
            "evm_transaction_success",
            extra={**context, "tx_hash": result.transaction_hash, "block_number": result.block_number},
        )
        return result

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._web3.eth.chain_id)
        return self._chain_id


class ChainClientError(RuntimeError):
    """Represents a failed call against the sidechain."""

    def __init__(self, action: str, response: Any) -> None:
        self.action = action
        self.response = response
        super().__init__(f"Sidechain {action} failed: {response}")
