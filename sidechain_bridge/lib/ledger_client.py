"""Ledger-chain submission wrapper around xrpl-py's async client."""

from __future__ import annotations

from typing import Any

from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.asyncio.transaction import submit_and_wait
from xrpl.models.transactions import Transaction
from xrpl.wallet import Wallet

from sidechain_bridge.lib.logger import get_logger
from sidechain_bridge.lib.metrics import METRICS

logger = get_logger(__name__)

_SUCCESS_RESULT = "tesSUCCESS"


class LedgerSubmissionError(RuntimeError):
    """Represents a ledger transaction that failed or never validated."""

    def __init__(self, action: str, response: dict[str, Any] | Any) -> None:
        self.action = action
        self.response = response
        super().__init__(f"Ledger {action} failed: {response}")


class LedgerClient:
    """Autofill, sign and submit-and-wait for ledger transactions."""

    def __init__(self, rpc_url: str) -> None:
        self.rpc_url = rpc_url
        self._client = AsyncJsonRpcClient(rpc_url)

    async def submit(self, transaction: Transaction, wallet: Wallet) -> dict[str, Any]:
        """Submit ``transaction`` and return the validated result once it succeeds."""

        context = {"account": wallet.address, "rpc_url": self.rpc_url, "type": transaction.transaction_type.value}
        METRICS.increment("ledger.requests.submit_attempt")
        logger.info("ledger_submit_attempt", extra=context)
        try:
            response = await submit_and_wait(transaction, self._client, wallet)
        except Exception as exc:
            METRICS.increment("ledger.requests.submit_error")
            logger.exception("ledger_submit_error", extra=context)
            raise LedgerSubmissionError("submit", str(exc)) from exc

        result = response.result
        meta = result.get("meta")
        engine_result = meta.get("TransactionResult") if isinstance(meta, dict) else None
        if engine_result != _SUCCESS_RESULT:
            METRICS.increment("ledger.requests.submit_error")
            logger.error("ledger_submit_rejected", extra={**context, "engine_result": engine_result})
            raise LedgerSubmissionError("submit", engine_result or "missing transaction metadata")

        METRICS.increment("ledger.requests.submit_success")
        logger.info("ledger_submit_success", extra={**context, "tx_hash": result.get("hash")})
        return result
