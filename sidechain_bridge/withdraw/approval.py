"""One-time token approval that must succeed before any withdrawal runs."""

from __future__ import annotations

import asyncio
from enum import Enum

from sidechain_bridge.errors import ApprovalFailed, ApprovalVerificationFailed
from sidechain_bridge.lib.evm_client import ChainReceipt, DestinationChain
from sidechain_bridge.lib.logger import get_logger
from sidechain_bridge.lib.metrics import METRICS
from sidechain_bridge.withdraw import storage

logger = get_logger(__name__)

MAX_UINT256 = 2**256 - 1
# Allowances at or above this are treated as already unlimited.
APPROVAL_THRESHOLD = 2**128


class ApprovalState(str, Enum):
    UNCHECKED = "unchecked"
    CHECKING = "checking"
    APPROVED = "approved"
    FAILED = "failed"


class ApprovalGate:
    """Memoized approval flow shared by every request in the process.

    The first caller of :meth:`ensure_approved` (or :meth:`start`) launches a
    single task; everyone else awaits that same task. Once ``FAILED`` the gate
    stays failed until the process restarts.
    """

    def __init__(
        self,
        chain: DestinationChain,
        *,
        threshold: int = APPROVAL_THRESHOLD,
        approve_amount: int = MAX_UINT256,
    ) -> None:
        self._chain = chain
        self._threshold = threshold
        self._approve_amount = approve_amount
        self._state = ApprovalState.UNCHECKED
        self._task: asyncio.Task[None] | None = None
        self._error: ApprovalFailed | None = None
        self.approval_receipt: ChainReceipt | None = None

    @property
    def state(self) -> ApprovalState:
        return self._state

    @property
    def error(self) -> ApprovalFailed | None:
        return self._error

    def start(self) -> asyncio.Task[None]:
        """Launch the approval flow if it has not been launched yet."""

        if self._task is None:
            self._state = ApprovalState.CHECKING
            self._task = asyncio.create_task(self._run(), name="approval-gate")
            self._task.add_done_callback(self._consume_result)
        return self._task

    async def ensure_approved(self) -> None:
        """Wait for the shared approval outcome; raise ``ApprovalFailed`` on failure."""

        if self._state is ApprovalState.FAILED and self._error is not None:
            raise type(self._error)(self._error.message, details=self._error.details)
        task = self.start()
        # Shielded so a cancelled request cannot cancel the flow for everyone else.
        await asyncio.shield(task)

    async def _run(self) -> None:
        try:
            current = await self._chain.allowance()
            logger.info(
                "approval_allowance_checked",
                extra={"owner": self._chain.address, "allowance": str(current), "threshold": str(self._threshold)},
            )
            if current >= self._threshold:
                METRICS.increment("relay.approval.skipped")
                self._state = ApprovalState.APPROVED
                return

            METRICS.increment("relay.approval.submitted")
            with METRICS.timed("relay.approval.approve_call"):
                receipt = await self._chain.approve(self._approve_amount)
            self.approval_receipt = receipt
            self._record_approval(receipt)

            updated = await self._chain.allowance()
            if updated < self._threshold or updated <= current:
                raise ApprovalVerificationFailed(
                    "Allowance did not increase after approval",
                    details=f"before={current} after={updated}",
                )
        except ApprovalFailed as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            error = ApprovalFailed("Token approval failed", details=str(exc))
            self._fail(error)
            raise error from exc

        METRICS.increment("relay.approval.success")
        logger.info("approval_confirmed", extra={"owner": self._chain.address})
        self._state = ApprovalState.APPROVED

    def _record_approval(self, receipt: ChainReceipt) -> None:
        # Audit write failures are logged only; the on-chain allowance stands.
        try:
            storage.append_audit(
                {
                    "action": "token_approved",
                    "owner": self._chain.address,
                    "amount": str(self._approve_amount),
                    "tx_hash": receipt.transaction_hash,
                    "block_number": receipt.block_number,
                }
            )
        except OSError:
            METRICS.increment("relay.approval.audit_error")
            logger.exception("approval_audit_failed", extra={"tx_hash": receipt.transaction_hash})

    def _fail(self, error: ApprovalFailed) -> None:
        self._state = ApprovalState.FAILED
        self._error = error
        METRICS.increment("relay.approval.error")
        logger.error(
            "approval_failed",
            extra={"owner": self._chain.address, "error": error.message, "details": error.details},
        )

    @staticmethod
    def _consume_result(task: asyncio.Task[None]) -> None:
        # Marks the exception as retrieved when nobody is waiting on the gate yet.
        if not task.cancelled():
            task.exception()
