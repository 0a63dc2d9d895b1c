"""Withdrawal relay: authenticate a signed claim and call the bridge contract once."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from pydantic import ValidationError

from sidechain_bridge.config import Settings
from sidechain_bridge.errors import ChainCallFailed, InvalidRequest, RelayError, ReplayedClaim
from sidechain_bridge.lib.amounts import to_destination_units, to_native_units
from sidechain_bridge.lib.evm_client import DestinationChain
from sidechain_bridge.lib.logger import get_logger
from sidechain_bridge.lib.metrics import METRICS
from sidechain_bridge.withdraw import storage
from sidechain_bridge.withdraw.approval import ApprovalGate
from sidechain_bridge.withdraw.auth import (
    CLOCK_SKEW_MS,
    FRESHNESS_WINDOW_MS,
    ClaimBinding,
    authenticate,
    claim_digest,
    now_ms,
)
from sidechain_bridge.withdraw.replay import SeenClaimCache
from sidechain_bridge.withdraw.schemas import WithdrawalClaim, WithdrawalReceipt

logger = get_logger(__name__)


def parse_claim(raw: Any) -> WithdrawalClaim:
    """Validate the request body shape before any cryptographic work."""

    if not isinstance(raw, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        return WithdrawalClaim.model_validate(raw)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) or "body" for err in exc.errors()})
        raise InvalidRequest(
            "Missing or malformed fields: " + ", ".join(fields),
            details="; ".join(err["msg"] for err in exc.errors()),
        ) from exc


class WithdrawalRelay:
    """Owns the approval gate, replay cache and chain client for one process."""

    def __init__(
        self,
        chain: DestinationChain,
        *,
        gate: ApprovalGate | None = None,
        gas_fee_wei: int,
        chain_timeout_seconds: float,
        claim_binding: ClaimBinding = "account",
        seen_claims: SeenClaimCache | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.chain = chain
        self.gate = gate or ApprovalGate(chain)
        self.gas_fee_wei = gas_fee_wei
        self.chain_timeout_seconds = chain_timeout_seconds
        self.claim_binding = claim_binding
        self.seen_claims = seen_claims or SeenClaimCache((FRESHNESS_WINDOW_MS + CLOCK_SKEW_MS) / 1000)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, chain: DestinationChain) -> "WithdrawalRelay":
        return cls(
            chain,
            gas_fee_wei=settings.gas_fee_wei,
            chain_timeout_seconds=settings.chain_timeout_seconds,
            claim_binding=settings.claim_binding,
        )

    async def handle_withdraw(self, raw: Any) -> WithdrawalReceipt:
        METRICS.increment("relay.withdraw.attempt")
        try:
            return await self._process(raw)
        except RelayError as exc:
            METRICS.increment(f"relay.withdraw.{exc.code}")
            logger.warning(
                "relay_withdraw_rejected",
                extra={"code": exc.code, "error": exc.message, "details": exc.details},
            )
            raise

    async def _process(self, raw: Any) -> WithdrawalReceipt:
        claim = parse_claim(raw)

        await self.gate.ensure_approved()

        authenticated = authenticate(claim, self._clock(), binding=self.claim_binding)
        # Keyed on the signed content; equivalent signature encodings share one entry.
        if not self.seen_claims.reserve(claim_digest(claim.account, claim.requested_amount, claim.timestamp)):
            raise ReplayedClaim("Withdrawal claim has already been processed")

        drops = to_native_units(authenticated.requested_amount)
        amount = to_destination_units(drops)
        context = {
            "account": authenticated.account,
            "requested_amount": authenticated.requested_amount,
            "drops": drops,
            "destination_amount": str(amount),
        }
        logger.info("relay_withdraw_attempt", extra=context)

        try:
            with METRICS.timed("relay.withdraw.chain_call"):
                receipt = await asyncio.wait_for(
                    self.chain.withdraw(authenticated.account.encode("utf-8"), amount, value=self.gas_fee_wei),
                    timeout=self.chain_timeout_seconds,
                )
        except asyncio.TimeoutError as exc:
            raise ChainCallFailed(
                "Failed to process withdraw request",
                details=f"withdraw call timed out after {self.chain_timeout_seconds}s",
            ) from exc
        except Exception as exc:
            raise ChainCallFailed("Failed to process withdraw request", details=str(exc)) from exc

        result = WithdrawalReceipt(
            transaction_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            gas_used=str(receipt.gas_used),
        )
        storage.append_audit(
            {
                "action": "withdraw_submitted",
                **context,
                "tx_hash": result.transaction_hash,
                "block_number": result.block_number,
                "gas_used": result.gas_used,
            }
        )
        METRICS.increment("relay.withdraw.success")
        logger.info("relay_withdraw_success", extra={**context, "tx_hash": result.transaction_hash})
        return result
