"""Error taxonomy surfaced at the withdrawal relay boundary."""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for errors converted into structured HTTP responses."""

    status_code: int = 500
    code: str = "relay_error"

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InvalidRequest(RelayError):
    """Malformed or missing request fields."""

    status_code = 400
    code = "invalid_request"


class InvalidAmount(InvalidRequest):
    """Amount is not a usable numeric string."""

    code = "invalid_amount"


class AuthError(RelayError):
    """Claim failed authentication; the caller must sign a fresh claim."""

    status_code = 401
    code = "auth_error"


class InvalidSignature(AuthError):
    code = "invalid_signature"


class SignerMismatch(AuthError):
    code = "signer_mismatch"


class ExpiredClaim(AuthError):
    code = "expired_claim"


class ReplayedClaim(RelayError):
    """Claim was already honored within its freshness window."""

    status_code = 409
    code = "replayed_claim"


class RateLimited(RelayError):
    status_code = 429
    code = "rate_limited"


class ApprovalFailed(RelayError):
    """Token approval precondition is unmet; no withdrawal can proceed."""

    status_code = 500
    code = "approval_failed"


class ApprovalVerificationFailed(ApprovalFailed):
    """Allowance did not reach the threshold after the approval transaction."""

    code = "approval_verification_failed"


class ChainCallFailed(RelayError):
    """Destination-chain submission or confirmation failed."""

    status_code = 500
    code = "chain_call_failed"
