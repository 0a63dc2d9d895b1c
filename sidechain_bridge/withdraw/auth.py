"""Authentication of user-signed withdrawal claims.

A claim binds ``{account, requestedAmount, timestamp}`` to a ledger key pair.
The signer serializes those three fields as compact JSON, in exactly that
order, and signs the UTF-8 bytes with their ledger key. The relay rebuilds the
same bytes and checks, in order:

1. format of the account, amount, signature and public key;
2. freshness of the timestamp (five minute window, small future skew);
3. the signature over the canonical bytes;
4. that the public key derives to the claimed account.
"""

from __future__ import annotations

import hashlib
import json
import re
import time
from decimal import Decimal
from typing import Any, Literal

from xrpl.core import keypairs
from xrpl.core.addresscodec import is_valid_classic_address
from xrpl.wallet import Wallet

from sidechain_bridge.errors import (
    ExpiredClaim,
    InvalidRequest,
    InvalidSignature,
    SignerMismatch,
)
from sidechain_bridge.lib.amounts import NATIVE_DECIMALS
from sidechain_bridge.withdraw.schemas import AuthenticatedClaim, WithdrawalClaim

FRESHNESS_WINDOW_MS = 5 * 60 * 1000
CLOCK_SKEW_MS = 30 * 1000

ClaimBinding = Literal["account", "signer"]

_AMOUNT_RE = re.compile(r"^[0-9]+(\.[0-9]{1,%d})?$" % NATIVE_DECIMALS)
_PUBLIC_KEY_RE = re.compile(r"^(02|03|ED)[0-9A-F]{64}$")
_SIGNATURE_RE = re.compile(r"^[0-9A-F]{16,144}$")


def now_ms() -> int:
    return int(time.time() * 1000)


def canonical_message(account: str, requested_amount: str, timestamp: int) -> bytes:
    """Exact bytes a claim producer signs."""

    body = {"account": account, "requestedAmount": requested_amount, "timestamp": timestamp}
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def claim_digest(account: str, requested_amount: str, timestamp: int) -> str:
    """sha256 of the canonical message; identifies a claim independent of its signature encoding."""

    return hashlib.sha256(canonical_message(account, requested_amount, timestamp)).hexdigest()


def authenticate(
    claim: WithdrawalClaim,
    now: int,
    *,
    binding: ClaimBinding = "account",
) -> AuthenticatedClaim:
    """Run every gate against ``claim``; the first failure raises.

    With ``binding="signer"`` the withdrawal is credited to the address derived
    from the signing key instead of requiring it to equal ``claim.account``.
    """

    _validate_format(claim)
    _check_freshness(claim.timestamp, now)

    message = canonical_message(claim.account, claim.requested_amount, claim.timestamp)
    _verify_signature(message, claim.signature, claim.signer_public_key)

    signer_address = keypairs.derive_classic_address(claim.signer_public_key.upper())
    if binding == "account":
        if signer_address != claim.account:
            raise SignerMismatch("Signer public key does not own the withdrawal account")
        account = claim.account
    else:
        account = signer_address

    return AuthenticatedClaim(
        account=account,
        requested_amount=claim.requested_amount,
        timestamp=claim.timestamp,
    )


def sign_claim(
    wallet: Wallet,
    requested_amount: str,
    *,
    account: str | None = None,
    timestamp_ms: int | None = None,
) -> dict[str, Any]:
    """Produce the JSON body of a signed withdrawal claim for ``wallet``."""

    account = account or wallet.address
    timestamp = now_ms() if timestamp_ms is None else timestamp_ms
    message = canonical_message(account, requested_amount, timestamp)
    return {
        "account": account,
        "requestedAmount": requested_amount,
        "timestamp": timestamp,
        "signature": keypairs.sign(message, wallet.private_key),
        "signerPublicKey": wallet.public_key,
    }


def _validate_format(claim: WithdrawalClaim) -> None:
    if not is_valid_classic_address(claim.account):
        raise InvalidRequest("account must be a valid ledger classic address")

    if not _AMOUNT_RE.fullmatch(claim.requested_amount) or Decimal(claim.requested_amount) <= 0:
        raise InvalidRequest(
            f"requestedAmount must be a positive decimal with at most {NATIVE_DECIMALS} decimal places"
        )

    if not _PUBLIC_KEY_RE.fullmatch(claim.signer_public_key.upper()):
        raise InvalidRequest("signerPublicKey must be a 33-byte hex public key")

    if not _SIGNATURE_RE.fullmatch(claim.signature.upper()) or len(claim.signature) % 2:
        raise InvalidRequest("signature must be a hex string")


def _check_freshness(timestamp: int, now: int) -> None:
    age = now - timestamp
    if age > FRESHNESS_WINDOW_MS:
        raise ExpiredClaim("Withdrawal claim has expired")
    if age < -CLOCK_SKEW_MS:
        raise ExpiredClaim("Withdrawal claim timestamp is in the future")


def _verify_signature(message: bytes, signature: str, public_key: str) -> None:
    try:
        valid = keypairs.is_valid_message(message, bytes.fromhex(signature), public_key.upper())
    except Exception as exc:  # malformed DER or key material
        raise InvalidSignature("Signature verification failed") from exc
    if not valid:
        raise InvalidSignature("Signature verification failed")
