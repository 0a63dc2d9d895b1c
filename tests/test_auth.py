"""Tests for withdrawal claim authentication."""

from __future__ import annotations

import json

import pytest
from xrpl.core import keypairs
from xrpl.wallet import Wallet

from sidechain_bridge.errors import ExpiredClaim, InvalidRequest, InvalidSignature, SignerMismatch
from sidechain_bridge.withdraw.auth import (
    CLOCK_SKEW_MS,
    FRESHNESS_WINDOW_MS,
    authenticate,
    canonical_message,
    sign_claim,
)
from sidechain_bridge.withdraw.schemas import WithdrawalClaim

from conftest import NOW_MS


def _claim(body: dict) -> WithdrawalClaim:
    return WithdrawalClaim.model_validate(body)


def test_canonical_message_is_compact_ordered_json() -> None:
    message = canonical_message("rAlice", "10", 1700000000000)
    assert message == b'{"account":"rAlice","requestedAmount":"10","timestamp":1700000000000}'


@pytest.mark.parametrize("amount", ["10", "0.5", "1.000001", "250000"])
def test_valid_claim_authenticates(wallet: Wallet, amount: str) -> None:
    body = sign_claim(wallet, amount, timestamp_ms=NOW_MS)

    result = authenticate(_claim(body), NOW_MS + 1_000)

    assert result.account == wallet.address
    assert result.requested_amount == amount
    assert result.timestamp == NOW_MS


def test_claim_at_window_edge_is_still_fresh(wallet: Wallet) -> None:
    body = sign_claim(wallet, "1", timestamp_ms=NOW_MS)
    assert authenticate(_claim(body), NOW_MS + FRESHNESS_WINDOW_MS).account == wallet.address


@pytest.mark.parametrize("age_ms", [FRESHNESS_WINDOW_MS + 1, 6 * 60 * 1000, 24 * 60 * 60 * 1000])
def test_expired_claim_rejected_even_with_valid_signature(wallet: Wallet, age_ms: int) -> None:
    body = sign_claim(wallet, "10", timestamp_ms=NOW_MS)

    with pytest.raises(ExpiredClaim):
        authenticate(_claim(body), NOW_MS + age_ms)


def test_expired_claim_rejected_with_invalid_signature(wallet: Wallet, other_wallet: Wallet) -> None:
    body = sign_claim(wallet, "10", timestamp_ms=NOW_MS)
    body["signature"] = sign_claim(other_wallet, "10", timestamp_ms=NOW_MS)["signature"]

    with pytest.raises(ExpiredClaim):
        authenticate(_claim(body), NOW_MS + FRESHNESS_WINDOW_MS + 1)


def test_future_claim_beyond_skew_rejected(wallet: Wallet) -> None:
    body = sign_claim(wallet, "10", timestamp_ms=NOW_MS + CLOCK_SKEW_MS + 1)

    with pytest.raises(ExpiredClaim):
        authenticate(_claim(body), NOW_MS)

    small_skew = sign_claim(wallet, "10", timestamp_ms=NOW_MS + CLOCK_SKEW_MS)
    assert authenticate(_claim(small_skew), NOW_MS).account == wallet.address


def test_signature_over_different_field_order_rejected(wallet: Wallet) -> None:
    reordered = json.dumps(
        {"timestamp": NOW_MS, "requestedAmount": "10", "account": wallet.address},
        separators=(",", ":"),
    ).encode("utf-8")
    body = {
        "account": wallet.address,
        "requestedAmount": "10",
        "timestamp": NOW_MS,
        "signature": keypairs.sign(reordered, wallet.private_key),
        "signerPublicKey": wallet.public_key,
    }

    with pytest.raises(InvalidSignature):
        authenticate(_claim(body), NOW_MS)


def test_signature_over_spaced_json_rejected(wallet: Wallet) -> None:
    spaced = json.dumps({"account": wallet.address, "requestedAmount": "10", "timestamp": NOW_MS}).encode("utf-8")
    body = sign_claim(wallet, "10", timestamp_ms=NOW_MS)
    body["signature"] = keypairs.sign(spaced, wallet.private_key)

    with pytest.raises(InvalidSignature):
        authenticate(_claim(body), NOW_MS)


def test_tampered_amount_rejected(wallet: Wallet) -> None:
    body = sign_claim(wallet, "1", timestamp_ms=NOW_MS)
    body["requestedAmount"] = "1000"

    with pytest.raises(InvalidSignature):
        authenticate(_claim(body), NOW_MS)


def test_garbage_signature_rejected(wallet: Wallet) -> None:
    body = sign_claim(wallet, "1", timestamp_ms=NOW_MS)
    body["signature"] = "00" * 70

    with pytest.raises(InvalidSignature):
        authenticate(_claim(body), NOW_MS)


def test_signer_must_own_account(wallet: Wallet, other_wallet: Wallet) -> None:
    body = sign_claim(other_wallet, "10", account=wallet.address, timestamp_ms=NOW_MS)

    with pytest.raises(SignerMismatch):
        authenticate(_claim(body), NOW_MS)


def test_signer_binding_credits_signer_address(wallet: Wallet, other_wallet: Wallet) -> None:
    body = sign_claim(other_wallet, "10", account=wallet.address, timestamp_ms=NOW_MS)

    result = authenticate(_claim(body), NOW_MS, binding="signer")

    assert result.account == other_wallet.address


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("account", "not-an-address"),
        ("account", "0x" + "ab" * 20),
        ("requestedAmount", "0"),
        ("requestedAmount", "-5"),
        ("requestedAmount", "1.0000001"),
        ("requestedAmount", "ten"),
        ("signerPublicKey", "04" + "ab" * 32),
        ("signerPublicKey", "abcd"),
        ("signature", "zz"),
    ],
)
def test_malformed_fields_rejected_before_crypto(wallet: Wallet, field: str, value: str) -> None:
    body = sign_claim(wallet, "10", timestamp_ms=NOW_MS)
    body[field] = value

    with pytest.raises(InvalidRequest):
        authenticate(_claim(body), NOW_MS)


def test_sign_claim_defaults_to_wallet_address(wallet: Wallet) -> None:
    body = sign_claim(wallet, "3")

    assert body["account"] == wallet.address
    assert body["signerPublicKey"] == wallet.public_key
    assert isinstance(body["timestamp"], int)
