"""Hex codec for the key/value memo fields read by the bridge."""

from __future__ import annotations

import re
from typing import Iterable, Mapping

from xrpl.models.transactions import Memo

_HEX_RE = re.compile(r"^[a-fA-F0-9]+$")

MEMO_TYPE = "type"
MEMO_DESTINATION_ADDRESS = "destination_address"
MEMO_DESTINATION_CHAIN = "destination_chain"
MEMO_GAS_FEE_AMOUNT = "gas_fee_amount"
MEMO_PAYLOAD = "payload"

CANONICAL_ORDER: tuple[str, ...] = (
    MEMO_TYPE,
    MEMO_DESTINATION_ADDRESS,
    MEMO_DESTINATION_CHAIN,
    MEMO_GAS_FEE_AMOUNT,
    MEMO_PAYLOAD,
)


class InvalidHexInput(ValueError):
    """Raised when a value expected to be hex contains other characters."""


def is_hex(value: str) -> bool:
    return isinstance(value, str) and bool(_HEX_RE.fullmatch(value))


def strip_hex_prefix(value: str) -> str:
    """Drop a leading ``0x`` and require the remainder to be pure hex."""

    stripped = value[2:] if value[:2].lower() == "0x" else value
    if not is_hex(stripped):
        raise InvalidHexInput(f"Invalid hex string: {value!r}")
    return stripped


def encode_field(value: str) -> str:
    """UTF-8 encode a field name or plain string value as upper-case hex."""

    return value.encode("utf-8").hex().upper()


def encode_address(address: str) -> str:
    """Hex-encode the textual hex of an address (double encoding)."""

    return encode_field(strip_hex_prefix(address))


def decode_field(value: str) -> str:
    if not is_hex(value) or len(value) % 2:
        raise InvalidHexInput(f"Invalid hex string: {value!r}")
    return bytes.fromhex(value).decode("utf-8")


def build_memo(name: str, data_hex: str) -> Memo:
    if not is_hex(data_hex):
        raise InvalidHexInput(f"Memo data for {name!r} is not hex: {data_hex!r}")
    return Memo(memo_type=encode_field(name), memo_data=data_hex.upper())


def decode_memos(memos: Iterable[Memo | Mapping[str, object]]) -> dict[str, str]:
    """Return a ``name -> hex data`` mapping keyed by each memo's decoded type.

    Accepts xrpl ``Memo`` models, ``{"memo_type", "memo_data"}`` dicts, or the
    ledger's JSON shape ``{"Memo": {"MemoType", "MemoData"}}``.
    """

    decoded: dict[str, str] = {}
    for memo in memos:
        if isinstance(memo, Memo):
            memo_type, memo_data = memo.memo_type, memo.memo_data
        else:
            inner = memo.get("Memo", memo)
            if not isinstance(inner, Mapping):
                raise InvalidHexInput(f"Unrecognised memo entry: {memo!r}")
            memo_type = inner.get("MemoType", inner.get("memo_type"))
            memo_data = inner.get("MemoData", inner.get("memo_data"))
        if not isinstance(memo_type, str) or not isinstance(memo_data, str):
            raise InvalidHexInput(f"Memo entry missing type or data: {memo!r}")
        decoded[decode_field(memo_type)] = memo_data.upper()
    return decoded


def describe_memos(memos: Iterable[Memo | Mapping[str, object]]) -> dict[str, str]:
    """Human-readable view of bridge memos for diagnostics.

    ``payload`` stays hex; every other value is decoded as UTF-8.
    """

    described: dict[str, str] = {}
    for name, data in decode_memos(memos).items():
        described[name] = data if name == MEMO_PAYLOAD else decode_field(data)
    return described
