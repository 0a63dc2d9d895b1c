"""Pydantic schemas for outbound bridge instructions."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from xrpl.models.transactions import Memo, Payment

from sidechain_bridge.instructions import memo as memo_codec

BRIDGE_MESSAGE_TYPE = "interchain_transfer"

Operation = Literal["deposit", "donate", "withdraw"]


class InstructionKind(str, Enum):
    TRANSFER = "transfer"
    DONATE = "donate"


class InstructionError(ValueError):
    """Raised when an instruction cannot be constructed."""


class Instruction(BaseModel):
    """Bridge instruction carried in the memos of a ledger payment."""

    kind: InstructionKind
    destination_address: str
    destination_chain: str = Field(..., min_length=1)
    gas_fee_amount: int = Field(..., ge=0)
    payload: str | None = None

    model_config = {"frozen": True}

    @field_validator("destination_address")
    @classmethod
    def normalize_destination(cls, value: str) -> str:
        stripped = memo_codec.strip_hex_prefix(value)
        if len(stripped) != 40:
            raise InstructionError("Destination must be a 20-byte hex address")
        return stripped

    @field_validator("payload")
    @classmethod
    def validate_payload(cls, value: str | None) -> str | None:
        if value is None:
            return value
        stripped = memo_codec.strip_hex_prefix(value)
        if len(stripped) != 64:
            raise InstructionError("Payload must be exactly 32 bytes")
        return stripped.upper()

    @model_validator(mode="after")
    def check_payload_matches_kind(self) -> "Instruction":
        if self.kind is InstructionKind.TRANSFER and self.payload is None:
            raise InstructionError("Transfer instructions require a payload")
        if self.kind is InstructionKind.DONATE and self.payload is not None:
            raise InstructionError("Donate instructions must not carry a payload")
        return self

    def memos(self) -> list[Memo]:
        """Render memos in canonical order: type, address, chain, fee, [payload]."""

        fields = {
            memo_codec.MEMO_TYPE: memo_codec.encode_field(BRIDGE_MESSAGE_TYPE),
            memo_codec.MEMO_DESTINATION_ADDRESS: memo_codec.encode_address(self.destination_address),
            memo_codec.MEMO_DESTINATION_CHAIN: memo_codec.encode_field(self.destination_chain),
            memo_codec.MEMO_GAS_FEE_AMOUNT: memo_codec.encode_field(str(self.gas_fee_amount)),
            memo_codec.MEMO_PAYLOAD: self.payload,
        }
        return [
            memo_codec.build_memo(name, fields[name])
            for name in memo_codec.CANONICAL_ORDER
            if fields[name] is not None
        ]


class OutboundPayment(BaseModel):
    """A ledger payment to the bridge account, ready for the chain client."""

    operation: Operation
    instruction: Instruction
    amount_drops: str
    destination: str = Field(..., min_length=25, max_length=35)

    model_config = {"frozen": True}

    def to_transaction(self, account: str) -> Payment:
        return Payment(
            account=account,
            amount=self.amount_drops,
            destination=self.destination,
            memos=self.instruction.memos(),
        )
