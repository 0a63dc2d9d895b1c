"""Assembly of outbound deposit and donate instructions."""

from __future__ import annotations

from pydantic import ValidationError
from web3 import Web3

from sidechain_bridge.config import ClientSettings
from sidechain_bridge.instructions.memo import InvalidHexInput
from sidechain_bridge.instructions.schemas import (
    Instruction,
    InstructionError,
    InstructionKind,
    Operation,
    OutboundPayment,
)
from sidechain_bridge.lib.amounts import to_native_units

_OPERATION_KINDS: dict[str, InstructionKind] = {
    "deposit": InstructionKind.TRANSFER,
    "donate": InstructionKind.DONATE,
}


def operation_selector(operation: Operation) -> str:
    """bytes32 selector agreed with the destination contract: keccak256(operation)."""

    return bytes(Web3.keccak(text=operation)).hex()


def build_instruction(
    kind: InstructionKind,
    destination_address: str,
    destination_chain: str,
    gas_fee_amount: int,
    *,
    operation: Operation = "deposit",
) -> Instruction:
    """Build a validated instruction; transfers carry the selector of ``operation``."""

    payload = operation_selector(operation) if kind is InstructionKind.TRANSFER else None
    try:
        return Instruction(
            kind=kind,
            destination_address=destination_address,
            destination_chain=destination_chain,
            gas_fee_amount=gas_fee_amount,
            payload=payload,
        )
    except ValidationError as exc:
        message = "; ".join(str(err["msg"]) for err in exc.errors())
        if any(isinstance(err.get("ctx", {}).get("error"), InvalidHexInput) for err in exc.errors()):
            raise InvalidHexInput(message) from exc
        raise InstructionError(message) from exc


def build_payment(
    operation: Operation,
    amount: str,
    destination_address: str,
    *,
    settings: ClientSettings,
) -> OutboundPayment:
    """Prepare a payment to the bridge multisig carrying a deposit or donate instruction.

    ``amount`` is expressed in XRP display units and converted to drops.
    """

    kind = _OPERATION_KINDS.get(operation)
    if kind is None:
        raise InstructionError(f"Unsupported outbound operation: {operation}")
    if not settings.multisig_address:
        raise InstructionError("XRPL_MULTISIG_ADDRESS is not configured")

    instruction = build_instruction(
        kind,
        destination_address,
        settings.destination_chain,
        settings.gas_fee_amount_drops,
        operation=operation,
    )
    amount_drops = to_native_units(amount)
    if int(amount_drops) == 0:
        raise InstructionError("Outbound amount must be greater than zero")
    return OutboundPayment(
        operation=operation,
        instruction=instruction,
        amount_drops=amount_drops,
        destination=settings.multisig_address,
    )
