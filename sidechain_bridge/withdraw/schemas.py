"""Schemas for signed withdrawal claims and relay receipts."""

from __future__ import annotations

from pydantic import BaseModel, Field, StrictInt, StrictStr


class WithdrawalClaim(BaseModel):
    """Signed, timestamped request to withdraw sidechain funds back to the ledger."""

    account: StrictStr = Field(..., min_length=1, max_length=64)
    requested_amount: StrictStr = Field(..., alias="requestedAmount", min_length=1, max_length=64)
    timestamp: StrictInt = Field(..., ge=0)
    signature: StrictStr = Field(..., min_length=1, max_length=256)
    signer_public_key: StrictStr = Field(..., alias="signerPublicKey", min_length=1, max_length=128)

    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}


class AuthenticatedClaim(BaseModel):
    """Fields of a claim that passed every authentication gate."""

    account: str
    requested_amount: str
    timestamp: int

    model_config = {"frozen": True}


class WithdrawalReceipt(BaseModel):
    """Success payload returned once the withdraw call is confirmed."""

    success: bool = True
    transaction_hash: str = Field(..., serialization_alias="transactionHash")
    block_number: int = Field(..., serialization_alias="blockNumber")
    gas_used: str = Field(..., serialization_alias="gasUsed")

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
