"""Application configuration loading via Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

_DEFAULT_GAS_FEE_WEI = 10**18
_DEFAULT_GAS_FEE_DROPS = 1_000_000

_ENV_CONFIG = {
    "env_file": ".env",
    "env_file_encoding": "utf-8",
    "extra": "ignore",
}


class Settings(BaseSettings):
    """Withdrawal relayer configuration sourced from environment variables."""

    rpc_url: str = Field(..., alias="WITHDRAW_RELAYER_RPC_URL")
    private_key: str = Field(..., alias="WITHDRAW_RELAYER_PRIVATE_KEY")
    contract_address: str = Field(..., alias="WITHDRAW_RELAYER_DESTINATION_CONTRACT_ADDRESS")
    token_address: str = Field(..., alias="WITHDRAW_RELAYER_TOKEN_ADDRESS")
    host: str = Field(default="0.0.0.0", alias="WITHDRAW_RELAYER_HOST")
    port: int = Field(default=3000, alias="WITHDRAW_RELAYER_PORT")
    gas_fee_wei: int = Field(default=_DEFAULT_GAS_FEE_WEI, ge=0, alias="WITHDRAW_RELAYER_GAS_FEE_WEI")
    chain_timeout_seconds: float = Field(default=120.0, gt=0, alias="WITHDRAW_RELAYER_CHAIN_TIMEOUT_SECONDS")
    claim_binding: Literal["account", "signer"] = Field(default="account", alias="WITHDRAW_RELAYER_CLAIM_BINDING")
    request_rate_limit_per_minute: int = Field(default=60, alias="WITHDRAW_RELAYER_RATE_LIMIT_PER_MINUTE")
    storage_dir: Path = Field(default=Path("storage"), alias="STORAGE_DIR")

    model_config = _ENV_CONFIG

    @field_validator("private_key")
    @classmethod
    def validate_private_key(cls, value: str) -> str:
        key = value.strip().lower()
        if not key.startswith("0x"):
            key = "0x" + key
        if len(key) != 66:
            raise ValueError("Private key must be a 32-byte hex string.")
        return key

    @field_validator("contract_address", "token_address")
    @classmethod
    def validate_evm_address(cls, value: str) -> str:
        if not value.startswith("0x") or len(value) != 42:
            raise ValueError("Must be a 42-character 0x-prefixed address")
        return value


class ClientSettings(BaseSettings):
    """Configuration for the user-held bridge client (CLI)."""

    xrpl_rpc_url: str = Field(default="https://s.altnet.rippletest.net:51234", alias="XRPL_RPC_URL")
    multisig_address: str | None = Field(default=None, alias="XRPL_MULTISIG_ADDRESS")
    wallet_seed: str | None = Field(default=None, alias="XRPL_WALLET_SEED")
    destination_chain: str = Field(default="xrpl-evm", alias="DESTINATION_CHAIN")
    gas_fee_amount_drops: int = Field(default=_DEFAULT_GAS_FEE_DROPS, ge=0, alias="GAS_FEE_AMOUNT_DROPS")
    relayer_url: str = Field(default="http://localhost:3000", alias="WITHDRAW_RELAYER_URL")
    request_timeout: float = Field(default=30.0, gt=0, alias="CLIENT_REQUEST_TIMEOUT_SECONDS")

    model_config = _ENV_CONFIG


@lru_cache
def get_settings() -> Settings:
    """Return cached relayer settings instance."""

    settings = Settings()  # type: ignore[call-arg]
    settings.storage_dir.mkdir(parents=True, exist_ok=True)
    return settings


@lru_cache
def get_client_settings() -> ClientSettings:
    """Return cached client settings instance."""

    return ClientSettings()  # type: ignore[call-arg]
