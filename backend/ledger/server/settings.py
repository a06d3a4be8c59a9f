"""Ledger node configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from ledger.relay import MAX_DURATION_DAYS
from shared.eip712 import DEFAULT_DECRYPTION_VERIFIER
from shared.validators import StringListEnvSettingsSource, normalize_address, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource

SEPOLIA_CHAIN_ID = 11155111


class LedgerServerSettings(BaseSettings):
    model_config = {"env_prefix": "LEDGER_"}

    contract_address: str = "0x369228cD84AeFb713Ef4E7E96aD984539e26825E"
    chain_id: int = Field(default=SEPOLIA_CHAIN_ID, gt=0)
    decryption_verifier: str = DEFAULT_DECRYPTION_VERIFIER
    max_decryption_days: int = Field(default=MAX_DURATION_DAYS, ge=1)
    max_receipts: int = Field(default=1024, ge=1)
    log_dir: str = Field(default="backend/logs/ledger", min_length=1)
    cors_origins: list[str] = ["http://localhost:5173"]

    @field_validator("contract_address", "decryption_verifier")
    @classmethod
    def validate_address(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
