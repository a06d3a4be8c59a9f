"""Participant client configuration via environment variables."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from arena.reveal.authorization import DEFAULT_DURATION_DAYS
from shared.eip712 import DEFAULT_DECRYPTION_VERIFIER
from shared.validators import ZERO_ADDRESS, is_zero_address, normalize_address

SEPOLIA_CHAIN_ID = 11155111


class ArenaSettings(BaseSettings):
    model_config = {"env_prefix": "ARENA_"}

    contract_address: str = ZERO_ADDRESS
    ledger_url: str = "http://localhost:8720"
    relay_url: str = "http://localhost:8720"
    chain_id: int = Field(default=SEPOLIA_CHAIN_ID, gt=0)
    decryption_verifier: str = DEFAULT_DECRYPTION_VERIFIER
    decryption_duration_days: int = Field(default=DEFAULT_DURATION_DAYS, ge=1)
    request_timeout: float = Field(default=10.0, gt=0)
    receipt_poll_interval: float = Field(default=0.5, ge=0)
    receipt_poll_attempts: int = Field(default=20, ge=1)
    log_dir: str | None = None

    @field_validator("contract_address", "decryption_verifier")
    @classmethod
    def validate_address(cls, v: str) -> str:
        return normalize_address(v)

    @property
    def contract_configured(self) -> bool:
        return not is_zero_address(self.contract_address)
