"""
Request/response payloads exchanged between participant clients and the ledger node.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from shared.handles import HandleField
from shared.records import HAND_SIZE
from shared.validators import normalize_address


class TransactionStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"


class LedgerErrorCode(StrEnum):
    """Stable codes for ledger rule violations carried over the wire."""

    GAME_NOT_ACTIVE = "game_not_active"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    CARD_ALREADY_USED = "card_already_used"
    INVALID_IDENTITY = "invalid_identity"


class PlayCardRequest(BaseModel):
    index: StrictInt


class TransactionReceipt(BaseModel):
    """Settlement record of one submitted mutation."""

    tx_hash: str
    status: TransactionStatus
    events: list[dict] = Field(default_factory=list)


class LedgerErrorResponse(BaseModel):
    error: LedgerErrorCode
    message: str


class HandleContractPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    handle: HandleField
    contract_address: str

    @field_validator("contract_address")
    @classmethod
    def _normalize_contract(cls, v: str) -> str:
        return normalize_address(v)


class UserDecryptRequest(BaseModel):
    """Reveal request: the batch of handles plus the signed authorization covering it."""

    handle_contract_pairs: list[HandleContractPair]
    public_key: str
    signature: str
    contract_addresses: list[str]
    user_address: str
    start_timestamp: int
    duration_days: int

    @field_validator("contract_addresses")
    @classmethod
    def _normalize_contracts(cls, v: list[str]) -> list[str]:
        return [normalize_address(address) for address in v]

    @field_validator("user_address")
    @classmethod
    def _normalize_user(cls, v: str) -> str:
        return normalize_address(v)


class UserDecryptResponse(BaseModel):
    """Resolved plaintexts keyed by handle hex; unresolved handles are simply absent."""

    results: dict[str, int] = Field(default_factory=dict)


class RemainingRoundsResponse(BaseModel):
    player: str
    remaining: int = Field(ge=0, le=HAND_SIZE)
    active: bool
