"""
Client-side derived state: round history, card views, outcomes and status.

Nothing here is authoritative. Every value is derived from the last fetched
GameRecord and the reveal cache, and can be rebuilt from them at any time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from shared.handles import HandleField, ValueHandle


class Outcome(StrEnum):
    PENDING = "pending"
    PLAYER = "player"
    SYSTEM = "system"
    DRAW = "draw"


def derive_outcome(player: int | None, system: int | None) -> Outcome:
    """Compare two revealed values; anything short of both is still pending."""
    if player is None or system is None:
        return Outcome.PENDING
    if player > system:
        return Outcome.PLAYER
    if player < system:
        return Outcome.SYSTEM
    return Outcome.DRAW


class RoundSummary(BaseModel):
    """Handles of one played round, recorded when the play settles."""

    model_config = ConfigDict(frozen=True)

    round: int
    player_card: HandleField
    system_card: HandleField


@dataclass(frozen=True)
class CardView:
    slot: int
    handle: ValueHandle | None  # None for a system card that is still face-down
    value: int | None
    flagged: bool  # used (player hand) or revealed (system hand)


@dataclass(frozen=True)
class RoundView:
    round: int
    player_card: int | None
    system_card: int | None
    result: Outcome


class DecryptionState(StrEnum):
    IDLE = "idle"
    DECRYPTING = "decrypting"
    FAILED = "failed"


@dataclass
class SessionStatus:
    """At most one blocking error plus an info message and a decryption indicator."""

    message: str | None = None
    error: str | None = None
    decryption: DecryptionState = DecryptionState.IDLE
    decryption_error: str | None = None

    def inform(self, message: str) -> None:
        self.message = message
        self.error = None

    def fail(self, error: str) -> None:
        self.error = error

    def clear(self) -> None:
        self.message = None
        self.error = None
        self.decryption = DecryptionState.IDLE
        self.decryption_error = None


OUTCOME_MESSAGES = {
    Outcome.PLAYER: "You win the match!",
    Outcome.SYSTEM: "The system wins this time.",
    Outcome.DRAW: "The game ends in a draw.",
    Outcome.PENDING: "Game over. Waiting for the final scores to decrypt...",
}
