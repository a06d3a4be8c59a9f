"""
Game record models shared by the ledger node and participant clients.

GameRecord is the authoritative per-participant state. It is owned by the
ledger; clients only ever hold a fetched snapshot of it. Both hands carry a
parallel flag tuple: "used" for the player's hand, "revealed" for the system's.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.handles import ZERO_HANDLE, HandleField, ValueHandle, parse_handle

HAND_SIZE = 5
MIN_RANK = 1
MAX_RANK = 13

# Number of fields in the getGame projection.
_RECORD_TUPLE_FIELDS = 9


class Hand(BaseModel):
    """Five handles with an index-aligned flag per slot."""

    model_config = ConfigDict(frozen=True)

    cards: tuple[HandleField, ...]
    flags: tuple[bool, ...]

    @model_validator(mode="after")
    def _check_size(self) -> Hand:
        if len(self.cards) != HAND_SIZE or len(self.flags) != HAND_SIZE:
            raise ValueError(
                f"hand must have exactly {HAND_SIZE} cards and flags, got {len(self.cards)}/{len(self.flags)}",
            )
        return self

    @classmethod
    def dealt(cls, cards: tuple[ValueHandle, ...] | list[ValueHandle]) -> Hand:
        """Fresh hand with every flag cleared."""
        return cls(cards=tuple(cards), flags=(False,) * HAND_SIZE)

    @classmethod
    def blank(cls) -> Hand:
        return cls.dealt((ZERO_HANDLE,) * HAND_SIZE)

    def mark(self, index: int) -> Hand:
        if not (0 <= index < HAND_SIZE):
            raise ValueError(f"Invalid slot {index}, expected 0-{HAND_SIZE - 1}")
        flags = list(self.flags)
        flags[index] = True
        return self.model_copy(update={"flags": tuple(flags)})

    @property
    def marked_count(self) -> int:
        return sum(self.flags)


class GameRecord(BaseModel):
    """Snapshot of one participant's game."""

    model_config = ConfigDict(frozen=True)

    player_hand: Hand
    system_hand: Hand
    rounds_played: int = Field(ge=0, le=HAND_SIZE)
    player_score: HandleField = ZERO_HANDLE
    system_score: HandleField = ZERO_HANDLE
    active: bool = False
    last_system_card: HandleField = ZERO_HANDLE

    @model_validator(mode="after")
    def _check_invariants(self) -> GameRecord:
        if self.rounds_played != self.player_hand.marked_count:
            raise ValueError(
                f"rounds_played={self.rounds_played} does not match {self.player_hand.marked_count} used cards",
            )
        if self.active and self.rounds_played >= HAND_SIZE:
            raise ValueError("a game with every round played cannot be active")
        return self

    @classmethod
    def empty(cls) -> GameRecord:
        """Record returned for an identity that never started a game."""
        return cls(player_hand=Hand.blank(), system_hand=Hand.blank(), rounds_played=0)

    @property
    def player_used(self) -> tuple[bool, ...]:
        return self.player_hand.flags

    @property
    def system_revealed(self) -> tuple[bool, ...]:
        return self.system_hand.flags

    @property
    def has_game(self) -> bool:
        return any(not card.is_sentinel for card in self.player_hand.cards)

    @property
    def is_finished(self) -> bool:
        return self.has_game and not self.active

    def as_tuple(self) -> tuple[Any, ...]:
        """The getGame projection: hands, flags, rounds, scores, active, last system card."""
        return (
            self.player_hand.cards,
            self.player_hand.flags,
            self.system_hand.cards,
            self.system_hand.flags,
            self.rounds_played,
            self.player_score,
            self.system_score,
            self.active,
            self.last_system_card,
        )

    @classmethod
    def from_tuple(cls, raw: tuple[Any, ...] | list[Any]) -> GameRecord:
        if len(raw) != _RECORD_TUPLE_FIELDS:
            raise ValueError(f"expected {_RECORD_TUPLE_FIELDS} record fields, got {len(raw)}")
        (
            player_cards,
            player_used,
            system_cards,
            system_revealed,
            rounds_played,
            player_score,
            system_score,
            active,
            last_system_card,
        ) = raw
        return cls(
            player_hand=Hand(cards=tuple(player_cards), flags=tuple(player_used)),
            system_hand=Hand(cards=tuple(system_cards), flags=tuple(system_revealed)),
            rounds_played=int(rounds_played),
            player_score=parse_handle(player_score),
            system_score=parse_handle(system_score),
            active=bool(active),
            last_system_card=parse_handle(last_system_card),
        )
