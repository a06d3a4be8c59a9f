"""
Card duel ledger: the authoritative state machine.

One GameRecord per participant identity, replaced wholesale on every start.
A game moves NoGame -> Active -> Finished, and only start_game leaves Finished.
Every playCard precondition is checked before any state is touched, and the
new record is built completely before it replaces the old one, so a call
either applies in full or not at all.

The ledger works only with handles. Comparisons and score updates are
delegated to the coprocessor, so plaintext card values never pass through here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from ledger.logic.events import GameFinishedEvent, GameStartedEvent, LedgerEvent, RoundPlayedEvent
from ledger.logic.exceptions import (
    CardAlreadyUsedError,
    GameNotActiveError,
    IndexOutOfRangeError,
    UnknownIdentityError,
)
from shared.handles import ZERO_HANDLE, ValueHandle
from shared.records import HAND_SIZE, GameRecord, Hand
from shared.validators import normalize_address

if TYPE_CHECKING:
    from ledger.logic.coprocessor import Coprocessor

logger = structlog.get_logger()

SCORE_INCREMENT = 1


class CardGameLedger:
    def __init__(self, contract_address: str, coprocessor: Coprocessor) -> None:
        self._contract_address = normalize_address(contract_address)
        self._coprocessor = coprocessor
        self._games: dict[str, GameRecord] = {}  # identity -> record

    @property
    def contract_address(self) -> str:
        return self._contract_address

    @staticmethod
    def _identity(player: str) -> str:
        try:
            return normalize_address(player)
        except ValueError:
            raise UnknownIdentityError from None

    def _grant(self, handle: ValueHandle, player: str | None = None) -> None:
        """Allow the ledger itself, and optionally the player, to use a handle."""
        self._coprocessor.allow(handle, self._contract_address)
        if player is not None:
            self._coprocessor.allow(handle, player)

    def get_game(self, player: str) -> GameRecord:
        return self._games.get(self._identity(player), GameRecord.empty())

    def has_active_game(self, player: str) -> bool:
        return self.get_game(player).active

    def remaining_rounds(self, player: str) -> int:
        record = self.get_game(player)
        if not record.active:
            return 0
        return HAND_SIZE - record.rounds_played

    def start_game(self, player: str) -> list[LedgerEvent]:
        """Deal fresh hands and reset the record, discarding any previous game."""
        identity = self._identity(player)
        previous = self._games.get(identity)
        if previous is not None and previous.active:
            logger.warning("restart discards active game", player=identity, rounds_played=previous.rounds_played)

        player_cards, system_cards = self._coprocessor.deal_hands(HAND_SIZE)
        for card in player_cards:
            self._grant(card, identity)
        for card in system_cards:
            self._grant(card)

        record = GameRecord(
            player_hand=Hand.dealt(player_cards),
            system_hand=Hand.dealt(system_cards),
            rounds_played=0,
            player_score=ZERO_HANDLE,
            system_score=ZERO_HANDLE,
            active=True,
            last_system_card=ZERO_HANDLE,
        )
        self._games[identity] = record
        logger.info("game started", player=identity)
        return [GameStartedEvent(player=identity, player_hand=record.player_hand.cards)]

    def play_card(self, player: str, index: int) -> list[LedgerEvent]:
        """Play the card in hand slot `index` against the next system card."""
        identity = self._identity(player)
        record = self._games.get(identity)
        if record is None or not record.active:
            raise GameNotActiveError
        if not (0 <= index < HAND_SIZE):
            raise IndexOutOfRangeError
        if record.player_hand.flags[index]:
            raise CardAlreadyUsedError

        round_index = record.rounds_played
        player_card = record.player_hand.cards[index]
        system_card = record.system_hand.cards[round_index]

        cop = self._coprocessor
        player_wins = cop.gt(player_card, system_card)
        system_wins = cop.lt(player_card, system_card)
        player_score = cop.select(
            player_wins,
            cop.add(record.player_score, SCORE_INCREMENT),
            record.player_score,
        )
        system_score = cop.select(
            system_wins,
            cop.add(record.system_score, SCORE_INCREMENT),
            record.system_score,
        )
        self._grant(player_score, identity)
        self._grant(system_score, identity)
        self._grant(system_card, identity)

        rounds_played = round_index + 1
        updated = record.model_copy(
            update={
                "player_hand": record.player_hand.mark(index),
                "system_hand": record.system_hand.mark(round_index),
                "rounds_played": rounds_played,
                "player_score": player_score,
                "system_score": system_score,
                "active": rounds_played < HAND_SIZE,
                "last_system_card": system_card,
            },
        )
        self._games[identity] = updated

        events: list[LedgerEvent] = [
            RoundPlayedEvent(
                player=identity,
                player_card=player_card,
                system_card=system_card,
                player_score=player_score,
                system_score=system_score,
                rounds_played=rounds_played,
            ),
        ]
        logger.info("round played", player=identity, index=index, rounds_played=rounds_played)
        if not updated.active:
            events.append(GameFinishedEvent(player=identity, player_score=player_score, system_score=system_score))
            logger.info("game finished", player=identity)
        return events
