"""Ledger events emitted by each successful mutation."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from shared.handles import HandleField


class LedgerEventType(StrEnum):
    GAME_STARTED = "game_started"
    ROUND_PLAYED = "round_played"
    GAME_FINISHED = "game_finished"


class LedgerEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: LedgerEventType
    player: str


class GameStartedEvent(LedgerEvent):
    type: Literal[LedgerEventType.GAME_STARTED] = LedgerEventType.GAME_STARTED
    player_hand: tuple[HandleField, ...]


class RoundPlayedEvent(LedgerEvent):
    type: Literal[LedgerEventType.ROUND_PLAYED] = LedgerEventType.ROUND_PLAYED
    player_card: HandleField
    system_card: HandleField
    player_score: HandleField
    system_score: HandleField
    rounds_played: int


class GameFinishedEvent(LedgerEvent):
    type: Literal[LedgerEventType.GAME_FINISHED] = LedgerEventType.GAME_FINISHED
    player_score: HandleField
    system_score: HandleField
