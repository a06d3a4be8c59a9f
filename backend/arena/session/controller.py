"""
Game session controller: one participant's view of their duel.

Each mutating action goes through the same linear steps: submit, await
settlement, re-fetch the record, derive history and status, then hand the
newly visible handles to the reveal dispatcher. Only one mutating action can
be outstanding at a time; a second one is refused with ActionInProgress
instead of being queued. Reveal runs after the action has settled and its
failures only touch the decryption indicator, so the game stays playable
while decryption is failing. Starting a game or disconnecting invalidates any
reveal still in flight, so the new session never sees the old plaintexts.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from structlog.contextvars import bound_contextvars

from arena.chain.client import HttpLedgerClient
from arena.exceptions import (
    ActionInProgress,
    ConfigurationError,
    IdentityUnavailable,
    RevealError,
    TransactionFailed,
)
from arena.reveal.cache import RevealCache
from arena.reveal.dispatcher import RevealDispatcher
from arena.reveal.relay import HttpDecryptionRelay
from arena.session.models import (
    OUTCOME_MESSAGES,
    CardView,
    DecryptionState,
    Outcome,
    RoundSummary,
    RoundView,
    SessionStatus,
    derive_outcome,
)
from ledger.logic.exceptions import GameNotActiveError, InvalidMoveError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from arena.chain.client import LedgerClient
    from arena.reveal.wallet import Wallet
    from arena.settings import ArenaSettings
    from shared.handles import ValueHandle
    from shared.records import GameRecord

logger = structlog.get_logger()


class GameSessionController:
    def __init__(
        self,
        ledger: LedgerClient,
        dispatcher: RevealDispatcher,
        cache: RevealCache,
        settings: ArenaSettings,
        wallet: Wallet | None = None,
    ) -> None:
        self._ledger = ledger
        self._dispatcher = dispatcher
        self._cache = cache
        self._settings = settings
        self._wallet = wallet
        self._record: GameRecord | None = None
        self._history: list[RoundSummary] = []
        self._action_lock = asyncio.Lock()
        self.status = SessionStatus()

    @classmethod
    def from_settings(
        cls,
        settings: ArenaSettings,
        wallet: Wallet | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GameSessionController:
        """Wire HTTP collaborators for the configured ledger node and relay."""
        cache = RevealCache()
        ledger = HttpLedgerClient(
            settings.ledger_url,
            timeout=settings.request_timeout,
            poll_interval=settings.receipt_poll_interval,
            max_attempts=settings.receipt_poll_attempts,
            transport=transport,
        )
        relay = HttpDecryptionRelay(settings.relay_url, timeout=settings.request_timeout, transport=transport)
        dispatcher = RevealDispatcher(
            cache,
            relay,
            settings.contract_address,
            chain_id=settings.chain_id,
            duration_days=settings.decryption_duration_days,
            verifying_contract=settings.decryption_verifier,
        )
        return cls(ledger, dispatcher, cache, settings, wallet)

    # -- connection ---------------------------------------------------------

    @property
    def identity(self) -> str | None:
        return self._wallet.address if self._wallet is not None else None

    @property
    def record(self) -> GameRecord | None:
        return self._record

    @property
    def history(self) -> tuple[RoundSummary, ...]:
        return tuple(self._history)

    @property
    def busy(self) -> bool:
        return self._action_lock.locked()

    def connect(self, wallet: Wallet) -> None:
        self._wallet = wallet

    def disconnect(self) -> None:
        """Forget everything tied to the participant: record, history, reveals, status."""
        self._wallet = None
        self._record = None
        self._history.clear()
        self._dispatcher.reset()
        self.status.clear()

    def _require_ready(self) -> str:
        if not self._settings.contract_configured:
            self.status.fail("Set the deployed CardGame address to start playing")
            raise ConfigurationError("game contract address is not configured")
        identity = self.identity
        if identity is None:
            self.status.fail("Connect your wallet to start")
            raise IdentityUnavailable("no participant connected")
        return identity

    @contextlib.asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self._action_lock.locked():
            raise ActionInProgress("another action is still settling")
        async with self._action_lock:
            yield

    # -- actions ------------------------------------------------------------

    async def refresh(self) -> GameRecord:
        """Re-fetch the record for the connected participant."""
        identity = self._require_ready()
        try:
            record = await self._ledger.get_game(identity)
        except TransactionFailed:
            logger.exception("failed to fetch game", identity=identity)
            self.status.fail("Unable to load game state")
            raise
        self._record = record
        return record

    async def start_game(self) -> GameRecord:
        identity = self._require_ready()
        async with self._exclusive():
            with bound_contextvars(identity=identity, action="start_game"):
                self.status.error = None
                if self._record is not None and self._record.active:
                    logger.warning("restart forfeits active game", rounds_played=self._record.rounds_played)
                try:
                    tx = await self._ledger.start_game(identity)
                    self.status.inform("Creating a new hand...")
                    await tx.wait()
                    record = await self._ledger.get_game(identity)
                except TransactionFailed as e:
                    logger.warning("start game failed", error=str(e), tx_hash=e.tx_hash)
                    self.status.fail("Failed to start the game")
                    raise
                self._dispatcher.reset()
                self._history.clear()
                self._record = record
                self.status.inform("New game is ready. Good luck!")
                logger.info("game started")

        await self.refresh_reveals()
        return record

    async def play_card(self, index: int) -> GameRecord:
        identity = self._require_ready()
        if self._record is None or not self._record.active:
            self.status.fail("Start a new game first")
            raise GameNotActiveError
        async with self._exclusive():
            with bound_contextvars(identity=identity, action="play_card", index=index):
                self.status.error = None
                try:
                    tx = await self._ledger.play_card(identity, index)
                    self.status.inform(f"Playing card {self._card_label(index)}...")
                    await tx.wait()
                    record = await self._ledger.get_game(identity)
                except InvalidMoveError as e:
                    logger.info("move rejected", error_code=e.code)
                    self.status.fail(e.message)
                    raise
                except TransactionFailed as e:
                    logger.warning("play card failed", error=str(e), tx_hash=e.tx_hash)
                    self.status.fail("Transaction failed. Try again.")
                    raise

                self._record = record
                self._history.append(
                    RoundSummary(
                        round=record.rounds_played,
                        player_card=record.player_hand.cards[index],
                        system_card=record.last_system_card,
                    ),
                )
                self._announce()
                logger.info("round settled", rounds_played=record.rounds_played, active=record.active)

        await self.refresh_reveals()
        return record

    def _card_label(self, index: int) -> str:
        cards = self._record.player_hand.cards if self._record is not None else ()
        value = self._cache.get(cards[index]) if 0 <= index < len(cards) else None
        return str(value) if value is not None else f"in slot {index + 1}"

    def _announce(self) -> None:
        record = self._record
        if record is None or self.status.error is not None:
            return
        if record.active:
            self.status.inform(f"Round {record.rounds_played} resolved.")
        elif record.has_game:
            self.status.inform(OUTCOME_MESSAGES[self.outcome()])

    # -- reveals ------------------------------------------------------------

    def reveal_candidates(self) -> list[ValueHandle]:
        """Every handle the participant may currently see, deduplicated."""
        record = self._record
        if record is None:
            return []
        handles: list[ValueHandle] = list(record.player_hand.cards)
        handles.extend(
            card for card, revealed in zip(record.system_hand.cards, record.system_hand.flags, strict=True) if revealed
        )
        handles.extend((record.player_score, record.system_score, record.last_system_card))
        for entry in self._history:
            handles.extend((entry.player_card, entry.system_card))
        return list(dict.fromkeys(handles))

    async def refresh_reveals(self) -> dict[ValueHandle, int]:
        """Request plaintexts for newly visible handles; failures only mark the decryption indicator."""
        candidates = self.reveal_candidates()
        if not self._dispatcher.pending(candidates):
            return {}

        generation = self._cache.generation
        self.status.decryption = DecryptionState.DECRYPTING
        self.status.decryption_error = None
        try:
            merged = await self._dispatcher.reveal(self._wallet, candidates)
        except RevealError as e:
            logger.warning("reveal failed", error=str(e), error_type=type(e).__name__)
            if self._cache.generation != generation:
                return {}
            self.status.decryption = DecryptionState.FAILED
            self.status.decryption_error = str(e)
            return {}

        # session was reset while the batch was out; its status is not ours to touch
        if self._cache.generation != generation:
            return {}
        self.status.decryption = DecryptionState.IDLE
        if self._record is not None and self._record.is_finished:
            self._announce()
        return merged

    # -- derived views ------------------------------------------------------

    def scores(self) -> tuple[int | None, int | None]:
        if self._record is None:
            return None, None
        return self._cache.get(self._record.player_score), self._cache.get(self._record.system_score)

    def outcome(self) -> Outcome | None:
        """Match result from revealed final scores, or None while the game is not over."""
        if self._record is None or not self._record.is_finished:
            return None
        return derive_outcome(*self.scores())

    def player_cards(self) -> list[CardView]:
        if self._record is None:
            return []
        hand = self._record.player_hand
        return [
            CardView(slot=slot, handle=card, value=self._cache.get(card), flagged=used)
            for slot, (card, used) in enumerate(zip(hand.cards, hand.flags, strict=True))
        ]

    def system_cards(self) -> list[CardView]:
        if self._record is None:
            return []
        hand = self._record.system_hand
        return [
            CardView(
                slot=slot,
                handle=card if revealed else None,
                value=self._cache.get(card) if revealed else None,
                flagged=revealed,
            )
            for slot, (card, revealed) in enumerate(zip(hand.cards, hand.flags, strict=True))
        ]

    def round_views(self) -> list[RoundView]:
        views = []
        for entry in self._history:
            player_value = self._cache.get(entry.player_card)
            system_value = self._cache.get(entry.system_card)
            views.append(
                RoundView(
                    round=entry.round,
                    player_card=player_value,
                    system_card=system_value,
                    result=derive_outcome(player_value, system_value),
                ),
            )
        return views
