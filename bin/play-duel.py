"""Play one full card duel against an in-process ledger node and print every view.

Usage: uv run python bin/play-duel.py
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

import httpx

from arena.reveal.wallet import LocalWallet
from arena.session.controller import GameSessionController
from arena.settings import ArenaSettings
from ledger.server.app import create_app
from ledger.server.settings import LedgerServerSettings
from shared.logging import setup_logging


def _show(controller: GameSessionController) -> None:
    hand = " ".join(f"[{card.value}]" if card.flagged else f" {card.value} " for card in controller.player_cards())
    system = " ".join(f"{card.value}" if card.flagged else "?" for card in controller.system_cards())
    player_score, system_score = controller.scores()
    print(f"  hand:   {hand}")
    print(f"  system: {system}")
    print(f"  score:  you {player_score} - {system_score} system")
    print(f"  status: {controller.status.message}")


async def main() -> None:
    setup_logging()
    ledger_settings = LedgerServerSettings()
    app = create_app(settings=ledger_settings)

    settings = ArenaSettings(
        contract_address=ledger_settings.contract_address,
        chain_id=ledger_settings.chain_id,
        receipt_poll_interval=0,
    )
    wallet = LocalWallet.create()
    controller = GameSessionController.from_settings(settings, wallet, transport=httpx.ASGITransport(app=app))

    print(f"Player {wallet.address}")
    await controller.start_game()
    _show(controller)

    while controller.record is not None and controller.record.active:
        # highest remaining card first
        cards = [card for card in controller.player_cards() if not card.flagged]
        pick = max(cards, key=lambda card: card.value or 0)
        await controller.play_card(pick.slot)
        round_view = controller.round_views()[-1]
        print(f"Round {round_view.round}: {round_view.player_card} vs {round_view.system_card} -> {round_view.result}")
        _show(controller)

    print(f"Outcome: {controller.outcome()}")


if __name__ == "__main__":
    asyncio.run(main())
