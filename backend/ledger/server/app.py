from __future__ import annotations

import json
import secrets
from collections import OrderedDict
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from ledger.logic.coprocessor import InMemoryCoprocessor
from ledger.logic.exceptions import GameRuleError, RelayRejectedError
from ledger.logic.ledger import CardGameLedger
from ledger.relay import DecryptionRelay
from ledger.server.settings import LedgerServerSettings
from shared.logging import setup_logging
from shared.records import HAND_SIZE
from shared.wire import (
    LedgerErrorResponse,
    PlayCardRequest,
    RemainingRoundsResponse,
    TransactionReceipt,
    TransactionStatus,
    UserDecryptRequest,
    UserDecryptResponse,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.requests import Request

    from ledger.logic.events import LedgerEvent

logger = structlog.get_logger()

_MAX_REQUEST_BODY_SIZE = 16384
_HTTP_CONFLICT = 409


def _rule_error(e: GameRuleError) -> JSONResponse:
    payload = LedgerErrorResponse(error=e.code, message=e.message)
    return JSONResponse(payload.model_dump(mode="json"), status_code=_HTTP_CONFLICT)


async def _read_json(request: Request) -> object:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise ValueError("Request body too large")
    return json.loads(raw_body)


def _record_transaction(request: Request, events: list[LedgerEvent]) -> TransactionReceipt:
    receipt = TransactionReceipt(
        tx_hash="0x" + secrets.token_hex(32),
        status=TransactionStatus.CONFIRMED,
        events=[event.model_dump(mode="json") for event in events],
    )
    transactions: OrderedDict[str, TransactionReceipt] = request.app.state.transactions
    transactions[receipt.tx_hash] = receipt
    # only the most recent receipts stay queryable
    while len(transactions) > request.app.state.settings.max_receipts:
        transactions.popitem(last=False)
    return receipt


async def health(request: Request) -> JSONResponse:
    ledger: CardGameLedger = request.app.state.ledger
    return JSONResponse({"status": "ok", "contract_address": ledger.contract_address, "hand_size": HAND_SIZE})


async def get_game(request: Request) -> JSONResponse:
    ledger: CardGameLedger = request.app.state.ledger
    try:
        record = ledger.get_game(request.path_params["player"])
    except GameRuleError as e:
        return _rule_error(e)
    return JSONResponse(record.model_dump(mode="json"))


async def remaining_rounds(request: Request) -> JSONResponse:
    ledger: CardGameLedger = request.app.state.ledger
    player = request.path_params["player"]
    try:
        response = RemainingRoundsResponse(
            player=player,
            remaining=ledger.remaining_rounds(player),
            active=ledger.has_active_game(player),
        )
    except GameRuleError as e:
        return _rule_error(e)
    return JSONResponse(response.model_dump())


async def start_game(request: Request) -> JSONResponse:
    ledger: CardGameLedger = request.app.state.ledger
    try:
        events = ledger.start_game(request.path_params["player"])
    except GameRuleError as e:
        return _rule_error(e)
    receipt = _record_transaction(request, events)
    return JSONResponse(receipt.model_dump(mode="json"), status_code=202)


async def play_card(request: Request) -> JSONResponse:
    ledger: CardGameLedger = request.app.state.ledger
    try:
        play_request = PlayCardRequest.model_validate(await _read_json(request))
    except (ValueError, TypeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    try:
        events = ledger.play_card(request.path_params["player"], play_request.index)
    except GameRuleError as e:
        logger.info("play rejected", error_code=e.code, index=play_request.index)
        return _rule_error(e)
    receipt = _record_transaction(request, events)
    return JSONResponse(receipt.model_dump(mode="json"), status_code=202)


async def get_transaction(request: Request) -> JSONResponse:
    receipt = request.app.state.transactions.get(request.path_params["tx_hash"])
    if receipt is None:
        return JSONResponse({"error": "Unknown transaction"}, status_code=404)
    return JSONResponse(receipt.model_dump(mode="json"))


async def user_decrypt(request: Request) -> JSONResponse:
    relay: DecryptionRelay = request.app.state.relay
    try:
        decrypt_request = UserDecryptRequest.model_validate(await _read_json(request))
    except (ValueError, TypeError, UnicodeDecodeError, ValidationError):  # fmt: skip
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    try:
        results = relay.user_decrypt(decrypt_request)
    except RelayRejectedError as e:
        logger.warning("user decrypt rejected", user=decrypt_request.user_address, reason=str(e))
        return JSONResponse({"error": str(e)}, status_code=403)

    response = UserDecryptResponse(results={handle.hex: value for handle, value in results.items()})
    return JSONResponse(response.model_dump())


def create_app(
    settings: LedgerServerSettings | None = None,
    coprocessor: InMemoryCoprocessor | None = None,
    clock: Callable[[], float] | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = LedgerServerSettings()

    if coprocessor is None:
        coprocessor = InMemoryCoprocessor()

    ledger = CardGameLedger(settings.contract_address, coprocessor)
    relay = DecryptionRelay(
        coprocessor,
        settings.chain_id,
        max_duration_days=settings.max_decryption_days,
        verifying_contract=settings.decryption_verifier,
        clock=clock,
    )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/games/{player}", get_game, methods=["GET"]),
        Route("/games/{player}/remaining", remaining_rounds, methods=["GET"]),
        Route("/games/{player}/start", start_game, methods=["POST"]),
        Route("/games/{player}/play", play_card, methods=["POST"]),
        Route("/transactions/{tx_hash}", get_transaction, methods=["GET"]),
        Route("/user-decrypt", user_decrypt, methods=["POST"]),
    ]

    app = Starlette(routes=routes)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.ledger = ledger
    app.state.relay = relay
    app.state.transactions = OrderedDict()

    logger.info("ledger node ready", contract_address=ledger.contract_address)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory ledger.server.app:get_app)."""
    settings = LedgerServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
