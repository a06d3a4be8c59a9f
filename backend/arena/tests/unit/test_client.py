import json

import httpx
import pytest

from arena.chain.client import HttpLedgerClient
from arena.exceptions import RelayError, TransactionFailed
from arena.reveal.relay import HttpDecryptionRelay
from ledger.logic.exceptions import GameNotActiveError, IndexOutOfRangeError
from shared.handles import ValueHandle
from shared.records import GameRecord

PLAYER = "0x" + "ab" * 20
CONTRACT = "0x369228cD84AeFb713Ef4E7E96aD984539e26825E"
TX_HASH = "0x" + "11" * 32


def _receipt(status="confirmed"):
    return {"tx_hash": TX_HASH, "status": status, "events": []}


def _ledger(handler, **kwargs):
    return HttpLedgerClient(
        "http://ledger",
        poll_interval=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestHttpLedgerClient:
    async def test_get_game(self):
        def handler(request):
            assert request.url.path == f"/games/{PLAYER}"
            return httpx.Response(200, json=GameRecord.empty().model_dump(mode="json"))

        record = await _ledger(handler).get_game(PLAYER)

        assert record == GameRecord.empty()

    async def test_get_game_malformed(self):
        client = _ledger(lambda _request: httpx.Response(200, json={"unexpected": True}))

        with pytest.raises(TransactionFailed, match="Malformed game record"):
            await client.get_game(PLAYER)

    async def test_get_game_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransactionFailed, match="Failed to reach"):
            await _ledger(handler).get_game(PLAYER)

    async def test_play_card_waits_for_confirmation(self):
        polls = []

        def handler(request):
            if request.method == "POST":
                assert request.url.path == f"/games/{PLAYER}/play"
                assert json.loads(request.content) == {"index": 2}
                return httpx.Response(202, json=_receipt("pending"))
            polls.append(request.url.path)
            status = "pending" if len(polls) < 3 else "confirmed"
            return httpx.Response(200, json=_receipt(status))

        tx = await _ledger(handler).play_card(PLAYER, 2)
        receipt = await tx.wait()

        assert tx.tx_hash == TX_HASH
        assert receipt.status == "confirmed"
        assert polls == [f"/transactions/{TX_HASH}"] * 3

    async def test_reverted_transaction(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(202, json=_receipt("pending"))
            return httpx.Response(200, json=_receipt("reverted"))

        tx = await _ledger(handler).start_game(PLAYER)

        with pytest.raises(TransactionFailed, match="reverted") as exc_info:
            await tx.wait()
        assert exc_info.value.tx_hash == TX_HASH

    async def test_transaction_never_settles(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(202, json=_receipt("pending"))
            return httpx.Response(200, json=_receipt("pending"))

        tx = await _ledger(handler, max_attempts=2).start_game(PLAYER)

        with pytest.raises(TransactionFailed, match="did not settle"):
            await tx.wait()

    async def test_rule_violation_becomes_typed_error(self):
        def handler(_request):
            return httpx.Response(409, json={"error": "index_out_of_range", "message": "Invalid card index"})

        with pytest.raises(IndexOutOfRangeError, match="Invalid card index"):
            await _ledger(handler).play_card(PLAYER, 9)

    async def test_rule_violation_keeps_ledger_message(self):
        def handler(_request):
            return httpx.Response(409, json={"error": "game_not_active", "message": "Game not active"})

        with pytest.raises(GameNotActiveError) as exc_info:
            await _ledger(handler).play_card(PLAYER, 0)
        assert exc_info.value.message == "Game not active"

    async def test_unexpected_status(self):
        client = _ledger(lambda _request: httpx.Response(500, text="boom"))

        with pytest.raises(TransactionFailed, match="500"):
            await client.start_game(PLAYER)


class TestHttpDecryptionRelay:
    async def _decrypt(self, handler, handles):
        relay = HttpDecryptionRelay("http://relay", transport=httpx.MockTransport(handler))
        return await relay.user_decrypt(
            [(handle, CONTRACT) for handle in handles],
            "0x" + "22" * 32,
            "0x" + "04" * 65,
            "0x" + "33" * 65,
            [CONTRACT],
            PLAYER,
            1_750_000_000,
            7,
        )

    async def test_posts_request_without_private_key(self):
        handle = ValueHandle(b"\x01" * 32)
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"results": {handle.hex: 7}})

        results = await self._decrypt(handler, [handle])

        assert results == {handle: 7}
        assert seen["handle_contract_pairs"] == [{"handle": handle.hex, "contract_address": CONTRACT}]
        assert seen["duration_days"] == 7
        assert "0x" + "22" * 32 not in json.dumps(seen)

    async def test_absent_handles_are_omitted(self):
        handles = [ValueHandle(b"\x01" * 32), ValueHandle(b"\x02" * 32)]

        results = await self._decrypt(
            lambda _request: httpx.Response(200, json={"results": {handles[0].hex: 4}}),
            handles,
        )

        assert results == {handles[0]: 4}

    async def test_rejection_raises(self):
        with pytest.raises(RelayError, match="403"):
            await self._decrypt(lambda _request: httpx.Response(403, json={"error": "no"}), [])

    async def test_unreachable_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RelayError, match="Failed to reach"):
            await self._decrypt(handler, [])

    async def test_malformed_response_raises(self):
        with pytest.raises(RelayError, match="Malformed"):
            await self._decrypt(lambda _request: httpx.Response(200, json={"results": {"0x12": 1}}), [])
