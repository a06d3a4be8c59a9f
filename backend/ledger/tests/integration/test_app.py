import pytest
from eth_account import Account
from starlette.testclient import TestClient

from ledger.logic.coprocessor import InMemoryCoprocessor, fixed_deck
from ledger.server.app import create_app
from ledger.server.settings import LedgerServerSettings
from shared.eip712 import build_decryption_typed_data
from shared.handles import ZERO_HANDLE

CONTRACT = "0x369228cD84AeFb713Ef4E7E96aD984539e26825E"
CHAIN_ID = 11155111
NOW = 1_750_000_000


class TestLedgerNode:
    @pytest.fixture
    def account(self):
        return Account.create()

    @pytest.fixture
    def client(self):
        app = create_app(
            settings=LedgerServerSettings(contract_address=CONTRACT, chain_id=CHAIN_ID),
            coprocessor=InMemoryCoprocessor(deck_source=fixed_deck([3, 7, 1, 9, 5], [2, 8, 4, 6, 10])),
            clock=lambda: NOW,
        )
        return TestClient(app)

    def _decrypt_body(self, account, handles):
        typed_data = build_decryption_typed_data(
            public_key="0x" + "04" * 65,
            contract_addresses=[CONTRACT],
            start_timestamp=NOW,
            duration_days=1,
            chain_id=CHAIN_ID,
        )
        signed = account.sign_typed_data(full_message=typed_data)
        return {
            "handle_contract_pairs": [{"handle": handle, "contract_address": CONTRACT} for handle in handles],
            "public_key": "0x" + "04" * 65,
            "signature": "0x" + bytes(signed.signature).hex(),
            "contract_addresses": [CONTRACT],
            "user_address": account.address,
            "start_timestamp": NOW,
            "duration_days": 1,
        }

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "contract_address": CONTRACT, "hand_size": 5}

    def test_get_game_without_game(self, client, account):
        response = client.get(f"/games/{account.address}")

        assert response.status_code == 200
        data = response.json()
        assert data["active"] is False
        assert data["rounds_played"] == 0
        assert data["player_score"] == ZERO_HANDLE.hex

    def test_get_game_invalid_identity(self, client):
        response = client.get("/games/nobody")

        assert response.status_code == 409
        assert response.json() == {"error": "invalid_identity", "message": "Invalid player address"}

    def test_start_returns_receipt(self, client, account):
        response = client.post(f"/games/{account.address}/start")

        assert response.status_code == 202
        receipt = response.json()
        assert receipt["status"] == "confirmed"
        assert receipt["events"][0]["type"] == "game_started"

        lookup = client.get(f"/transactions/{receipt['tx_hash']}")
        assert lookup.status_code == 200
        assert lookup.json() == receipt

    def test_play_card(self, client, account):
        client.post(f"/games/{account.address}/start")

        response = client.post(f"/games/{account.address}/play", json={"index": 0})

        assert response.status_code == 202
        assert [event["type"] for event in response.json()["events"]] == ["round_played"]
        record = client.get(f"/games/{account.address}").json()
        assert record["rounds_played"] == 1
        assert record["player_hand"]["flags"][0] is True
        assert record["system_hand"]["flags"][0] is True

    def test_remaining_rounds(self, client, account):
        client.post(f"/games/{account.address}/start")
        client.post(f"/games/{account.address}/play", json={"index": 3})

        response = client.get(f"/games/{account.address}/remaining")

        assert response.status_code == 200
        assert response.json() == {"player": account.address, "remaining": 4, "active": True}

    def test_play_without_game_conflicts(self, client, account):
        response = client.post(f"/games/{account.address}/play", json={"index": 0})

        assert response.status_code == 409
        assert response.json() == {"error": "game_not_active", "message": "Game not active"}

    def test_play_invalid_index_conflicts(self, client, account):
        client.post(f"/games/{account.address}/start")

        response = client.post(f"/games/{account.address}/play", json={"index": 5})

        assert response.status_code == 409
        assert response.json()["message"] == "Invalid card index"

    def test_replay_slot_conflicts(self, client, account):
        client.post(f"/games/{account.address}/start")
        client.post(f"/games/{account.address}/play", json={"index": 0})

        response = client.post(f"/games/{account.address}/play", json={"index": 0})

        assert response.status_code == 409
        assert response.json()["error"] == "card_already_used"

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b'{"slot": 1}',
            b'{"index": "x"}',
            b'{"index": true}',
            b'{"index": 1.0}',
            b'{"index": "1"}',
            b"x" * 20000,
        ],
    )
    def test_play_malformed_body(self, client, account, body):
        client.post(f"/games/{account.address}/start")

        response = client.post(f"/games/{account.address}/play", content=body)

        assert response.status_code == 400
        assert client.get(f"/games/{account.address}").json()["rounds_played"] == 0

    def test_unknown_transaction(self, client):
        response = client.get("/transactions/0xdeadbeef")

        assert response.status_code == 404

    def test_user_decrypt(self, client, account):
        client.post(f"/games/{account.address}/start")
        record = client.get(f"/games/{account.address}").json()
        handles = record["player_hand"]["cards"] + record["system_hand"]["cards"][:1]

        response = client.post("/user-decrypt", json=self._decrypt_body(account, handles))

        assert response.status_code == 200
        results = response.json()["results"]
        assert [results[handle] for handle in record["player_hand"]["cards"]] == [3, 7, 1, 9, 5]
        assert record["system_hand"]["cards"][0] not in results

    def test_user_decrypt_wrong_signer_forbidden(self, client, account):
        client.post(f"/games/{account.address}/start")
        record = client.get(f"/games/{account.address}").json()
        body = self._decrypt_body(Account.create(), record["player_hand"]["cards"])
        body["user_address"] = account.address

        response = client.post("/user-decrypt", json=body)

        assert response.status_code == 403

    def test_user_decrypt_malformed_body(self, client):
        response = client.post("/user-decrypt", json={"handle_contract_pairs": "nope"})

        assert response.status_code == 400

    def test_only_recent_receipts_are_kept(self, account):
        client = TestClient(
            create_app(
                settings=LedgerServerSettings(contract_address=CONTRACT, chain_id=CHAIN_ID, max_receipts=2),
                clock=lambda: NOW,
            ),
        )
        hashes = [client.post(f"/games/{account.address}/start").json()["tx_hash"] for _ in range(3)]

        assert client.get(f"/transactions/{hashes[0]}").status_code == 404
        assert [client.get(f"/transactions/{tx_hash}").status_code for tx_hash in hashes[1:]] == [200, 200]
