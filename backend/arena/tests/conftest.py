import pytest

from arena.reveal.cache import RevealCache
from arena.reveal.dispatcher import RevealDispatcher
from arena.reveal.wallet import LocalWallet
from arena.session.controller import GameSessionController
from arena.settings import ArenaSettings
from arena.tests.mocks import InProcessLedgerClient, InProcessRelay
from ledger.logic.coprocessor import InMemoryCoprocessor, fixed_deck
from ledger.logic.ledger import CardGameLedger

CONTRACT_ADDRESS = "0x369228cD84AeFb713Ef4E7E96aD984539e26825E"
CHAIN_ID = 11155111


@pytest.fixture
def contract_address():
    return CONTRACT_ADDRESS


@pytest.fixture
def settings():
    return ArenaSettings(contract_address=CONTRACT_ADDRESS, chain_id=CHAIN_ID, receipt_poll_interval=0)


@pytest.fixture
def wallet():
    return LocalWallet.create()


@pytest.fixture
def coprocessor():
    return InMemoryCoprocessor(deck_source=fixed_deck([3, 7, 1, 9, 5], [2, 8, 4, 6, 10]))


@pytest.fixture
def ledger_client(coprocessor):
    return InProcessLedgerClient(CardGameLedger(CONTRACT_ADDRESS, coprocessor))


@pytest.fixture
def relay(coprocessor):
    return InProcessRelay(coprocessor, CHAIN_ID)


@pytest.fixture
def cache():
    return RevealCache()


@pytest.fixture
def dispatcher(cache, relay):
    return RevealDispatcher(cache, relay, CONTRACT_ADDRESS, chain_id=CHAIN_ID)


@pytest.fixture
def controller(ledger_client, dispatcher, cache, settings, wallet):
    return GameSessionController(ledger_client, dispatcher, cache, settings, wallet)
