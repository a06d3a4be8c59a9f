import pytest

from ledger.logic.coprocessor import InMemoryCoprocessor, fixed_deck
from ledger.logic.ledger import CardGameLedger

CONTRACT_ADDRESS = "0x369228cD84AeFb713Ef4E7E96aD984539e26825E"
PLAYER_CARDS = [3, 7, 1, 9, 5]
SYSTEM_CARDS = [2, 8, 4, 6, 10]


@pytest.fixture
def contract_address():
    return CONTRACT_ADDRESS


@pytest.fixture
def player():
    return "0x" + "ab" * 20


@pytest.fixture
def coprocessor():
    return InMemoryCoprocessor(deck_source=fixed_deck(PLAYER_CARDS, SYSTEM_CARDS))


@pytest.fixture
def ledger(coprocessor):
    return CardGameLedger(CONTRACT_ADDRESS, coprocessor)
