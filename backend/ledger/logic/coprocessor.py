"""
Encrypted-arithmetic collaborator used by the ledger.

The ledger never sees plaintexts: it hands handles to the coprocessor and gets
handles back. The coprocessor guarantees the dealing contract (two hands of
distinct ranks with no rank shared between them), a total order for
comparisons, and exact integer addition. How it does so is its own business;
InMemoryCoprocessor is the reference engine used by the node and in tests.
"""

from __future__ import annotations

import random
import secrets
from collections import defaultdict
from typing import TYPE_CHECKING, Protocol

from shared.handles import HANDLE_BYTES, ValueHandle
from shared.records import MAX_RANK, MIN_RANK

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class Coprocessor(Protocol):
    def deal_hands(self, hand_size: int) -> tuple[tuple[ValueHandle, ...], tuple[ValueHandle, ...]]: ...

    def encrypt(self, value: int) -> ValueHandle: ...

    def gt(self, a: ValueHandle, b: ValueHandle) -> ValueHandle: ...

    def lt(self, a: ValueHandle, b: ValueHandle) -> ValueHandle: ...

    def add(self, a: ValueHandle, value: int) -> ValueHandle: ...

    def select(self, condition: ValueHandle, if_true: ValueHandle, if_false: ValueHandle) -> ValueHandle: ...

    def allow(self, handle: ValueHandle, account: str) -> None: ...

    def is_allowed(self, handle: ValueHandle, account: str) -> bool: ...

    def decrypt(self, handle: ValueHandle) -> int | None: ...


def random_deck(hand_size: int) -> list[int]:
    """Sample 2 * hand_size distinct ranks from the full rank range."""
    ranks = range(MIN_RANK, MAX_RANK + 1)
    if 2 * hand_size > len(ranks):
        raise ValueError(f"cannot deal two disjoint hands of {hand_size} from {len(ranks)} ranks")
    return random.SystemRandom().sample(ranks, 2 * hand_size)


def fixed_deck(player: Sequence[int], system: Sequence[int]) -> Callable[[int], Sequence[int]]:
    """Deck source that always deals the given hands (tests and replays)."""
    cards = [*player, *system]

    def _deal(hand_size: int) -> Sequence[int]:
        if len(player) != hand_size or len(system) != hand_size:
            raise ValueError(f"fixed deck must hold two hands of {hand_size}")
        return cards

    return _deal


class InMemoryCoprocessor:
    """Plaintext table behind freshly minted handles, with a per-handle allow list."""

    def __init__(self, deck_source: Callable[[int], Sequence[int]] | None = None) -> None:
        self._deck_source = deck_source or random_deck
        self._plaintexts: dict[ValueHandle, int] = {}
        self._acl: defaultdict[ValueHandle, set[str]] = defaultdict(set)

    def _mint(self, value: int) -> ValueHandle:
        handle = ValueHandle(secrets.token_bytes(HANDLE_BYTES))
        self._plaintexts[handle] = value
        return handle

    def _value(self, handle: ValueHandle) -> int:
        # uninitialized handles behave as an encrypted zero in arithmetic
        if handle.is_sentinel:
            return 0
        try:
            return self._plaintexts[handle]
        except KeyError:
            raise ValueError(f"unknown handle {handle}") from None

    def deal_hands(self, hand_size: int) -> tuple[tuple[ValueHandle, ...], tuple[ValueHandle, ...]]:
        ranks = list(self._deck_source(hand_size))
        if len(ranks) != 2 * hand_size or len(set(ranks)) != len(ranks):
            raise ValueError("deck source must return distinct ranks for two hands")
        if any(not (MIN_RANK <= rank <= MAX_RANK) for rank in ranks):
            raise ValueError(f"deck ranks must lie in [{MIN_RANK}, {MAX_RANK}]")
        player = tuple(self._mint(rank) for rank in ranks[:hand_size])
        system = tuple(self._mint(rank) for rank in ranks[hand_size:])
        return player, system

    def encrypt(self, value: int) -> ValueHandle:
        return self._mint(value)

    def gt(self, a: ValueHandle, b: ValueHandle) -> ValueHandle:
        return self._mint(int(self._value(a) > self._value(b)))

    def lt(self, a: ValueHandle, b: ValueHandle) -> ValueHandle:
        return self._mint(int(self._value(a) < self._value(b)))

    def add(self, a: ValueHandle, value: int) -> ValueHandle:
        return self._mint(self._value(a) + value)

    def select(self, condition: ValueHandle, if_true: ValueHandle, if_false: ValueHandle) -> ValueHandle:
        chosen = if_true if self._value(condition) else if_false
        return self._mint(self._value(chosen))

    def allow(self, handle: ValueHandle, account: str) -> None:
        self._acl[handle].add(account.lower())

    def is_allowed(self, handle: ValueHandle, account: str) -> bool:
        if handle.is_sentinel:
            return True
        return account.lower() in self._acl.get(handle, ())

    def decrypt(self, handle: ValueHandle) -> int | None:
        if handle.is_sentinel:
            return 0
        return self._plaintexts.get(handle)
