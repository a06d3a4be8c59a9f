"""
Reveal dispatcher: turns candidate handles into cached plaintexts.

At most one request is outstanding per handle. A call first drops the
sentinel, handles already in the cache, handles already in flight, and
duplicates. If nothing is left it returns without minting an authorization,
so no wallet prompt appears when there is nothing new to show. Otherwise it
mints one grant for exactly that batch, sends the batch to the relay and
merges whatever comes back. Handles the relay leaves out stay unresolved
and are picked up again by a later call.

A batch belongs to the cache generation it was claimed in. If the cache is
reset while the batch is outstanding, its results are dropped instead of
leaking the previous session's plaintexts into the new one.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from arena.exceptions import DecryptionFailed, RelayError
from arena.reveal.authorization import DEFAULT_DURATION_DAYS, mint_authorization
from shared.eip712 import DEFAULT_DECRYPTION_VERIFIER

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from arena.reveal.cache import RevealCache
    from arena.reveal.relay import DecryptionRelayClient
    from arena.reveal.wallet import Wallet
    from shared.handles import ValueHandle

logger = structlog.get_logger()


class RevealDispatcher:
    def __init__(
        self,
        cache: RevealCache,
        relay: DecryptionRelayClient,
        contract_address: str,
        *,
        chain_id: int,
        duration_days: int = DEFAULT_DURATION_DAYS,
        verifying_contract: str = DEFAULT_DECRYPTION_VERIFIER,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self._relay = relay
        self._contract_address = contract_address
        self._chain_id = chain_id
        self._duration_days = duration_days
        self._verifying_contract = verifying_contract
        self._clock = clock
        self._in_flight: set[ValueHandle] = set()
        self._in_flight_generation = cache.generation

    @property
    def in_flight(self) -> frozenset[ValueHandle]:
        return frozenset(self._current_in_flight())

    def reset(self) -> None:
        """Start a new session: clear the cache and forget batches still in flight."""
        self._cache.reset()
        self._current_in_flight()

    def _current_in_flight(self) -> set[ValueHandle]:
        if self._in_flight_generation != self._cache.generation:
            self._in_flight.clear()
            self._in_flight_generation = self._cache.generation
        return self._in_flight

    def pending(self, candidates: Iterable[ValueHandle]) -> list[ValueHandle]:
        """Candidates that still need a request: unresolved, not in flight, not the sentinel."""
        in_flight = self._current_in_flight()
        return [
            handle for handle in self._cache.missing(candidates) if not handle.is_sentinel and handle not in in_flight
        ]

    async def reveal(self, wallet: Wallet | None, candidates: Iterable[ValueHandle]) -> dict[ValueHandle, int]:
        """Resolve every new candidate in one authorized batch and return what was merged.

        Raises SignerUnavailable or AuthorizationRejected when the grant cannot
        be minted, and DecryptionFailed when the relay fails. Results that did
        arrive are merged into the cache before DecryptionFailed is raised.
        """
        batch = self.pending(candidates)
        if not batch:
            return {}

        generation = self._cache.generation
        claimed = set(batch)
        self._in_flight.update(claimed)
        try:
            grant = await mint_authorization(
                wallet,
                [self._contract_address],
                chain_id=self._chain_id,
                duration_days=self._duration_days,
                verifying_contract=self._verifying_contract,
                clock=self._clock,
            )
            if self._cache.generation != generation:
                logger.info("dropping reveal batch from a previous session", batch_size=len(batch))
                return {}

            # the cache may have grown while the wallet was signing
            batch = [handle for handle in batch if handle not in self._cache]
            if not batch:
                return {}

            log = logger.bind(batch_size=len(batch), user=grant.user_address)
            log.info("dispatching reveal batch")
            try:
                results = await self._relay.user_decrypt(
                    [(handle, self._contract_address) for handle in batch],
                    grant.keypair.private_key,
                    grant.keypair.public_key,
                    grant.signature,
                    list(grant.contract_addresses),
                    grant.user_address,
                    grant.start_timestamp,
                    grant.duration_days,
                )
            except RelayError as e:
                if self._cache.generation != generation:
                    log.info("dropping failed reveal batch from a previous session", error=str(e))
                    return {}
                merged = self._merge(batch, e.partial)
                unresolved = [handle for handle in batch if handle not in merged]
                log.warning("reveal batch failed", error=str(e), merged=len(merged), unresolved=len(unresolved))
                raise DecryptionFailed("Decryption failed", unresolved=unresolved) from e
        finally:
            if self._cache.generation == generation:
                self._in_flight.difference_update(claimed)

        if self._cache.generation != generation:
            log.info("dropping reveal batch from a previous session")
            return {}
        merged = self._merge(batch, results)
        log.info("reveal batch settled", resolved=len(merged), unresolved=len(batch) - len(merged))
        return merged

    def _merge(self, batch: list[ValueHandle], results: dict[ValueHandle, int]) -> dict[ValueHandle, int]:
        """Merge only results for handles this batch asked for."""
        requested = set(batch)
        accepted = {handle: value for handle, value in results.items() if handle in requested}
        self._cache.merge(accepted)
        return accepted
