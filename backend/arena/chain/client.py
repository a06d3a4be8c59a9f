"""
Ledger client: submit mutations, await their settlement, query records.

Submitting and settling are separate steps. start_game/play_card return as
soon as the node accepts the transaction; PendingTransaction.wait() then
polls the receipt until it is confirmed or reverted. Rule violations rejected
at submission come back as the ledger's own InvalidMove types, message intact.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog
from pydantic import ValidationError

from arena.exceptions import TransactionFailed
from ledger.logic.exceptions import error_from_code
from shared.records import GameRecord
from shared.wire import LedgerErrorResponse, TransactionReceipt, TransactionStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = structlog.get_logger()

_HTTP_OK = 200
_HTTP_ACCEPTED = 202
_HTTP_CONFLICT = 409


class PendingTransaction(Protocol):
    tx_hash: str

    async def wait(self) -> TransactionReceipt: ...


class LedgerClient(Protocol):
    async def get_game(self, identity: str) -> GameRecord: ...

    async def start_game(self, identity: str) -> PendingTransaction: ...

    async def play_card(self, identity: str, index: int) -> PendingTransaction: ...


class HttpPendingTransaction:
    def __init__(
        self,
        tx_hash: str,
        fetch_receipt: Callable[[str], Awaitable[TransactionReceipt]],
        *,
        poll_interval: float,
        max_attempts: int,
    ) -> None:
        self.tx_hash = tx_hash
        self._fetch_receipt = fetch_receipt
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts

    async def wait(self) -> TransactionReceipt:
        """Poll until the transaction settles. Raise TransactionFailed on revert or timeout."""
        for attempt in range(self._max_attempts):
            receipt = await self._fetch_receipt(self.tx_hash)
            if receipt.status == TransactionStatus.CONFIRMED:
                return receipt
            if receipt.status == TransactionStatus.REVERTED:
                raise TransactionFailed("Transaction reverted", tx_hash=self.tx_hash)
            if attempt + 1 < self._max_attempts:
                await asyncio.sleep(self._poll_interval)
        raise TransactionFailed("Transaction did not settle in time", tx_hash=self.tx_hash)


class HttpLedgerClient:
    """Talks to a ledger node over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        poll_interval: float = 0.5,
        max_attempts: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout, transport=self._transport)

    async def get_game(self, identity: str) -> GameRecord:
        async with self._client() as client:
            try:
                response = await client.get(f"/games/{identity}")
            except httpx.RequestError as e:
                raise TransactionFailed(f"Failed to reach ledger node: {e}") from e
        self._raise_for_rule_error(response)
        if response.status_code != _HTTP_OK:
            raise TransactionFailed(f"Ledger node returned {response.status_code}: {response.text}")
        try:
            return GameRecord.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransactionFailed(f"Malformed game record: {e}") from e

    async def start_game(self, identity: str) -> HttpPendingTransaction:
        return await self._submit(f"/games/{identity}/start", None)

    async def play_card(self, identity: str, index: int) -> HttpPendingTransaction:
        return await self._submit(f"/games/{identity}/play", {"index": index})

    async def _submit(self, path: str, body: dict | None) -> HttpPendingTransaction:
        async with self._client() as client:
            try:
                response = await client.post(path, json=body)
            except httpx.RequestError as e:
                raise TransactionFailed(f"Failed to submit transaction: {e}") from e
        self._raise_for_rule_error(response)
        if response.status_code != _HTTP_ACCEPTED:
            raise TransactionFailed(f"Ledger node returned {response.status_code}: {response.text}")
        receipt = TransactionReceipt.model_validate(response.json())
        logger.debug("transaction submitted", tx_hash=receipt.tx_hash, path=path)
        return HttpPendingTransaction(
            receipt.tx_hash,
            self._fetch_receipt,
            poll_interval=self._poll_interval,
            max_attempts=self._max_attempts,
        )

    async def _fetch_receipt(self, tx_hash: str) -> TransactionReceipt:
        async with self._client() as client:
            try:
                response = await client.get(f"/transactions/{tx_hash}")
            except httpx.RequestError as e:
                raise TransactionFailed(f"Failed to fetch receipt: {e}", tx_hash=tx_hash) from e
        if response.status_code != _HTTP_OK:
            raise TransactionFailed(f"Receipt lookup returned {response.status_code}", tx_hash=tx_hash)
        return TransactionReceipt.model_validate(response.json())

    @staticmethod
    def _raise_for_rule_error(response: httpx.Response) -> None:
        if response.status_code != _HTTP_CONFLICT:
            return
        try:
            payload = LedgerErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransactionFailed(f"Malformed ledger error: {response.text}") from e
        raise error_from_code(payload.error, payload.message)
