"""
User-decryption relay backed by the coprocessor.

A request carries a batch of (handle, contract) pairs and an EIP-712
authorization signed by the requesting user. The relay checks that the
authorization is well-formed, in its validity window, covers every contract
in the batch and was signed by the claimed user. Then it returns the
plaintext of each handle that both the contract and the user may read.
Handles that fail the per-handle check, or that the coprocessor cannot
resolve yet, are left out of the result instead of failing the whole batch.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog
from eth_account import Account
from eth_account.messages import encode_typed_data

from ledger.logic.exceptions import RelayRejectedError
from shared.eip712 import DEFAULT_DECRYPTION_VERIFIER, SECONDS_PER_DAY, build_decryption_typed_data

if TYPE_CHECKING:
    from collections.abc import Callable

    from ledger.logic.coprocessor import Coprocessor
    from shared.handles import ValueHandle
    from shared.wire import UserDecryptRequest

logger = structlog.get_logger()

MAX_DURATION_DAYS = 365


class DecryptionRelay:
    def __init__(
        self,
        coprocessor: Coprocessor,
        chain_id: int,
        *,
        max_duration_days: int = MAX_DURATION_DAYS,
        verifying_contract: str = DEFAULT_DECRYPTION_VERIFIER,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._coprocessor = coprocessor
        self._chain_id = chain_id
        self._max_duration_days = max_duration_days
        self._verifying_contract = verifying_contract
        self._clock = clock or time.time

    def _verify(self, request: UserDecryptRequest) -> None:
        if not (1 <= request.duration_days <= self._max_duration_days):
            raise RelayRejectedError(f"duration_days must be 1-{self._max_duration_days}, got {request.duration_days}")

        now = int(self._clock())
        expires_at = request.start_timestamp + request.duration_days * SECONDS_PER_DAY
        if request.start_timestamp > now:
            raise RelayRejectedError("authorization starts in the future")
        if now >= expires_at:
            raise RelayRejectedError("authorization expired")

        allowed_contracts = set(request.contract_addresses)
        for pair in request.handle_contract_pairs:
            if pair.contract_address not in allowed_contracts:
                raise RelayRejectedError(f"contract {pair.contract_address} not covered by authorization")

        typed_data = build_decryption_typed_data(
            public_key=request.public_key,
            contract_addresses=request.contract_addresses,
            start_timestamp=request.start_timestamp,
            duration_days=request.duration_days,
            chain_id=self._chain_id,
            verifying_contract=self._verifying_contract,
        )
        try:
            signer = Account.recover_message(encode_typed_data(full_message=typed_data), signature=request.signature)
        except Exception as e:
            raise RelayRejectedError(f"malformed authorization signature: {e}") from e
        if signer.lower() != request.user_address.lower():
            raise RelayRejectedError("authorization was not signed by the requesting user")

    def user_decrypt(self, request: UserDecryptRequest) -> dict[ValueHandle, int]:
        """Verify the authorization and resolve every readable handle in the batch."""
        self._verify(request)

        results: dict[ValueHandle, int] = {}
        withheld = 0
        for pair in request.handle_contract_pairs:
            handle = pair.handle
            if not (
                self._coprocessor.is_allowed(handle, pair.contract_address)
                and self._coprocessor.is_allowed(handle, request.user_address)
            ):
                withheld += 1
                continue
            value = self._coprocessor.decrypt(handle)
            if value is not None:
                results[handle] = value

        logger.info(
            "user decrypt served",
            user=request.user_address,
            requested=len(request.handle_contract_pairs),
            resolved=len(results),
            withheld=withheld,
        )
        return results
