"""Client side of the user-decryption relay."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import httpx
import structlog
from pydantic import ValidationError

from arena.exceptions import RelayError
from shared.handles import ValueHandle
from shared.wire import HandleContractPair, UserDecryptRequest, UserDecryptResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = structlog.get_logger()

_HTTP_OK = 200


class DecryptionRelayClient(Protocol):
    async def user_decrypt(
        self,
        handle_contract_pairs: Sequence[tuple[ValueHandle, str]],
        private_key: str,
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> dict[ValueHandle, int]:
        """Resolve what the relay can; handles absent from the result are unresolved."""
        ...


class HttpDecryptionRelay:
    """Posts reveal batches to a relay's /user-decrypt endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def user_decrypt(
        self,
        handle_contract_pairs: Sequence[tuple[ValueHandle, str]],
        private_key: str,  # noqa: ARG002
        public_key: str,
        signature: str,
        contract_addresses: Sequence[str],
        user_address: str,
        start_timestamp: int,
        duration_days: int,
    ) -> dict[ValueHandle, int]:
        # The private key stays on this side of the wire.
        request = UserDecryptRequest(
            handle_contract_pairs=[
                HandleContractPair(handle=handle, contract_address=contract)
                for handle, contract in handle_contract_pairs
            ],
            public_key=public_key,
            signature=signature,
            contract_addresses=list(contract_addresses),
            user_address=user_address,
            start_timestamp=start_timestamp,
            duration_days=duration_days,
        )

        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post("/user-decrypt", json=request.model_dump(mode="json"))
            except httpx.RequestError as e:
                raise RelayError(f"Failed to reach decryption relay: {e}") from e

        if response.status_code != _HTTP_OK:
            raise RelayError(f"Decryption relay returned {response.status_code}: {response.text}")

        try:
            payload = UserDecryptResponse.model_validate(response.json())
            results = {ValueHandle.from_hex(handle): value for handle, value in payload.results.items()}
        except (ValueError, ValidationError) as e:
            raise RelayError(f"Malformed decryption relay response: {e}") from e

        logger.debug("relay responded", requested=len(handle_contract_pairs), resolved=len(results))
        return results
