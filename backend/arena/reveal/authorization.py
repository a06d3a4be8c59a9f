"""
Reveal authorization: a time-boxed, contract-scoped decryption grant.

Each grant pairs a fresh ephemeral keypair with a wallet signature over an
EIP-712 message. The message binds the public key, the contracts whose handles
may be revealed, a start timestamp (whole seconds) and a validity duration in
days. A grant covers exactly one reveal batch and is never reused.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from eth_keys import keys

from arena.exceptions import AuthorizationRejected, SignerUnavailable
from shared.eip712 import DEFAULT_DECRYPTION_VERIFIER, SECONDS_PER_DAY, build_decryption_typed_data

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from arena.reveal.wallet import Wallet

logger = structlog.get_logger()

DEFAULT_DURATION_DAYS = 7


@dataclass(frozen=True)
class Keypair:
    public_key: str
    private_key: str


def generate_keypair() -> Keypair:
    """Fresh ephemeral keypair for one authorization round."""
    private_key = keys.PrivateKey(secrets.token_bytes(32))
    return Keypair(public_key=private_key.public_key.to_hex(), private_key=private_key.to_hex())


def create_eip712(
    public_key: str,
    contract_addresses: Sequence[str],
    start_timestamp: int,
    duration_days: int,
    *,
    chain_id: int,
    verifying_contract: str = DEFAULT_DECRYPTION_VERIFIER,
) -> dict[str, Any]:
    return build_decryption_typed_data(
        public_key=public_key,
        contract_addresses=contract_addresses,
        start_timestamp=start_timestamp,
        duration_days=duration_days,
        chain_id=chain_id,
        verifying_contract=verifying_contract,
    )


@dataclass(frozen=True)
class RevealGrant:
    """Signed authorization plus the keypair it binds."""

    keypair: Keypair
    signature: str
    contract_addresses: tuple[str, ...]
    user_address: str
    start_timestamp: int
    duration_days: int

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    def is_valid_at(self, timestamp: float) -> bool:
        return self.start_timestamp <= timestamp < self.expires_at


async def mint_authorization(
    wallet: Wallet | None,
    contract_addresses: Sequence[str],
    *,
    chain_id: int,
    duration_days: int = DEFAULT_DURATION_DAYS,
    verifying_contract: str = DEFAULT_DECRYPTION_VERIFIER,
    clock: Callable[[], float] = time.time,
    keypair_factory: Callable[[], Keypair] = generate_keypair,
) -> RevealGrant:
    """Build and sign a grant for the given contracts.

    Raises SignerUnavailable when there is no wallet, and AuthorizationRejected
    when the wallet declines or fails to sign.
    """
    if wallet is None:
        raise SignerUnavailable("Signer unavailable")

    keypair = keypair_factory()
    start_timestamp = int(clock())
    contracts = tuple(contract_addresses)
    typed_data = create_eip712(
        keypair.public_key,
        contracts,
        start_timestamp,
        duration_days,
        chain_id=chain_id,
        verifying_contract=verifying_contract,
    )

    try:
        signature = await wallet.sign_typed_data(typed_data)
    except Exception as e:
        logger.warning("reveal authorization not signed", user=wallet.address, error=str(e))
        raise AuthorizationRejected("Signature request was rejected") from e

    return RevealGrant(
        keypair=keypair,
        signature=signature,
        contract_addresses=contracts,
        user_address=wallet.address,
        start_timestamp=start_timestamp,
        duration_days=duration_days,
    )
