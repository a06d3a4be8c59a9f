"""EIP-712 structure of a user-decryption authorization.

Signer (participant) and verifier (relay) must build byte-identical typed
data, so both import it from here.
"""

from collections.abc import Sequence
from typing import Any

SECONDS_PER_DAY = 86400
DECRYPTION_DOMAIN_NAME = "Decryption"
DECRYPTION_DOMAIN_VERSION = "1"
DEFAULT_DECRYPTION_VERIFIER = "0xb6E160B1ff80D67Bfe90A85eE06Ce0A2613607D1"

_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

_REQUEST_TYPE = [
    {"name": "publicKey", "type": "bytes"},
    {"name": "contractAddresses", "type": "address[]"},
    {"name": "startTimestamp", "type": "uint256"},
    {"name": "durationDays", "type": "uint256"},
]

PRIMARY_TYPE = "UserDecryptRequestVerification"


def build_decryption_typed_data(
    *,
    public_key: str,
    contract_addresses: Sequence[str],
    start_timestamp: int,
    duration_days: int,
    chain_id: int,
    verifying_contract: str = DEFAULT_DECRYPTION_VERIFIER,
) -> dict[str, Any]:
    """Full EIP-712 message binding a public key to contracts and a validity window."""
    return {
        "types": {
            "EIP712Domain": _DOMAIN_TYPE,
            PRIMARY_TYPE: _REQUEST_TYPE,
        },
        "primaryType": PRIMARY_TYPE,
        "domain": {
            "name": DECRYPTION_DOMAIN_NAME,
            "version": DECRYPTION_DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": verifying_contract,
        },
        "message": {
            "publicKey": public_key,
            "contractAddresses": list(contract_addresses),
            "startTimestamp": start_timestamp,
            "durationDays": duration_days,
        },
    }
