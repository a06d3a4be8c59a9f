"""Signing identities used to authorize reveals."""

from __future__ import annotations

from typing import Any, Protocol

from eth_account import Account


class Wallet(Protocol):
    """External wallet: exposes an address and signs EIP-712 typed data."""

    @property
    def address(self) -> str: ...

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str: ...


class LocalWallet:
    """Wallet backed by a private key held in process (scripts and tests)."""

    def __init__(self, private_key: str | bytes) -> None:
        self._account = Account.from_key(private_key)

    @classmethod
    def create(cls) -> LocalWallet:
        return cls(Account.create().key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, typed_data: dict[str, Any]) -> str:
        signed = self._account.sign_typed_data(full_message=typed_data)
        return "0x" + bytes(signed.signature).hex()
