"""Participant-side error taxonomy.

Ledger rule violations keep their ledger types (ledger.logic.exceptions) so
they reach the participant verbatim. Everything here describes a failure of
the client's own collaborators: configuration, wallet, transport and relay.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shared.handles import ValueHandle


class ArenaError(Exception):
    """Base exception for participant-side failures."""


class ConfigurationError(ArenaError):
    """The game contract address is not configured."""


class IdentityUnavailable(ArenaError):
    """No participant identity is connected."""


class ActionInProgress(ArenaError):
    """Another mutating action for this session has not settled yet."""


class TransactionFailed(ArenaError):
    """A submitted mutation did not finalize."""

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class RevealError(ArenaError):
    """Base for failures in the reveal pipeline; never fatal to the game."""


class SignerUnavailable(RevealError):
    """No signing identity is present to authorize a reveal."""


class AuthorizationRejected(RevealError):
    """The wallet declined or failed to sign the reveal authorization."""


class DecryptionFailed(RevealError):
    """A reveal batch failed; the listed handles stay unresolved."""

    def __init__(self, message: str, *, unresolved: Iterable[ValueHandle] = ()) -> None:
        self.unresolved = frozenset(unresolved)
        super().__init__(message)


class RelayError(Exception):
    """Transport-level relay failure, optionally with the results that did arrive."""

    def __init__(self, message: str, *, partial: dict[ValueHandle, int] | None = None) -> None:
        self.partial = dict(partial or {})
        super().__init__(message)
