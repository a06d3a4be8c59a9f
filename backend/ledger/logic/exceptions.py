"""Typed domain exceptions for ledger rule violations.

Every violation is raised before the ledger touches any state, so a rejected
action leaves the GameRecord exactly as it was. The messages are the ledger's
canonical revert reasons and are shown to the participant verbatim.
"""

from shared.wire import LedgerErrorCode


class GameRuleError(Exception):
    """Base exception for ledger rule violations."""

    code: LedgerErrorCode
    message: str = "Rule violation"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidMoveError(GameRuleError):
    """playCard was rejected."""


class GameNotActiveError(InvalidMoveError):
    code = LedgerErrorCode.GAME_NOT_ACTIVE
    message = "Game not active"


class IndexOutOfRangeError(InvalidMoveError):
    code = LedgerErrorCode.INDEX_OUT_OF_RANGE
    message = "Invalid card index"


class CardAlreadyUsedError(InvalidMoveError):
    code = LedgerErrorCode.CARD_ALREADY_USED
    message = "Card already used"


class UnknownIdentityError(GameRuleError):
    """Caller identity is not a well-formed address."""

    code = LedgerErrorCode.INVALID_IDENTITY
    message = "Invalid player address"


class RelayRejectedError(Exception):
    """Decryption request failed authorization checks."""


_ERRORS_BY_CODE: dict[LedgerErrorCode, type[GameRuleError]] = {
    cls.code: cls for cls in (GameNotActiveError, IndexOutOfRangeError, CardAlreadyUsedError, UnknownIdentityError)
}


def error_from_code(code: LedgerErrorCode, message: str | None = None) -> GameRuleError:
    """Rebuild the typed exception for a wire error code."""
    return _ERRORS_BY_CODE[code](message)
