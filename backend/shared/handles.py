"""
Opaque value handles.

A handle names an encrypted scalar held by the coprocessor. It says nothing
about the plaintext behind it; the only way to learn that value is an
authorized reveal. The all-zero handle is a sentinel meaning "never assigned",
which is not the same thing as an encryption of zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from pydantic import PlainSerializer, PlainValidator

HANDLE_BYTES = 32
_HEX_PREFIX = "0x"


@dataclass(frozen=True, slots=True)
class ValueHandle:
    """Fixed-width identifier of an encrypted unsigned integer."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes):
            raise TypeError(f"handle must wrap bytes, got {type(self.raw).__name__}")
        if len(self.raw) != HANDLE_BYTES:
            raise ValueError(f"handle must be {HANDLE_BYTES} bytes, got {len(self.raw)}")

    @classmethod
    def from_hex(cls, value: str) -> ValueHandle:
        if not value.startswith(_HEX_PREFIX):
            raise ValueError(f"handle hex must start with {_HEX_PREFIX!r}: {value!r}")
        try:
            raw = bytes.fromhex(value[len(_HEX_PREFIX) :])
        except ValueError:
            raise ValueError(f"handle contains invalid hex characters: {value!r}") from None
        return cls(raw)

    @property
    def hex(self) -> str:
        return _HEX_PREFIX + self.raw.hex()

    @property
    def is_sentinel(self) -> bool:
        return self.raw == bytes(HANDLE_BYTES)

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"ValueHandle({self.hex[:10]}…)"


ZERO_HANDLE = ValueHandle(bytes(HANDLE_BYTES))


def parse_handle(value: object) -> ValueHandle:
    """Coerce a handle, its 0x-hex form, or its raw bytes into a ValueHandle."""
    if isinstance(value, ValueHandle):
        return value
    if isinstance(value, str):
        return ValueHandle.from_hex(value)
    if isinstance(value, bytes):
        return ValueHandle(value)
    raise ValueError(f"cannot interpret {type(value).__name__} as a value handle")


def _handle_to_wire(handle: ValueHandle) -> str:
    return handle.hex


HandleField = Annotated[
    ValueHandle,
    PlainValidator(parse_handle),
    PlainSerializer(_handle_to_wire, return_type=str),
]
