from __future__ import annotations

from typing import TYPE_CHECKING

from shared.handles import ZERO_HANDLE, ValueHandle

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class RevealCache:
    """Process-wide handle -> plaintext map.

    Seeded with the sentinel resolved to 0, append-only for a session and
    reset wholesale on disconnect or a new game. A merge writes
    cache[handle] = value, so applying the same result twice, or two results
    in either order, ends in the same state. Every reset bumps `generation`,
    which lets a reveal started before the reset recognize its results as stale.
    """

    def __init__(self) -> None:
        self._values: dict[ValueHandle, int] = {ZERO_HANDLE: 0}
        self._generation = 0

    def __contains__(self, handle: object) -> bool:
        return handle in self._values

    def __len__(self) -> int:
        return len(self._values)

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, handle: ValueHandle) -> int | None:
        return self._values.get(handle)

    def missing(self, handles: Iterable[ValueHandle]) -> list[ValueHandle]:
        """Handles not resolved yet, deduplicated, in first-seen order."""
        return [handle for handle in dict.fromkeys(handles) if handle not in self._values]

    def merge(self, results: Mapping[ValueHandle, int]) -> None:
        self._values.update(results)

    def reset(self) -> None:
        self._values = {ZERO_HANDLE: 0}
        self._generation += 1

    def snapshot(self) -> dict[ValueHandle, int]:
        return dict(self._values)
