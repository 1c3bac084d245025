from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence, TypeVar

from core.error_handling import SelectionCapacityError
from core.models import RawFrame

FrameT = TypeVar("FrameT", bound=RawFrame)


class SelectionStore:
    """Timestamps of the frames chosen for enhancement, capped at ``max_selected``."""

    def __init__(self, max_selected: int = 8):
        if max_selected < 1:
            raise ValueError("max_selected must be at least 1")
        self.max_selected = max_selected
        # dict keeps insertion order
        self._selected: dict[float, None] = {}

    def toggle(self, timestamp: float) -> bool:
        """
        Adds or removes ``timestamp``.

        Returns whether the timestamp is selected afterwards. Adding beyond the cap
        raises SelectionCapacityError and leaves the selection unchanged.
        """
        if timestamp in self._selected:
            del self._selected[timestamp]
            return False
        if len(self._selected) >= self.max_selected:
            raise SelectionCapacityError(self.max_selected)
        self._selected[timestamp] = None
        return True

    def select_all(self, candidates: Iterable[float]):
        """Replaces the selection with the first ``max_selected`` distinct candidates."""
        selected: dict[float, None] = {}
        for ts in candidates:
            if len(selected) >= self.max_selected:
                break
            selected[ts] = None
        self._selected = selected

    def deselect_all(self):
        self._selected = {}

    def pick(self, frames: Sequence[FrameT]) -> List[FrameT]:
        """Selected frames in the order they appear in ``frames``."""
        return [f for f in frames if f.timestamp in self._selected]

    @property
    def timestamps(self) -> List[float]:
        return list(self._selected)

    def __contains__(self, timestamp: object) -> bool:
        return timestamp in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __iter__(self) -> Iterator[float]:
        return iter(list(self._selected))
