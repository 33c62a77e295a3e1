"""Ordered set of instants at which venue occupancy can change."""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime, timezone
from typing import Iterable, Iterator


class CandidateTimeline:
    """Ascending, duplicate-free sequence of candidate admission instants."""

    def __init__(self, instants: Iterable[datetime] = ()) -> None:
        self._instants: list[datetime] = sorted(set(instants))

    def add(self, instant: datetime) -> bool:
        """Insert `instant` keeping order; return False when already present."""
        index = bisect_left(self._instants, instant)
        if index < len(self._instants) and self._instants[index] == instant:
            return False
        self._instants.insert(index, instant)
        return True

    def from_floor(self, floor: datetime) -> Iterator[datetime]:
        """Yield instants >= floor in ascending order."""
        start = bisect_left(self._instants, floor)
        for index in range(start, len(self._instants)):
            yield self._instants[index]

    @property
    def last(self) -> datetime | None:
        if not self._instants:
            return None
        return self._instants[-1]

    def __iter__(self) -> Iterator[datetime]:
        return iter(list(self._instants))

    def __len__(self) -> int:
        return len(self._instants)

    def __contains__(self, instant: object) -> bool:
        if not isinstance(instant, datetime):
            return False
        index = bisect_left(self._instants, instant)
        return index < len(self._instants) and self._instants[index] == instant


def as_utc(instant: datetime) -> datetime:
    """Normalize an instant to an aware UTC datetime; naive values are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
