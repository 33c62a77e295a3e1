"""Queue lifecycle service: join, admit, checkout and history views."""

from __future__ import annotations

from datetime import datetime, timedelta
from threading import RLock
from typing import Any, Optional
from uuid import uuid4

import pandas as pd

from backend.domain.constraints import validate_capacity
from backend.domain.models import Course, HistoryEntry, Occupant, Party
from backend.domain.timeline import as_utc, utc_now
from backend.repository.data_repository import DataRepository
from backend.services.estimation_service import EstimationService, minutes_until
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

UNASSIGNED_COURSE = "unassigned"


class QueueValidationError(Exception):
    """Raised when queue operation inputs are invalid."""


class QueueRecordNotFoundError(Exception):
    """Base class for lookups that miss a queue record."""


class PartyNotFoundError(QueueRecordNotFoundError):
    """Raised when a party id is not in the queue."""


class OccupantNotFoundError(QueueRecordNotFoundError):
    """Raised when an occupant id is not inside the venue."""


class CourseNotFoundError(QueueRecordNotFoundError):
    """Raised when a course id is not configured."""


class HistoryEntryNotFoundError(QueueRecordNotFoundError):
    """Raised when a history id does not exist."""


class QueueService:
    """Coordinates queue state transitions and re-runs the estimator on reads.

    Estimates are computed from a snapshot the repository reads in a single
    transaction, and queue rows are built from that same snapshot, so writers
    in other processes cannot make the rows and the estimates disagree.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        estimation_service: Optional[EstimationService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._estimation_service = estimation_service or EstimationService(
            repository=self._repository,
            settings=self._settings,
        )
        self._lock = RLock()

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}{uuid4().hex[:7]}"

    def _now(self, now: Optional[datetime]) -> datetime:
        return as_utc(now) if now is not None else utc_now()

    # --- Queue ---

    def add_party(self, size: int, note: str = "", now: Optional[datetime] = None) -> Party:
        if size <= 0:
            raise QueueValidationError("size must be > 0")
        party = Party(
            party_id=self._new_id(self._settings.party_id_prefix),
            size=size,
            joined_at=self._now(now),
            note=note.strip(),
        )
        with self._lock:
            self._repository.add_party(party)
        logger.info("Party joined queue | party_id=%s | size=%s", party.party_id, party.size)
        return party

    def remove_party(self, party_id: str) -> None:
        with self._lock:
            removed = self._repository.remove_party(party_id)
        if not removed:
            raise PartyNotFoundError(f"party_id={party_id} is not in the queue")
        logger.info("Party left queue | party_id=%s", party_id)

    def list_queue(self, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        """Queued parties in arrival order with their estimated wait."""
        with self._lock:
            snapshot = self._repository.load_snapshot()
        schedule = self._estimation_service.estimate_snapshot(snapshot, now=self._now(now))

        admission_by_id = {admission.party_id: admission for admission in schedule.admissions}
        rows: list[dict[str, Any]] = []
        for position, party in enumerate(snapshot.queue, start=1):
            admission = admission_by_id[party.party_id]
            rows.append(
                {
                    "party_id": party.party_id,
                    "position": position,
                    "size": party.size,
                    "note": party.note,
                    "joined_at": party.joined_at,
                    "estimated_wait_minutes": schedule.wait_minutes[party.party_id],
                    "estimated_entry_at": admission.assigned_at,
                    "approximate": admission.fallback,
                }
            )
        return rows

    def preview_wait(self, size: int, now: Optional[datetime] = None) -> int:
        if size <= 0:
            raise QueueValidationError("size must be > 0")
        with self._lock:
            return self._estimation_service.preview_wait(size, now=self._now(now))

    # --- Admission and checkout ---

    def admit_party(
        self,
        party_id: str,
        course_id: str,
        now: Optional[datetime] = None,
    ) -> Occupant:
        course = self._repository.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(f"course_id={course_id} is not configured")

        entered_at = self._now(now)
        departure_at = entered_at + timedelta(
            minutes=course.minutes + self._settings.turnover_buffer_minutes
        )
        with self._lock:
            occupant = self._repository.move_party_to_inside(
                party_id=party_id,
                occupant_id=self._new_id(self._settings.occupant_id_prefix),
                course_id=course.course_id,
                entered_at=entered_at,
                departure_at=departure_at,
            )
        if occupant is None:
            raise PartyNotFoundError(f"party_id={party_id} is not in the queue")
        logger.info(
            "Party admitted | party_id=%s | occupant_id=%s | course_id=%s | departure_at=%s",
            party_id,
            occupant.occupant_id,
            course.course_id,
            departure_at.isoformat(),
        )
        return occupant

    def checkout(self, occupant_id: str, now: Optional[datetime] = None) -> HistoryEntry:
        with self._lock:
            entry = self._repository.checkout_occupant(
                occupant_id=occupant_id,
                history_id=self._new_id(self._settings.history_id_prefix),
                exited_at=self._now(now),
            )
        if entry is None:
            raise OccupantNotFoundError(f"occupant_id={occupant_id} is not inside")
        logger.info("Occupant checked out | occupant_id=%s | history_id=%s", occupant_id, entry.history_id)
        return entry

    def delete_occupant(self, occupant_id: str) -> None:
        with self._lock:
            deleted = self._repository.delete_occupant(occupant_id)
        if not deleted:
            raise OccupantNotFoundError(f"occupant_id={occupant_id} is not inside")
        logger.info("Occupant deleted without history | occupant_id=%s", occupant_id)

    def list_occupants(self, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        """Occupants ordered by departure with the minutes they have left."""
        current = self._now(now)
        with self._lock:
            occupants = self._repository.list_occupants()
        occupants = sorted(occupants, key=lambda occupant: as_utc(occupant.departure_at))
        return [
            {
                "occupant_id": occupant.occupant_id,
                "size": occupant.size,
                "note": occupant.note,
                "course_id": occupant.course_id,
                "entered_at": occupant.entered_at,
                "departure_at": occupant.departure_at,
                "remaining_minutes": minutes_until(as_utc(occupant.departure_at), current),
            }
            for occupant in occupants
        ]

    # --- History ---

    def list_history(self) -> list[HistoryEntry]:
        return self._repository.list_history()

    def delete_history_entry(self, history_id: str) -> None:
        if not self._repository.delete_history_entry(history_id):
            raise HistoryEntryNotFoundError(f"history_id={history_id} does not exist")
        logger.info("History entry deleted | history_id=%s", history_id)

    def history_summary(self) -> dict[str, Any]:
        """Served parties, headcount and mean stay grouped by course."""
        entries = self._repository.list_history()
        if not entries:
            return {"total_parties": 0, "total_headcount": 0, "by_course": []}

        frame = pd.DataFrame(
            {
                "history_id": [entry.history_id for entry in entries],
                "course_id": [entry.course_id or UNASSIGNED_COURSE for entry in entries],
                "size": [entry.size for entry in entries],
                "entered_at": pd.to_datetime(
                    [_iso_or_none(entry.entered_at) for entry in entries],
                    utc=True,
                ),
                "exited_at": pd.to_datetime(
                    [_iso_or_none(entry.exited_at) for entry in entries],
                    utc=True,
                ),
            }
        )
        frame["stay_minutes"] = (
            frame["exited_at"] - frame["entered_at"]
        ).dt.total_seconds() / 60.0

        grouped = (
            frame.groupby("course_id", sort=True)
            .agg(
                parties=("history_id", "count"),
                headcount=("size", "sum"),
                mean_stay_minutes=("stay_minutes", "mean"),
            )
            .reset_index()
        )
        by_course = [
            {
                "course_id": str(row.course_id),
                "parties": int(row.parties),
                "headcount": int(row.headcount),
                "mean_stay_minutes": (
                    None if pd.isna(row.mean_stay_minutes) else round(float(row.mean_stay_minutes), 1)
                ),
            }
            for row in grouped.itertuples(index=False)
        ]
        return {
            "total_parties": int(len(frame)),
            "total_headcount": int(frame["size"].sum()),
            "by_course": by_course,
        }

    # --- Venue configuration ---

    def list_courses(self) -> list[Course]:
        return self._repository.list_courses()

    def get_capacity(self) -> int:
        return self._repository.get_max_capacity()

    def venue_settings(self) -> dict[str, int]:
        return {
            "max_capacity": self.get_capacity(),
            "turnover_buffer_minutes": self._settings.turnover_buffer_minutes,
            "default_course_minutes": self._settings.default_course_minutes,
        }

    def update_capacity(self, max_capacity: int) -> int:
        try:
            validate_capacity(max_capacity)
        except ValueError as exc:
            raise QueueValidationError(str(exc)) from exc
        with self._lock:
            self._repository.set_max_capacity(max_capacity)
        logger.info("Venue capacity updated | max_capacity=%s", max_capacity)
        return max_capacity


def _iso_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).isoformat()
