from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from backend.repository.data_repository import DataRepository
from backend.services.estimation_service import EstimationService
from backend.services.queue_service import (
    CourseNotFoundError,
    HistoryEntryNotFoundError,
    OccupantNotFoundError,
    PartyNotFoundError,
    QueueService,
    QueueValidationError,
)
from backend.utils.config import get_settings


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        default_max_capacity=4,
    )


def _build_service(tmp_path, filename: str) -> tuple[QueueService, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_defaults()
    service = QueueService(
        repository=repository,
        estimation_service=EstimationService(repository=repository, settings=settings),
        settings=settings,
    )
    return service, repository


def _at(minutes: float) -> datetime:
    return NOW + timedelta(minutes=minutes)


def test_seed_defaults_is_idempotent(tmp_path):
    service, repository = _build_service(tmp_path, "seed.db")
    repository.seed_defaults()

    assert [course.course_id for course in service.list_courses()] == ["c30", "c60"]
    assert service.get_capacity() == 4


def test_queue_lifecycle_from_join_to_history(tmp_path):
    service, repository = _build_service(tmp_path, "lifecycle.db")

    first = service.add_party(4, note="window seat", now=NOW)
    second = service.add_party(2, now=_at(1))
    assert first.party_id.startswith("q_")

    rows = service.list_queue(now=NOW)
    assert [row["party_id"] for row in rows] == [first.party_id, second.party_id]
    assert [row["position"] for row in rows] == [1, 2]
    # Assumed stay for queued parties: mean(30, 60) = 45 + 7.
    assert [row["estimated_wait_minutes"] for row in rows] == [0, 52]

    occupant = service.admit_party(first.party_id, "c30", now=NOW)
    assert occupant.size == 4
    assert occupant.note == "window seat"
    assert occupant.departure_at == _at(37)
    assert repository.get_party(first.party_id) is None

    rows = service.list_queue(now=NOW)
    assert len(rows) == 1
    assert rows[0]["estimated_wait_minutes"] == 37
    assert rows[0]["approximate"] is False

    inside = service.list_occupants(now=_at(7))
    assert [row["remaining_minutes"] for row in inside] == [30]

    entry = service.checkout(occupant.occupant_id, now=_at(40))
    assert entry.history_id.startswith("h_")
    assert entry.entered_at == NOW
    assert service.list_occupants(now=_at(40)) == []
    assert [item.history_id for item in service.list_history()] == [entry.history_id]

    rows = service.list_queue(now=_at(40))
    assert rows[0]["estimated_wait_minutes"] == 0


def test_list_queue_survives_removal_by_another_worker(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path, "two_workers.db")
    other_settings = _build_test_settings(tmp_path, "two_workers.db")
    other_worker = QueueService(repository=DataRepository(other_settings), settings=other_settings)
    first = service.add_party(4, now=NOW)
    second = service.add_party(4, now=_at(1))

    estimation_service = service._estimation_service
    estimate_snapshot = estimation_service.estimate_snapshot

    def estimate_after_concurrent_cancel(snapshot, now=None):
        other_worker.remove_party(first.party_id)
        return estimate_snapshot(snapshot, now=now)

    monkeypatch.setattr(estimation_service, "estimate_snapshot", estimate_after_concurrent_cancel)

    rows = service.list_queue(now=NOW)
    assert [row["party_id"] for row in rows] == [first.party_id, second.party_id]
    assert [row["estimated_wait_minutes"] for row in rows] == [0, 52]

    monkeypatch.undo()
    rows = service.list_queue(now=NOW)
    assert [row["party_id"] for row in rows] == [second.party_id]
    assert rows[0]["estimated_wait_minutes"] == 0
    assert repository.get_party(first.party_id) is None


def test_load_snapshot_reads_queue_occupants_and_capacity(tmp_path):
    service, repository = _build_service(tmp_path, "snapshot.db")
    admitted = service.add_party(2, now=NOW)
    waiting = service.add_party(3, now=_at(1))
    service.admit_party(admitted.party_id, "c30", now=NOW)

    snapshot = repository.load_snapshot()

    assert [party.party_id for party in snapshot.queue] == [waiting.party_id]
    assert [occupant.size for occupant in snapshot.occupants] == [2]
    assert [course.course_id for course in snapshot.courses] == ["c30", "c60"]
    assert snapshot.max_capacity == 4


def test_preview_wait_does_not_persist_party(tmp_path):
    service, repository = _build_service(tmp_path, "preview.db")
    service.add_party(4, now=NOW)

    assert service.preview_wait(1, now=NOW) == 52
    assert len(repository.list_queue()) == 1


def test_capacity_update_changes_estimates(tmp_path):
    service, _ = _build_service(tmp_path, "capacity.db")
    service.add_party(4, now=NOW)
    service.add_party(4, now=NOW)

    assert [row["estimated_wait_minutes"] for row in service.list_queue(now=NOW)] == [0, 52]

    service.update_capacity(8)
    assert service.venue_settings()["max_capacity"] == 8
    assert [row["estimated_wait_minutes"] for row in service.list_queue(now=NOW)] == [0, 0]


def test_oversized_party_is_flagged_approximate(tmp_path):
    service, _ = _build_service(tmp_path, "oversized.db")
    service.add_party(6, now=NOW)

    rows = service.list_queue(now=NOW)
    assert rows[0]["approximate"] is True
    assert rows[0]["estimated_wait_minutes"] == 0


def test_delete_occupant_skips_history(tmp_path):
    service, repository = _build_service(tmp_path, "delete_occupant.db")
    party = service.add_party(2, now=NOW)
    occupant = service.admit_party(party.party_id, "c60", now=NOW)

    service.delete_occupant(occupant.occupant_id)

    assert service.list_occupants(now=NOW) == []
    assert repository.count_history_entries() == 0


def test_history_summary_groups_by_course(tmp_path):
    service, _ = _build_service(tmp_path, "summary.db")
    assert service.history_summary() == {"total_parties": 0, "total_headcount": 0, "by_course": []}

    for size, course_id, stay in [(2, "c30", 40), (3, "c30", 30), (4, "c60", 65)]:
        party = service.add_party(size, now=NOW)
        occupant = service.admit_party(party.party_id, course_id, now=NOW)
        service.checkout(occupant.occupant_id, now=_at(stay))

    summary = service.history_summary()
    assert summary["total_parties"] == 3
    assert summary["total_headcount"] == 9
    assert summary["by_course"] == [
        {"course_id": "c30", "parties": 2, "headcount": 5, "mean_stay_minutes": 35.0},
        {"course_id": "c60", "parties": 1, "headcount": 4, "mean_stay_minutes": 65.0},
    ]


def test_delete_history_entry(tmp_path):
    service, repository = _build_service(tmp_path, "delete_history.db")
    party = service.add_party(1, now=NOW)
    occupant = service.admit_party(party.party_id, "c30", now=NOW)
    entry = service.checkout(occupant.occupant_id, now=_at(30))

    service.delete_history_entry(entry.history_id)

    assert repository.count_history_entries() == 0
    with pytest.raises(HistoryEntryNotFoundError):
        service.delete_history_entry(entry.history_id)


def test_unknown_records_raise_not_found(tmp_path):
    service, _ = _build_service(tmp_path, "not_found.db")
    party = service.add_party(2, now=NOW)

    with pytest.raises(PartyNotFoundError):
        service.remove_party("q_missing")
    with pytest.raises(PartyNotFoundError):
        service.admit_party("q_missing", "c30", now=NOW)
    with pytest.raises(CourseNotFoundError):
        service.admit_party(party.party_id, "c999", now=NOW)
    with pytest.raises(OccupantNotFoundError):
        service.checkout("in_missing", now=NOW)
    with pytest.raises(OccupantNotFoundError):
        service.delete_occupant("in_missing")


def test_invalid_inputs_raise_validation_error(tmp_path):
    service, _ = _build_service(tmp_path, "validation.db")

    with pytest.raises(QueueValidationError):
        service.add_party(0, now=NOW)
    with pytest.raises(QueueValidationError):
        service.preview_wait(0, now=NOW)
    with pytest.raises(QueueValidationError):
        service.update_capacity(0)
