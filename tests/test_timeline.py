from __future__ import annotations

from datetime import datetime, timedelta, timezone

from backend.domain.timeline import CandidateTimeline, as_utc


BASE = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _at(minutes: int) -> datetime:
    return BASE + timedelta(minutes=minutes)


def test_seed_instants_are_sorted_and_deduplicated() -> None:
    timeline = CandidateTimeline([_at(10), _at(0), _at(10), _at(5)])
    assert list(timeline) == [_at(0), _at(5), _at(10)]
    assert len(timeline) == 3


def test_add_keeps_order_and_reports_duplicates() -> None:
    timeline = CandidateTimeline([_at(0), _at(20)])

    assert timeline.add(_at(10)) is True
    assert timeline.add(_at(10)) is False
    assert timeline.add(_at(30)) is True

    assert list(timeline) == [_at(0), _at(10), _at(20), _at(30)]


def test_from_floor_skips_earlier_instants() -> None:
    timeline = CandidateTimeline([_at(0), _at(5), _at(10)])
    assert list(timeline.from_floor(_at(5))) == [_at(5), _at(10)]
    assert list(timeline.from_floor(_at(6))) == [_at(10)]
    assert list(timeline.from_floor(_at(11))) == []


def test_last_and_membership() -> None:
    empty = CandidateTimeline()
    assert empty.last is None
    assert _at(0) not in empty

    timeline = CandidateTimeline([_at(3), _at(1)])
    assert timeline.last == _at(3)
    assert _at(1) in timeline
    assert "not-an-instant" not in timeline


def test_iteration_is_a_snapshot() -> None:
    timeline = CandidateTimeline([_at(0)])
    iterator = iter(timeline)
    timeline.add(_at(1))
    assert list(iterator) == [_at(0)]


def test_as_utc_normalizes_offsets() -> None:
    plus_nine = timezone(timedelta(hours=9))
    assert as_utc(datetime(2026, 3, 1, 18, 0, tzinfo=plus_nine)) == BASE
    assert as_utc(datetime(2026, 3, 1, 9, 0)).tzinfo == timezone.utc
