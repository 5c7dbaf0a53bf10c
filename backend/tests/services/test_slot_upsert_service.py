# backend/tests/services/test_slot_upsert_service.py
"""
Tests for SlotUpsertService: keyed reconciliation, tie-breaks and
per-slot failure isolation.
"""

from datetime import datetime
from unittest.mock import Mock

import pytest

from app.core.enums import SlotOriginType
from app.core.exceptions import RepositoryException
from app.domain.schedule_types import EXCEPTION_PRIORITY, RULE_PRIORITY, SlotCandidate
from app.models.appointment import Appointment
from app.services.slot_upsert_service import SlotUpsertService, UpsertResult, should_overwrite

from tests.helpers.schedule_data import DOCTOR_ID


def _candidate(hour: int, *, origin_type=SlotOriginType.RULE, version=1, minutes=60) -> SlotCandidate:
    start = datetime(2024, 1, 1, hour, 0)
    return SlotCandidate(
        doctor_id=DOCTOR_ID,
        start_time=start,
        end_time=start.replace(minute=minutes % 60, hour=hour + minutes // 60),
        appointment_type="video",
        studio_address=None,
        origin_type=origin_type,
        origin_id="exc-1" if origin_type == SlotOriginType.EXCEPTION else "rule-1",
        origin_version=version,
        priority=EXCEPTION_PRIORITY if origin_type == SlotOriginType.EXCEPTION else RULE_PRIORITY,
    )


class TestShouldOverwrite:
    """Tie-break between a stored slot and an incoming candidate."""

    def test_missing_version_is_always_replaced(self):
        existing = Mock(origin_type=None, origin_version=None)
        assert should_overwrite(existing, _candidate(9, version=1)) is True

    def test_newer_rule_version_wins(self):
        existing = Mock(origin_type="rule", origin_version=1)
        assert should_overwrite(existing, _candidate(9, version=2)) is True

    def test_equal_version_is_left_alone(self):
        existing = Mock(origin_type="rule", origin_version=2)
        assert should_overwrite(existing, _candidate(9, version=2)) is False

    def test_exception_beats_rule_regardless_of_version(self):
        existing = Mock(origin_type="rule", origin_version=10**12)
        candidate = _candidate(9, origin_type=SlotOriginType.EXCEPTION, version=1001)
        assert should_overwrite(existing, candidate) is True

    def test_rule_never_reverts_exception(self):
        existing = Mock(origin_type="exception", origin_version=5)
        assert should_overwrite(existing, _candidate(9, version=10)) is False

    def test_newer_exception_replaces_older_exception(self):
        existing = Mock(origin_type="exception", origin_version=2000)
        candidate = _candidate(9, origin_type=SlotOriginType.EXCEPTION, version=3000)
        assert should_overwrite(existing, candidate) is True


class TestUpsertSlots:
    def test_creates_then_leaves_unchanged(self, db):
        service = SlotUpsertService(db)
        first = service.upsert_slots([_candidate(9), _candidate(10)])
        db.commit()
        assert (first.created, first.updated, first.unchanged, first.failed) == (2, 0, 0, 0)

        second = service.upsert_slots([_candidate(9), _candidate(10)])
        assert (second.created, second.updated, second.unchanged) == (0, 0, 2)
        assert second.fully_applied is True
        assert db.query(Appointment).count() == 2

    def test_update_rewrites_metadata_and_provenance(self, db):
        service = SlotUpsertService(db)
        service.upsert_slots([_candidate(9)])
        result = service.upsert_slots(
            [_candidate(9, origin_type=SlotOriginType.EXCEPTION, version=5000, minutes=30)]
        )
        assert result.updated == 1

        slot = db.query(Appointment).one()
        assert slot.origin_type == "exception"
        assert slot.origin_id == "exc-1"
        assert slot.origin_version == 5000
        assert slot.end_time == datetime(2024, 1, 1, 9, 30)
        assert slot.status == "available"

    def test_failed_slot_does_not_abort_batch(self, db):
        service = SlotUpsertService(db, batch_size=2)
        original_create = service.appointment_repository.create_slot

        def flaky_create(**fields):
            if fields["start_time"].hour == 10:
                raise RepositoryException("transient write failure")
            return original_create(**fields)

        service.appointment_repository.create_slot = flaky_create

        result = service.upsert_slots([_candidate(9), _candidate(10), _candidate(11)])
        db.commit()

        assert result == UpsertResult(created=2, updated=0, unchanged=0, failed=1, attempted=3)
        assert result.fully_applied is False
        hours = sorted(slot.start_time.hour for slot in db.query(Appointment).all())
        assert hours == [9, 11]

    def test_batches_cover_every_candidate(self, db):
        service = SlotUpsertService(db, batch_size=3)
        result = service.upsert_slots([_candidate(hour) for hour in range(8, 16)])
        assert result.created == 8
        assert result.attempted == 8

    def test_empty_input(self, db):
        result = SlotUpsertService(db).upsert_slots([])
        assert result == UpsertResult()
        assert result.fully_applied is True


@pytest.mark.parametrize("batch_size", [1, 50])
def test_duplicate_keys_in_one_call_collapse(db, batch_size):
    service = SlotUpsertService(db, batch_size=batch_size)
    result = service.upsert_slots([_candidate(9), _candidate(9)])
    assert result.created == 1
    assert result.unchanged == 1
    assert db.query(Appointment).count() == 1
