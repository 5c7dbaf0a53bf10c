# backend/tests/unit/test_schedule_overlay.py
"""
Unit tests for exception overlay resolution and slot materialization.
"""

from datetime import date, datetime, time, timezone
from types import SimpleNamespace

import pytest

from app.core.enums import ScheduleFrequency, SlotOriginType
from app.core.exceptions import ScheduleRuleException, ValidationException
from app.domain.schedule_exceptions import ExceptionIndex, merge_rule_with_exception
from app.domain.schedule_types import (
    EXCEPTION_PRIORITY,
    RULE_PRIORITY,
    BlockException,
    ModifyException,
    OneTimeSlotException,
    ScheduleRuleSpec,
    exception_from_model,
    exception_version,
)
from app.domain.slot_materializer import (
    materialize_one_time_slot,
    materialize_rule,
    materialize_rule_day,
    slice_window,
)


def _rule(**overrides) -> ScheduleRuleSpec:
    fields = {
        "id": "rule-1",
        "doctor_id": "doc-1",
        "frequency": ScheduleFrequency.WEEKLY,
        "by_week_day": (1, 3),
        "start_time": time(9, 0),
        "end_time": time(11, 0),
        "slot_duration": 60,
        "start_date": date(2024, 1, 1),
        "appointment_type": "in_person",
        "studio_address": "Via Roma 1",
        "last_expanded_version": 4,
    }
    fields.update(overrides)
    return ScheduleRuleSpec(**fields)


def _modify(day: date, **fields) -> ModifyException:
    return ModifyException(id="mod-1", doctor_id="doc-1", exception_date=day, version=5000, **fields)


class TestSliceWindow:
    def test_drops_partial_trailing_slot(self):
        intervals = slice_window(date(2024, 1, 1), time(9, 0), time(10, 45), 60)
        assert intervals == [(datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 10, 0))]

    def test_exact_fit(self):
        intervals = slice_window(date(2024, 1, 1), time(9, 0), time(11, 0), 30)
        assert [start.time() for start, _ in intervals] == [
            time(9, 0),
            time(9, 30),
            time(10, 0),
            time(10, 30),
        ]
        assert intervals[-1][1] == datetime(2024, 1, 1, 11, 0)

    def test_window_shorter_than_slot(self):
        assert slice_window(date(2024, 1, 1), time(9, 0), time(9, 20), 30) == []

    def test_rejects_non_positive_duration(self):
        with pytest.raises(ValueError):
            slice_window(date(2024, 1, 1), time(9, 0), time(10, 0), 0)


class TestMergeRuleWithException:
    def test_unset_fields_inherit_rule_values(self):
        merged = merge_rule_with_exception(_rule(), _modify(date(2024, 1, 3), slot_duration=30))
        assert merged.slot_duration == 30
        assert merged.start_time == time(9, 0)
        assert merged.end_time == time(11, 0)
        assert merged.appointment_type == "in_person"
        assert merged.studio_address == "Via Roma 1"

    def test_empty_string_is_a_real_override(self):
        merged = merge_rule_with_exception(_rule(), _modify(date(2024, 1, 3), studio_address=""))
        assert merged.studio_address == ""

    def test_original_rule_is_not_mutated(self):
        rule = _rule()
        merge_rule_with_exception(rule, _modify(date(2024, 1, 3), start_time=time(14, 0)))
        assert rule.start_time == time(9, 0)


class TestExceptionIndex:
    def test_block_wins_over_modify(self):
        day = date(2024, 1, 8)
        index = ExceptionIndex(
            [
                BlockException(id="blk", doctor_id="doc-1", exception_date=day, version=1),
                _modify(day, slot_duration=30),
            ]
        )
        resolution = index.resolve_day(_rule(), day)
        assert resolution.blocked is True
        assert resolution.effective_rule is None

    def test_latest_modify_wins(self):
        day = date(2024, 1, 3)
        older = ModifyException(
            id="old", doctor_id="doc-1", exception_date=day, version=2000, slot_duration=15
        )
        newer = ModifyException(
            id="new", doctor_id="doc-1", exception_date=day, version=3000, slot_duration=30
        )
        resolution = ExceptionIndex([newer, older]).resolve_day(_rule(), day)
        assert resolution.modify.id == "new"
        assert resolution.effective_rule.slot_duration == 30

    def test_untouched_day_returns_rule(self):
        rule = _rule()
        resolution = ExceptionIndex().resolve_day(rule, date(2024, 1, 1))
        assert resolution.blocked is False
        assert resolution.effective_rule is rule
        assert resolution.is_modified is False

    def test_one_time_slots_between_is_date_ordered(self):
        late = OneTimeSlotException(
            id="b", doctor_id="doc-1", exception_date=date(2024, 1, 20), version=1
        )
        early = OneTimeSlotException(
            id="a", doctor_id="doc-1", exception_date=date(2024, 1, 5), version=1
        )
        outside = OneTimeSlotException(
            id="c", doctor_id="doc-1", exception_date=date(2024, 3, 1), version=1
        )
        index = ExceptionIndex([late, outside, early])
        found = index.one_time_slots_between(date(2024, 1, 1), date(2024, 1, 31))
        assert [item.id for item in found] == ["a", "b"]


class TestMaterializer:
    def test_rule_slots_carry_rule_provenance(self):
        slots = materialize_rule_day(_rule(), date(2024, 1, 1))
        assert len(slots) == 2
        assert all(slot.origin_type == SlotOriginType.RULE for slot in slots)
        assert all(slot.origin_version == 5 for slot in slots)
        assert all(slot.priority == RULE_PRIORITY for slot in slots)
        assert slots[0].studio_address == "Via Roma 1"

    def test_modified_day_uses_exception_provenance(self):
        index = ExceptionIndex([_modify(date(2024, 1, 3), slot_duration=30)])
        slots = materialize_rule(_rule(), date(2024, 1, 1), date(2024, 1, 14), index)

        jan_3 = [slot for slot in slots if slot.start_time.date() == date(2024, 1, 3)]
        assert [slot.start_time.time() for slot in jan_3] == [
            time(9, 0),
            time(9, 30),
            time(10, 0),
            time(10, 30),
        ]
        assert all(slot.origin_type == SlotOriginType.EXCEPTION for slot in jan_3)
        assert all(slot.origin_id == "mod-1" for slot in jan_3)
        assert all(slot.priority == EXCEPTION_PRIORITY for slot in jan_3)
        assert len(slots) == 10

    def test_blocked_day_is_skipped(self):
        index = ExceptionIndex(
            [BlockException(id="blk", doctor_id="doc-1", exception_date=date(2024, 1, 8), version=1)]
        )
        slots = materialize_rule(_rule(), date(2024, 1, 1), date(2024, 1, 14), index)
        assert len(slots) == 6
        assert not [slot for slot in slots if slot.start_time.date() == date(2024, 1, 8)]

    def test_one_time_slot_defaults_to_video(self):
        item = OneTimeSlotException(
            id="ots",
            doctor_id="doc-1",
            exception_date=date(2024, 1, 8),
            version=7000,
            start_time=time(14, 0),
            end_time=time(15, 0),
            slot_duration=30,
        )
        slots = materialize_one_time_slot(item)
        assert [slot.start_time for slot in slots] == [
            datetime(2024, 1, 8, 14, 0),
            datetime(2024, 1, 8, 14, 30),
        ]
        assert all(slot.appointment_type == "video" for slot in slots)
        assert all(slot.origin_version == 7000 for slot in slots)

    def test_incomplete_one_time_slot_yields_nothing(self):
        item = OneTimeSlotException(
            id="ots",
            doctor_id="doc-1",
            exception_date=date(2024, 1, 8),
            version=1,
            start_time=time(14, 0),
        )
        assert materialize_one_time_slot(item) == []


class TestValueConversion:
    def _row(self, **overrides):
        fields = {
            "id": "rule-9",
            "doctor_id": "doc-1",
            "frequency": "weekly",
            "interval": 1,
            "by_week_day": [3, 1, 1],
            "by_month_day": [],
            "by_set_pos": 0,
            "start_date": date(2024, 1, 1),
            "end_date": None,
            "start_time": "09:00",
            "end_time": "11:00",
            "slot_duration": 60,
            "appointment_type": "video",
            "studio_address": None,
            "last_expanded_at": None,
            "last_expanded_version": None,
        }
        fields.update(overrides)
        return SimpleNamespace(**fields)

    def test_from_model_normalizes_selectors(self):
        spec = ScheduleRuleSpec.from_model(self._row())
        assert spec.by_week_day == (1, 3)
        assert spec.by_set_pos is None
        assert spec.last_expanded_version == 0
        assert spec.next_version == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"frequency": "yearly"},
            {"interval": 0},
            {"slot_duration": 0},
            {"start_time": "9am"},
            {"by_week_day": [7]},
            {"by_month_day": [0]},
            {"start_date": date(2024, 2, 1), "end_date": date(2024, 1, 1)},
        ],
    )
    def test_from_model_rejects_malformed_rules(self, overrides):
        with pytest.raises(ScheduleRuleException):
            ScheduleRuleSpec.from_model(self._row(**overrides))

    def test_exception_version_from_timestamp(self):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert exception_version(stamp) == 1000 + 1704067200
        # Naive values are read as UTC
        assert exception_version(stamp.replace(tzinfo=None)) == 1000 + 1704067200
        assert exception_version(None, stamp) == 1000 + 1704067200

    def test_exception_from_model_tags_variant(self):
        row = SimpleNamespace(
            id="exc-1",
            doctor_id="doc-1",
            exception_date=date(2024, 1, 3),
            exception_type="modify",
            start_time=None,
            end_time="10:00",
            slot_duration=None,
            appointment_type=None,
            studio_address=None,
            created_at=None,
            updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        item = exception_from_model(row)
        assert isinstance(item, ModifyException)
        assert item.start_time is None
        assert item.end_time == time(10, 0)

    def test_exception_from_model_rejects_unknown_type(self):
        row = SimpleNamespace(
            id="exc-2",
            doctor_id="doc-1",
            exception_date=date(2024, 1, 3),
            exception_type="holiday",
        )
        with pytest.raises(ValidationException):
            exception_from_model(row)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"slot_duration": 0},
            {"slot_duration": -15},
            {"start_time": "25:99"},
            {"end_time": "noon"},
        ],
    )
    def test_exception_from_model_rejects_malformed_window(self, overrides):
        fields = {
            "id": "exc-3",
            "doctor_id": "doc-1",
            "exception_date": date(2024, 1, 3),
            "exception_type": "modify",
            "start_time": None,
            "end_time": None,
            "slot_duration": None,
            "appointment_type": None,
            "studio_address": None,
            "created_at": None,
            "updated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        with pytest.raises(ValidationException):
            exception_from_model(SimpleNamespace(**fields))
