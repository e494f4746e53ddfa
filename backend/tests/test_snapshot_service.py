# Overview: Pytest coverage for snapshots, start resolution and rollover detection.

"""
Snapshot & Rollover Tests

Covers:
1. Item cleaning and pack binding at write time
2. One start / one end per shift
3. Start resolution (own start, else latest baseline, else error)
4. End submission: rollover rejection, baseline cloning, recalculation
5. detect_rollovers() as a pure function, including its blind spot
"""

from types import SimpleNamespace

import pytest

from scratchers.errors import (
    BaselineRequiredError,
    DuplicateSnapshotError,
    EndSnapshotExistsError,
    NotFoundError,
    PermissionDeniedError,
    RolloverDetectedError,
    ValidationError,
)
from scratchers.models import ScratcherSnapshot, ShiftReport
from scratchers.models.snapshots import SNAPSHOT_TYPE_END, SNAPSHOT_TYPE_START
from scratchers.services import snapshot_service

from conftest import EMPLOYEE_ID, MANAGER_ID


def _items(readings):
    return [{"slot_id": slot.id, "ticket_value": value} for slot, value in readings.items()]


def _baseline(store, readings):
    return snapshot_service.create_baseline_snapshot(
        store_id=store.id,
        actor_user_id=MANAGER_ID,
        items=_items(readings),
    )


class TestCreateSnapshot:
    def test_binds_active_pack_and_cleans_values(self, db_session, store, slots, shift, activate):
        pack = activate(slots[0])
        snapshot = snapshot_service.create_snapshot(
            shift_report_id=shift.id,
            store_id=store.id,
            employee_user_id=EMPLOYEE_ID,
            snapshot_type=SNAPSHOT_TYPE_START,
            items=[
                {"slot_id": slots[1].id, "ticket_value": " 017 "},
                {"slot_id": str(slots[0].id), "ticket_value": "005"},
                {"slot_id": slots[2].id, "ticket_value": "   "},
                {"slot_id": slots[3].id, "ticket_value": None},
            ],
        )
        db_session.commit()

        rows = [(i.slot_id, i.ticket_value, i.pack_id) for i in snapshot.items]
        assert sorted(rows) == sorted([
            (slots[0].id, "005", pack.id),
            (slots[1].id, "017", None),
        ])

    def test_duplicate_slot(self, db_session, store, slots, shift):
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(
                shift_report_id=shift.id,
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                snapshot_type=SNAPSHOT_TYPE_START,
                items=_items({slots[0]: "1"}) + _items({slots[0]: "2"}),
            )

    def test_foreign_slot(self, db_session, store, slots, other_slots, shift):
        with pytest.raises(ValidationError) as exc:
            snapshot_service.create_snapshot(
                shift_report_id=shift.id,
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                snapshot_type=SNAPSHOT_TYPE_START,
                items=_items({slots[0]: "1", other_slots[0]: "2"}),
            )
        assert exc.value.details["slot_ids"] == [other_slots[0].id]

    @pytest.mark.parametrize("items", [[], [{"slot_id": 1, "ticket_value": ""}], None, "0100"])
    def test_empty_or_malformed_items(self, db_session, store, slots, shift, items):
        if items and isinstance(items, list):
            items = [{"slot_id": slots[0].id, "ticket_value": ""}]
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(
                shift_report_id=shift.id,
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                snapshot_type=SNAPSHOT_TYPE_START,
                items=items,
            )

    def test_value_too_long(self, db_session, store, slots, shift):
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(
                shift_report_id=shift.id,
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                snapshot_type=SNAPSHOT_TYPE_START,
                items=_items({slots[0]: "9" * 33}),
            )

    def test_bad_snapshot_type(self, db_session, store, slots, shift):
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(
                shift_report_id=shift.id,
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                snapshot_type="middle",
                items=_items({slots[0]: "1"}),
            )

    def test_one_start_per_shift(self, db_session, slots, shift, take_snapshot):
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "010"})

        with pytest.raises(DuplicateSnapshotError) as exc:
            take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "011"})
        assert exc.value.status_code == 409

    def test_shift_from_other_store(self, db_session, other_store, other_slots, shift):
        with pytest.raises(NotFoundError):
            snapshot_service.create_snapshot(
                shift_report_id=shift.id,
                store_id=other_store.id,
                employee_user_id=EMPLOYEE_ID,
                snapshot_type=SNAPSHOT_TYPE_START,
                items=_items({other_slots[0]: "1"}),
            )


class TestBaseline:
    def test_baseline_creates_baseline_report(self, db_session, store, slots):
        snapshot = _baseline(store, {slots[0]: "100", slots[1]: "200"})
        db_session.commit()

        report = db_session.get(ShiftReport, snapshot.shift_report_id)
        assert report.is_baseline is True
        assert report.shift_date.startswith("baseline-")
        assert snapshot.snapshot_type == SNAPSHOT_TYPE_START
        assert snapshot_service.get_latest_baseline(store.id).id == snapshot.id

    def test_latest_baseline_wins(self, db_session, store, slots):
        _baseline(store, {slots[0]: "100"})
        db_session.commit()
        second = _baseline(store, {slots[0]: "150"})
        db_session.commit()

        assert snapshot_service.get_latest_baseline(store.id).id == second.id

    def test_invalid_baseline_writes_nothing(self, db_session, store, slots):
        with pytest.raises(ValidationError):
            _baseline(store, {})
        db_session.rollback()

        assert db_session.query(ShiftReport).filter_by(is_baseline=True).count() == 0

    def test_employee_start_is_not_a_baseline(self, db_session, store, slots, shift, take_snapshot):
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "010"})
        assert snapshot_service.get_latest_baseline(store.id) is None


class TestResolveStart:
    def test_no_start_no_baseline(self, db_session, store, slots, shift):
        with pytest.raises(BaselineRequiredError) as exc:
            snapshot_service.resolve_start_snapshot(shift.id, store.id)
        assert exc.value.status_code == 409
        assert exc.value.details == {"store_id": store.id}

    def test_falls_back_to_baseline(self, db_session, store, slots, shift):
        baseline = _baseline(store, {slots[0]: "100"})
        db_session.commit()

        snapshot, source = snapshot_service.resolve_start_snapshot(shift.id, store.id)
        assert (snapshot.id, source) == (baseline.id, "baseline")

    def test_own_start_preferred(self, db_session, store, slots, shift, take_snapshot):
        _baseline(store, {slots[0]: "100"})
        own = take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "120"})

        snapshot, source = snapshot_service.resolve_start_snapshot(shift.id, store.id)
        assert (snapshot.id, source) == (own.id, "shift")


class TestSubmitEnd:
    def test_end_from_baseline_clones_start(self, db_session, store, slots, activate):
        pack = activate(slots[0], start_ticket="0100")
        baseline = _baseline(store, {slots[0]: "0100"})
        db_session.commit()

        end, calc = snapshot_service.submit_end_snapshot(
            store_id=store.id,
            employee_user_id=EMPLOYEE_ID,
            shift_date="2026-10-19",
            items=_items({slots[0]: "0150"}),
        )
        db_session.commit()

        start = snapshot_service.get_shift_snapshot(end.shift_report_id, SNAPSHOT_TYPE_START)
        assert start.cloned_from_snapshot_id == baseline.id
        assert [(i.slot_id, i.ticket_value, i.pack_id) for i in start.items] == [(slots[0].id, "0100", pack.id)]
        assert calc.expected_total_tickets == 50

        report = db_session.get(ShiftReport, end.shift_report_id)
        assert (report.employee_user_id, report.shift_date) == (EMPLOYEE_ID, "2026-10-19")

    def test_end_requires_start(self, db_session, store, slots, shift):
        with pytest.raises(BaselineRequiredError):
            snapshot_service.submit_end_snapshot(
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                shift_report_id=shift.id,
                items=_items({slots[0]: "1"}),
            )

    def test_end_only_once(self, db_session, store, slots, shift, take_snapshot):
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "010"})
        kwargs = dict(store_id=store.id, employee_user_id=EMPLOYEE_ID, shift_report_id=shift.id)
        snapshot_service.submit_end_snapshot(items=_items({slots[0]: "020"}), **kwargs)
        db_session.commit()

        with pytest.raises(EndSnapshotExistsError):
            snapshot_service.submit_end_snapshot(items=_items({slots[0]: "030"}), **kwargs)

    def test_rollover_rejected_and_nothing_written(self, db_session, store, slots, shift, activate, take_snapshot):
        activate(slots[0], start_ticket="000")
        activate(slots[1], start_ticket="000")
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "050", slots[1]: "010"})

        with pytest.raises(RolloverDetectedError) as exc:
            snapshot_service.submit_end_snapshot(
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                shift_report_id=shift.id,
                items=_items({slots[0]: "010", slots[1]: "020"}),
            )
        db_session.rollback()

        assert exc.value.code == "ROLLOVER_DETECTED"
        assert exc.value.rollover_slots == [{"slot_id": slots[0].id, "slot_number": 1}]
        assert exc.value.details["rollover_slots"] == exc.value.rollover_slots
        assert snapshot_service.get_shift_snapshot(shift.id, SNAPSHOT_TYPE_END) is None

    def test_activation_before_end_clears_rollover(self, db_session, store, slots, shift, activate, take_snapshot):
        activate(slots[0], start_ticket="000")
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "070"})
        activate(slots[0], price_cents=1000, start_ticket="000")

        end, calc = snapshot_service.submit_end_snapshot(
            store_id=store.id,
            employee_user_id=EMPLOYEE_ID,
            shift_report_id=shift.id,
            items=_items({slots[0]: "005"}),
        )
        db_session.commit()

        assert end.snapshot_type == SNAPSHOT_TYPE_END
        assert calc.expected_total_tickets == 15

    def test_swap_above_start_value_goes_unnoticed(self, db_session, store, slots, shift, activate, take_snapshot):
        # New pack numbering starts above the start reading: counts as plain sales
        activate(slots[0], start_ticket="000")
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "050"})
        activate(slots[0], start_ticket="060")

        _, calc = snapshot_service.submit_end_snapshot(
            store_id=store.id,
            employee_user_id=EMPLOYEE_ID,
            shift_report_id=shift.id,
            items=_items({slots[0]: "070"}),
        )
        db_session.commit()

        assert calc.expected_total_tickets == 20
        assert calc.flags == []

    def test_reported_amount_recorded(self, db_session, store, slots, shift, activate, take_snapshot):
        activate(slots[0], start_ticket="000")
        take_snapshot(shift, SNAPSHOT_TYPE_START, {slots[0]: "010"})

        _, calc = snapshot_service.submit_end_snapshot(
            store_id=store.id,
            employee_user_id=EMPLOYEE_ID,
            shift_report_id=shift.id,
            items=_items({slots[0]: "020"}),
            reported_scratcher_cents=4500,
        )
        db_session.commit()

        assert shift.reported_scratcher_cents == 4500
        assert calc.variance_cents == 500

    def test_submit_start_by_date(self, db_session, store, slots):
        first = snapshot_service.submit_start_snapshot(
            store_id=store.id,
            employee_user_id=EMPLOYEE_ID,
            shift_date="2026-10-19",
            items=_items({slots[0]: "001"}),
        )
        db_session.commit()

        with pytest.raises(DuplicateSnapshotError):
            snapshot_service.submit_start_snapshot(
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                shift_date="2026-10-19",
                items=_items({slots[0]: "002"}),
            )
        db_session.rollback()

        assert db_session.query(ScratcherSnapshot).filter_by(shift_report_id=first.shift_report_id).count() == 1

    def test_submit_start_bad_date(self, db_session, store, slots):
        with pytest.raises(ValidationError):
            snapshot_service.submit_start_snapshot(
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID,
                shift_date="19/10/2026",
                items=_items({slots[0]: "001"}),
            )

    def test_baseline_report_takes_no_shift_snapshots(self, db_session, store, slots):
        baseline = _baseline(store, {slots[0]: "001"})
        db_session.commit()

        with pytest.raises(ValidationError) as exc:
            snapshot_service.submit_end_snapshot(
                store_id=store.id,
                employee_user_id=MANAGER_ID,
                shift_report_id=baseline.shift_report_id,
                items=_items({slots[0]: "005"}),
            )
        assert exc.value.code == "BASELINE_REPORT"
        db_session.rollback()

        assert db_session.query(ScratcherSnapshot).filter_by(snapshot_type=SNAPSHOT_TYPE_END).count() == 0

    def test_other_employees_shift_rejected(self, db_session, store, slots, shift):
        with pytest.raises(PermissionDeniedError):
            snapshot_service.submit_start_snapshot(
                store_id=store.id,
                employee_user_id=EMPLOYEE_ID + 1,
                shift_report_id=shift.id,
                items=_items({slots[0]: "001"}),
            )


def _slot(slot_id, number, active_pack_id):
    return SimpleNamespace(id=slot_id, slot_number=number, active_pack_id=active_pack_id)


def _start(slot_id, value, pack_id):
    return SimpleNamespace(slot_id=slot_id, ticket_value=value, pack_id=pack_id)


class TestDetectRollovers:
    def test_same_pack_lower_reading(self):
        found = snapshot_service.detect_rollovers(
            [_start(1, "050", 7), _start(2, "050", 8)],
            {1: "010", 2: "060"},
            [_slot(2, 2, 8), _slot(1, 1, 7)],
        )
        assert found == [{"slot_id": 1, "slot_number": 1}]

    def test_new_pack_is_not_a_rollover(self):
        found = snapshot_service.detect_rollovers([_start(1, "050", 7)], {1: "010"}, [_slot(1, 1, 9)])
        assert found == []

    def test_empty_slot_is_not_a_rollover(self):
        found = snapshot_service.detect_rollovers([_start(1, "050", None)], {1: "010"}, [_slot(1, 1, None)])
        assert found == []

    def test_unparseable_and_missing_readings_skipped(self):
        found = snapshot_service.detect_rollovers(
            [_start(1, "abc", 7), _start(2, "050", 8)],
            {1: "010", 2: "x1", 3: "001"},
            [_slot(1, 1, 7), _slot(2, 2, 8), _slot(3, 3, 9)],
        )
        assert found == []

    def test_ordered_by_slot_number(self):
        found = snapshot_service.detect_rollovers(
            [_start(10, "9", 1), _start(20, "9", 2)],
            {10: "1", 20: "1"},
            [_slot(10, 5, 1), _slot(20, 3, 2)],
        )
        assert [f["slot_number"] for f in found] == [3, 5]
