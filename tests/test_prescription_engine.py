from datetime import date, datetime, timedelta, timezone

import pytest

from schemas.prescription_schemas import PrescriptionEdit, PrescriptionCreate, PrescriptionStatus
from services.prescription_engine import PrescriptionLifecycleEngine
from utils.exceptions import (
    InvalidSchedule,
    InvalidTransition,
    PrescriptionNotFound,
    RefillExhausted,
)
from conftest import COURSE_START, PATIENT_ID


def day(offset: int) -> date:
    return COURSE_START + timedelta(days=offset)


class TestStatusDerivation:
    def test_status_follows_days_left_on_a_thirty_day_course(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)

        assert engine.derive_status(rx, day(10)).status == PrescriptionStatus.ACTIVE
        assert engine.derive_status(rx, day(25)).status == PrescriptionStatus.WARNING
        assert engine.derive_status(rx, day(27)).status == PrescriptionStatus.CRITICAL
        assert engine.derive_status(rx, day(30)).status == PrescriptionStatus.COMPLETED
        assert engine.derive_status(rx, day(31)).status == PrescriptionStatus.COMPLETED

    def test_days_remaining_reported_for_running_courses(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)

        assert engine.derive_status(rx, day(27)).days_remaining == 3
        assert engine.derive_status(rx, day(25)).days_remaining == 5
        assert engine.derive_status(rx, day(31)).days_remaining is None

    def test_partial_days_round_down(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)

        # 3.5 days left
        critical = engine.derive_status(rx, datetime(2024, 1, 27, 12, 0))
        assert critical.status == PrescriptionStatus.CRITICAL
        assert critical.days_remaining == 3

        # 7.5 days left
        warning = engine.derive_status(rx, datetime(2024, 1, 23, 12, 0))
        assert warning.status == PrescriptionStatus.WARNING
        assert warning.days_remaining == 7

        assert engine.derive_status(rx, datetime(2024, 1, 23)).status == PrescriptionStatus.ACTIVE

    def test_aware_reference_time_is_read_in_utc(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)
        # 2024-01-27 19:00 UTC, 3 days and 5 hours before the end date
        now = datetime(2024, 1, 28, 0, 0, tzinfo=timezone(timedelta(hours=5)))

        view = engine.derive_status(rx, now)

        assert view.status == PrescriptionStatus.CRITICAL
        assert view.days_remaining == 3

        # midnight UTC on 2024-01-27, 4 whole days left
        utc_midnight = datetime(2024, 1, 27, 5, 0, tzinfo=timezone(timedelta(hours=5)))
        assert engine.derive_status(rx, utc_midnight).status == PrescriptionStatus.WARNING
        assert engine.derive_status(rx, utc_midnight).days_remaining == 4

    def test_ongoing_course_has_no_end(self, engine, make_prescription):
        rx = make_prescription(duration_days=-1)

        assert rx.end_date is None
        for offset in (0, 30, 3650):
            assert engine.derive_status(rx, day(offset)).status == PrescriptionStatus.ONGOING

    def test_discontinued_dominates_date_status(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)
        stopped = engine.discontinue([rx], rx.id).prescription

        for offset in (0, 10, 27, 31, 400):
            assert engine.derive_status(stopped, day(offset)).status == PrescriptionStatus.DISCONTINUED

    def test_derivation_is_idempotent_and_does_not_touch_the_record(self, engine, make_prescription):
        rx = make_prescription(duration_days=30, refills=2)
        before = rx.model_dump()

        first = engine.derive_view(rx, day(12))
        second = engine.derive_view(rx, day(12))

        assert first == second
        assert rx.model_dump() == before


class TestCourseProgress:
    def test_progress_is_elapsed_share_of_the_course(self, engine, make_prescription):
        rx = make_prescription(duration_days=7)

        assert engine.course_progress(rx, day(0)) == 0.0
        assert engine.course_progress(rx, day(4)) == pytest.approx(57.14, abs=0.01)
        assert engine.course_progress(rx, day(7)) == 100.0

    def test_progress_saturates(self, engine, make_prescription):
        rx = make_prescription(duration_days=7)

        assert engine.course_progress(rx, day(-5)) == 0.0
        assert engine.course_progress(rx, day(60)) == 100.0

    def test_progress_never_decreases(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)

        readings = [engine.course_progress(rx, day(offset)) for offset in range(-3, 40)]

        assert readings == sorted(readings)
        assert engine.course_progress(rx, day(30)) == 100.0

    def test_ongoing_course_has_no_progress_bar(self, engine, make_prescription):
        rx = make_prescription(duration_days=-1)
        assert engine.course_progress(rx, day(12)) == -1

    def test_zero_length_course(self, engine, make_prescription):
        rx = make_prescription(duration_days=0)

        assert engine.course_progress(rx, day(-1)) == 0.0
        assert engine.course_progress(rx, day(0)) == 100.0
        assert engine.derive_status(rx, day(0)).status == PrescriptionStatus.COMPLETED


class TestWeekLongCourse:
    """Seven day course starting 2024-01-01 with two refills"""

    def test_course_over_time(self, engine, make_prescription):
        rx = make_prescription(duration_days=7, refills=2)
        assert rx.end_date == date(2024, 1, 8)

        start = engine.derive_view(rx, date(2024, 1, 1))
        assert start.status == PrescriptionStatus.WARNING
        assert start.days_remaining == 7
        assert start.progress == 0.0

        midway = engine.derive_view(rx, date(2024, 1, 5))
        assert midway.status == PrescriptionStatus.CRITICAL
        assert midway.days_remaining == 3
        assert midway.progress == pytest.approx(57.14, abs=0.01)

        finished = engine.derive_view(rx, date(2024, 1, 8))
        assert finished.status == PrescriptionStatus.COMPLETED
        assert finished.progress == 100.0

    def test_discontinued_early_stays_discontinued(self, engine, make_prescription):
        rx = make_prescription(duration_days=7, refills=2)
        stopped = engine.discontinue([rx], rx.id).prescription

        for when in (date(2024, 1, 3), date(2024, 1, 5), date(2024, 1, 8), date(2025, 6, 1)):
            assert engine.derive_status(stopped, when).status == PrescriptionStatus.DISCONTINUED


class TestCreate:
    def test_new_prescription_is_active_with_all_refills(self):
        data = PrescriptionCreate(
            medication_name="Metformin 500mg",
            frequency="twice_daily",
            start_date=date(2024, 3, 1),
            duration_days="90 days",
            refills=3,
            prescribed_by="Dr. Lin",
            category="antidiabetics",
        )
        engine = PrescriptionLifecycleEngine(clock=lambda: datetime(2024, 3, 1, 9, 30))
        transition = engine.create([], PATIENT_ID, data, now=datetime(2024, 3, 1, 9, 30))
        rx = transition.prescription

        assert transition.prescriptions == [rx]
        assert rx.is_active is True
        assert rx.duration_days == 90
        assert rx.end_date == date(2024, 5, 30)
        assert rx.refills_remaining == 3
        assert rx.last_refill_date is None
        assert rx.route == "oral"
        assert rx.created_at == datetime(2024, 3, 1, 9, 30)

    def test_backdated_order_is_stamped_with_the_wall_clock(self):
        engine = PrescriptionLifecycleEngine(clock=lambda: datetime(2024, 3, 5, 8, 0))
        data = PrescriptionCreate(
            medication_name="Amlodipine 5mg",
            frequency="once_daily",
            duration_days="30 days",
            prescribed_by="Dr. Lin",
        )

        rx = engine.create([], PATIENT_ID, data, now=date(2024, 2, 1)).prescription

        assert rx.start_date == date(2024, 2, 1)
        assert rx.created_at == datetime(2024, 3, 5, 8, 0)

    def test_start_date_defaults_to_reference_day(self, engine):
        data = PrescriptionCreate(
            medication_name="Omeprazole 20mg",
            frequency="once_daily",
            duration_days=14,
            prescribed_by="Dr. Lin",
        )
        rx = engine.create([], PATIENT_ID, data, now=datetime(2024, 2, 10, 16, 0)).prescription
        assert rx.start_date == date(2024, 2, 10)
        assert rx.end_date == date(2024, 2, 24)

    def test_newest_prescription_comes_first(self, engine, make_prescription):
        older = make_prescription()
        data = PrescriptionCreate(
            medication_name="Cetirizine 10mg",
            frequency="at_bedtime",
            duration_days="Ongoing",
            prescribed_by="Dr. Lin",
        )
        transition = engine.create([older], PATIENT_ID, data, now=day(3))
        assert transition.prescriptions == [transition.prescription, older]

    def test_negative_duration_is_rejected(self, engine):
        data = PrescriptionCreate(
            medication_name="Ibuprofen 400mg",
            frequency="as_needed",
            duration_days=-4,
            prescribed_by="Dr. Lin",
        )
        with pytest.raises(InvalidSchedule):
            engine.create([], PATIENT_ID, data, now=day(0))


class TestDiscontinueAndReactivate:
    def test_discontinue_only_flips_the_flag(self, engine, make_prescription):
        rx = make_prescription(refills=2)
        stopped = engine.discontinue([rx], rx.id).prescription

        assert stopped.is_active is False
        assert stopped.model_dump(exclude={"is_active"}) == rx.model_dump(exclude={"is_active"})
        assert rx.is_active is True

    def test_discontinue_twice_is_reported(self, engine, make_prescription):
        rx = make_prescription()
        stopped = engine.discontinue([rx], rx.id).prescriptions

        with pytest.raises(InvalidTransition):
            engine.discontinue(stopped, rx.id)

    def test_reactivate_restores_the_original_record(self, engine, make_prescription):
        rx = make_prescription(refills=1)
        stopped = engine.discontinue([rx], rx.id).prescriptions
        resumed = engine.reactivate(stopped, rx.id).prescription

        assert resumed.model_dump() == rx.model_dump()

    def test_reactivate_active_prescription_is_reported(self, engine, make_prescription):
        rx = make_prescription()
        with pytest.raises(InvalidTransition):
            engine.reactivate([rx], rx.id)

    def test_reactivating_an_elapsed_course_leaves_it_completed(self, engine, make_prescription):
        rx = make_prescription(duration_days=7)
        stopped = engine.discontinue([rx], rx.id).prescriptions
        resumed = engine.reactivate(stopped, rx.id).prescription

        view = engine.derive_view(resumed, day(20))
        assert view.is_active is True
        assert view.status == PrescriptionStatus.COMPLETED
        assert resumed.start_date == rx.start_date
        assert resumed.end_date == rx.end_date


class TestRefill:
    def test_single_refill_is_allowed_exactly_once(self, engine, make_prescription):
        rx = make_prescription(refills=1)
        refill_time = datetime(2024, 1, 9, 14, 0)

        after = engine.refill([rx], rx.id, refill_time)
        assert after.prescription.refills_remaining == 0
        assert after.prescription.last_refill_date == refill_time

        with pytest.raises(RefillExhausted):
            engine.refill(after.prescriptions, rx.id, refill_time + timedelta(days=1))
        assert after.prescription.refills_remaining == 0

    def test_refill_does_not_extend_the_course(self, engine, make_prescription):
        rx = make_prescription(duration_days=30, refills=3)
        refilled = engine.refill([rx], rx.id, day(20)).prescription

        assert refilled.end_date == rx.end_date
        assert refilled.duration_days == rx.duration_days
        assert refilled.refills == 3
        assert refilled.refills_remaining == 2

    def test_no_refills_authorized(self, engine, make_prescription):
        rx = make_prescription(refills=0)
        with pytest.raises(RefillExhausted) as excinfo:
            engine.refill([rx], rx.id, day(1))
        assert excinfo.value.prescription_id == rx.id

    def test_can_refill_flag(self, engine, make_prescription):
        rx = make_prescription(refills=1)
        assert engine.derive_view(rx, day(1)).can_refill is True

        stopped = engine.discontinue([rx], rx.id).prescription
        assert engine.derive_view(stopped, day(1)).can_refill is False

        used = engine.refill([rx], rx.id, day(1)).prescription
        assert engine.derive_view(used, day(1)).can_refill is False


class TestEdit:
    def test_edit_restores_refills_after_exhaustion(self, engine, make_prescription):
        rx = make_prescription(duration_days=30, refills=2)
        collection = [rx]
        for offset in (5, 10):
            collection = engine.refill(collection, rx.id, day(offset)).prescriptions
        assert collection[0].refills_remaining == 0

        edited = engine.edit(collection, rx.id, PrescriptionEdit(duration_days=14)).prescription

        assert edited.refills_remaining == 2
        assert edited.duration_days == 14
        assert edited.end_date == date(2024, 1, 15)

    def test_edit_with_new_refill_count(self, engine, make_prescription):
        rx = make_prescription(refills=1)
        edited = engine.edit([rx], rx.id, PrescriptionEdit(refills=4, dosage="250mg")).prescription

        assert edited.refills == 4
        assert edited.refills_remaining == 4
        assert edited.dosage == "250mg"

    def test_edit_recomputes_schedule_from_scratch(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)
        edited = engine.edit(
            [rx], rx.id, PrescriptionEdit(start_date=date(2024, 2, 1), duration_days="10 days")
        ).prescription

        assert edited.start_date == date(2024, 2, 1)
        assert edited.end_date == date(2024, 2, 11)

    def test_edit_to_ongoing_drops_end_date(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)
        edited = engine.edit([rx], rx.id, PrescriptionEdit(duration_days="Ongoing")).prescription

        assert edited.duration_days == -1
        assert edited.end_date is None
        assert engine.derive_status(edited, day(100)).status == PrescriptionStatus.ONGOING

    def test_start_date_without_duration_is_rejected(self, engine, make_prescription):
        rx = make_prescription()
        with pytest.raises(InvalidSchedule):
            engine.edit([rx], rx.id, PrescriptionEdit(start_date=date(2024, 2, 1)))

    def test_negative_duration_is_rejected_without_changes(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)
        collection = [rx]
        with pytest.raises(InvalidSchedule):
            engine.edit(collection, rx.id, PrescriptionEdit(duration_days=-5, dosage="1g"))

        assert collection == [rx]
        assert rx.dosage == "500mg"

    def test_explicit_null_clears_optional_fields_only(self, engine, make_prescription):
        rx = make_prescription(instructions="Take after food", category="antibiotics")
        edited = engine.edit(
            [rx], rx.id, PrescriptionEdit(instructions=None, medication_name=None)
        ).prescription

        assert edited.instructions is None
        assert edited.medication_name == rx.medication_name
        assert edited.category == "antibiotics"

    def test_edit_keeps_activity_flag(self, engine, make_prescription):
        rx = make_prescription()
        stopped = engine.discontinue([rx], rx.id).prescriptions
        edited = engine.edit(stopped, rx.id, PrescriptionEdit(dosage="250mg")).prescription
        assert edited.is_active is False


class TestDeleteAndLookup:
    def test_delete_removes_only_the_target(self, engine, make_prescription):
        first = make_prescription(medication_name="Paracetamol 500mg")
        second = make_prescription(medication_name="Vitamin D3 1000IU")

        transition = engine.delete([first, second], first.id)

        assert transition.prescription == first
        assert transition.prescriptions == [second]

    def test_unknown_id_is_not_found(self, engine, make_prescription):
        rx = make_prescription()
        other = make_prescription()

        for operation in (engine.discontinue, engine.reactivate, engine.delete):
            with pytest.raises(PrescriptionNotFound):
                operation([rx], other.id)
        with pytest.raises(PrescriptionNotFound):
            engine.refill([rx], other.id, day(1))
        with pytest.raises(PrescriptionNotFound):
            engine.edit([rx], other.id, PrescriptionEdit(dosage="1g"))

    def test_ids_may_be_given_as_strings(self, engine, make_prescription):
        rx = make_prescription()
        assert engine.discontinue([rx], str(rx.id)).prescription.is_active is False

    def test_malformed_id_is_not_found(self, engine, make_prescription):
        rx = make_prescription()

        with pytest.raises(PrescriptionNotFound) as excinfo:
            engine.discontinue([rx], "rx-42")
        assert excinfo.value.prescription_id == "rx-42"
        with pytest.raises(PrescriptionNotFound):
            engine.refill([rx], "", day(1))


class TestStatistics:
    def test_counts_over_a_mixed_collection(self, engine, make_prescription):
        critical = make_prescription(duration_days=30)
        running = make_prescription(start_date=date(2024, 1, 20), duration_days=30, refills=2)
        running = engine.refill([running], running.id, day(21)).prescription
        ongoing = make_prescription(duration_days=-1, refills=1)
        completed = make_prescription(duration_days=7)
        stopped = make_prescription(duration_days=30)
        stopped = engine.discontinue([stopped], stopped.id).prescription

        stats = engine.compute_statistics(
            [critical, running, ongoing, completed, stopped], day(27)
        )

        assert stats.total == 5
        assert stats.active == 4
        assert stats.discontinued == 1
        assert stats.ongoing == 1
        assert stats.completed == 1
        assert stats.expiring_soon == 1
        assert stats.needs_refill == 2

    def test_last_hours_of_a_course_are_not_expiring_soon(self, engine, make_prescription):
        rx = make_prescription(duration_days=30)
        now = datetime(2024, 1, 30, 20, 0)

        assert engine.derive_status(rx, now).status == PrescriptionStatus.CRITICAL
        assert engine.compute_statistics([rx], now).expiring_soon == 0

    def test_exhausted_refills_do_not_need_refill(self, engine, make_prescription):
        rx = make_prescription(refills=1)
        used = engine.refill([rx], rx.id, day(2)).prescription

        assert engine.compute_statistics([rx], day(3)).needs_refill == 1
        assert engine.compute_statistics([used], day(3)).needs_refill == 0

    def test_empty_collection(self, engine):
        stats = engine.compute_statistics([], day(0))
        assert stats.total == 0
        assert stats.expiring_soon == 0
