"""Tests for reschedule and split reschedule."""
from datetime import date
from decimal import Decimal

import pytest

from apps.bookings import engine
from apps.bookings.blocks import create_blocked_date
from apps.bookings.exceptions import InvalidStateError, ValidationError
from apps.bookings.models import Booking, BookingStatus, PaymentStatus, ServiceType, SlotStatus
from apps.bookings.rescheduling import reschedule, split_reschedule
from apps.bookings.slots import find_at

from tests.conftest import DAY, slot_statuses, slot_times

pytestmark = pytest.mark.django_db

NEXT_DAY = date(2026, 3, 11)


def status_at(technician, time_token, day=DAY):
    return find_at(technician.id, day, time_token).status


class TestReschedule:
    def test_single_slot_move(self, owner, make_booking, make_slot):
        booking = make_booking('09:00')
        target = make_slot('13:00')

        booking = reschedule(booking, target.id)

        assert booking.slot_id == target.id
        assert status_at(owner, '09:00') == SlotStatus.AVAILABLE
        assert status_at(owner, '13:00') == SlotStatus.PENDING

    def test_multi_slot_move_resolves_and_creates_missing_slots(self, owner, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        target = make_slot('10:00', day=NEXT_DAY)

        booking = reschedule(booking, target.id)

        assert slot_times(booking) == ['10:00', '10:30']
        assert booking.slot.date == NEXT_DAY
        assert slot_statuses(booking) == [SlotStatus.PENDING, SlotStatus.PENDING]
        assert status_at(owner, '09:00') == SlotStatus.AVAILABLE
        assert status_at(owner, '09:30') == SlotStatus.AVAILABLE

    def test_overlapping_move_reuses_held_slot(self, owner, make_booking):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        held = find_at(owner.id, DAY, '09:30')

        booking = reschedule(booking, held.id)

        assert slot_times(booking) == ['09:30', '10:00']
        assert status_at(owner, '09:00') == SlotStatus.AVAILABLE
        assert status_at(owner, '09:30') == SlotStatus.PENDING

    def test_rescheduling_onto_current_run_is_a_no_op(self, make_booking):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        linked = [str(sid) for sid in booking.linked_slot_ids]

        booking = reschedule(booking, booking.slot_id, linked)
        assert slot_times(booking) == ['09:00', '09:30']
        assert slot_statuses(booking) == [SlotStatus.PENDING, SlotStatus.PENDING]

        booking = reschedule(booking, booking.slot_id)
        assert slot_times(booking) == ['09:00', '09:30']

    def test_confirmed_booking_keeps_confirmed_slots(self, owner, make_booking, make_slot):
        booking = engine.confirm(make_booking('09:00'))
        target = make_slot('15:00')
        reschedule(booking, target.id)
        assert status_at(owner, '15:00') == SlotStatus.CONFIRMED
        assert status_at(owner, '09:00') == SlotStatus.AVAILABLE

    def test_explicit_run(self, owner, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        first, second = make_slot('13:00'), make_slot('15:00')
        booking = reschedule(booking, first.id, [str(second.id)])
        assert slot_times(booking) == ['13:00', '15:00']

    def test_wrong_slot_count(self, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        a, b, c = make_slot('13:00'), make_slot('15:00'), make_slot('15:30')
        with pytest.raises(ValidationError):
            reschedule(booking, a.id, [str(b.id), str(c.id)])

    def test_taken_target_rejected_and_nothing_moves(self, owner, make_booking):
        booking = make_booking('09:00')
        other = make_booking('13:00')
        with pytest.raises(ValidationError):
            reschedule(booking, other.slot_id)
        assert slot_times(booking) == ['09:00']
        assert status_at(owner, '09:00') == SlotStatus.PENDING

    def test_taken_slot_inside_resolved_run(self, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        make_booking('13:00')
        target = make_slot('10:30')
        with pytest.raises(ValidationError):
            reschedule(booking, target.id)
        assert slot_times(booking) == ['09:00', '09:30']

    def test_explicit_run_must_be_consecutive(self, make_booking, make_slot):
        booking = make_booking('08:00', service_type=ServiceType.MANI_PEDI)
        first = make_slot('13:00')
        make_slot('15:00')
        last = make_slot('15:30')
        with pytest.raises(ValidationError):
            reschedule(booking, first.id, [str(last.id)])

    def test_blocked_target_date(self, make_booking, make_slot):
        booking = make_booking('09:00')
        target = make_slot('09:00', day=NEXT_DAY)
        create_blocked_date(NEXT_DAY)
        with pytest.raises(ValidationError):
            reschedule(booking, target.id, [])

    def test_move_to_another_technician(self, staff, make_booking, make_slot):
        booking = make_booking('09:00')
        target = make_slot('09:00', technician=staff)
        booking = reschedule(booking, target.id)
        booking.refresh_from_db()
        assert booking.technician == staff

    def test_cancelled_booking(self, make_booking, make_slot):
        booking = engine.cancel(make_booking('09:00'))
        with pytest.raises(InvalidStateError):
            reschedule(booking, make_slot('13:00').id)


class TestSplitReschedule:
    def test_split_produces_two_single_slot_bookings(self, owner, staff, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI,
                               customer_data={'Name': 'Maria'})
        booking = engine.update_deposit(booking, 500)
        mani_slot = make_slot('13:00')
        pedi_slot = make_slot('15:00', day=NEXT_DAY, technician=staff)

        children = split_reschedule(booking, mani_slot.id, pedi_slot.id, owner.id, staff.id)

        booking.refresh_from_db()
        assert booking.status == BookingStatus.CANCELLED
        assert len(children) == 2
        assert Booking.objects.filter(parent=booking).count() == 2

        mani, pedi = children
        assert (mani.booking_id, pedi.booking_id) == (
            f'{booking.booking_id}-1', f'{booking.booking_id}-2',
        )
        assert mani.service_type == ServiceType.MANICURE
        assert pedi.service_type == ServiceType.PEDICURE
        assert mani.slot_ids() == [mani_slot.id]
        assert pedi.slot_ids() == [pedi_slot.id]
        assert mani.technician == owner
        assert pedi.technician == staff
        assert mani.customer_data == pedi.customer_data == {'Name': 'Maria'}

        assert mani.deposit_amount == Decimal('500')
        assert mani.payment_status == PaymentStatus.PARTIAL
        assert pedi.deposit_amount == Decimal('0')

        assert status_at(owner, '09:00') == SlotStatus.AVAILABLE
        assert status_at(owner, '09:30') == SlotStatus.AVAILABLE
        assert status_at(owner, '13:00') == SlotStatus.PENDING
        assert status_at(staff, '15:00', NEXT_DAY) == SlotStatus.PENDING

    def test_split_may_keep_an_original_slot(self, owner, staff, make_booking, make_slot):
        booking = engine.confirm(make_booking('09:00', service_type=ServiceType.MANI_PEDI))
        pedi_slot = make_slot('13:00', technician=staff)

        mani, pedi = split_reschedule(booking, booking.slot_id, pedi_slot.id, owner.id, staff.id)

        assert mani.status == pedi.status == BookingStatus.CONFIRMED
        assert status_at(owner, '09:00') == SlotStatus.CONFIRMED
        assert status_at(owner, '09:30') == SlotStatus.AVAILABLE
        assert status_at(staff, '13:00') == SlotStatus.CONFIRMED

    def test_only_mani_pedi_can_be_split(self, owner, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.HOME_SERVICE_2SLOTS)
        with pytest.raises(ValidationError):
            split_reschedule(booking, make_slot('13:00').id, make_slot('15:00').id, owner.id, owner.id)

    def test_slot_must_belong_to_named_technician(self, owner, staff, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        with pytest.raises(ValidationError):
            split_reschedule(booking, make_slot('13:00').id, make_slot('15:00').id, owner.id, staff.id)
        booking.refresh_from_db()
        assert booking.status == BookingStatus.PENDING_FORM

    def test_taken_slot_rejected(self, owner, make_booking, make_slot):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        other = make_booking('13:00')
        with pytest.raises(ValidationError):
            split_reschedule(booking, other.slot_id, make_slot('15:00').id, owner.id, owner.id)
