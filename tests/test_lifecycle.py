"""Tests for the booking lifecycle."""
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.bookings import engine
from apps.bookings.blocks import create_blocked_date
from apps.bookings.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from apps.bookings.models import (
    Booking,
    BookingStatus,
    BookingStatusLog,
    ClientType,
    PaymentMethod,
    PaymentStatus,
    ServiceType,
    SlotStatus,
)
from apps.customers.models import Customer

from tests.conftest import DAY, slot_statuses, slot_times

pytestmark = pytest.mark.django_db

INVOICE = {'items': [{'description': 'Gel mani + pedi', 'unit_price': 1000, 'quantity': 1}]}
FORM = {
    'First Name': 'Maria',
    'Last Name': 'Santos',
    'Email': 'Maria@Example.com',
    'Contact Number': '+63 917 123 4567',
}


class TestCreateBooking:
    def test_single_slot_booking(self, make_booking):
        booking = make_booking('09:00')
        assert booking.booking_id == 'GN-00001'
        assert booking.status == BookingStatus.PENDING_FORM
        assert booking.customer_ref == 'pending'
        assert slot_statuses(booking) == [SlotStatus.PENDING]

    def test_two_slot_service_reserves_next_grid_slot(self, make_booking):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        assert slot_times(booking) == ['09:00', '09:30']
        assert slot_statuses(booking) == [SlotStatus.PENDING, SlotStatus.PENDING]

    def test_three_slot_home_service(self, make_booking):
        booking = make_booking('10:00', service_type=ServiceType.HOME_SERVICE_3SLOTS)
        assert slot_times(booking) == ['10:00', '10:30', '13:00']

    def test_creation_is_audited(self, make_booking):
        booking = make_booking('09:00')
        log = BookingStatusLog.objects.get(booking=booking)
        assert log.from_status == ''
        assert log.to_status == BookingStatus.PENDING_FORM

    def test_sequential_ids(self, make_booking):
        make_booking('09:00')
        make_booking('10:00', booking_id='GN-00041')
        assert engine.next_booking_id() == 'GN-00042'

    def test_split_child_ids_do_not_advance_sequence(self, make_booking):
        make_booking('09:00', booking_id='GN-00007-1')
        assert engine.next_booking_id() == 'GN-00001'

    def test_duplicate_booking_id_conflicts(self, make_booking, make_slot):
        make_booking('09:00', booking_id='GN-00010')
        other = make_slot('13:00')
        with pytest.raises(ConflictError):
            engine.create_booking(other.id, ServiceType.MANICURE, booking_id='GN-00010')
        other.refresh_from_db()
        assert other.status == SlotStatus.AVAILABLE

    def test_sequence_taken_concurrently_gets_next_id(self, make_booking, make_slot, monkeypatch):
        stale = engine.next_booking_id()
        make_booking('09:00')
        fresh = engine.next_booking_id
        handed_out = iter([stale])
        monkeypatch.setattr(engine, 'next_booking_id', lambda: next(handed_out, None) or fresh())

        booking = engine.create_booking(make_slot('13:00').id, ServiceType.MANICURE)

        assert stale == 'GN-00001'
        assert booking.booking_id == 'GN-00002'
        assert slot_statuses(booking) == [SlotStatus.PENDING]
        assert Booking.objects.count() == 2

    def test_gives_up_after_repeated_id_collisions(self, make_booking, make_slot, monkeypatch):
        make_booking('09:00')
        monkeypatch.setattr(engine, 'next_booking_id', lambda: 'GN-00001')
        other = make_slot('13:00')

        with pytest.raises(ConflictError):
            engine.create_booking(other.id, ServiceType.MANICURE)

        other.refresh_from_db()
        assert other.status == SlotStatus.AVAILABLE
        assert Booking.objects.count() == 1

    def test_linked_slots_must_match_the_run(self, make_slot):
        anchor = make_slot('09:00')
        wrong = make_slot('10:00')
        with pytest.raises(ValidationError):
            engine.create_booking(anchor.id, ServiceType.MANI_PEDI, linked_slot_ids=[wrong.id])
        assert not Booking.objects.exists()

    def test_linked_slots_matching_the_run(self, make_slot):
        anchor = make_slot('09:00')
        nxt = make_slot('09:30')
        booking = engine.create_booking(anchor.id, ServiceType.MANI_PEDI, linked_slot_ids=[str(nxt.id)])
        assert booking.linked_slot_ids == [nxt.id]

    def test_taken_anchor_conflicts(self, make_booking):
        booking = make_booking('09:00')
        with pytest.raises(ConflictError):
            engine.create_booking(booking.slot_id, ServiceType.MANICURE)

    def test_unknown_service_type(self, make_slot):
        with pytest.raises(ValidationError):
            engine.create_booking(make_slot('09:00').id, 'gel_extensions')


class TestConfirm:
    def test_confirm_with_deposit(self, make_booking):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)

        booking = engine.confirm(booking, deposit_amount=500, payment_method=PaymentMethod.GCASH)

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.deposit_amount == Decimal('500')
        assert booking.deposit_method == PaymentMethod.GCASH
        assert booking.deposit_date is not None
        assert booking.payment_status == PaymentStatus.PARTIAL
        assert slot_statuses(booking) == [SlotStatus.CONFIRMED, SlotStatus.CONFIRMED]

    def test_confirm_without_deposit_stays_unpaid(self, make_booking):
        booking = engine.confirm(make_booking('09:00'))
        assert booking.payment_status == PaymentStatus.UNPAID

    def test_confirm_records_method_without_deposit(self, make_booking):
        booking = engine.confirm(make_booking('09:00'), payment_method=PaymentMethod.CASH)

        booking.refresh_from_db()
        assert booking.deposit_method == PaymentMethod.CASH
        assert booking.deposit_amount == Decimal('0')
        assert booking.deposit_date is None
        assert booking.payment_status == PaymentStatus.UNPAID

    def test_second_confirm_fails_and_changes_nothing(self, make_booking):
        booking = make_booking('09:00')
        engine.confirm(booking, deposit_amount=300)

        with pytest.raises(InvalidStateError):
            engine.confirm(booking, deposit_amount=900)

        booking.refresh_from_db()
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.deposit_amount == Decimal('300')
        assert slot_statuses(booking) == [SlotStatus.CONFIRMED]
        assert booking.status_logs.filter(to_status=BookingStatus.CONFIRMED).count() == 1

    def test_confirm_cancelled_fails(self, make_booking):
        booking = engine.cancel(make_booking('09:00'))
        with pytest.raises(InvalidStateError):
            engine.confirm(booking)

    def test_confirm_on_blocked_date_fails(self, make_booking):
        booking = make_booking('09:00')
        create_blocked_date(DAY)
        with pytest.raises(ValidationError):
            engine.confirm(booking)
        booking.refresh_from_db()
        assert booking.status == BookingStatus.PENDING_FORM
        assert slot_statuses(booking) == [SlotStatus.PENDING]

    def test_unknown_payment_method(self, make_booking):
        with pytest.raises(ValidationError):
            engine.confirm(make_booking('09:00'), deposit_amount=100, payment_method='PAYPAL')


class TestCancel:
    def test_cancel_releases_every_slot(self, make_booking):
        booking = make_booking('09:00', service_type=ServiceType.HOME_SERVICE_2SLOTS)
        booking = engine.cancel(booking)
        assert booking.status == BookingStatus.CANCELLED
        assert slot_statuses(booking) == [SlotStatus.AVAILABLE, SlotStatus.AVAILABLE]

    def test_cancel_without_release_keeps_slots(self, make_booking):
        booking = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        engine.cancel(booking, release_slot=False)
        assert slot_statuses(booking) == [SlotStatus.PENDING, SlotStatus.PENDING]

    def test_cancel_from_pending_payment(self, make_booking):
        booking = engine.set_status(make_booking('09:00'), BookingStatus.PENDING_PAYMENT)
        assert engine.cancel(booking).status == BookingStatus.CANCELLED

    def test_cancel_is_not_legal_from_terminal_states(self, make_booking):
        confirmed = engine.confirm(make_booking('09:00'))
        with pytest.raises(InvalidStateError):
            engine.cancel(confirmed)

        cancelled = engine.cancel(make_booking('10:00'))
        with pytest.raises(InvalidStateError):
            engine.cancel(cancelled)


class TestSetStatus:
    def test_pending_form_to_pending_payment(self, make_booking):
        booking = engine.set_status(make_booking('09:00'), BookingStatus.PENDING_PAYMENT)
        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert slot_statuses(booking) == [SlotStatus.PENDING]

    def test_backwards_transition_rejected(self, make_booking):
        booking = engine.set_status(make_booking('09:00'), BookingStatus.PENDING_PAYMENT)
        with pytest.raises(InvalidStateError):
            engine.set_status(booking, BookingStatus.PENDING_FORM)

    def test_routes_confirmed_through_confirm(self, make_booking):
        booking = engine.set_status(make_booking('09:00'), BookingStatus.CONFIRMED)
        assert slot_statuses(booking) == [SlotStatus.CONFIRMED]

    def test_unknown_status(self, make_booking):
        with pytest.raises(ValidationError):
            engine.set_status(make_booking('09:00'), 'archived')


class TestLedgerActions:
    def test_save_invoice_moves_to_pending_payment(self, make_booking):
        booking = engine.save_invoice(make_booking('09:00'), INVOICE)
        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.invoice['total'] == '1000.00'
        assert booking.invoice['created_at'] == booking.invoice['updated_at']

    def test_save_invoice_on_cancelled_booking(self, make_booking):
        booking = engine.cancel(make_booking('09:00'))
        with pytest.raises(InvalidStateError):
            engine.save_invoice(booking, INVOICE)

    def test_paid_requires_invoice(self, make_booking):
        with pytest.raises(ValidationError):
            engine.update_payment(make_booking('09:00'), PaymentStatus.PAID, paid_amount=1000)

    def test_settled_ledger_is_forced_to_paid(self, make_booking):
        booking = engine.save_invoice(make_booking('09:00'), INVOICE)
        booking = engine.update_deposit(booking, 300, PaymentMethod.PNB)
        assert booking.payment_status == PaymentStatus.PARTIAL

        booking = engine.update_payment(booking, PaymentStatus.PARTIAL, paid_amount=700,
                                        tip_amount=100, method=PaymentMethod.CASH)

        assert booking.payment_status == PaymentStatus.PAID
        assert booking.tip_amount == Decimal('100')
        assert booking.paid_method == PaymentMethod.CASH
        assert booking.status == BookingStatus.PENDING_PAYMENT

    def test_refund_is_recorded_as_is(self, make_booking):
        booking = engine.save_invoice(make_booking('09:00'), INVOICE)
        booking = engine.update_payment(booking, PaymentStatus.REFUNDED, paid_amount=1000)
        assert booking.payment_status == PaymentStatus.REFUNDED

    def test_deposit_does_not_change_status(self, make_booking):
        booking = engine.update_deposit(make_booking('09:00'), 200)
        assert booking.status == BookingStatus.PENDING_FORM
        assert booking.payment_status == PaymentStatus.PARTIAL

    def test_negative_deposit_rejected(self, make_booking):
        with pytest.raises(ValidationError):
            engine.update_deposit(make_booking('09:00'), -50)


class TestDescriptiveUpdates:
    def test_update_service_type_leaves_slots(self, make_booking):
        booking = make_booking('09:00')
        booking = engine.update_service_type(booking, ServiceType.MANI_PEDI)
        assert booking.service_type == ServiceType.MANI_PEDI
        assert slot_times(booking) == ['09:00']

    def test_update_nail_tech(self, make_booking, staff):
        booking = engine.update_nail_tech(make_booking('09:00'), staff.id)
        booking.refresh_from_db()
        assert booking.technician == staff

    def test_update_nail_tech_unknown(self, make_booking):
        with pytest.raises(NotFoundError):
            engine.update_nail_tech(make_booking('09:00'), '6a1f8f4e-0000-4000-8000-000000000000')


class TestSubmitForm:
    def test_resolves_new_customer(self, make_booking):
        booking = make_booking('09:00')

        booking = engine.submit_form(booking.booking_id, FORM, 'resp-1')

        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.client_type == ClientType.NEW
        assert booking.form_response_id == 'resp-1'
        assert booking.customer.email == 'maria@example.com'
        assert booking.customer.phone == '09171234567'
        assert booking.customer_ref == str(booking.customer.id)

    def test_second_booking_is_repeat_client(self, make_booking):
        engine.submit_form(make_booking('09:00').booking_id, FORM)
        booking = engine.submit_form(make_booking('10:00').booking_id, FORM)
        assert booking.client_type == ClientType.REPEAT
        assert Customer.objects.count() == 1

    def test_lookup_by_uuid(self, make_booking):
        booking = make_booking('09:00')
        assert engine.submit_form(str(booking.id), FORM).booking_id == booking.booking_id

    def test_unknown_booking(self, db):
        with pytest.raises(NotFoundError):
            engine.submit_form('GN-99999', FORM)


class TestReleaseStaleBookings:
    def _age(self, booking, hours):
        Booking.objects.filter(pk=booking.pk).update(created_at=timezone.now() - timedelta(hours=hours))

    def test_releases_only_stale_pending_form_bookings(self, make_booking):
        stale = make_booking('09:00', service_type=ServiceType.MANI_PEDI)
        fresh = make_booking('10:30')
        answered = make_booking('13:00')
        engine.submit_form(answered.booking_id, FORM, 'resp-9')
        for booking in (stale, fresh, answered):
            self._age(booking, 3 if booking is not fresh else 1)

        released = engine.release_stale_bookings()

        assert released == [stale.booking_id]
        stale.refresh_from_db()
        assert stale.status == BookingStatus.CANCELLED
        assert slot_statuses(stale) == [SlotStatus.AVAILABLE, SlotStatus.AVAILABLE]
        fresh.refresh_from_db()
        assert fresh.status == BookingStatus.PENDING_FORM

    def test_narrowed_to_selected_ids(self, make_booking):
        first, second = make_booking('09:00'), make_booking('13:00')
        self._age(first, 5)
        self._age(second, 5)
        assert engine.release_stale_bookings([second.booking_id]) == [second.booking_id]
        first.refresh_from_db()
        assert first.status == BookingStatus.PENDING_FORM
