"""
Rescheduling engine — moves a booking to a different slot run.

Public API:
  reschedule(booking, new_slot_id, linked_slot_ids=None)
  split_reschedule(booking, slot1_id, slot2_id, tech1_id, tech2_id)

Release of the old slots and reservation of the new ones happen in the
same transaction, so a failed move leaves the booking exactly where it was.
"""
import logging

from django.db import transaction

from .blocks import assert_not_blocked
from .engine import lock_booking, mark_slots, release_slots
from .exceptions import ConflictError, InvalidStateError, ValidationError
from .ledger import derive_payment_status
from .models import (
    MIRRORED_SLOT_STATUS,
    Booking,
    BookingStatus,
    BookingStatusLog,
    ServiceType,
    SlotStatus,
    required_slot_count,
)
from .resolver import commit, resolve, verify_contiguous
from .slots import find_by_id, get_technician, lock_slots

logger = logging.getLogger(__name__)

SPLIT_SERVICES = (ServiceType.MANICURE, ServiceType.PEDICURE)


def _unique(ids) -> list:
    seen = []
    for sid in ids:
        if sid not in seen:
            seen.append(sid)
    return seen


def _check_target(slot, held_ids) -> None:
    """A destination slot must be on an open date and free, or already held by this booking."""
    assert_not_blocked(slot.date, f"Cannot move a booking onto blocked date {slot.date.isoformat()}.")
    if str(slot.id) not in held_ids and slot.status != SlotStatus.AVAILABLE:
        raise ValidationError(
            f"The {slot.time_token} slot on {slot.date.isoformat()} is {slot.status}, not available."
        )


@transaction.atomic
def reschedule(booking: Booking, new_slot_id, linked_slot_ids=None,
               changed_by: str = 'admin') -> Booking:
    """
    Move the booking so its run starts at new_slot_id.

    With linked_slot_ids the caller names the whole run; otherwise the run is
    resolved from the new anchor, creating missing grid slots as needed.
    Slots the booking already holds may be reused. Moving a booking onto the
    run it already holds changes nothing.

    Raises:
      InvalidStateError — booking is cancelled
      ValidationError   — wrong slot count, slot taken or blocked, run not consecutive
      NotFoundError     — unknown slot
    """
    booking = lock_booking(booking)
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidStateError(f"Booking {booking.booking_id} is cancelled and cannot be rescheduled.")

    count = required_slot_count(booking.service_type)
    old_ids = [str(sid) for sid in booking.slot_ids()]
    target_status = MIRRORED_SLOT_STATUS[booking.status]

    if linked_slot_ids is not None:
        new_ids = _unique([str(new_slot_id)] + [str(sid) for sid in linked_slot_ids])
        if len(new_ids) != count:
            raise ValidationError(
                f"A {booking.get_service_type_display()} booking needs {count} slot(s); got {len(new_ids)}."
            )
        if new_ids == old_ids:
            logger.info('Booking %s already holds the requested slots', booking.booking_id)
            return booking

        locked = {str(slot.id): slot for slot in lock_slots(_unique(old_ids + new_ids))}
        new_slots = [locked[sid] for sid in new_ids]
        for slot in new_slots:
            _check_target(slot, old_ids)
        verify_contiguous(new_slots)
        mark_slots(new_slots, target_status)
    else:
        anchor = find_by_id(new_slot_id)
        try:
            plan = resolve(anchor.technician_id, anchor.date, anchor.time, count,
                           allowed_slot_ids=old_ids)
        except ConflictError as exc:
            raise ValidationError(str(exc)) from exc
        if not plan.placeholder_times and [str(sid) for sid in plan.existing_slot_ids] == old_ids:
            logger.info('Booking %s already holds the requested slots', booking.booking_id)
            return booking

        locked = {str(slot.id): slot for slot in lock_slots(old_ids)}
        new_slots = commit(plan, target_status, allowed_slot_ids=old_ids)
        new_ids = [str(slot.id) for slot in new_slots]

    release_slots([locked[sid] for sid in old_ids if sid not in new_ids])

    booking.slot = new_slots[0]
    booking.technician_id = new_slots[0].technician_id
    booking.save(update_fields=['slot', 'technician', 'updated_at'])
    booking.set_linked_slots(new_slots[1:])

    logger.info(
        'Booking %s rescheduled by %s to %s %s (%d slot(s))',
        booking.booking_id, changed_by, new_slots[0].date, new_slots[0].time_token, len(new_slots),
    )
    return booking


@transaction.atomic
def split_reschedule(booking: Booking, slot1_id, slot2_id, tech1_id, tech2_id,
                     changed_by: str = 'admin') -> list:
    """
    Split a mani + pedi booking into a manicure booking on slot1 with tech1
    and a pedicure booking on slot2 with tech2. The two may be at any time,
    on any date. The original is cancelled; its slots are released unless
    one of the children reuses them. Deposit and payment move to the first
    child.

    Returns [manicure_booking, pedicure_booking].

    Raises:
      ValidationError   — not a mani + pedi booking, same slot twice,
                          slot taken/blocked, slot not owned by the given technician
      InvalidStateError — booking is cancelled
      NotFoundError     — unknown slot or technician
    """
    booking = lock_booking(booking)
    if booking.service_type != ServiceType.MANI_PEDI:
        raise ValidationError('Only Mani + Pedi bookings can be split.')
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidStateError(f"Booking {booking.booking_id} is cancelled and cannot be split.")
    if str(slot1_id) == str(slot2_id):
        raise ValidationError('The two parts of a split booking need different slots.')

    technicians = [get_technician(tech1_id), get_technician(tech2_id)]
    old_ids = [str(sid) for sid in booking.slot_ids()]
    new_ids = [str(slot1_id), str(slot2_id)]

    locked = {str(slot.id): slot for slot in lock_slots(_unique(old_ids + new_ids))}
    new_slots = [locked[sid] for sid in new_ids]
    for slot, technician in zip(new_slots, technicians):
        if slot.technician_id != technician.id:
            raise ValidationError(
                f"The {slot.time_token} slot on {slot.date.isoformat()} belongs to a different technician."
            )
        _check_target(slot, old_ids)

    child_status = booking.status
    release_slots([locked[sid] for sid in old_ids if sid not in new_ids])
    booking._transition(BookingStatus.CANCELLED, changed_by, 'Split into separate manicure and pedicure bookings')
    booking.save(update_fields=['status', 'updated_at'])

    children = []
    for index, (slot, technician, service_type) in enumerate(
        zip(new_slots, technicians, SPLIT_SERVICES), start=1,
    ):
        mark_slots([slot], MIRRORED_SLOT_STATUS[child_status])
        carries_ledger = index == 1
        child = Booking.objects.create(
            booking_id=f"{booking.booking_id}-{index}",
            slot=slot,
            technician=technician,
            customer=booking.customer,
            parent=booking,
            service_type=service_type,
            service_location=booking.service_location,
            client_type=booking.client_type,
            status=child_status,
            customer_data=booking.customer_data,
            form_response_id=booking.form_response_id,
            deposit_amount=booking.deposit_amount if carries_ledger else 0,
            deposit_method=booking.deposit_method if carries_ledger else '',
            deposit_date=booking.deposit_date if carries_ledger else None,
            paid_amount=booking.paid_amount if carries_ledger else 0,
            paid_method=booking.paid_method if carries_ledger else '',
            paid_date=booking.paid_date if carries_ledger else None,
            payment_status=derive_payment_status(
                None,
                booking.deposit_amount if carries_ledger else 0,
                booking.paid_amount if carries_ledger else 0,
            ),
        )
        BookingStatusLog.objects.create(
            booking=child,
            from_status='',
            to_status=child_status,
            changed_by=changed_by,
            reason=f"Split from {booking.booking_id}",
        )
        children.append(child)

    logger.info(
        'Booking %s split into %s', booking.booking_id, ', '.join(c.booking_id for c in children),
    )
    return children
