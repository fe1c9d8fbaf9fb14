"""
Slot store — inventory of slots, one per technician+date+grid time.

Public API:
  find_by_date_and_tech(date, technician_id)
  find_by_id(slot_id)
  create_slot(date, time, technician_id, status='available', ...)
  set_status(slot_id, status)
  delete_slot(slot_id)
  lock_slots(slot_ids)
  get_technician(technician_id)

Reads are plain filters over current inventory. A slot is never reused
across technicians: every lookup is keyed by technician explicitly.
"""
import logging
from datetime import date as date_type

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q

from apps.technicians.models import Technician

from .blocks import is_blocked
from .exceptions import ConflictError, NotFoundError, ValidationError
from .grid import format_time_token, is_on_grid, parse_time_token
from .models import Booking, BookingStatus, Slot, SlotStatus, SlotType

logger = logging.getLogger(__name__)


def get_technician(technician_id) -> Technician:
    try:
        return Technician.objects.get(id=technician_id)
    except (Technician.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Technician {technician_id} not found.")


def find_by_date_and_tech(day: date_type, technician_id) -> list:
    """All slots of one technician on one date, in grid order."""
    return list(
        Slot.objects
        .filter(technician_id=technician_id, date=day)
        .order_by('time')
    )


def find_by_id(slot_id) -> Slot:
    try:
        return Slot.objects.select_related('technician').get(id=slot_id)
    except (Slot.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Slot {slot_id} not found.")


def find_at(technician_id, day: date_type, time):
    """The slot at an exact grid position, or None."""
    return Slot.objects.filter(
        technician_id=technician_id, date=day, time=parse_time_token(time),
    ).first()


def create_slot(day: date_type, time, technician_id, status: str = SlotStatus.AVAILABLE,
                slot_type: str = SlotType.REGULAR, notes: str = '',
                is_hidden: bool = False) -> Slot:
    """
    Materialise one slot.

    Raises:
      ValidationError — unknown status/type, off-grid time, or blocked date
      NotFoundError   — unknown technician
      ConflictError   — a slot already exists at this technician+date+time
    """
    if status not in SlotStatus.values:
        raise ValidationError(f"Invalid slot status '{status}'.")
    if slot_type not in SlotType.values:
        raise ValidationError(f"Invalid slot type '{slot_type}'.")
    try:
        time = parse_time_token(time)
    except ValueError:
        raise ValidationError(f"Invalid slot time '{time}'.")
    if not is_on_grid(time):
        raise ValidationError(f"{format_time_token(time)} is not a time on the slot grid.")
    if is_blocked(day):
        raise ValidationError('Cannot create a slot inside a blocked date range.')

    technician = get_technician(technician_id)

    if find_at(technician.id, day, time) is not None:
        raise ConflictError(
            f"A slot already exists for {technician.name} on {day} at {format_time_token(time)}."
        )

    try:
        with transaction.atomic():
            slot = Slot.objects.create(
                technician=technician,
                date=day,
                time=time,
                status=status,
                slot_type=slot_type,
                notes=notes,
                is_hidden=is_hidden,
            )
    except IntegrityError:
        # Lost a race against a concurrent create at the same position
        raise ConflictError(
            f"A slot already exists for {technician.name} on {day} at {format_time_token(time)}."
        )

    logger.info('Slot created: %s', slot)
    return slot


def set_status(slot_id, status: str) -> Slot:
    """Set one slot's status. Only 'blocked' may be written on a blocked date."""
    if status not in SlotStatus.values:
        raise ValidationError(f"Invalid slot status '{status}'.")

    with transaction.atomic():
        slot = lock_slots([slot_id])[0]
        if status != SlotStatus.BLOCKED and is_blocked(slot.date):
            raise ValidationError('Cannot update a slot inside a blocked date range.')
        slot.status = status
        slot.save(update_fields=['status', 'updated_at'])
    return slot


def referencing_bookings(slot):
    """Non-cancelled bookings that hold this slot as primary or linked."""
    return (
        Booking.objects
        .exclude(status=BookingStatus.CANCELLED)
        .filter(Q(slot=slot) | Q(linked_slot_entries__slot=slot))
        .distinct()
    )


def delete_slot(slot_id) -> None:
    """
    Hard-delete a slot that no live booking references. Cancelled bookings
    that still point at it lose the reference: the primary slot becomes null
    and the linked entry is dropped.
    """
    with transaction.atomic():
        slot = lock_slots([slot_id])[0]
        holder = referencing_bookings(slot).first()
        if holder is not None:
            raise ConflictError(
                f"Slot is referenced by booking {holder.booking_id} and cannot be deleted."
            )
        slot.delete()
    logger.info('Slot %s deleted', slot_id)


def lock_slots(slot_ids) -> list:
    """
    SELECT … FOR UPDATE every slot in slot_ids and return them in the given order.
    Must run inside transaction.atomic().

    Raises NotFoundError if any id does not resolve.
    """
    slot_ids = [str(sid) for sid in slot_ids]
    try:
        rows = (
            Slot.objects
            .select_for_update()
            .filter(id__in=slot_ids)
        )
        by_id = {str(slot.id): slot for slot in rows}
    except (DjangoValidationError, ValueError):
        raise NotFoundError('One or more slot ids are malformed.')

    missing = [sid for sid in slot_ids if sid not in by_id]
    if missing:
        raise NotFoundError(f"Slot {missing[0]} not found.")
    return [by_id[sid] for sid in slot_ids]
