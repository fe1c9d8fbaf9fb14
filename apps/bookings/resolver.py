"""
Consecutive slot resolver — finds N adjacent slots for one technician.

Public API:
  resolve(technician_id, date, time, count, allowed_slot_ids=())  → SlotPlan
  commit(plan, status='pending', allowed_slot_ids=())              → [Slot]
  verify_contiguous(slots)

Two phases. resolve() only reads: it walks the grid from the anchor and
returns a plan whose entries are either existing available slots or
placeholders for grid positions that were never materialised. commit() is
the only step that writes: inside one transaction it locks every existing
member, re-checks it, creates the placeholders and flips the whole set.

A grid position with no slot row is not a gap; a position holding a slot
that is not available always breaks the run.
"""
import logging
from dataclasses import dataclass, field
from datetime import date as date_type, time as time_type
from typing import Optional

from django.db import IntegrityError, transaction

from .blocks import assert_not_blocked
from .exceptions import ConflictError, ValidationError
from .grid import (
    format_time_token,
    grid_index,
    is_on_grid,
    next_slot_time,
    parse_time_token,
    times_between,
)
from .models import Slot, SlotStatus
from .slots import find_by_date_and_tech, get_technician, lock_slots

logger = logging.getLogger(__name__)

RESERVING_STATUSES = (SlotStatus.PENDING, SlotStatus.CONFIRMED)


# ── Plan ──────────────────────────────────────────────────────────────────────

@dataclass
class SlotPlanEntry:
    time: time_type
    slot: Optional[Slot] = None

    @property
    def is_placeholder(self) -> bool:
        return self.slot is None


@dataclass
class SlotPlan:
    technician_id: object
    date: date_type
    entries: list = field(default_factory=list)

    def __len__(self):
        return len(self.entries)

    @property
    def times(self) -> list:
        return [entry.time for entry in self.entries]

    @property
    def existing_slot_ids(self) -> list:
        return [entry.slot.id for entry in self.entries if entry.slot is not None]

    @property
    def placeholder_times(self) -> list:
        return [entry.time for entry in self.entries if entry.slot is None]

    def as_dict(self) -> dict:
        return {
            'technician_id': str(self.technician_id),
            'date': self.date.isoformat(),
            'slots': [
                {
                    'time': format_time_token(entry.time),
                    'slot_id': str(entry.slot.id) if entry.slot else None,
                    'placeholder': entry.is_placeholder,
                }
                for entry in self.entries
            ],
        }


def _check_free(slot: Slot, allowed: set) -> None:
    """An existing plan member must be available, unless the caller already holds it."""
    if str(slot.id) in allowed:
        return
    if slot.status != SlotStatus.AVAILABLE:
        raise ConflictError(
            f"The {slot.time_token} slot on {slot.date.isoformat()} is {slot.status}; "
            f"not enough consecutive slots are free."
        )


# ── Phase 1: resolve ──────────────────────────────────────────────────────────

def resolve(technician_id, day: date_type, time, count: int,
            allowed_slot_ids=()) -> SlotPlan:
    """
    Plan `count` consecutive grid positions starting at `time`.
    Nothing is written.

    allowed_slot_ids: slots the caller already holds (a booking being
    rescheduled onto an overlapping range); they count as free.

    Raises:
      ValidationError — bad count, off-grid anchor, blocked date, grid runs out
      NotFoundError   — unknown technician
      ConflictError   — a slot in the run is not available
    """
    if count < 1:
        raise ValidationError('At least one slot is required.')
    try:
        anchor = parse_time_token(time)
    except ValueError:
        raise ValidationError(f"Invalid slot time '{time}'.")
    if not is_on_grid(anchor):
        raise ValidationError(f"{format_time_token(anchor)} is not a time on the slot grid.")

    technician = get_technician(technician_id)
    assert_not_blocked(day, 'Cannot book a slot inside a blocked date range.')

    allowed = {str(sid) for sid in allowed_slot_ids}
    existing = {slot.time: slot for slot in find_by_date_and_tech(day, technician.id)}

    plan = SlotPlan(technician_id=technician.id, date=day)
    current = anchor
    while True:
        slot = existing.get(current)
        if slot is not None:
            _check_free(slot, allowed)
        plan.entries.append(SlotPlanEntry(time=current, slot=slot))
        if len(plan.entries) == count:
            break
        current = next_slot_time(current)
        if current is None:
            raise ValidationError(
                f"Not enough consecutive slots after {format_time_token(anchor)}: "
                f"{count} needed, the day's grid ends first."
            )

    logger.debug(
        'Resolved %d slot(s) for technician %s on %s from %s (%d to create)',
        count, technician.id, day, format_time_token(anchor), len(plan.placeholder_times),
    )
    return plan


# ── Phase 2: commit ───────────────────────────────────────────────────────────

@transaction.atomic
def commit(plan: SlotPlan, status: str = SlotStatus.PENDING, allowed_slot_ids=()) -> list:
    """
    Materialise a plan. Returns the slots in plan order, all set to `status`.

    Runs in one transaction with SELECT FOR UPDATE on every existing member,
    so two requests racing for the same run cannot both succeed: the loser
    either sees a non-available slot after the lock, or hits the
    (technician, date, time) unique constraint while creating a placeholder.

    Raises:
      ValidationError — status is not a reserving status, date became blocked
      ConflictError   — a member was taken or created since resolve()
    """
    if status not in RESERVING_STATUSES:
        raise ValidationError(f"Cannot reserve slots with status '{status}'.")
    assert_not_blocked(plan.date, 'Cannot book a slot inside a blocked date range.')

    allowed = {str(sid) for sid in allowed_slot_ids}
    locked = {slot.id: slot for slot in lock_slots(plan.existing_slot_ids)}

    slots = []
    for entry in plan.entries:
        if entry.slot is None:
            try:
                with transaction.atomic():
                    slot = Slot.objects.create(
                        technician_id=plan.technician_id,
                        date=plan.date,
                        time=entry.time,
                        status=status,
                    )
            except IntegrityError:
                raise ConflictError(
                    f"The {format_time_token(entry.time)} slot on {plan.date.isoformat()} "
                    f"was just taken. Please choose a different time."
                )
            logger.info('Slot materialised: %s', slot)
        else:
            slot = locked[entry.slot.id]
            _check_free(slot, allowed)
            if slot.status != status:
                slot.status = status
                slot.save(update_fields=['status', 'updated_at'])
        slots.append(slot)
    return slots


# ── Contiguity ────────────────────────────────────────────────────────────────

def verify_contiguous(slots) -> None:
    """
    Check an explicit slot list forms one consecutive run: same technician,
    same date, strictly ascending on the grid, and every grid position
    skipped between two members has no slot row at all.

    Raises ValidationError describing the first break.
    """
    if not slots:
        raise ValidationError('At least one slot is required.')

    first = slots[0]
    for slot in slots[1:]:
        if slot.technician_id != first.technician_id:
            raise ValidationError('All slots of a booking must belong to the same technician.')
        if slot.date != first.date:
            raise ValidationError('All slots of a booking must be on the same date.')

    for slot in slots:
        if not is_on_grid(slot.time):
            raise ValidationError(f"{slot.time_token} is not a time on the slot grid.")

    if len(slots) == 1:
        return

    occupied_times = {
        slot.time for slot in find_by_date_and_tech(first.date, first.technician_id)
    }
    for previous, current in zip(slots, slots[1:]):
        if grid_index(current.time) <= grid_index(previous.time):
            raise ValidationError('Slots must be in ascending time order.')
        for skipped in times_between(previous.time, current.time):
            if skipped in occupied_times:
                raise ValidationError(
                    f"Slots {previous.time_token} and {current.time_token} are not consecutive: "
                    f"the {format_time_token(skipped)} slot lies between them."
                )
