"""
Booking engine — booking lifecycle, no HTTP/request awareness.

Public API:
  get_booking(booking_ref)
  next_booking_id()
  create_booking(slot_id, service_type, service_location, client_type, customer, linked_slot_ids=None)
  book_plan(plan, service_type, ...)
  confirm(booking, deposit_amount=None, payment_method=None)
  cancel(booking, release_slot=True)
  set_status(booking, status)
  save_invoice(booking, invoice)
  update_payment(booking, payment_status, paid_amount=None, tip_amount=None, method=None)
  update_deposit(booking, deposit_amount, method=None)
  update_service_type(booking, service_type)
  update_nail_tech(booking, technician_id)
  submit_form(booking_ref, form_data, form_response_id='')
  stale_pending_form_bookings(now=None)
  release_stale_bookings(booking_refs=None)

State machine:
  pending_form → pending_payment → confirmed
  pending_form / pending_payment → cancelled
Confirmed and cancelled are terminal. Every transition writes a
BookingStatusLog row and keeps the booking's slots mirrored to its status.
"""
import logging
import re
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.customers.models import Customer

from .blocks import assert_not_blocked
from .exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from .ledger import derive_payment_status, normalize_invoice, to_amount
from .models import (
    MIRRORED_SLOT_STATUS,
    Booking,
    BookingStatus,
    BookingStatusLog,
    ClientType,
    PaymentMethod,
    PaymentStatus,
    ServiceLocation,
    ServiceType,
    SlotStatus,
    required_slot_count,
)
from .resolver import SlotPlan, commit, resolve
from .slots import find_by_id, get_technician, lock_slots

logger = logging.getLogger(__name__)

LEGAL_TRANSITIONS = {
    BookingStatus.PENDING_FORM: {
        BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
    },
    BookingStatus.PENDING_PAYMENT: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: set(),
    BookingStatus.CANCELLED: set(),
}

# Retries when a concurrent intake claims the same sequential id
BOOKING_ID_ATTEMPTS = 5


# ── Lookups ───────────────────────────────────────────────────────────────────

def get_booking(booking_ref) -> Booking:
    """Resolve a booking by its human-readable id (GN-00042) or its UUID."""
    booking = Booking.objects.filter(booking_id=str(booking_ref)).first()
    if booking is not None:
        return booking
    try:
        return Booking.objects.get(id=booking_ref)
    except (Booking.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Booking {booking_ref} not found.")


def lock_booking(booking: Booking) -> Booking:
    """Re-read the booking row under SELECT FOR UPDATE. Call inside a transaction."""
    try:
        return Booking.objects.select_for_update().get(pk=booking.pk)
    except Booking.DoesNotExist:
        raise NotFoundError(f"Booking {booking.booking_id} not found.")


def next_booking_id() -> str:
    """
    Next sequential id: highest existing numeric suffix + 1, zero-padded to 5.
    Split children (GN-00042-1) and imported ids that do not fit the pattern
    are ignored.
    """
    prefix = settings.BOOKING_ID_PREFIX
    pattern = re.compile(rf'^{re.escape(prefix)}-(\d{{1,6}})$')
    highest = 0
    for booking_id in Booking.objects.filter(
        booking_id__startswith=f"{prefix}-"
    ).values_list('booking_id', flat=True):
        match = pattern.match(booking_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:05d}"


# ── Slot mirroring ────────────────────────────────────────────────────────────

def mark_slots(slots, status: str) -> None:
    for slot in slots:
        if slot.status != status:
            slot.status = status
            slot.save(update_fields=['status', 'updated_at'])


def release_slots(slots) -> None:
    """Return slots to available. Blocked slots stay blocked."""
    mark_slots([slot for slot in slots if slot.status != SlotStatus.BLOCKED], SlotStatus.AVAILABLE)


def _check_method(method) -> str:
    if method and method not in PaymentMethod.values:
        raise ValidationError(
            f"Invalid payment method '{method}'. Use one of {', '.join(PaymentMethod.values)}."
        )
    return method or ''


# ── Creation ──────────────────────────────────────────────────────────────────

def _check_descriptors(service_type, service_location, client_type, status) -> None:
    if service_type not in ServiceType.values:
        raise ValidationError(f"Invalid service type '{service_type}'.")
    if service_location not in ServiceLocation.values:
        raise ValidationError(f"Invalid service location '{service_location}'.")
    if client_type and client_type not in ClientType.values:
        raise ValidationError(f"Invalid client type '{client_type}'.")
    if status not in (BookingStatus.PENDING_FORM, BookingStatus.PENDING_PAYMENT):
        raise ValidationError(f"A new booking cannot start as '{status}'.")


def create_booking(slot_id, service_type: str,
                   service_location: str = ServiceLocation.HOMEBASED_STUDIO,
                   client_type: str = '', customer: Customer = None,
                   linked_slot_ids=None, *, customer_data: dict = None,
                   booking_id: str = None, status: str = BookingStatus.PENDING_FORM,
                   changed_by: str = 'intake') -> Booking:
    """
    Reserve the slot run anchored on slot_id and create the booking.

    The run length comes from the service type. When linked_slot_ids is
    given it must name exactly the slots the resolver would pick after the
    anchor, in order.

    Raises:
      ValidationError — unknown service type/location, linked slots not the
                        consecutive run, blocked date, grid exhausted
      NotFoundError   — unknown slot
      ConflictError   — a slot in the run is taken, or booking_id is in use
    """
    _check_descriptors(service_type, service_location, client_type, status)

    anchor = find_by_id(slot_id)
    plan = resolve(anchor.technician_id, anchor.date, anchor.time, required_slot_count(service_type))

    if linked_slot_ids is not None:
        planned = [str(entry.slot.id) if entry.slot else None for entry in plan.entries[1:]]
        if planned != [str(sid) for sid in linked_slot_ids]:
            raise ValidationError('Linked slots must be the consecutive slots right after the selected slot.')

    return book_plan(
        plan, service_type, service_location, client_type, customer,
        customer_data=customer_data, booking_id=booking_id, status=status, changed_by=changed_by,
    )


def book_plan(plan: SlotPlan, service_type: str,
              service_location: str = ServiceLocation.HOMEBASED_STUDIO,
              client_type: str = '', customer: Customer = None, *,
              customer_data: dict = None, booking_id: str = None,
              status: str = BookingStatus.PENDING_FORM, changed_by: str = 'intake',
              allowed_slot_ids=()) -> Booking:
    """
    Commit a resolved plan and create the booking on it, all in one transaction.
    The plan must already have the service type's slot count.
    Without an explicit booking_id the next sequential id is taken; if a
    concurrent intake claims it first the id is re-read and the commit retried.
    """
    _check_descriptors(service_type, service_location, client_type, status)
    if len(plan) != required_slot_count(service_type):
        raise ValidationError(
            f"{service_type} needs {required_slot_count(service_type)} slot(s), plan has {len(plan)}."
        )

    for attempt in range(1, BOOKING_ID_ATTEMPTS + 1):
        candidate = booking_id or next_booking_id()
        try:
            with transaction.atomic():
                slots = commit(plan, MIRRORED_SLOT_STATUS[status], allowed_slot_ids=allowed_slot_ids)
                booking = Booking.objects.create(
                    booking_id=candidate,
                    slot=slots[0],
                    technician_id=plan.technician_id,
                    customer=customer,
                    service_type=service_type,
                    service_location=service_location,
                    client_type=client_type,
                    status=status,
                    customer_data=customer_data or {},
                )
                booking.set_linked_slots(slots[1:])
                BookingStatusLog.objects.create(
                    booking=booking,
                    from_status='',
                    to_status=status,
                    changed_by=changed_by,
                    reason='Booking created',
                )
            break
        except IntegrityError:
            if not Booking.objects.filter(booking_id=candidate).exists():
                raise
            if booking_id:
                raise ConflictError(f"Booking id {booking_id} is already in use.")
            # another intake took the same sequence number
            logger.warning('Booking id %s taken concurrently (attempt %d)', candidate, attempt)
    else:
        raise ConflictError('Could not allocate a booking id. Please try again.')

    logger.info(
        'Booking %s created: %s, %d slot(s) from %s %s',
        booking.booking_id, service_type, len(slots), plan.date, slots[0].time_token,
    )
    return booking


# ── Transitions ───────────────────────────────────────────────────────────────

@transaction.atomic
def confirm(booking: Booking, deposit_amount=None, payment_method: str = None,
            changed_by: str = 'admin') -> Booking:
    """
    pending_form / pending_payment → confirmed. Every slot becomes confirmed.
    A positive deposit is recorded with its date; a payment method is
    recorded whenever one is given.

    Raises:
      InvalidStateError — already confirmed or cancelled
      ValidationError   — negative deposit, unknown method, blocked date
    """
    deposit = to_amount(deposit_amount, 'deposit_amount') if deposit_amount is not None else None
    method = _check_method(payment_method)

    booking = lock_booking(booking)
    if BookingStatus.CONFIRMED not in LEGAL_TRANSITIONS[booking.status]:
        raise InvalidStateError(
            f"Booking {booking.booking_id} is {booking.status} and cannot be confirmed."
        )

    slots = lock_slots(booking.slot_ids())
    for slot in slots:
        assert_not_blocked(slot.date, 'Cannot confirm a booking on a blocked date.')
    mark_slots(slots, SlotStatus.CONFIRMED)

    if deposit:
        booking.deposit_amount = deposit
        booking.deposit_date = timezone.now()
    if method:
        booking.deposit_method = method
    booking.payment_status = derive_payment_status(
        booking.invoice, booking.deposit_amount, booking.paid_amount, booking.payment_status,
    )
    booking._transition(BookingStatus.CONFIRMED, changed_by, 'Booking confirmed')
    booking.save()

    logger.info('Booking %s confirmed (deposit %s)', booking.booking_id, booking.deposit_amount)
    return booking


@transaction.atomic
def cancel(booking: Booking, release_slot: bool = True, changed_by: str = 'admin',
           reason: str = '') -> Booking:
    """
    pending_form / pending_payment → cancelled.
    With release_slot the booking's slots go back to available; without it
    they are left exactly as they are.

    Raises InvalidStateError from confirmed or cancelled.
    """
    booking = lock_booking(booking)
    if BookingStatus.CANCELLED not in LEGAL_TRANSITIONS[booking.status]:
        raise InvalidStateError(
            f"Booking {booking.booking_id} is {booking.status} and cannot be cancelled."
        )

    if release_slot:
        release_slots(lock_slots(booking.slot_ids()))

    booking._transition(BookingStatus.CANCELLED, changed_by, reason or 'Booking cancelled')
    booking.save(update_fields=['status', 'updated_at'])

    logger.info(
        'Booking %s cancelled (%s)', booking.booking_id,
        'slots released' if release_slot else 'slots retained',
    )
    return booking


@transaction.atomic
def set_status(booking: Booking, status: str, changed_by: str = 'admin') -> Booking:
    """Generic status change, routed through the transition table."""
    if status not in BookingStatus.values:
        raise ValidationError(f"Invalid booking status '{status}'.")
    if status == BookingStatus.CONFIRMED:
        return confirm(booking, changed_by=changed_by)
    if status == BookingStatus.CANCELLED:
        return cancel(booking, changed_by=changed_by)

    booking = lock_booking(booking)
    if status not in LEGAL_TRANSITIONS[booking.status]:
        raise InvalidStateError(
            f"Booking {booking.booking_id} cannot move from {booking.status} to {status}."
        )
    mark_slots(lock_slots(booking.slot_ids()), MIRRORED_SLOT_STATUS[status])
    booking._transition(status, changed_by)
    booking.save(update_fields=['status', 'updated_at'])
    logger.info('Booking %s → %s', booking.booking_id, status)
    return booking


# ── Ledger updates ────────────────────────────────────────────────────────────

@transaction.atomic
def save_invoice(booking: Booking, invoice: dict, changed_by: str = 'admin') -> Booking:
    """
    Attach or replace the quotation. A pending_form booking moves on to
    pending_payment, since a quotation is only sent once the form is in.

    Raises:
      ValidationError   — malformed invoice
      InvalidStateError — booking is cancelled
    """
    invoice = normalize_invoice(invoice)
    booking = lock_booking(booking)
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidStateError(f"Booking {booking.booking_id} is cancelled; cannot attach an invoice.")

    now = timezone.now().isoformat()
    invoice['created_at'] = (booking.invoice or {}).get('created_at', now)
    invoice['updated_at'] = now
    booking.invoice = invoice

    if booking.status == BookingStatus.PENDING_FORM:
        booking._transition(BookingStatus.PENDING_PAYMENT, changed_by, 'Invoice saved')

    booking.payment_status = derive_payment_status(
        booking.invoice, booking.deposit_amount, booking.paid_amount, booking.payment_status,
    )
    booking.save()
    logger.info('Invoice saved on %s (total %s)', booking.booking_id, invoice['total'])
    return booking


@transaction.atomic
def update_payment(booking: Booking, payment_status: str, paid_amount=None,
                   tip_amount=None, method: str = None) -> Booking:
    """
    Record a payment. Booking status is never touched.
    'paid' needs an invoice; a settled ledger is always 'paid' unless refunded.
    """
    if payment_status not in PaymentStatus.values:
        raise ValidationError(f"Invalid payment status '{payment_status}'.")
    paid = to_amount(paid_amount, 'paid_amount') if paid_amount is not None else None
    tip = to_amount(tip_amount, 'tip_amount') if tip_amount is not None else None
    method = _check_method(method)

    booking = lock_booking(booking)
    if payment_status == PaymentStatus.PAID and not booking.invoice:
        raise ValidationError('Save an invoice before marking the booking as paid.')

    now = timezone.now()
    if paid is not None:
        booking.paid_amount = paid
        booking.paid_date = now
    if tip is not None:
        booking.tip_amount = tip
        booking.tip_date = now
    if method:
        booking.paid_method = method

    if payment_status != PaymentStatus.REFUNDED and derive_payment_status(
        booking.invoice, booking.deposit_amount, booking.paid_amount,
    ) == PaymentStatus.PAID:
        payment_status = PaymentStatus.PAID
    booking.payment_status = payment_status
    booking.save()

    logger.info('Payment on %s: %s (paid %s, tip %s)',
                booking.booking_id, booking.payment_status, booking.paid_amount, booking.tip_amount)
    return booking


@transaction.atomic
def update_deposit(booking: Booking, deposit_amount, method: str = None) -> Booking:
    """Replace the deposit figure and re-derive the payment status."""
    deposit = to_amount(deposit_amount, 'deposit_amount')
    method = _check_method(method)

    booking = lock_booking(booking)
    booking.deposit_amount = deposit
    booking.deposit_date = timezone.now() if deposit else None
    if method:
        booking.deposit_method = method
    booking.payment_status = derive_payment_status(
        booking.invoice, booking.deposit_amount, booking.paid_amount, booking.payment_status,
    )
    booking.save()
    logger.info('Deposit on %s set to %s', booking.booking_id, deposit)
    return booking


# ── Descriptive updates ───────────────────────────────────────────────────────

def update_service_type(booking: Booking, service_type: str) -> Booking:
    """
    Change the service type only. The slot run is not re-validated; follow up
    with a reschedule when the new type needs a different number of slots.
    """
    if service_type not in ServiceType.values:
        raise ValidationError(f"Invalid service type '{service_type}'.")
    held = len(booking.slot_ids())
    if required_slot_count(service_type) != held:
        logger.warning(
            'Booking %s now %s but holds %d slot(s); a reschedule is needed',
            booking.booking_id, service_type, held,
        )
    booking.service_type = service_type
    booking.save(update_fields=['service_type', 'updated_at'])
    return booking


def update_nail_tech(booking: Booking, technician_id) -> Booking:
    """Reassign the technician shown on the booking. Slots stay where they are."""
    technician = get_technician(technician_id)
    booking.technician = technician
    booking.save(update_fields=['technician', 'updated_at'])
    logger.info('Booking %s assigned to %s', booking.booking_id, technician)
    return booking


# ── Intake form ───────────────────────────────────────────────────────────────

@transaction.atomic
def submit_form(booking_ref, form_data: dict, form_response_id: str = '') -> Booking:
    """
    Attach intake form answers: resolve the customer, decide new vs repeat
    client, and move pending_form → pending_payment.

    Raises:
      NotFoundError     — unknown booking
      InvalidStateError — booking is cancelled
    """
    booking = lock_booking(get_booking(booking_ref))
    if booking.status == BookingStatus.CANCELLED:
        raise InvalidStateError(f"Booking {booking.booking_id} is cancelled.")

    customer, created = Customer.find_or_create_from_form(form_data)
    has_history = customer.bookings.exclude(pk=booking.pk).exclude(
        status=BookingStatus.CANCELLED
    ).exists()
    if has_history and not customer.is_repeat_client:
        customer.is_repeat_client = True
        customer.save(update_fields=['is_repeat_client', 'updated_at'])
    elif customer.is_repeat_client is None:
        customer.is_repeat_client = False
        customer.save(update_fields=['is_repeat_client', 'updated_at'])

    booking.customer = customer
    booking.customer_data = form_data
    booking.form_response_id = form_response_id or booking.form_response_id
    if not booking.client_type:
        booking.client_type = ClientType.REPEAT if customer.is_repeat_client else ClientType.NEW

    if booking.status == BookingStatus.PENDING_FORM:
        booking._transition(BookingStatus.PENDING_PAYMENT, 'intake', 'Intake form submitted')
    booking.save()

    logger.info('Form received for %s → customer %s (%s)',
                booking.booking_id, customer.id, 'new' if created else 'existing')
    return booking


# ── Stale booking release ─────────────────────────────────────────────────────

def stale_pending_form_bookings(now=None):
    """pending_form bookings older than PENDING_FORM_RELEASE_HOURS with no form response."""
    cutoff = (now or timezone.now()) - timedelta(hours=settings.PENDING_FORM_RELEASE_HOURS)
    return Booking.objects.filter(
        status=BookingStatus.PENDING_FORM,
        form_response_id='',
        created_at__lt=cutoff,
    ).order_by('created_at')


def release_stale_bookings(booking_refs=None, changed_by: str = 'cron', now=None) -> list:
    """
    Cancel stale pending_form bookings and release their slots.
    booking_refs narrows the run to the given human-readable ids; ids that
    are not stale are skipped. Returns the released booking ids.
    """
    candidates = stale_pending_form_bookings(now)
    if booking_refs is not None:
        candidates = candidates.filter(booking_id__in=[str(ref) for ref in booking_refs])

    released = []
    for booking in candidates:
        try:
            cancel(booking, release_slot=True, changed_by=changed_by,
                   reason='Released: intake form not submitted in time')
        except InvalidStateError:
            logger.warning('Booking %s changed state before it could be released', booking.booking_id)
            continue
        released.append(booking.booking_id)
    return released
