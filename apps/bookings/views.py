"""
JSON endpoints over the scheduling core.

Views parse and validate the request body with the forms in forms.py,
call engine / rescheduling / slots / blocks / recovery, and translate the
scheduling exceptions into status codes:
  ValidationError → 400, NotFoundError → 404,
  ConflictError / InvalidStateError → 409, anything else → 500 (logged).

Authentication is left to the deployment in front of these endpoints.
"""
import json
import logging
from functools import wraps

from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from . import blocks, engine, rescheduling, slots
from .exceptions import BookingEngineError, ValidationError
from .forms import (
    ACTION_FORMS,
    BlockedDateForm,
    BookingAction,
    CreateBookingForm,
    RecoverFromSheetForm,
    ReleaseBookingsForm,
    SlotCreateForm,
    SlotQueryForm,
    SlotStatusForm,
    SubmitFormForm,
)
from .grid import format_time_12h
from .ledger import balance
from .models import BlockScope, ServiceLocation, SlotStatus, SlotType
from .recovery import recover_booking

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except ValueError:
        raise ValidationError('Request body must be valid JSON.')
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object.')
    return payload


def _form_errors(form) -> JsonResponse:
    return JsonResponse({'error': 'Invalid request.', 'errors': form.errors}, status=400)


def _iso(value):
    return value.isoformat() if value else None


def slot_json(slot) -> dict:
    return {
        'id': str(slot.id),
        'technician_id': str(slot.technician_id),
        'date': slot.date.isoformat(),
        'time': slot.time_token,
        'time_display': format_time_12h(slot.time),
        'status': slot.status,
        'slot_type': slot.slot_type,
        'notes': slot.notes,
        'is_hidden': slot.is_hidden,
    }


def block_json(block) -> dict:
    return {
        'id': str(block.id),
        'start_date': block.start_date.isoformat(),
        'end_date': block.end_date.isoformat(),
        'reason': block.reason,
        'scope': block.scope,
    }


def booking_json(booking) -> dict:
    booked_slots = booking.get_slots()
    return {
        'id': str(booking.id),
        'booking_id': booking.booking_id,
        'status': booking.status,
        'service_type': booking.service_type,
        'service_location': booking.service_location,
        'client_type': booking.client_type,
        'technician_id': str(booking.technician_id),
        'customer_id': booking.customer_ref,
        'parent_booking_id': booking.parent.booking_id if booking.parent_id else None,
        'slot_id': str(booking.slot_id) if booking.slot_id else None,
        'linked_slot_ids': [str(slot.id) for slot in booked_slots[1:]],
        'slots': [slot_json(slot) for slot in booked_slots],
        'customer_data': booking.customer_data,
        'form_response_id': booking.form_response_id,
        'invoice': booking.invoice,
        'payment_status': booking.payment_status,
        'deposit_amount': str(booking.deposit_amount),
        'paid_amount': str(booking.paid_amount),
        'tip_amount': str(booking.tip_amount),
        'balance': str(balance(booking.invoice, booking.deposit_amount, booking.paid_amount)),
        'deposit_method': booking.deposit_method,
        'paid_method': booking.paid_method,
        'deposit_date': _iso(booking.deposit_date),
        'paid_date': _iso(booking.paid_date),
        'tip_date': _iso(booking.tip_date),
        'created_at': _iso(booking.created_at),
        'updated_at': _iso(booking.updated_at),
    }


def json_endpoint(view):
    """Map scheduling exceptions to JSON error responses; log anything unexpected."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except BookingEngineError as exc:
            logger.warning('%s %s rejected (%s): %s',
                           request.method, request.path, exc.http_status, exc)
            return JsonResponse({'error': str(exc)}, status=exc.http_status)
        except Exception:
            logger.exception('Unhandled error in %s %s', request.method, request.path)
            return JsonResponse({'error': 'Internal server error.'}, status=500)
    return wrapper


# ── Booking action handlers ───────────────────────────────────────────────────

def _confirm(booking, data):
    return engine.confirm(booking, data['deposit_amount'], data['payment_method'] or None)


def _cancel(booking, data):
    return engine.cancel(booking, release_slot=data['release_slot'])


def _save_invoice(booking, data):
    return engine.save_invoice(booking, data['invoice'])


def _update_payment(booking, data):
    return engine.update_payment(
        booking, data['payment_status'],
        paid_amount=data['paid_amount'],
        tip_amount=data['tip_amount'],
        method=data['method'] or None,
    )


def _update_deposit(booking, data):
    return engine.update_deposit(booking, data['deposit_amount'], data['method'] or None)


def _reschedule(booking, data):
    return rescheduling.reschedule(booking, data['new_slot_id'], data['linked_slot_ids'])


def _split_reschedule(booking, data):
    return rescheduling.split_reschedule(
        booking, data['slot1_id'], data['slot2_id'], data['tech1_id'], data['tech2_id'],
    )


def _update_service_type(booking, data):
    return engine.update_service_type(booking, data['service_type'])


def _update_nail_tech(booking, data):
    return engine.update_nail_tech(booking, data['technician_id'])


def _set_status(booking, data):
    return engine.set_status(booking, data['status'])


ACTION_HANDLERS = {
    BookingAction.CONFIRM: _confirm,
    BookingAction.CANCEL: _cancel,
    BookingAction.SAVE_INVOICE: _save_invoice,
    BookingAction.UPDATE_PAYMENT: _update_payment,
    BookingAction.UPDATE_DEPOSIT: _update_deposit,
    BookingAction.RESCHEDULE: _reschedule,
    BookingAction.SPLIT_RESCHEDULE: _split_reschedule,
    BookingAction.UPDATE_SERVICE_TYPE: _update_service_type,
    BookingAction.UPDATE_NAIL_TECH: _update_nail_tech,
    BookingAction.SET_STATUS: _set_status,
}

_unhandled = set(BookingAction) - set(ACTION_HANDLERS) | set(BookingAction) - set(ACTION_FORMS)
if _unhandled:
    raise ImproperlyConfigured(
        f"Booking actions without a form or handler: {', '.join(sorted(_unhandled))}"
    )


# ── Bookings ──────────────────────────────────────────────────────────────────

@csrf_exempt
@require_POST
@json_endpoint
def booking_create(request):
    form = CreateBookingForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    booking = engine.create_booking(
        data['slot_id'],
        data['service_type'],
        service_location=data['service_location'] or ServiceLocation.HOMEBASED_STUDIO,
        client_type=data['client_type'],
        linked_slot_ids=data['linked_slot_ids'],
        customer_data=data['customer_data'],
    )
    return JsonResponse({'booking': booking_json(booking)}, status=201)


@csrf_exempt
@require_http_methods(['GET', 'PATCH'])
@json_endpoint
def booking_detail(request, booking_id):
    booking = engine.get_booking(booking_id)
    if request.method == 'GET':
        return JsonResponse({'booking': booking_json(booking)})

    payload = _json_body(request)
    action = payload.get('action')
    if not action:
        if 'status' not in payload:
            return JsonResponse({'error': 'action is required.'}, status=400)
        action = BookingAction.SET_STATUS
    if action not in BookingAction.values:
        return JsonResponse({'error': f"Unknown action '{action}'."}, status=400)
    action = BookingAction(action)

    form = ACTION_FORMS[action](data=payload)
    if not form.is_valid():
        return _form_errors(form)

    result = ACTION_HANDLERS[action](booking, form.cleaned_data)
    if isinstance(result, list):
        booking.refresh_from_db()
        return JsonResponse({
            'booking': booking_json(booking),
            'bookings': [booking_json(child) for child in result],
        })
    return JsonResponse({'booking': booking_json(result)})


@csrf_exempt
@require_POST
@json_endpoint
def booking_submit_form(request, booking_id):
    form = SubmitFormForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    booking = engine.submit_form(
        booking_id, form.cleaned_data['form_data'], form.cleaned_data['form_response_id'],
    )
    return JsonResponse({'booking': booking_json(booking)})


@csrf_exempt
@require_POST
@json_endpoint
def recover_from_sheet(request):
    form = RecoverFromSheetForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    booking = recover_booking(
        data['booking_id'].strip(), data['row'],
        technician_id=data['technician_id'],
        form_response_id=data['form_response_id'],
    )
    return JsonResponse({
        'message': f"Recovered booking {booking.booking_id}.",
        'booking': booking_json(booking),
    }, status=201)


@csrf_exempt
@require_POST
@json_endpoint
def release_bookings(request):
    form = ReleaseBookingsForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    released = engine.release_stale_bookings(form.cleaned_data['booking_ids'], changed_by='admin')
    return JsonResponse({'released': released, 'count': len(released)})


# ── Slots ─────────────────────────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(['GET', 'POST'])
@json_endpoint
def slot_collection(request):
    if request.method == 'GET':
        form = SlotQueryForm(data=request.GET)
        if not form.is_valid():
            return _form_errors(form)
        day = form.cleaned_data['date']
        found = slots.find_by_date_and_tech(day, form.cleaned_data['technician_id'])
        return JsonResponse({
            'date': day.isoformat(),
            'blocked': blocks.is_blocked(day),
            'slots': [slot_json(slot) for slot in found],
        })

    form = SlotCreateForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    slot = slots.create_slot(
        data['date'], data['time'], data['technician_id'],
        status=data['status'] or SlotStatus.AVAILABLE,
        slot_type=data['slot_type'] or SlotType.REGULAR,
        notes=data['notes'],
        is_hidden=data['is_hidden'],
    )
    return JsonResponse({'slot': slot_json(slot)}, status=201)


@csrf_exempt
@require_http_methods(['GET', 'PATCH', 'DELETE'])
@json_endpoint
def slot_detail(request, slot_id):
    if request.method == 'GET':
        return JsonResponse({'slot': slot_json(slots.find_by_id(slot_id))})
    if request.method == 'DELETE':
        slots.delete_slot(slot_id)
        return JsonResponse({'deleted': str(slot_id)})

    form = SlotStatusForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    slot = slots.set_status(slot_id, form.cleaned_data['status'])
    return JsonResponse({'slot': slot_json(slot)})


# ── Blocked dates ─────────────────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(['GET', 'POST'])
@json_endpoint
def block_collection(request):
    if request.method == 'GET':
        return JsonResponse({'blocks': [block_json(b) for b in blocks.list_blocked_dates()]})

    form = BlockedDateForm(data=_json_body(request))
    if not form.is_valid():
        return _form_errors(form)
    data = form.cleaned_data
    block = blocks.create_blocked_date(
        data['start_date'], data['end_date'],
        reason=data['reason'],
        scope=data['scope'] or BlockScope.RANGE,
    )
    return JsonResponse({'block': block_json(block)}, status=201)


@csrf_exempt
@require_http_methods(['DELETE'])
@json_endpoint
def block_detail(request, block_id):
    blocks.delete_blocked_date(block_id)
    return JsonResponse({'deleted': str(block_id)})
