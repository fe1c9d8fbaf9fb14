"""
Recovery ingestion — rebuilds a booking that exists only as a row in the
intake form's response spreadsheet.

The row is a {column title: cell value} mapping. Column titles changed
between form revisions, so every field is looked up under several titles
and the values are free text:

  date      ISO (2026-01-13), 'Tuesday, January 13, 2026', 'January 13, 2026', '1/13/2026'
  time      '15:00', '3:00 PM', '3:00PM'
  service   anything mentioning mani + pedi, pedicure, or home service (2/3 slots)
  location  anything mentioning home service, else the home studio

The booking goes through the normal resolver path on the default
technician and starts as pending_payment, since the form was already filled.
"""
import logging
import re
from datetime import date as date_type, datetime, time as time_type

from django.db import transaction

from apps.customers.models import Customer
from apps.technicians.models import Technician

from .engine import book_plan
from .exceptions import ConflictError, NotFoundError, ValidationError
from .models import (
    Booking,
    BookingStatus,
    ServiceLocation,
    ServiceType,
    SlotStatus,
    required_slot_count,
)
from .resolver import resolve
from .slots import find_by_date_and_tech, get_technician, referencing_bookings

logger = logging.getLogger(__name__)

DATE_FIELDS = (
    'Appointment Date (Autofill)', 'Appointment Date', 'appointment date',
    'AppointmentDate', 'Date', 'date',
)
TIME_FIELDS = (
    'Appointment Time (AutoFill)', 'Appointment Time (Autofill)', 'Appointment Time',
    'Time', 'time', 'AppointmentTime',
)
SERVICE_FIELDS = ('Service Type', 'Service', 'service type', 'service')
LOCATION_FIELDS = ('Service Location', 'Location', 'service location', 'location')

# Spreadsheet bookkeeping columns, not customer answers
SYSTEM_COLUMNS = ('timestamp', 'booking id (autofill)', 'booking id', 'bookingid')

DATE_FORMATS = ('%A, %B %d, %Y', '%B %d, %Y', '%m/%d/%Y')
TIME_PATTERN = re.compile(r'(\d{1,2}):(\d{2})\s*(AM|PM)?', re.IGNORECASE)


def clean_form_row(row: dict) -> dict:
    """Drop system columns and untitled columns; strip every value."""
    cleaned = {}
    for key, value in (row or {}).items():
        title = str(key or '').strip()
        if not title or title.lower() in SYSTEM_COLUMNS:
            continue
        cleaned[title] = str(value if value is not None else '').strip()
    return cleaned


def _first_value(form_data: dict, titles) -> str:
    for title in titles:
        value = form_data.get(title)
        if value:
            return value
    return ''


def parse_appointment_date(value: str) -> date_type:
    value = (value or '').strip()
    try:
        return date_type.fromisoformat(value[:10])
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f"Could not parse date: {value}")


def parse_appointment_time(value: str) -> time_type:
    match = TIME_PATTERN.search(value or '')
    if not match:
        raise ValidationError(f"Could not parse time: {value}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    meridiem = (match.group(3) or '').upper()
    if meridiem == 'PM' and hours != 12:
        hours += 12
    elif meridiem == 'AM' and hours == 12:
        hours = 0
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Could not parse time: {value}")
    return time_type(hours, minutes)


def parse_service_type(value: str) -> str:
    text = (value or '').lower()
    if 'mani' in text and 'pedi' in text:
        return ServiceType.MANI_PEDI
    if 'pedicure' in text:
        return ServiceType.PEDICURE
    if 'home service' in text or 'home_service' in text:
        if '3' in text or 'three' in text:
            return ServiceType.HOME_SERVICE_3SLOTS
        return ServiceType.HOME_SERVICE_2SLOTS
    return ServiceType.MANICURE


def parse_service_location(value: str) -> str:
    text = (value or '').lower()
    if 'home service' in text or 'home_service' in text:
        return ServiceLocation.HOME_SERVICE
    return ServiceLocation.HOMEBASED_STUDIO


def _orphaned_pending_slot_ids(technician_id, day) -> list:
    """Pending slots no live booking holds: what the lost booking left behind."""
    return [
        slot.id
        for slot in find_by_date_and_tech(day, technician_id)
        if slot.status == SlotStatus.PENDING and not referencing_bookings(slot).exists()
    ]


@transaction.atomic
def recover_booking(booking_id: str, row: dict, technician_id=None,
                    form_response_id: str = '') -> Booking:
    """
    Recreate booking `booking_id` from a spreadsheet row.

    Raises:
      ConflictError   — booking_id already exists, or a needed slot is held by another booking
      ValidationError — date/time missing or unparseable, off-grid time, blocked date
      NotFoundError   — no technician to book onto
    """
    if Booking.objects.filter(booking_id=booking_id).exists():
        raise ConflictError(f"Booking {booking_id} already exists.")

    form_data = clean_form_row(row)
    date_value = _first_value(form_data, DATE_FIELDS)
    time_value = _first_value(form_data, TIME_FIELDS)
    if not date_value or not time_value:
        raise ValidationError(
            f"Missing date or time in form data. "
            f"Date: {date_value or 'NOT FOUND'}, Time: {time_value or 'NOT FOUND'}"
        )
    day = parse_appointment_date(date_value)
    slot_time = parse_appointment_time(time_value)
    service_type = parse_service_type(_first_value(form_data, SERVICE_FIELDS))
    service_location = parse_service_location(_first_value(form_data, LOCATION_FIELDS))

    if technician_id:
        technician = get_technician(technician_id)
    else:
        technician = Technician.get_default()
        if technician is None:
            raise NotFoundError('No active technician to recover the booking onto.')

    orphaned = _orphaned_pending_slot_ids(technician.id, day)
    plan = resolve(technician.id, day, slot_time, required_slot_count(service_type),
                   allowed_slot_ids=orphaned)

    customer, _ = Customer.find_or_create_from_form(form_data)
    booking = book_plan(
        plan, service_type, service_location, '', customer,
        customer_data=form_data,
        booking_id=booking_id,
        status=BookingStatus.PENDING_PAYMENT,
        changed_by='recovery',
        allowed_slot_ids=orphaned,
    )
    if form_response_id:
        booking.form_response_id = form_response_id
        booking.save(update_fields=['form_response_id', 'updated_at'])

    logger.info('Recovered booking %s: %s on %s at %s with %s',
                booking_id, service_type, day, slot_time.strftime('%H:%M'), technician)
    return booking
