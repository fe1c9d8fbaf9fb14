"""Shared fixtures: technicians, a slot factory and a booking factory."""
from datetime import date

import pytest

from apps.bookings import slots as slot_store
from apps.bookings.engine import create_booking
from apps.bookings.models import ServiceType, SlotStatus
from apps.technicians.models import Technician, TechnicianRole

# Test grid (settings/test.py):
#   08:00 09:00 09:30 10:00 10:30 13:00 15:00 15:30 19:00
DAY = date(2026, 3, 10)


@pytest.fixture
def owner(db):
    return Technician.objects.create(name='Ms. Jhen', role=TechnicianRole.OWNER)


@pytest.fixture
def staff(db):
    return Technician.objects.create(name='Ms. Aira', role=TechnicianRole.STAFF)


@pytest.fixture
def make_slot(owner):
    def _make(time_token, day=DAY, technician=None, status=SlotStatus.AVAILABLE):
        return slot_store.create_slot(day, time_token, (technician or owner).id, status=status)
    return _make


@pytest.fixture
def make_booking(make_slot):
    """Create a booking anchored on a fresh slot at time_token."""
    def _make(time_token='09:00', service_type=ServiceType.MANICURE, day=DAY, technician=None, **kwargs):
        anchor = make_slot(time_token, day=day, technician=technician)
        return create_booking(anchor.id, service_type, **kwargs)
    return _make


def slot_statuses(booking):
    booking.refresh_from_db()
    return [slot.status for slot in booking.get_slots()]


def slot_times(booking):
    booking.refresh_from_db()
    return [slot.time_token for slot in booking.get_slots()]
