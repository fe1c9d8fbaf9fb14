"""Tests for the create_slots and release_stale_bookings management commands."""
from datetime import date, timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from apps.bookings.blocks import create_blocked_date
from apps.bookings.models import Booking, BookingStatus, Slot

pytestmark = pytest.mark.django_db


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


class TestCreateSlots:
    def test_fills_whole_grid_for_default_technician(self, owner):
        output = run('create_slots', '--start', '2026-03-10', '--end', '2026-03-11')
        assert Slot.objects.filter(technician=owner).count() == 18
        assert 'create_slots: 18 slot(s) created' in output

    def test_rerun_creates_nothing(self, owner, make_slot):
        make_slot('09:00')
        run('create_slots', '--start', '2026-03-10')
        output = run('create_slots', '--start', '2026-03-10')
        assert Slot.objects.count() == 9
        assert 'create_slots: 0 slot(s) created' in output

    def test_skips_blocked_days(self, owner):
        create_blocked_date(date(2026, 3, 11))
        run('create_slots', '--start', '2026-03-10', '--end', '2026-03-12')
        assert not Slot.objects.filter(date=date(2026, 3, 11)).exists()
        assert Slot.objects.count() == 18

    def test_named_technician_and_times(self, owner, staff):
        run('create_slots', '--technician', str(staff.id), '--start', '2026-03-10',
            '--times', '10:00', '13:00')
        assert sorted(s.time_token for s in Slot.objects.filter(technician=staff)) == ['10:00', '13:00']
        assert not Slot.objects.filter(technician=owner).exists()

    def test_off_grid_time(self, owner):
        with pytest.raises(CommandError):
            run('create_slots', '--start', '2026-03-10', '--times', '11:15')

    def test_bad_range(self, owner):
        with pytest.raises(CommandError):
            run('create_slots', '--start', '2026-03-12', '--end', '2026-03-10')

    def test_no_technician(self):
        with pytest.raises(CommandError):
            run('create_slots', '--start', '2026-03-10')


class TestReleaseStaleBookings:
    def age(self, booking, hours):
        Booking.objects.filter(pk=booking.pk).update(created_at=timezone.now() - timedelta(hours=hours))

    def test_dry_run_changes_nothing(self, make_booking):
        stale = make_booking('09:00')
        self.age(stale, 3)
        output = run('release_stale_bookings', '--dry-run')
        assert f'would release {stale.booking_id}' in output
        stale.refresh_from_db()
        assert stale.status == BookingStatus.PENDING_FORM

    def test_releases_stale_bookings(self, make_booking):
        stale, fresh = make_booking('09:00'), make_booking('10:00')
        self.age(stale, 3)
        output = run('release_stale_bookings')
        assert 'released 1 booking(s) older than 2h' in output
        stale.refresh_from_db()
        fresh.refresh_from_db()
        assert stale.status == BookingStatus.CANCELLED
        assert fresh.status == BookingStatus.PENDING_FORM
        assert stale.status_logs.last().changed_by == 'system_cron'
