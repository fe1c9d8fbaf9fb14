"""
management command: create_slots

Fills the slot grid for one technician over a date range. Blocked dates
and grid positions that already hold a slot are skipped, so the command
can be re-run safely.

  python manage.py create_slots --technician <uuid> --start 2026-02-01 --end 2026-02-28
  python manage.py create_slots --start 2026-02-01 --times 10:00 13:00 15:00
"""
from datetime import date, timedelta

from django.core.management.base import BaseCommand, CommandError

from apps.bookings.blocks import is_blocked
from apps.bookings.exceptions import BookingEngineError, ConflictError
from apps.bookings.grid import format_time_token, get_grid, is_on_grid, parse_time_token
from apps.bookings.slots import create_slot, find_by_date_and_tech, get_technician
from apps.technicians.models import Technician


def _parse_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise CommandError(f"Invalid date '{value}', expected YYYY-MM-DD.")


class Command(BaseCommand):
    help = 'Create available slots on the grid for a technician over a date range'

    def add_arguments(self, parser):
        parser.add_argument('--technician', help='Technician id (default: the studio owner)')
        parser.add_argument('--start', required=True, help='First date, YYYY-MM-DD')
        parser.add_argument('--end', help='Last date, inclusive (default: same as --start)')
        parser.add_argument('--times', nargs='+', help='Subset of grid times, HH:MM (default: whole grid)')

    def handle(self, *args, **options):
        start = _parse_date(options['start'])
        end = _parse_date(options['end']) if options['end'] else start
        if end < start:
            raise CommandError('--end must be on or after --start.')

        if options['technician']:
            try:
                technician = get_technician(options['technician'])
            except BookingEngineError as exc:
                raise CommandError(str(exc))
        else:
            technician = Technician.get_default()
            if technician is None:
                raise CommandError('No active technician; create one first.')

        if options['times']:
            try:
                times = [parse_time_token(t) for t in options['times']]
            except ValueError as exc:
                raise CommandError(str(exc))
            off_grid = [format_time_token(t) for t in times if not is_on_grid(t)]
            if off_grid:
                raise CommandError(f"Not on the slot grid: {', '.join(off_grid)}")
        else:
            times = get_grid()

        created = skipped_days = 0
        day = start
        while day <= end:
            if is_blocked(day):
                skipped_days += 1
                self.stdout.write(f'  {day} blocked, skipped')
                day += timedelta(days=1)
                continue
            existing = {slot.time for slot in find_by_date_and_tech(day, technician.id)}
            for t in times:
                if t in existing:
                    continue
                try:
                    create_slot(day, t, technician.id)
                except ConflictError:
                    continue
                created += 1
            day += timedelta(days=1)

        self.stdout.write(
            self.style.SUCCESS(
                f'create_slots: {created} slot(s) created for {technician} '
                f'({start} → {end}, {skipped_days} blocked day(s) skipped)'
            )
        )
