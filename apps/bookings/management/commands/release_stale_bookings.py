"""
management command: release_stale_bookings

Cancels pending_form bookings whose intake form never arrived within
PENDING_FORM_RELEASE_HOURS and returns their slots to available.

Run via OS cron every 15 minutes:
  */15 * * * *  /path/to/venv/bin/python manage.py release_stale_bookings
"""
from django.conf import settings
from django.core.management.base import BaseCommand

from apps.bookings.engine import release_stale_bookings, stale_pending_form_bookings


class Command(BaseCommand):
    help = 'Cancel stale pending_form bookings and release their slots'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run', action='store_true',
            help='List the bookings that would be released without changing anything.',
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            stale = list(stale_pending_form_bookings().values_list('booking_id', flat=True))
            for booking_id in stale:
                self.stdout.write(f'  would release {booking_id}')
            self.stdout.write(
                self.style.WARNING(f'release_stale_bookings: {len(stale)} booking(s) eligible (dry run)')
            )
            return

        released = release_stale_bookings(changed_by='system_cron')
        self.stdout.write(
            self.style.SUCCESS(
                f'release_stale_bookings: released {len(released)} booking(s) older than '
                f'{settings.PENDING_FORM_RELEASE_HOURS}h'
            )
        )
