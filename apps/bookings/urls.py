"""
Booking URLs (JSON).

  /bookings/                       POST   intake booking creation
  /bookings/recover-from-sheet/    POST   rebuild a booking from a form spreadsheet row
  /bookings/release/               POST   cancel + release stale pending_form bookings
  /bookings/<booking_id>/          GET    booking record
                                   PATCH  {action, ...} or {status}
  /bookings/<booking_id>/form/     POST   intake form answers for a booking

<booking_id> is the human-readable id (GN-00042) or the UUID.
"""
from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    path('',                          views.booking_create,      name='create'),
    path('recover-from-sheet/',       views.recover_from_sheet,  name='recover_from_sheet'),
    path('release/',                  views.release_bookings,    name='release'),
    path('<str:booking_id>/',         views.booking_detail,      name='detail'),
    path('<str:booking_id>/form/',    views.booking_submit_form, name='submit_form'),
]
