"""
URL configuration for the nail studio scheduling system.
"""
from django.contrib import admin
from django.conf import settings
from django.urls import path, include

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path('bookings/', include('apps.bookings.urls', namespace='bookings')),
    path('slots/', include('apps.bookings.slot_urls', namespace='slots')),
]
