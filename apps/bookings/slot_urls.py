"""
Slot inventory and blocked date URLs (JSON).

  /slots/?date=&technician_id=     GET    one technician's slots on one date
  /slots/                          POST   create a slot
  /slots/<uuid>/                   GET / PATCH (status) / DELETE
  /slots/blocks/                   GET    list blocked date ranges
                                   POST   block a date range
  /slots/blocks/<uuid>/            DELETE unblock
"""
from django.urls import path
from . import views

app_name = 'slots'

urlpatterns = [
    path('',                      views.slot_collection,  name='collection'),
    path('blocks/',               views.block_collection, name='blocks'),
    path('blocks/<uuid:block_id>/', views.block_detail,   name='block_detail'),
    path('<uuid:slot_id>/',       views.slot_detail,      name='detail'),
]
