from django.contrib import admin
from .models import Technician


@admin.register(Technician)
class TechnicianAdmin(admin.ModelAdmin):
    list_display = ['name', 'role', 'service_availability', 'is_active']
    list_filter = ['role', 'service_availability', 'is_active']
    search_fields = ['name', 'phone']
    readonly_fields = ['id', 'created_at', 'updated_at']
