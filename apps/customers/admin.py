from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'phone', 'social_media_name', 'is_repeat_client']
    list_filter = ['is_repeat_client']
    search_fields = ['name', 'email', 'phone', 'social_media_name']
    readonly_fields = ['id', 'created_at', 'updated_at']
