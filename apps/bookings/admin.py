from django.contrib import admin
from .models import BlockedDate, Booking, BookingStatusLog, LinkedSlot, Slot


class BookingStatusLogInline(admin.TabularInline):
    model = BookingStatusLog
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    can_delete = False


class LinkedSlotInline(admin.TabularInline):
    model = LinkedSlot
    extra = 0
    readonly_fields = ['position', 'slot']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        'booking_id', 'customer', 'technician', 'service_type', 'service_location',
        'slot', 'status', 'payment_status', 'deposit_amount', 'paid_amount',
    ]
    list_filter = ['status', 'payment_status', 'service_type', 'service_location', 'technician']
    search_fields = ['booking_id', 'customer__name', 'customer__email', 'customer__phone', 'technician__name']
    # status and slots change only through the booking engine
    readonly_fields = ['id', 'booking_id', 'parent', 'slot', 'status', 'created_at', 'updated_at']
    raw_id_fields = ['customer']
    inlines = [LinkedSlotInline, BookingStatusLogInline]
    fieldsets = (
        ('Booking', {'fields': ('id', 'booking_id', 'parent', 'technician', 'customer', 'slot')}),
        ('Service', {'fields': ('service_type', 'service_location', 'client_type', 'status')}),
        ('Intake form', {'fields': ('customer_data', 'form_response_id'), 'classes': ('collapse',)}),
        ('Ledger', {'fields': (
            'invoice', 'payment_status',
            'deposit_amount', 'deposit_method', 'deposit_date',
            'paid_amount', 'paid_method', 'paid_date',
            'tip_amount', 'tip_date',
        )}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )


@admin.register(Slot)
class SlotAdmin(admin.ModelAdmin):
    list_display = ['date', 'time', 'technician', 'status', 'slot_type', 'is_hidden']
    list_filter = ['status', 'slot_type', 'technician', 'is_hidden']
    readonly_fields = ['id', 'created_at', 'updated_at']
    date_hierarchy = 'date'


@admin.register(BlockedDate)
class BlockedDateAdmin(admin.ModelAdmin):
    list_display = ['start_date', 'end_date', 'scope', 'reason']
    list_filter = ['scope']
    readonly_fields = ['id', 'created_at', 'updated_at']


@admin.register(BookingStatusLog)
class BookingStatusLogAdmin(admin.ModelAdmin):
    list_display = ['booking', 'from_status', 'to_status', 'changed_by', 'changed_at']
    readonly_fields = ['id', 'booking', 'from_status', 'to_status', 'changed_by', 'reason', 'changed_at']
    search_fields = ['booking__booking_id']
