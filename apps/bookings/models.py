"""
Bookings app models:
  - Slot             : One bookable grid position for one technician on one date
  - BlockedDate      : Inclusive date range where nothing may be booked
  - Booking          : Core booking record with state machine + embedded ledger
  - LinkedSlot       : Ordered extra slots of a multi-slot booking
  - BookingStatusLog : Full audit trail of state transitions
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from apps.core.models import BaseModel, UUIDModel, TimestampedModel
from apps.customers.models import Customer
from apps.technicians.models import Technician


# ── Slot ──────────────────────────────────────────────────────────────────────

class SlotStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    PENDING   = 'pending',   'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    BLOCKED   = 'blocked',   'Blocked'


class SlotType(models.TextChoices):
    REGULAR          = 'regular',          'Regular'
    WITH_SQUEEZE_FEE = 'with_squeeze_fee', 'With squeeze-in fee'


class Slot(BaseModel):
    """
    A slot is created explicitly by staff, or implicitly by the resolver
    when a booking needs an adjacent grid position that was never materialised.
    """
    technician = models.ForeignKey(Technician, on_delete=models.PROTECT, related_name='slots')
    date = models.DateField(db_index=True)
    time = models.TimeField()
    status = models.CharField(
        max_length=10, choices=SlotStatus.choices,
        default=SlotStatus.AVAILABLE, db_index=True,
    )
    slot_type = models.CharField(
        max_length=20, choices=SlotType.choices, default=SlotType.REGULAR,
    )
    notes = models.TextField(blank=True)
    is_hidden = models.BooleanField(default=False)

    class Meta:
        verbose_name = 'Slot'
        verbose_name_plural = 'Slots'
        ordering = ['date', 'time']
        indexes = [
            models.Index(fields=['technician', 'date'], name='ix_slot_technician_date'),
        ]
        # DB-level guard: one slot per technician+date+time
        constraints = [
            models.UniqueConstraint(
                fields=['technician', 'date', 'time'],
                name='uq_slot_technician_date_time',
            )
        ]

    def __str__(self):
        return f"{self.technician.name} · {self.date} {self.time_token} [{self.status}]"

    @property
    def time_token(self):
        return self.time.strftime('%H:%M')


# ── Blocked dates ─────────────────────────────────────────────────────────────

class BlockScope(models.TextChoices):
    SINGLE = 'single', 'Single day'
    RANGE  = 'range',  'Date range'
    MONTH  = 'month',  'Whole month'


class BlockedDate(UUIDModel, TimestampedModel):
    """Studio closure. Both ends inclusive."""
    start_date = models.DateField(db_index=True)
    end_date = models.DateField(db_index=True)
    reason = models.CharField(max_length=255, blank=True)
    scope = models.CharField(max_length=10, choices=BlockScope.choices, default=BlockScope.RANGE)

    class Meta:
        verbose_name = 'Blocked Date'
        verbose_name_plural = 'Blocked Dates'
        ordering = ['start_date']

    def __str__(self):
        if self.start_date == self.end_date:
            return f"Blocked {self.start_date}"
        return f"Blocked {self.start_date} → {self.end_date}"

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date


# ── Booking State Machine ─────────────────────────────────────────────────────

class BookingStatus(models.TextChoices):
    PENDING_FORM    = 'pending_form',    'Pending Form'
    PENDING_PAYMENT = 'pending_payment', 'Pending Payment'
    CONFIRMED       = 'confirmed',       'Confirmed'
    CANCELLED       = 'cancelled',       'Cancelled'


class PaymentStatus(models.TextChoices):
    UNPAID   = 'unpaid',   'Unpaid'
    PARTIAL  = 'partial',  'Partial'
    PAID     = 'paid',     'Paid'
    REFUNDED = 'refunded', 'Refunded'


class PaymentMethod(models.TextChoices):
    PNB   = 'PNB',   'PNB'
    CASH  = 'CASH',  'Cash'
    GCASH = 'GCASH', 'GCash'


class ServiceType(models.TextChoices):
    MANICURE            = 'manicure',            'Manicure'
    PEDICURE            = 'pedicure',            'Pedicure'
    MANI_PEDI           = 'mani_pedi',           'Mani + Pedi'
    HOME_SERVICE_2SLOTS = 'home_service_2slots', 'Home Service (2 slots)'
    HOME_SERVICE_3SLOTS = 'home_service_3slots', 'Home Service (3 slots)'


class ServiceLocation(models.TextChoices):
    HOMEBASED_STUDIO = 'homebased_studio', 'Homebased Studio'
    HOME_SERVICE     = 'home_service',     'Home Service'


class ClientType(models.TextChoices):
    NEW    = 'new',    'New'
    REPEAT = 'repeat', 'Repeat'


SERVICE_SLOT_COUNTS = {
    ServiceType.MANICURE: 1,
    ServiceType.PEDICURE: 1,
    ServiceType.MANI_PEDI: 2,
    ServiceType.HOME_SERVICE_2SLOTS: 2,
    ServiceType.HOME_SERVICE_3SLOTS: 3,
}


def required_slot_count(service_type) -> int:
    return SERVICE_SLOT_COUNTS.get(service_type, 1)


# Slot status a booking's slots carry while the booking is in a given state
MIRRORED_SLOT_STATUS = {
    BookingStatus.PENDING_FORM: SlotStatus.PENDING,
    BookingStatus.PENDING_PAYMENT: SlotStatus.PENDING,
    BookingStatus.CONFIRMED: SlotStatus.CONFIRMED,
}


class Booking(BaseModel):
    """
    Core booking record. Created when intake completes slot selection.
    Status transitions go through engine.py — not direct field writes.
    """
    booking_id = models.CharField(max_length=32, unique=True, help_text='Human-readable id, e.g. GN-00042')
    # Null only once the slot row is deleted after the booking was cancelled
    slot = models.ForeignKey(
        Slot, on_delete=models.SET_NULL, null=True, blank=True, related_name='primary_bookings',
    )
    linked_slots = models.ManyToManyField(
        Slot, through='LinkedSlot', related_name='linked_bookings', blank=True,
    )
    technician = models.ForeignKey(Technician, on_delete=models.PROTECT, related_name='bookings')
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings',
        help_text='Empty until the intake form resolves the customer',
    )
    parent = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='split_children',
        help_text='Original booking this one was split from',
    )

    service_type = models.CharField(
        max_length=24, choices=ServiceType.choices, default=ServiceType.MANICURE,
    )
    service_location = models.CharField(
        max_length=20, choices=ServiceLocation.choices, default=ServiceLocation.HOMEBASED_STUDIO,
    )
    client_type = models.CharField(max_length=10, choices=ClientType.choices, blank=True)
    status = models.CharField(
        max_length=20, choices=BookingStatus.choices,
        default=BookingStatus.PENDING_FORM, db_index=True,
    )

    # Intake form answers, kept verbatim
    customer_data = models.JSONField(default=dict, blank=True)
    form_response_id = models.CharField(max_length=120, blank=True)

    # ── Ledger ────────────────────────────────────────────────────────────────
    invoice = models.JSONField(null=True, blank=True)
    payment_status = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID,
    )
    deposit_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0'), validators=[MinValueValidator(0)],
    )
    paid_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0'), validators=[MinValueValidator(0)],
    )
    tip_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0'), validators=[MinValueValidator(0)],
    )
    deposit_method = models.CharField(max_length=5, choices=PaymentMethod.choices, blank=True)
    paid_method = models.CharField(max_length=5, choices=PaymentMethod.choices, blank=True)
    deposit_date = models.DateTimeField(null=True, blank=True)
    paid_date = models.DateTimeField(null=True, blank=True)
    tip_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'Booking'
        verbose_name_plural = 'Bookings'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.booking_id} | {self.get_service_type_display()} | {self.status}"

    @property
    def customer_ref(self):
        """Customer id, or the 'pending' sentinel until the intake form resolves it."""
        return str(self.customer_id) if self.customer_id else 'pending'

    @property
    def is_active(self):
        return self.status != BookingStatus.CANCELLED

    @property
    def linked_slot_ids(self):
        return [
            link.slot_id
            for link in self.linked_slot_entries.order_by('position')
        ]

    def get_slots(self):
        """Primary slot followed by linked slots, in booking order."""
        linked = [
            link.slot
            for link in self.linked_slot_entries.select_related('slot').order_by('position')
        ]
        primary = [self.slot] if self.slot_id else []
        return primary + linked

    def slot_ids(self):
        primary = [self.slot_id] if self.slot_id else []
        return primary + self.linked_slot_ids

    def set_linked_slots(self, slots):
        """Replace the ordered linked-slot list."""
        self.linked_slot_entries.all().delete()
        LinkedSlot.objects.bulk_create([
            LinkedSlot(booking=self, slot=slot, position=index)
            for index, slot in enumerate(slots, start=1)
        ])

    def _transition(self, new_status, changed_by, reason=''):
        old_status = self.status
        self.status = new_status
        BookingStatusLog.objects.create(
            booking=self,
            from_status=old_status,
            to_status=new_status,
            changed_by=changed_by,
            reason=reason,
        )


class LinkedSlot(models.Model):
    """Through row for Booking.linked_slots; position 1 is the slot right after the primary."""
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='linked_slot_entries')
    slot = models.ForeignKey(Slot, on_delete=models.CASCADE, related_name='linked_slot_entries')
    position = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ['booking', 'position']
        constraints = [
            models.UniqueConstraint(fields=['booking', 'position'], name='uq_linked_slot_position'),
            models.UniqueConstraint(fields=['booking', 'slot'], name='uq_linked_slot_booking_slot'),
        ]

    def __str__(self):
        return f"{self.booking.booking_id} #{self.position} → {self.slot_id}"


# ── Booking Audit Log ─────────────────────────────────────────────────────────

class BookingStatusLog(UUIDModel):
    """Immutable audit trail of every status transition on a booking."""
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='status_logs')
    from_status = models.CharField(max_length=20, choices=BookingStatus.choices, blank=True)
    to_status = models.CharField(max_length=20, choices=BookingStatus.choices)
    changed_by = models.CharField(max_length=80, help_text='system / admin / intake / cron')
    reason = models.TextField(blank=True)
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Booking Status Log'
        verbose_name_plural = 'Booking Status Logs'
        ordering = ['changed_at']

    def __str__(self):
        return f"Booking {self.booking.booking_id}: {self.from_status} → {self.to_status}"
