import decimal
import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('technicians', '0001_initial'),
        ('customers', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BlockedDate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('start_date', models.DateField(db_index=True)),
                ('end_date', models.DateField(db_index=True)),
                ('reason', models.CharField(blank=True, max_length=255)),
                ('scope', models.CharField(choices=[('single', 'Single day'), ('range', 'Date range'), ('month', 'Whole month')], default='range', max_length=10)),
            ],
            options={
                'verbose_name': 'Blocked Date',
                'verbose_name_plural': 'Blocked Dates',
                'ordering': ['start_date'],
            },
        ),
        migrations.CreateModel(
            name='Slot',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('date', models.DateField(db_index=True)),
                ('time', models.TimeField()),
                ('status', models.CharField(choices=[('available', 'Available'), ('pending', 'Pending'), ('confirmed', 'Confirmed'), ('blocked', 'Blocked')], db_index=True, default='available', max_length=10)),
                ('slot_type', models.CharField(choices=[('regular', 'Regular'), ('with_squeeze_fee', 'With squeeze-in fee')], default='regular', max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('is_hidden', models.BooleanField(default=False)),
                ('technician', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='slots', to='technicians.technician')),
            ],
            options={
                'verbose_name': 'Slot',
                'verbose_name_plural': 'Slots',
                'ordering': ['date', 'time'],
            },
        ),
        migrations.AddIndex(
            model_name='slot',
            index=models.Index(fields=['technician', 'date'], name='ix_slot_technician_date'),
        ),
        migrations.AddConstraint(
            model_name='slot',
            constraint=models.UniqueConstraint(fields=('technician', 'date', 'time'), name='uq_slot_technician_date_time'),
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking_id', models.CharField(help_text='Human-readable id, e.g. GN-00042', max_length=32, unique=True)),
                ('service_type', models.CharField(choices=[('manicure', 'Manicure'), ('pedicure', 'Pedicure'), ('mani_pedi', 'Mani + Pedi'), ('home_service_2slots', 'Home Service (2 slots)'), ('home_service_3slots', 'Home Service (3 slots)')], default='manicure', max_length=24)),
                ('service_location', models.CharField(choices=[('homebased_studio', 'Homebased Studio'), ('home_service', 'Home Service')], default='homebased_studio', max_length=20)),
                ('client_type', models.CharField(blank=True, choices=[('new', 'New'), ('repeat', 'Repeat')], max_length=10)),
                ('status', models.CharField(choices=[('pending_form', 'Pending Form'), ('pending_payment', 'Pending Payment'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled')], db_index=True, default='pending_form', max_length=20)),
                ('customer_data', models.JSONField(blank=True, default=dict)),
                ('form_response_id', models.CharField(blank=True, max_length=120)),
                ('invoice', models.JSONField(blank=True, null=True)),
                ('payment_status', models.CharField(choices=[('unpaid', 'Unpaid'), ('partial', 'Partial'), ('paid', 'Paid'), ('refunded', 'Refunded')], default='unpaid', max_length=10)),
                ('deposit_amount', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('paid_amount', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('tip_amount', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=10, validators=[django.core.validators.MinValueValidator(0)])),
                ('deposit_method', models.CharField(blank=True, choices=[('PNB', 'PNB'), ('CASH', 'Cash'), ('GCASH', 'GCash')], max_length=5)),
                ('paid_method', models.CharField(blank=True, choices=[('PNB', 'PNB'), ('CASH', 'Cash'), ('GCASH', 'GCash')], max_length=5)),
                ('deposit_date', models.DateTimeField(blank=True, null=True)),
                ('paid_date', models.DateTimeField(blank=True, null=True)),
                ('tip_date', models.DateTimeField(blank=True, null=True)),
                ('customer', models.ForeignKey(blank=True, help_text='Empty until the intake form resolves the customer', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to='customers.customer')),
                ('parent', models.ForeignKey(blank=True, help_text='Original booking this one was split from', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='split_children', to='bookings.booking')),
                ('slot', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='primary_bookings', to='bookings.slot')),
                ('technician', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='technicians.technician')),
            ],
            options={
                'verbose_name': 'Booking',
                'verbose_name_plural': 'Bookings',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='LinkedSlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('position', models.PositiveSmallIntegerField()),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='linked_slot_entries', to='bookings.booking')),
                ('slot', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='linked_slot_entries', to='bookings.slot')),
            ],
            options={
                'ordering': ['booking', 'position'],
            },
        ),
        migrations.AddConstraint(
            model_name='linkedslot',
            constraint=models.UniqueConstraint(fields=('booking', 'position'), name='uq_linked_slot_position'),
        ),
        migrations.AddConstraint(
            model_name='linkedslot',
            constraint=models.UniqueConstraint(fields=('booking', 'slot'), name='uq_linked_slot_booking_slot'),
        ),
        migrations.AddField(
            model_name='booking',
            name='linked_slots',
            field=models.ManyToManyField(blank=True, related_name='linked_bookings', through='bookings.LinkedSlot', to='bookings.slot'),
        ),
        migrations.CreateModel(
            name='BookingStatusLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('from_status', models.CharField(blank=True, choices=[('pending_form', 'Pending Form'), ('pending_payment', 'Pending Payment'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled')], max_length=20)),
                ('to_status', models.CharField(choices=[('pending_form', 'Pending Form'), ('pending_payment', 'Pending Payment'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled')], max_length=20)),
                ('changed_by', models.CharField(help_text='system / admin / intake / cron', max_length=80)),
                ('reason', models.TextField(blank=True)),
                ('changed_at', models.DateTimeField(auto_now_add=True)),
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_logs', to='bookings.booking')),
            ],
            options={
                'verbose_name': 'Booking Status Log',
                'verbose_name_plural': 'Booking Status Logs',
                'ordering': ['changed_at'],
            },
        ),
    ]
