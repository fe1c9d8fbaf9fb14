"""
Payload forms for the JSON endpoints. Each form is bound to the decoded
request body; views only ever read cleaned_data.

PATCH /bookings/<id>/ carries an `action` tag. Every BookingAction has
exactly one form here (ACTION_FORMS) and one handler in views.py.
"""
from django import forms
from django.db import models

from .models import (
    BlockScope,
    BookingStatus,
    ClientType,
    PaymentMethod,
    PaymentStatus,
    ServiceLocation,
    ServiceType,
    SlotStatus,
    SlotType,
)


class BookingAction(models.TextChoices):
    CONFIRM             = 'confirm',             'Confirm'
    CANCEL              = 'cancel',              'Cancel'
    SAVE_INVOICE        = 'save_invoice',        'Save invoice'
    UPDATE_PAYMENT      = 'update_payment',      'Update payment'
    UPDATE_DEPOSIT      = 'update_deposit',      'Update deposit'
    RESCHEDULE          = 'reschedule',          'Reschedule'
    SPLIT_RESCHEDULE    = 'split_reschedule',    'Split reschedule'
    UPDATE_SERVICE_TYPE = 'update_service_type', 'Update service type'
    UPDATE_NAIL_TECH    = 'update_nail_tech',    'Update nail tech'
    SET_STATUS          = 'set_status',          'Set status'


def _clean_id_list(value, field_label):
    if value in (None, ''):
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) and item for item in value):
        raise forms.ValidationError(f"{field_label} must be a list of ids.")
    return value


def _amount_field(required=False):
    return forms.DecimalField(required=required, min_value=0, max_digits=10, decimal_places=2)


# ── Booking actions ───────────────────────────────────────────────────────────

class ConfirmForm(forms.Form):
    deposit_amount = _amount_field()
    payment_method = forms.ChoiceField(choices=PaymentMethod.choices, required=False)


class CancelForm(forms.Form):
    # Missing means release (None); only an explicit false retains the slots
    release_slot = forms.NullBooleanField(required=False)

    def clean_release_slot(self):
        value = self.cleaned_data.get('release_slot')
        return True if value is None else value


class SaveInvoiceForm(forms.Form):
    invoice = forms.JSONField()

    def clean_invoice(self):
        invoice = self.cleaned_data['invoice']
        if not isinstance(invoice, dict):
            raise forms.ValidationError('invoice must be an object with items and total.')
        return invoice


class UpdatePaymentForm(forms.Form):
    payment_status = forms.ChoiceField(choices=PaymentStatus.choices)
    paid_amount = _amount_field()
    tip_amount = _amount_field()
    method = forms.ChoiceField(choices=PaymentMethod.choices, required=False)


class UpdateDepositForm(forms.Form):
    deposit_amount = _amount_field(required=True)
    method = forms.ChoiceField(choices=PaymentMethod.choices, required=False)


class RescheduleForm(forms.Form):
    new_slot_id = forms.UUIDField()
    linked_slot_ids = forms.JSONField(required=False)

    def clean_linked_slot_ids(self):
        return _clean_id_list(self.cleaned_data.get('linked_slot_ids'), 'linked_slot_ids')


class SplitRescheduleForm(forms.Form):
    slot1_id = forms.UUIDField()
    slot2_id = forms.UUIDField()
    tech1_id = forms.UUIDField()
    tech2_id = forms.UUIDField()

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('slot1_id') and cleaned.get('slot1_id') == cleaned.get('slot2_id'):
            raise forms.ValidationError('slot1_id and slot2_id must be different slots.')
        return cleaned


class UpdateServiceTypeForm(forms.Form):
    service_type = forms.ChoiceField(choices=ServiceType.choices)


class UpdateNailTechForm(forms.Form):
    technician_id = forms.UUIDField()


class SetStatusForm(forms.Form):
    status = forms.ChoiceField(choices=BookingStatus.choices)


ACTION_FORMS = {
    BookingAction.CONFIRM: ConfirmForm,
    BookingAction.CANCEL: CancelForm,
    BookingAction.SAVE_INVOICE: SaveInvoiceForm,
    BookingAction.UPDATE_PAYMENT: UpdatePaymentForm,
    BookingAction.UPDATE_DEPOSIT: UpdateDepositForm,
    BookingAction.RESCHEDULE: RescheduleForm,
    BookingAction.SPLIT_RESCHEDULE: SplitRescheduleForm,
    BookingAction.UPDATE_SERVICE_TYPE: UpdateServiceTypeForm,
    BookingAction.UPDATE_NAIL_TECH: UpdateNailTechForm,
    BookingAction.SET_STATUS: SetStatusForm,
}


# ── Booking creation / intake ─────────────────────────────────────────────────

class CreateBookingForm(forms.Form):
    slot_id = forms.UUIDField()
    service_type = forms.ChoiceField(choices=ServiceType.choices)
    service_location = forms.ChoiceField(choices=ServiceLocation.choices, required=False)
    client_type = forms.ChoiceField(choices=ClientType.choices, required=False)
    linked_slot_ids = forms.JSONField(required=False)
    customer_data = forms.JSONField(required=False)

    def clean_linked_slot_ids(self):
        return _clean_id_list(self.cleaned_data.get('linked_slot_ids'), 'linked_slot_ids')

    def clean_customer_data(self):
        data = self.cleaned_data.get('customer_data') or {}
        if not isinstance(data, dict):
            raise forms.ValidationError('customer_data must be an object.')
        return data


class SubmitFormForm(forms.Form):
    form_data = forms.JSONField()
    form_response_id = forms.CharField(max_length=120, required=False)

    def clean_form_data(self):
        data = self.cleaned_data['form_data']
        if not isinstance(data, dict) or not data:
            raise forms.ValidationError('form_data must be a non-empty object.')
        return data


class RecoverFromSheetForm(forms.Form):
    booking_id = forms.CharField(max_length=32)
    row = forms.JSONField()
    technician_id = forms.UUIDField(required=False)
    form_response_id = forms.CharField(max_length=120, required=False)

    def clean_row(self):
        row = self.cleaned_data['row']
        if not isinstance(row, dict) or not row:
            raise forms.ValidationError('row must be an object of column title → value.')
        return row


class ReleaseBookingsForm(forms.Form):
    booking_ids = forms.JSONField(required=False)

    def clean_booking_ids(self):
        return _clean_id_list(self.cleaned_data.get('booking_ids'), 'booking_ids')


# ── Slots & blocked dates ─────────────────────────────────────────────────────

class SlotQueryForm(forms.Form):
    date = forms.DateField()
    technician_id = forms.UUIDField()


class SlotCreateForm(forms.Form):
    date = forms.DateField()
    time = forms.TimeField(input_formats=['%H:%M'])
    technician_id = forms.UUIDField()
    status = forms.ChoiceField(choices=SlotStatus.choices, required=False)
    slot_type = forms.ChoiceField(choices=SlotType.choices, required=False)
    notes = forms.CharField(required=False)
    is_hidden = forms.BooleanField(required=False)


class SlotStatusForm(forms.Form):
    status = forms.ChoiceField(choices=SlotStatus.choices)


class BlockedDateForm(forms.Form):
    start_date = forms.DateField()
    end_date = forms.DateField(required=False)
    reason = forms.CharField(max_length=255, required=False)
    scope = forms.ChoiceField(choices=BlockScope.choices, required=False)

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start_date'), cleaned.get('end_date')
        if start and end and end < start:
            self.add_error('end_date', 'end_date must be on or after start_date.')
        return cleaned
