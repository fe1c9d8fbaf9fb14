"""
Customer model — the identity a booking resolves to once the intake form
has been submitted. Until then a booking carries no customer.

Lookup order when resolving a form submission:
  1. email (case-insensitive)
  2. normalised phone
  3. create a new record

Phone normalisation (Philippine mobile numbers):
  +63 917 123 4567  →  09171234567
  63-917-123-4567   →  09171234567
  9171234567        →  09171234567
  09171234567       →  09171234567  (already clean)
"""
import logging
import re
from django.db import models
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


def normalize_phone(raw: str) -> str:
    """
    Normalise a Philippine mobile number to the 11-digit 09XXXXXXXXX form.

    Raises ValueError if the result is not 11 digits.
    """
    digits = re.sub(r'\D', '', raw or '')

    if len(digits) == 12 and digits.startswith('63'):
        digits = '0' + digits[2:]              # strip country code
    elif len(digits) == 10 and digits.startswith('9'):
        digits = '0' + digits                  # missing trunk prefix

    if len(digits) != 11:
        raise ValueError(
            f"Cannot normalise phone number '{raw}' — "
            f"expected 11 digits after normalisation, got {len(digits)}."
        )
    return digits


def extract_customer_info(form_data: dict) -> dict:
    """
    Pull name/email/phone/social handle out of free-form intake answers.
    Form question titles vary between form revisions, so keys are matched
    by keyword rather than exact title.
    """
    info = {'name': '', 'first_name': '', 'last_name': '', 'email': '', 'phone': '', 'social_media_name': ''}
    for key, value in (form_data or {}).items():
        value = str(value or '').strip()
        if not value:
            continue
        lower = key.lower()
        if 'email' in lower and not info['email']:
            info['email'] = value.lower()
        elif ('phone' in lower or 'contact' in lower) and not info['phone']:
            info['phone'] = value
        elif ('facebook' in lower or 'instagram' in lower or 'fb name' in lower
              or 'social' in lower) and not info['social_media_name']:
            info['social_media_name'] = value
        elif 'first name' in lower and not info['first_name']:
            info['first_name'] = value
        elif ('last name' in lower or 'surname' in lower) and not info['last_name']:
            info['last_name'] = value
        elif 'name' in lower and not info['name']:
            info['name'] = value

    if not info['name']:
        info['name'] = ' '.join(p for p in (info['first_name'], info['last_name']) if p)
    return info


class Customer(BaseModel):
    name = models.CharField(max_length=160)
    first_name = models.CharField(max_length=80, blank=True)
    last_name = models.CharField(max_length=80, blank=True)
    email = models.EmailField(blank=True, db_index=True)
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    social_media_name = models.CharField(max_length=160, blank=True)
    # None = unknown; decided from booking history on first resolution
    is_repeat_client = models.BooleanField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        verbose_name = 'Customer'
        verbose_name_plural = 'Customers'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.email or self.phone or 'no contact'})"

    @classmethod
    def find_or_create_from_form(cls, form_data: dict):
        """
        Canonical customer lookup for an intake form submission.
        Updates blank contact fields on an existing record, never overwrites
        a saved email.

        Returns (customer, created).
        """
        info = extract_customer_info(form_data)

        phone = ''
        if info['phone']:
            try:
                phone = normalize_phone(info['phone'])
            except ValueError:
                logger.warning('Unparseable phone number in form data: %r', info['phone'])

        customer = None
        if info['email']:
            customer = cls.objects.filter(email__iexact=info['email']).first()
        if customer is None and phone:
            customer = cls.objects.filter(phone=phone).first()

        if customer is None:
            customer = cls.objects.create(
                name=info['name'] or info['social_media_name'] or 'Unknown Customer',
                first_name=info['first_name'],
                last_name=info['last_name'],
                email=info['email'],
                phone=phone,
                social_media_name=info['social_media_name'],
            )
            return customer, True

        update_fields = []
        for field, value in (('email', info['email']), ('phone', phone),
                             ('social_media_name', info['social_media_name'])):
            if value and not getattr(customer, field):
                setattr(customer, field, value)
                update_fields.append(field)
        if update_fields:
            customer.save(update_fields=update_fields + ['updated_at'])
        return customer, False
