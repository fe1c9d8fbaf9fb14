"""
Payment ledger arithmetic. No storage of its own: the figures live on
Booking and are passed in.

  balance = max(0, invoice.total − deposit − paid)
  settled = invoice present and balance == 0

Without an invoice a booking is never settled, whatever has been paid.
"""
from decimal import Decimal, InvalidOperation

from .exceptions import ValidationError
from .models import PaymentStatus

ZERO = Decimal('0')
CENTS = Decimal('0.01')


def to_amount(value, field_name: str = 'amount') -> Decimal:
    """Coerce a JSON number/string to a non-negative Decimal rounded to cents."""
    if value is None or value == '':
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number.")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number.")
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative.")
    return amount.quantize(CENTS)


def invoice_total(invoice) -> Decimal:
    if not invoice:
        return ZERO
    return to_amount(invoice.get('total'), 'invoice total')


def balance(invoice, deposit_amount, paid_amount) -> Decimal:
    remaining = invoice_total(invoice) - to_amount(deposit_amount) - to_amount(paid_amount)
    return max(remaining, ZERO).quantize(CENTS)


def is_settled(invoice, deposit_amount, paid_amount) -> bool:
    if not invoice:
        return False
    return balance(invoice, deposit_amount, paid_amount) == ZERO


def derive_payment_status(invoice, deposit_amount, paid_amount, current: str = None) -> str:
    """
    Payment status implied by the ledger figures.
    A refund is a manual decision and is never overridden.
    """
    if current == PaymentStatus.REFUNDED:
        return PaymentStatus.REFUNDED
    if is_settled(invoice, deposit_amount, paid_amount):
        return PaymentStatus.PAID
    if to_amount(deposit_amount) + to_amount(paid_amount) > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def normalize_invoice(invoice) -> dict:
    """
    Validate a quotation payload:
      {"items": [{"description", "unit_price", "quantity"}, ...], "total"?, "notes"?}

    When total is omitted it is the sum of unit_price × quantity.
    Returns a JSON-safe dict (amounts as strings).
    """
    if not isinstance(invoice, dict):
        raise ValidationError('invoice must be an object.')
    items = invoice.get('items', [])
    if not isinstance(items, list):
        raise ValidationError('invoice.items must be a list.')

    cleaned_items = []
    computed = ZERO
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"invoice item {position} must be an object.")
        unit_price = to_amount(item.get('unit_price'), f"item {position} unit_price")
        try:
            quantity = int(item.get('quantity', 1))
        except (TypeError, ValueError):
            raise ValidationError(f"item {position} quantity must be a whole number.")
        if quantity < 1:
            raise ValidationError(f"item {position} quantity must be at least 1.")
        computed += unit_price * quantity
        cleaned_items.append({
            'description': str(item.get('description', '')).strip(),
            'unit_price': str(unit_price),
            'quantity': quantity,
        })

    total = to_amount(invoice['total'], 'invoice total') if invoice.get('total') is not None else computed
    cleaned = {
        'items': cleaned_items,
        'total': str(total),
        'notes': str(invoice.get('notes') or ''),
    }
    return cleaned
