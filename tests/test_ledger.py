"""Tests for ledger arithmetic."""
from decimal import Decimal

import pytest

from apps.bookings.exceptions import ValidationError
from apps.bookings.ledger import (
    balance,
    derive_payment_status,
    is_settled,
    normalize_invoice,
    to_amount,
)
from apps.bookings.models import PaymentStatus

INVOICE = {'items': [], 'total': '1000'}


class TestBalance:
    def test_balance_subtracts_deposit_and_payment(self):
        assert balance(INVOICE, 300, 200) == Decimal('500.00')

    @pytest.mark.parametrize('deposit, paid', [(0, 1200), (1000, 500), (5000, 0)])
    def test_balance_never_negative(self, deposit, paid):
        assert balance(INVOICE, deposit, paid) == Decimal('0')

    def test_no_invoice_means_zero_total(self):
        assert balance(None, 0, 0) == Decimal('0')


class TestSettlement:
    def test_settled_when_balance_zero_with_invoice(self):
        assert is_settled(INVOICE, 400, 600)

    def test_no_invoice_never_settled(self):
        assert not is_settled(None, 5000, 5000)

    def test_partial_payment_not_settled(self):
        assert not is_settled(INVOICE, 400, 0)


class TestDerivedStatus:
    def test_unpaid(self):
        assert derive_payment_status(None, 0, 0) == PaymentStatus.UNPAID

    def test_deposit_without_invoice_is_partial(self):
        assert derive_payment_status(None, 500, 0) == PaymentStatus.PARTIAL

    def test_settled_is_paid(self):
        assert derive_payment_status(INVOICE, 500, 500) == PaymentStatus.PAID

    def test_refund_is_kept(self):
        assert derive_payment_status(INVOICE, 500, 500, PaymentStatus.REFUNDED) == PaymentStatus.REFUNDED


class TestAmounts:
    def test_quantized_to_cents(self):
        assert str(to_amount('12.5')) == '12.50'

    def test_blank_is_zero(self):
        assert to_amount(None) == Decimal('0')

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            to_amount(-1)

    def test_non_number_rejected(self):
        with pytest.raises(ValidationError):
            to_amount('a lot')


class TestNormalizeInvoice:
    def test_total_computed_from_items(self):
        invoice = normalize_invoice({'items': [
            {'description': 'Gel manicure', 'unit_price': 650, 'quantity': 1},
            {'description': 'Nail art', 'unit_price': '50', 'quantity': 4},
        ]})
        assert invoice['total'] == '850.00'
        assert invoice['items'][1]['quantity'] == 4

    def test_explicit_total_wins(self):
        invoice = normalize_invoice({'items': [], 'total': 999, 'notes': 'promo'})
        assert invoice['total'] == '999.00'
        assert invoice['notes'] == 'promo'

    def test_rejects_non_object(self):
        with pytest.raises(ValidationError):
            normalize_invoice(['not', 'an', 'invoice'])

    def test_rejects_bad_quantity(self):
        with pytest.raises(ValidationError):
            normalize_invoice({'items': [{'unit_price': 10, 'quantity': 0}]})
