"""Tests for the blocked date registry."""
from datetime import date

import pytest

from apps.bookings.blocks import (
    create_blocked_date,
    delete_blocked_date,
    is_blocked,
    list_blocked_dates,
)
from apps.bookings.exceptions import NotFoundError, ValidationError
from apps.bookings.models import BlockScope

pytestmark = pytest.mark.django_db


class TestIsBlocked:
    def test_range_is_inclusive(self):
        create_blocked_date(date(2026, 4, 1), date(2026, 4, 3))
        assert is_blocked(date(2026, 4, 1))
        assert is_blocked(date(2026, 4, 2))
        assert is_blocked(date(2026, 4, 3))
        assert not is_blocked(date(2026, 3, 31))
        assert not is_blocked(date(2026, 4, 4))

    def test_single_day_defaults_end_to_start(self):
        block = create_blocked_date(date(2026, 4, 9), scope=BlockScope.SINGLE)
        assert block.end_date == date(2026, 4, 9)
        assert is_blocked(date(2026, 4, 9))

    def test_nothing_blocked(self):
        assert not is_blocked(date(2026, 4, 1))


class TestManageBlocks:
    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            create_blocked_date(date(2026, 4, 3), date(2026, 4, 1))

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValidationError):
            create_blocked_date(date(2026, 4, 3), scope='week')

    def test_list_is_ordered(self):
        create_blocked_date(date(2026, 6, 1))
        create_blocked_date(date(2026, 5, 1))
        assert [b.start_date for b in list_blocked_dates()] == [date(2026, 5, 1), date(2026, 6, 1)]

    def test_delete_unblocks(self):
        block = create_blocked_date(date(2026, 4, 1))
        delete_blocked_date(block.id)
        assert not is_blocked(date(2026, 4, 1))

    def test_delete_unknown(self):
        with pytest.raises(NotFoundError):
            delete_blocked_date('6a1f8f4e-0000-4000-8000-000000000000')
