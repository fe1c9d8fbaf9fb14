"""
Blocked date registry — studio closures.

Public API:
  is_blocked(date)
  assert_not_blocked(date)
  list_blocked_dates()
  create_blocked_date(start_date, end_date, reason='', scope='range')
  delete_blocked_date(block_id)

A blocked date always wins over slot availability: it is consulted before
any slot is created, reserved or confirmed.
"""
import logging
from datetime import date as date_type

from django.core.exceptions import ValidationError as DjangoValidationError

from .exceptions import NotFoundError, ValidationError
from .models import BlockedDate, BlockScope

logger = logging.getLogger(__name__)


def is_blocked(day: date_type) -> bool:
    """True iff day falls inside any stored [start_date, end_date] range."""
    return BlockedDate.objects.filter(start_date__lte=day, end_date__gte=day).exists()


def assert_not_blocked(day: date_type, message: str = '') -> None:
    if is_blocked(day):
        raise ValidationError(message or f"{day.isoformat()} falls inside a blocked date range.")


def list_blocked_dates():
    return list(BlockedDate.objects.order_by('start_date'))


def create_blocked_date(start_date: date_type, end_date: date_type = None,
                        reason: str = '', scope: str = BlockScope.RANGE) -> BlockedDate:
    end_date = end_date or start_date
    if end_date < start_date:
        raise ValidationError('end_date must be on or after start_date.')
    if scope not in BlockScope.values:
        raise ValidationError(f"Unknown block scope '{scope}'.")

    block = BlockedDate.objects.create(
        start_date=start_date,
        end_date=end_date,
        reason=reason,
        scope=scope,
    )
    logger.info('Blocked %s → %s (%s)', start_date, end_date, reason or 'no reason')
    return block


def delete_blocked_date(block_id) -> None:
    try:
        deleted, _ = BlockedDate.objects.filter(id=block_id).delete()
    except (DjangoValidationError, ValueError):
        deleted = 0
    if not deleted:
        raise NotFoundError(f"Blocked date {block_id} not found.")
