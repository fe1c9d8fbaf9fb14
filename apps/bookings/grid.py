"""
The canonical slot grid.

Slot times are not arbitrary clock values: they are tokens on a fixed,
ordered list (settings.SLOT_GRID). Adjacency between two slots means
adjacency in this list, so '10:30' directly follows '10:00' and '13:00'
directly follows '10:30' even though the clock gap differs.
"""
from datetime import datetime, time as time_type

from django.conf import settings


def parse_time_token(token) -> time_type:
    """'09:30' → time(9, 30). Accepts a time object unchanged."""
    if isinstance(token, time_type):
        return token.replace(second=0, microsecond=0)
    return datetime.strptime(str(token).strip(), '%H:%M').time()


def format_time_token(t: time_type) -> str:
    return t.strftime('%H:%M')


def format_time_12h(t: time_type) -> str:
    """Format as '3:00 PM' without a leading zero on the hour."""
    hour = t.hour % 12 or 12
    ampm = 'AM' if t.hour < 12 else 'PM'
    return f"{hour}:{t.strftime('%M')} {ampm}"


def get_grid() -> list:
    """Ordered list of grid times, read from settings on every call."""
    return [parse_time_token(token) for token in settings.SLOT_GRID]


def is_on_grid(t) -> bool:
    return parse_time_token(t) in get_grid()


def grid_index(t) -> int:
    """Position of t on the grid, or -1 when t is off-grid."""
    grid = get_grid()
    t = parse_time_token(t)
    return grid.index(t) if t in grid else -1


def next_slot_time(t):
    """The grid time right after t, or None at the end of the grid / off-grid."""
    grid = get_grid()
    t = parse_time_token(t)
    if t not in grid:
        return None
    index = grid.index(t)
    if index == len(grid) - 1:
        return None
    return grid[index + 1]


def times_between(start, end) -> list:
    """Grid times strictly between start and end (both on-grid, start before end)."""
    grid = get_grid()
    return grid[grid.index(parse_time_token(start)) + 1:grid.index(parse_time_token(end))]
