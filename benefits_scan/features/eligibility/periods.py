"""
Month/year arithmetic for scan periods.
"""

from datetime import date


def shift_month(month: int, year: int, delta: int) -> tuple[int, int]:
    """Move a (month, year) pair by ``delta`` months (negative goes back)."""
    index = year * 12 + (month - 1) + delta
    return index % 12 + 1, index // 12


def previous_month(month: int, year: int) -> tuple[int, int]:
    return shift_month(month, year, -1)


def first_day(month: int, year: int) -> date:
    return date(year, month, 1)


def format_period(month: int, year: int) -> str:
    return f"{year}-{month:02d}"
