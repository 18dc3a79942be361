"""
Per-user booking rules.

All functions take the user's current bookings (read fresh by the caller) and
do no I/O of their own.
"""

from typing import Iterable, Set

from config import MAX_BOOKINGS_PER_USER
from models import Booking


def total_bookings(existing_bookings: Iterable[Booking]) -> int:
    return sum(1 for _ in existing_bookings)


def has_capacity_for_more(
    existing_bookings: Iterable[Booking], max_bookings: int = MAX_BOOKINGS_PER_USER
) -> bool:
    return total_bookings(existing_bookings) < max_bookings


def can_book(existing_bookings: Iterable[Booking], product_name: str) -> bool:
    """False if the user already holds a demo for ``product_name`` (any day)."""
    return not any(b.product_name == product_name for b in existing_bookings)


def booked_products(existing_bookings: Iterable[Booking]) -> Set[str]:
    return {b.product_name for b in existing_bookings}
