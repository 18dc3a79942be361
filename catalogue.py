"""
Demo session catalogue.

Sessions are never stored: the bookable set is rebuilt from the event
configuration every time it is asked for, as ``dates x products x time slots``
for today and tomorrow. When the calendar date moves on, the window moves with
it.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, NamedTuple, Optional

from config import (
    BOOKING_WINDOW_DAYS,
    DEMO_PRODUCTS,
    DEMO_TIME_SLOTS,
    EVENT_TIMEZONE,
    SLOT_CAPACITY,
)


class SlotKey(NamedTuple):
    product_name: str
    session_date: date
    start_time: str


@dataclass(frozen=True)
class Slot:
    product_name: str
    session_date: date
    start_time: str
    end_time: str
    capacity: int = SLOT_CAPACITY

    @property
    def key(self) -> SlotKey:
        return SlotKey(self.product_name, self.session_date, self.start_time)

    @property
    def slot_id(self) -> str:
        """Identifier used by the kiosk UI, e.g. ``SIEM-2026-10-18-11:00``."""
        return f"{self.product_name}-{self.session_date.isoformat()}-{self.start_time}"


def event_today() -> date:
    """Current calendar date in the event's timezone."""
    return datetime.now(EVENT_TIMEZONE).date()


def slot_window(today: date) -> List[date]:
    return [today + timedelta(days=offset) for offset in range(BOOKING_WINDOW_DAYS)]


def generate_slots(
    today: date,
    products: Iterable[str] = DEMO_PRODUCTS,
    time_slots: Iterable[tuple] = DEMO_TIME_SLOTS,
) -> List[Slot]:
    """
    Build the bookable catalogue for the window starting at ``today``.

    Args:
        today: First day of the window
        products: Demo product names
        time_slots: ``(start, end)`` pairs as ``"HH:MM"`` strings

    Returns:
        Slots ordered by date, then product, then start time
    """
    products = list(products)
    time_slots = list(time_slots)

    slots = []
    for session_date in slot_window(today):
        for product in products:
            for start, end in time_slots:
                slots.append(
                    Slot(
                        product_name=product,
                        session_date=session_date,
                        start_time=start,
                        end_time=end,
                    )
                )
    return slots


def find_slot(catalogue: Iterable[Slot], key: SlotKey) -> Optional[Slot]:
    for slot in catalogue:
        if slot.key == key:
            return slot
    return None
