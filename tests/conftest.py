"""Pytest configuration and common fixtures."""

import asyncio
import os
import sys
import tempfile
from datetime import date
from itertools import count
from pathlib import Path

# CRITICAL: Set environment variables BEFORE any project imports
# config.py fails fast at import time when DATABASE_URL is missing.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'kiosk_booking_test.db'}",
)
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from typing import Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from allocator import BookingAllocator
from catalogue import Slot, SlotKey
from config import MAX_BOOKINGS_PER_USER, SLOT_CAPACITY
from database import init_db
from errors import PersistenceError
from models import Booking
from store import BookingRequest, SqlBookingStore, check_and_build

EVENT_DAY = date(2026, 10, 18)
NEXT_DAY = date(2026, 10, 19)


class InMemoryBookingStore:
    """
    Booking store double.

    The commit-time re-check and insert run under one asyncio.Lock, the same
    guarantee the SQL store gets from its constraints. Every call yields to
    the event loop so concurrent requests interleave between reads and writes.
    """

    def __init__(self):
        self.rows: List[Booking] = []
        self.fail_reads = False
        self.fail_writes = False
        self.insert_calls = 0
        self._ids = count(1)
        self._lock = asyncio.Lock()

    async def bookings_for_user(self, user_id: str) -> List[Booking]:
        await asyncio.sleep(0)
        self._maybe_fail(self.fail_reads)
        return [b for b in self.rows if b.user_id == user_id]

    async def booking_counts_by_slot(self) -> Dict[SlotKey, int]:
        await asyncio.sleep(0)
        self._maybe_fail(self.fail_reads)
        counts: Dict[SlotKey, int] = {}
        for b in self.rows:
            counts[b.slot_key] = counts.get(b.slot_key, 0) + 1
        return counts

    async def slot_occupancy(self, key: SlotKey) -> int:
        await asyncio.sleep(0)
        self._maybe_fail(self.fail_reads)
        return sum(1 for b in self.rows if b.slot_key == key)

    async def insert_booking(
        self,
        request: BookingRequest,
        *,
        capacity: int = SLOT_CAPACITY,
        max_bookings: int = MAX_BOOKINGS_PER_USER,
    ) -> Booking:
        self.insert_calls += 1
        async with self._lock:
            await asyncio.sleep(0)
            self._maybe_fail(self.fail_writes)
            existing = [b for b in self.rows if b.user_id == request.user_id]
            taken = {b.seat_number for b in self.rows if b.slot_key == request.slot.key}
            booking = check_and_build(
                request, existing, taken, capacity=capacity, max_bookings=max_bookings
            )
            booking.id = next(self._ids)
            self.rows.append(booking)
            return booking

    def seed(self, slot: Slot, users) -> None:
        """Insert bookings directly, bypassing every rule."""
        for n, user_id in enumerate(users, start=1):
            booking = Booking(
                id=next(self._ids),
                user_id=user_id,
                product_name=slot.product_name,
                session_date=slot.session_date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                seat_number=n,
                booking_ordinal=1,
            )
            self.rows.append(booking)

    @staticmethod
    def _maybe_fail(flag: bool) -> None:
        if flag:
            raise PersistenceError("Simulated store outage")


@pytest.fixture
def event_day():
    return EVENT_DAY


@pytest.fixture
def memory_store():
    return InMemoryBookingStore()


@pytest.fixture
def allocator(memory_store):
    """Allocator over the in-memory store with the clock pinned to EVENT_DAY."""
    return BookingAllocator(memory_store, clock=lambda: EVENT_DAY)


@pytest_asyncio.fixture
async def sql_session_factory(tmp_path):
    """Fresh file-backed SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory):
    return SqlBookingStore(sql_session_factory)


@pytest.fixture
def sql_allocator(sql_store):
    return BookingAllocator(sql_store, clock=lambda: EVENT_DAY)
