"""
Booking persistence.

``BookingStore`` is what the allocator talks to. ``SqlBookingStore`` keeps
bookings in the ``demo_bookings`` table and closes the check-then-insert race
with the table's unique constraints: each booking claims a seat number (unique
per session, 1..capacity) and an ordinal (unique per user, 1..max bookings).
Two requests racing for the same seat cannot both commit; the loser re-runs
its checks against fresh rows and either claims another seat or is rejected
with the real reason.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Set

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from catalogue import Slot, SlotKey
from config import MAX_BOOKINGS_PER_USER, SLOT_CAPACITY
from eligibility import can_book, has_capacity_for_more
from errors import (
    MaxBookingsReachedError,
    PersistenceError,
    ProductAlreadyBookedError,
    SlotFullError,
)
from models import Booking


@dataclass(frozen=True)
class BookingRequest:
    user_id: str
    slot: Slot


class BookingStore(Protocol):
    async def bookings_for_user(self, user_id: str) -> List[Booking]: ...

    async def booking_counts_by_slot(self) -> Dict[SlotKey, int]: ...

    async def slot_occupancy(self, key: SlotKey) -> int: ...

    async def insert_booking(
        self,
        request: BookingRequest,
        *,
        capacity: int = SLOT_CAPACITY,
        max_bookings: int = MAX_BOOKINGS_PER_USER,
    ) -> Booking: ...


def lowest_free(taken: Iterable[int], limit: int) -> Optional[int]:
    """Smallest number in ``1..limit`` not in ``taken``."""
    taken = set(taken)
    for number in range(1, limit + 1):
        if number not in taken:
            return number
    return None


def check_and_build(
    request: BookingRequest,
    existing: List[Booking],
    taken_seats: Set[int],
    *,
    capacity: int,
    max_bookings: int,
) -> Booking:
    """
    Re-apply the booking rules to freshly read state and build the new row.

    Raises:
        MaxBookingsReachedError, ProductAlreadyBookedError, SlotFullError
    """
    slot = request.slot
    if not has_capacity_for_more(existing, max_bookings):
        raise MaxBookingsReachedError(details={"user_id": request.user_id})
    if not can_book(existing, slot.product_name):
        raise ProductAlreadyBookedError(
            details={"user_id": request.user_id, "product_name": slot.product_name}
        )

    seat = lowest_free(taken_seats, capacity)
    if seat is None:
        raise SlotFullError(details={"slot": slot.slot_id})
    # Cannot be None once has_capacity_for_more passed
    ordinal = lowest_free((b.booking_ordinal for b in existing), max_bookings)

    return Booking(
        user_id=request.user_id,
        product_name=slot.product_name,
        session_date=slot.session_date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        seat_number=seat,
        booking_ordinal=ordinal,
    )


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Booking store {operation} failed: {e}")
        raise PersistenceError(f"Booking store {operation} failed", details={"error": str(e)}) from e


def _slot_filter(key: SlotKey):
    return (
        (Booking.product_name == key.product_name)
        & (Booking.session_date == key.session_date)
        & (Booking.start_time == key.start_time)
    )


class SqlBookingStore:
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def bookings_for_user(self, user_id: str) -> List[Booking]:
        with _store_errors("read of user bookings"):
            async with self._session_factory() as session:
                return await self._user_bookings(session, user_id)

    async def booking_counts_by_slot(self) -> Dict[SlotKey, int]:
        statement = select(
            Booking.product_name, Booking.session_date, Booking.start_time, func.count()
        ).group_by(Booking.product_name, Booking.session_date, Booking.start_time)

        with _store_errors("read of session counts"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                rows = result.all()

        return {
            SlotKey(product_name, session_date, start_time): count
            for product_name, session_date, start_time, count in rows
        }

    async def slot_occupancy(self, key: SlotKey) -> int:
        statement = select(func.count()).select_from(Booking).where(_slot_filter(key))
        with _store_errors("read of session occupancy"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return result.scalar_one()

    async def insert_booking(
        self,
        request: BookingRequest,
        *,
        capacity: int = SLOT_CAPACITY,
        max_bookings: int = MAX_BOOKINGS_PER_USER,
    ) -> Booking:
        # Every lost race consumes a seat or an ordinal, so this bounds the loop
        attempts = capacity + max_bookings + 1

        for attempt in range(1, attempts + 1):
            with _store_errors("insert"):
                async with self._session_factory() as session:
                    existing = await self._user_bookings(session, request.user_id)
                    taken = await self._taken_seats(session, request.slot.key)
                    booking = check_and_build(
                        request, existing, taken, capacity=capacity, max_bookings=max_bookings
                    )
                    session.add(booking)
                    try:
                        await session.commit()
                    except IntegrityError as e:
                        await session.rollback()
                        logger.debug(
                            f"Seat race lost for {request.slot.slot_id} "
                            f"(user={request.user_id}, attempt={attempt}): {e.orig}"
                        )
                        continue
                    await session.refresh(booking)
                    return booking

        raise PersistenceError(
            "Could not claim a seat", details={"slot": request.slot.slot_id, "attempts": attempts}
        )

    async def _user_bookings(self, session: AsyncSession, user_id: str) -> List[Booking]:
        statement = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at, Booking.id)
        )
        result = await session.execute(statement)
        return list(result.scalars().all())

    async def _taken_seats(self, session: AsyncSession, key: SlotKey) -> Set[int]:
        statement = select(Booking.seat_number).where(_slot_filter(key))
        result = await session.execute(statement)
        return set(result.scalars().all())
