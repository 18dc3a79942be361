"""
Booking allocator.

A request moves Requested -> Validating -> Committed | Rejected. Validation
runs, in order and stopping at the first failure:

1. the session exists in the current catalogue (InvalidSlot)
2. the user holds fewer than the maximum bookings (MaxBookingsReached)
3. the user has no booking for that product yet (ProductAlreadyBooked)
4. the session has a free seat (SlotFull)

Checks 2-4 are repeated by the store inside the insert transaction, so a
request that passed on stale reads is still rejected with the right reason.
Store faults become a retryable PersistenceFailure; ``submit_booking`` never
raises.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, List, Optional, Set, Union

from loguru import logger

from capacity import CapacityTracker
from catalogue import Slot, SlotKey, event_today, find_slot, generate_slots
from config import MAX_BOOKINGS_PER_USER, SLOT_CAPACITY
from eligibility import booked_products, can_book, has_capacity_for_more, total_bookings
from errors import BookingRejectedError, PersistenceError, RejectionReason
from models import Booking
from store import BookingRequest, BookingStore

REJECTION_MESSAGES = {
    RejectionReason.INVALID_SLOT: "This session is not in the current schedule",
    RejectionReason.MAX_BOOKINGS_REACHED: (
        f"You can book a maximum of {MAX_BOOKINGS_PER_USER} product demos"
    ),
    RejectionReason.PRODUCT_ALREADY_BOOKED: "You have already booked this product demo",
    RejectionReason.SLOT_FULL: "This session is fully booked",
    RejectionReason.PERSISTENCE_FAILURE: "Booking failed. Please try again.",
}


class BookingState(str, Enum):
    REQUESTED = "requested"
    VALIDATING = "validating"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Committed:
    booking: Booking
    state: BookingState = BookingState.COMMITTED


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    message: str = ""
    state: BookingState = BookingState.REJECTED

    @property
    def retryable(self) -> bool:
        return self.reason.retryable


BookingResult = Union[Committed, Rejected]


@dataclass(frozen=True)
class SlotAvailability:
    slot: Slot
    occupancy: int
    remaining: int
    is_bookable: bool
    # First rule that makes the session unbookable for this user, if any
    unavailable_reason: Optional[RejectionReason] = None


@dataclass
class BookingSummary:
    user_id: str
    bookings: List[Booking]
    max_bookings: int
    booked_products: Set[str] = field(default_factory=set)

    @property
    def total(self) -> int:
        return len(self.bookings)

    @property
    def remaining(self) -> int:
        return max(0, self.max_bookings - self.total)


def _reject(reason: RejectionReason) -> Rejected:
    return Rejected(reason=reason, message=REJECTION_MESSAGES[reason])


class BookingAllocator:
    """Stateless: every decision is made from a fresh read of the store."""

    def __init__(
        self,
        store: BookingStore,
        clock: Callable[[], date] = event_today,
        capacity: int = SLOT_CAPACITY,
        max_bookings: int = MAX_BOOKINGS_PER_USER,
    ):
        self.store = store
        self.clock = clock
        self.max_bookings = max_bookings
        self.capacity = CapacityTracker(store, capacity)

    def catalogue(self) -> List[Slot]:
        return generate_slots(self.clock())

    async def list_available_slots(self, user_id: str) -> List[SlotAvailability]:
        """
        Current catalogue with occupancy and per-user bookability.

        Read-only. Raises PersistenceError if the store cannot be read.
        """
        existing = await self.store.bookings_for_user(user_id)
        counts = await self.capacity.snapshot()
        room_for_more = has_capacity_for_more(existing, self.max_bookings)

        listing = []
        for slot in self.catalogue():
            occupancy = counts.get(slot.key, 0)
            if not room_for_more:
                reason = RejectionReason.MAX_BOOKINGS_REACHED
            elif not can_book(existing, slot.product_name):
                reason = RejectionReason.PRODUCT_ALREADY_BOOKED
            elif self.capacity.is_full_at(occupancy):
                reason = RejectionReason.SLOT_FULL
            else:
                reason = None

            listing.append(
                SlotAvailability(
                    slot=slot,
                    occupancy=occupancy,
                    remaining=self.capacity.remaining_at(occupancy),
                    is_bookable=reason is None,
                    unavailable_reason=reason,
                )
            )
        return listing

    async def user_summary(self, user_id: str) -> BookingSummary:
        existing = await self.store.bookings_for_user(user_id)
        return BookingSummary(
            user_id=user_id,
            bookings=existing,
            max_bookings=self.max_bookings,
            booked_products=booked_products(existing),
        )

    async def submit_booking(
        self, user_id: str, slot_key: SlotKey, end_time: Optional[str] = None
    ) -> BookingResult:
        logger.debug(f"Booking {BookingState.REQUESTED.value}: user={user_id} slot={slot_key}")

        try:
            result = await self._validate_and_commit(user_id, slot_key, end_time)
        except PersistenceError as e:
            logger.error(f"Booking store fault for user={user_id} slot={slot_key}: {e.message}")
            result = _reject(RejectionReason.PERSISTENCE_FAILURE)

        if isinstance(result, Committed):
            booking = result.booking
            logger.info(
                f"Booking committed: id={booking.id} user={user_id} "
                f"{booking.product_name} {booking.session_date} {booking.start_time} "
                f"seat={booking.seat_number}"
            )
        else:
            logger.warning(
                f"Booking rejected: user={user_id} slot={slot_key} reason={result.reason.value}"
            )
        return result

    async def _validate_and_commit(
        self, user_id: str, slot_key: SlotKey, end_time: Optional[str]
    ) -> BookingResult:
        logger.debug(f"Booking {BookingState.VALIDATING.value}: user={user_id}")

        slot = find_slot(self.catalogue(), SlotKey(*slot_key))
        if slot is None or (end_time is not None and end_time != slot.end_time):
            return _reject(RejectionReason.INVALID_SLOT)

        existing = await self.store.bookings_for_user(user_id)
        if not has_capacity_for_more(existing, self.max_bookings):
            return _reject(RejectionReason.MAX_BOOKINGS_REACHED)
        if not can_book(existing, slot.product_name):
            return _reject(RejectionReason.PRODUCT_ALREADY_BOOKED)
        if await self.capacity.is_full(slot):
            return _reject(RejectionReason.SLOT_FULL)

        logger.debug(
            f"Pre-checks passed for user={user_id} ({total_bookings(existing)} held), "
            f"inserting {slot.slot_id}"
        )
        try:
            booking = await self.store.insert_booking(
                BookingRequest(user_id=user_id, slot=slot),
                capacity=self.capacity.capacity,
                max_bookings=self.max_bookings,
            )
        except BookingRejectedError as e:
            # Lost a race between the reads above and the insert
            logger.info(f"Commit-time re-check rejected user={user_id}: {e.reason.value}")
            return _reject(e.reason)

        return Committed(booking=booking)
