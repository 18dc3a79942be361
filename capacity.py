"""
Per-session occupancy.

Occupancy is always counted from committed bookings in the store, across all
users. Nothing here is cached: a number read for a page render is not trusted
at commit time, where the store re-checks under its own guard.
"""

from typing import Dict

from catalogue import Slot, SlotKey
from config import SLOT_CAPACITY
from store import BookingStore


class CapacityTracker:
    def __init__(self, store: BookingStore, capacity: int = SLOT_CAPACITY):
        self.store = store
        self.capacity = capacity

    async def occupancy(self, slot: Slot) -> int:
        return await self.store.slot_occupancy(slot.key)

    async def is_full(self, slot: Slot) -> bool:
        return self.is_full_at(await self.occupancy(slot))

    async def remaining(self, slot: Slot) -> int:
        return self.remaining_at(await self.occupancy(slot))

    async def snapshot(self) -> Dict[SlotKey, int]:
        """Occupancy of every session that has at least one booking, in one read."""
        return await self.store.booking_counts_by_slot()

    def is_full_at(self, occupancy: int) -> bool:
        return occupancy >= self.capacity

    def remaining_at(self, occupancy: int) -> int:
        return max(0, self.capacity - occupancy)
