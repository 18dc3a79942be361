from typing import Optional
from datetime import date, datetime, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint

from catalogue import SlotKey
from config import MAX_BOOKINGS_PER_USER, SLOT_CAPACITY


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(SQLModel, table=True):
    __tablename__ = "demo_bookings"
    __table_args__ = (
        # Database-level protection: one demo per product per user
        UniqueConstraint("user_id", "product_name", name="unique_user_product"),
        # At most MAX_BOOKINGS_PER_USER rows per user, one per ordinal
        UniqueConstraint("user_id", "booking_ordinal", name="unique_user_ordinal"),
        CheckConstraint(
            f"booking_ordinal BETWEEN 1 AND {MAX_BOOKINGS_PER_USER}", name="check_booking_ordinal"
        ),
        # At most SLOT_CAPACITY rows per session, one per seat
        UniqueConstraint(
            "product_name", "session_date", "start_time", "seat_number", name="unique_session_seat"
        ),
        CheckConstraint(f"seat_number BETWEEN 1 AND {SLOT_CAPACITY}", name="check_seat_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    product_name: str = Field(index=True)
    session_date: date = Field(index=True)
    start_time: str  # "11:00", "12:00", "15:00", "16:00"
    end_time: str
    seat_number: int
    booking_ordinal: int
    created_at: datetime = Field(default_factory=_utcnow, sa_type=DateTime(timezone=True))

    @property
    def slot_key(self) -> SlotKey:
        return SlotKey(self.product_name, self.session_date, self.start_time)
