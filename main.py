from fastapi import FastAPI, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date, datetime
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel
from fastapi.middleware.cors import CORSMiddleware

from allocator import BookingAllocator, Committed
from catalogue import SlotKey
from config import (
    CORS_ALLOW_ORIGINS,
    DEMO_PRODUCTS,
    DEMO_TIME_SLOTS,
    LOG_JSON,
    LOG_LEVEL,
    LUNCH_BREAK,
    MAX_BOOKINGS_PER_USER,
    SLOT_CAPACITY,
)
from database import async_session, get_session, init_db
from errors import PersistenceError, RejectionReason
from logger import setup_logging
from store import SqlBookingStore

setup_logging(LOG_LEVEL, LOG_JSON)

app = FastAPI(title="Event Kiosk Demo Booking")

# Business rejections map to 409, a stale/unknown session to 400
REJECTION_STATUS = {
    RejectionReason.INVALID_SLOT: status.HTTP_400_BAD_REQUEST,
    RejectionReason.MAX_BOOKINGS_REACHED: status.HTTP_409_CONFLICT,
    RejectionReason.PRODUCT_ALREADY_BOOKED: status.HTTP_409_CONFLICT,
    RejectionReason.SLOT_FULL: status.HTTP_409_CONFLICT,
    RejectionReason.PERSISTENCE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# Pydantic Schemas for Request/Response
class BookingCreate(BaseModel):
    product_name: str
    session_date: date
    start_time: str
    end_time: Optional[str] = None


class BookingOut(BaseModel):
    id: int
    user_id: str
    product_name: str
    session_date: date
    start_time: str
    end_time: str
    created_at: datetime


class SessionStatus(BaseModel):
    slot_id: str
    product_name: str
    session_date: date
    start_time: str
    end_time: str
    capacity: int
    booked: int
    available: int
    is_bookable: bool
    status: str  # "available", "full", "already_booked", "limit_reached"


class BookingSummaryOut(BaseModel):
    user_id: str
    total: int
    max_bookings: int
    remaining: int
    booked_products: List[str]
    bookings: List[BookingOut]


class TimeWindow(BaseModel):
    start: str
    end: str


class EventInfo(BaseModel):
    products: List[str]
    time_slots: List[TimeWindow]
    lunch_break: TimeWindow
    capacity: int
    max_bookings_per_user: int


SESSION_STATUS_LABELS = {
    None: "available",
    RejectionReason.SLOT_FULL: "full",
    RejectionReason.PRODUCT_ALREADY_BOOKED: "already_booked",
    RejectionReason.MAX_BOOKINGS_REACHED: "limit_reached",
}


def get_allocator() -> BookingAllocator:
    return BookingAllocator(SqlBookingStore(async_session))


def _booking_out(booking) -> BookingOut:
    return BookingOut(
        id=booking.id,
        user_id=booking.user_id,
        product_name=booking.product_name,
        session_date=booking.session_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        created_at=booking.created_at,
    )


def _store_unavailable(e: PersistenceError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "reason": RejectionReason.PERSISTENCE_FAILURE.value,
            "message": e.message,
            "retryable": True,
        },
    )


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("Demo booking service started")


# --- Endpoint 1: GET /health ---
@app.get("/health")
async def health(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"status": "ok"}


# --- Endpoint 2: GET /products ---
@app.get("/products", response_model=EventInfo)
async def get_event_info():
    return EventInfo(
        products=DEMO_PRODUCTS,
        time_slots=[TimeWindow(start=start, end=end) for start, end in DEMO_TIME_SLOTS],
        lunch_break=TimeWindow(start=LUNCH_BREAK[0], end=LUNCH_BREAK[1]),
        capacity=SLOT_CAPACITY,
        max_bookings_per_user=MAX_BOOKINGS_PER_USER,
    )


# --- Endpoint 3: GET /users/{user_id}/slots ---
@app.get("/users/{user_id}/slots", response_model=List[SessionStatus])
async def list_sessions(user_id: str, allocator: BookingAllocator = Depends(get_allocator)):
    try:
        listing = await allocator.list_available_slots(user_id)
    except PersistenceError as e:
        raise _store_unavailable(e)

    return [
        SessionStatus(
            slot_id=entry.slot.slot_id,
            product_name=entry.slot.product_name,
            session_date=entry.slot.session_date,
            start_time=entry.slot.start_time,
            end_time=entry.slot.end_time,
            capacity=entry.slot.capacity,
            booked=entry.occupancy,
            available=entry.remaining,
            is_bookable=entry.is_bookable,
            status=SESSION_STATUS_LABELS[entry.unavailable_reason],
        )
        for entry in listing
    ]


# --- Endpoint 4: GET /users/{user_id}/bookings ---
@app.get("/users/{user_id}/bookings", response_model=BookingSummaryOut)
async def get_user_bookings(user_id: str, allocator: BookingAllocator = Depends(get_allocator)):
    try:
        summary = await allocator.user_summary(user_id)
    except PersistenceError as e:
        raise _store_unavailable(e)

    return BookingSummaryOut(
        user_id=summary.user_id,
        total=summary.total,
        max_bookings=summary.max_bookings,
        remaining=summary.remaining,
        booked_products=sorted(summary.booked_products),
        bookings=[_booking_out(b) for b in summary.bookings],
    )


# --- Endpoint 5: POST /users/{user_id}/bookings ---
@app.post(
    "/users/{user_id}/bookings",
    response_model=BookingOut,
    status_code=status.HTTP_201_CREATED,
)
async def book_session(
    user_id: str,
    booking_data: BookingCreate,
    allocator: BookingAllocator = Depends(get_allocator),
):
    result = await allocator.submit_booking(
        user_id,
        SlotKey(booking_data.product_name, booking_data.session_date, booking_data.start_time),
        end_time=booking_data.end_time,
    )

    if isinstance(result, Committed):
        return _booking_out(result.booking)

    raise HTTPException(
        status_code=REJECTION_STATUS[result.reason],
        detail={
            "reason": result.reason.value,
            "message": result.message,
            "retryable": result.retryable,
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
