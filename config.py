import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# 1. Load environment variables from .env file
load_dotenv()

# 2. Database URL. If it's not found, raise an error to fail fast.
DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set. Please check your .env file.")

# 3. Runtime knobs
EVENT_TIMEZONE = ZoneInfo(os.environ.get("EVENT_TIMEZONE", "UTC"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.environ.get("LOG_JSON", "false").lower() in ("1", "true", "yes")
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]

# 4. Event configuration (Demo Sessions)
DEMO_PRODUCTS = [
    "Threat Intelligence",
    "XDR Expert",
    "SIEM",
    "Technology Alliance",
]

# 30 min sessions with a 30 min break, lunch 13:00-15:00 has no sessions
DEMO_TIME_SLOTS = [
    ("11:00", "11:30"),
    ("12:00", "12:30"),
    ("15:00", "15:30"),
    ("16:00", "16:30"),
]

LUNCH_BREAK = ("13:00", "15:00")

BOOKING_WINDOW_DAYS = 2  # today and tomorrow
SLOT_CAPACITY = 20
MAX_BOOKINGS_PER_USER = 3
