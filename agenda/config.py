import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Reject bookings that fall outside the unit's resolved opening hours
ENFORCE_BUSINESS_HOURS = os.getenv("ENFORCE_BUSINESS_HOURS", "true").lower() == "true"

# Used when a unit never configured per-day hours nor its own default pair
DEFAULT_OPENING_TIME = os.getenv("DEFAULT_OPENING_TIME", "10:00")
DEFAULT_CLOSING_TIME = os.getenv("DEFAULT_CLOSING_TIME", "21:00")

# Cancellation policy defaults for units without a saved policy row
DEFAULT_GRACE_PERIOD_MINUTES = int(os.getenv("DEFAULT_GRACE_PERIOD_MINUTES", "60"))
DEFAULT_LATE_FEE_PERCENT = int(os.getenv("DEFAULT_LATE_FEE_PERCENT", "50"))
DEFAULT_NO_SHOW_FEE_PERCENT = int(os.getenv("DEFAULT_NO_SHOW_FEE_PERCENT", "100"))

# Frontend origins allowed to call the scheduling API
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000",
).split(",")
