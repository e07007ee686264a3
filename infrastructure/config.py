"""Application configuration read from environment variables (.env supported)"""
import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


APP_TITLE = os.getenv("APP_TITLE", "Hotel Reservation API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Reservation listing
DEFAULT_PAGE_SIZE = _int_env("DEFAULT_PAGE_SIZE", 10)
MAX_PAGE_SIZE = _int_env("MAX_PAGE_SIZE", 100)

# Reports
FREQUENT_GUESTS_LIMIT = _int_env("FREQUENT_GUESTS_LIMIT", 10)
DASHBOARD_TOP_GUESTS = _int_env("DASHBOARD_TOP_GUESTS", 5)
