import logging
import os

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "omnilearn")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "20"))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@omnilearn.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
# Empty disables the ?access= admin route.
ADMIN_ACCESS_SECRET = os.getenv("ADMIN_ACCESS_SECRET", "secure-admin-panel-99")

DEFAULT_COURSE_ID = os.getenv("DEFAULT_COURSE_ID", "hacking-bundle-1")
# One of: course, home, catalog
DEFAULT_VIEW = os.getenv("DEFAULT_VIEW", "course")

CHECKOUT_GATEWAY_DELAY = float(os.getenv("CHECKOUT_GATEWAY_DELAY", "2.5"))
CHECKOUT_VERIFY_DELAY = float(os.getenv("CHECKOUT_VERIFY_DELAY", "1.5"))
EMI_MINIMUM_TOTAL = 5000

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000/")
SESSION_COOKIE = "omnilearn_session"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
