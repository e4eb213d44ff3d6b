import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./villasync.db")
# Connection pool for server databases; the scheduler and API handlers share it
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))

# Public base URL used when building calendar feed links
API_URL = os.getenv("API_URL", "http://localhost:9000")

# Credential vault key - padded/truncated to 32 bytes for AES-256
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")
if not ENCRYPTION_KEY:
    import warnings

    warnings.warn(
        "ENCRYPTION_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    ENCRYPTION_KEY = "villa-booking-platform-secret-key-32"  # noqa: S105 - Dev fallback only

# Signing secret for token-gated iCal subscription feeds
FEED_TOKEN_SECRET = os.getenv("FEED_TOKEN_SECRET", ENCRYPTION_KEY)
# Feed links are long-lived calendar subscriptions; 0 disables expiry
FEED_TOKEN_MAX_AGE_SECONDS = int(os.getenv("FEED_TOKEN_MAX_AGE_SECONDS", "0"))

# Sync cadences
DEFAULT_SYNC_FREQUENCY_HOURS = float(os.getenv("DEFAULT_SYNC_FREQUENCY_HOURS", "2"))
QUICK_SYNC_INTERVAL_MINUTES = int(os.getenv("QUICK_SYNC_INTERVAL_MINUTES", "15"))
QUICK_SYNC_MIN_AGE_MINUTES = int(os.getenv("QUICK_SYNC_MIN_AGE_MINUTES", "14"))
FULL_SYNC_INTERVAL_MINUTES = int(os.getenv("FULL_SYNC_INTERVAL_MINUTES", "120"))
CALENDAR_SYNC_INTERVAL_MINUTES = int(os.getenv("CALENDAR_SYNC_INTERVAL_MINUTES", "60"))
HEALTH_CHECK_INTERVAL_MINUTES = int(os.getenv("HEALTH_CHECK_INTERVAL_MINUTES", "5"))
# Integrations synced within this window are skipped by the health probe
HEALTH_CHECK_WINDOW_MINUTES = int(os.getenv("HEALTH_CHECK_WINDOW_MINUTES", "120"))
CLEANUP_INTERVAL_HOURS = int(os.getenv("CLEANUP_INTERVAL_HOURS", "24"))

# Courtesy delay between integrations inside one batch
QUICK_SYNC_DELAY_SECONDS = float(os.getenv("QUICK_SYNC_DELAY_SECONDS", "2"))
FULL_SYNC_DELAY_SECONDS = float(os.getenv("FULL_SYNC_DELAY_SECONDS", "5"))

# Retention and failure handling
SYNC_LOG_RETENTION_DAYS = int(os.getenv("SYNC_LOG_RETENTION_DAYS", "30"))
STALE_SYNC_MINUTES = int(os.getenv("STALE_SYNC_MINUTES", "30"))
MAX_CONSECUTIVE_FAILURES = int(os.getenv("MAX_CONSECUTIVE_FAILURES", "3"))
STALE_ERROR_INTEGRATION_DAYS = int(os.getenv("STALE_ERROR_INTEGRATION_DAYS", "7"))

# iCal fetch limits
ICAL_MAX_BYTES = int(os.getenv("ICAL_MAX_BYTES", str(10 * 1024 * 1024)))
ICAL_FETCH_TIMEOUT_SECONDS = float(os.getenv("ICAL_FETCH_TIMEOUT_SECONDS", "30"))
ICAL_VALIDATE_TIMEOUT_SECONDS = float(os.getenv("ICAL_VALIDATE_TIMEOUT_SECONDS", "10"))

# Run the in-process scheduler inside the API process
# Set to false when the arq worker owns the cadences
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"

# Redis for the arq worker
REDIS_URL = os.getenv("REDIS_URL")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "VillaSync <noreply@villasync.app>")
# Recipient of the full sync batch report
SYNC_REPORT_EMAIL = os.getenv("SYNC_REPORT_EMAIL")
FRONTEND_URL = os.getenv("FRONTEND_URL", "")
