"""
Configuration and Environment Setup
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

_FALSE_VALUES = {"0", "false", "off", "no"}


def _clean_env(value: str | None) -> str:
    """Clean environment variable values"""
    if not value:
        return ""
    return value.strip().strip('"').strip("'")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in _FALSE_VALUES


# Database
DATABASE_URL = _clean_env(os.getenv("DATABASE_URL"))
DB_POOL_MIN_CONNECTIONS = int(os.getenv("DB_POOL_MIN_CONNECTIONS", "1"))
DB_POOL_MAX_CONNECTIONS = int(os.getenv("DB_POOL_MAX_CONNECTIONS", "10"))
DB_SSLMODE = _clean_env(os.getenv("DB_SSLMODE")) or None

# GosPlan upstream API
GOSPLAN_BASE_URL = _clean_env(os.getenv("GOSPLAN_BASE_URL")) or "https://v2.gosplan.info/api/v2"
GOSPLAN_REQUEST_DELAY_MS = int(os.getenv("GOSPLAN_REQUEST_DELAY_MS", "1000"))
# Read for completeness; the client never retries on its own.
GOSPLAN_MAX_RETRIES = int(os.getenv("GOSPLAN_MAX_RETRIES", "3"))
GOSPLAN_TIMEOUT_SECONDS = float(os.getenv("GOSPLAN_TIMEOUT_SECONDS", "30"))
GOSPLAN_USER_AGENT = _clean_env(os.getenv("GOSPLAN_USER_AGENT")) or "TenderTracker/1.0"

# Background search loop
TENDER_SEARCH_INTERVAL_MINUTES = int(os.getenv("TENDER_SEARCH_INTERVAL_MINUTES", "30"))
TENDER_SEARCH_INITIAL_DELAY_SECONDS = float(os.getenv("TENDER_SEARCH_INITIAL_DELAY_SECONDS", "10"))
TENDER_SEARCH_QUERY_DELAY_SECONDS = float(os.getenv("TENDER_SEARCH_QUERY_DELAY_SECONDS", "1"))
TENDER_SEARCH_LIMIT = int(os.getenv("TENDER_SEARCH_LIMIT", "100"))

# Background retention loop
TENDER_CLEANUP_INTERVAL_HOURS = int(os.getenv("TENDER_CLEANUP_INTERVAL_HOURS", "24"))
TENDER_CLEANUP_INITIAL_DELAY_SECONDS = float(os.getenv("TENDER_CLEANUP_INITIAL_DELAY_SECONDS", "30"))
TENDER_RETENTION_GRACE_HOURS = int(os.getenv("TENDER_RETENTION_GRACE_HOURS", "24"))

# Set DISABLE_BACKGROUND_LOOPS=1 to serve the API without ingestion or cleanup
DISABLE_BACKGROUND_LOOPS = os.getenv("DISABLE_BACKGROUND_LOOPS", "0") == "1"

# Feature flags
ENABLE_TENDER_SEARCH = _env_flag("ENABLE_TENDER_SEARCH", "1")
ENABLE_RETENTION_SWEEP = _env_flag("ENABLE_RETENTION_SWEEP", "1")

# Logging
LOGS_DIR = _clean_env(os.getenv("LOGS_DIR"))
LOG_LEVEL = (_clean_env(os.getenv("LOG_LEVEL")) or "INFO").upper()

PORT = int(os.getenv("PORT", "8000"))
