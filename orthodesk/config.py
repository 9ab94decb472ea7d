import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Local SQLite file unless a server database is configured
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orthodesk.db")

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Redis (rate limiting)
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Rate limiting is ENABLED by default; set RATE_LIMIT_ENABLED=false for local development
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
# Availability checks fire on every keystroke of the booking form, so allow a generous budget
AVAILABILITY_RATE_LIMIT = int(os.getenv("AVAILABILITY_RATE_LIMIT", "120"))  # per minute

# Recurring series safety bounds when no end date / max count is supplied
RECURRENCE_DEFAULT_HORIZON_DAYS = int(os.getenv("RECURRENCE_DEFAULT_HORIZON_DAYS", "90"))
RECURRENCE_DEFAULT_MAX_OCCURRENCES = int(os.getenv("RECURRENCE_DEFAULT_MAX_OCCURRENCES", "52"))

# Wrapped instrument shelf life
STERILIZATION_EXPIRATION_DAYS = int(os.getenv("STERILIZATION_EXPIRATION_DAYS", "30"))

# Frontend origins allowed by CORS (comma separated)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
