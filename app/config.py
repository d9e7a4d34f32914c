from decouple import config, Csv

# Database
DATABASE_URL = config("DATABASE_URL", default="sqlite:///./sl_lms.db")
PERSIST_COMMITS = config("PERSIST_COMMITS", default=True, cast=bool)

# Default time windows (admin can override at runtime)
LAWYER_APPROVAL_HOURS = config("LAWYER_APPROVAL_HOURS", default=24, cast=int)
CLIENT_PAYMENT_MINUTES = config("CLIENT_PAYMENT_MINUTES", default=10, cast=int)
CASE_PAYMENT_DAYS = config("CASE_PAYMENT_DAYS", default=7, cast=int)

# Urgency tiers, as a fraction of the remaining window
URGENCY_CRITICAL_THRESHOLD = config("URGENCY_CRITICAL_THRESHOLD", default=0.15, cast=float)
URGENCY_WARNING_THRESHOLD = config("URGENCY_WARNING_THRESHOLD", default=0.4, cast=float)

# Expiry sweep cadence, aligned with the one-second countdown tick
SWEEP_INTERVAL_SECONDS = config("SWEEP_INTERVAL_SECONDS", default=1.0, cast=float)

CURRENCY = config("CURRENCY", default="LKR")
NOTIFICATION_LIMIT = config("NOTIFICATION_LIMIT", default=50, cast=int)

LOG_LEVEL = config("LOG_LEVEL", default="INFO")
CORS_ORIGINS = config("CORS_ORIGINS", default="http://localhost:5173,http://localhost:8080", cast=Csv())
