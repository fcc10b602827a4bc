import os

# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

HOST = os.getenv("WATCHSYNC_HOST", "0.0.0.0")
PORT = int(os.getenv("WATCHSYNC_PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SERVER_URL = os.getenv("WATCHSYNC_SERVER_URL", "http://localhost:3000")

# Position differences at or below this are left alone (seconds)
DRIFT_TOLERANCE = float(os.getenv("WATCHSYNC_DRIFT_TOLERANCE", "1.0"))
# Minimum spacing between forwarded progress ticks (seconds)
PROGRESS_INTERVAL = float(os.getenv("WATCHSYNC_PROGRESS_INTERVAL", "5.0"))
