import os
from pathlib import Path

RESPONSE_TIME_LIMIT_SECONDS = int(os.getenv("RESPONSE_TIME_LIMIT_SECONDS", "1800"))
STATUS_TRANSITION_POLICY = os.getenv("STATUS_TRANSITION_POLICY", "strict").strip().lower()
AUDIT_DB_PATH = Path(os.getenv("AUDIT_DB_PATH", "emergency_audit.db"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
