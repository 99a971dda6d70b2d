import os
import logging
import re
from typing import Any
from dotenv import load_dotenv


class Settings:
    def __init__(self):
        load_dotenv(override=True)

        def get_opt(key: str, default: Any = None) -> Any:
            return os.getenv(key, default)

        def get_bool(key: str, default: bool) -> bool:
            val = get_opt(key)
            if val is None or val.strip() == "":
                return default
            return val.strip().lower() in ("1", "true", "yes", "on")

        # --- Server Settings ---
        self.HOST = get_opt("HOST", "0.0.0.0")
        self.PORT = int(get_opt("PORT", 8000))
        self.LOG_LEVEL = get_opt("LOG_LEVEL", "INFO").upper()
        self.CORS_ORIGINS = [o.strip() for o in get_opt("CORS_ORIGINS", "*").split(",") if o.strip()]

        # --- Firebase ---
        # Credentials are resolved lazily by the store so the app can start without them
        self.FIREBASE_CRED_PATH = get_opt("FIREBASE_CRED_PATH")
        self.FIREBASE_CRED_BASE64 = get_opt("FIREBASE_CRED_BASE64")
        self.FIREBASE_PROJECT_ID = get_opt("FIREBASE_PROJECT_ID")

        # --- Firestore Collections ---
        self.JOURNEYS_COLLECTION = get_opt("JOURNEYS_COLLECTION", "journeys")
        self.PHASES_COLLECTION = get_opt("PHASES_COLLECTION", "journeyPhases")
        self.ENTRIES_COLLECTION = get_opt("ENTRIES_COLLECTION", "journeyEntries")

        # --- Rate Limiting ---
        self.RATE_LIMIT_ENABLED = get_bool("RATE_LIMIT_ENABLED", True)
        self.RATE_LIMIT_DEFAULT = get_opt("RATE_LIMIT_DEFAULT", "100/minute")
        self.RATE_LIMIT_SAVE = get_opt("RATE_LIMIT_SAVE", "20/minute")

        # --- Limits ---
        self.BULK_MAX_IDS = int(get_opt("BULK_MAX_IDS", 200))

    def firebase_credentials_configured(self) -> bool:
        return bool(
            self.FIREBASE_CRED_PATH
            or self.FIREBASE_CRED_BASE64
            or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
        )


# Initialize Settings
try:
    settings = Settings()
except Exception as e:
    print(f"[ERROR] Configuration Load Failed: {e}")
    raise SystemExit(1)


# Configure Logging
class SanitizingFormatter(logging.Formatter):
    SENSITIVE_PATTERNS = [
        (re.compile(r'(Bearer\s+)[^\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(password["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(private_key["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
    ]

    def format(self, record):
        message = super().format(record)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


handler = logging.StreamHandler()
handler.setFormatter(SanitizingFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO), handlers=[handler])
logger = logging.getLogger("portfolio-journey")
