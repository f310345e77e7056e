"""
PageDetect Configuration

Central settings loaded from environment variables.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    # --- Versioning ---
    CORE_VERSION: str = "1.0.0"

    # --- Engine ---
    CONFIDENCE_METHOD: str = os.getenv("PAGEDETECT_CONFIDENCE_METHOD", "max")
    REGEX_TIMEOUT: float = float(os.getenv("PAGEDETECT_REGEX_TIMEOUT", "0.25"))

    # --- Rule catalog ---
    RULES_DIR: str = os.getenv("PAGEDETECT_RULES_DIR", "detectors")

    # --- Result cache ---
    CACHE_TTL_HOURS: int = int(os.getenv("PAGEDETECT_CACHE_TTL_HOURS", "12"))
    CACHE_STORAGE_KEY: str = os.getenv(
        "PAGEDETECT_CACHE_KEY", "pagedetect_detection_storage"
    )
    CACHE_DB_PATH: str = os.getenv("PAGEDETECT_CACHE_DB", "pagedetect_cache.db")

    # --- Duplicate request throttle ---
    THROTTLE_SECONDS: float = float(os.getenv("PAGEDETECT_THROTTLE_SECONDS", "2.0"))


settings = Settings()
