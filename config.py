"""
Application configuration

Values are read from environment variables. A `.env` file next to this
module is loaded first if present; real environment variables win.
"""
import os
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

DEFAULT_DATABASE_URL = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "car_rental"
DEFAULT_PORT = 8000
DEFAULT_LOG_LEVEL = "INFO"


class Settings:
    """Runtime settings for the API"""

    def __init__(self):
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        self.DATABASE_NAME = os.getenv("DATABASE_NAME", DEFAULT_DATABASE_NAME)
        self.JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_AUDIENCE = os.getenv("JWT_AUDIENCE") or None
        self.JWT_ISSUER = os.getenv("JWT_ISSUER") or None
        self.CORS_ORIGINS = self._get_cors_origins()
        self.LOG_LEVEL = self._get_log_level()
        self.PORT = self._get_port()

    def _get_cors_origins(self) -> List[str]:
        raw = os.getenv("CORS_ORIGINS", "*")
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        return origins or ["*"]

    def _get_log_level(self) -> str:
        level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            logger.error(f"Unknown LOG_LEVEL {level!r}; using {DEFAULT_LOG_LEVEL}")
            return DEFAULT_LOG_LEVEL
        return level

    def _get_port(self) -> int:
        value: Optional[str] = os.getenv("PORT")
        if not value:
            return DEFAULT_PORT
        try:
            return int(value)
        except ValueError:
            logger.error(f"PORT must be an integer, got {value!r}; using {DEFAULT_PORT}")
            return DEFAULT_PORT
