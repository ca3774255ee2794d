"""
config.py
Environment-driven settings and logging setup.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

DEFAULT_DB_FILE = Path(__file__).with_name("facturas.db")


@dataclass(frozen=True)
class Settings:
    db_path: Path
    log_level: str
    viewer_username: str
    viewer_password: str

    @classmethod
    def load_from_env(cls) -> "Settings":
        """Load settings from environment variables (and .env if present)."""
        return cls(
            db_path=Path(os.getenv("INVOICE_DB_PATH", str(DEFAULT_DB_FILE))),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            viewer_username=os.getenv("VIEWER_USERNAME", "valeria").strip().lower(),
            viewer_password=os.getenv("VIEWER_PASSWORD", ""),
        )


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )


settings = Settings.load_from_env()
