"""
config.py
Environment configuration (.env via python-dotenv) and logging setup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).with_name(".env"))

# Persistence
DB_FILE = Path(os.getenv("WIFINET_DB_FILE", str(Path(__file__).with_name("wifinet.db"))))
STORAGE_KEY = os.getenv("WIFINET_STORAGE_KEY", "wifinet_db_v1")
STORE_BACKEND = os.getenv("WIFINET_STORE_BACKEND", "local")  # 'local' or 'remote'
REMOTE_URL = os.getenv("WIFINET_REMOTE_URL", "")
REMOTE_TIMEOUT_SECONDS = float(os.getenv("WIFINET_REMOTE_TIMEOUT", "1.0"))
STORE_LATENCY_SECONDS = float(os.getenv("WIFINET_STORE_LATENCY", "0.3"))

# UI refresh
SYNC_INTERVAL_SECONDS = int(os.getenv("WIFINET_SYNC_INTERVAL", "30"))

# Billing
DUE_DAY = 10
LATE_PENALTY = int(os.getenv("WIFINET_LATE_PENALTY", "10000"))
DEFAULT_COLLECTOR_PASSWORD = "123456"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging() -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    )
