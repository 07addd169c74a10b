# ledger/settings/dev.py
"""
PATH: ledger/settings/dev.py

LOCAL DEVELOPMENT SETTINGS
Safe + convenient defaults. Also used for test runs (SQLite).
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, env

DEBUG = True

# Quiet by default under test runners; raise with LOG_LEVEL=DEBUG when needed.
LOGGING["loggers"]["accounting"]["level"] = (
    env("LOG_LEVEL") or "WARNING"
).strip().upper()
