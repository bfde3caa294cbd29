"""Filesystem locations used by Mic Guardian."""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

# Configuration
CONFIG_PATH = PROJECT_ROOT / "config.txt"

# Logging
LOGS_DIR = PROJECT_ROOT / "logs"
GUARDIAN_LOG_FILE = LOGS_DIR / "guardian.log"

# User-specific state (allows running from read-only project directories)
_USER_STATE_ENV = os.environ.get("MIC_GUARDIAN_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".mic_guardian")
USER_CONFIG_OVERRIDES_DIR = USER_STATE_DIR / "config_overrides"
DEFAULT_HISTORY_CSV = USER_STATE_DIR / "sessions.csv"


def ensure_directories() -> None:
    """Create necessary directories if they don't exist."""

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    USER_STATE_DIR.mkdir(parents=True, exist_ok=True)
    USER_CONFIG_OVERRIDES_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    'PACKAGE_ROOT',
    'PROJECT_ROOT',
    'CONFIG_PATH',
    'LOGS_DIR',
    'GUARDIAN_LOG_FILE',
    'USER_STATE_DIR',
    'USER_CONFIG_OVERRIDES_DIR',
    'DEFAULT_HISTORY_CSV',
    'ensure_directories',
]
