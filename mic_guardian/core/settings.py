"""Configuration loading + normalization for the guardian."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import psutil

from .config_manager import ConfigManager, get_config_manager
from .paths import CONFIG_PATH, DEFAULT_HISTORY_CSV, GUARDIAN_LOG_FILE

LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warning", "error", "critical")

MIN_POLL_INTERVAL = 0.1
MIN_HEARTBEAT_INTERVAL = 0.5
MIN_SOURCE_POLL_INTERVAL = 0.1


def _own_client_id() -> str:
    """Name the audio server reports for this process (e.g. 'python3.11')."""
    try:
        return psutil.Process().name()
    except psutil.Error:
        return Path(sys.executable).name or "python"


@dataclass(slots=True)
class GuardianSettings:
    """Normalized configuration derived from the config file and CLI args."""

    poll_interval: float = 1.0
    heartbeat_interval: float = 5.0
    attribution_window: float = 10.0
    attribution_limit: int = 5
    history_capacity: int = 100
    max_attribution_entries: int = 10_000
    source_poll_interval: float = 0.5
    exclude_clients: tuple[str, ...] = field(default_factory=tuple)
    history_csv: Path | None = None
    api_enabled: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    log_level: str = "info"
    log_file: Path | None = GUARDIAN_LOG_FILE
    console_output: bool = True

    def __post_init__(self) -> None:
        self.poll_interval = max(MIN_POLL_INTERVAL, float(self.poll_interval))
        self.heartbeat_interval = max(MIN_HEARTBEAT_INTERVAL, float(self.heartbeat_interval))
        self.attribution_window = max(self.poll_interval, float(self.attribution_window))
        self.attribution_limit = max(1, int(self.attribution_limit))
        self.history_capacity = max(1, int(self.history_capacity))
        self.max_attribution_entries = max(1, int(self.max_attribution_entries))
        self.source_poll_interval = max(MIN_SOURCE_POLL_INTERVAL, float(self.source_poll_interval))
        self.api_port = min(max(0, int(self.api_port)), 65535)
        self.log_level = _normalize_log_level(self.log_level)

        own = _own_client_id()
        excluded = [client for client in self.exclude_clients if client]
        if own not in excluded:
            excluded.append(own)
        self.exclude_clients = tuple(dict.fromkeys(excluded))

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, str],
        manager: ConfigManager | None = None,
    ) -> "GuardianSettings":
        """Create settings from a parsed ``config.txt`` mapping."""

        cm = manager or get_config_manager()
        defaults = cls()
        config = dict(config)

        history_csv: Path | None = None
        if cm.get_bool(config, "history_csv_enabled", default=False):
            history_csv = Path(cm.get_str(config, "history_csv", default=str(DEFAULT_HISTORY_CSV))).expanduser()

        log_file = cm.get_str(config, "log_file", default="")

        return cls(
            poll_interval=cm.get_float(config, "poll_interval", defaults.poll_interval),
            heartbeat_interval=cm.get_float(config, "heartbeat_interval", defaults.heartbeat_interval),
            attribution_window=cm.get_float(config, "attribution_window", defaults.attribution_window),
            attribution_limit=cm.get_int(config, "attribution_limit", defaults.attribution_limit),
            history_capacity=cm.get_int(config, "history_capacity", defaults.history_capacity),
            max_attribution_entries=cm.get_int(
                config, "max_attribution_entries", defaults.max_attribution_entries
            ),
            source_poll_interval=cm.get_float(config, "source_poll_interval", defaults.source_poll_interval),
            exclude_clients=tuple(cm.get_list(config, "exclude_clients")),
            history_csv=history_csv,
            api_enabled=cm.get_bool(config, "api_enabled", defaults.api_enabled),
            api_host=cm.get_str(config, "api_host", defaults.api_host),
            api_port=cm.get_int(config, "api_port", defaults.api_port),
            log_level=cm.get_str(config, "log_level", defaults.log_level),
            log_file=Path(log_file).expanduser() if log_file else defaults.log_file,
            console_output=cm.get_bool(config, "console_output", defaults.console_output),
        )

    def with_args(self, args: Any) -> "GuardianSettings":
        """Overlay parsed CLI arguments; ``None`` means not given."""

        updates: dict[str, Any] = {}
        for key in (
            "poll_interval",
            "heartbeat_interval",
            "log_level",
            "log_file",
            "console_output",
            "api_host",
            "api_port",
            "history_csv",
        ):
            value = getattr(args, key, None)
            if value is not None:
                updates[key] = value
        if getattr(args, "no_api", False):
            updates["api_enabled"] = False
        return replace(self, **updates)


def load_settings(config_path: Path = CONFIG_PATH, manager: ConfigManager | None = None) -> GuardianSettings:
    cm = manager or get_config_manager()
    return GuardianSettings.from_config(cm.read_config(config_path), cm)


def build_arg_parser() -> argparse.ArgumentParser:
    """CLI parser; every option defaults to None so the config file wins."""

    parser = argparse.ArgumentParser(
        description="Mic Guardian - audit which applications use the microphone"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.environ.get("MIC_GUARDIAN_CONFIG", CONFIG_PATH)),
        help="Path to config.txt (default: project config.txt)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default from config: info)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Rotating log file path",
    )

    console_group = parser.add_mutually_exclusive_group()
    console_group.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=None,
        help="Also log to console",
    )
    console_group.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only",
    )

    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Attribution poll interval in seconds (default: 1.0)",
    )
    parser.add_argument(
        "--heartbeat-interval",
        type=float,
        default=None,
        help="Attribution heartbeat interval in seconds (default: 5.0)",
    )
    parser.add_argument(
        "--history-csv",
        type=Path,
        default=None,
        help="Append sealed sessions to this CSV file",
    )
    parser.add_argument("--api-host", type=str, default=None, help="REST API bind address")
    parser.add_argument("--api-port", type=int, default=None, help="REST API port")
    parser.add_argument("--no-api", action="store_true", help="Do not start the REST API")
    return parser


def _normalize_log_level(value: Any) -> str:
    text = str(value or "").strip().lower()
    if text in LOG_LEVELS:
        return text
    return "info"


__all__ = [
    "GuardianSettings",
    "build_arg_parser",
    "load_settings",
]
