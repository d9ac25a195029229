# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Settings and easeconfig discovery for Ease.

Settings come from an optional YAML file ($EASE_HOME/config.yaml unless a
path is given), then environment overrides:
- EASE_HOME: base directory (default ~/.ease)
- EASE_LOG_FILE: log file path (default $EASE_HOME/ease.log)
- EASE_TIMEZONE: IANA timezone used by the scheduler clock

Jobs are configured in Python: an easeconfig.py file defining configure(ease).
"""

import importlib.util
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from ease.errors import ConfigError

CONFIG_FILENAME = "easeconfig.py"
SETTINGS_FILENAME = "config.yaml"
SETTINGS_KEYS = ("home", "log_file", "verbose", "timezone", "tick_seconds")


@dataclass
class EaseSettings:
    """Runtime settings.

    Attributes:
        home: Base directory for Ease files
        log_file: Append-only log file (defaults to home/ease.log)
        verbose: Show CONFIG log lines on the console
        timezone: IANA timezone for schedules; None means local time
        tick_seconds: Seconds between scheduler clock wake-ups
    """

    home: Path = Path("~/.ease")
    log_file: Optional[Path] = None
    verbose: bool = False
    timezone: Optional[str] = None
    tick_seconds: float = 1.0

    def __post_init__(self):
        self.home = Path(self.home).expanduser()
        if self.log_file is None:
            self.log_file = self.home / "ease.log"
        self.log_file = Path(self.log_file).expanduser()

    def clock(self) -> Callable[[], datetime]:
        """Return a function giving "now" in the configured timezone."""
        if not self.timezone:
            return datetime.now
        tz = ZoneInfo(self.timezone)
        return lambda: datetime.now(tz)


def _home_dir() -> Path:
    return Path(os.environ.get("EASE_HOME", "~/.ease")).expanduser()


def load_settings(path: Optional[str] = None) -> EaseSettings:
    """
    Load settings from YAML and the environment.

    Args:
        path: Explicit settings file. If omitted, $EASE_HOME/config.yaml is
            read when it exists.

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    settings_path = Path(path).expanduser() if path else _home_dir() / SETTINGS_FILENAME
    data: Dict[str, Any] = {}

    if path and not settings_path.exists():
        raise ConfigError(f"Settings file not found: {settings_path}")

    if settings_path.exists():
        try:
            data = yaml.safe_load(settings_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {settings_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file must contain a mapping: {settings_path}")
        unknown = sorted(set(data) - set(SETTINGS_KEYS))
        if unknown:
            raise ConfigError(f"Unknown settings in {settings_path}: {', '.join(unknown)}")

    # Environment wins over the file
    if "EASE_HOME" in os.environ:
        data["home"] = os.environ["EASE_HOME"]
    data.setdefault("home", str(_home_dir()))
    if "EASE_LOG_FILE" in os.environ:
        data["log_file"] = os.environ["EASE_LOG_FILE"]
    if "EASE_TIMEZONE" in os.environ:
        data["timezone"] = os.environ["EASE_TIMEZONE"]

    tick_seconds = data.get("tick_seconds", 1.0)
    if isinstance(tick_seconds, bool) or not isinstance(tick_seconds, (int, float)) or tick_seconds <= 0:
        raise ConfigError(f"tick_seconds must be a positive number, got: {tick_seconds!r}")

    timezone_name = data.get("timezone")
    if timezone_name:
        try:
            ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone: {timezone_name}") from e

    return EaseSettings(
        home=Path(data["home"]),
        log_file=Path(data["log_file"]) if data.get("log_file") else None,
        verbose=bool(data.get("verbose", False)),
        timezone=timezone_name or None,
        tick_seconds=float(tick_seconds),
    )


def find_config_file(start: Optional[str] = None) -> Path:
    """
    Locate easeconfig.py.

    A file path is returned as-is. Otherwise the search starts at `start`
    (default: the current directory) and walks up to the filesystem root.

    Raises:
        ConfigError: If nothing is found.
    """
    path = Path(start).expanduser().resolve() if start else Path.cwd().resolve()

    if start and not path.exists():
        raise ConfigError(f"Config path not found: {path}")
    if path.is_file():
        return path

    current = path
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            raise ConfigError(f"Could not locate {CONFIG_FILENAME} file!")
        current = current.parent


def load_configure(path: Path) -> Callable[..., Any]:
    """
    Import an easeconfig file and return its configure(ease) callback.

    Raises:
        ConfigError: If the file cannot be imported or defines no configure().
    """
    spec = importlib.util.spec_from_file_location("easeconfig", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import config file: {path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ConfigError(f"Failed to load {path}: {e}") from e

    configure = getattr(module, "configure", None)
    if not callable(configure):
        raise ConfigError(f'{path} must define a "configure(ease)" function')
    return configure
