"""Configuration for the trade journal.

Settings are read from ``~/.config/tradejournal/config.toml`` (or the path in
``TRADEJOURNAL_CONFIG``). A missing or unreadable file falls back to
defaults. Example::

    [journal]
    db_path = "~/.config/tradejournal/tradejournal.db"
    default_target_position_size = 25000

    [aggregates]
    chart_scan_limit = 200
    trade_scan_limit = 500
    workers = 1

    [logging]
    level = "INFO"
    file = "~/.config/tradejournal/tradejournal.log"
"""

import logging
import os
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "tradejournal"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "tradejournal.db"


class JournalConfig(BaseModel):
    """Resolved application settings."""

    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite database file")
    default_target_position_size: float = Field(
        default=25000.0, gt=0, description="Target size when a user has no preference"
    )
    chart_scan_limit: int = Field(default=200, gt=0, description="Charts read per tag rebuild")
    trade_scan_limit: int = Field(default=500, gt=0, description="Trades read per P/L sum")
    workers: int = Field(default=1, ge=1, description="Aggregate worker tasks")
    log_level: str = Field(default="INFO", description="Console log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")

    model_config = {"frozen": True}


def get_config_path() -> Path:
    """Path of the config file, honoring TRADEJOURNAL_CONFIG."""
    override = os.environ.get("TRADEJOURNAL_CONFIG")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def _from_dict(raw: dict) -> JournalConfig:
    journal = raw.get("journal", {})
    aggregates = raw.get("aggregates", {})
    log = raw.get("logging", {})

    values = {
        "db_path": journal.get("db_path"),
        "default_target_position_size": journal.get("default_target_position_size"),
        "chart_scan_limit": aggregates.get("chart_scan_limit"),
        "trade_scan_limit": aggregates.get("trade_scan_limit"),
        "workers": aggregates.get("workers"),
        "log_level": log.get("level"),
        "log_file": log.get("file"),
    }
    for key in ("db_path", "log_file"):
        if values[key]:
            values[key] = Path(values[key]).expanduser()

    return JournalConfig(**{k: v for k, v in values.items() if v is not None})


def load_config(config_path: Optional[Path] = None) -> JournalConfig:
    """Load configuration.

    Args:
        config_path: Explicit config file. Defaults to get_config_path().

    Returns:
        JournalConfig built from the file, or defaults if it is missing or
        invalid.
    """
    path = config_path or get_config_path()

    if not path.exists():
        return JournalConfig()

    try:
        return _from_dict(toml.load(path))
    except Exception as e:
        logger.warning("Ignoring invalid config %s: %s", path, e)
        return JournalConfig()
