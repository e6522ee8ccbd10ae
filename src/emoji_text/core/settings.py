"""Settings management for EmojiText."""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path

from appdirs import user_config_dir

from .models import DEFAULT_PLACEHOLDER_ICON

logger = logging.getLogger(__name__)

APP_NAME = "emoji-text"
APP_AUTHOR = "emoji-text"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_config_dir() -> Path:
    """Get the configuration directory."""
    path = Path(user_config_dir(APP_NAME, APP_AUTHOR))
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class EmojiTextSettings:
    """Application-wide defaults for EmojiText widgets."""

    emoji_size: int = 0  # 0 = follow the font size
    baseline_offset: float | None = None  # None = derived from font metrics
    placeholder_icon: str = DEFAULT_PLACEHOLDER_ICON
    fetch_timeout: int = 10  # seconds
    max_concurrent_fetches: int = 10
    memory_cache_entries: int = 500
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: Path | None = None) -> "EmojiTextSettings":
        """Load settings from file."""
        if path is None:
            path = get_config_dir() / "settings.json"

        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return cls._from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring invalid settings file {path}: {e}")
            return cls()

    def save(self, path: Path | None = None) -> None:
        """Save settings to file."""
        if path is None:
            path = get_config_dir() / "settings.json"

        path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp file then rename to prevent corruption on crash
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix="settings_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(asdict(self), f, indent=2)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    @staticmethod
    def _validate_int(value, default: int, min_val: int = 0, max_val: int | None = None) -> int:
        """Clamp an integer setting, falling back to default for bad types."""
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        if value < min_val:
            return min_val
        if max_val is not None and value > max_val:
            return max_val
        return value

    @classmethod
    def _from_dict(cls, data: dict) -> "EmojiTextSettings":
        """Create settings from a dictionary with validation."""
        settings = cls()

        settings.emoji_size = cls._validate_int(data.get("emoji_size"), 0, min_val=0, max_val=512)
        offset = data.get("baseline_offset")
        if isinstance(offset, (int, float)) and not isinstance(offset, bool):
            settings.baseline_offset = float(offset)
        icon = data.get("placeholder_icon")
        if isinstance(icon, str) and icon:
            settings.placeholder_icon = icon
        settings.fetch_timeout = cls._validate_int(
            data.get("fetch_timeout"), 10, min_val=1, max_val=300
        )
        settings.max_concurrent_fetches = cls._validate_int(
            data.get("max_concurrent_fetches"), 10, min_val=1, max_val=64
        )
        settings.memory_cache_entries = cls._validate_int(
            data.get("memory_cache_entries"), 500, min_val=0, max_val=100_000
        )
        level = str(data.get("log_level", settings.log_level)).upper()
        settings.log_level = level if level in LOG_LEVELS else "INFO"

        return settings
