"""Configuration reader for claude-handoff.

Reads the claudeHandoff namespace of Claude Code's settings.json. The hooks
call this on every invocation, so reads are cheap and never raise: a missing
or malformed settings file just yields defaults.
"""
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Handle both module import and direct script execution
try:
    from claude_handoff.models import (
        DEFAULT_CLAUDE_COMMAND,
        DEFAULT_DEBUG_LEVEL,
        DEFAULT_HANDOFF_FILE,
        DEFAULT_MAX_PENDING_AGE_HOURS,
        DEFAULT_MODEL,
    )
except ImportError:
    from models import (
        DEFAULT_CLAUDE_COMMAND,
        DEFAULT_DEBUG_LEVEL,
        DEFAULT_HANDOFF_FILE,
        DEFAULT_MAX_PENDING_AGE_HOURS,
        DEFAULT_MODEL,
    )

SETTINGS_NAMESPACE = "claudeHandoff"


def get_settings_path() -> Path:
    """Get path to Claude Code settings.json.

    Returns:
        Path to settings.json, respecting CLAUDE_CODE_SETTINGS env var.
    """
    custom = os.environ.get("CLAUDE_CODE_SETTINGS")
    if custom:
        return Path(custom)
    return Path.home() / ".claude" / "settings.json"


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value by dot-notation key.

    Args:
        key: Dot-notation key like "claudeHandoff.model"
        default: Default value if key not found

    Returns:
        Setting value or default
    """
    settings_path = get_settings_path()

    if not settings_path.exists():
        return default

    try:
        with open(settings_path, encoding="utf-8") as f:
            data = json.load(f)
    except (ValueError, OSError):
        # ValueError covers both JSONDecodeError and UnicodeDecodeError
        return default

    parts = key.split(".")
    current = data
    for part in parts:
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]

    return current


def get_bool_setting(key: str, default: bool = False) -> bool:
    """Get a boolean setting.

    Args:
        key: Dot-notation key
        default: Default value if key not found

    Returns:
        Boolean value. Converts string "true", "1", "yes" to True.
    """
    value = get_setting(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    return bool(value)


def get_int_setting(key: str, default: int = 0) -> int:
    """Get an integer setting.

    Args:
        key: Dot-notation key
        default: Default value if key not found or invalid

    Returns:
        Integer value or default if conversion fails.
    """
    value = get_setting(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def get_str_setting(key: str, default: str = "") -> str:
    """Get a non-empty string setting, falling back to default otherwise."""
    value = get_setting(key, default)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


@dataclass
class HandoffSettings:
    """Resolved claudeHandoff settings used by the hooks."""
    enabled: bool = True
    model: str = DEFAULT_MODEL
    claude_command: str = DEFAULT_CLAUDE_COMMAND
    handoff_file: str = DEFAULT_HANDOFF_FILE
    max_pending_age_hours: int = DEFAULT_MAX_PENDING_AGE_HOURS
    debug_level: int = DEFAULT_DEBUG_LEVEL

    @classmethod
    def load(cls) -> "HandoffSettings":
        """Load settings, applying defaults for anything missing or invalid."""
        ns = SETTINGS_NAMESPACE
        return cls(
            enabled=get_bool_setting(f"{ns}.enabled", True),
            model=get_str_setting(f"{ns}.model", DEFAULT_MODEL),
            claude_command=get_str_setting(f"{ns}.claudeCommand", DEFAULT_CLAUDE_COMMAND),
            handoff_file=get_str_setting(f"{ns}.handoffFile", DEFAULT_HANDOFF_FILE),
            max_pending_age_hours=get_int_setting(
                f"{ns}.maxPendingAgeHours", DEFAULT_MAX_PENDING_AGE_HOURS
            ),
            debug_level=max(0, get_int_setting(f"{ns}.debugLevel", DEFAULT_DEBUG_LEVEL)),
        )
