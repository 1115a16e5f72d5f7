"""Core configuration, state and engine for Sleepship."""

from sleepship.core.config import RunConfig, Settings, build_run_config, clear_settings_cache, get_settings
from sleepship.core.exceptions import SleepshipError

__all__ = [
    "RunConfig",
    "Settings",
    "SleepshipError",
    "build_run_config",
    "clear_settings_cache",
    "get_settings",
]
