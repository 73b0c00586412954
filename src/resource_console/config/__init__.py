"""Configuration management: TOML loading and config models.

Usage:
    >>> from resource_console.config import load_console_config, ConsoleConfig
"""

from resource_console.config.loader import (
    apply_env_overrides,
    load_console_config,
    resolve_token,
)
from resource_console.config.models import (
    ApiSettings,
    ConsoleConfig,
    FormSettings,
    OptionSettings,
    UploadSettings,
)

__all__ = [
    "load_console_config",
    "apply_env_overrides",
    "resolve_token",
    "ConsoleConfig",
    "ApiSettings",
    "UploadSettings",
    "OptionSettings",
    "FormSettings",
]
