"""Configuration loading for the resource console."""

import os
import tomllib
from pathlib import Path

from resource_console.config.models import (
    ApiSettings,
    ConsoleConfig,
    FormSettings,
    OptionSettings,
    UploadSettings,
)


def load_console_config(
    config_path: Path | None = None,
    env_prefix: str = "",
) -> ConsoleConfig:
    """Load console configuration from a TOML file.

    Missing sections fall back to their defaults. Environment variables
    override the file: ``{env_prefix}CONSOLE_BASE_URL`` replaces
    ``api.base_url``.

    Args:
        config_path: Path to console.toml (default: ``console.toml`` in the
            current working directory)
        env_prefix: Prefix for environment variable lookups (e.g., ``"MED_"``)

    Returns:
        ConsoleConfig with all sections

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "console.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Console config not found: {config_path}\n"
            f"Create console.toml with an [api] section (base_url = ...)."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    config = ConsoleConfig(
        api=ApiSettings(**data.get("api", {})),
        uploads=UploadSettings(**data.get("uploads", {})),
        options=OptionSettings(**data.get("options", {})),
        forms=FormSettings(**data.get("forms", {})),
        catalog=data.get("catalog", {}).get("path"),
    )
    return apply_env_overrides(config, env_prefix)


def apply_env_overrides(config: ConsoleConfig, env_prefix: str = "") -> ConsoleConfig:
    """Return *config* with ``{env_prefix}CONSOLE_BASE_URL`` applied, if set."""
    base_url = os.environ.get(f"{env_prefix}CONSOLE_BASE_URL")
    if not base_url:
        return config
    api = config.api.model_copy(update={"base_url": base_url})
    return config.model_copy(update={"api": api})


def resolve_token(config: ConsoleConfig, env_prefix: str = "") -> str | None:
    """Read the bearer token from the environment.

    Priority:
    1. ``{env_prefix}CONSOLE_TOKEN``
    2. The variable named by ``api.token_env``

    Returns:
        The token, or ``None`` when neither variable is set
    """
    token = os.environ.get(f"{env_prefix}CONSOLE_TOKEN")
    if token:
        return token
    return os.environ.get(config.api.token_env) or None
