"""Configuration management for deadwood.

Loads environment variables and provides centralized config access.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

__version__ = "0.3.0"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset or unrecognized

    Returns:
        Parsed boolean
    """
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return default


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: Optional[str | Path] = None):
        """Initialize config by loading a .env file.

        Args:
            env_path: Explicit .env location. Defaults to .env in the
                      current working directory.
        """
        self.env_path = Path(env_path) if env_path else Path.cwd() / ".env"
        # Existing environment variables win over .env entries
        load_dotenv(self.env_path, override=False)

    @property
    def debug(self) -> bool:
        """Whether diagnostic output (pattern sets, glob options) is printed.

        Returns:
            True if DEADWOOD_DEBUG is set to a truthy value
        """
        return _env_flag("DEADWOOD_DEBUG", False)

    @property
    def performance(self) -> bool:
        """Whether timerified functions record their durations.

        Returns:
            True if DEADWOOD_PERFORMANCE is set to a truthy value
        """
        return _env_flag("DEADWOOD_PERFORMANCE", False)

    @property
    def gitignore(self) -> bool:
        """Whether ignore files are respected during file discovery.

        Returns:
            False only if DEADWOOD_GITIGNORE is set to a falsy value
        """
        return _env_flag("DEADWOOD_GITIGNORE", True)


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the singleton so the next get_config() reloads the environment."""
    global _config
    _config = None
