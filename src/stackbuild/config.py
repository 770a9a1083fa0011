"""Centralized configuration for Stackbuild.

Settings are loaded from environment variables (``STACKBUILD_*``) with
defaults, and passed explicitly to the components that need them. Nothing
reads settings implicitly while a run is in progress.

Usage:
    from stackbuild.config import settings_provider

    settings = settings_provider.get()
    print(settings.docker_host)
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stackbuild.stack import Provider

logger = logging.getLogger(__name__)

# --- Constants ---

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"
DEFAULT_DAEMON_TIMEOUT = 600.0
DEFAULT_MAX_CONCURRENT_BUILDS = 4


# --- Path utilities ---


def get_stackbuild_dir() -> Path:
    """Get the user's stackbuild directory (~/.stackbuild)."""
    return Path.home() / ".stackbuild"


def get_default_staging_dir() -> Path:
    """Get the default staging directory (~/.stackbuild/staging)."""
    return get_stackbuild_dir() / "staging"


def _default_docker_host() -> str:
    return os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST


class StackbuildSettings(BaseSettings):
    """Top-level settings loaded from environment variables.

    Attributes:
        docker_host: Address of the build daemon. ``unix://`` paths and
            ``tcp://``/``http://`` URLs are supported. Falls back to
            ``DOCKER_HOST`` when ``STACKBUILD_DOCKER_HOST`` is unset.
        daemon_timeout: Read timeout in seconds for daemon requests. Image
            builds stream for a long time, so this is generous.
        staging_dir: Where staged build contexts are written.
        max_concurrent_builds: Upper bound on image builds in flight at once.
            ``0`` means unbounded.
        ci: Non-interactive mode, renders plain progress lines.
        default_provider: Provider used when none is given on the CLI.
    """

    docker_host: str = Field(default_factory=_default_docker_host)
    daemon_timeout: float = DEFAULT_DAEMON_TIMEOUT
    staging_dir: Path = Field(default_factory=get_default_staging_dir)
    max_concurrent_builds: int = DEFAULT_MAX_CONCURRENT_BUILDS
    ci: bool = False
    default_provider: Provider = Provider.LOCAL

    model_config = SettingsConfigDict(
        env_prefix="STACKBUILD_",
        extra="ignore",
    )

    @field_validator("max_concurrent_builds")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_concurrent_builds must be >= 0")
        return value

    @property
    def build_concurrency(self) -> int | None:
        """The concurrency cap for build fan-out, None when unbounded."""
        return self.max_concurrent_builds or None


@lru_cache(maxsize=1)
def get_settings() -> StackbuildSettings:
    """Get the cached settings loaded from the environment.

    Use clear_settings_cache() to force a reload.
    """
    settings = StackbuildSettings()
    logger.debug(f"Loaded settings: {settings!r}")
    return settings


def clear_settings_cache() -> None:
    """Clear the cached settings, forcing reload on next get_settings()."""
    get_settings.cache_clear()


# --- Settings provider for dependency injection ---


class SettingsProvider:
    """Provider for StackbuildSettings that supports overriding.

    This allows tests and the CLI to override settings.
    """

    def __init__(self) -> None:
        self._override: StackbuildSettings | None = None

    def get(self) -> StackbuildSettings:
        """Get the current settings."""
        if self._override is not None:
            return self._override
        return get_settings()

    def set(self, settings: StackbuildSettings) -> None:
        """Override the settings."""
        self._override = settings

    def reset(self) -> None:
        """Reset to default settings loading."""
        self._override = None
        clear_settings_cache()


settings_provider = SettingsProvider()
