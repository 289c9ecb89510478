"""Runtime configuration settings for k2d.

This module uses Pydantic Settings for configuration that can be
overridden via environment variables. This provides:
- Type validation
- Environment variable support (K2D_ prefix)
- Default values
- Easy testing via dependency injection
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GitSettings(BaseSettings):
    """Git operation settings.

    Can be overridden via environment variables with K2D_GIT_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="K2D_GIT_")

    command_timeout_seconds: float = Field(
        default=30.0,
        description="Git command timeout in seconds",
    )


class LoggingSettings(BaseSettings):
    """Log file settings.

    Can be overridden via environment variables with K2D_LOG_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="K2D_LOG_")

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    max_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Rotate meta/k2d.log after this many bytes",
    )
    backup_count: int = Field(
        default=3,
        description="Number of rotated log files to keep",
    )


class CaptureSettings(BaseSettings):
    """Capture behavior settings.

    Can be overridden via environment variables with K2D_CAPTURE_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="K2D_CAPTURE_")

    snapshot_exclude_dirs: list[str] = Field(
        default_factory=lambda: [".git", "node_modules", "dist", ".next"],
        description="Directories (relative to the project root, or bare names) "
        "skipped when building content-hash snapshots",
    )
    import_history: bool = Field(
        default=True,
        description="Backfill historical transcripts when the store is empty",
    )


# Singleton instances for easy import
git_settings = GitSettings()
logging_settings = LoggingSettings()
capture_settings = CaptureSettings()
