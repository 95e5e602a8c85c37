"""Configuration models describing pilestore settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PileBaseModel(BaseModel):
    """Shared configuration for settings models."""

    model_config = ConfigDict(extra="forbid")


class LibrarySettings(PileBaseModel):
    """Location of the library on disk.

    Attributes:
        path: Root directory containing the ``racks``, ``folders``, and ``notes``
            subdirectories. ``None`` until a library has been chosen.
    """

    path: Optional[str] = None


class StorageSettings(PileBaseModel):
    """Entity file writing behavior.

    Attributes:
        async_writes: Whether saves are handed to a background writer thread.
        indent: JSON indentation for entity files; ``None`` writes compact JSON.
    """

    async_writes: bool = True
    indent: Optional[int] = None


class WatchSettings(PileBaseModel):
    """Filesystem watcher behavior.

    Attributes:
        use_polling: Use the polling observer instead of native OS notifications.
        polling_interval_seconds: Interval between polling snapshots.
        queue_size: Maximum number of undelivered events held between the observer
            and the reconciliation loop.
        stop_timeout_seconds: Time allowed for watcher threads to finish on stop.
    """

    use_polling: bool = False
    polling_interval_seconds: float = Field(default=1.0, gt=0)
    queue_size: int = Field(default=1024, ge=1)
    stop_timeout_seconds: float = Field(default=5.0, gt=0)


class LoggingSettings(PileBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; enables the rotating file handler.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class CLIOptions(PileBaseModel):
    """CLI presentation defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class PileConfig(PileBaseModel):
    """Top-level configuration struct for pilestore.

    Attributes:
        library: Library location.
        storage: Entity file writing settings.
        watch: Watcher settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    library: LibrarySettings = Field(default_factory=LibrarySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "PileBaseModel",
    "LibrarySettings",
    "StorageSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "PileConfig",
]
