"""
Configuration for spec-archiver.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (spec-archiver.toml)
3. Default values (lowest priority)

Environment variables:
- SPEC_ARCHIVER_SPECS_DIR: Path to specs directory
- SPEC_ARCHIVER_ARCHIVE_LOCATION: Archive directory, relative to the workspace
- SPEC_ARCHIVER_ENABLED: Whether automatic archival is enabled (true/false)
- SPEC_ARCHIVER_DELAY_MINUTES: Minutes to wait after completion before archiving
- SPEC_ARCHIVER_NOTIFICATION_LEVEL: none, minimal or verbose
- SPEC_ARCHIVER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
- SPEC_ARCHIVER_CONFIG_FILE: Path to TOML config file

Example spec-archiver.toml:

    [workspace]
    specs_dir = ".kiro/specs"

    [archival]
    enabled = true
    delay_minutes = 10
    archive_location = ".kiro/specs/archive"
    notification_level = "minimal"

    [logging]
    level = "INFO"
    structured = true

The core archival classes take explicit paths and settings; the global
instance below only serves the CLI.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path, PurePath
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# Constants

DEFAULT_SPECS_DIR = ".kiro/specs"
DEFAULT_ARCHIVE_LOCATION = ".kiro/specs/archive"
DEFAULT_DELAY_MINUTES = 10
DEFAULT_MODIFICATION_GUARD_MINUTES = 5
MAX_DELAY_MINUTES = 1440

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class NotificationLevel(str, Enum):
    """How much a batch run reports per spec."""

    NONE = "none"
    MINIMAL = "minimal"
    VERBOSE = "verbose"


@dataclass
class ArchivalSettings:
    """Archival behaviour settings ([archival] section).

    Attributes:
        enabled: Whether automatic (batch) archival runs at all
        delay_minutes: Minutes since the last tasks.md edit before a
            complete spec is archived (0-1440)
        archive_location: Archive directory relative to the workspace root
        notification_level: Batch reporting verbosity
        modification_guard_minutes: Minimum tasks.md age enforced by the
            engine's safety check
    """

    enabled: bool = True
    delay_minutes: int = DEFAULT_DELAY_MINUTES
    archive_location: str = DEFAULT_ARCHIVE_LOCATION
    notification_level: NotificationLevel = NotificationLevel.MINIMAL
    modification_guard_minutes: int = DEFAULT_MODIFICATION_GUARD_MINUTES

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ArchivalSettings":
        """Create settings from TOML dict (typically [archival] section).

        Legacy keys (auto_archive, wait_minutes, verbose_mode, archive_path)
        are accepted; when both forms are present the new key wins. Invalid
        values fall back to defaults with a warning.

        Args:
            data: Dict from TOML parsing

        Returns:
            ArchivalSettings instance
        """
        settings = cls()

        if "auto_archive" in data:
            settings.enabled = _parse_bool(data["auto_archive"])
        if "enabled" in data:
            settings.enabled = _parse_bool(data["enabled"])

        if "wait_minutes" in data:
            settings.delay_minutes = _normalize_delay(data["wait_minutes"])
        if "delay_minutes" in data:
            settings.delay_minutes = _normalize_delay(data["delay_minutes"])

        if "archive_path" in data:
            settings.archive_location = _normalize_location(data["archive_path"])
        if "archive_location" in data:
            settings.archive_location = _normalize_location(data["archive_location"])

        if "verbose_mode" in data:
            settings.notification_level = (
                NotificationLevel.VERBOSE
                if _parse_bool(data["verbose_mode"])
                else NotificationLevel.MINIMAL
            )
        if "notification_level" in data:
            settings.notification_level = _normalize_notification_level(
                data["notification_level"]
            )

        if "modification_guard_minutes" in data:
            try:
                guard = int(data["modification_guard_minutes"])
            except (TypeError, ValueError):
                guard = -1
            if guard < 0:
                logger.warning(
                    "Invalid modification_guard_minutes '%s'. Falling back to %d.",
                    data["modification_guard_minutes"],
                    DEFAULT_MODIFICATION_GUARD_MINUTES,
                )
                guard = DEFAULT_MODIFICATION_GUARD_MINUTES
            settings.modification_guard_minutes = guard

        return settings

    @property
    def modification_guard(self) -> timedelta:
        return timedelta(minutes=self.modification_guard_minutes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "delay_minutes": self.delay_minutes,
            "archive_location": self.archive_location,
            "notification_level": self.notification_level.value,
            "modification_guard_minutes": self.modification_guard_minutes,
        }


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _normalize_delay(value: Any) -> int:
    try:
        delay = int(value)
    except (TypeError, ValueError):
        delay = -1
    if isinstance(value, bool) or not 0 <= delay <= MAX_DELAY_MINUTES:
        logger.warning(
            "Invalid delay '%s'. Falling back to %d. Valid range: 0-%d minutes",
            value,
            DEFAULT_DELAY_MINUTES,
            MAX_DELAY_MINUTES,
        )
        return DEFAULT_DELAY_MINUTES
    return delay


def _normalize_location(value: Any) -> str:
    problem = _location_problem(value)
    if problem:
        logger.warning(
            "Invalid archive location '%s' (%s). Falling back to '%s'.",
            value,
            problem,
            DEFAULT_ARCHIVE_LOCATION,
        )
        return DEFAULT_ARCHIVE_LOCATION
    return str(value).strip()


def _location_problem(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return "must be a non-empty string"
    path = PurePath(value.strip())
    if path.is_absolute():
        return "must be a relative path"
    if ".." in path.parts:
        return "must not contain '..'"
    return None


def _normalize_notification_level(value: Any) -> NotificationLevel:
    normalized = str(value).strip().lower()
    try:
        return NotificationLevel(normalized)
    except ValueError:
        logger.warning(
            "Invalid notification level '%s'. Falling back to 'minimal'. Valid options: %s",
            value,
            ", ".join(level.value for level in NotificationLevel),
        )
        return NotificationLevel.MINIMAL


@dataclass
class ArchiverConfig:
    """Configuration with support for env vars and TOML overrides."""

    # Workspace configuration
    specs_dir: Path = field(default_factory=lambda: Path(DEFAULT_SPECS_DIR))

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = True

    # Archival configuration
    archival: ArchivalSettings = field(default_factory=ArchivalSettings)

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ArchiverConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values
        """
        config = cls()

        # Load TOML config if available
        toml_path = config_file or os.environ.get("SPEC_ARCHIVER_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            # Try default locations
            for default_path in ["spec-archiver.toml", ".spec-archiver.toml"]:
                if Path(default_path).exists():
                    config._load_toml(Path(default_path))
                    break

        # Override with environment variables
        config._load_env()

        return config

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("Error loading config file %s: %s", path, e)
            return

        # Workspace settings
        if "workspace" in data:
            ws = data["workspace"]
            if "specs_dir" in ws:
                self.specs_dir = Path(ws["specs_dir"])

        # Archival settings
        if "archival" in data:
            self.archival = ArchivalSettings.from_toml_dict(data["archival"])

        # Logging settings
        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        # Specs directory
        if specs := os.environ.get("SPEC_ARCHIVER_SPECS_DIR"):
            self.specs_dir = Path(specs)

        # Archival settings
        if location := os.environ.get("SPEC_ARCHIVER_ARCHIVE_LOCATION"):
            self.archival.archive_location = _normalize_location(location)
        if enabled := os.environ.get("SPEC_ARCHIVER_ENABLED"):
            self.archival.enabled = _parse_bool(enabled)
        if delay := os.environ.get("SPEC_ARCHIVER_DELAY_MINUTES"):
            self.archival.delay_minutes = _normalize_delay(delay)
        if notification := os.environ.get("SPEC_ARCHIVER_NOTIFICATION_LEVEL"):
            self.archival.notification_level = _normalize_notification_level(notification)

        # Log level
        if level := os.environ.get("SPEC_ARCHIVER_LOG_LEVEL"):
            self.log_level = level.upper()

    def validate(self) -> List[str]:
        """
        Check the configuration for problems.

        Returns:
            List of problem descriptions (empty when valid)
        """
        problems: List[str] = []

        if not 0 <= self.archival.delay_minutes <= MAX_DELAY_MINUTES:
            problems.append(
                f"delay_minutes must be between 0 and {MAX_DELAY_MINUTES}, "
                f"got {self.archival.delay_minutes}"
            )
        problem = _location_problem(self.archival.archive_location)
        if problem:
            problems.append(f"archive_location {problem}")
        if not isinstance(self.archival.notification_level, NotificationLevel):
            problems.append(
                f"notification_level must be one of: "
                f"{', '.join(level.value for level in NotificationLevel)}"
            )
        if self.archival.modification_guard_minutes < 0:
            problems.append("modification_guard_minutes must not be negative")
        if self.log_level not in _VALID_LOG_LEVELS:
            problems.append(f"Invalid log level: {self.log_level}")

        return problems

    def get_archive_root(self, base: Optional[Path] = None) -> Path:
        """
        Resolve the archive directory.

        Args:
            base: Workspace root the archive location is relative to.
                  If not provided, the location is returned as is
                  (relative to the working directory).
        """
        location = Path(self.archival.archive_location)
        if base is None:
            return location
        return base / location

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        from spec_archiver.core.logging_config import configure_logging

        configure_logging(
            level=self.log_level,
            format="structured" if self.structured_logging else "human",
        )


# Global configuration instance
_config: Optional[ArchiverConfig] = None


def get_config() -> ArchiverConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ArchiverConfig.from_env()
    return _config


def set_config(config: ArchiverConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
