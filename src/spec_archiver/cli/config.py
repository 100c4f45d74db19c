"""CLI configuration and workspace resolution.

Provides configuration handling for the spec-archiver CLI on top of the
shared spec_archiver.config module.
"""

from pathlib import Path
from typing import Optional

from spec_archiver.config import ArchivalSettings, ArchiverConfig, get_config
from spec_archiver.core.archival import ArchivalEngine
from spec_archiver.core.completion import CompletionDetector
from spec_archiver.core.scanner import SpecScanner


class CLIContext:
    """CLI execution context with resolved configuration.

    Holds the effective configuration for a CLI command, including
    any overrides from command-line options.
    """

    def __init__(
        self,
        specs_dir: Optional[str] = None,
        archive_dir: Optional[str] = None,
        config: Optional[ArchiverConfig] = None,
    ):
        """Initialize CLI context.

        Args:
            specs_dir: Explicit specs directory override from --specs-dir.
            archive_dir: Explicit archive directory override from --archive-dir.
            config: Optional config (uses global if not provided).
        """
        self._specs_dir_override = specs_dir
        self._archive_dir_override = archive_dir
        self._config = config or get_config()

    @property
    def config(self) -> ArchiverConfig:
        return self._config

    @property
    def settings(self) -> ArchivalSettings:
        return self._config.archival

    @property
    def specs_dir(self) -> Path:
        """Resolved specs directory.

        Resolution order:
        1. CLI --specs-dir option (highest priority)
        2. ArchiverConfig.specs_dir (from env/TOML/defaults)
        """
        if self._specs_dir_override:
            return Path(self._specs_dir_override).resolve()
        return self._config.specs_dir.resolve()

    @property
    def archive_root(self) -> Path:
        """Resolved archive directory.

        Resolution order:
        1. CLI --archive-dir option (highest priority)
        2. archive_location from config, relative to the working directory
        """
        if self._archive_dir_override:
            return Path(self._archive_dir_override).resolve()
        return self._config.get_archive_root(Path.cwd())

    def require_specs_dir(self) -> Path:
        """Get specs directory, raising if it does not exist.

        Raises:
            FileNotFoundError: If the specs directory is missing.
        """
        specs = self.specs_dir
        if not specs.is_dir():
            raise FileNotFoundError(
                f"Specs directory not found: {specs}. "
                "Use --specs-dir or set SPEC_ARCHIVER_SPECS_DIR environment variable."
            )
        return specs

    def resolve_spec(self, spec: str) -> Path:
        """Resolve a spec argument given as a path or as a name under specs_dir."""
        candidate = Path(spec)
        if candidate.is_dir() or candidate.is_absolute():
            return candidate.resolve()
        return self.specs_dir / spec

    def create_detector(self) -> CompletionDetector:
        return CompletionDetector()

    def create_engine(self) -> ArchivalEngine:
        return ArchivalEngine(
            self.archive_root,
            detector=self.create_detector(),
            modification_guard=self.settings.modification_guard,
        )

    def create_scanner(self) -> SpecScanner:
        return SpecScanner(
            self.specs_dir,
            detector=self.create_detector(),
            exclude=[self.archive_root],
        )


def create_context(
    specs_dir: Optional[str] = None,
    archive_dir: Optional[str] = None,
    config: Optional[ArchiverConfig] = None,
) -> CLIContext:
    """Create a CLI context with optional overrides."""
    return CLIContext(specs_dir=specs_dir, archive_dir=archive_dir, config=config)
