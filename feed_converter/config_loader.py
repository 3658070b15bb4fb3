"""
Configuration loading and management.
Loads YAML settings for the converter and YAML export job definitions.
"""

import yaml
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional
import logging

from .models import ExportJob
from .schema_analyzer import ANALYSIS_ITEM_LIMIT
from .sources import DEFAULT_CHUNK_SIZE


logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.yaml"


@dataclass
class ConverterSettings:
    """Global converter settings."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    analysis_item_limit: int = ANALYSIS_ITEM_LIMIT
    log_dir: Optional[str] = "./logs"
    log_level: str = "INFO"
    json_logs: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConverterSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")

        settings = cls(**{k: v for k, v in data.items() if k in known})
        if int(settings.chunk_size) <= 0:
            raise ValueError(f"chunk_size must be positive, got {settings.chunk_size}")
        if int(settings.analysis_item_limit) <= 0:
            raise ValueError(
                f"analysis_item_limit must be positive, got {settings.analysis_item_limit}"
            )
        settings.chunk_size = int(settings.chunk_size)
        settings.analysis_item_limit = int(settings.analysis_item_limit)
        return settings


class ConfigLoader:
    """Loads and caches configuration from YAML files."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else None
        self._cache = {}

    def _load_yaml(self, filepath: Path) -> dict[str, Any]:
        """Load a YAML file and cache it."""
        filepath = Path(filepath)
        if filepath in self._cache:
            return self._cache[filepath]

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        logger.info(f"Loading config: {filepath}")
        with open(filepath, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {filepath} must contain a mapping")

        self._cache[filepath] = data
        return data

    def load_settings(self) -> ConverterSettings:
        """Load settings.yaml from the config directory, defaults if absent."""
        if self.config_dir is None:
            return ConverterSettings()

        settings_path = self.config_dir / SETTINGS_FILE
        if not settings_path.exists():
            logger.debug(f"No {SETTINGS_FILE} in {self.config_dir}, using defaults")
            return ConverterSettings()

        return ConverterSettings.from_dict(self._load_yaml(settings_path))

    def load_job(self, job_path: Path) -> ExportJob:
        """
        Load an export job definition.

        Relative paths are resolved against the config directory when the
        file does not exist in the working directory.
        """
        job_path = Path(job_path)
        if not job_path.exists() and self.config_dir and not job_path.is_absolute():
            job_path = self.config_dir / job_path

        job = ExportJob.from_dict(self._load_yaml(job_path))
        logger.info(
            f"Loaded job {job_path.name}: {len(job.selected_paths)} fields, "
            f"{len(job.filters)} filters, {len(job.calculations)} calculations"
        )
        return job

    def clear_cache(self):
        """Clear configuration cache (useful for testing or reload)."""
        self._cache.clear()
        logger.debug("Config cache cleared")
