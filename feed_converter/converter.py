"""
Converter facade.
Runs schema analysis and extraction with shared settings and saves exports.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from .config_loader import ConverterSettings
from .errors import NoItemsDetected
from .extraction_engine import ExtractionEngine, ProgressCallback
from .models import DetectedSchema, ExportJob
from .schema_analyzer import SchemaAnalyzer
from .sources import as_source
from .utils import safe_write_bytes

logger = logging.getLogger(__name__)


class FeedConverter:
    """Two-pass feed to CSV conversion."""

    def __init__(self, settings: Optional[ConverterSettings] = None):
        """
        Initialize converter.

        Args:
            settings: Chunk size and analysis limit (defaults if None)
        """
        self.settings = settings or ConverterSettings()

    def _source(self, source):
        return as_source(source, self.settings.chunk_size)

    def analyze(self,
                source,
                hint: Optional[str] = None,
                progress: Optional[Callable[[int], None]] = None) -> DetectedSchema:
        """
        Detect the item element and its fields.

        Raises:
            NoItemsDetected: If no repeating structure was found
            SourceReadError: If the source could not be read
        """
        analyzer = SchemaAnalyzer(self.settings.analysis_item_limit)
        schema = analyzer.analyze(self._source(source), hint=hint, progress=progress)
        if schema.is_empty:
            raise NoItemsDetected()
        return schema

    def export(self,
               source,
               job: ExportJob,
               progress: Optional[ProgressCallback] = None,
               hint: Optional[str] = None) -> bytes:
        """
        Extract the feed to CSV bytes.

        When the job names no root item tag the feed is analyzed first.
        """
        source = self._source(source)
        root_item_tag = job.root_item_tag
        if not root_item_tag:
            root_item_tag = self.analyze(source, hint=hint).root_item_tag
            logger.info(f"Using detected item element '{root_item_tag}'")

        return ExtractionEngine(progress).run_job(source, job, root_item_tag=root_item_tag)

    def save_csv(self,
                 source,
                 job: ExportJob,
                 output_path: Path,
                 progress: Optional[ProgressCallback] = None,
                 hint: Optional[str] = None) -> Path:
        """Export and write the CSV buffer to output_path."""
        data = self.export(source, job, progress=progress, hint=hint)
        output_path = safe_write_bytes(Path(output_path), data)
        logger.info(f"Saved export to {output_path} ({len(data)} bytes)")
        return output_path
