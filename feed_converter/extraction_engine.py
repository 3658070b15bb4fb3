"""
Extraction pass.
Streams the full feed, accumulates the needed fields of every item and
emits one CSV row per accepted item.
"""

import logging
from typing import Callable, Dict, Iterable, Optional, Sequence

from .csv_serializer import CsvBuffer, build_header, format_row
from .errors import ProcessingError, SourceReadError
from .models import (
    Calculation,
    CustomColumn,
    ExportJob,
    Filter,
    MergeColumn,
    ProcessingStats,
    join_path,
)
from .path_tracker import PathTracker
from .row_transformer import RowTransformer
from .sources import as_source, source_size
from .tokenizer import EventKind, XmlTokenizer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProcessingStats], None]


class _ExtractionRun:
    """Mutable state of one extraction pass."""

    def __init__(self,
                 root_item_tag: str,
                 transformer: RowTransformer,
                 deduplicate: bool,
                 stats: ProcessingStats):
        self.root_item_tag = root_item_tag
        self.transformer = transformer
        self.needed_paths = transformer.needed_paths()
        self.deduplicate = deduplicate
        self.stats = stats
        self.tracker = PathTracker()
        self.output = CsvBuffer()
        self.seen_rows = set()
        self.item: Dict[str, str] = {}
        self.inside_item = False
        self.items_closed = 0
        self.items_filtered = 0
        self.items_duplicate = 0

    def on_open(self, name: str) -> None:
        self.tracker.on_open(name)
        if name == self.root_item_tag:
            self.inside_item = True
            self.item = {}

    def on_close(self, name: str) -> None:
        self.tracker.on_close()
        if name == self.root_item_tag:
            self._finish_item()
            self.inside_item = False

    def on_text(self, text: str) -> None:
        if not self.inside_item or not text:
            return
        path = join_path(self.tracker.path_relative_to(self.root_item_tag))
        if path in self.needed_paths:
            self.item[path] = self.item.get(path, '') + text

    def _finish_item(self) -> None:
        self.items_closed += 1
        item, self.item = self.item, {}

        if not self.transformer.accepts(item):
            self.items_filtered += 1
            return

        line = format_row(self.transformer.transform(item))
        if self.deduplicate:
            if line in self.seen_rows:
                self.items_duplicate += 1
                return
            self.seen_rows.add(line)

        self.output.write_line(line)
        self.stats.items_found += 1


class ExtractionEngine:
    """Convert a feed into CSV given a detected or user-chosen item element."""

    def __init__(self, progress: Optional[ProgressCallback] = None):
        """
        Initialize engine.

        Args:
            progress: Receives a ProcessingStats snapshot after every chunk
                and once more when the pass completes
        """
        self.progress = progress

    def run(self,
            source,
            root_item_tag: str,
            selected_paths: Sequence[str],
            deduplicate: bool = False,
            column_aliases: Optional[Dict[str, str]] = None,
            filters: Iterable[Filter] = (),
            custom_columns: Iterable[CustomColumn] = (),
            calculations: Iterable[Calculation] = (),
            merge_columns: Iterable[MergeColumn] = ()) -> bytes:
        """
        Run the extraction pass.

        Args:
            source: Chunk source (anything with open()), path, or bytes
            root_item_tag: Tag whose instances become rows
            selected_paths: Relative field paths, in output column order
            deduplicate: Drop rows whose serialized text was already emitted
            column_aliases: {path: header} overrides for selected paths
            filters: All must pass for a row to be emitted
            custom_columns: Static columns
            calculations: Arithmetic columns
            merge_columns: Space-joined columns

        Returns:
            UTF-8 CSV bytes, header first

        Raises:
            ProcessingError: If the source fails before it is exhausted
        """
        source = as_source(source)
        filters = list(filters)
        custom_columns = list(custom_columns)
        calculations = list(calculations)
        merge_columns = list(merge_columns)

        transformer = RowTransformer(
            selected_paths,
            filters=filters,
            custom_columns=custom_columns,
            calculations=calculations,
            merge_columns=merge_columns,
        )
        run = _ExtractionRun(
            root_item_tag,
            transformer,
            deduplicate,
            ProcessingStats(total_bytes=source_size(source)),
        )
        run.output.write_header(build_header(
            selected_paths,
            column_aliases,
            custom_columns,
            calculations,
            merge_columns,
        ))

        logger.info(
            f"Extracting '{root_item_tag}' items from {source!r}: "
            f"{len(transformer.selected_paths)} fields, {len(filters)} filters, "
            f"deduplicate={deduplicate}"
        )

        def on_chunk(size: int) -> None:
            run.stats.processed_bytes += size
            if self.progress:
                self.progress(run.stats.snapshot())

        try:
            for event in XmlTokenizer(on_chunk).events(source.open()):
                if event.kind == EventKind.OPEN:
                    run.on_open(event.name)
                elif event.kind == EventKind.CLOSE:
                    run.on_close(event.name)
                else:
                    run.on_text(event.text)
        except SourceReadError as e:
            logger.error(f"Extraction aborted after {run.stats.items_found} rows: {e}")
            raise ProcessingError(f"Error processing feed: {e}") from e

        # Tokens held back by the parser are only flushed at end of input
        if self.progress:
            self.progress(run.stats.snapshot())

        logger.info(
            f"Extracted {run.stats.items_found} rows from {run.items_closed} items "
            f"({run.items_filtered} filtered, {run.items_duplicate} duplicates) "
            f"in {run.stats.elapsed_seconds():.2f}s"
        )
        return run.output.to_bytes()

    def run_job(self, source, job: ExportJob, root_item_tag: Optional[str] = None) -> bytes:
        """Run with parameters from an ExportJob."""
        root = root_item_tag or job.root_item_tag
        if not root:
            raise ValueError("Export job has no root item tag")
        return self.run(
            source,
            root,
            job.selected_paths,
            deduplicate=job.deduplicate,
            column_aliases=job.column_aliases,
            filters=job.filters,
            custom_columns=job.custom_columns,
            calculations=job.calculations,
            merge_columns=job.merge_columns,
        )


def extract_to_csv(source,
                   root_item_tag: str,
                   selected_paths: Sequence[str],
                   deduplicate: bool = False,
                   aliases: Optional[Dict[str, str]] = None,
                   filters: Iterable[Filter] = (),
                   custom_columns: Iterable[CustomColumn] = (),
                   calculations: Iterable[Calculation] = (),
                   merge_columns: Iterable[MergeColumn] = (),
                   progress: Optional[ProgressCallback] = None) -> bytes:
    """Extract a feed to CSV bytes with a fresh ExtractionEngine."""
    return ExtractionEngine(progress).run(
        source,
        root_item_tag,
        selected_paths,
        deduplicate=deduplicate,
        column_aliases=aliases,
        filters=filters,
        custom_columns=custom_columns,
        calculations=calculations,
        merge_columns=merge_columns,
    )
