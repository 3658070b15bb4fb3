"""
Schema analysis pass.
Samples the start of a feed, auto-detects the repeating item element and
inventories the fields found below it.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from .errors import SourceReadError
from .models import (
    EXAMPLE_MAX_LENGTH,
    DetectedSchema,
    FieldStat,
    HintMatch,
    XmlField,
    join_path,
)
from .path_tracker import PathTracker
from .sources import as_source
from .tokenizer import EventKind, XmlTokenizer

logger = logging.getLogger(__name__)

ANALYSIS_ITEM_LIMIT = 100

DepthCounts = Dict[int, Dict[str, int]]


def resolve_root_tag(depth_counts: DepthCounts, hint_matches: List[HintMatch]) -> str:
    """
    Pick the item element from tag frequencies and hint matches.

    A hint that usually wraps children names the item itself; a hint that is
    usually a leaf names a field, so its parent is the item. Without a usable
    hint the most repeated tag at depth 2 wins, then depth 3.

    Args:
        depth_counts: {depth: {tag_name: open_count}}, depth 1 is the document root
        hint_matches: Hint matches in document order

    Returns:
        The item tag name, or '' when nothing qualifies
    """
    if hint_matches:
        with_children = sum(1 for m in hint_matches if m.has_children)
        without_children = len(hint_matches) - with_children

        if with_children >= without_children:
            candidate = hint_matches[0].tag_name
        else:
            candidate = hint_matches[0].parent_name

        if candidate:
            return candidate
        logger.debug("Hint matched only top-level elements, using frequency heuristic")

    depth2 = _best_candidate(depth_counts.get(2, {}))
    depth3 = _best_candidate(depth_counts.get(3, {}))

    if depth2 and depth2[1] > 1:
        return depth2[0]
    if depth3 and depth3[1] > 1:
        return depth3[0]
    if depth2:
        return depth2[0]
    if depth3:
        return depth3[0]
    return ''


def _best_candidate(counts: Dict[str, int]) -> Optional[Tuple[str, int]]:
    # max() keeps the first tag seen on ties
    if not counts:
        return None
    return max(counts.items(), key=lambda item: item[1])


def extract_relative_fields(field_stats: Dict[Tuple[str, ...], FieldStat],
                            root_tag: str) -> List[XmlField]:
    """
    Re-key absolute path statistics relative to the item element.

    Paths that map to the same relative path from different absolute
    locations are kept as separate entries.
    """
    fields = []
    for parts, stat in field_stats.items():
        if root_tag not in parts:
            continue
        index = len(parts) - 1 - parts[::-1].index(root_tag)
        if index >= len(parts) - 1:
            continue
        fields.append(XmlField(
            path=join_path(list(parts[index + 1:])),
            example=stat.example,
            count=stat.count,
        ))

    fields.sort(key=lambda f: f.path)
    return fields


class _AnalysisRun:
    """Mutable state of one analysis pass."""

    def __init__(self, hint: Optional[str], item_limit: int):
        self.hint = hint.strip() if hint and hint.strip() else None
        self.item_limit = item_limit
        self.tracker = PathTracker()
        self.depth_counts: DepthCounts = defaultdict(dict)
        self.field_stats: Dict[Tuple[str, ...], FieldStat] = {}
        self.hint_matches: List[HintMatch] = []
        self.max_repetition = 0
        self.bytes_read = 0

    @property
    def limit_reached(self) -> bool:
        return self.max_repetition >= self.item_limit

    def on_open(self, name: str) -> None:
        self.tracker.on_open(name)
        counts = self.depth_counts[self.tracker.depth]
        counts[name] = counts.get(name, 0) + 1
        if counts[name] > self.max_repetition:
            self.max_repetition = counts[name]

    def on_close(self, name: str) -> None:
        parent = self.tracker.parent()
        has_children = self.tracker.on_close()

        if self.hint and (name == self.hint or name.endswith(f":{self.hint}")):
            self.hint_matches.append(HintMatch(
                tag_name=name,
                parent_name=parent,
                has_children=has_children,
            ))

    def on_text(self, text: str) -> None:
        if not text.strip():
            return
        key = tuple(self.tracker.current_path())
        stat = self.field_stats.get(key)
        if stat is None:
            self.field_stats[key] = FieldStat(count=1, example=text[:EXAMPLE_MAX_LENGTH])
        else:
            stat.record()

    def resolve(self) -> DetectedSchema:
        root_tag = resolve_root_tag(self.depth_counts, self.hint_matches)
        if not root_tag:
            logger.warning("No repeating element found")
            return DetectedSchema(root_item_tag='', fields=())

        fields = extract_relative_fields(self.field_stats, root_tag)
        logger.info(
            f"Detected item element '{root_tag}' with {len(fields)} fields "
            f"(max repetition {self.max_repetition}, {len(self.hint_matches)} hint matches)"
        )
        return DetectedSchema(root_item_tag=root_tag, fields=tuple(fields))


class SchemaAnalyzer:
    """Detect the item element and its fields from a sample of the feed."""

    def __init__(self, item_limit: int = ANALYSIS_ITEM_LIMIT):
        """
        Initialize analyzer.

        Args:
            item_limit: Stop once any tag has been seen this many times
        """
        self.item_limit = item_limit

    def analyze(self,
                source,
                hint: Optional[str] = None,
                progress: Optional[Callable[[int], None]] = None) -> DetectedSchema:
        """
        Run the analysis pass.

        Args:
            source: Chunk source (anything with open()), path, or bytes
            hint: Optional element name that identifies the item or one of its fields
            progress: Called with the cumulative number of bytes read

        Returns:
            DetectedSchema; empty fields mean no items were found

        Raises:
            SourceReadError: If the source fails before any repetition was seen
        """
        source = as_source(source)
        run = _AnalysisRun(hint, self.item_limit)
        logger.info(f"Analyzing {source!r} (hint={run.hint!r}, limit={self.item_limit})")

        def on_chunk(size: int) -> None:
            run.bytes_read += size
            if progress:
                progress(run.bytes_read)

        events = XmlTokenizer(on_chunk).events(source.open())
        try:
            for event in events:
                if event.kind == EventKind.OPEN:
                    run.on_open(event.name)
                elif event.kind == EventKind.CLOSE:
                    run.on_close(event.name)
                    if run.limit_reached:
                        logger.debug(f"Analysis limit reached after {run.bytes_read} bytes")
                        break
                else:
                    run.on_text(event.text)
        except SourceReadError as e:
            if run.max_repetition == 0:
                logger.error(f"Error reading source during analysis: {e}")
                raise
            logger.warning(f"Source failed during analysis, using partial results: {e}")
        finally:
            events.close()

        return run.resolve()


def analyze_schema(source,
                   hint: Optional[str] = None,
                   progress: Optional[Callable[[int], None]] = None,
                   item_limit: int = ANALYSIS_ITEM_LIMIT) -> DetectedSchema:
    """Analyze a feed with a fresh SchemaAnalyzer."""
    return SchemaAnalyzer(item_limit).analyze(source, hint=hint, progress=progress)
