"""
CLI interface for analyzing feeds and exporting them to CSV.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional
from tabulate import tabulate

from .config_loader import ConfigLoader
from .converter import FeedConverter
from .errors import FeedConverterError, NoItemsDetected
from .logging_setup import setup_logging
from .models import DetectedSchema, ProcessingStats
from .utils import format_bytes, truncate_string

logger = logging.getLogger(__name__)


class CLI:
    """Command-line interface for feed conversion."""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize CLI.

        Args:
            config_dir: Directory holding settings.yaml and job files
        """
        self.config = ConfigLoader(config_dir)
        self.settings = self.config.load_settings()
        self.converter = FeedConverter(self.settings)

    def analyze(self, feed_path: Path, hint: Optional[str] = None,
                limit: Optional[int] = None, as_json: bool = False) -> DetectedSchema:
        """
        Print the detected item element and field inventory.

        Args:
            feed_path: Path to XML feed
            hint: Element name hint
            limit: Override for the analysis item limit
            as_json: Print the schema as JSON instead of a table
        """
        if limit:
            self.settings.analysis_item_limit = limit

        schema = self.converter.analyze(feed_path, hint=hint)

        if as_json:
            print(json.dumps(schema.to_dict(), indent=2, ensure_ascii=False))
            return schema

        table_data = [
            [f.path, f.count, truncate_string(f.example, 60)]
            for f in schema.fields
        ]

        print(f"\nItem element: {schema.root_item_tag} ({len(schema.fields)} fields)\n")
        print(tabulate(table_data,
                       headers=['Path', 'Count', 'Example'],
                       tablefmt='grid'))
        return schema

    def export(self, feed_path: Path, job_path: Path, output_path: Path,
               root_item_tag: Optional[str] = None, hint: Optional[str] = None) -> Path:
        """
        Export a feed to CSV using a YAML job definition.

        Args:
            feed_path: Path to XML feed
            job_path: Path to job YAML
            output_path: Path to write CSV
            root_item_tag: Overrides the job's root item tag
            hint: Element name hint used if the root tag must be detected
        """
        job = self.config.load_job(job_path)
        if root_item_tag:
            job.root_item_tag = root_item_tag

        last_stats: List[ProcessingStats] = []

        def on_progress(stats: ProcessingStats) -> None:
            last_stats[:] = [stats]
            logger.debug(
                f"{format_bytes(stats.processed_bytes)} read, "
                f"{stats.items_found} rows ({stats.percent_complete():.0f}%)"
            )

        output_path = self.converter.save_csv(
            feed_path, job, output_path, progress=on_progress, hint=hint
        )

        rows = last_stats[0].items_found if last_stats else 0
        if last_stats:
            logger.info("Export finished", extra=last_stats[0].to_dict())
        print(f"✓ Exported {rows} rows to {output_path}")
        return output_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='feed-converter',
        description="Convert large XML product feeds to CSV",
    )

    parser.add_argument('--config', type=Path, help='Config directory (settings.yaml, jobs)')
    parser.add_argument('--log-dir', type=Path, help='Log directory (overrides settings)')
    parser.add_argument('--log-level', type=str, help='Log level (overrides settings)')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Detect item element and fields')
    analyze_parser.add_argument('feed', type=Path, help='XML feed path')
    analyze_parser.add_argument('--hint', type=str, help='Item or field element name')
    analyze_parser.add_argument('--limit', type=int, help='Stop after this many repeated items')
    analyze_parser.add_argument('--json', action='store_true', help='Print schema as JSON')

    # export command
    export_parser = subparsers.add_parser('export', help='Export feed to CSV')
    export_parser.add_argument('feed', type=Path, help='XML feed path')
    export_parser.add_argument('--job', type=Path, required=True, help='Job YAML path')
    export_parser.add_argument('--output', type=Path, required=True, help='Output CSV path')
    export_parser.add_argument('--root', type=str, help='Item element (skips detection)')
    export_parser.add_argument('--hint', type=str, help='Item or field element name')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    cli = CLI(args.config)
    settings = cli.settings
    setup_logging(
        log_dir=args.log_dir or settings.log_dir,
        log_level=args.log_level or settings.log_level,
        json_format=settings.json_logs,
    )

    try:
        if args.command == 'analyze':
            cli.analyze(args.feed, hint=args.hint, limit=args.limit, as_json=args.json)
        elif args.command == 'export':
            cli.export(args.feed, args.job, args.output,
                       root_item_tag=args.root, hint=args.hint)
    except NoItemsDetected as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except (FeedConverterError, FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"✗ {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
