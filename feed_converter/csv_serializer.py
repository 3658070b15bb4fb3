"""
CSV serializer for extracted rows.
Escapes values, builds the header, and accumulates lines into an output buffer.
"""

import io
import logging
from typing import Any, Dict, List, Optional, Sequence

from .models import Calculation, CustomColumn, MergeColumn

logger = logging.getLogger(__name__)

_SPECIAL_CHARS = (',', '"', '\n', '\r')


def escape_csv(value: Any) -> str:
    """Quote a value only if it contains a comma, quote, or line break."""
    if value is None:
        return ''
    text = str(value)
    if any(ch in text for ch in _SPECIAL_CHARS):
        return '"' + text.replace('"', '""') + '"'
    return text


def format_row(values: Sequence[Any]) -> str:
    """Escaped, comma-joined row without the line terminator."""
    return ','.join(escape_csv(v) for v in values)


def build_header(selected_paths: Sequence[str],
                 column_aliases: Optional[Dict[str, str]] = None,
                 custom_columns: Sequence[CustomColumn] = (),
                 calculations: Sequence[Calculation] = (),
                 merge_columns: Sequence[MergeColumn] = ()) -> List[str]:
    """
    Column names in output order.

    Blank aliases fall back to the original path.
    """
    aliases = column_aliases or {}
    header = []
    for path in selected_paths:
        alias = aliases.get(path)
        header.append(alias if alias and alias.strip() else path)
    header.extend(c.header for c in custom_columns)
    header.extend(c.result_header for c in calculations)
    header.extend(m.header for m in merge_columns)
    return header


class CsvBuffer:
    """In-memory CSV output with LF line terminators."""

    def __init__(self):
        self._buffer = io.StringIO()
        self.row_count = 0

    def write_header(self, header: Sequence[str]) -> None:
        self._buffer.write(format_row(header) + '\n')

    def write_line(self, line: str) -> None:
        """Append an already formatted row."""
        self._buffer.write(line + '\n')
        self.row_count += 1

    def write_row(self, values: Sequence[Any]) -> None:
        self.write_line(format_row(values))

    def getvalue(self) -> str:
        return self._buffer.getvalue()

    def to_bytes(self) -> bytes:
        """UTF-8 encoded buffer contents."""
        data = self._buffer.getvalue().encode('utf-8')
        logger.debug(f"Serialized {self.row_count} rows ({len(data)} bytes)")
        return data
