"""
Incremental XML tokenizer.
Feeds byte chunks to an lxml target parser and yields open/close/text events lazily.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional

from lxml import etree

from .errors import SourceReadError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r'\s+')


class EventKind(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    TEXT = "text"


@dataclass(frozen=True)
class XmlEvent:
    kind: EventKind
    name: str = ''
    text: str = ''


class _EventCollector:
    """lxml parser target that buffers events until the caller drains them."""

    def __init__(self):
        self.events: List[XmlEvent] = []
        self._prefixes = {}
        self._text: List[str] = []

    def start_ns(self, prefix, uri):
        self._prefixes[uri] = prefix

    def end_ns(self, prefix):
        pass

    def start(self, tag, attrib, nsmap=None):
        self._flush_text()
        self.events.append(XmlEvent(EventKind.OPEN, self._qualified_name(tag)))

    def end(self, tag):
        self._flush_text()
        self.events.append(XmlEvent(EventKind.CLOSE, self._qualified_name(tag)))

    def data(self, data):
        self._text.append(data)

    def comment(self, text):
        pass

    def close(self):
        self._flush_text()
        return None

    def drain(self) -> List[XmlEvent]:
        events, self.events = self.events, []
        return events

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = _WHITESPACE.sub(' ', ''.join(self._text)).strip()
        self._text = []
        if text:
            self.events.append(XmlEvent(EventKind.TEXT, text=text))

    def _qualified_name(self, tag) -> str:
        """Map '{uri}local' back to 'prefix:local' as written in the feed."""
        tag = str(tag)
        if not tag.startswith('{'):
            return tag
        uri, _, local = tag[1:].partition('}')
        if uri not in self._prefixes:
            return tag
        prefix = self._prefixes[uri]
        return f"{prefix}:{local}" if prefix else local


class XmlTokenizer:
    """Pull-based event stream over an iterable of byte chunks."""

    def __init__(self, on_chunk: Optional[Callable[[int], None]] = None):
        """
        Initialize tokenizer.

        Args:
            on_chunk: Called with the byte length of every chunk once its
                events have been consumed
        """
        self.on_chunk = on_chunk
        self._collector = _EventCollector()
        self._parser = etree.XMLParser(
            target=self._collector,
            recover=True,
            huge_tree=True,
            resolve_entities=False,
            no_network=True,
        )
        self._errors_seen = 0
        self._broken = False

    def events(self, chunks: Iterable[bytes]) -> Iterator[XmlEvent]:
        """
        Tokenize chunks one at a time.

        The next chunk is requested only after all events of the current one
        were consumed. Closing the generator closes the chunk iterator.

        Raises:
            SourceReadError: If reading a chunk fails
        """
        iterator = iter(chunks)
        try:
            while True:
                try:
                    chunk = next(iterator)
                except StopIteration:
                    break
                except Exception as e:
                    raise SourceReadError(f"Failed to read source: {e}") from e

                if isinstance(chunk, str):
                    chunk = chunk.encode('utf-8')
                if chunk and not self._broken:
                    self._feed(chunk)
                    yield from self._collector.drain()
                if self.on_chunk:
                    self.on_chunk(len(chunk))

            self._close()
            yield from self._collector.drain()
        finally:
            close = getattr(iterator, 'close', None)
            if close:
                close()

    def _feed(self, chunk: bytes) -> None:
        try:
            self._parser.feed(chunk)
        except etree.XMLSyntaxError as e:
            logger.warning(f"Malformed XML, ignoring remaining input: {e}")
            self._broken = True
        self._log_malformed_tokens()

    def _close(self) -> None:
        if self._broken:
            return
        try:
            self._parser.close()
        except etree.XMLSyntaxError as e:
            logger.warning(f"Malformed XML at end of input: {e}")
        self._log_malformed_tokens()

    def _log_malformed_tokens(self) -> None:
        entries = list(self._parser.error_log)
        if len(entries) < self._errors_seen:
            self._errors_seen = 0
        for entry in entries[self._errors_seen:]:
            logger.warning(
                f"Malformed XML token at line {entry.line}, column {entry.column}: "
                f"{entry.message.strip()}"
            )
        self._errors_seen = len(entries)


def iter_events(chunks: Iterable[bytes],
                on_chunk: Optional[Callable[[int], None]] = None) -> Iterator[XmlEvent]:
    """Shortcut for XmlTokenizer(on_chunk).events(chunks)."""
    return XmlTokenizer(on_chunk).events(chunks)
