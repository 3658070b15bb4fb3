"""
Exception types raised by the analysis and extraction passes.
"""


class FeedConverterError(Exception):
    """Base class for converter errors."""


class SourceReadError(FeedConverterError):
    """The chunk source failed before any usable data was seen."""


class ProcessingError(FeedConverterError):
    """The chunk source failed while extracting rows."""


class NoItemsDetected(FeedConverterError):
    """Schema analysis found no repeating item element."""

    def __init__(self, message: str = None):
        super().__init__(
            message
            or "No product elements found. Check the XML format or pass an element name hint."
        )
