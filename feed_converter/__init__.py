"""
Streaming XML product feed to CSV converter.
"""

__version__ = "0.1.0"
__author__ = "Automation Team"

from .models import (
    DetectedSchema,
    XmlField,
    Filter,
    FilterCondition,
    CustomColumn,
    Calculation,
    CalculationOperator,
    MergeColumn,
    ProcessingStats,
    ExportJob,
)
from .errors import (
    FeedConverterError,
    SourceReadError,
    ProcessingError,
    NoItemsDetected,
)
from .sources import FileSource, BytesSource
from .schema_analyzer import SchemaAnalyzer, analyze_schema, resolve_root_tag
from .extraction_engine import ExtractionEngine, extract_to_csv
from .converter import FeedConverter
from .config_loader import ConfigLoader, ConverterSettings
from .logging_setup import setup_logging

__all__ = [
    'DetectedSchema',
    'XmlField',
    'Filter',
    'FilterCondition',
    'CustomColumn',
    'Calculation',
    'CalculationOperator',
    'MergeColumn',
    'ProcessingStats',
    'ExportJob',
    'FeedConverterError',
    'SourceReadError',
    'ProcessingError',
    'NoItemsDetected',
    'FileSource',
    'BytesSource',
    'SchemaAnalyzer',
    'analyze_schema',
    'resolve_root_tag',
    'ExtractionEngine',
    'extract_to_csv',
    'FeedConverter',
    'ConfigLoader',
    'ConverterSettings',
    'setup_logging',
]
