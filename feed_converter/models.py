"""
Data models for the feed conversion pipeline.
Defines schema, transformation, and run statistics structures using dataclasses.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Optional
from enum import Enum


PATH_SEPARATOR = " > "
EXAMPLE_MAX_LENGTH = 100


def join_path(parts: list[str]) -> str:
    """Join tag names into a TagPath string."""
    return PATH_SEPARATOR.join(parts)


class FilterCondition(str, Enum):
    """Comparison applied by a row filter."""
    CONTAINS = "contains"
    EQUALS = "equals"
    GREATER_THAN = "gt"
    LESS_THAN = "lt"

    @classmethod
    def parse(cls, value: Any) -> "FilterCondition":
        """Accept enum members, short codes, long names, and symbols."""
        if isinstance(value, cls):
            return value
        aliases = {
            'contains': cls.CONTAINS,
            'equals': cls.EQUALS,
            '=': cls.EQUALS,
            '==': cls.EQUALS,
            'gt': cls.GREATER_THAN,
            'greater-than': cls.GREATER_THAN,
            'greater_than': cls.GREATER_THAN,
            '>': cls.GREATER_THAN,
            'lt': cls.LESS_THAN,
            'less-than': cls.LESS_THAN,
            'less_than': cls.LESS_THAN,
            '<': cls.LESS_THAN,
        }
        key = str(value).strip().lower()
        if key not in aliases:
            raise ValueError(f"Unknown filter condition: {value}")
        return aliases[key]


class CalculationOperator(str, Enum):
    """Arithmetic operator of a calculated column."""
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"


@dataclass
class FieldStat:
    """Occurrence statistics for one absolute path during analysis."""
    count: int
    example: str

    def record(self) -> None:
        self.count += 1


@dataclass(frozen=True)
class HintMatch:
    """A closed tag that matched the user's hint."""
    tag_name: str
    parent_name: str
    has_children: bool


@dataclass(frozen=True)
class XmlField:
    """A field discovered below the item element."""
    path: str  # e.g. "g:id" or "g:shipping > g:price"
    example: str
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DetectedSchema:
    """Result of schema analysis: the item tag and its field inventory."""
    root_item_tag: str
    fields: tuple[XmlField, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.fields

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.fields]

    def to_dict(self) -> dict:
        return {
            'root_item_tag': self.root_item_tag,
            'fields': [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class Filter:
    """Row filter evaluated against one item's field values."""
    path: str
    condition: FilterCondition
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Filter":
        return cls(
            path=_required(data, 'path', 'filter'),
            condition=FilterCondition.parse(_required(data, 'condition', 'filter')),
            value=str(data.get('value', '')),
        )


@dataclass(frozen=True)
class CustomColumn:
    """Column with the same static value in every row."""
    header: str
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomColumn":
        return cls(
            header=_required(data, 'header', 'custom column'),
            value=str(data.get('value', '')),
        )


@dataclass(frozen=True)
class Calculation:
    """Arithmetic column computed from two operand fields."""
    result_header: str
    operand1: str
    operator: CalculationOperator
    operand2: str
    is_percentage_op1: bool = False
    is_percentage_op2: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Calculation":
        operator = str(_required(data, 'operator', 'calculation'))
        try:
            parsed_operator = CalculationOperator(operator)
        except ValueError:
            raise ValueError(f"Unknown calculation operator: {operator}")

        return cls(
            result_header=_required(data, 'result_header', 'calculation'),
            operand1=_required(data, 'operand1', 'calculation'),
            operator=parsed_operator,
            operand2=_required(data, 'operand2', 'calculation'),
            is_percentage_op1=bool(data.get('is_percentage_op1', False)),
            is_percentage_op2=bool(data.get('is_percentage_op2', False)),
        )


@dataclass(frozen=True)
class MergeColumn:
    """Column joining two field values with a single space."""
    header: str
    operand1: str
    operand2: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MergeColumn":
        return cls(
            header=_required(data, 'header', 'merge column'),
            operand1=_required(data, 'operand1', 'merge column'),
            operand2=_required(data, 'operand2', 'merge column'),
        )


@dataclass
class ProcessingStats:
    """Progress of one extraction run."""
    total_bytes: int = 0
    processed_bytes: int = 0
    items_found: int = 0
    start_time: datetime = field(default_factory=datetime.now)

    def snapshot(self) -> "ProcessingStats":
        """Independent copy handed to progress callbacks."""
        return ProcessingStats(
            total_bytes=self.total_bytes,
            processed_bytes=self.processed_bytes,
            items_found=self.items_found,
            start_time=self.start_time,
        )

    def elapsed_seconds(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()

    def percent_complete(self) -> float:
        if not self.total_bytes:
            return 0.0
        return min(100.0, 100.0 * self.processed_bytes / self.total_bytes)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d['start_time'] = self.start_time.isoformat()
        return d


@dataclass
class ExportJob:
    """User-chosen parameters for one extraction run."""
    root_item_tag: Optional[str] = None
    selected_paths: list[str] = field(default_factory=list)
    deduplicate: bool = False
    column_aliases: dict[str, str] = field(default_factory=dict)
    filters: list[Filter] = field(default_factory=list)
    custom_columns: list[CustomColumn] = field(default_factory=list)
    calculations: list[Calculation] = field(default_factory=list)
    merge_columns: list[MergeColumn] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExportJob":
        """Build a job from a parsed YAML/JSON mapping."""
        selected = data.get('selected_paths') or []
        if not isinstance(selected, list):
            raise ValueError("selected_paths must be a list")

        return cls(
            root_item_tag=data.get('root_item_tag') or None,
            selected_paths=[str(p) for p in selected],
            deduplicate=bool(data.get('deduplicate', False)),
            column_aliases={str(k): str(v) for k, v in (data.get('column_aliases') or {}).items()},
            filters=[Filter.from_dict(f) for f in data.get('filters') or []],
            custom_columns=[CustomColumn.from_dict(c) for c in data.get('custom_columns') or []],
            calculations=[Calculation.from_dict(c) for c in data.get('calculations') or []],
            merge_columns=[MergeColumn.from_dict(m) for m in data.get('merge_columns') or []],
        )


def _required(data: dict[str, Any], key: str, kind: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"Missing '{key}' in {kind} definition: {data}")
    return data[key]
