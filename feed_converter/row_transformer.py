"""
Per-item row building.
Applies filters, custom columns, calculations, and merges to one item's field values.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence

from .models import (
    Calculation,
    CalculationOperator,
    CustomColumn,
    Filter,
    FilterCondition,
    MergeColumn,
)

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r'[^\d.\-]')
_LEADING_NUMBER = re.compile(r'-?(?:\d+(?:\.\d*)?|\.\d+)')
_RESULT_PRECISION = Decimal('0.0001')
_HUNDRED = Decimal(100)


def parse_numeric(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse numbers out of feed values like "120.50 CZK".

    Everything except digits, '.' and '-' is dropped, then the leading
    number is read.

    Returns:
        Decimal value, or None if nothing numeric remains
    """
    if not value:
        return None
    cleaned = _NON_NUMERIC.sub('', str(value))
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def check_filter(item_value: Optional[str], row_filter: Filter) -> bool:
    """Evaluate one filter against an item's value for the filter path."""
    value = (item_value or '').lower()
    expected = (row_filter.value or '').lower()
    condition = row_filter.condition

    if condition == FilterCondition.CONTAINS:
        return expected in value
    if condition == FilterCondition.EQUALS:
        return value == expected

    actual_number = parse_numeric(value)
    expected_number = parse_numeric(expected)
    if actual_number is None or expected_number is None:
        return False
    if condition == FilterCondition.GREATER_THAN:
        return actual_number > expected_number
    if condition == FilterCondition.LESS_THAN:
        return actual_number < expected_number
    return True


def format_number(value: Decimal) -> str:
    """Round to 4 decimal places and drop trailing zeros."""
    try:
        rounded = value.quantize(_RESULT_PRECISION, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        logger.debug(f"Calculation result out of range: {value}")
        return ''
    if rounded == rounded.to_integral_value():
        return str(int(rounded))
    return format(rounded.normalize(), 'f')


def calculate(left: Optional[Decimal], operator: CalculationOperator,
              right: Optional[Decimal]) -> Optional[Decimal]:
    """Apply an operator; division by zero yields 0."""
    if left is None or right is None:
        return None
    if operator == CalculationOperator.ADD:
        return left + right
    if operator == CalculationOperator.SUBTRACT:
        return left - right
    if operator == CalculationOperator.MULTIPLY:
        return left * right
    if operator == CalculationOperator.DIVIDE:
        return left / right if right != 0 else Decimal(0)
    raise ValueError(f"Unknown operator: {operator}")


class RowTransformer:
    """Turns one item accumulator into the ordered values of a CSV row."""

    def __init__(self,
                 selected_paths: Sequence[str],
                 filters: Sequence[Filter] = (),
                 custom_columns: Sequence[CustomColumn] = (),
                 calculations: Sequence[Calculation] = (),
                 merge_columns: Sequence[MergeColumn] = ()):
        self.selected_paths = list(selected_paths)
        self.filters = list(filters)
        self.custom_columns = list(custom_columns)
        self.calculations = list(calculations)
        self.merge_columns = list(merge_columns)
        # Operands may name a custom column instead of a field
        self._constants = {c.header: c.value for c in self.custom_columns}

    def needed_paths(self) -> set:
        """Relative paths that must be captured while streaming."""
        paths = set(self.selected_paths)
        paths.update(f.path for f in self.filters)
        for calc in self.calculations:
            paths.add(calc.operand1)
            paths.add(calc.operand2)
        for merge in self.merge_columns:
            paths.add(merge.operand1)
            paths.add(merge.operand2)
        return paths

    def accepts(self, item: Dict[str, str]) -> bool:
        """True if every filter passes."""
        return all(check_filter(item.get(f.path, ''), f) for f in self.filters)

    def transform(self, item: Dict[str, str]) -> List[str]:
        """
        Build the row values: standard fields, custom columns, calculations, merges.

        Args:
            item: Accumulated {relative_path: text} for one item

        Returns:
            Unescaped values in header order
        """
        values = [item.get(path, '') for path in self.selected_paths]
        values.extend(c.value for c in self.custom_columns)
        values.extend(self._calculate(item, calc) for calc in self.calculations)
        values.extend(
            f"{self._operand(item, m.operand1)} {self._operand(item, m.operand2)}"
            for m in self.merge_columns
        )
        return values

    def _operand(self, item: Dict[str, str], path: str) -> str:
        if path in item:
            return item[path]
        return self._constants.get(path, '')

    def _calculate(self, item: Dict[str, str], calc: Calculation) -> str:
        left = parse_numeric(self._operand(item, calc.operand1))
        right = parse_numeric(self._operand(item, calc.operand2))
        if left is None or right is None:
            return ''

        if calc.is_percentage_op1:
            left = left / _HUNDRED
        if calc.is_percentage_op2:
            right = right / _HUNDRED

        return format_number(calculate(left, calc.operator, right))
