"""
Result Classifier

Decides how a result set should be presented and formats scalar results.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
import logging

from .models import ViewingType

logger = logging.getLogger(__name__)

AGGREGATE_KEYWORDS = ("count(", "sum(", "avg(", "max(", "min(")


@dataclass
class ClassificationResult:
    viewing_type: ViewingType
    formatted_result: Optional[str] = None

    @property
    def viewing_type_id(self) -> int:
        return int(self.viewing_type)

    @property
    def viewing_type_name(self) -> str:
        return self.viewing_type.name.capitalize()


def is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def format_number(value: Any) -> str:
    """Two decimals with thousands separators; falls back to str(value)."""
    try:
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        if not number.is_finite():
            return str(value)
        return format(number, ",.2f")
    except (InvalidOperation, TypeError, ValueError):
        return str(value)


def is_aggregate_query(sql: Optional[str]) -> bool:
    lowered = (sql or "").lower()
    return any(keyword in lowered for keyword in AGGREGATE_KEYWORDS)


def classify(rows: List[Dict[str, Any]], sql: Optional[str]) -> ClassificationResult:
    """Pick a viewing type for a result set."""
    if not rows:
        return ClassificationResult(ViewingType.TABLE)

    first_row = rows[0]
    first_value = next(iter(first_row.values()), None) if first_row else None

    if len(rows) == 1 and len(first_row) == 1:
        if is_numeric(first_value):
            return ClassificationResult(ViewingType.NUMBER, format_number(first_value))
        return ClassificationResult(ViewingType.LABEL, "" if first_value is None else str(first_value))

    if is_aggregate_query(sql) and is_numeric(first_value):
        return ClassificationResult(ViewingType.NUMBER, format_number(first_value))

    return ClassificationResult(ViewingType.TABLE)


__all__ = [
    'AGGREGATE_KEYWORDS',
    'ClassificationResult',
    'classify',
    'format_number',
    'is_aggregate_query',
    'is_numeric',
]
