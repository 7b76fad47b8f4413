"""
Formula template and result records.

Templates are read-only once loaded; the selector caches them and shares
them across calculations. Results are produced once per executed formula.
"""

import enum
import math
from dataclasses import dataclass, replace
from typing import List, Optional


class RoundingLevel(str, enum.Enum):
    SKU = "sku"          # Round up per item, immediately
    PROJECT = "project"  # Aggregate first, round once per project
    NONE = "none"        # Leave fractional


@dataclass(frozen=True)
class FormulaTemplate:
    id: str
    product_type_id: str
    product_style_id: Optional[str]  # None = generic, applies to every style
    component_type_id: str
    component_code: str
    formula: str
    rounding_level: RoundingLevel = RoundingLevel.SKU
    priority: int = 0
    component_name: Optional[str] = None
    plain_english: Optional[str] = None

    @property
    def is_generic(self) -> bool:
        return self.product_style_id is None

    @property
    def display_name(self) -> str:
        return self.component_name or self.component_code


@dataclass(frozen=True)
class FormulaResult:
    component_code: str
    component_name: str
    raw_value: float
    rounded_value: float
    rounding_level: RoundingLevel
    formula_used: str


def round_for_level(raw_value: float, rounding_level: RoundingLevel) -> float:
    """Per-formula rounding. Only SKU level rounds here; PROJECT waits for apply_project_rounding."""
    if rounding_level == RoundingLevel.SKU:
        return float(math.ceil(raw_value))
    return raw_value


def apply_project_rounding(results: List[FormulaResult]) -> List[FormulaResult]:
    """
    Second pass over a finished result list: ceil the raw value of every
    project-level entry. Other entries are returned as-is.
    """
    rounded = []
    for result in results:
        if result.rounding_level == RoundingLevel.PROJECT:
            result = replace(result, rounded_value=float(math.ceil(result.raw_value)))
        rounded.append(result)
    return rounded
