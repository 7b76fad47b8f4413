"""
Variable resolution for [bracketed] formula names.

Scopes are probed in a fixed order and the first match wins:

  1. project inputs      Quantity, Lines, Gates, height
  2. calculated values   <component>_qty from earlier formulas
  3. style adjustments   product style formula_adjustments
  4. SKU variables       rail_count, post_spacing, post_type, ...
  5. material attributes <component>.<attribute>, dotted names only

Each scope is a separate lookup so a later scope can never shadow an
earlier one, even when keys collide. Anything unresolved logs a warning
and resolves to 0.
"""

import logging
import math
import re
from typing import Callable, List, Optional, Tuple, Union

from .context import CalculationContext

logger = logging.getLogger(__name__)

Value = Union[float, str]

# Sentinel for "this scope has no such name"; None is never a resolved value
_MISSING = object()

_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def coerce_value(value) -> Value:
    """
    Numeric-or-string coercion used by the style and SKU scopes.

    Strings that do not parse as numbers stay strings so formulas can
    compare against codes like "STEEL". Everything else becomes a float;
    values that can't be converted become 0.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return to_float(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if _NUMERIC_RE.match(text):
            return float(text)
        return value
    try:
        return to_float(value)
    except (TypeError, ValueError):
        return 0.0


def to_float(value) -> float:
    """float(value), with ints too large for a float mapped to +/-inf."""
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def _project_inputs(name: str, context: CalculationContext):
    value = context.project_input(name)
    if value is None:
        return _MISSING
    return to_float(value)


def _calculated_values(name: str, context: CalculationContext):
    if name in context.calculated_values:
        return to_float(context.calculated_values[name])
    return _MISSING


def _style_adjustments(name: str, context: CalculationContext):
    if name in context.style_adjustments:
        return coerce_value(context.style_adjustments[name])
    return _MISSING


def _sku_variables(name: str, context: CalculationContext):
    if name in context.variables:
        return coerce_value(context.variables[name])
    return _MISSING


def _material_attributes(name: str, context: CalculationContext):
    if "." not in name:
        return _MISSING
    attributes = context.material_attributes
    for key in (name, name.lower()):
        if key in attributes:
            value = coerce_value(attributes[key])
            return value if isinstance(value, float) else 0.0
    return _MISSING


Scope = Tuple[str, Callable[[str, CalculationContext], object]]

# Precedence order, first match wins
SCOPES: List[Scope] = [
    ("project_inputs", _project_inputs),
    ("calculated_values", _calculated_values),
    ("style_adjustments", _style_adjustments),
    ("variables", _sku_variables),
    ("material_attributes", _material_attributes),
]


class VariableResolver:

    def __init__(self, scopes: Optional[List[Scope]] = None):
        self.scopes = list(scopes) if scopes is not None else list(SCOPES)

    def lookup(self, name: str, context: CalculationContext) -> Tuple[Optional[str], Value]:
        """Return (scope_name, value) for the first scope that knows name, or (None, 0.0)."""
        for scope_name, probe in self.scopes:
            value = probe(name, context)
            if value is not _MISSING:
                return scope_name, value
        return None, 0.0

    def resolve(self, name: str, context: CalculationContext) -> Value:
        scope_name, value = self.lookup(name, context)
        if scope_name is None:
            logger.warning("Unknown formula variable [%s], resolving to 0", name)
        return value
