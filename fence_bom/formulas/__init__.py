"""
Database-driven formula execution engine.

Formula templates are short spreadsheet-style strings such as
ROUNDUP([Quantity]/[post_spacing])+1. For each formula the interpreter
substitutes bracketed variables, rewrites IF(...) calls into conditional
expressions, maps ROUNDUP/ROUNDDOWN/ROUND/MAX/MIN, evaluates the result
with a small recursive-descent evaluator, and publishes the rounded
quantity as <component>_qty for the formulas that run after it.
"""

from .context import CalculationContext, create_formula_context
from .templates import FormulaTemplate, FormulaResult, apply_project_rounding
from .interpreter import FormulaInterpreter, EXECUTION_ORDER

__all__ = [
    "CalculationContext",
    "create_formula_context",
    "FormulaTemplate",
    "FormulaResult",
    "apply_project_rounding",
    "FormulaInterpreter",
    "EXECUTION_ORDER",
]
