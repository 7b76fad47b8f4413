"""
BOM calculation entry points used by the API.

Builds a CalculationContext from request inputs or a catalog SKU, runs the
formula interpreter and applies the project rounding pass.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from . import models
from .database import SessionLocal
from .formulas import (
    CalculationContext,
    FormulaInterpreter,
    FormulaResult,
    apply_project_rounding,
    create_formula_context,
)
from .formulas.store import SqlTemplateSource, load_material_attributes

logger = logging.getLogger(__name__)

_interpreter: Optional[FormulaInterpreter] = None


def get_interpreter() -> FormulaInterpreter:
    """Process-wide interpreter (and template cache), created on first use."""
    global _interpreter
    if _interpreter is None:
        _interpreter = FormulaInterpreter(SqlTemplateSource(SessionLocal))
    return _interpreter


def run_formulas(interpreter: FormulaInterpreter, product_type_id: str, product_style_id: Optional[str],
                 context: CalculationContext, component_filter: Optional[Iterable[str]] = None,
                 project_rounding: bool = True) -> List[FormulaResult]:
    results = interpreter.execute_all(product_type_id, product_style_id, context, component_filter)
    if project_rounding:
        results = apply_project_rounding(results)
    return results


def sku_variables(sku: models.Sku) -> Dict[str, object]:
    """SKU variables plus the SKU's post type, so formulas can test [post_type]."""
    variables = dict(sku.variables or {})
    variables.setdefault("post_type", sku.post_type)
    return variables


def calculate_for_sku(db: Session, interpreter: FormulaInterpreter, sku: models.Sku,
                      net_length: float, lines: float = 1, gates: float = 0,
                      component_filter: Optional[Iterable[str]] = None,
                      project_rounding: bool = True):
    """Run a catalog SKU's formulas. Returns (results, context)."""
    style_adjustments = {}
    if sku.product_style is not None:
        style_adjustments = dict(sku.product_style.formula_adjustments or {})

    context = create_formula_context(
        net_length=net_length,
        lines=lines,
        gates=gates,
        height=sku.height,
        sku_variables=sku_variables(sku),
        style_adjustments=style_adjustments,
        material_attributes=load_material_attributes(db, sku.components or {}),
    )
    logger.info("Calculating SKU %s for %.1f ft, %s lines, %s gates", sku.sku_code, net_length, lines, gates)
    results = run_formulas(interpreter, sku.product_type_id, sku.product_style_id, context,
                           component_filter, project_rounding)
    return results, context
