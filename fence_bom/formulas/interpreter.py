"""
Formula interpreter: runs a product's formula set against one context.

Formulas run in EXECUTION_ORDER so a formula that reads [post_qty] always
sees the post quantity computed earlier in the same pass. Each rounded
value is published back into the context as <component>_qty.
"""

import logging
from typing import Iterable, List, Optional

from ..config import settings
from .context import CalculationContext
from .errors import FormulaError
from .evaluator import ExpressionEvaluator
from .resolver import VariableResolver
from .selector import TemplateSelector, TemplateSource
from .templates import FormulaResult, FormulaTemplate, round_for_level
from .transformer import ExpressionTransformer

logger = logging.getLogger(__name__)

# Dependencies first. Components not listed run last, in their original order.
EXECUTION_ORDER = [
    "post",            # Many formulas depend on post_qty
    "picket",
    "rail",
    "bracket",         # post_qty + rail_qty
    "cap",
    "trim",
    "rot_board",
    "steel_post_cap",
    "board",           # Horizontal boards
    "nailer",
    "vertical_trim",
    "panel",           # Iron panels
    "iron_post_cap",
    "nails_picket",    # picket_qty
    "nails_frame",
    "concrete_sand",   # post_qty
    "concrete_portland",
    "concrete_quickrock",
]


def sort_by_execution_order(templates: Iterable[FormulaTemplate],
                            order: List[str] = None,
                            unordered_rank: int = None) -> List[FormulaTemplate]:
    order = order if order is not None else EXECUTION_ORDER
    unordered_rank = unordered_rank if unordered_rank is not None else settings.UNORDERED_COMPONENT_RANK
    rank = {code: i for i, code in enumerate(order)}
    # sorted() is stable, so unlisted components keep their relative order
    return sorted(templates, key=lambda t: rank.get(t.component_code, unordered_rank))


class FormulaInterpreter:

    def __init__(self, source: TemplateSource, max_if_passes: int = None,
                 execution_order: List[str] = None):
        self.selector = TemplateSelector(source)
        self.resolver = VariableResolver()
        self.transformer = ExpressionTransformer(self.resolver, max_if_passes=max_if_passes)
        self.evaluator = ExpressionEvaluator()
        self.execution_order = list(execution_order) if execution_order is not None else list(EXECUTION_ORDER)

    def load_formulas(self, product_type_id: str, product_style_id: Optional[str] = None) -> List[FormulaTemplate]:
        return self.selector.load_formulas(product_type_id, product_style_id)

    def ordered_formulas(self, product_type_id: str, product_style_id: Optional[str] = None) -> List[FormulaTemplate]:
        return sort_by_execution_order(self.load_formulas(product_type_id, product_style_id),
                                       self.execution_order)

    def execute_formula(self, formula: str, context: CalculationContext) -> float:
        """
        Transform and evaluate one formula. Never raises: a malformed
        formula, unknown function or non-finite result is logged and
        returns 0.
        """
        try:
            expr = self.transformer.transform(formula, context)
        except FormulaError as e:
            logger.warning("Could not transform formula %r: %s", formula, e)
            return 0.0
        except (ArithmeticError, TypeError, ValueError) as e:
            logger.error("Formula error in %r: %s", formula, e)
            return 0.0
        value = self.evaluator.evaluate(expr, formula=formula)
        logger.debug("Formula %r -> %r = %s", formula, expr, value)
        return value

    def execute_all(self, product_type_id: str, product_style_id: Optional[str],
                    context: CalculationContext,
                    component_filter: Optional[Iterable[str]] = None) -> List[FormulaResult]:
        """
        Run every formula for a product type/style in dependency order.

        component_filter limits which components run. Filtered-out
        components are not executed, so a formula that reads their _qty
        resolves it to 0.

        Project-level rounding is left to apply_project_rounding().
        """
        formulas = self.ordered_formulas(product_type_id, product_style_id)
        wanted = set(component_filter) if component_filter is not None else None

        results = []
        for template in formulas:
            if wanted is not None and template.component_code not in wanted:
                continue

            raw_value = self.execute_formula(template.formula, context)
            rounded_value = round_for_level(raw_value, template.rounding_level)

            # _qty suffix keeps computed quantities apart from inputs like rail_count
            context.publish(template.component_code, rounded_value)

            results.append(FormulaResult(
                component_code=template.component_code,
                component_name=template.display_name,
                raw_value=raw_value,
                rounded_value=rounded_value,
                rounding_level=template.rounding_level,
                formula_used=template.formula,
            ))

        return results

    def clear_cache(self) -> None:
        self.selector.clear_cache()
