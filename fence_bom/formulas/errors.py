"""
Formula engine exceptions.

None of these escape FormulaInterpreter.execute_formula. A bad formula
degrades to a zero quantity for its component and the rest of the BOM
still computes.
"""


class FormulaError(Exception):
    """Base class for formula engine errors."""

    def __init__(self, message: str, formula: str = None):
        self.message = message
        self.formula = formula
        super().__init__(message)


class FormulaTransformError(FormulaError):
    """IF(...) call with unbalanced parentheses or fewer than 3 arguments."""


class FormulaSyntaxError(FormulaError):
    """Expression could not be tokenized or parsed."""


class FormulaEvaluationError(FormulaError):
    """Expression parsed but could not be evaluated (type mismatch, unknown function)."""
