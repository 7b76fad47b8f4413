"""
Rewrites a stored formula into an expression ExpressionEvaluator accepts.

Three steps, always in this order:

1. [name] references are replaced by their resolved values: numbers as
   bare literals, text as quoted literals so IF([post_type]=="STEEL", ...)
   compares strings.
2. IF(cond, a, b) becomes (cond ? a : b). Each pass finds the first IF(,
   scans to its matching close paren and splits the arguments on commas
   at depth zero, then starts over so nested IFs are picked up.
3. ROUNDUP, ROUNDDOWN, ROUND, MAX and MIN are renamed to ceil, floor,
   round, max and min.

Parenthesis scanning, argument splitting and renaming all skip over
quoted literals, so a substituted value like "2x4 (PT)" can't unbalance
or split anything.
"""

import logging
import math
import re
from typing import Callable, List, Tuple

from ..config import settings
from .context import CalculationContext
from .errors import FormulaTransformError

logger = logging.getLogger(__name__)

_BRACKET_RE = re.compile(r"\[([^\]]+)\]")
_IF_RE = re.compile(r"\bIF\s*\(", re.IGNORECASE)

# ROUND must not match the front of ROUNDUP / ROUNDDOWN
FUNCTION_MAP: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\bROUNDUP(?=\s*\()", re.IGNORECASE), "ceil"),
    (re.compile(r"\bROUNDDOWN(?=\s*\()", re.IGNORECASE), "floor"),
    (re.compile(r"\bROUND(?!UP|DOWN)(?=\s*\()", re.IGNORECASE), "round"),
    (re.compile(r"\bMAX(?=\s*\()", re.IGNORECASE), "max"),
    (re.compile(r"\bMIN(?=\s*\()", re.IGNORECASE), "min"),
]

_QUOTED_RE = re.compile(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'')


def format_literal(value) -> str:
    """Render a resolved value as an expression literal."""
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return '"%s"' % escaped
    if isinstance(value, bool):
        return "1" if value else "0"
    number = float(value)
    if math.isnan(number):
        return "(0/0)"
    if math.isinf(number):
        return "(1/0)" if number > 0 else "(-1/0)"
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _skip_quoted(expr: str, i: int) -> int:
    """Index just past the quoted literal that starts at expr[i]."""
    quote = expr[i]
    i += 1
    while i < len(expr):
        if expr[i] == "\\":
            i += 2
            continue
        if expr[i] == quote:
            return i + 1
        i += 1
    return i


def find_closing_paren(expr: str, start: int) -> int:
    """
    Given the index just after an opening paren, return the index of its
    matching close paren, or -1 when the parens never balance.
    """
    depth = 1
    i = start
    while i < len(expr):
        c = expr[i]
        if c in "\"'":
            i = _skip_quoted(expr, i)
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def split_top_level_args(args: str) -> List[str]:
    """Split on commas that are not inside parentheses or quotes."""
    parts = []
    depth = 0
    current_start = 0
    i = 0
    while i < len(args):
        c = args[i]
        if c in "\"'":
            i = _skip_quoted(args, i)
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
        elif c == "," and depth == 0:
            parts.append(args[current_start:i])
            current_start = i + 1
        i += 1
    tail = args[current_start:]
    if tail or parts:
        parts.append(tail)
    return parts


def _outside_quotes(expr: str, func: Callable[[str], str]) -> str:
    """Apply func to every stretch of expr that is not a quoted literal."""
    pieces = []
    last = 0
    for match in _QUOTED_RE.finditer(expr):
        pieces.append(func(expr[last:match.start()]))
        pieces.append(match.group(0))
        last = match.end()
    pieces.append(func(expr[last:]))
    return "".join(pieces)


def _find_if(expr: str):
    """First IF( that is not inside a quoted literal."""
    pos = 0
    while True:
        match = _IF_RE.search(expr, pos)
        if match is None:
            return None
        # Count quotes before the match to see whether it sits inside a literal
        prefix = expr[:match.start()]
        stripped = _QUOTED_RE.sub("", prefix)
        if '"' not in stripped and "'" not in stripped:
            return match
        pos = match.end()


class ExpressionTransformer:

    def __init__(self, resolver, max_if_passes: int = None):
        self.resolver = resolver
        self.max_if_passes = max_if_passes if max_if_passes is not None else settings.MAX_IF_PASSES

    def transform(self, formula: str, context: CalculationContext) -> str:
        """
        Full rewrite of one formula. Raises FormulaTransformError for a
        malformed IF; callers treat that formula as 0.
        """
        expr = self.substitute_variables(formula, context)
        expr = self.convert_if_statements(expr)
        return self.map_functions(expr)

    def substitute_variables(self, formula: str, context: CalculationContext) -> str:
        def replace(match):
            return format_literal(self.resolver.resolve(match.group(1), context))
        return _BRACKET_RE.sub(replace, formula)

    def convert_if_statements(self, expr: str) -> str:
        result = expr
        passes = 0
        while passes < self.max_if_passes:
            match = _find_if(result)
            if match is None:
                return result
            passes += 1

            args_start = match.end()
            close = find_closing_paren(result, args_start)
            if close == -1:
                raise FormulaTransformError("Unbalanced parentheses in IF statement", expr)

            args = split_top_level_args(result[args_start:close])
            if len(args) < 3:
                raise FormulaTransformError(
                    "IF statement with fewer than 3 arguments: IF(%s)" % result[args_start:close], expr)

            condition, if_true, if_false = (a.strip() for a in args[:3])
            if len(args) > 3:
                logger.warning("IF statement with %d arguments, ignoring extras: %s", len(args), expr)
            ternary = "(%s ? %s : %s)" % (condition, if_true, if_false)
            result = result[:match.start()] + ternary + result[close + 1:]

        if _find_if(result) is not None:
            logger.warning("IF rewrite stopped after %d passes: %s", self.max_if_passes, expr)
        return result

    def map_functions(self, expr: str) -> str:
        def rename(segment: str) -> str:
            for pattern, replacement in FUNCTION_MAP:
                segment = pattern.sub(replacement, segment)
            return segment
        return _outside_quotes(expr, rename)
