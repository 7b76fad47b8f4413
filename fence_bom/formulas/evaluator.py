"""
Expression evaluator for transformed formulas.

Input is what ExpressionTransformer produces: numeric and quoted string
literals, + - * / ( ), comparisons > < >= <= == !=, && ||, the ternary
cond ? a : b, and the functions ceil floor round max min.

Tokens are parsed by recursive descent into small AST nodes and then
walked. There is no eval() and no host scripting runtime. The ternary,
&& and || only evaluate the branch they select.

Grammar, loosest binding first:

    ternary     := or ( "?" ternary ":" ternary )?
    or          := and ( "||" and )*
    and         := equality ( "&&" equality )*
    equality    := relational ( ("==" | "!=") relational )*
    relational  := additive ( (">" | "<" | ">=" | "<=") additive )*
    additive    := term ( ("+" | "-") term )*
    term        := unary ( ("*" | "/") unary )*
    unary       := ("-" | "+") unary | primary
    primary     := NUMBER | STRING | NAME "(" args? ")" | "(" ternary ")"
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .errors import FormulaError, FormulaEvaluationError, FormulaSyntaxError

logger = logging.getLogger(__name__)


# ============================================================
# Tokenizer
# ============================================================

NUMBER = "NUMBER"
STRING = "STRING"
NAME = "NAME"
OP = "OP"

_NUMBER_RE = re.compile(r"(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_SIGNED_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Longest first so ">=" wins over ">"
_OPERATORS = ("&&", "||", ">=", "<=", "==", "!=", ">", "<", "+", "-", "*", "/", "(", ")", "?", ":", ",")


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int


def _read_string(expr: str, start: int) -> Tuple[str, int]:
    """Read a quoted literal starting at expr[start]. Returns (text, index after closing quote)."""
    quote = expr[start]
    chars = []
    i = start + 1
    while i < len(expr):
        c = expr[i]
        if c == "\\" and i + 1 < len(expr):
            chars.append(expr[i + 1])
            i += 2
            continue
        if c == quote:
            return "".join(chars), i + 1
        chars.append(c)
        i += 1
    raise FormulaSyntaxError("Unterminated string literal at position %d" % start, expr)


def tokenize(expr: str) -> List[Token]:
    tokens = []
    i = 0
    while i < len(expr):
        c = expr[i]
        if c.isspace():
            i += 1
            continue

        if c.isdigit() or (c == "." and i + 1 < len(expr) and expr[i + 1].isdigit()):
            match = _NUMBER_RE.match(expr, i)
            tokens.append(Token(NUMBER, float(match.group(0)), i))
            i = match.end()
            continue

        if c in "\"'":
            text, end = _read_string(expr, i)
            tokens.append(Token(STRING, text, i))
            i = end
            continue

        if c.isalpha() or c == "_":
            match = _NAME_RE.match(expr, i)
            tokens.append(Token(NAME, match.group(0), i))
            i = match.end()
            continue

        for op in _OPERATORS:
            if expr.startswith(op, i):
                tokens.append(Token(OP, op, i))
                i += len(op)
                break
        else:
            raise FormulaSyntaxError("Unexpected character %r at position %d" % (c, i), expr)
    return tokens


# ============================================================
# AST nodes
# ============================================================

@dataclass
class NumberNode:
    value: float


@dataclass
class StringNode:
    value: str


@dataclass
class CallNode:
    name: str
    arguments: List[Any]


@dataclass
class UnaryOpNode:
    operator: str
    operand: Any


@dataclass
class BinaryOpNode:
    operator: str
    left: Any
    right: Any


@dataclass
class ConditionalNode:
    condition: Any
    if_true: Any
    if_false: Any


# ============================================================
# Parser (recursive descent)
# ============================================================

class ExpressionParser:

    def __init__(self, tokens: List[Token], source: str = ""):
        self._tokens = tokens
        self._pos = 0
        self._source = source

    def _peek(self) -> Optional[Token]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _peek_op(self, *ops: str) -> Optional[str]:
        tok = self._peek()
        if tok is not None and tok.kind == OP and tok.value in ops:
            return tok.value
        return None

    def _consume(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise FormulaSyntaxError("Unexpected end of expression", self._source)
        self._pos += 1
        return tok

    def _expect(self, op: str) -> None:
        tok = self._consume()
        if tok.kind != OP or tok.value != op:
            raise FormulaSyntaxError(
                "Expected %r at position %d, got %r" % (op, tok.pos, tok.value), self._source)

    def parse(self):
        node = self._parse_ternary()
        tok = self._peek()
        if tok is not None:
            raise FormulaSyntaxError(
                "Unexpected token %r at position %d" % (tok.value, tok.pos), self._source)
        return node

    def _parse_ternary(self):
        condition = self._parse_binary(0)
        if self._peek_op("?"):
            self._consume()
            if_true = self._parse_ternary()
            self._expect(":")
            if_false = self._parse_ternary()
            return ConditionalNode(condition, if_true, if_false)
        return condition

    # Binary precedence levels, loosest first
    _LEVELS = (
        ("||",),
        ("&&",),
        ("==", "!="),
        (">", "<", ">=", "<="),
        ("+", "-"),
        ("*", "/"),
    )

    def _parse_binary(self, level: int):
        if level == len(self._LEVELS):
            return self._parse_unary()
        ops = self._LEVELS[level]
        left = self._parse_binary(level + 1)
        while True:
            op = self._peek_op(*ops)
            if op is None:
                return left
            self._consume()
            right = self._parse_binary(level + 1)
            left = BinaryOpNode(op, left, right)

    def _parse_unary(self):
        op = self._peek_op("-", "+")
        if op:
            self._consume()
            return UnaryOpNode(op, self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self):
        tok = self._consume()

        if tok.kind == NUMBER:
            return NumberNode(tok.value)

        if tok.kind == STRING:
            return StringNode(tok.value)

        if tok.kind == NAME:
            if not self._peek_op("("):
                raise FormulaSyntaxError(
                    "Bare name %r at position %d; variables must be substituted first" % (
                        tok.value, tok.pos), self._source)
            self._consume()
            arguments = []
            if not self._peek_op(")"):
                arguments.append(self._parse_ternary())
                while self._peek_op(","):
                    self._consume()
                    arguments.append(self._parse_ternary())
            self._expect(")")
            return CallNode(tok.value, arguments)

        if tok.kind == OP and tok.value == "(":
            node = self._parse_ternary()
            self._expect(")")
            return node

        raise FormulaSyntaxError(
            "Unexpected token %r at position %d" % (tok.value, tok.pos), self._source)


def parse(expr: str):
    return ExpressionParser(tokenize(expr), expr).parse()


# ============================================================
# Value semantics
# ============================================================

def to_number(value) -> float:
    """Numeric view of a value. Non-numeric strings become NaN."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text == "":
            return 0.0
        if _SIGNED_NUMBER_RE.fullmatch(text):
            return float(text)
        return math.nan
    return math.nan


def is_truthy(value) -> bool:
    if isinstance(value, str):
        return value != ""
    number = to_number(value)
    return not (number == 0 or math.isnan(number))


def loose_equal(left, right) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return to_number(left) == to_number(right)


def divide(left: float, right: float) -> float:
    """IEEE division: x/0 is ±inf, 0/0 is NaN."""
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        sign = math.copysign(1.0, left) * math.copysign(1.0, right)
        return math.inf if sign > 0 else -math.inf
    return left / right


def round_half_up(value: float) -> float:
    if not math.isfinite(value):
        return value
    return float(math.floor(value + 0.5))


def _single(name, func):
    def call(*args):
        if len(args) != 1:
            raise FormulaEvaluationError("%s() takes exactly 1 argument (%d given)" % (name, len(args)))
        value = to_number(args[0])
        if not math.isfinite(value):
            return value
        return float(func(value))
    return call


def _extreme(name, func):
    def call(*args):
        if not args:
            raise FormulaEvaluationError("%s() needs at least 1 argument" % name)
        numbers = [to_number(a) for a in args]
        if any(math.isnan(n) for n in numbers):
            return math.nan
        return func(numbers)
    return call


FUNCTIONS = {
    "ceil": _single("ceil", math.ceil),
    "floor": _single("floor", math.floor),
    "round": _single("round", round_half_up),
    "max": _extreme("max", max),
    "min": _extreme("min", min),
}


# ============================================================
# Evaluator
# ============================================================

class ExpressionEvaluator:
    """
    Walks parsed expressions. evaluate() is total: any failure, string or
    boolean result, NaN or infinity becomes 0.0 with an error log naming
    the expression.
    """

    def __init__(self, functions: Optional[dict] = None):
        self.functions = functions if functions is not None else FUNCTIONS

    def evaluate(self, expr: str, formula: str = None) -> float:
        label = formula or expr
        try:
            value = self.evaluate_strict(expr)
        except FormulaError as e:
            logger.error("Formula error in %r: %s", label, e)
            return 0.0
        except (ArithmeticError, TypeError, ValueError, RecursionError) as e:
            logger.error("Formula error in %r: %s", label, e)
            return 0.0

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.error("Formula %r produced a non-numeric result %r", label, value)
            return 0.0
        if not math.isfinite(value):
            logger.error("Formula %r produced a non-finite result %r", label, value)
            return 0.0
        return float(value)

    def evaluate_strict(self, expr: str):
        """Evaluate and return the raw value (number, string or bool). Raises on failure."""
        return self._eval(parse(expr))

    def _eval(self, node):
        if isinstance(node, NumberNode):
            return node.value

        if isinstance(node, StringNode):
            return node.value

        if isinstance(node, ConditionalNode):
            if is_truthy(self._eval(node.condition)):
                return self._eval(node.if_true)
            return self._eval(node.if_false)

        if isinstance(node, BinaryOpNode):
            return self._eval_binary(node)

        if isinstance(node, UnaryOpNode):
            operand = to_number(self._eval(node.operand))
            return -operand if node.operator == "-" else operand

        if isinstance(node, CallNode):
            func = self.functions.get(node.name)
            if func is None:
                raise FormulaEvaluationError("Unknown function: %s" % node.name)
            return func(*[self._eval(arg) for arg in node.arguments])

        raise FormulaEvaluationError("Unknown node type: %s" % type(node).__name__)

    def _eval_binary(self, node: BinaryOpNode):
        op = node.operator

        # Short-circuit: the right side only runs when it decides the result
        if op == "&&":
            left = self._eval(node.left)
            return self._eval(node.right) if is_truthy(left) else left
        if op == "||":
            left = self._eval(node.left)
            return left if is_truthy(left) else self._eval(node.right)

        left = self._eval(node.left)
        right = self._eval(node.right)

        if op == "==":
            return loose_equal(left, right)
        if op == "!=":
            return not loose_equal(left, right)

        if op in (">", "<", ">=", "<="):
            if isinstance(left, str) and isinstance(right, str):
                a, b = left, right
            else:
                a, b = to_number(left), to_number(right)
            if op == ">":
                return a > b
            if op == "<":
                return a < b
            if op == ">=":
                return a >= b
            return a <= b

        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            raise FormulaEvaluationError("Cannot add text values: %r + %r" % (left, right))

        a, b = to_number(left), to_number(right)
        if op == "+":
            return a + b
        if op == "-":
            return a - b
        if op == "*":
            return a * b
        if op == "/":
            return divide(a, b)

        raise FormulaEvaluationError("Unknown operator: %s" % op)
