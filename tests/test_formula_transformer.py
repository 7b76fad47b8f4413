"""
Tests for formula rewriting (formulas/transformer.py).

Tests:
1-4.   [variable] substitution: numbers, text, unknown names
5-9.   IF(cond, a, b) -> (cond ? a : b), nesting, commas inside calls
10-12. Malformed IF raises, pass limit stops rewriting
13-14. Spreadsheet function names
15-17. Quoted literals are never split, rewritten or renamed
"""

import logging

import pytest

from fence_bom.formulas import create_formula_context
from fence_bom.formulas.errors import FormulaTransformError
from fence_bom.formulas.evaluator import ExpressionEvaluator
from fence_bom.formulas.resolver import VariableResolver
from fence_bom.formulas.transformer import (
    ExpressionTransformer,
    find_closing_paren,
    format_literal,
    split_top_level_args,
)


def _context(**variables):
    return create_formula_context(net_length=100, lines=1, gates=0, height=6, sku_variables=variables)


@pytest.fixture
def transformer():
    return ExpressionTransformer(VariableResolver())


# --- Substitution ---

def test_substitutes_numbers(transformer):
    ctx = _context(post_spacing=8, width=5.5)
    assert transformer.substitute_variables("[Quantity]/[post_spacing]", ctx) == "100/8"
    assert transformer.substitute_variables("[width]*2", ctx) == "5.5*2"


def test_substitutes_negative_numbers_as_bare_literals(transformer):
    ctx = _context(offset=-1)
    expr = transformer.substitute_variables("2-[offset]", ctx)
    assert expr == "2--1"
    assert ExpressionEvaluator().evaluate(expr) == 3.0


def test_substitutes_text_as_quoted_literal(transformer):
    ctx = _context(post_type="STEEL", label='say "hi"')
    assert transformer.substitute_variables("[post_type]", ctx) == '"STEEL"'
    assert transformer.substitute_variables("[label]", ctx) == '"say \\"hi\\""'


def test_unknown_variable_becomes_zero(transformer, caplog):
    with caplog.at_level(logging.WARNING):
        expr = transformer.transform("[missing]+1", _context())
    assert expr == "0+1"
    assert "missing" in caplog.text


# --- IF rewriting ---

def test_simple_if(transformer):
    assert transformer.convert_if_statements("IF(1>0, 2, 3)") == "(1>0 ? 2 : 3)"


def test_if_is_case_insensitive(transformer):
    assert transformer.convert_if_statements("if(1>0,2,3)") == "(1>0 ? 2 : 3)"


def test_nested_if(transformer):
    ctx = _context(a=1, b=-1)
    expr = transformer.transform("IF([a]>0, IF([b]>0, 1, 2), 3)", ctx)
    assert expr == "(1>0 ? (-1>0 ? 1 : 2) : 3)"
    assert ExpressionEvaluator().evaluate(expr) == 2.0


def test_if_arguments_with_commas_inside_calls(transformer):
    expr = transformer.transform("IF(MAX(1,2)>1, MIN(3,4), 0)", _context())
    assert expr == "(max(1,2)>1 ? min(3,4) : 0)"
    assert ExpressionEvaluator().evaluate(expr) == 3.0


def test_if_embedded_in_larger_expression(transformer):
    expr = transformer.transform('[post_qty]+IF([post_type]=="STEEL", 2, 0)',
                                 _context(post_type="STEEL", post_qty=10))
    assert expr == '10+("STEEL"=="STEEL" ? 2 : 0)'
    assert ExpressionEvaluator().evaluate(expr) == 12.0


def test_if_with_too_few_arguments_raises(transformer):
    with pytest.raises(FormulaTransformError):
        transformer.convert_if_statements("IF(1>0, 2)")


def test_if_with_unbalanced_parens_raises(transformer):
    with pytest.raises(FormulaTransformError):
        transformer.convert_if_statements("IF(1>0, 2, 3")


def test_if_with_extra_arguments_uses_first_three(transformer, caplog):
    with caplog.at_level(logging.WARNING):
        assert transformer.convert_if_statements("IF(1, 2, 3, 4)") == "(1 ? 2 : 3)"
    assert "ignoring extras" in caplog.text


def test_if_pass_limit_stops_rewriting(caplog):
    transformer = ExpressionTransformer(VariableResolver(), max_if_passes=1)
    with caplog.at_level(logging.WARNING):
        expr = transformer.convert_if_statements("IF(1, IF(0, 1, 2), 3)")
    assert expr == "(1 ? IF(0, 1, 2) : 3)"
    assert "stopped after 1 passes" in caplog.text


# --- Function names ---

def test_maps_spreadsheet_functions(transformer):
    expr = transformer.map_functions("ROUNDUP(1.2)+ROUNDDOWN(1.8)+ROUND(1.5)+MAX(1,2)+MIN(1,2)")
    assert expr == "ceil(1.2)+floor(1.8)+round(1.5)+max(1,2)+min(1,2)"


def test_function_mapping_is_case_insensitive(transformer):
    assert transformer.map_functions("roundup(2.1)") == "ceil(2.1)"
    assert transformer.map_functions("RoundDown (2.9)") == "floor (2.9)"


# --- Quoted literals ---

def test_quoted_text_with_commas_and_parens(transformer):
    ctx = _context(label="2x4, (PT)")
    expr = transformer.transform('IF([label]=="2x4, (PT)", 1, 0)', ctx)
    assert expr == '("2x4, (PT)"=="2x4, (PT)" ? 1 : 0)'
    assert ExpressionEvaluator().evaluate(expr) == 1.0


def test_function_names_inside_text_are_not_renamed(transformer):
    ctx = _context(note="ROUNDUP(x)")
    expr = transformer.transform('IF([note]=="ROUNDUP(x)", ROUNDUP(1.5), 0)', ctx)
    assert expr == '("ROUNDUP(x)"=="ROUNDUP(x)" ? ceil(1.5) : 0)'


def test_if_inside_text_is_not_rewritten(transformer):
    ctx = _context(note="IF(a, b)")
    expr = transformer.transform('IF([note]=="IF(a, b)", 1, 0)', ctx)
    assert expr == '("IF(a, b)"=="IF(a, b)" ? 1 : 0)'


# --- Helpers ---

def test_scanner_helpers():
    assert find_closing_paren("(a(b)c)", 1) == 6
    assert find_closing_paren("(a(b", 1) == -1
    assert find_closing_paren('(")")', 1) == 4
    assert split_top_level_args("a, f(b, c), 'x,y'") == ["a", " f(b, c)", " 'x,y'"]
    assert split_top_level_args("") == []


def test_format_literal():
    assert format_literal(8.0) == "8"
    assert format_literal(5.5) == "5.5"
    assert format_literal(True) == "1"
    assert format_literal(float("inf")) == "(1/0)"
    assert format_literal("WOOD") == '"WOOD"'


def test_substituted_expression_evaluates(transformer):
    ctx = _context(post_spacing=8)
    expr = transformer.transform("[post_spacing]*2", ctx)
    assert ExpressionEvaluator().evaluate(expr) == 16.0
