"""
services/calculator.py: Scientific calculator backed by SymPy.

Grammar: numbers, + - * / ^ ( ), sin cos tan sqrt, ln (natural log),
log (base 10), pi, e, with implicit multiplication ("2pi", "3(4+1)").
Input is screened against that grammar before SymPy ever parses it.

SymPy only builds the expression tree (``evaluate(False)``); the tree is then
reduced with double-precision floats, so huge powers overflow to Infinity
instead of being computed exactly.
"""

import cmath
import math
import re
from functools import reduce
from tokenize import TokenError

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication,
    parse_expr,
    standard_transformations,
)

TRANSFORMS = standard_transformations + (implicit_multiplication, convert_xor)

SIGNIFICANT_DIGITS = 10

_NAMES = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "sqrt": sp.sqrt,
    "ln": sp.log,
    "log": lambda x: sp.log(x, 10),
    "log10": lambda x: sp.log(x, 10),
    "pi": sp.pi,
    "e": sp.E,
}

_ALLOWED_CHARS_RE = re.compile(r"^[0-9A-Za-z.+\-*/^()\s]+$")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z_0-9]*")
_EXP_RE = re.compile(r"e([+-])0*(\d)")


class CalculationError(ValueError):
    pass


def _screen(expression: str) -> str:
    expr = expression.strip()
    if not expr or not _ALLOWED_CHARS_RE.match(expr):
        raise CalculationError("Invalid characters in expression")
    for name in _NAME_RE.findall(expr):
        if name not in _NAMES:
            raise CalculationError(f"Unknown name: {name}")
    return expr


def format_number(value: float) -> str:
    """Round to 10 significant digits and print without trailing zeros ("1024", "0.6666666667")."""
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    rounded = float(f"{value:.{SIGNIFICANT_DIGITS}g}")
    if rounded.is_integer() and abs(rounded) < 1e21:
        return str(int(rounded))
    return _EXP_RE.sub(r"e\1\2", repr(rounded))


# ── numeric reduction ─────────────────────────────────────────────────────────

def _real(value):
    if isinstance(value, complex) and value.imag == 0:
        return value.real
    return value


def _power(base, exponent):
    if base == 0 and exponent.real < 0:
        return math.inf
    if exponent == 0.5:
        return _sqrt(base)
    try:
        return base ** exponent
    except OverflowError:
        if isinstance(base, complex) or isinstance(exponent, complex):
            raise CalculationError("Result is too large")
        odd = exponent.is_integer() and exponent % 2 == 1
        return -math.inf if base < 0 and odd else math.inf


def _sqrt(value):
    if isinstance(value, complex) or value < 0:
        return cmath.sqrt(value)
    return math.sqrt(value)


def _ln(value):
    if value == 0:
        return -math.inf
    if isinstance(value, complex) or value < 0:
        return cmath.log(value)
    return math.log(value)


def _trig(real_fn, complex_fn):
    def apply(value):
        return complex_fn(value) if isinstance(value, complex) else real_fn(value)
    return apply


_FUNCTIONS = {
    sp.sin: _trig(math.sin, cmath.sin),
    sp.cos: _trig(math.cos, cmath.cos),
    sp.tan: _trig(math.tan, cmath.tan),
}


def _numeric(node):
    """Reduce an unevaluated SymPy tree to a float or complex."""
    if not node.args:
        if not node.is_number:
            raise CalculationError("Expression has unknown symbols")
        try:
            return float(node)
        except OverflowError:
            return math.inf

    args = [_numeric(arg) for arg in node.args]
    if node.is_Add:
        value = sum(args)
    elif node.is_Mul:
        value = reduce(lambda a, b: a * b, args)
    elif node.is_Pow:
        value = _power(*args)
    elif node.func is sp.log:
        value = _ln(args[0])
        if len(args) == 2:
            value = value / _ln(args[1])
    elif node.func in _FUNCTIONS:
        value = _FUNCTIONS[node.func](*args)
    else:
        raise CalculationError(f"Unsupported operation: {node.func.__name__}")
    return _real(value)


def _format_result(value) -> str:
    real, imag = (value.real, value.imag) if isinstance(value, complex) else (value, 0.0)
    if math.isnan(real) or math.isnan(imag):
        raise CalculationError("Result is not a number")
    if imag == 0:
        return format_number(real)

    imag_part = "i" if abs(imag) == 1 else f"{format_number(abs(imag))}i"
    if real == 0:
        return imag_part if imag > 0 else f"-{imag_part}"
    sign = "+" if imag > 0 else "-"
    return f"{format_number(real)} {sign} {imag_part}"


def evaluate_expression(expression: str) -> str:
    """Evaluate a calculator expression and return the display string; raises CalculationError."""
    expr = _screen(expression)
    try:
        with sp.evaluate(False):
            parsed = parse_expr(expr, local_dict=dict(_NAMES), transformations=TRANSFORMS)
        if not isinstance(parsed, sp.Basic) or parsed.free_symbols:
            raise CalculationError("Expression has unknown symbols")
        value = _numeric(parsed)
    except CalculationError:
        raise
    except (SyntaxError, TokenError, TypeError, ValueError, ZeroDivisionError, AttributeError,
            sp.SympifyError) as exc:
        raise CalculationError(str(exc) or "Invalid expression") from exc
    return _format_result(value)
