"""Arithmetic expressions: reference substitution, tokenizer and parser.

Grammar (after references have been replaced by numbers)::

    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("+" | "-") factor | NUMBER | "(" expr ")"

Only digits, whitespace, ``+ - * /``, ``.`` and parentheses are accepted.
The input is never handed to ``eval`` or any other code execution facility.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from decimal import Decimal

from gridcalc.calc._parser import REFERENCE_RE
from gridcalc.calc._protocol import ArithmeticSyntaxError

Number = int | float

_OPERATORS = frozenset("+-*/()")
_NUMBER_CHARS = frozenset("0123456789.")


def format_operand(value: Number) -> str:
    """Render a number as positional decimal text (no exponent notation)."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        return repr(value)
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    # Keep the decimal point so the value is read back as a float
    if "." not in text:
        text += ".0"
    return text


def substitute_references(expr: str, resolve: Callable[[str], Number]) -> str:
    """Replace every ``A1``-style token in *expr* with ``resolve(token)``."""
    return REFERENCE_RE.sub(lambda m: format_operand(resolve(m.group(0))), expr)


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def tokenize(text: str) -> list[str | Number]:
    """Split *text* into numbers and single-character operators.

    Raises ArithmeticSyntaxError on any character outside the whitelist or on
    a malformed number such as ``1.2.3``.
    """
    tokens: list[str | Number] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch in _OPERATORS:
            tokens.append(ch)
            i += 1
            continue
        if ch in _NUMBER_CHARS:
            start = i
            while i < length and text[i] in _NUMBER_CHARS:
                i += 1
            tokens.append(_parse_literal(text[start:i]))
            continue
        raise ArithmeticSyntaxError(f"Unexpected character {ch!r} at {i}")
    return tokens


def _parse_literal(literal: str) -> Number:
    if literal.count(".") > 1 or literal == ".":
        raise ArithmeticSyntaxError(f"Malformed number {literal!r}")
    if "." in literal:
        return float(literal)
    return int(literal)


# ---------------------------------------------------------------------------
# Recursive descent parser
# ---------------------------------------------------------------------------


class ArithmeticParser:
    """Evaluates a token list with the usual precedence rules.

    ``*`` and ``/`` bind tighter than ``+`` and ``-``; operators of equal
    precedence associate left to right.  Division by zero evaluates to 0.
    """

    __slots__ = ("_tokens", "_pos")

    def __init__(self, tokens: list[str | Number]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> Number:
        if not self._tokens:
            raise ArithmeticSyntaxError("Empty expression")
        value = self._expr()
        if self._pos != len(self._tokens):
            raise ArithmeticSyntaxError(
                f"Unexpected token {self._tokens[self._pos]!r}"
            )
        return value

    def _peek(self) -> str | Number | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self) -> str | Number:
        tok = self._peek()
        if tok is None:
            raise ArithmeticSyntaxError("Unexpected end of expression")
        self._pos += 1
        return tok

    def _expr(self) -> Number:
        value = self._term()
        while self._peek() in ("+", "-"):
            op = self._next()
            right = self._term()
            value = value + right if op == "+" else value - right
        return value

    def _term(self) -> Number:
        value = self._factor()
        while self._peek() in ("*", "/"):
            op = self._next()
            right = self._factor()
            if op == "*":
                value = value * right
            else:
                value = 0 if right == 0 else value / right
        return value

    def _factor(self) -> Number:
        tok = self._next()
        if tok == "-":
            return -self._factor()
        if tok == "+":
            return self._factor()
        if tok == "(":
            value = self._expr()
            if self._next() != ")":
                raise ArithmeticSyntaxError("Expected ')'")
            return value
        if isinstance(tok, str):
            raise ArithmeticSyntaxError(f"Unexpected token {tok!r}")
        return tok


def evaluate_arithmetic(text: str) -> Number:
    """Tokenize and evaluate a reference-free arithmetic expression."""
    return ArithmeticParser(tokenize(text)).parse()
