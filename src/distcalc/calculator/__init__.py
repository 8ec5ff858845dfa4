"""Expression compiler and task primitives."""

from .base import (
    CalculatorError,
    CompiledExpression,
    DivisionByZero,
    InvalidCharacter,
    InvalidExpression,
    MismatchedParentheses,
    Task,
    UnknownOperation,
    apply_operation,
)
from .compiler import calculate, compile_expression, infix_to_postfix, tokenize

__all__ = [
    "CalculatorError",
    "CompiledExpression",
    "DivisionByZero",
    "InvalidCharacter",
    "InvalidExpression",
    "MismatchedParentheses",
    "Task",
    "UnknownOperation",
    "apply_operation",
    "calculate",
    "compile_expression",
    "infix_to_postfix",
    "tokenize",
]
