"""Compile infix arithmetic expressions into ordered lists of binary tasks.

The pipeline is tokenize -> shunting-yard (infix to postfix) -> postfix walk.
Every operator's value is computed while walking the postfix stream so the
emitted tasks already carry concrete operands; agents re-do the arithmetic to
simulate cost, not to discover the answer.
"""

from __future__ import annotations

import math
import re
from typing import List

from .base import (
    OPERATORS,
    CompiledExpression,
    InvalidCharacter,
    InvalidExpression,
    MismatchedParentheses,
    Task,
    apply_operation,
)

PRECEDENCE = {"+": 1, "-": 1, "*": 2, "/": 2}
DEFAULT_OPERATION_TIME = 1.0

_NUMBER = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def is_number(token: str) -> bool:
    return bool(_NUMBER.match(token))


def is_operator(token: str) -> bool:
    return token in OPERATORS


def tokenize(expression: str) -> List[str]:
    """Split an expression into numbers, operators and parentheses.

    A ``-`` at position 0 or right after ``(`` starts a negative literal.
    Anything that is not whitespace, an operator or a parenthesis is glued
    onto the current literal and rejected later when parsed.
    """

    tokens: List[str] = []
    current: List[str] = []
    for index, char in enumerate(expression):
        if char.isspace():
            continue
        if char in OPERATORS or char in "()":
            if current:
                tokens.append("".join(current))
                current = []
            if char == "-" and (index == 0 or expression[index - 1] == "("):
                current.append(char)
            else:
                tokens.append(char)
        else:
            current.append(char)
    if current:
        tokens.append("".join(current))
    return tokens


def infix_to_postfix(tokens: List[str]) -> List[str]:
    output: List[str] = []
    operators: List[str] = []
    for token in tokens:
        if is_number(token):
            output.append(token)
        elif token == "(":
            operators.append(token)
        elif token == ")":
            while operators and operators[-1] != "(":
                output.append(operators.pop())
            if not operators:
                raise MismatchedParentheses()
            operators.pop()
        elif is_operator(token):
            # "(" has no entry in PRECEDENCE and acts as a barrier
            while operators and PRECEDENCE.get(operators[-1], 0) >= PRECEDENCE[token]:
                output.append(operators.pop())
            operators.append(token)
        else:
            raise InvalidCharacter(token)

    while operators:
        operator = operators.pop()
        if operator == "(":
            raise MismatchedParentheses()
        output.append(operator)
    return output


def postfix_to_tasks(
    expression_id: int,
    postfix: List[str],
    operation_time: float = DEFAULT_OPERATION_TIME,
) -> CompiledExpression:
    stack: List[float] = []
    tasks: List[Task] = []
    for token in postfix:
        if is_number(token):
            number = float(token)
            # out-of-range literals such as 1e999 overflow to inf
            if not math.isfinite(number):
                raise InvalidCharacter(token)
            stack.append(number)
        elif is_operator(token):
            if len(stack) < 2:
                raise InvalidExpression()
            right = stack.pop()
            left = stack.pop()
            value = apply_operation(token, left, right)
            tasks.append(
                Task(
                    id=expression_id,
                    arg1=left,
                    arg2=right,
                    operation=token,
                    operation_time=operation_time,
                    seq=len(tasks),
                )
            )
            stack.append(value)
        else:
            raise InvalidCharacter(token)

    if len(stack) != 1:
        raise InvalidExpression()
    return CompiledExpression(tasks=tasks, value=stack[0])


def compile_expression(
    expression_id: int,
    expression: str,
    operation_time: float = DEFAULT_OPERATION_TIME,
) -> CompiledExpression:
    """Turn ``expression`` into the tasks that evaluate it, in evaluation order."""

    if not expression:
        raise InvalidExpression()
    postfix = infix_to_postfix(tokenize(expression))
    return postfix_to_tasks(expression_id, postfix, operation_time)


def calculate(expression: str) -> float:
    """Evaluate ``expression`` locally through the same pipeline."""

    return compile_expression(0, expression).value
