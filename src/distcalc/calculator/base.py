"""Task dataclasses and error types shared by the orchestrator and agents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

OPERATORS = ("+", "-", "*", "/")


class CalculatorError(ValueError):
    """Base class for expression compilation and task execution errors."""

    message = "calculation error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class InvalidExpression(CalculatorError):
    message = "invalid expression"


class MismatchedParentheses(CalculatorError):
    message = "mismatched parentheses"


class InvalidCharacter(CalculatorError):
    """Raised for a token that is neither a number, an operator nor a parenthesis."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"invalid character: {token}")


class DivisionByZero(CalculatorError):
    message = "division by zero"


class UnknownOperation(CalculatorError):
    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"unknown operation: {operation}")


def apply_operation(operation: str, arg1: float, arg2: float) -> float:
    """Apply one of the four supported binary operators."""

    if operation == "+":
        return arg1 + arg2
    if operation == "-":
        return arg1 - arg2
    if operation == "*":
        return arg1 * arg2
    if operation == "/":
        if arg2 == 0:
            raise DivisionByZero()
        return arg1 / arg2
    raise UnknownOperation(operation)


@dataclass
class Task:
    """One elementary binary operation belonging to an expression.

    ``id`` is the owning expression's identifier, not a unique task id.
    ``seq`` is the task's position in the expression's evaluation order.
    """

    id: int
    arg1: float
    arg2: float
    operation: str
    operation_time: float = 1.0
    seq: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "arg1": self.arg1,
            "arg2": self.arg2,
            "operation": self.operation,
            "operation_time": int(round(self.operation_time * 1000)),
            "seq": self.seq,
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Task":
        missing = [key for key in ("id", "arg1", "arg2", "operation") if key not in data]
        if missing:
            raise ValueError(f"Task payload is missing keys: {', '.join(missing)}")
        return cls(
            id=int(data["id"]),
            arg1=float(data["arg1"]),
            arg2=float(data["arg2"]),
            operation=str(data["operation"]),
            operation_time=float(data.get("operation_time", 0)) / 1000,
            seq=int(data.get("seq", 0)),
        )


@dataclass
class CompiledExpression:
    """Result of compiling an infix expression."""

    tasks: list[Task]
    value: float
