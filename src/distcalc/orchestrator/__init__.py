"""Orchestrator-side state."""

from .registry import Expression, ExpressionNotFound, ExpressionRegistry, ExpressionStatus

__all__ = ["Expression", "ExpressionNotFound", "ExpressionRegistry", "ExpressionStatus"]
