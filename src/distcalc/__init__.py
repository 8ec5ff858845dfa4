"""Distributed arithmetic calculator: orchestrator, agents and expression compiler."""

from importlib import metadata

try:
    __version__ = metadata.version("distcalc")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for dev
    __version__ = "0.0.0"

__all__ = ["__version__"]
