"""Imperative shell: the stateful engine facade."""

from .engine import RammEngine, Reserves, SwapResult

__all__ = ["RammEngine", "Reserves", "SwapResult"]
