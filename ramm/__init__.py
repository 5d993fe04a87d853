"""
RAMM: deterministic reserve engine for a two-sided virtual ETH/NXM market.

Public API:
- `calculate_reserves(previous, context, now)`: pure fast-forward
- `update_twap(previous, observations, context, now)`: pure ring advance
- `internal_price_from_buffer(state, observations, context, now)`: pure price
- `StateStore` / `RammEngine`: persisted record and stateful entry points
"""

from .core import (
    DEFAULT_CONSTANTS,
    RammConstants,
    RammError,
    RammPreconditionError,
    SwapRejectedError,
    calculate_reserves,
    internal_price_from_buffer,
    load_constants,
    update_twap,
)
from .integration import RammEngine, Reserves, SwapResult
from .state import Context, Observation, RammState
from .state.store import StateStore

__all__ = [
    "DEFAULT_CONSTANTS",
    "RammConstants",
    "RammError",
    "RammPreconditionError",
    "SwapRejectedError",
    "calculate_reserves",
    "internal_price_from_buffer",
    "load_constants",
    "update_twap",
    "RammEngine",
    "Reserves",
    "SwapResult",
    "Context",
    "Observation",
    "RammState",
    "StateStore",
]
