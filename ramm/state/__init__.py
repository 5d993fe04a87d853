"""
Persisted state of the RAMM engine.

`StateStore` lives in `ramm.state.store` (it depends on the core TWAP index).
"""

from .packing import PackedSlots, pack_state, unpack_state
from .state_root import compute_state_root
from .types import Context, Observation, RammState

__all__ = [
    "PackedSlots",
    "pack_state",
    "unpack_state",
    "compute_state_root",
    "Context",
    "Observation",
    "RammState",
]
