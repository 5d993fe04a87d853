"""Data types for the reserve engine.

All types are frozen dataclasses (immutable) holding plain ints.

Units/conventions:
- `eth`, `budget`, `capital`, `mcr` are wei.
- `nxm_a`, `nxm_b`, `supply` are token base units (1e18 = 1 NXM).
- Side A ("above") is priced above book value, side B ("below") under it.
- cumulative prices are 1e9-scaled price-seconds, wrapped into 64 bits.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.math import CUMULATIVE_MODULUS


def _require_uint(name: str, val: object) -> None:
    if not isinstance(val, int) or isinstance(val, bool):
        raise TypeError(f"{name} must be an int")
    if val < 0:
        raise ValueError(f"{name} must be non-negative: {val}")


@dataclass(frozen=True)
class RammState:
    """The single persisted record: virtual reserves, budget and last update time."""

    nxm_a: int
    nxm_b: int
    eth: int
    budget: int
    ratchet_speed_b: int
    timestamp: int

    def __post_init__(self) -> None:
        for name in ("nxm_a", "nxm_b", "eth", "budget", "ratchet_speed_b", "timestamp"):
            _require_uint(name, getattr(self, name))


@dataclass(frozen=True)
class Observation:
    """One finalized (or in-progress) TWAP ring slot."""

    timestamp: int
    price_cumulative_above: int
    price_cumulative_below: int

    def __post_init__(self) -> None:
        _require_uint("timestamp", self.timestamp)
        for name in ("price_cumulative_above", "price_cumulative_below"):
            val = getattr(self, name)
            _require_uint(name, val)
            if val >= CUMULATIVE_MODULUS:
                raise ValueError(f"{name} must fit in 64 bits: {val}")


@dataclass(frozen=True)
class Context:
    """Per-call inputs owned by external collaborators (pool, token, MCR)."""

    capital: int
    supply: int
    mcr: int

    def __post_init__(self) -> None:
        for name in ("capital", "supply", "mcr"):
            _require_uint(name, getattr(self, name))
