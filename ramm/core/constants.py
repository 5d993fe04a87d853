"""Deployment constants for the reserve engine.

`RammConstants()` carries the production defaults. Alternative deployments
(tests, simulations) load overrides from YAML with `load_constants()`.

Units/conventions:
- `*_period`, `period_size` are seconds.
- `target_liquidity`, `fast_liquidity_speed`, `initial_*` are wei (1e18 = 1 ETH).
- `liq_speed_a`, `liq_speed_b` are whole ETH per `liq_speed_period`.
- ratchet speeds are scaled by `ratchet_denominator` per `ratchet_period`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .math import UNIT

DAY: int = 86_400


@dataclass(frozen=True)
class RammConstants:
    """Immutable engine configuration."""

    # TWAP ring buffer
    period_size: int = 3 * DAY
    granularity: int = 3

    # Ratchet
    ratchet_period: int = DAY
    ratchet_denominator: int = 10_000
    normal_ratchet_speed: int = 400
    fast_ratchet_speed: int = 5_000

    # Book value spread
    price_buffer: int = 100
    price_buffer_denominator: int = 10_000

    # Liquidity flow
    target_liquidity: int = 5_000 * UNIT
    liq_speed_a: int = 100
    liq_speed_b: int = 100
    liq_speed_period: int = DAY
    fast_liquidity_speed: int = 1_500 * UNIT

    # Initialization
    initial_liquidity: int = 5_000 * UNIT
    initial_budget: int = 43_835 * UNIT

    def __post_init__(self) -> None:
        for f in fields(self):
            val = getattr(self, f.name)
            if not isinstance(val, int) or isinstance(val, bool):
                raise TypeError(f"{f.name} must be an int")
            if val < 0:
                raise ValueError(f"{f.name} must be non-negative: {val}")
        for name in (
            "period_size",
            "ratchet_period",
            "ratchet_denominator",
            "normal_ratchet_speed",
            "price_buffer_denominator",
            "target_liquidity",
            "liq_speed_period",
            "fast_liquidity_speed",
        ):
            if getattr(self, name) == 0:
                raise ValueError(f"{name} must be positive")
        # The oldest slot must sit at least two full periods behind the current one.
        if self.granularity < 3:
            raise ValueError(f"granularity must be >= 3: {self.granularity}")
        if self.price_buffer >= self.price_buffer_denominator:
            raise ValueError(
                f"price_buffer must be < price_buffer_denominator: "
                f"{self.price_buffer} >= {self.price_buffer_denominator}"
            )


DEFAULT_CONSTANTS = RammConstants()

CONSTANT_NAMES: tuple[str, ...] = tuple(RammConstants.__dataclass_fields__)


def constants_from_mapping(d: Mapping[str, Any]) -> RammConstants:
    """Build constants from a mapping of overrides. Unknown keys are rejected."""
    unknown = sorted(set(d) - set(CONSTANT_NAMES))
    if unknown:
        raise ValueError(f"unknown constants: {', '.join(unknown)}")
    return RammConstants(**dict(d))


def load_constants(path: Path | str) -> RammConstants:
    """Load constants from a YAML file (a flat mapping of overrides)."""
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if obj is None:
        return DEFAULT_CONSTANTS
    if not isinstance(obj, Mapping):
        raise TypeError("constants YAML must be a mapping")
    return constants_from_mapping(obj)
