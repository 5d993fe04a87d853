"""Fixed-point helpers for the reserve engine.

Every function is stateless and operates on plain Python ints. Rounding is
explicit: `//` (floor) everywhere, never true division.
"""

from __future__ import annotations

UNIT: int = 10**18
ACCUMULATOR_SCALE: int = 10**9
CUMULATIVE_MODULUS: int = 2**64


def div_ceil(a: int, b: int) -> int:
    """Ceiling division for non-negative *a* and positive *b*."""
    if b <= 0:
        raise ValueError(f"divisor must be positive: {b}")
    return -(-a // b)


def wrap_cumulative(value: int) -> int:
    """Reduce a cumulative price into the 64-bit accumulator domain."""
    return value % CUMULATIVE_MODULUS


def wrapping_sub(later: int, earlier: int) -> int:
    """``later - earlier`` modulo 2**64 (cumulatives are allowed to wrap)."""
    return (later - earlier) % CUMULATIVE_MODULUS


def buffered_capital_above(capital: int, price_buffer: int, denominator: int) -> int:
    """Capital scaled up by the price buffer: ``capital * (den + buf) / den``."""
    return capital * (denominator + price_buffer) // denominator


def buffered_capital_below(capital: int, price_buffer: int, denominator: int) -> int:
    """Capital scaled down by the price buffer: ``capital * (den - buf) / den``."""
    return capital * (denominator - price_buffer) // denominator


def ratchet_addend(
    nxm: int,
    elapsed: int,
    speed: int,
    capital: int,
    supply: int,
    ratchet_period: int,
    ratchet_denominator: int,
) -> int:
    """ETH-denominated ratchet shift: ``nxm * elapsed * speed * capital / supply / period / den``."""
    return nxm * elapsed * speed * capital // supply // ratchet_period // ratchet_denominator
