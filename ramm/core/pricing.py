"""
Internal price oracle.

Combines the instantaneous reserve ratio of each side with its TWAP over the
ring buffer, biased toward caution in both directions:
- side A (above book value) takes the lower of average and spot,
- side B (below book value) takes the higher of average and spot,
then clamps the result to [35%, 300%] of book value.

This module is pure; fetching capital/supply and persisting the ring are the
caller's job.
"""

from __future__ import annotations

from typing import Sequence

from ..state.types import Context, Observation, RammState
from .constants import DEFAULT_CONSTANTS, RammConstants
from .errors import RammPreconditionError
from .math import ACCUMULATOR_SCALE, UNIT, wrapping_sub
from .twap import observation_index

# Price bounds as percent of book value.
MAX_PRICE_PERCENT: int = 300
MIN_PRICE_PERCENT: int = 35


def spot_prices(state: RammState) -> tuple[int, int]:
    """Spot price of each side in wei per NXM: ``(eth / nxm_a, eth / nxm_b)``."""
    if state.nxm_a == 0 or state.nxm_b == 0:
        raise RammPreconditionError("virtual reserves must be non-zero")
    return UNIT * state.eth // state.nxm_a, UNIT * state.eth // state.nxm_b


def book_value(context: Context) -> int:
    """Capital per token, in wei per NXM."""
    if context.supply == 0:
        raise RammPreconditionError("supply must be non-zero")
    return UNIT * context.capital // context.supply


def price_bounds(context: Context) -> tuple[int, int]:
    """``(min_price, max_price)`` the internal price is clamped to."""
    if context.supply == 0:
        raise RammPreconditionError("supply must be non-zero")
    max_price = UNIT * MAX_PRICE_PERCENT * context.capital // context.supply // 100
    min_price = UNIT * MIN_PRICE_PERCENT * context.capital // context.supply // 100
    return min_price, max_price


def average_price(later: int, earlier: int, elapsed: int) -> int:
    """Average price between two cumulatives taken *elapsed* seconds apart."""
    if elapsed <= 0:
        raise RammPreconditionError(f"elapsed must be positive: {elapsed}")
    return wrapping_sub(later, earlier) * ACCUMULATOR_SCALE // elapsed


def calculate_internal_price(
    state: RammState,
    first_observation: Observation,
    current_observation: Observation,
    context: Context,
    now: int,
) -> int:
    """Internal NXM price from the current reserves and two ring observations."""
    spot_price_a, spot_price_b = spot_prices(state)
    elapsed = now - first_observation.timestamp

    average_price_a = average_price(
        current_observation.price_cumulative_above, first_observation.price_cumulative_above, elapsed,
    )
    average_price_b = average_price(
        current_observation.price_cumulative_below, first_observation.price_cumulative_below, elapsed,
    )

    price_a = min(average_price_a, spot_price_a)
    price_b = max(average_price_b, spot_price_b)

    internal_price = price_a + price_b - book_value(context)
    min_price, max_price = price_bounds(context)
    return max(min(internal_price, max_price), min_price)


def internal_price_from_buffer(
    state: RammState,
    observations: Sequence[Observation],
    context: Context,
    now: int,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> int:
    """Internal price using the ring already advanced to *now*.

    The current slot is the one containing *now*; the slot after it is the
    oldest one, `granularity - 1` windows back.
    """
    if len(observations) != constants.granularity:
        raise RammPreconditionError(
            f"expected {constants.granularity} observations, got {len(observations)}"
        )
    current_idx = observation_index(now, constants)
    first_idx = (current_idx + 1) % constants.granularity
    return calculate_internal_price(
        state, observations[first_idx], observations[current_idx], context, now,
    )
