"""
TWAP accumulator over a fixed-size ring of observations.

Each ring slot holds the cumulative (time-integrated) price of both sides at
the end of one `period_size` window. Advancing the ring walks forward one
window at a time, fast-forwarding the reserves to each window end and
integrating price over the window:
- while a side is on its ratchet, by the trapezoid of its start/end spot price,
- once it reaches book value, by the (constant) buffered book value price.

Cumulatives are scaled down by 1e9 and wrap modulo 2**64; consumers must
difference two cumulatives with `wrapping_sub`.
"""

from __future__ import annotations

from typing import Sequence

from ..state.types import Context, Observation, RammState
from .constants import DEFAULT_CONSTANTS, RammConstants
from .errors import RammPreconditionError
from .math import ACCUMULATOR_SCALE, UNIT, div_ceil, wrap_cumulative
from .reserves import calculate_reserves, check_preconditions, time_till_book_value


def observation_index(timestamp: int, constants: RammConstants = DEFAULT_CONSTANTS) -> int:
    """Ring slot of an observation taken at *timestamp*."""
    return div_ceil(timestamp, constants.period_size) % constants.granularity


def _split_elapsed(elapsed: int, time_till_bv: int) -> tuple[int, int]:
    time_on_ratchet = min(elapsed, time_till_bv)
    return time_on_ratchet, elapsed - time_on_ratchet


def twap_above_for_period(
    previous: RammState,
    state: RammState,
    elapsed: int,
    time_till_bv: int,
    context: Context,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> int:
    """Side A price integral over one step, scaled by 1e9."""
    time_on_ratchet, time_on_bv = _split_elapsed(elapsed, time_till_bv)
    on_ratchet = (
        UNIT
        * (previous.eth * state.nxm_a + state.eth * previous.nxm_a)
        * time_on_ratchet
        // previous.nxm_a
        // state.nxm_a
        // 2
        // ACCUMULATOR_SCALE
    )
    on_bv = (
        UNIT
        * time_on_bv
        * context.capital
        * (constants.price_buffer_denominator + constants.price_buffer)
        // context.supply
        // constants.price_buffer_denominator
        // ACCUMULATOR_SCALE
    )
    return on_ratchet + on_bv


def twap_below_for_period(
    previous: RammState,
    state: RammState,
    elapsed: int,
    time_till_bv: int,
    context: Context,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> int:
    """Side B price integral over one step, scaled by 1e9."""
    time_on_ratchet, time_on_bv = _split_elapsed(elapsed, time_till_bv)
    on_ratchet = (
        UNIT
        * (previous.eth * state.nxm_b + state.eth * previous.nxm_b)
        * time_on_ratchet
        // previous.nxm_b
        // state.nxm_b
        // 2
        // ACCUMULATOR_SCALE
    )
    on_bv = (
        UNIT
        * time_on_bv
        * context.capital
        * (constants.price_buffer_denominator - constants.price_buffer)
        // context.supply
        // constants.price_buffer_denominator
        // ACCUMULATOR_SCALE
    )
    return on_ratchet + on_bv


def calculate_observation(
    state: RammState,
    previous: RammState,
    previous_observation: Observation,
    context: Context,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> Observation:
    """Extend *previous_observation* from `previous.timestamp` to `state.timestamp`."""
    elapsed = state.timestamp - previous.timestamp
    max_time_a, max_time_b = time_till_book_value(previous, context, constants)
    above = twap_above_for_period(previous, state, elapsed, max_time_a, context, constants)
    below = twap_below_for_period(previous, state, elapsed, max_time_b, context, constants)
    return Observation(
        timestamp=state.timestamp,
        price_cumulative_above=wrap_cumulative(previous_observation.price_cumulative_above + above),
        price_cumulative_below=wrap_cumulative(previous_observation.price_cumulative_below + below),
    )


def update_twap(
    previous: RammState,
    observations: Sequence[Observation],
    context: Context,
    now: int,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> tuple[Observation, ...]:
    """Advance the ring from `previous.timestamp` to *now*.

    Every window between the two instants is integrated (the last one may be a
    partial window ending at *now*). Windows ending at or before the state's
    timestamp are already finalized and left untouched, so calling this again
    with the same *now* after committing its result is a no-op.

    Returns a new tuple; the caller persists it together with the state.
    """
    if len(observations) != constants.granularity:
        raise RammPreconditionError(
            f"expected {constants.granularity} observations, got {len(observations)}"
        )
    check_preconditions(previous, context, now)

    latest = observations[observation_index(previous.timestamp, constants)]
    if latest.timestamp != previous.timestamp:
        raise RammPreconditionError(
            f"observation ring out of sync: latest={latest.timestamp} state={previous.timestamp}"
        )

    ring = list(observations)
    state = previous
    start_idx = div_ceil(previous.timestamp, constants.period_size)
    end_idx = div_ceil(now, constants.period_size)

    for i in range(start_idx, end_idx + 1):
        timestamp = min(now, constants.period_size * i)
        if timestamp <= state.timestamp:
            continue
        previous_observation = ring[observation_index(state.timestamp, constants)]
        next_state = calculate_reserves(state, context, timestamp, constants).state
        ring[i % constants.granularity] = calculate_observation(
            next_state, state, previous_observation, context, constants,
        )
        state = next_state

    return tuple(ring)


def initial_observations(
    state: RammState,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> tuple[Observation, ...]:
    """Seed the ring as if the initial spot prices had held for the past windows.

    The slot of `state.timestamp` is stamped at that instant; older slots sit on
    window boundaries, the oldest carrying zero cumulatives.
    """
    if state.nxm_a == 0 or state.nxm_b == 0:
        raise RammPreconditionError("virtual reserves must be non-zero")
    end_idx = div_ceil(state.timestamp, constants.period_size)
    first_idx = end_idx - constants.granularity + 1
    if first_idx < 0:
        raise RammPreconditionError(
            f"timestamp too early to seed {constants.granularity} windows: {state.timestamp}"
        )

    spot_a = UNIT * state.eth // state.nxm_a
    spot_b = UNIT * state.eth // state.nxm_b
    base = constants.period_size * first_idx

    def seeded(i: int) -> Observation:
        timestamp = state.timestamp if i == end_idx else constants.period_size * i
        elapsed = timestamp - base
        return Observation(
            timestamp=timestamp,
            price_cumulative_above=wrap_cumulative(spot_a * elapsed // ACCUMULATOR_SCALE),
            price_cumulative_below=wrap_cumulative(spot_b * elapsed // ACCUMULATOR_SCALE),
        )

    # Slot s holds the unique window index in [first_idx, end_idx] congruent to s.
    granularity = constants.granularity
    return tuple(seeded(first_idx + (slot - first_idx) % granularity) for slot in range(granularity))
