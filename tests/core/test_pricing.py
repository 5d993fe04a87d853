from __future__ import annotations

import random

import pytest

from ramm.core.constants import DEFAULT_CONSTANTS
from ramm.core.errors import RammPreconditionError
from ramm.core.math import ACCUMULATOR_SCALE, CUMULATIVE_MODULUS, UNIT
from ramm.core.pricing import (
    average_price,
    book_value,
    calculate_internal_price,
    internal_price_from_buffer,
    price_bounds,
    spot_prices,
)
from ramm.core.reserves import calculate_reserves
from ramm.core.twap import initial_observations, observation_index, update_twap
from ramm.state.types import Context, Observation, RammState

T0 = 1_700_000_000

CAPITAL = 150_000 * UNIT
SUPPLY = 7_500_000 * UNIT
BOOK_VALUE = 2 * 10**16


def _context() -> Context:
    return Context(capital=CAPITAL, supply=SUPPLY, mcr=100_000 * UNIT)


def _state_with_spots(spot_a: int, spot_b: int, *, timestamp: int = T0) -> RammState:
    eth = 5_000 * UNIT
    return RammState(
        nxm_a=eth * UNIT // spot_a,
        nxm_b=eth * UNIT // spot_b,
        eth=eth,
        budget=0,
        ratchet_speed_b=400,
        timestamp=timestamp,
    )


def _observations_with_average(avg_a: int, avg_b: int, elapsed: int) -> tuple[Observation, Observation]:
    first = Observation(timestamp=T0 - elapsed, price_cumulative_above=0, price_cumulative_below=0)
    current = Observation(
        timestamp=T0,
        price_cumulative_above=avg_a * elapsed // ACCUMULATOR_SCALE,
        price_cumulative_below=avg_b * elapsed // ACCUMULATOR_SCALE,
    )
    return first, current


def test_book_value_and_bounds() -> None:
    ctx = _context()
    assert book_value(ctx) == BOOK_VALUE
    assert price_bounds(ctx) == (BOOK_VALUE * 35 // 100, BOOK_VALUE * 3)


def test_spot_prices() -> None:
    state = _state_with_spots(BOOK_VALUE * 104 // 100, BOOK_VALUE * 96 // 100)
    spot_a, spot_b = spot_prices(state)
    assert abs(spot_a - BOOK_VALUE * 104 // 100) <= 1
    assert abs(spot_b - BOOK_VALUE * 96 // 100) <= 1


def test_internal_price_takes_lower_a_and_higher_b() -> None:
    ctx = _context()
    state = _state_with_spots(BOOK_VALUE * 110 // 100, BOOK_VALUE * 90 // 100)
    spot_a, spot_b = spot_prices(state)
    elapsed = 6 * 86_400

    # Averages on the other side of spot: A uses its average, B its average.
    first, current = _observations_with_average(BOOK_VALUE * 105 // 100, BOOK_VALUE * 95 // 100, elapsed)
    avg_a = average_price(current.price_cumulative_above, first.price_cumulative_above, elapsed)
    avg_b = average_price(current.price_cumulative_below, first.price_cumulative_below, elapsed)
    price = calculate_internal_price(state, first, current, ctx, T0)
    assert price == avg_a + avg_b - BOOK_VALUE

    # Averages beyond spot: both sides fall back to spot.
    first, current = _observations_with_average(BOOK_VALUE * 120 // 100, BOOK_VALUE * 80 // 100, elapsed)
    price = calculate_internal_price(state, first, current, ctx, T0)
    assert price == spot_a + spot_b - BOOK_VALUE


@pytest.mark.parametrize(
    ("spot_pct", "expected"),
    [
        (1_000, BOOK_VALUE * 3),
        (10, BOOK_VALUE * 35 // 100),
    ],
)
def test_internal_price_is_clamped(spot_pct: int, expected: int) -> None:
    ctx = _context()
    spot = BOOK_VALUE * spot_pct // 100
    state = _state_with_spots(spot, spot)
    first, current = _observations_with_average(spot, spot, 86_400)

    assert calculate_internal_price(state, first, current, ctx, T0) == expected


def test_internal_price_always_within_bounds() -> None:
    ctx = _context()
    min_price, max_price = price_bounds(ctx)
    rng = random.Random(7)

    for _ in range(300):
        spot_a = rng.randrange(BOOK_VALUE // 100, BOOK_VALUE * 20)
        spot_b = rng.randrange(BOOK_VALUE // 100, BOOK_VALUE * 20)
        avg_a = rng.randrange(BOOK_VALUE // 100, BOOK_VALUE * 20)
        avg_b = rng.randrange(BOOK_VALUE // 100, BOOK_VALUE * 20)
        elapsed = rng.randrange(1, 9 * 86_400)
        state = _state_with_spots(spot_a, spot_b)
        first, current = _observations_with_average(avg_a, avg_b, elapsed)

        price = calculate_internal_price(state, first, current, ctx, T0)
        assert min_price <= price <= max_price


def test_average_price_is_unaffected_by_wraparound() -> None:
    elapsed = 3 * 86_400
    increment = (BOOK_VALUE * elapsed) // ACCUMULATOR_SCALE
    earlier = CUMULATIVE_MODULUS - increment // 3
    later = (earlier + increment) % CUMULATIVE_MODULUS

    assert later < earlier
    assert average_price(later, earlier, elapsed) == increment * ACCUMULATOR_SCALE // elapsed
    assert average_price(increment, 0, elapsed) == average_price(later, earlier, elapsed)


def _shift_ring(ring: tuple[Observation, ...], above: int, below: int) -> tuple[Observation, ...]:
    return tuple(
        Observation(
            timestamp=obs.timestamp,
            price_cumulative_above=(obs.price_cumulative_above + above) % CUMULATIVE_MODULUS,
            price_cumulative_below=(obs.price_cumulative_below + below) % CUMULATIVE_MODULUS,
        )
        for obs in ring
    )


def test_internal_price_survives_wrap_at_window_boundary() -> None:
    ctx = _context()
    period = DEFAULT_CONSTANTS.period_size
    state = _state_with_spots(BOOK_VALUE * 104 // 100, BOOK_VALUE * 96 // 100)
    plain = initial_observations(state)
    latest = plain[observation_index(T0)]
    # Put the newest seeded cumulatives one tick below 2**64 so the next boundary wraps.
    shift_a = CUMULATIVE_MODULUS - 1 - latest.price_cumulative_above
    shift_b = CUMULATIVE_MODULUS - 1 - latest.price_cumulative_below
    shifted = _shift_ring(plain, shift_a, shift_b)
    now = T0 + 2 * period + 4_321

    plain_after = update_twap(state, plain, ctx, now)
    shifted_after = update_twap(state, shifted, ctx, now)

    boundary = -(-now // period) - 1
    slot = boundary % DEFAULT_CONSTANTS.granularity
    assert shifted_after[slot].timestamp == boundary * period
    assert shifted_after[slot].price_cumulative_above < shifted[observation_index(T0)].price_cumulative_above
    assert shifted_after[slot].price_cumulative_below < shifted[observation_index(T0)].price_cumulative_below

    current = calculate_reserves(state, ctx, now).state
    assert internal_price_from_buffer(current, shifted_after, ctx, now) == internal_price_from_buffer(
        current, plain_after, ctx, now
    )


def test_average_price_requires_elapsed_time() -> None:
    with pytest.raises(RammPreconditionError):
        average_price(10, 0, 0)


def test_internal_price_right_after_initialization_matches_spot() -> None:
    ctx = _context()
    state = _state_with_spots(BOOK_VALUE * 104 // 100, BOOK_VALUE * 96 // 100)
    ring = initial_observations(state)

    price = internal_price_from_buffer(state, ring, ctx, T0)

    spot_a, spot_b = spot_prices(state)
    min_price, max_price = price_bounds(ctx)
    expected = max(min(spot_a + spot_b - BOOK_VALUE, max_price), min_price)
    assert abs(price - expected) <= 10_000


def test_internal_price_after_advancing_the_ring_is_bounded() -> None:
    ctx = _context()
    state = _state_with_spots(BOOK_VALUE * 104 // 100, BOOK_VALUE * 96 // 100)
    ring = initial_observations(state)
    now = T0 + 4 * 86_400 + 123

    advanced = update_twap(state, ring, ctx, now)
    current = calculate_reserves(state, ctx, now).state
    price = internal_price_from_buffer(current, advanced, ctx, now)

    min_price, max_price = price_bounds(ctx)
    assert min_price <= price <= max_price
    # Side A only falls and side B only rises, so both legs resolve to spot.
    spot_a, spot_b = spot_prices(current)
    assert price >= spot_a + spot_b - BOOK_VALUE - 10_000


def test_internal_price_from_buffer_rejects_wrong_ring_length() -> None:
    state = _state_with_spots(BOOK_VALUE, BOOK_VALUE)
    ring = initial_observations(state)
    with pytest.raises(RammPreconditionError):
        internal_price_from_buffer(state, ring[:1], _context(), T0)


def test_zero_supply_is_rejected() -> None:
    with pytest.raises(RammPreconditionError):
        book_value(Context(capital=CAPITAL, supply=0, mcr=0))
