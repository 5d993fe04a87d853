"""
Reserve calculator: fast-forwards the persisted RAMM state to a given instant.

This is the pure core of the engine. Given the previous state, the external
context (capital, supply, MCR) and the current timestamp it derives:
- the ETH injected into (or extracted from) the virtual reserve since the last
  update, steering toward `target_liquidity`,
- the NXM reserve of each side, moved along its ratchet but never past book
  value (book value +/- the price buffer).

The ratchet/book-value choice is a pure function of elapsed time; no flag is
persisted. Economic edge cases are clamped, only precondition violations raise.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..state.types import Context, RammState
from .constants import DEFAULT_CONSTANTS, RammConstants
from .errors import RammPreconditionError
from .math import UNIT, buffered_capital_above, buffered_capital_below, ratchet_addend


@dataclass(frozen=True)
class ReservesResult:
    """Fast-forwarded state plus the liquidity moved to reach it."""

    state: RammState
    injected: int
    extracted: int


def check_preconditions(previous: RammState, context: Context, now: int) -> None:
    """Raise `RammPreconditionError` when no meaningful answer exists."""
    if context.capital == 0:
        raise RammPreconditionError("capital must be non-zero")
    if context.supply == 0:
        raise RammPreconditionError("supply must be non-zero")
    if previous.eth == 0 or previous.nxm_a == 0 or previous.nxm_b == 0:
        raise RammPreconditionError(
            f"virtual reserves must be non-zero: eth={previous.eth} "
            f"nxm_a={previous.nxm_a} nxm_b={previous.nxm_b}"
        )
    if previous.ratchet_speed_b == 0:
        raise RammPreconditionError("ratchet_speed_b must be non-zero")
    if now < previous.timestamp:
        raise RammPreconditionError(f"time moved backwards: now={now} < timestamp={previous.timestamp}")


def _buffered_capitals(context: Context, constants: RammConstants) -> tuple[int, int]:
    above = buffered_capital_above(context.capital, constants.price_buffer, constants.price_buffer_denominator)
    below = buffered_capital_below(context.capital, constants.price_buffer, constants.price_buffer_denominator)
    if below == 0:
        raise RammPreconditionError(f"capital too small to price: {context.capital}")
    return above, below


def eth_to_extract(eth: int, elapsed: int, constants: RammConstants) -> int:
    """ETH leaving the virtual reserve while it sits above target."""
    if eth <= constants.target_liquidity:
        return 0
    extractable = constants.liq_speed_a * elapsed * UNIT // constants.liq_speed_period
    return min(extractable, eth - constants.target_liquidity)


def eth_to_inject(eth: int, budget: int, elapsed: int, context: Context, constants: RammConstants) -> int:
    """ETH entering the virtual reserve: fast while budget lasts, then slow."""
    target = constants.target_liquidity
    if eth >= target:
        return 0

    # Never inject capital the mutual cannot spare above MCR.
    if context.mcr + target >= context.capital:
        return 0
    max_to_inject = target - eth

    period = constants.liq_speed_period
    fast = constants.fast_liquidity_speed
    time_left_on_budget = budget * period // fast

    if elapsed <= time_left_on_budget:
        return min(fast * elapsed // period, max_to_inject)

    injected_fast = time_left_on_budget * fast // period
    injected_slow = constants.liq_speed_b * (elapsed - time_left_on_budget) * UNIT // period
    return min(max_to_inject, injected_fast + injected_slow)


def book_value_reserves(eth: int, context: Context, constants: RammConstants) -> tuple[int, int]:
    """NXM reserves placing each side exactly at its buffered book value."""
    above, below = _buffered_capitals(context, constants)
    return eth * context.supply // above, eth * context.supply // below


def calculate_reserves(
    previous: RammState,
    context: Context,
    now: int,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> ReservesResult:
    """Fast-forward *previous* to *now*.

    Returns the new state together with the injected and extracted ETH amounts
    (at most one of them is non-zero).
    """
    check_preconditions(previous, context, now)
    elapsed = now - previous.timestamp

    eth = previous.eth
    budget = previous.budget
    injected = 0
    extracted = 0

    if eth > constants.target_liquidity:
        extracted = eth_to_extract(eth, elapsed, constants)
        eth -= extracted
    else:
        injected = eth_to_inject(eth, budget, elapsed, context, constants)
        budget = budget - injected if budget > injected else 0
        eth += injected

    book_a, book_b = book_value_reserves(eth, context, constants)

    # Side A ratchets its price down toward book value (nxm_a grows).
    addend_a = ratchet_addend(
        previous.nxm_a, elapsed, constants.normal_ratchet_speed,
        context.capital, context.supply,
        constants.ratchet_period, constants.ratchet_denominator,
    )
    denominator_a = eth - addend_a
    if denominator_a <= 0:
        nxm_a = book_a
    else:
        nxm_a = min(eth * previous.nxm_a // denominator_a, book_a)

    # Side B ratchets its price up toward book value (nxm_b shrinks).
    addend_b = ratchet_addend(
        previous.nxm_b, elapsed, previous.ratchet_speed_b,
        context.capital, context.supply,
        constants.ratchet_period, constants.ratchet_denominator,
    )
    nxm_b = max(eth * previous.nxm_b // (eth + addend_b), book_b)

    state = replace(previous, nxm_a=nxm_a, nxm_b=nxm_b, eth=eth, budget=budget, timestamp=now)
    return ReservesResult(state=state, injected=injected, extracted=extracted)


def time_till_book_value(
    previous: RammState,
    context: Context,
    constants: RammConstants = DEFAULT_CONSTANTS,
) -> tuple[int, int]:
    """Seconds each side can stay on its ratchet before reaching book value.

    Solves the ratchet equation of `calculate_reserves` for elapsed time using
    the previous reserves. Returns ``(max_time_on_ratchet_a, max_time_on_ratchet_b)``;
    a side already at (or past) book value yields 0.
    """
    den = constants.price_buffer_denominator
    buf = constants.price_buffer
    scale = constants.ratchet_denominator * constants.ratchet_period

    # above
    inner_left_a = previous.eth * context.supply
    inner_right_a = (den + buf) * context.capital * previous.nxm_a // den
    inner_a = inner_left_a - inner_right_a if inner_left_a > inner_right_a else 0
    max_time_a = 0
    if inner_a:
        max_time_a = inner_a * scale // context.capital // previous.nxm_a // constants.normal_ratchet_speed

    # below
    inner_left_b = (den - buf) * context.capital * previous.nxm_b // den
    inner_right_b = previous.eth * context.supply
    inner_b = inner_left_b - inner_right_b if inner_left_b > inner_right_b else 0
    max_time_b = 0
    if inner_b:
        max_time_b = inner_b * scale // context.capital // previous.nxm_b // previous.ratchet_speed_b

    return max_time_a, max_time_b
