# [TESTER] v1

from __future__ import annotations

import logging
import sys
import threading

import pytest

from ramm.core.errors import RammPreconditionError, SwapRejectedError
from ramm.core.math import UNIT
from ramm.core.pricing import book_value, price_bounds
from ramm.core.swap import (
    REASON_INSUFFICIENT_AMOUNT_OUT,
    REASON_NO_SWAPS_IN_BUFFER_ZONE,
    REASON_ONE_INPUT_ONLY,
    REASON_ONE_INPUT_REQUIRED,
    REASON_SWAP_EXPIRED,
)
from ramm.core.twap import observation_index
from ramm.integration.engine import RammEngine
from ramm.state.store import StateStore
from ramm.state.types import Context

HOUR = 3600
T0 = 1_700_000_000
BOOK_VALUE = 2 * 10**16
CONTEXT = Context(capital=150_000 * UNIT, supply=7_500_000 * UNIT, mcr=100_000 * UNIT)


def _engine(context: Context = CONTEXT) -> RammEngine:
    store = StateStore.initialize(BOOK_VALUE * 104 // 100, BOOK_VALUE * 96 // 100, T0)
    return RammEngine(store, lambda: context)


def _snapshot(engine: RammEngine) -> tuple:
    return engine.load_state(), tuple(engine.observations(i) for i in range(engine.constants.granularity))


def test_read_only_calls_do_not_persist() -> None:
    engine = _engine()
    before = _snapshot(engine)

    reserves = engine.get_reserves(T0 + 5 * HOUR)
    engine.get_spot_prices(T0 + 5 * HOUR)
    engine.get_internal_price(T0 + 4 * 86_400)

    assert _snapshot(engine) == before
    assert reserves.nxm_a > before[0].nxm_a
    assert reserves.nxm_b < before[0].nxm_b


def test_update_twap_persists_state_and_ring() -> None:
    engine = _engine()
    now = T0 + 2 * 86_400

    engine.update_twap(now)

    state = engine.load_state()
    assert state.timestamp == now
    assert engine.observations(observation_index(now)).timestamp == now
    # Replaying at the same instant changes nothing.
    before = _snapshot(engine)
    engine.update_twap(now)
    assert _snapshot(engine) == before


def test_get_internal_price_and_update_twap_matches_read_only_price() -> None:
    engine = _engine()
    now = T0 + 7 * 86_400 + 11

    price = engine.get_internal_price(now)
    assert engine.get_internal_price_and_update_twap(now) == price
    assert engine.get_internal_price(now) == price
    assert engine.load_state().timestamp == now


def test_internal_price_right_after_initialization() -> None:
    engine = _engine()
    spot_a, spot_b = engine.get_spot_prices(T0)

    price = engine.get_internal_price(T0)

    min_price, max_price = price_bounds(CONTEXT)
    expected = max(min(spot_a + spot_b - engine.get_book_value(), max_price), min_price)
    assert abs(price - expected) <= 10_000
    assert engine.get_book_value() == book_value(CONTEXT) == BOOK_VALUE


def test_swap_eth_for_nxm_commits_fast_forwarded_state() -> None:
    engine = _engine()
    now = T0 + HOUR
    reserves = engine.get_reserves(now)

    result = engine.swap(nxm_in=0, eth_in=10 * UNIT, min_amount_out=1, deadline=now + 60, now=now)

    state = engine.load_state()
    assert result.eth_in is True
    assert result.amount_out > 0
    assert result.state == state
    assert state.timestamp == now
    assert state.eth == reserves.eth + 10 * UNIT
    assert state.nxm_a == reserves.nxm_a - result.amount_out
    assert engine.observations(observation_index(now)).timestamp == now


def test_swap_nxm_for_eth_commits() -> None:
    engine = _engine()
    now = T0 + HOUR

    result = engine.swap(nxm_in=100 * UNIT, eth_in=0, min_amount_out=1, deadline=now, now=now)

    assert result.eth_in is False
    assert 0 < result.amount_out < 100 * BOOK_VALUE
    assert engine.load_state().eth == 5_000 * UNIT - result.amount_out


@pytest.mark.parametrize(
    ("nxm_in", "eth_in", "min_out", "deadline", "reason"),
    [
        (UNIT, UNIT, 0, T0 + 2 * HOUR, REASON_ONE_INPUT_ONLY),
        (0, 0, 0, T0 + 2 * HOUR, REASON_ONE_INPUT_REQUIRED),
        (0, UNIT, 0, T0 + HOUR - 1, REASON_SWAP_EXPIRED),
        (0, UNIT, 10**30, T0 + 2 * HOUR, REASON_INSUFFICIENT_AMOUNT_OUT),
    ],
)
def test_rejected_swaps_commit_nothing(nxm_in: int, eth_in: int, min_out: int, deadline: int, reason: str) -> None:
    engine = _engine()
    before = _snapshot(engine)

    with pytest.raises(SwapRejectedError) as exc:
        engine.swap(nxm_in=nxm_in, eth_in=eth_in, min_amount_out=min_out, deadline=deadline, now=T0 + HOUR)

    assert exc.value.reason == reason
    assert _snapshot(engine) == before


def test_swap_into_buffer_zone_is_rejected() -> None:
    ctx = Context(capital=CONTEXT.capital, supply=CONTEXT.supply, mcr=CONTEXT.capital)
    engine = _engine(ctx)
    before = _snapshot(engine)

    with pytest.raises(SwapRejectedError) as exc:
        engine.swap(nxm_in=100 * UNIT, eth_in=0, min_amount_out=0, deadline=T0 + HOUR, now=T0 + HOUR)

    assert exc.value.reason == REASON_NO_SWAPS_IN_BUFFER_ZONE
    assert _snapshot(engine) == before


def test_negative_swap_input_is_a_value_error() -> None:
    engine = _engine()
    with pytest.raises(ValueError):
        engine.swap(nxm_in=-1, eth_in=0, min_amount_out=0, deadline=T0 + HOUR, now=T0)


def test_precondition_violation_commits_nothing() -> None:
    engine = _engine(Context(capital=0, supply=CONTEXT.supply, mcr=0))
    before = _snapshot(engine)

    with pytest.raises(RammPreconditionError):
        engine.update_twap(T0 + HOUR)
    with pytest.raises(RammPreconditionError):
        engine.get_reserves(T0 - 1)

    assert _snapshot(engine) == before


def test_replay_is_deterministic() -> None:
    def run() -> str:
        store = StateStore.initialize(BOOK_VALUE * 104 // 100, BOOK_VALUE * 96 // 100, T0)
        engine = RammEngine(store, lambda: CONTEXT)
        engine.update_twap(T0 + HOUR)
        engine.swap(nxm_in=0, eth_in=25 * UNIT, min_amount_out=0, deadline=T0 + 3 * HOUR, now=T0 + 2 * HOUR)
        engine.swap(nxm_in=500 * UNIT, eth_in=0, min_amount_out=0, deadline=T0 + 9 * 86_400, now=T0 + 8 * 86_400)
        engine.update_twap(T0 + 20 * 86_400)
        return store.state_root()

    assert run() == run()


def test_rejected_swaps_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    engine = _engine()
    with caplog.at_level(logging.WARNING, logger="ramm.integration.engine"):
        with pytest.raises(SwapRejectedError):
            engine.swap(nxm_in=0, eth_in=UNIT, min_amount_out=0, deadline=T0, now=T0 + HOUR)

    assert any(REASON_SWAP_EXPIRED in record.getMessage() for record in caplog.records)


def test_readers_never_see_half_a_commit() -> None:
    engine = _engine()
    errors: list[BaseException] = []
    done = threading.Event()

    def writer() -> None:
        try:
            for i in range(1, 2_000):
                engine.update_twap(T0 + 37 * i)
        except BaseException as exc:  # surfaced through `errors`
            errors.append(exc)
        finally:
            done.set()

    def reader() -> None:
        try:
            while not done.is_set():
                engine.get_internal_price(T0 + 10 * 86_400)
        except BaseException as exc:  # surfaced through `errors`
            errors.append(exc)

    interval = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    try:
        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
    finally:
        sys.setswitchinterval(interval)

    assert errors == []
    assert engine.load_state().timestamp == T0 + 37 * 1_999
