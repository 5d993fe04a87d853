"""
RAMM engine: imperative shell around the reserve/TWAP/pricing core.

Every entry point first fast-forwards the persisted record to `now`. Read-only
queries stop there; state-changing calls (`update_twap`, `swap`, ...) commit
the fast-forwarded record and the advanced ring to the store as one unit.

Capital, supply and MCR come from external collaborators through a context
provider; moving funds for a swap is the caller's job.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from ..core.constants import RammConstants
from ..core.errors import SwapRejectedError
from ..core.pricing import book_value, internal_price_from_buffer, spot_prices
from ..core.reserves import ReservesResult, calculate_reserves
from ..core.swap import (
    REASON_INSUFFICIENT_AMOUNT_OUT,
    REASON_ONE_INPUT_ONLY,
    REASON_ONE_INPUT_REQUIRED,
    REASON_SWAP_EXPIRED,
    SwapQuote,
    swap_eth_for_nxm,
    swap_nxm_for_eth,
)
from ..core.twap import update_twap
from ..state.store import StateStore
from ..state.types import Context, Observation, RammState

logger = logging.getLogger(__name__)

ContextProvider = Callable[[], Context]


@dataclass(frozen=True)
class Reserves:
    eth: int
    nxm_a: int
    nxm_b: int
    budget: int


@dataclass(frozen=True)
class SwapResult:
    """Outcome of a committed swap."""

    amount_out: int
    # True for ETH -> NXM, False for NXM -> ETH.
    eth_in: bool
    # Internal price after the fast-forward, before the trade moved the reserves.
    internal_price: int
    injected: int
    extracted: int
    state: RammState


class RammEngine:
    """Stateful facade over one `StateStore`."""

    def __init__(self, store: StateStore, context_provider: ContextProvider) -> None:
        self._store = store
        self._context_provider = context_provider
        self._lock = threading.Lock()

    @property
    def constants(self) -> RammConstants:
        return self._store.constants

    # -- Pure passthroughs ---------------------------------------------------

    def _get_reserves(self, previous: RammState, context: Context, now: int) -> ReservesResult:
        return calculate_reserves(previous, context, now, self.constants)

    def _update_twap(
        self,
        previous: RammState,
        observations: Sequence[Observation],
        context: Context,
        now: int,
    ) -> tuple[Observation, ...]:
        return update_twap(previous, observations, context, now, self.constants)

    # -- Read-only -----------------------------------------------------------

    def load_state(self) -> RammState:
        return self._store.load_state()

    def observations(self, index: int) -> Observation:
        return self._store.observation(index)

    def get_reserves(self, now: int) -> Reserves:
        """Fast-forwarded reserves at *now*; nothing is persisted."""
        result = self._get_reserves(self._store.load_state(), self._context_provider(), now)
        state = result.state
        logger.debug(
            "reserves at %d: eth=%d nxm_a=%d nxm_b=%d injected=%d extracted=%d",
            now, state.eth, state.nxm_a, state.nxm_b, result.injected, result.extracted,
        )
        return Reserves(eth=state.eth, nxm_a=state.nxm_a, nxm_b=state.nxm_b, budget=state.budget)

    def get_spot_prices(self, now: int) -> tuple[int, int]:
        result = self._get_reserves(self._store.load_state(), self._context_provider(), now)
        return spot_prices(result.state)

    def get_book_value(self) -> int:
        return book_value(self._context_provider())

    def get_internal_price(self, now: int) -> int:
        """Internal price at *now* without persisting the advanced ring."""
        price, _state, _observations, _result = self._advance(now)
        return price

    # -- State-changing ------------------------------------------------------

    def update_twap(self, now: int) -> None:
        with self._lock:
            _price, state, observations, _result = self._advance(now)
            self._store.commit(state, observations)

    def get_internal_price_and_update_twap(self, now: int) -> int:
        with self._lock:
            price, state, observations, _result = self._advance(now)
            self._store.commit(state, observations)
            return price

    def swap(self, nxm_in: int, eth_in: int, min_amount_out: int, deadline: int, now: int) -> SwapResult:
        """Swap exactly one of *nxm_in* / *eth_in* at the current virtual reserves.

        Raises `SwapRejectedError` (nothing committed) on bad input, an expired
        deadline, slippage beyond *min_amount_out*, or a swap into the MCR buffer.
        """
        if nxm_in < 0 or eth_in < 0:
            raise ValueError(f"swap inputs must be non-negative: nxm_in={nxm_in} eth_in={eth_in}")
        try:
            price, quote, result = self._swap_locked(nxm_in, eth_in, min_amount_out, deadline, now)
        except SwapRejectedError as exc:
            logger.warning("swap rejected at %d: %s %s", now, exc.reason, exc.detail)
            raise

        logger.info(
            "swap at %d: %s in=%d out=%d internal_price=%d",
            now, "eth->nxm" if eth_in > 0 else "nxm->eth",
            eth_in or nxm_in, quote.amount_out, price,
        )
        return SwapResult(
            amount_out=quote.amount_out,
            eth_in=eth_in > 0,
            internal_price=price,
            injected=result.injected,
            extracted=result.extracted,
            state=quote.state,
        )

    # -- Internals -----------------------------------------------------------

    def _swap_locked(
        self,
        nxm_in: int,
        eth_in: int,
        min_amount_out: int,
        deadline: int,
        now: int,
    ) -> tuple[int, SwapQuote, ReservesResult]:
        if nxm_in > 0 and eth_in > 0:
            raise SwapRejectedError(REASON_ONE_INPUT_ONLY)
        if nxm_in == 0 and eth_in == 0:
            raise SwapRejectedError(REASON_ONE_INPUT_REQUIRED)
        if now > deadline:
            raise SwapRejectedError(REASON_SWAP_EXPIRED, f"now={now} deadline={deadline}")

        with self._lock:
            context = self._context_provider()
            price, state, observations, result = self._advance(now, context)

            if eth_in > 0:
                quote = swap_eth_for_nxm(state, eth_in)
            else:
                quote = swap_nxm_for_eth(state, nxm_in, context)

            if quote.amount_out < min_amount_out:
                raise SwapRejectedError(
                    REASON_INSUFFICIENT_AMOUNT_OUT,
                    f"amount_out={quote.amount_out} min_amount_out={min_amount_out}",
                )

            self._store.commit(quote.state, observations)
        return price, quote, result

    def _advance(
        self,
        now: int,
        context: Context | None = None,
    ) -> tuple[int, RammState, tuple[Observation, ...], ReservesResult]:
        """Fast-forward the record and the ring to *now* without committing."""
        if context is None:
            context = self._context_provider()
        previous, ring = self._store.snapshot()
        result = self._get_reserves(previous, context, now)
        observations = self._update_twap(previous, ring, context, now)
        price = internal_price_from_buffer(result.state, observations, context, now, self.constants)
        return price, result.state, observations, result

