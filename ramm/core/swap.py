"""
Swap pricing against the virtual reserves.

Each direction trades against one side's constant product and rescales the
other side so both keep their price relative to the new ETH reserve:
- ETH -> NXM uses side A: ``k = eth * nxm_a``, ``nxm_b`` scaled by ``eth' / eth``.
- NXM -> ETH uses side B: ``k = eth * nxm_b``, ``nxm_a`` scaled by ``eth' / eth``.

Only the priced amount and the post-swap reserves are computed here; moving
funds, minting and burning belong to the caller. The input state must already
be fast-forwarded to the swap instant.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..state.types import Context, RammState
from .errors import SwapRejectedError

REASON_ONE_INPUT_ONLY = "one_input_only"
REASON_ONE_INPUT_REQUIRED = "one_input_required"
REASON_SWAP_EXPIRED = "swap_expired"
REASON_INSUFFICIENT_AMOUNT_OUT = "insufficient_amount_out"
REASON_NO_SWAPS_IN_BUFFER_ZONE = "no_swaps_in_buffer_zone"
REASON_RESERVE_DEPLETED = "reserve_depleted"


@dataclass(frozen=True)
class SwapQuote:
    """Amount paid out and the reserves after the swap."""

    amount_out: int
    state: RammState


def swap_eth_for_nxm(state: RammState, eth_in: int) -> SwapQuote:
    """Price *eth_in* wei against side A. Returns the NXM paid out."""
    if eth_in <= 0:
        raise ValueError(f"eth_in must be positive: {eth_in}")

    k = state.eth * state.nxm_a
    eth = state.eth + eth_in
    nxm_a = k // eth
    nxm_b = state.nxm_b * eth // state.eth
    if nxm_a == 0:
        raise SwapRejectedError(REASON_RESERVE_DEPLETED, "nxm_a would reach zero")

    nxm_out = state.nxm_a - nxm_a
    return SwapQuote(amount_out=nxm_out, state=replace(state, eth=eth, nxm_a=nxm_a, nxm_b=nxm_b))


def swap_nxm_for_eth(state: RammState, nxm_in: int, context: Context) -> SwapQuote:
    """Price *nxm_in* against side B. Returns the ETH paid out.

    Rejects swaps that would take the capital pool below the MCR.
    """
    if nxm_in <= 0:
        raise ValueError(f"nxm_in must be positive: {nxm_in}")

    k = state.eth * state.nxm_b
    nxm_b = state.nxm_b + nxm_in
    eth = k // nxm_b
    if eth == 0:
        raise SwapRejectedError(REASON_RESERVE_DEPLETED, "eth would reach zero")
    nxm_a = state.nxm_a * eth // state.eth
    if nxm_a == 0:
        raise SwapRejectedError(REASON_RESERVE_DEPLETED, "nxm_a would reach zero")

    eth_out = state.eth - eth
    if context.capital < eth_out or context.capital - eth_out < context.mcr:
        raise SwapRejectedError(
            REASON_NO_SWAPS_IN_BUFFER_ZONE,
            f"capital={context.capital} eth_out={eth_out} mcr={context.mcr}",
        )
    return SwapQuote(amount_out=eth_out, state=replace(state, eth=eth, nxm_a=nxm_a, nxm_b=nxm_b))
