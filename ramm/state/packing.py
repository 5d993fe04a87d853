"""
Bit-packed storage layout of the persisted record.

Two 256-bit words, kept compatible with existing deployments:

    slot 0: nxm_a      bits   0..127
            nxm_b      bits 128..255
    slot 1: eth        bits   0..127
            budget     bits 128..215  (88 bits)
            timestamp  bits 216..247  (32 bits)
            paused     bits 248..255  (flag byte, carried but not interpreted here)

`ratchet_speed_b` lives outside the packed words.
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import RammState

WORD_BITS = 256

NXM_BITS = 128
ETH_BITS = 128
BUDGET_BITS = 88
TIMESTAMP_BITS = 32
FLAG_BITS = 8

BUDGET_SHIFT = ETH_BITS
TIMESTAMP_SHIFT = BUDGET_SHIFT + BUDGET_BITS
FLAG_SHIFT = TIMESTAMP_SHIFT + TIMESTAMP_BITS


def _mask(bits: int) -> int:
    return (1 << bits) - 1


def _check_width(name: str, value: int, bits: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > _mask(bits):
        raise ValueError(f"{name} does not fit in {bits} bits: {value}")


@dataclass(frozen=True)
class PackedSlots:
    slot0: int
    slot1: int

    def __post_init__(self) -> None:
        _check_width("slot0", self.slot0, WORD_BITS)
        _check_width("slot1", self.slot1, WORD_BITS)


def pack_slot0(nxm_a: int, nxm_b: int) -> int:
    _check_width("nxm_a", nxm_a, NXM_BITS)
    _check_width("nxm_b", nxm_b, NXM_BITS)
    return nxm_a | (nxm_b << NXM_BITS)


def unpack_slot0(word: int) -> tuple[int, int]:
    """Returns ``(nxm_a, nxm_b)``."""
    _check_width("slot0", word, WORD_BITS)
    return word & _mask(NXM_BITS), word >> NXM_BITS


def pack_slot1(eth: int, budget: int, timestamp: int, paused: int = 0) -> int:
    _check_width("eth", eth, ETH_BITS)
    _check_width("budget", budget, BUDGET_BITS)
    _check_width("timestamp", timestamp, TIMESTAMP_BITS)
    _check_width("paused", paused, FLAG_BITS)
    return eth | (budget << BUDGET_SHIFT) | (timestamp << TIMESTAMP_SHIFT) | (paused << FLAG_SHIFT)


def unpack_slot1(word: int) -> tuple[int, int, int, int]:
    """Returns ``(eth, budget, timestamp, paused)``."""
    _check_width("slot1", word, WORD_BITS)
    eth = word & _mask(ETH_BITS)
    budget = (word >> BUDGET_SHIFT) & _mask(BUDGET_BITS)
    timestamp = (word >> TIMESTAMP_SHIFT) & _mask(TIMESTAMP_BITS)
    paused = word >> FLAG_SHIFT
    return eth, budget, timestamp, paused


def pack_state(state: RammState, paused: int = 0) -> PackedSlots:
    """Pack a state into its two storage words."""
    return PackedSlots(
        slot0=pack_slot0(state.nxm_a, state.nxm_b),
        slot1=pack_slot1(state.eth, state.budget, state.timestamp, paused),
    )


def unpack_state(slots: PackedSlots, ratchet_speed_b: int) -> RammState:
    """Rebuild a state from its storage words plus the separately stored ratchet speed."""
    nxm_a, nxm_b = unpack_slot0(slots.slot0)
    eth, budget, timestamp, _paused = unpack_slot1(slots.slot1)
    return RammState(
        nxm_a=nxm_a,
        nxm_b=nxm_b,
        eth=eth,
        budget=budget,
        ratchet_speed_b=ratchet_speed_b,
        timestamp=timestamp,
    )
