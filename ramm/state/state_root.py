"""
Deterministic state root hashing (v1).

A stable hash of the persisted record plus the observation ring, used by
replay checks: the same ordered calls from the same initial state must reach
the same root.
"""

from __future__ import annotations

from typing import Sequence

from .canonical import domain_sep_bytes, encode_uvarint, encode_uvarints, sha256_hex
from .types import Observation, RammState


STATE_ROOT_VERSION = 1


def compute_state_root(*, state: RammState, observations: Sequence[Observation]) -> str:
    """
    Compute a deterministic state root (hex, 0x-prefixed).

    The ring is hashed in slot order, so two rings holding the same
    observations in different slots have different roots.
    """
    payload = bytearray(domain_sep_bytes("state_root", STATE_ROOT_VERSION))
    payload += encode_uvarints(
        (state.nxm_a, state.nxm_b, state.eth, state.budget, state.ratchet_speed_b, state.timestamp)
    )
    payload += encode_uvarint(len(observations))
    for obs in observations:
        payload += encode_uvarints((obs.timestamp, obs.price_cumulative_above, obs.price_cumulative_below))
    return sha256_hex(bytes(payload))
