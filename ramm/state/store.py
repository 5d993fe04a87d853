"""
State store: the persisted RAMM record plus the TWAP observation ring.

The record and the ring are one unit. `commit()` validates and replaces both
at once, so a reader never sees a state whose timestamp is ahead of (or behind)
the ring's latest slot. Callers serialize writers; the store only enforces the
shape of what gets committed.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence

from ..core.constants import DEFAULT_CONSTANTS, RammConstants
from ..core.errors import RammPreconditionError
from ..core.math import UNIT
from ..core.twap import initial_observations, observation_index
from .canonical import canonical_json_bytes
from .packing import PackedSlots, pack_state
from .state_root import compute_state_root
from .types import Observation, RammState

logger = logging.getLogger(__name__)

STATE_FIELDS: tuple[str, ...] = tuple(RammState.__dataclass_fields__)
OBSERVATION_FIELDS: tuple[str, ...] = tuple(Observation.__dataclass_fields__)


def _check_reserves(state: RammState) -> None:
    if state.eth == 0 or state.nxm_a == 0 or state.nxm_b == 0:
        raise RammPreconditionError("virtual reserves must stay non-zero")


def _check_ring(state: RammState, observations: Sequence[Observation], constants: RammConstants) -> None:
    if len(observations) != constants.granularity:
        raise RammPreconditionError(
            f"expected {constants.granularity} observations, got {len(observations)}"
        )
    for obs in observations:
        if not isinstance(obs, Observation):
            raise TypeError(f"observations must be Observation, got {type(obs).__name__}")
    latest = observations[observation_index(state.timestamp, constants)]
    if latest.timestamp != state.timestamp:
        raise RammPreconditionError(
            f"observation ring out of sync: latest={latest.timestamp} state={state.timestamp}"
        )


class StateStore:
    """In-memory holder of the single persisted record and its ring buffer."""

    def __init__(
        self,
        state: RammState,
        observations: Sequence[Observation],
        constants: RammConstants = DEFAULT_CONSTANTS,
    ) -> None:
        _check_reserves(state)
        _check_ring(state, observations, constants)
        self._constants = constants
        # Record and ring live in one attribute so a single read sees one commit.
        self._snapshot: tuple[RammState, tuple[Observation, ...]] = (state, tuple(observations))

    @classmethod
    def initialize(
        cls,
        spot_price_a: int,
        spot_price_b: int,
        timestamp: int,
        constants: RammConstants = DEFAULT_CONSTANTS,
    ) -> "StateStore":
        """Fresh store at *timestamp* with the given initial spot prices (wei per NXM).

        Side B starts on the fast ratchet speed; the ring is seeded with the
        initial spot prices.
        """
        if spot_price_a <= 0 or spot_price_b <= 0:
            raise ValueError(f"spot prices must be positive: a={spot_price_a} b={spot_price_b}")
        liquidity = constants.initial_liquidity
        state = RammState(
            nxm_a=liquidity * UNIT // spot_price_a,
            nxm_b=liquidity * UNIT // spot_price_b,
            eth=liquidity,
            budget=constants.initial_budget,
            ratchet_speed_b=constants.fast_ratchet_speed,
            timestamp=timestamp,
        )
        store = cls(state, initial_observations(state, constants), constants)
        logger.info(
            "initialized at %d: eth=%d nxm_a=%d nxm_b=%d",
            timestamp, state.eth, state.nxm_a, state.nxm_b,
        )
        return store

    @property
    def constants(self) -> RammConstants:
        return self._constants

    def snapshot(self) -> tuple[RammState, tuple[Observation, ...]]:
        """The record and the ring from the same commit."""
        return self._snapshot

    def load_state(self) -> RammState:
        """The persisted record as-is (no fast-forward)."""
        return self._snapshot[0]

    def observation(self, index: int) -> Observation:
        if not 0 <= index < self._constants.granularity:
            raise IndexError(f"observation index out of range: {index}")
        return self._snapshot[1][index]

    def observations(self) -> tuple[Observation, ...]:
        return self._snapshot[1]

    def commit(self, state: RammState, observations: Sequence[Observation]) -> None:
        """Replace the record and the ring together. Nothing changes on error."""
        current = self._snapshot[0]
        if state.timestamp < current.timestamp:
            raise RammPreconditionError(
                f"timestamp must not decrease: {state.timestamp} < {current.timestamp}"
            )
        _check_reserves(state)
        _check_ring(state, observations, self._constants)
        self._snapshot = (state, tuple(observations))
        logger.info(
            "committed state at %d: eth=%d nxm_a=%d nxm_b=%d budget=%d",
            state.timestamp, state.eth, state.nxm_a, state.nxm_b, state.budget,
        )

    def packed(self, paused: int = 0) -> PackedSlots:
        """The record in its bit-packed storage layout."""
        return pack_state(self._snapshot[0], paused)

    def state_root(self) -> str:
        state, observations = self._snapshot
        return compute_state_root(state=state, observations=observations)

    # -- Snapshots -----------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        state, observations = self._snapshot
        return {
            "state": {name: getattr(state, name) for name in STATE_FIELDS},
            "observations": [
                {name: getattr(obs, name) for name in OBSERVATION_FIELDS} for obs in observations
            ],
        }

    def to_json(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    @classmethod
    def from_dict(
        cls,
        d: Mapping[str, Any],
        constants: RammConstants = DEFAULT_CONSTANTS,
    ) -> "StateStore":
        """Rebuild a store from `to_dict()` output. Raises KeyError on missing fields."""
        raw_state = d["state"]
        state = RammState(**{name: raw_state[name] for name in STATE_FIELDS})
        observations = [
            Observation(**{name: raw[name] for name in OBSERVATION_FIELDS}) for raw in d["observations"]
        ]
        return cls(state, observations, constants)

    @classmethod
    def from_json(cls, data: bytes | str, constants: RammConstants = DEFAULT_CONSTANTS) -> "StateStore":
        obj = json.loads(data)
        if not isinstance(obj, Mapping):
            raise TypeError("snapshot JSON must be an object")
        return cls.from_dict(obj, constants)
