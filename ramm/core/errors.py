"""Exception types for the RAMM reserve engine.

The pure core never fails on economic conditions (they are absorbed by clamps);
only precondition violations and swap rejections are raised.
"""

from __future__ import annotations


class RammError(Exception):
    """Base class for engine errors."""


class RammPreconditionError(RammError, ValueError):
    """Raised when inputs make an economically meaningful answer impossible.

    Zero capital/supply/reserves, time moving backwards, or a ring buffer that
    is out of sync with the persisted state.
    """


class SwapRejectedError(RammError):
    """Raised when a swap request fails validation; nothing is committed."""

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"swap rejected: {reason}" + (f" ({detail})" if detail else ""))
