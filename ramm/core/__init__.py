"""
Core RAMM algorithms (functional core).

- `reserves`: fast-forward of the virtual reserves (liquidity flow + ratchets)
- `twap`: ring-buffer TWAP accumulator
- `pricing`: internal price oracle
- `swap`: constant-product swap pricing against the virtual reserves
"""

from .constants import DEFAULT_CONSTANTS, RammConstants, constants_from_mapping, load_constants
from .errors import RammError, RammPreconditionError, SwapRejectedError
from .math import ACCUMULATOR_SCALE, CUMULATIVE_MODULUS, UNIT
from .pricing import book_value, calculate_internal_price, internal_price_from_buffer, spot_prices
from .reserves import ReservesResult, calculate_reserves, time_till_book_value
from .swap import SwapQuote, swap_eth_for_nxm, swap_nxm_for_eth
from .twap import calculate_observation, initial_observations, observation_index, update_twap

__all__ = [
    "DEFAULT_CONSTANTS",
    "RammConstants",
    "constants_from_mapping",
    "load_constants",
    "RammError",
    "RammPreconditionError",
    "SwapRejectedError",
    "ACCUMULATOR_SCALE",
    "CUMULATIVE_MODULUS",
    "UNIT",
    "book_value",
    "calculate_internal_price",
    "internal_price_from_buffer",
    "spot_prices",
    "ReservesResult",
    "calculate_reserves",
    "time_till_book_value",
    "SwapQuote",
    "swap_eth_for_nxm",
    "swap_nxm_for_eth",
    "calculate_observation",
    "initial_observations",
    "observation_index",
    "update_twap",
]
