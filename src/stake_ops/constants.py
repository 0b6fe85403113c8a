"""Constants and lookup tables for the staking operations coordinator."""

from enum import Enum

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1

# Observed gas price multiplied by 130/100 before submission
GAS_PRICE_PREMIUM_NUMERATOR = 130
GAS_PRICE_PREMIUM_DENOMINATOR = 100

# Router and launchpad calls embed now + 20 minutes
CALL_DEADLINE_SECONDS = 20 * 60

DEFAULT_SLIPPAGE_PERCENT = 10
DEFAULT_TOKEN_DECIMALS = 18

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
DAYS_PER_YEAR = 365

# The breakdown series samples at most this many intervals
BREAKDOWN_INTERVALS = 30
BREAKDOWN_MAX_DAYS = 365


class GasLimit(int, Enum):
    """Explicit gas limits attached to every write call."""

    APPROVE = 100_000
    STAKE = 300_000
    UNSTAKE = 300_000
    HARVEST = 200_000
    COMPOUND = 250_000
    EMERGENCY_WITHDRAW = 200_000
    ADD_LIQUIDITY = 350_000
    REMOVE_LIQUIDITY = 350_000
    CONTRIBUTE = 300_000


DURATION_PRESETS = {
    "1D": 1,
    "7D": 7,
    "30D": 30,
    "1Y": 365,
    "5Y": 1825,
}


def get_duration_days(preset: str) -> int:
    """Resolve a calculator duration preset to a number of days.

    Args:
        preset: Preset label (e.g., "30D", "1Y")

    Returns:
        Number of days

    Raises:
        ValueError: If preset is not known
    """
    label = preset.upper()
    if label not in DURATION_PRESETS:
        raise ValueError(f"Unknown duration preset: {preset}")
    return DURATION_PRESETS[label]
