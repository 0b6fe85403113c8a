"""Owned state container for the "what would I earn" calculator."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from .constants import get_duration_days
from .projection import pool_apr, project
from .types import (
    CompoundFrequency,
    PoolParameters,
    ProjectionRequest,
    ProjectionResult,
    UserPosition,
)
from .utils import from_base_units

logger = logging.getLogger(__name__)

DEFAULT_AMOUNT = "100"
DEFAULT_DURATION = "1Y"


class CalculatorState:
    """Calculator inputs plus the last pool/position snapshot handed in by the view.

    Instances are created and passed around explicitly; the projection itself
    is delegated to the pure :func:`stake_ops.projection.project`.
    """

    def __init__(
        self,
        pool_parameters: PoolParameters | None = None,
        user_position: UserPosition | None = None,
        token_price_usd: Decimal | None = None,
    ) -> None:
        self.amount = DEFAULT_AMOUNT
        self.duration = DEFAULT_DURATION
        self.compound_frequency = CompoundFrequency.DAILY
        self.compound_mode = True
        self.pool_parameters = pool_parameters
        self.user_position = user_position
        self.token_price_usd = token_price_usd
        self.apr_override: float | None = None

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def set_amount(self, amount: str) -> None:
        self.amount = amount

    def set_duration(self, preset: str) -> None:
        get_duration_days(preset)
        self.duration = preset.upper()

    def set_compound_frequency(self, frequency: CompoundFrequency | str) -> None:
        self.compound_frequency = CompoundFrequency(frequency)

    def set_compound_mode(self, enabled: bool) -> None:
        self.compound_mode = enabled

    def set_apr(self, apr_percent: float | None) -> None:
        """Pin the APR instead of deriving it from pool parameters."""
        self.apr_override = apr_percent

    def set_token_price(self, price_usd: Decimal | None) -> None:
        self.token_price_usd = price_usd

    def set_pool_parameters(self, parameters: PoolParameters) -> bool:
        """Replace the pool snapshot; returns False when nothing changed."""

        if parameters == self.pool_parameters:
            return False
        self.pool_parameters = parameters
        return True

    def set_user_position(self, position: UserPosition) -> bool:
        if position == self.user_position:
            return False
        self.user_position = position
        return True

    def reset(self) -> None:
        self.amount = DEFAULT_AMOUNT
        self.duration = DEFAULT_DURATION
        self.compound_frequency = CompoundFrequency.DAILY
        self.compound_mode = True

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    @property
    def principal(self) -> Decimal:
        try:
            value = Decimal(self.amount.strip())
        except (InvalidOperation, AttributeError):
            return Decimal(0)
        return value if value.is_finite() else Decimal(0)

    @property
    def duration_days(self) -> int:
        return get_duration_days(self.duration)

    @property
    def apr_percent(self) -> float:
        if self.apr_override is not None:
            return self.apr_override
        params = self.pool_parameters
        if params is None:
            return 0.0
        return pool_apr(params.reward_rate_per_unit_time, params.total_staked)

    def request(self) -> ProjectionRequest:
        return ProjectionRequest(
            principal=self.principal,
            apr_percent=self.apr_percent,
            duration_days=self.duration_days,
            compound_frequency=self.compound_frequency,
            compound_mode=self.compound_mode,
        )

    def projection(self) -> ProjectionResult:
        return project(self.request())

    def usd_value(self, amount: float | Decimal) -> Decimal | None:
        if self.token_price_usd is None:
            return None
        return Decimal(str(amount)) * self.token_price_usd

    def staked_amount(self) -> Decimal:
        if self.user_position is None:
            return Decimal(0)
        decimals = self.pool_parameters.decimals if self.pool_parameters else 18
        return from_base_units(self.user_position.staked_amount, decimals)
