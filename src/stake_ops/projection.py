"""Client-side reward projection for the staking calculator.

Everything here is a pure function of its inputs: no store, no network, no
clock. The ledger's own reward math is not reproduced; the engine only
re-derives a display estimate from a published APR.
"""

from __future__ import annotations

import math
from decimal import Decimal

from .constants import (
    BREAKDOWN_INTERVALS,
    BREAKDOWN_MAX_DAYS,
    DAYS_PER_YEAR,
    SECONDS_PER_YEAR,
)
from .types import BreakdownPoint, ProjectionRequest, ProjectionResult


def project(request: ProjectionRequest) -> ProjectionResult:
    """Project simple and compound rewards for ``request``.

    ``principal <= 0`` or ``apr_percent <= 0`` yields the zero result with an
    empty breakdown. The compound curve is piecewise: until one full compounding
    period has elapsed it equals simple interest.
    """

    principal = float(request.principal)
    apr_percent = float(request.apr_percent)

    if principal <= 0 or apr_percent <= 0:
        return ProjectionResult.zero(request.compound_mode)

    apr = apr_percent / 100
    periods = request.compound_frequency.periods_per_year
    years = request.duration_days / DAYS_PER_YEAR

    simple_reward = _simple_reward(principal, apr, years)
    compound_reward = _compound_reward(principal, apr, periods, years)

    return ProjectionResult(
        simple_reward=simple_reward,
        simple_roi_percent=simple_reward / principal * 100,
        compound_reward=compound_reward,
        compound_roi_percent=compound_reward / principal * 100,
        total_with_compound=principal + compound_reward,
        difference=compound_reward - simple_reward,
        breakdown=_breakdown(principal, apr, periods, request.duration_days),
        compound_mode=request.compound_mode,
    )


def breakdown_days(duration_days: int) -> list[int]:
    """Day offsets sampled for the chart series (at most ~31 points)."""

    sampled = min(duration_days, BREAKDOWN_MAX_DAYS)
    stride = max(1, sampled // BREAKDOWN_INTERVALS)
    return list(range(0, sampled + 1, stride))


def pool_apr(reward_rate_per_second: int | Decimal, total_staked: int | Decimal) -> float:
    """APR percent implied by a per-second emission over the current stake."""

    if not total_staked or total_staked <= 0:
        return 0.0
    yearly_reward = Decimal(reward_rate_per_second) * SECONDS_PER_YEAR
    return float(yearly_reward / Decimal(total_staked) * 100)


def _simple_reward(principal: float, apr: float, years: float) -> float:
    return principal * apr * years


def _compound_reward(principal: float, apr: float, periods: int, years: float) -> float:
    elapsed_periods = periods * years
    # Before the first full period nothing has been reinvested yet
    if elapsed_periods <= 1:
        return _simple_reward(principal, apr, years)
    return principal * math.expm1(elapsed_periods * math.log1p(apr / periods))


def _breakdown(
    principal: float, apr: float, periods: int, duration_days: int
) -> tuple[BreakdownPoint, ...]:
    points = []
    for day in breakdown_days(duration_days):
        years = day / DAYS_PER_YEAR
        points.append(
            BreakdownPoint(
                day=day,
                simple_value=principal + _simple_reward(principal, apr, years),
                compound_value=principal + _compound_reward(principal, apr, periods, years),
            )
        )
    return tuple(points)
