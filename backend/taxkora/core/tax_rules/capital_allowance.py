"""
Capital Allowance Calculator
Companies Income Tax Act, Second Schedule; Nigeria Tax Act 2025

Allowances per qualifying asset:
  - Year of acquisition: initial allowance = cost × initial rate
  - Later years: annual allowance = base × annual rate, where the base is
    the original cost (straight line) or cost less the initial allowance
    (residue basis), as set per category in the rate table
  - An allowance never takes the written-down value below zero

Asset lifecycle: acquired → depreciating → fully written down.

Across all assets, the allowance claimed in a year is restricted to 2/3 of
assessable profit (nothing when there is no profit). The unabsorbed balance
is carried forward to later years, not lost.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping

from taxkora.core.errors import InvalidRecordError
from taxkora.core.money import ZERO, non_negative, quantize, to_decimal
from taxkora.core.rate_tables import AllowanceBasis, CapitalAllowanceRate, RateTable
from taxkora.schemas.records import CapitalAsset

logger = logging.getLogger(__name__)


class AssetStatus(str, Enum):
    ACQUIRED = "acquired"
    DEPRECIATING = "depreciating"
    FULLY_WRITTEN_DOWN = "fully_written_down"


@dataclass
class AssetAllowance:
    asset_id: str | None
    description: str
    category: str
    year: int
    cost: Decimal
    initial_rate: Decimal
    annual_rate: Decimal
    basis: AllowanceBasis
    initial_allowance: Decimal
    annual_allowance: Decimal
    allowance: Decimal
    claimed_before: Decimal
    cumulative_allowance: Decimal
    opening_written_down_value: Decimal
    written_down_value: Decimal
    status: AssetStatus


@dataclass
class CapitalAllowanceResult:
    year: int
    assessable_profit: Decimal
    total_allowance_due: Decimal
    brought_forward: Decimal
    available: Decimal
    cap: Decimal
    allowance_claimed: Decimal
    carried_forward: Decimal
    assets: list[AssetAllowance] = field(default_factory=list)


def _scheduled_allowance(
    asset: CapitalAsset, year: int, rule: CapitalAllowanceRate, written_down_value: Decimal
) -> tuple[Decimal, Decimal]:
    """(initial, annual) allowance for one year, before the WDV limit is applied across both."""
    if written_down_value <= 0:
        return ZERO, ZERO
    if year == asset.year_acquired:
        return min(quantize(asset.cost * rule.initial_rate), written_down_value), ZERO

    base = asset.cost
    if rule.basis == AllowanceBasis.RESIDUE:
        base = asset.cost - quantize(asset.cost * rule.initial_rate)
    return ZERO, min(quantize(base * rule.annual_rate), written_down_value)


def claimed_before(asset: CapitalAsset, year: int, rates: RateTable) -> Decimal:
    """Allowance the schedule would have granted from acquisition up to (not including) `year`."""
    rule = rates.allowance_rates(asset.category)
    claimed = ZERO
    for prior in range(asset.year_acquired, year):
        initial, annual = _scheduled_allowance(asset, prior, rule, asset.cost - claimed)
        claimed += initial + annual
    return claimed


def compute_capital_allowance(
    asset: CapitalAsset,
    year: int,
    rates: RateTable,
    claimed_to_date: Decimal | None = None,
) -> AssetAllowance:
    if year < asset.year_acquired:
        raise InvalidRecordError(
            f"Asset acquired in {asset.year_acquired} has no allowance for {year}",
            asset_id=asset.id,
            year=year,
        )

    rule = rates.allowance_rates(asset.category)
    if claimed_to_date is None:
        claimed = claimed_before(asset, year, rates)
    else:
        claimed = min(non_negative(claimed_to_date), asset.cost)

    opening_wdv = asset.cost - claimed
    initial, annual = _scheduled_allowance(asset, year, rule, opening_wdv)
    allowance = initial + annual
    closing_wdv = opening_wdv - allowance

    if closing_wdv <= 0:
        status = AssetStatus.FULLY_WRITTEN_DOWN
    elif year == asset.year_acquired:
        status = AssetStatus.ACQUIRED
    else:
        status = AssetStatus.DEPRECIATING

    return AssetAllowance(
        asset_id=asset.id,
        description=asset.description,
        category=rule.category,
        year=year,
        cost=asset.cost,
        initial_rate=rule.initial_rate,
        annual_rate=rule.annual_rate,
        basis=rule.basis,
        initial_allowance=initial,
        annual_allowance=annual,
        allowance=allowance,
        claimed_before=claimed,
        cumulative_allowance=claimed + allowance,
        opening_written_down_value=opening_wdv,
        written_down_value=closing_wdv,
        status=status,
    )


def allowance_cap(assessable_profit: Decimal, rates: RateTable) -> Decimal:
    if assessable_profit <= 0:
        return ZERO
    return quantize(
        assessable_profit * rates.capital_allowance_cap_numerator / rates.capital_allowance_cap_denominator
    )


def compute_capital_allowances(
    assets: Iterable[CapitalAsset],
    year: int,
    assessable_profit,
    rates: RateTable,
    brought_forward=ZERO,
) -> CapitalAllowanceResult:
    assessable_profit = quantize(assessable_profit)
    brought_forward = non_negative(brought_forward)

    schedules = [
        compute_capital_allowance(asset, year, rates)
        for asset in assets
        if asset.year_acquired <= year
    ]
    due = sum((s.allowance for s in schedules), ZERO)
    available = due + brought_forward
    cap = allowance_cap(assessable_profit, rates)
    claimed = min(available, cap)

    if available > claimed:
        logger.debug("Capital allowance for %d restricted to %s; %s carried forward", year, cap, available - claimed)

    return CapitalAllowanceResult(
        year=year,
        assessable_profit=assessable_profit,
        total_allowance_due=due,
        brought_forward=brought_forward,
        available=available,
        cap=cap,
        allowance_claimed=claimed,
        carried_forward=available - claimed,
        assets=schedules,
    )


def carry_forward_history(
    assets: Iterable[CapitalAsset],
    profits_by_year: Mapping[int, Decimal],
    year: int,
    rates: RateTable,
) -> list[CapitalAllowanceResult]:
    """
    Roll the unabsorbed allowance pool through every year from the first
    acquisition up to (not including) `year`. A year missing from
    `profits_by_year` is taken as having no profit. The last entry's
    `carried_forward` is the amount brought forward into `year`.
    """
    assets = list(assets)
    if not assets:
        return []

    history = []
    pool = ZERO
    first_year = min(asset.year_acquired for asset in assets)
    for prior in range(first_year, year):
        result = compute_capital_allowances(
            assets, prior, to_decimal(profits_by_year.get(prior, ZERO)), rates, brought_forward=pool
        )
        history.append(result)
        pool = result.carried_forward
    return history
