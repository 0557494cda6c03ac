"""
Real risk-free rate from an inflation-linked (CER) bond.
An explicit yield wins; otherwise the rate is estimated from deflated prices.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from analysis.baskets import CER_TICKERS
from analysis.calculations.alignment import periods_per_year, resample, window_filter
from analysis.calculations.deflator import clip_to_cpi_range, deflate
from analysis.calculations.returns import annualized_real_return, compute_single_log_returns

logger = logging.getLogger(__name__)

SOURCE_DIRECT_YIELD = 'direct_yield'
SOURCE_ESTIMATED = 'estimated_from_prices'


class NoYieldAvailableError(Exception):
    """Raised when a bond yields neither an explicit rate nor enough real prices."""
    pass


@dataclass(frozen=True)
class RiskFreeEstimate:
    annual_real_rate: float
    source: str


def cer_bond_universe() -> List[str]:
    """Bonds accepted as real risk-free proxies."""
    return list(CER_TICKERS)


def is_cer_bond(ticker: str) -> bool:
    return (ticker or '').upper() in CER_TICKERS


def estimate_real_yield(
    observations: List[Dict[str, Any]],
    cpi_map: Mapping[str, float],
    lookback_months: Optional[int]
) -> RiskFreeEstimate:
    """
    Real annual yield of a bond.

    1. First observation carrying an explicit yield: yield / 100.
    2. Otherwise: monthly resample, window, clip, deflate, then annualize the
       mean monthly real log return.

    Args:
        observations: BondObservations in chronological order
        cpi_map: CPI map for deflation
        lookback_months: Window length, None for the full history

    Raises:
        NoYieldAvailableError: If fewer than 2 observations exist, or the
            price route leaves fewer than 2 real returns
    """
    if not observations or len(observations) < 2:
        raise NoYieldAvailableError("Fewer than 2 bond observations")

    for row in observations:
        if row.get('yield') is not None:
            return RiskFreeEstimate(row['yield'] / 100, SOURCE_DIRECT_YIELD)

    prices = [row for row in observations if row.get('close') is not None and row['close'] > 0]
    monthly = window_filter(resample(prices, 'monthly'), lookback_months)
    clip = clip_to_cpi_range(monthly, cpi_map)
    real = deflate(clip.series, cpi_map)
    if len(real) < 2:
        raise NoYieldAvailableError("Fewer than 2 real monthly prices inside the CPI range")

    log_returns = compute_single_log_returns(real)
    if len(log_returns) < 2:
        raise NoYieldAvailableError("Fewer than 2 real monthly returns")

    rate = annualized_real_return(log_returns, periods_per_year('monthly'))
    return RiskFreeEstimate(rate, SOURCE_ESTIMATED)


async def resolve_real_yield(
    bond_id: str,
    cpi_map: Mapping[str, float],
    lookback_months: Optional[int],
    fetch_bond_series: Callable[[str], Awaitable[List[Dict[str, Any]]]]
) -> RiskFreeEstimate:
    """
    Fetch a bond's observations and resolve its real annual yield.

    Fetch errors propagate typed; NoYieldAvailableError when the data
    cannot produce a rate.
    """
    observations = await fetch_bond_series(bond_id)
    estimate = estimate_real_yield(observations, cpi_map, lookback_months)
    logger.info(f"Real risk-free from {bond_id}: {estimate.annual_real_rate:.4f} ({estimate.source})")
    return estimate
