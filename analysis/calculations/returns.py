"""
Returns calculation utilities.
Pure functions for real log returns, the anti-split guard and annualization.
"""

import math
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

import numpy as np

from analysis.calculations.alignment import periods_per_year


# A period-over-period ratio outside [1/3, 3] is treated as a split or data error
ANTI_SPLIT_RATIO_HI = 3.0
ANTI_SPLIT_RATIO_LO = 1.0 / 3.0
ANTI_SPLIT_MAX_EVENTS = 3


@dataclass
class ReturnSample:
    """Paired log returns of asset and benchmark."""
    asset_returns: List[float] = field(default_factory=list)
    benchmark_returns: List[float] = field(default_factory=list)
    anti_split_event_count: int = 0
    anti_split_triggered: bool = False
    aborted: bool = False

    @property
    def sample_size(self) -> int:
        return len(self.asset_returns)


def _is_split_like(ratio: float) -> bool:
    return ratio > ANTI_SPLIT_RATIO_HI or ratio < ANTI_SPLIT_RATIO_LO


def compute_log_returns(real_rows: List[Dict[str, Any]]) -> ReturnSample:
    """
    Paired log returns from a real (deflated) asset/benchmark series.

    Formula: r_t = ln(P_t / P_{t-1}) for both legs

    Anti-split guard: when either leg's ratio is > 3 or < 1/3 the transition
    is skipped and counted; once more than 3 such events are seen the scan
    stops and the rest of the series is ignored.

    Args:
        real_rows: Chronological rows with 'asset' and 'benchmark'

    Returns:
        ReturnSample
    """
    sample = ReturnSample()

    for i in range(1, len(real_rows)):
        prev = real_rows[i - 1]
        curr = real_rows[i]

        if min(prev['asset'], prev['benchmark'], curr['asset'], curr['benchmark']) <= 0:
            continue

        ratio_asset = curr['asset'] / prev['asset']
        ratio_benchmark = curr['benchmark'] / prev['benchmark']

        if _is_split_like(ratio_asset) or _is_split_like(ratio_benchmark):
            sample.anti_split_event_count += 1
            sample.anti_split_triggered = True
            if sample.anti_split_event_count > ANTI_SPLIT_MAX_EVENTS:
                sample.aborted = True
                break
            continue

        sample.asset_returns.append(math.log(ratio_asset))
        sample.benchmark_returns.append(math.log(ratio_benchmark))

    return sample


def compute_single_log_returns(
    rows: List[Dict[str, Any]],
    value_field: str = 'close'
) -> List[float]:
    """
    Log returns of one series, no anti-split filtering.
    Transitions touching a missing or non-positive value are skipped.
    """
    log_ret = []
    for i in range(1, len(rows)):
        prev = rows[i - 1].get(value_field)
        curr = rows[i].get(value_field)
        if prev is None or curr is None or prev <= 0 or curr <= 0:
            continue
        log_ret.append(math.log(curr / prev))
    return log_ret


def annualized_real_return(
    log_returns: List[float],
    periods: int
) -> Optional[float]:
    """
    Equivalent annual return from periodic log returns.

    Formula: exp(periods * mean(log_returns)) - 1

    Returns:
        Annual return as decimal, or None when there are no returns or
        periods <= 0
    """
    if len(log_returns) == 0 or periods <= 0:
        return None

    return float(math.exp(periods * float(np.mean(log_returns))) - 1)


def risk_free_per_period(annual_rate: float, frequency: str) -> float:
    """Annual risk-free rate spread evenly over the periods of a year."""
    periods = periods_per_year(frequency)
    return annual_rate / periods if periods > 0 else 0.0


def capm_expected_return(risk_free: float, beta: float, benchmark_return: float) -> float:
    """E[R] = Rf + beta * (Rm - Rf)"""
    return risk_free + beta * (benchmark_return - risk_free)


def capm_alpha(
    asset_return: float,
    benchmark_return: float,
    risk_free: float,
    beta: float
) -> float:
    """Realized return in excess of the CAPM expectation."""
    return asset_return - capm_expected_return(risk_free, beta, benchmark_return)
