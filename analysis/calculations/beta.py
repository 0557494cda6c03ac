"""
Beta calculation utilities.
Pure functions for sample covariance, benchmark variance and correlation.
"""

import math
from dataclasses import dataclass
from typing import List

import numpy as np


# Benchmark variance at or below this is treated as degenerate
VARIANCE_EPSILON = 1e-12


class BetaError(Exception):
    """Raised when beta inputs are inconsistent."""
    pass


@dataclass(frozen=True)
class BetaEstimate:
    beta: float = 0.0
    benchmark_variance: float = 0.0
    correlation: float = 0.0


ZERO_ESTIMATE = BetaEstimate()


def estimate_beta(
    asset_returns: List[float],
    benchmark_returns: List[float]
) -> BetaEstimate:
    """
    Estimate beta of asset returns against benchmark returns.

    Formula: beta = Cov(ri, rm) / Var(rm), sample statistics (ddof=1)

    Returns the zero estimate when fewer than 2 paired observations exist
    or when Var(rm) <= 1e-12. Correlation is 0 when either standard
    deviation is 0.

    Args:
        asset_returns: Asset log returns
        benchmark_returns: Benchmark log returns, same length

    Returns:
        BetaEstimate(beta, benchmark_variance, correlation)

    Raises:
        BetaError: If the sequences differ in length
    """
    if len(asset_returns) != len(benchmark_returns):
        raise BetaError(
            f"Return series must have same length: {len(asset_returns)} vs {len(benchmark_returns)}"
        )

    n = len(asset_returns)
    if n < 2:
        return ZERO_ESTIMATE

    ri = np.asarray(asset_returns, dtype=float)
    rm = np.asarray(benchmark_returns, dtype=float)

    d_ri = ri - ri.mean()
    d_rm = rm - rm.mean()

    covariance = float(np.sum(d_ri * d_rm) / (n - 1))
    var_rm = float(np.sum(d_rm * d_rm) / (n - 1))
    var_ri = float(np.sum(d_ri * d_ri) / (n - 1))

    if var_rm <= VARIANCE_EPSILON:
        return ZERO_ESTIMATE

    sigma_ri = math.sqrt(var_ri)
    sigma_rm = math.sqrt(var_rm)
    correlation = covariance / (sigma_ri * sigma_rm) if sigma_ri > 0 and sigma_rm > 0 else 0.0

    return BetaEstimate(
        beta=covariance / var_rm,
        benchmark_variance=var_rm,
        correlation=correlation,
    )
