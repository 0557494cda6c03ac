"""
Equal-weight synthetic benchmark builder.

One routine serves every basket: the caller chooses the constituents, the
minimum coverage and the fetch source. Constituents that fail to fetch are
dropped from the run; per-period averages use whichever constituents have
data for both ends of the period.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from analysis.calculations.alignment import resample, window_filter, window_start
from analysis.calculations.cpi_index import latest_cpi_month
from analysis.calculations.deflator import clip_to_cpi_range, deflate
from ingestion.concurrency import run_bounded
from ingestion.providers.errors import FetchError

logger = logging.getLogger(__name__)

INDEX_BASE = 100.0


class InsufficientCoverageError(Exception):
    """Raised when too few constituents (or periods) have data to build the index."""
    pass


@dataclass
class SyntheticIndexResult:
    """Index points {'period', 'value'} starting at 100, plus coverage stats."""
    index_series: List[Dict[str, Any]] = field(default_factory=list)
    average_components_per_period: float = 0.0
    valid_constituents: List[str] = field(default_factory=list)


def _constituent_values(
    prices: List[Dict[str, Any]],
    lookback_months: Optional[int],
    cpi_map: Optional[Mapping[str, float]]
) -> Dict[str, float]:
    """Monthly (real when cpi_map is given) closes keyed by period."""
    monthly = window_filter(resample(prices, 'monthly'), lookback_months)

    if cpi_map is not None:
        clip = clip_to_cpi_range(monthly, cpi_map)
        monthly = deflate(clip.series, cpi_map)

    return {
        row['period']: row['close']
        for row in monthly
        if row.get('close') is not None and row['close'] > 0
    }


def aggregate_equal_weight(
    constituents: Sequence[Tuple[str, List[Dict[str, Any]]]],
    lookback_months: Optional[int],
    cpi_map: Optional[Mapping[str, float]]
) -> SyntheticIndexResult:
    """
    Compound an equal-weight index from constituent price histories.

    For each consecutive period pair the index moves by the mean log return
    of the constituents priced in both periods; a period with no such
    constituent leaves the index flat.

    Args:
        constituents: (ticker, PricePoints) pairs already known to be usable
        lookback_months: Window length, None for the full history
        cpi_map: CPI map for a real index, None for a nominal one

    Returns:
        SyntheticIndexResult

    Raises:
        InsufficientCoverageError: If fewer than 2 periods carry data
    """
    per_constituent = [
        (ticker, _constituent_values(prices, lookback_months, cpi_map))
        for ticker, prices in constituents
    ]

    # Window end: latest CPI month for a real index, else latest priced month
    if cpi_map is not None:
        end_period = latest_cpi_month(cpi_map)
    else:
        end_period = max(
            (max(values) for _, values in per_constituent if values),
            default=None
        )
    if end_period is None:
        raise InsufficientCoverageError("No constituent has data inside the window")
    start_period = window_start(end_period, lookback_months) if lookback_months is not None else None

    by_period: Dict[str, Dict[int, float]] = {}
    for position, (_, values) in enumerate(per_constituent):
        for period, value in values.items():
            if period > end_period or (start_period is not None and period < start_period):
                continue
            by_period.setdefault(period, {})[position] = value

    periods = sorted(by_period)
    if len(periods) < 2:
        raise InsufficientCoverageError(
            f"Only {len(periods)} period(s) with constituent data; need at least 2"
        )

    level = INDEX_BASE
    index_series = [{'period': periods[0], 'value': level}]
    total_components = 0

    for prev_period, curr_period in zip(periods, periods[1:]):
        prev_row = by_period[prev_period]
        curr_row = by_period[curr_period]
        log_returns = [
            math.log(curr_row[k] / prev_row[k])
            for k in curr_row
            if k in prev_row
        ]
        total_components += len(log_returns)
        if log_returns:
            level *= math.exp(sum(log_returns) / len(log_returns))
        index_series.append({'period': curr_period, 'value': level})

    return SyntheticIndexResult(
        index_series=index_series,
        average_components_per_period=total_components / (len(periods) - 1),
        valid_constituents=[ticker for ticker, _ in constituents],
    )


async def build_equal_weight_index(
    basket: Sequence[str],
    lookback_months: Optional[int],
    cpi_map: Optional[Mapping[str, float]],
    fetch_asset: Callable[[str], Awaitable[List[Dict[str, Any]]]],
    min_coverage: int,
    concurrency: Optional[int] = None,
    on_progress: Optional[Callable[[int, int], None]] = None
) -> SyntheticIndexResult:
    """
    Fetch a basket with bounded parallelism and build its equal-weight index.

    Args:
        basket: Constituent tickers
        lookback_months: Window length, None for the full history
        cpi_map: CPI map for a real index, None for a nominal one
        fetch_asset: async ticker -> PricePoints
        min_coverage: Minimum constituents with at least 2 prices
        concurrency: In-flight fetches (defaults to $FETCH_CONCURRENCY)
        on_progress: Called with (completed, total) as fetches finish

    Raises:
        InsufficientCoverageError: If fewer than min_coverage constituents
            are usable, or fewer than 2 periods carry data
    """
    async def fetch_one(ticker: str) -> List[Dict[str, Any]]:
        try:
            return await fetch_asset(ticker)
        except FetchError as e:
            logger.warning(f"Excluding {ticker} from synthetic index: {e}")
            return []

    factories = [lambda ticker=ticker: fetch_one(ticker) for ticker in basket]
    histories = await run_bounded(factories, concurrency=concurrency, on_progress=on_progress)

    usable = [
        (ticker, prices)
        for ticker, prices in zip(basket, histories)
        if prices and len(prices) >= 2
    ]
    logger.info(f"Synthetic index: {len(usable)}/{len(basket)} constituents usable")

    if len(usable) < min_coverage:
        raise InsufficientCoverageError(
            f"{len(usable)} of {len(basket)} constituents have data (minimum {min_coverage})"
        )

    return aggregate_equal_weight(usable, lookback_months, cpi_map)
