"""
BTC vs NASDAQ job - annual growth of both, indexed to 100 at the first common year.
NASDAQ comes from the shared equal-weight builder over the Nasdaq-100
universe (nominal), with Yahoo ^IXIC / QQQ as fallbacks.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import aiohttp
import pandas as pd

from analysis.baskets import (
    NASDAQ_100_TICKERS,
    NASDAQ_MIN_COMPONENTS,
    NASDAQ_MIN_TICKERS_WARNING,
)
from analysis.calculations.alignment import rebase_to_100, resample_to_annual
from analysis.synthetic_index import InsufficientCoverageError, build_equal_weight_index
from ingestion.providers import crypto_adapter, data912_adapter, yfinance_adapter
from ingestion.providers.errors import NetworkFailureError
from storage.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_START = date(2016, 1, 1)


@dataclass
class BtcNasdaqResult:
    years: List[str] = field(default_factory=list)
    btc_index: List[float] = field(default_factory=list)
    nasdaq_index: List[float] = field(default_factory=list)
    nasdaq_source: str = ''
    valid_tickers: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def _index_to_price_rows(index_series: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Monthly index points as dated rows (first day of each month)."""
    return [
        {'date': pd.Timestamp(f"{point['period']}-01").date(), 'close': point['value']}
        for point in index_series
    ]


async def fetch_nasdaq_series(
    session: aiohttp.ClientSession,
    start: date,
    end: date,
    cache: Optional[TTLCache] = None,
    on_progress: Optional[Callable[[int, int], None]] = None
) -> Dict[str, Any]:
    """
    NASDAQ level series: synthetic Nasdaq-100 first, then Yahoo ^IXIC, then QQQ.

    Returns:
        {'prices': [...], 'source': str, 'valid_tickers': Optional[int],
         'warnings': [...]}
    """
    warnings = []
    try:
        synthetic = await build_equal_weight_index(
            NASDAQ_100_TICKERS,
            _months_between(start, end),
            None,
            lambda ticker: data912_adapter.fetch_listed_prices(session, ticker, cache),
            NASDAQ_MIN_COMPONENTS,
            on_progress=on_progress,
        )
        valid = len(synthetic.valid_constituents)
        if valid < NASDAQ_MIN_TICKERS_WARNING:
            warnings.append(
                f"Synthetic NASDAQ built from only {valid} of {len(NASDAQ_100_TICKERS)} tickers."
            )
        return {
            'prices': _index_to_price_rows(synthetic.index_series),
            'source': 'data912_synthetic',
            'valid_tickers': valid,
            'warnings': warnings,
        }
    except (InsufficientCoverageError, NetworkFailureError) as e:
        logger.warning(f"Synthetic NASDAQ unavailable, falling back to Yahoo: {e}")

    symbol, prices = await yfinance_adapter.fetch_first_available(
        yfinance_adapter.NASDAQ_FALLBACK_SYMBOLS, start, end
    )
    if symbol != yfinance_adapter.NASDAQ_FALLBACK_SYMBOLS[0]:
        warnings.append(f"NASDAQ approximated with {symbol}.")
    return {
        'prices': prices,
        'source': f'yahoo:{symbol}',
        'valid_tickers': None,
        'warnings': warnings,
    }


async def run_btc_vs_nasdaq(
    session: aiohttp.ClientSession,
    start: date = DEFAULT_START,
    end: Optional[date] = None,
    cache: Optional[TTLCache] = None,
    on_progress: Optional[Callable[[int, int], None]] = None
) -> BtcNasdaqResult:
    """
    Annual BTC and NASDAQ levels rebased to 100 at the first common year.

    Raises:
        NoHistoryError: If BTC or every NASDAQ source has no data
    """
    if end is None:
        end = date.today()

    btc_prices = await crypto_adapter.fetch_btc_history(session, start, end)
    nasdaq = await fetch_nasdaq_series(session, start, end, cache, on_progress)

    rebased = rebase_to_100(
        resample_to_annual(btc_prices),
        resample_to_annual(nasdaq['prices']),
    )

    return BtcNasdaqResult(
        years=rebased['periods'],
        btc_index=rebased['left'],
        nasdaq_index=rebased['right'],
        nasdaq_source=nasdaq['source'],
        valid_tickers=nasdaq['valid_tickers'],
        warnings=nasdaq['warnings'],
    )
