"""
yfinance adapter - fallback benchmark prices from Yahoo Finance.
Network IO allowed here, but minimal business logic.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Dict, Any, List, Sequence, Tuple

import pandas as pd
import yfinance as yf

from ingestion.providers.errors import NetworkFailureError, NoHistoryError
from ingestion.transforms.normalizers import normalize_price_rows

logger = logging.getLogger(__name__)

NASDAQ_FALLBACK_SYMBOLS = ('^IXIC', 'QQQ')


class YFinanceError(NetworkFailureError):
    """Raised when yfinance operations fail."""
    pass


def fetch_prices_window(ticker: str, start: date, end: date) -> List[Dict[str, Any]]:
    """
    Fetch daily closes for a ticker within date window.

    Args:
        ticker: Yahoo symbol (e.g., '^IXIC', 'QQQ')
        start: Start date (inclusive)
        end: End date (inclusive)

    Returns:
        Canonical PricePoints ([] when Yahoo has no rows)

    Raises:
        YFinanceError: If fetch fails or validation fails
    """
    _validate_date_range(start, end)
    _validate_ticker(ticker)

    try:
        # yfinance uses exclusive end dates, so add 1 day
        yf_end = end + timedelta(days=1)

        data = yf.download(
            ticker,
            start=start.isoformat(),
            end=yf_end.isoformat(),
            progress=False,
            auto_adjust=False
        )
    except Exception as e:
        raise YFinanceError(f"Failed to fetch prices for {ticker}: {str(e)}") from e

    if data is None or len(data) == 0:
        return []

    # Flatten multi-level columns (field, ticker)
    if isinstance(data.columns, pd.MultiIndex):
        data.columns = data.columns.get_level_values(0)

    if 'Close' not in data.columns:
        return []

    rows = []
    for date_idx, row in data.iterrows():
        if pd.notna(row['Close']):
            rows.append({'Date': date_idx.strftime('%Y-%m-%d'), 'Close': float(row['Close'])})

    return normalize_price_rows(rows)


async def fetch_first_available(
    symbols: Sequence[str],
    start: date,
    end: date
) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Try symbols in order; return the first with at least 2 prices.

    The blocking yfinance call runs in a worker thread.

    Returns:
        (symbol used, canonical PricePoints)

    Raises:
        NoHistoryError: If no symbol produced usable data
    """
    for symbol in symbols:
        try:
            prices = await asyncio.to_thread(fetch_prices_window, symbol, start, end)
        except YFinanceError as e:
            logger.warning(f"Yahoo fallback {symbol} failed: {e}")
            continue
        if len(prices) >= 2:
            return symbol, prices
        logger.warning(f"Yahoo fallback {symbol} returned {len(prices)} rows")

    raise NoHistoryError(f"No Yahoo data for any of {list(symbols)}")


def _validate_date_range(start: date, end: date) -> None:
    """
    Validate date range parameters.

    Raises:
        YFinanceError: If validation fails
    """
    if start > end:
        raise YFinanceError(f"start date ({start}) must be <= end date ({end})")

    if start > date.today():
        raise YFinanceError("Future dates not allowed for historical data")


def _validate_ticker(ticker: str) -> None:
    """
    Basic ticker validation.

    Raises:
        YFinanceError: If ticker is invalid
    """
    if not ticker or not isinstance(ticker, str):
        raise YFinanceError("Ticker must be non-empty string")

    if len(ticker) > 10:
        raise YFinanceError("Ticker too long (max 10 characters)")

    # Alphanumeric plus common ticker chars; '^' prefixes indices
    allowed_chars = set('ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-^')
    if not set(ticker.upper()).issubset(allowed_chars):
        raise YFinanceError(f"Ticker contains invalid characters: {ticker}")
