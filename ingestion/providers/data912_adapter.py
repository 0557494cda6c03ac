"""
Data912 adapter - historical prices for local stocks, CEDEARs and bonds.
Network IO allowed here; rows leave this module in canonical shape.
"""

import os
import logging
from datetime import date
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
from dotenv import load_dotenv

from ingestion.providers.errors import FetchError, NoHistoryError
from ingestion.providers.http_client import get_json
from ingestion.transforms.normalizers import (
    extract_row_list,
    normalize_bond_rows,
    normalize_price_rows,
)
from ingestion.transforms.validators import validate_price_series
from storage.ttl_cache import TTLCache, get_or_fetch

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Index names that must never be requested as tickers
SYNTHETIC_ONLY_SYMBOLS = {'MERVAL'}


def _base_url() -> str:
    return os.getenv('DATA912_BASE_URL', 'https://data912.com').rstrip('/')


def _validate_ticker(ticker: str) -> str:
    """
    Basic ticker validation.

    Raises:
        NoHistoryError: If ticker is empty or names a synthetic-only index
    """
    if not ticker or not isinstance(ticker, str):
        raise NoHistoryError("Ticker must be non-empty string")

    symbol = ticker.strip().upper()
    if symbol in SYNTHETIC_ONLY_SYMBOLS:
        raise NoHistoryError(f"{symbol} is not a ticker: use the synthetic index instead")
    return symbol


async def _fetch_history_rows(
    session: aiohttp.ClientSession,
    market: str,
    symbol: str
) -> List[Dict[str, Any]]:
    url = f"{_base_url()}/historical/{market}/{quote(symbol)}"
    logger.info(f"Data912: {url}")
    payload = await get_json(session, url)
    rows = extract_row_list(payload)
    if not rows:
        raise NoHistoryError(f"{symbol} has no history in {market}")
    return rows


async def fetch_stock_prices(
    session: aiohttp.ClientSession,
    ticker: str,
    cache: Optional[TTLCache] = None
) -> List[Dict[str, Any]]:
    """
    Fetch a local stock's daily price history.

    Returns:
        Canonical PricePoints in chronological order

    Raises:
        RateLimitedError: HTTP 429
        NoHistoryError: 404, empty payload, or no valid rows
        NetworkFailureError: Timeout or transport failure
    """
    symbol = _validate_ticker(ticker)

    raw_rows = await get_or_fetch(
        cache,
        f"data912_stocks_{symbol}_{date.today().isoformat()}",
        lambda: _fetch_history_rows(session, 'stocks', symbol),
    )

    prices = normalize_price_rows(raw_rows)
    if not prices:
        raise NoHistoryError(f"{symbol} has no valid prices")
    validate_price_series(prices)
    return prices


async def fetch_listed_prices(
    session: aiohttp.ClientSession,
    ticker: str,
    cache: Optional[TTLCache] = None
) -> List[Dict[str, Any]]:
    """
    Fetch a foreign name's history, trying CEDEARs first, then stocks.

    Raises:
        RateLimitedError / NetworkFailureError: If any market failed
            transiently (retry later), even when the other had no history
        NoHistoryError: If neither market has usable history
    """
    symbol = _validate_ticker(ticker)
    retryable_error: Optional[FetchError] = None
    missing_error: Optional[FetchError] = None

    for market in ('cedears', 'stocks'):
        try:
            raw_rows = await get_or_fetch(
                cache,
                f"data912_{market}_{symbol}_{date.today().isoformat()}",
                lambda market=market: _fetch_history_rows(session, market, symbol),
            )
        except FetchError as e:
            if e.retryable:
                retryable_error = retryable_error or e
            else:
                missing_error = e
            continue

        prices = normalize_price_rows(raw_rows)
        if len(prices) >= 2:
            validate_price_series(prices)
            return prices
        missing_error = NoHistoryError(f"{symbol} has fewer than 2 valid prices in {market}")

    raise retryable_error or missing_error or NoHistoryError(f"{symbol} has no history")


async def fetch_bond_observations(
    session: aiohttp.ClientSession,
    ticker: str,
    cache: Optional[TTLCache] = None
) -> List[Dict[str, Any]]:
    """
    Fetch a bond's history including any explicit yield field.

    Returns:
        Canonical BondObservations ('date', 'close', 'yield')

    Raises:
        NoHistoryError / RateLimitedError / NetworkFailureError
    """
    symbol = _validate_ticker(ticker)

    raw_rows = await get_or_fetch(
        cache,
        f"data912_bonds_{symbol}_{date.today().isoformat()}",
        lambda: _fetch_history_rows(session, 'bonds', symbol),
    )

    observations = normalize_bond_rows(raw_rows)
    if not observations:
        raise NoHistoryError(f"Bond {symbol} has no valid observations")
    return observations


async def fetch_stock_universe(session: aiohttp.ClientSession) -> List[str]:
    """
    List tradable local stock tickers from the live board.

    Returns:
        Sorted unique tickers
    """
    url = f"{_base_url()}/live/arg_stocks"
    payload = await get_json(session, url)

    if isinstance(payload, dict):
        rows = payload.get('stocks') or payload.get('data') or []
    else:
        rows = payload or []

    tickers = set()
    for row in rows:
        if not isinstance(row, dict):
            continue
        symbol = str(row.get('symbol') or row.get('ticker') or row.get('id') or '').upper()
        if symbol:
            tickers.add(symbol)
    return sorted(tickers)
