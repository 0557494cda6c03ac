"""
Crypto adapter - BTC-USD daily history from Coinbase, CoinGecko as fallback.
Network IO allowed here; rows leave this module in canonical shape.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List

import aiohttp

from ingestion.providers.errors import FetchError, NoHistoryError
from ingestion.providers.http_client import get_json
from ingestion.transforms.normalizers import normalize_price_rows

logger = logging.getLogger(__name__)

COINBASE_CANDLES_URL = 'https://api.exchange.coinbase.com/products/BTC-USD/candles'
COINGECKO_RANGE_URL = 'https://api.coingecko.com/api/v3/coins/bitcoin/market_chart/range'
SECONDS_PER_DAY = 86400
CANDLES_PER_REQUEST = 300


def _to_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _utc_day(timestamp_s: float) -> date:
    return datetime.fromtimestamp(timestamp_s, tz=timezone.utc).date()


async def fetch_btc_coinbase(
    session: aiohttp.ClientSession,
    start: date,
    end: date
) -> List[Dict[str, Any]]:
    """
    Daily BTC-USD closes from Coinbase candles, paged 300 days per request.

    Candles are [time, low, high, open, close, volume]; the first candle
    seen for a day wins.

    Returns:
        Canonical PricePoints
    """
    first_by_day: Dict[date, float] = {}
    window_start = _to_utc(start)
    stop = _to_utc(end)

    while window_start < stop:
        window_end = min(window_start + timedelta(days=CANDLES_PER_REQUEST), stop)
        params = {
            'granularity': SECONDS_PER_DAY,
            'start': window_start.isoformat(),
            'end': window_end.isoformat(),
        }
        candles = await get_json(session, COINBASE_CANDLES_URL, params=params)
        if not isinstance(candles, list):
            candles = []

        for candle in candles:
            if not isinstance(candle, (list, tuple)) or len(candle) < 5:
                continue
            close = candle[4]
            if not isinstance(close, (int, float)) or close <= 0:
                continue
            first_by_day.setdefault(_utc_day(candle[0]), float(close))

        window_start = window_end
        if len(candles) < CANDLES_PER_REQUEST:
            break

    return normalize_price_rows([
        {'date': day, 'close': close} for day, close in first_by_day.items()
    ])


async def fetch_btc_coingecko(
    session: aiohttp.ClientSession,
    start: date,
    end: date
) -> List[Dict[str, Any]]:
    """
    Daily BTC-USD prices from CoinGecko's market_chart/range.

    Prices are [timestamp_ms, value]; the latest sample of each day wins.
    """
    params = {
        'vs_currency': 'usd',
        'from': int(_to_utc(start).timestamp()),
        'to': int(_to_utc(end).timestamp()),
    }
    payload = await get_json(session, COINGECKO_RANGE_URL, params=params)
    samples = payload.get('prices') if isinstance(payload, dict) else None

    last_by_day: Dict[date, tuple] = {}
    for sample in samples or []:
        if not isinstance(sample, (list, tuple)) or len(sample) < 2:
            continue
        timestamp_ms, value = sample[0], sample[1]
        if not isinstance(value, (int, float)):
            continue
        day = _utc_day(timestamp_ms / 1000)
        current = last_by_day.get(day)
        if current is None or timestamp_ms > current[0]:
            last_by_day[day] = (timestamp_ms, float(value))

    return normalize_price_rows([
        {'date': day, 'close': value} for day, (_, value) in last_by_day.items()
    ])


async def fetch_btc_history(
    session: aiohttp.ClientSession,
    start: date,
    end: date
) -> List[Dict[str, Any]]:
    """
    BTC-USD daily history: Coinbase first, CoinGecko if Coinbase fails.

    Raises:
        NoHistoryError: If neither source returns at least 2 prices
        FetchError: From CoinGecko when both sources fail
    """
    try:
        prices = await fetch_btc_coinbase(session, start, end)
        if len(prices) >= 2:
            return prices
        logger.warning(f"Coinbase returned {len(prices)} BTC rows, trying CoinGecko")
    except FetchError as e:
        logger.warning(f"Coinbase BTC fetch failed, trying CoinGecko: {e}")

    prices = await fetch_btc_coingecko(session, start, end)
    if len(prices) < 2:
        raise NoHistoryError("No BTC history from Coinbase or CoinGecko")
    return prices
