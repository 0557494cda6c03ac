"""
Tests for the BTC vs NASDAQ job - patched adapters, no network.
"""

import asyncio
from datetime import date
from unittest.mock import patch

import pytest

from analysis.btc_nasdaq_job import _months_between, run_btc_vs_nasdaq
from ingestion.providers import crypto_adapter, data912_adapter, yfinance_adapter
from ingestion.providers.errors import NoHistoryError

START = date(2020, 1, 1)
END = date(2023, 12, 31)

# Doubles every year, one point per month
NASDAQ_MONTHLY = [
    {'date': date(2020 + i // 12, i % 12 + 1, 1), 'close': 100.0 * 2 ** (i / 12)}
    for i in range(48)
]

BTC_DAILY = [
    {'date': date(2020, 6, 1), 'close': 9000.0},
    {'date': date(2020, 12, 31), 'close': 10000.0},
    {'date': date(2021, 12, 31), 'close': 30000.0},
    {'date': date(2022, 12, 31), 'close': 15000.0},
    {'date': date(2023, 12, 31), 'close': 40000.0},
]


async def _fake_btc(session, start, end):
    return BTC_DAILY


class TestRunBtcVsNasdaq:

    def test_synthetic_nasdaq_rebased_yearly(self):
        async def listed(session, ticker, cache=None):
            if ticker in ('AAPL', 'MSFT'):
                return NASDAQ_MONTHLY
            raise NoHistoryError(ticker)

        with patch.object(crypto_adapter, 'fetch_btc_history', new=_fake_btc), \
                patch.object(data912_adapter, 'fetch_listed_prices', new=listed):
            result = asyncio.run(run_btc_vs_nasdaq(None, START, END))

        assert result.years == ['2020', '2021', '2022', '2023']
        assert result.btc_index == pytest.approx([100.0, 300.0, 150.0, 400.0])
        assert result.nasdaq_index == pytest.approx([100.0, 200.0, 400.0, 800.0])
        assert result.nasdaq_source == 'data912_synthetic'
        assert result.valid_tickers == 2
        assert any('only 2' in w for w in result.warnings)

    def test_falls_back_to_yahoo_when_basket_is_empty(self):
        async def listed(session, ticker, cache=None):
            raise NoHistoryError(ticker)

        async def fake_yahoo(symbols, start, end):
            return 'QQQ', NASDAQ_MONTHLY

        with patch.object(crypto_adapter, 'fetch_btc_history', new=_fake_btc), \
                patch.object(data912_adapter, 'fetch_listed_prices', new=listed), \
                patch.object(yfinance_adapter, 'fetch_first_available', new=fake_yahoo):
            result = asyncio.run(run_btc_vs_nasdaq(None, START, END))

        assert result.nasdaq_source == 'yahoo:QQQ'
        assert result.valid_tickers is None
        assert result.warnings == ['NASDAQ approximated with QQQ.']
        assert result.to_dict()['years'] == ['2020', '2021', '2022', '2023']

    def test_btc_failure_propagates(self):
        async def no_btc(session, start, end):
            raise NoHistoryError('BTC')

        with patch.object(crypto_adapter, 'fetch_btc_history', new=no_btc):
            with pytest.raises(NoHistoryError):
                asyncio.run(run_btc_vs_nasdaq(None, START, END))


class TestMonthsBetween:

    def test_counts_calendar_months(self):
        assert _months_between(date(2016, 1, 1), date(2016, 1, 31)) == 0
        assert _months_between(date(2016, 1, 31), date(2017, 3, 1)) == 14
