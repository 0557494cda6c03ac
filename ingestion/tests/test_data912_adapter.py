"""
Tests for the Data912 adapter - mocked HTTP layer, no live API hits in CI.
"""

import asyncio
from datetime import date
from unittest.mock import patch

import pytest

from ingestion.providers import data912_adapter
from ingestion.providers.errors import NetworkFailureError, NoHistoryError, RateLimitedError
from storage.ttl_cache import TTLCache


def _fake_get_json(responses):
    """Async get_json stand-in keyed by URL suffix; exceptions are raised."""
    calls = []

    async def fake(session, url, params=None, **kwargs):
        calls.append(url)
        for suffix, outcome in responses.items():
            if url.endswith(suffix):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise NoHistoryError(f"HTTP 404 from {url}")

    fake.calls = calls
    return fake


class TestFetchStockPrices:

    def test_normalizes_rows(self):
        fake = _fake_get_json({'/historical/stocks/GGAL': [
            {'date': '2024-01-03', 'c': 1200.0},
            {'date': '2024-01-02', 'c': 1100.0},
        ]})

        with patch.object(data912_adapter, 'get_json', new=fake):
            prices = asyncio.run(data912_adapter.fetch_stock_prices(None, 'ggal'))

        assert prices == [
            {'date': date(2024, 1, 2), 'close': 1100.0},
            {'date': date(2024, 1, 3), 'close': 1200.0},
        ]

    def test_merval_is_never_requested(self):
        fake = _fake_get_json({})

        with patch.object(data912_adapter, 'get_json', new=fake):
            with pytest.raises(NoHistoryError, match='synthetic'):
                asyncio.run(data912_adapter.fetch_stock_prices(None, 'MERVAL'))

        assert fake.calls == []

    def test_empty_payload_is_no_history(self):
        fake = _fake_get_json({'/historical/stocks/XXXX': []})

        with patch.object(data912_adapter, 'get_json', new=fake):
            with pytest.raises(NoHistoryError):
                asyncio.run(data912_adapter.fetch_stock_prices(None, 'XXXX'))

    def test_cache_serves_second_call(self):
        fake = _fake_get_json({'/historical/stocks/GGAL': [
            {'date': '2024-01-02', 'c': 1.0},
            {'date': '2024-01-03', 'c': 2.0},
        ]})
        cache = TTLCache()

        with patch.object(data912_adapter, 'get_json', new=fake):
            asyncio.run(data912_adapter.fetch_stock_prices(None, 'GGAL', cache))
            asyncio.run(data912_adapter.fetch_stock_prices(None, 'GGAL', cache))

        assert len(fake.calls) == 1


class TestFetchListedPrices:

    def test_falls_back_from_cedears_to_stocks(self):
        fake = _fake_get_json({'/historical/stocks/YPFD': [
            {'date': '2024-01-02', 'c': 1.0},
            {'date': '2024-01-03', 'c': 2.0},
        ]})

        with patch.object(data912_adapter, 'get_json', new=fake):
            prices = asyncio.run(data912_adapter.fetch_listed_prices(None, 'YPFD'))

        assert len(prices) == 2
        assert fake.calls[0].endswith('/historical/cedears/YPFD')

    def test_rate_limit_wins_over_later_missing_history(self):
        fake = _fake_get_json({'/historical/cedears/AAPL': RateLimitedError('429')})

        with patch.object(data912_adapter, 'get_json', new=fake):
            with pytest.raises(RateLimitedError):
                asyncio.run(data912_adapter.fetch_listed_prices(None, 'AAPL'))

        assert len(fake.calls) == 2

    def test_network_failure_wins_over_earlier_missing_history(self):
        fake = _fake_get_json({'/historical/stocks/AAPL': NetworkFailureError('timeout')})

        with patch.object(data912_adapter, 'get_json', new=fake):
            with pytest.raises(NetworkFailureError):
                asyncio.run(data912_adapter.fetch_listed_prices(None, 'AAPL'))

    def test_missing_everywhere_is_no_history(self):
        fake = _fake_get_json({})

        with patch.object(data912_adapter, 'get_json', new=fake):
            with pytest.raises(NoHistoryError):
                asyncio.run(data912_adapter.fetch_listed_prices(None, 'AAPL'))

    def test_network_failure_surfaces_when_all_markets_fail(self):
        fake = _fake_get_json({
            '/historical/cedears/AAPL': NetworkFailureError('timeout'),
            '/historical/stocks/AAPL': NetworkFailureError('timeout'),
        })

        with patch.object(data912_adapter, 'get_json', new=fake):
            with pytest.raises(NetworkFailureError):
                asyncio.run(data912_adapter.fetch_listed_prices(None, 'AAPL'))


class TestFetchBondObservations:

    def test_yield_fields_are_kept(self):
        fake = _fake_get_json({'/historical/bonds/TZX26': {'data': [
            {'date': '2024-01-02', 'c': 100.0, 'tea': 4.2},
        ]}})

        with patch.object(data912_adapter, 'get_json', new=fake):
            observations = asyncio.run(data912_adapter.fetch_bond_observations(None, 'TZX26'))

        assert observations == [{'date': date(2024, 1, 2), 'close': 100.0, 'yield': 4.2}]


class TestFetchStockUniverse:

    def test_sorted_unique_symbols(self):
        fake = _fake_get_json({'/live/arg_stocks': [
            {'symbol': 'YPFD'}, {'symbol': 'GGAL'}, {'symbol': 'ggal'}, 'junk',
        ]})

        with patch.object(data912_adapter, 'get_json', new=fake):
            tickers = asyncio.run(data912_adapter.fetch_stock_universe(None))

        assert tickers == ['GGAL', 'YPFD']
