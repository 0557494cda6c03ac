"""
Tests for the real CAPM job - config validation, pure computation and the
async orchestration with patched adapters.
"""

import asyncio
import math
from datetime import date
from unittest.mock import patch

import pytest

from analysis import capm_job
from analysis.baskets import MERVAL_BASKET
from analysis.capm_job import (
    ConfigError,
    RealCapmConfig,
    compute_real_capm,
    compute_real_capm_vs_index,
    run_real_capm,
)
from analysis.guardrails import QualityVerdict
from ingestion.cpi_provider import CpiUnavailableError
from ingestion.providers import data912_adapter, yfinance_adapter
from ingestion.providers.errors import NoHistoryError


def _months(n, start_year=2020):
    return [date(start_year + i // 12, i % 12 + 1, 1) for i in range(n)]


def _benchmark_returns(n):
    return [0.05 if i % 2 == 0 else -0.03 for i in range(n - 1)]


def _series(days, log_returns, base, scale=1.0):
    rows = [{'date': days[0], 'close': base}]
    level = base
    for day, r in zip(days[1:], log_returns):
        level *= math.exp(scale * r)
        rows.append({'date': day, 'close': level})
    return rows


def _flat_cpi(days, value=100.0):
    return {f"{d.year:04d}-{d.month:02d}": value for d in days}


DAYS = _months(40)
BENCHMARK = _series(DAYS, _benchmark_returns(40), 1000.0)
ASSET = _series(DAYS, _benchmark_returns(40), 50.0, scale=2.0)
CPI = _flat_cpi(DAYS)


class FakeCpiProvider:
    def __init__(self, cpi_map=None, error=None):
        self.cpi_map = cpi_map if cpi_map is not None else CPI
        self.error = error

    async def fetch_cpi_index(self, force_refresh=False):
        if self.error:
            raise self.error
        return self.cpi_map


class TestRealCapmConfig:

    def test_normalizes_and_defaults(self):
        config = RealCapmConfig(ticker=' ggal ', benchmark='spy', window='5y')

        assert config.ticker == 'GGAL'
        assert config.benchmark == 'SPY'
        assert config.lookback_months == 60
        assert config.risk_free_rate == 0.0
        assert config.uses_synthetic_benchmark is False

    def test_max_window_is_unbounded(self):
        assert RealCapmConfig(ticker='GGAL', window='max').lookback_months is None

    @pytest.mark.parametrize('kwargs', [
        {'ticker': ''},
        {'ticker': 'GGAL', 'frequency': 'hourly'},
        {'ticker': 'GGAL', 'window': '2W'},
        {'ticker': 'GGAL', 'market': 'bonds'},
        {'ticker': 'GGAL', 'risk_free_bond': 'AL30'},
        {'ticker': 'GGAL', 'risk_free_bond': 'TZX26', 'risk_free_rate': 0.02},
    ])
    def test_invalid_configs(self, kwargs):
        with pytest.raises(ConfigError):
            RealCapmConfig(**kwargs)

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestComputeRealCapm:

    def test_green_result_with_known_beta(self):
        result = compute_real_capm(ASSET, BENCHMARK, CPI, 'monthly', None, 0.0)

        assert result.beta == pytest.approx(2.0)
        assert result.correlation == pytest.approx(1.0)
        assert result.sample_size == 39
        assert result.quality.verdict == QualityVerdict.GREEN
        assert result.first_period == '2020-01'
        assert result.last_period == '2023-04'

    def test_alpha_uses_annualized_returns(self):
        result = compute_real_capm(ASSET, BENCHMARK, CPI, 'monthly', None, 0.03)

        expected = result.real_asset_annual_return - (
            0.03 + result.beta * (result.real_benchmark_annual_return - 0.03)
        )
        assert result.alpha == pytest.approx(expected)

    def test_flat_nominal_asset_loses_to_inflation(self):
        cpi = {f"{d.year:04d}-{d.month:02d}": 100.0 * 1.01 ** i for i, d in enumerate(DAYS)}
        flat = [{'date': d, 'close': 100.0} for d in DAYS]

        result = compute_real_capm(flat, BENCHMARK, cpi, 'monthly', None, 0.0)

        assert result.real_asset_annual_return == pytest.approx(1.01 ** -12 - 1)
        assert result.beta == pytest.approx(0.0, abs=1e-9)

    def test_short_sample_is_red_not_raised(self):
        result = compute_real_capm(ASSET[:5], BENCHMARK[:5], CPI, 'monthly', None, 0.0)

        assert result.sample_size == 4
        assert result.quality.verdict == QualityVerdict.RED
        assert not result.quality.is_reliable

    def test_window_limits_sample(self):
        result = compute_real_capm(ASSET, BENCHMARK, CPI, 'monthly', 12, 0.0)

        # 13 month-ends inside [2022-04, 2023-04]
        assert result.sample_size == 12
        assert result.first_period == '2022-04'

    def test_to_dict_contract(self):
        data = compute_real_capm(ASSET, BENCHMARK, CPI, 'monthly', None, 0.0).to_dict()

        assert data['quality_verdict'] == 'green'
        assert data['sample_size'] == 39
        assert data['quality']['verdict'] == 'green'
        assert isinstance(data['warnings'], list)
        assert {'beta', 'alpha', 'real_asset_annual_return', 'risk_free_rate'} <= set(data)


class TestComputeRealCapmVsIndex:

    def test_joins_asset_to_index_by_period(self):
        index_series = [
            {'period': f"{row['date'].year:04d}-{row['date'].month:02d}", 'value': row['close'] / 10}
            for row in BENCHMARK
        ]
        mid_month_asset = [{'date': row['date'].replace(day=15), 'close': row['close']} for row in ASSET]

        result = compute_real_capm_vs_index(mid_month_asset, index_series, CPI, None, 0.0)

        assert result.frequency == 'monthly'
        assert result.beta == pytest.approx(2.0)
        assert result.sample_size == 39


def _fake_stock_prices(asset_ticker='TEST'):
    calls = []

    async def fake(session, ticker, cache=None):
        calls.append(ticker)
        return ASSET if ticker == asset_ticker else BENCHMARK

    fake.calls = calls
    return fake


class TestRunRealCapm:

    def test_synthetic_merval_benchmark(self):
        fake = _fake_stock_prices()
        config = RealCapmConfig(ticker='TEST', window='MAX')

        with patch.object(data912_adapter, 'fetch_stock_prices', new=fake):
            result = asyncio.run(run_real_capm(config, None, FakeCpiProvider()))

        assert result.benchmark_source == 'synthetic_merval'
        assert result.average_components_per_period == pytest.approx(len(MERVAL_BASKET))
        assert result.beta == pytest.approx(2.0)
        assert result.risk_free_source == 'fixed'
        assert set(MERVAL_BASKET) <= set(fake.calls)

    def test_synthetic_merval_forces_monthly(self):
        config = RealCapmConfig(ticker='TEST', window='MAX', frequency='weekly')

        with patch.object(data912_adapter, 'fetch_stock_prices', new=_fake_stock_prices()):
            result = asyncio.run(run_real_capm(config, None, FakeCpiProvider()))

        assert result.frequency == 'monthly'
        assert any('monthly' in note for note in result.notes)

    def test_bond_yield_sets_risk_free(self):
        async def fake_bond(session, bond, cache=None):
            return [
                {'date': date(2023, 1, 2), 'close': 100.0, 'yield': 4.2},
                {'date': date(2023, 2, 1), 'close': 101.0, 'yield': None},
            ]

        config = RealCapmConfig(ticker='TEST', window='MAX', risk_free_bond='tzx26')

        with patch.object(data912_adapter, 'fetch_stock_prices', new=_fake_stock_prices()), \
                patch.object(data912_adapter, 'fetch_bond_observations', new=fake_bond):
            result = asyncio.run(run_real_capm(config, None, FakeCpiProvider()))

        assert result.risk_free_rate == pytest.approx(0.042)
        assert result.risk_free_source == 'TZX26:direct_yield'

    def test_price_benchmark_falls_back_to_yahoo(self):
        async def no_listing(session, ticker, cache=None):
            raise NoHistoryError(ticker)

        async def fake_yahoo(symbols, start, end):
            assert symbols == yfinance_adapter.NASDAQ_FALLBACK_SYMBOLS
            return '^IXIC', BENCHMARK

        config = RealCapmConfig(ticker='TEST', benchmark='nasdaq', window='MAX')

        with patch.object(data912_adapter, 'fetch_stock_prices', new=_fake_stock_prices()), \
                patch.object(data912_adapter, 'fetch_listed_prices', new=no_listing), \
                patch.object(yfinance_adapter, 'fetch_first_available', new=fake_yahoo):
            result = asyncio.run(run_real_capm(config, None, FakeCpiProvider()))

        assert result.benchmark_source == 'yahoo:^IXIC'
        assert result.beta == pytest.approx(2.0)

    def test_unknown_benchmark_without_history_raises(self):
        async def no_listing(session, ticker, cache=None):
            raise NoHistoryError(ticker)

        config = RealCapmConfig(ticker='TEST', benchmark='ZZZZ', window='MAX')

        with patch.object(data912_adapter, 'fetch_stock_prices', new=_fake_stock_prices()), \
                patch.object(data912_adapter, 'fetch_listed_prices', new=no_listing):
            with pytest.raises(NoHistoryError):
                asyncio.run(run_real_capm(config, None, FakeCpiProvider()))

    def test_cpi_unavailable_is_fatal(self):
        config = RealCapmConfig(ticker='TEST')

        with pytest.raises(CpiUnavailableError):
            asyncio.run(run_real_capm(config, None, FakeCpiProvider(error=CpiUnavailableError('down'))))

    def test_yahoo_aliases_cover_nasdaq(self):
        assert capm_job.YAHOO_BENCHMARKS['NASDAQ'][0] == '^IXIC'

    def test_max_window_caps_synthetic_merval_at_ten_years(self):
        days = _months(150, start_year=2010)
        asset = _series(days, _benchmark_returns(150), 50.0, scale=2.0)
        benchmark = _series(days, _benchmark_returns(150), 1000.0)

        async def fake(session, ticker, cache=None):
            return asset if ticker == 'TEST' else benchmark

        config = RealCapmConfig(ticker='TEST', window='MAX')

        with patch.object(data912_adapter, 'fetch_stock_prices', new=fake):
            result = asyncio.run(run_real_capm(config, None, FakeCpiProvider(_flat_cpi(days))))

        # 121 month-ends inside [2012-06, 2022-06]
        assert result.first_period == '2012-06'
        assert result.last_period == '2022-06'
        assert result.sample_size == 120
