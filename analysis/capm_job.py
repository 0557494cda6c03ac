"""
Real CAPM job - orchestrates fetch, deflation and estimation for one asset.
Composes: CPI → Prices → Align → Resample → Window → Clip → Deflate →
Returns → Beta → Quality → Output contract.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from analysis.baskets import MERVAL_BASKET, MERVAL_MAX_LOOKBACK_MONTHS, MERVAL_MIN_COMPONENTS
from analysis.calculations.alignment import (
    FREQUENCIES,
    WINDOW_OPTIONS,
    align_by_date,
    periods_per_year,
    resample,
    window_filter,
    window_months,
)
from analysis.calculations.beta import estimate_beta
from analysis.calculations.deflator import PAIRED_FIELDS, ClipResult, clip_to_cpi_range, deflate
from analysis.calculations.returns import (
    annualized_real_return,
    capm_alpha,
    compute_log_returns,
)
from analysis.guardrails import QualityReport, assess_quality
from analysis.risk_free import is_cer_bond, resolve_real_yield
from analysis.synthetic_index import build_equal_weight_index
from ingestion.cpi_provider import CpiProvider
from ingestion.providers import data912_adapter, yfinance_adapter
from ingestion.providers.errors import NetworkFailureError, NoHistoryError
from storage.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

SYNTHETIC_MERVAL = 'MERVAL'
MARKETS = ('stocks', 'cedears')

# Benchmarks that can fall back to Yahoo symbols when Data912 has no series
YAHOO_BENCHMARKS = {
    'NASDAQ': yfinance_adapter.NASDAQ_FALLBACK_SYMBOLS,
    'SPX': ('^GSPC', 'SPY'),
}


class ConfigError(ValueError):
    """Raised when a job configuration is invalid."""
    pass


@dataclass
class RealCapmConfig:
    """Configuration for one real CAPM computation."""
    ticker: str
    benchmark: str = SYNTHETIC_MERVAL
    window: str = '5Y'
    frequency: str = 'monthly'
    market: str = 'stocks'
    risk_free_bond: Optional[str] = None
    risk_free_rate: Optional[float] = None

    def __post_init__(self):
        """Validate and normalize."""
        if not self.ticker or not isinstance(self.ticker, str):
            raise ConfigError("ticker must be non-empty string")
        self.ticker = self.ticker.strip().upper()
        self.benchmark = (self.benchmark or SYNTHETIC_MERVAL).strip().upper()
        self.window = (self.window or 'MAX').strip().upper()

        if self.frequency not in FREQUENCIES:
            raise ConfigError(f"frequency must be one of {FREQUENCIES}")

        if self.window != 'MAX' and self.window not in WINDOW_OPTIONS:
            raise ConfigError(f"window must be MAX or one of {sorted(WINDOW_OPTIONS)}")

        if self.market not in MARKETS:
            raise ConfigError(f"market must be one of {MARKETS}")

        if self.risk_free_bond is not None:
            self.risk_free_bond = self.risk_free_bond.strip().upper()
            if not is_cer_bond(self.risk_free_bond):
                raise ConfigError(f"{self.risk_free_bond} is not in the CER bond list")
            if self.risk_free_rate is not None:
                raise ConfigError("Use either risk_free_bond or risk_free_rate, not both")

        if self.risk_free_bond is None and self.risk_free_rate is None:
            self.risk_free_rate = 0.0

    @property
    def lookback_months(self) -> Optional[int]:
        return window_months(self.window)

    @property
    def uses_synthetic_benchmark(self) -> bool:
        return self.benchmark == SYNTHETIC_MERVAL


@dataclass
class RealCapmResult:
    """Numbers plus the quality verdict that must travel with them."""
    beta: float
    correlation: float
    real_asset_annual_return: Optional[float]
    real_benchmark_annual_return: Optional[float]
    risk_free_rate: float
    alpha: Optional[float]
    quality: QualityReport
    frequency: str
    first_period: Optional[str] = None
    last_period: Optional[str] = None
    ticker: Optional[str] = None
    benchmark: Optional[str] = None
    benchmark_source: Optional[str] = None
    risk_free_source: Optional[str] = None
    average_components_per_period: Optional[float] = None
    notes: List[str] = field(default_factory=list)

    @property
    def sample_size(self) -> int:
        return self.quality.sample_size

    def to_dict(self) -> Dict[str, Any]:
        """Output contract consumed by the presentation layer."""
        data = asdict(self)
        data.pop('quality')
        data['quality_verdict'] = self.quality.verdict.value
        data['sample_size'] = self.quality.sample_size
        data['warnings'] = list(self.quality.warnings) + list(self.notes)
        data['quality'] = self.quality.to_dict()
        return data


def _summarize(
    real_rows: List[Dict[str, Any]],
    clip: ClipResult,
    frequency: str,
    risk_free_rate: float
) -> RealCapmResult:
    """Returns, beta, annualization, alpha and quality from real paired rows."""
    sample = compute_log_returns(real_rows)
    estimate = estimate_beta(sample.asset_returns, sample.benchmark_returns)

    periods = periods_per_year(frequency)
    asset_annual = annualized_real_return(sample.asset_returns, periods)
    benchmark_annual = annualized_real_return(sample.benchmark_returns, periods)

    alpha = None
    if asset_annual is not None and benchmark_annual is not None:
        alpha = capm_alpha(asset_annual, benchmark_annual, risk_free_rate, estimate.beta)

    quality = assess_quality(
        sample_size=sample.sample_size,
        clipped_fraction=clip.clipped_fraction,
        benchmark_variance=estimate.benchmark_variance,
        cpi_resolved=bool(real_rows),
        frequency=frequency,
        correlation=estimate.correlation,
        anti_split_events=sample.anti_split_event_count,
        cpi_interpolated=clip.interpolated,
    )

    return RealCapmResult(
        beta=estimate.beta,
        correlation=estimate.correlation,
        real_asset_annual_return=asset_annual,
        real_benchmark_annual_return=benchmark_annual,
        risk_free_rate=risk_free_rate,
        alpha=alpha,
        quality=quality,
        frequency=frequency,
        first_period=real_rows[0]['period'] if real_rows else None,
        last_period=real_rows[-1]['period'] if real_rows else None,
    )


def compute_real_capm(
    asset_rows: List[Dict[str, Any]],
    benchmark_rows: List[Dict[str, Any]],
    cpi_map: Mapping[str, float],
    frequency: str,
    lookback_months: Optional[int],
    risk_free_rate: float
) -> RealCapmResult:
    """
    Real beta, returns and alpha of an asset against a price benchmark.

    Never raises on thin data: a short or unusable series produces a RED
    verdict alongside whatever numbers could be computed.

    Args:
        asset_rows: Asset PricePoints
        benchmark_rows: Benchmark PricePoints
        cpi_map: CPI map (YYYY-MM -> index value)
        frequency: 'daily', 'weekly' or 'monthly'
        lookback_months: Window length, None for the full history
        risk_free_rate: Annual real risk-free rate (decimal)

    Returns:
        RealCapmResult
    """
    aligned = align_by_date(asset_rows, benchmark_rows)
    windowed = window_filter(resample(aligned, frequency), lookback_months)
    clip = clip_to_cpi_range(windowed, cpi_map)
    real_rows = deflate(clip.series, cpi_map, fields=PAIRED_FIELDS)
    return _summarize(real_rows, clip, frequency, risk_free_rate)


def compute_real_capm_vs_index(
    asset_rows: List[Dict[str, Any]],
    index_series: List[Dict[str, Any]],
    cpi_map: Mapping[str, float],
    lookback_months: Optional[int],
    risk_free_rate: float
) -> RealCapmResult:
    """
    Real CAPM against a synthetic index that is already real and monthly.

    The asset is resampled monthly, windowed, clipped and deflated on its
    own, then joined to the index by period.
    """
    monthly = window_filter(resample(asset_rows, 'monthly'), lookback_months)
    clip = clip_to_cpi_range(monthly, cpi_map)
    real_asset = deflate(clip.series, cpi_map)

    index_by_period = {point['period']: point['value'] for point in index_series}
    real_rows = [
        {'period': row['period'], 'asset': row['close'], 'benchmark': index_by_period[row['period']]}
        for row in real_asset
        if row['period'] in index_by_period
    ]
    return _summarize(real_rows, clip, 'monthly', risk_free_rate)


def _history_start(lookback_months: Optional[int]) -> date:
    if lookback_months is None:
        return date(2000, 1, 1)
    # One extra month so the window's first period is fully covered
    return date.today() - timedelta(days=31 * (lookback_months + 1))


async def _fetch_benchmark_prices(
    config: RealCapmConfig,
    session: aiohttp.ClientSession,
    cache: Optional[TTLCache]
) -> Dict[str, Any]:
    """
    Benchmark prices with a fallback chain: Data912, then Yahoo.

    Returns:
        {'prices': [...], 'source': str}
    """
    yahoo_symbols = YAHOO_BENCHMARKS.get(config.benchmark)

    try:
        prices = await data912_adapter.fetch_listed_prices(session, config.benchmark, cache)
        return {'prices': prices, 'source': f'data912:{config.benchmark}'}
    except NetworkFailureError as e:
        logger.warning(f"Benchmark {config.benchmark} unreachable on Data912, falling back to Yahoo: {e}")
    except NoHistoryError:
        if yahoo_symbols is None:
            raise
        logger.info(f"Benchmark {config.benchmark} not listed on Data912, using Yahoo")

    symbol, prices = await yfinance_adapter.fetch_first_available(
        yahoo_symbols or (config.benchmark,),
        _history_start(config.lookback_months),
        date.today(),
    )
    return {'prices': prices, 'source': f'yahoo:{symbol}'}


async def _fetch_asset_prices(
    config: RealCapmConfig,
    session: aiohttp.ClientSession,
    cache: Optional[TTLCache]
) -> List[Dict[str, Any]]:
    if config.market == 'cedears':
        return await data912_adapter.fetch_listed_prices(session, config.ticker, cache)
    return await data912_adapter.fetch_stock_prices(session, config.ticker, cache)


async def run_real_capm(
    config: RealCapmConfig,
    session: aiohttp.ClientSession,
    cpi_provider: CpiProvider,
    cache: Optional[TTLCache] = None
) -> RealCapmResult:
    """
    Run the complete real CAPM computation for one configuration.

    Stages:
    1. CPI map (fatal if unavailable)
    2. Asset history (fatal if missing)
    3. Real risk-free rate (CER bond or fixed)
    4. Benchmark: synthetic MERVAL or price history with fallbacks
    5. Pure computation and quality verdict

    Raises:
        CpiUnavailableError, NoHistoryError, RateLimitedError,
        NetworkFailureError, InsufficientCoverageError, NoYieldAvailableError
    """
    cpi_map = await cpi_provider.fetch_cpi_index()
    lookback = config.lookback_months

    asset_prices = await _fetch_asset_prices(config, session, cache)
    logger.info(f"{config.ticker}: {len(asset_prices)} prices")

    if config.risk_free_bond:
        estimate = await resolve_real_yield(
            config.risk_free_bond,
            cpi_map,
            lookback,
            lambda bond: data912_adapter.fetch_bond_observations(session, bond, cache),
        )
        risk_free_rate = estimate.annual_real_rate
        risk_free_source = f"{config.risk_free_bond}:{estimate.source}"
    else:
        risk_free_rate = config.risk_free_rate
        risk_free_source = 'fixed'

    notes = []
    if config.uses_synthetic_benchmark:
        synthetic = await build_equal_weight_index(
            MERVAL_BASKET,
            lookback if lookback is not None else MERVAL_MAX_LOOKBACK_MONTHS,
            cpi_map,
            lambda ticker: data912_adapter.fetch_stock_prices(session, ticker, cache),
            MERVAL_MIN_COMPONENTS,
        )
        if config.frequency != 'monthly':
            notes.append("The synthetic MERVAL is monthly; results use monthly frequency.")
        result = compute_real_capm_vs_index(
            asset_prices, synthetic.index_series, cpi_map, lookback, risk_free_rate
        )
        result.benchmark_source = 'synthetic_merval'
        result.average_components_per_period = synthetic.average_components_per_period
    else:
        benchmark = await _fetch_benchmark_prices(config, session, cache)
        result = compute_real_capm(
            asset_prices, benchmark['prices'], cpi_map, config.frequency, lookback, risk_free_rate
        )
        result.benchmark_source = benchmark['source']

    result.ticker = config.ticker
    result.benchmark = config.benchmark
    result.risk_free_source = risk_free_source
    result.notes = notes

    logger.info(
        f"{config.ticker} vs {config.benchmark}: beta={result.beta:.3f} "
        f"n={result.sample_size} verdict={result.quality.verdict.value}"
    )
    return result
