#!/usr/bin/env python3
"""
Main CLI for the real-return CAPM workbench.
Usage: python cli.py capm TICKER [options]
"""

import sys
import json
import asyncio
import logging
import argparse
from datetime import date
from pathlib import Path

import aiohttp

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from analysis.btc_nasdaq_job import DEFAULT_START, run_btc_vs_nasdaq
from analysis.capm_job import ConfigError, RealCapmConfig, run_real_capm
from analysis.guardrails import QualityVerdict, create_data_quality_report
from analysis.risk_free import NoYieldAvailableError, cer_bond_universe
from analysis.synthetic_index import InsufficientCoverageError
from ingestion.cpi_provider import CpiProvider, CpiUnavailableError
from ingestion.providers import data912_adapter
from ingestion.providers.errors import UNRELIABLE_RESULT_MESSAGE, FetchError, user_message
from storage.ttl_cache import default_file_cache

EXPECTED_ERRORS = (
    FetchError,
    CpiUnavailableError,
    InsufficientCoverageError,
    NoYieldAvailableError,
)


def _pct(value) -> str:
    return 'n/a' if value is None else f"{value:.2%}"


async def _run_capm(args) -> int:
    config = RealCapmConfig(
        ticker=args.ticker,
        benchmark=args.benchmark,
        window=args.window,
        frequency=args.frequency,
        market=args.market,
        risk_free_bond=args.bond,
        risk_free_rate=args.rf,
    )
    cache = default_file_cache()

    async with aiohttp.ClientSession() as session:
        provider = CpiProvider.from_session(session, cache)
        result = await run_real_capm(config, session, provider, cache)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0

    print(f"Real CAPM: {result.ticker} vs {result.benchmark} ({config.window}, {result.frequency})")
    print(f"Periods: {result.first_period} to {result.last_period}")
    print(f"Benchmark source: {result.benchmark_source}")
    if result.average_components_per_period is not None:
        print(f"Average basket components per period: {result.average_components_per_period:.1f}")
    print()
    print(f"Beta:                  {result.beta:.3f}")
    print(f"Correlation:           {result.correlation:.3f}")
    print(f"Real asset return:     {_pct(result.real_asset_annual_return)}")
    print(f"Real benchmark return: {_pct(result.real_benchmark_annual_return)}")
    print(f"Real risk-free rate:   {_pct(result.risk_free_rate)} ({result.risk_free_source})")
    print(f"Alpha:                 {_pct(result.alpha)}")
    print()
    print(create_data_quality_report(result.quality, result.ticker))
    for note in result.notes:
        print(f"Note: {note}")

    if result.quality.verdict == QualityVerdict.RED:
        print()
        print(UNRELIABLE_RESULT_MESSAGE)
    return 0


async def _run_btc_nasdaq(args) -> int:
    cache = default_file_cache()

    def progress(completed: int, total: int) -> None:
        if not args.json and (completed == total or completed % 10 == 0):
            print(f"  NASDAQ constituents: {completed}/{total}")

    async with aiohttp.ClientSession() as session:
        result = await run_btc_vs_nasdaq(session, start=args.start, cache=cache, on_progress=progress)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(f"BTC vs NASDAQ (base 100, NASDAQ source: {result.nasdaq_source})")
    for year, btc, nasdaq in zip(result.years, result.btc_index, result.nasdaq_index):
        print(f"  {year}  BTC {btc:>12.1f}  NASDAQ {nasdaq:>8.1f}")
    for warning in result.warnings:
        print(f"WARNING: {warning}")
    return 0


async def _run_cpi(args) -> int:
    async with aiohttp.ClientSession() as session:
        provider = CpiProvider.from_session(session, default_file_cache())
        cpi_map = await provider.fetch_cpi_index(force_refresh=args.refresh)

    months = sorted(cpi_map)
    print(f"CPI series: {provider.series_id or 'cached'}")
    print(f"Months: {len(months)} ({months[0]} to {months[-1]})")
    for month in months[-args.tail:]:
        print(f"  {month}  {cpi_map[month]:.2f}")
    return 0


async def _run_stocks(args) -> int:
    async with aiohttp.ClientSession() as session:
        tickers = await data912_adapter.fetch_stock_universe(session)

    for ticker in tickers:
        print(ticker)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Real (CPI-deflated) CAPM workbench',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py capm GGAL
  python cli.py capm YPFD --window 3Y --bond TZX26
  python cli.py capm AAPL --market cedears --benchmark NASDAQ --frequency weekly
  python cli.py btc-nasdaq --start 2018-01-01
  python cli.py cpi --refresh
  python cli.py bonds
  python cli.py stocks
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    capm = subparsers.add_parser('capm', help='Real beta, returns and alpha for a ticker')
    capm.add_argument('ticker', help='Asset ticker (e.g., GGAL)')
    capm.add_argument('--benchmark', default='MERVAL',
                      help='Benchmark ticker, or MERVAL for the synthetic index (default: MERVAL)')
    capm.add_argument('--window', default='5Y', help='6M, 1Y, 3Y, 5Y, 10Y or MAX (default: 5Y)')
    capm.add_argument('--frequency', default='monthly', choices=['daily', 'weekly', 'monthly'])
    capm.add_argument('--market', default='stocks', choices=['stocks', 'cedears'])
    rf = capm.add_mutually_exclusive_group()
    rf.add_argument('--bond', help='CER bond used as real risk-free rate')
    rf.add_argument('--rf', type=float, help='Fixed annual real risk-free rate (decimal)')
    capm.add_argument('--json', action='store_true', help='Print the output contract as JSON')

    btc = subparsers.add_parser('btc-nasdaq', help='BTC vs NASDAQ annual comparison')
    btc.add_argument('--start', type=date.fromisoformat, default=DEFAULT_START,
                     help='Start date (YYYY-MM-DD, default: 2016-01-01)')
    btc.add_argument('--json', action='store_true')

    cpi = subparsers.add_parser('cpi', help='Show the CPI series in use')
    cpi.add_argument('--refresh', action='store_true', help='Ignore caches')
    cpi.add_argument('--tail', type=int, default=12, help='Months to print (default: 12)')

    subparsers.add_parser('bonds', help='List CER bonds usable as risk-free proxies')
    subparsers.add_parser('stocks', help='List local stock tickers on the live board')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if args.command == 'bonds':
        for ticker in cer_bond_universe():
            print(ticker)
        return 0

    handlers = {
        'capm': _run_capm,
        'btc-nasdaq': _run_btc_nasdaq,
        'cpi': _run_cpi,
        'stocks': _run_stocks,
    }

    try:
        return asyncio.run(handlers[args.command](args))
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except EXPECTED_ERRORS as e:
        print(f"ERROR: {user_message(e)}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
