"""
Price series alignment utilities.
Pure functions for joining, resampling and windowing price series by period.
"""

import math
from datetime import date
from typing import Dict, Any, List, Optional

import pandas as pd


class AlignmentError(ValueError):
    """Raised when alignment parameters are invalid."""
    pass


FREQUENCIES = ('daily', 'weekly', 'monthly')

PERIODS_PER_YEAR = {
    'daily': 252,
    'weekly': 52,
    'monthly': 12,
}

WINDOW_OPTIONS = {
    '6M': 6,
    '1Y': 12,
    '3Y': 36,
    '5Y': 60,
    '10Y': 120,
}


def window_months(option: Optional[str]) -> Optional[int]:
    """Lookback months for a window option; MAX or unknown means unbounded."""
    if not option:
        return None
    return WINDOW_OPTIONS.get(option.upper())


def periods_per_year(frequency: str) -> int:
    """252 daily, 52 weekly, 12 otherwise."""
    return PERIODS_PER_YEAR.get(frequency, PERIODS_PER_YEAR['monthly'])


def align_by_date(
    asset_rows: List[Dict[str, Any]],
    benchmark_rows: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Inner join two PricePoint series on date.

    Rows with a null or non-positive close on either side are dropped.
    Output follows the asset series order.

    Returns:
        List of {'date', 'asset', 'benchmark'}
    """
    benchmark_by_date = {}
    for row in benchmark_rows:
        close = row.get('close')
        if close is not None and close > 0:
            benchmark_by_date[row['date']] = close

    aligned = []
    for row in asset_rows:
        asset_close = row.get('close')
        benchmark_close = benchmark_by_date.get(row['date'])
        if asset_close is None or asset_close <= 0 or benchmark_close is None:
            continue
        aligned.append({
            'date': row['date'],
            'asset': asset_close,
            'benchmark': benchmark_close,
        })

    return aligned


def week_number(day: date) -> int:
    """
    Week of year: ceil((day_of_year + jan1_weekday) / 7), weekdays counted
    from Sunday = 0.
    """
    jan1 = date(day.year, 1, 1)
    day_of_year = (day - jan1).days + 1
    jan1_weekday = jan1.isoweekday() % 7
    return math.ceil((day_of_year + jan1_weekday) / 7)


def resample(rows: List[Dict[str, Any]], frequency: str) -> List[Dict[str, Any]]:
    """
    Resample a dated series, keeping the last observation of each bucket.

    - monthly: one row per calendar month, period 'YYYY-MM'
    - weekly: one row per week_number bucket, period = ISO date of the kept row
    - daily: pass-through, period = ISO date

    Args:
        rows: Chronological rows carrying a 'date'
        frequency: 'daily', 'weekly' or 'monthly'

    Returns:
        Copies of the kept rows with an added 'period' key
    """
    if frequency not in FREQUENCIES:
        raise AlignmentError(f"Unknown frequency: {frequency}")

    if not rows:
        return []

    if frequency == 'daily':
        return [{**row, 'period': row['date'].isoformat()} for row in rows]

    buckets = {}
    for row in rows:
        day = row['date']
        if frequency == 'monthly':
            bucket = (day.year, day.month)
        else:
            bucket = (day.year, week_number(day))
        buckets[bucket] = row

    resampled = []
    for bucket in sorted(buckets):
        row = buckets[bucket]
        if frequency == 'monthly':
            period = f"{bucket[0]:04d}-{bucket[1]:02d}"
        else:
            period = row['date'].isoformat()
        resampled.append({**row, 'period': period})

    return resampled


def _period_of(row: Dict[str, Any]) -> str:
    if 'period' in row:
        return row['period']
    return row['date'].isoformat()


def window_start(end_period: str, lookback_months: int) -> str:
    """
    First period inside a lookback window ending at end_period.

    Month keys give a month key; ISO dates give an ISO date.
    """
    if len(end_period) == 7:
        end = pd.Timestamp(f"{end_period}-01")
        return (end - pd.DateOffset(months=lookback_months)).strftime('%Y-%m')

    end = pd.Timestamp(end_period)
    return (end - pd.DateOffset(months=lookback_months)).strftime('%Y-%m-%d')


def window_filter(
    rows: List[Dict[str, Any]],
    lookback_months: Optional[int]
) -> List[Dict[str, Any]]:
    """
    Keep rows inside [end - lookback_months, end], end = last period present.

    Works the same on month-keyed and date-keyed series. None = unbounded.
    """
    if not rows:
        return []

    if lookback_months is None:
        return list(rows)

    if lookback_months < 0:
        raise AlignmentError("lookback_months must be non-negative")

    end_period = _period_of(rows[-1])
    start_period = window_start(end_period, lookback_months)

    return [
        row for row in rows
        if start_period <= _period_of(row) <= end_period
    ]


def resample_to_annual(rows: List[Dict[str, Any]], field: str = 'close') -> List[Dict[str, Any]]:
    """
    One row per year: the last positive observation of each calendar year.

    Returns:
        List of {'period': 'YYYY', 'date', field}
    """
    by_year = {}
    for row in rows:
        value = row.get(field)
        if value is None or not math.isfinite(value) or value <= 0:
            continue
        year = f"{row['date'].year:04d}"
        current = by_year.get(year)
        if current is None or row['date'] > current['date']:
            by_year[year] = {'period': year, 'date': row['date'], field: value}

    return [by_year[year] for year in sorted(by_year)]


def rebase_to_100(
    left_rows: List[Dict[str, Any]],
    right_rows: List[Dict[str, Any]],
    field: str = 'close'
) -> Dict[str, List]:
    """
    Align two period series and index both to 100 at the first common period.

    Returns:
        {'periods': [...], 'left': [...], 'right': [...]}
    """
    left_by_period = {r['period']: r[field] for r in left_rows if r.get(field) and r[field] > 0}
    right_by_period = {r['period']: r[field] for r in right_rows if r.get(field) and r[field] > 0}

    periods = sorted(set(left_by_period) & set(right_by_period))
    if not periods:
        return {'periods': [], 'left': [], 'right': []}

    left_base = left_by_period[periods[0]]
    right_base = right_by_period[periods[0]]

    return {
        'periods': periods,
        'left': [100 * left_by_period[p] / left_base for p in periods],
        'right': [100 * right_by_period[p] / right_base for p in periods],
    }
