"""
Normalizers for transforming provider data to canonical shape.
Pure functions - no IO, network, or side effects.
All duck-typed field names are resolved here so core logic never sniffs shapes.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Any, List, Optional


class NormalizationError(ValueError):
    """Raised when a provider payload cannot be mapped to canonical shape."""
    pass


# Provider field aliases, in priority order
CLOSE_FIELDS = ('c', 'close', 'Close')
DATE_FIELDS = ('date', 'Date', 'indice_tiempo')
YIELD_FIELDS = ('yield', 'ytm', 'tea')


@dataclass(frozen=True)
class CpiSeriesDescriptor:
    """Structured metadata of one CPI catalog search hit."""
    series_id: str
    description: str = ''
    title: str = ''
    units: str = ''
    frequency: str = ''


def _first_present(raw: Dict[str, Any], fields) -> Any:
    for field in fields:
        if raw.get(field) is not None:
            return raw[field]
    return None


def _to_positive_float(value: Any) -> Optional[float]:
    """Coerce numeric-ish values; None for missing, non-finite or non-positive."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def parse_row_date(value: Any) -> Optional[date]:
    """
    Parse provider dates: date objects, datetimes, ISO strings with or
    without a time part.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)[:10]
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def normalize_price_rows(raw_rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Transform provider-native price rows to canonical PricePoints.

    Minimal normalization:
    - Close from 'c' / 'close' / 'Close'
    - Date from 'date' / 'Date', truncated to the calendar day
    - Rows with missing or non-positive close are dropped
    - Deduplication by date (keep last to handle corrections)
    - Chronological order

    Args:
        raw_rows: List of provider-specific price dictionaries

    Returns:
        List of {'date': date, 'close': float}
    """
    if not raw_rows:
        return []

    by_date = {}
    for raw in raw_rows:
        if not isinstance(raw, dict):
            continue
        row_date = parse_row_date(_first_present(raw, DATE_FIELDS))
        close = _to_positive_float(_first_present(raw, CLOSE_FIELDS))
        if row_date is None or close is None:
            continue
        by_date[row_date] = {'date': row_date, 'close': close}

    return [by_date[d] for d in sorted(by_date)]


def normalize_bond_rows(raw_rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Transform provider-native bond rows to canonical BondObservations.

    Same as normalize_price_rows plus 'yield' (percent, or None) taken from
    whichever of yield / ytm / tea the provider sent. Rows carrying only a
    yield (no usable close) are kept with close=None so an explicit yield
    is never lost.
    """
    if not raw_rows:
        return []

    by_date = {}
    for raw in raw_rows:
        if not isinstance(raw, dict):
            continue
        row_date = parse_row_date(_first_present(raw, DATE_FIELDS))
        if row_date is None:
            continue
        close = _to_positive_float(_first_present(raw, CLOSE_FIELDS))
        bond_yield = _parse_yield(raw)
        if close is None and bond_yield is None:
            continue
        by_date[row_date] = {'date': row_date, 'close': close, 'yield': bond_yield}

    return [by_date[d] for d in sorted(by_date)]


def _parse_yield(raw: Dict[str, Any]) -> Optional[float]:
    for field in YIELD_FIELDS:
        value = raw.get(field)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            return number
    return None


def normalize_cpi_rows(raw_rows: List[Any]) -> Dict[str, float]:
    """
    Transform CPI series rows to a month-keyed map.

    Accepts [timestamp, value] pairs (series API default) or
    {'indice_tiempo': ..., 'valor': ...} dictionaries.

    Returns:
        Dictionary YYYY-MM -> index value (non-numeric values skipped)
    """
    cpi = {}
    for row in raw_rows or []:
        if isinstance(row, (list, tuple)) and len(row) >= 2:
            stamp, value = row[0], row[1]
        elif isinstance(row, dict):
            stamp = _first_present(row, DATE_FIELDS)
            value = row.get('valor', row.get('value'))
        else:
            continue

        if stamp is None or value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(number):
            continue
        cpi[str(stamp)[:7]] = number

    return cpi


def normalize_catalog_results(payload: Any) -> List[CpiSeriesDescriptor]:
    """
    Transform a catalog search payload into structured descriptors.

    Expected shape: {'data': [{'field': {...}, 'dataset': {...}}, ...]}
    """
    if not isinstance(payload, dict):
        raise NormalizationError(f"Catalog payload must be an object, got {type(payload).__name__}")

    descriptors = []
    data = payload.get('data') or []
    if not isinstance(data, list):
        raise NormalizationError(f"Catalog 'data' must be a list, got {type(data).__name__}")

    for item in data:
        if not isinstance(item, dict):
            continue
        field = item.get('field')
        dataset = item.get('dataset')
        if not isinstance(field, dict):
            continue
        if not isinstance(dataset, dict):
            dataset = {}
        series_id = field.get('id')
        if not series_id:
            continue
        descriptors.append(CpiSeriesDescriptor(
            series_id=str(series_id),
            description=str(field.get('description') or ''),
            title=str(dataset.get('title') or ''),
            units=str(field.get('units') or ''),
            frequency=str(field.get('frequency') or ''),
        ))
    return descriptors


def extract_row_list(payload: Any) -> List[Any]:
    """Providers wrap arrays as a bare list, {'data': [...]} or {'prices': [...]}."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ('data', 'prices'):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []
