"""
Core validators for canonical data rows.
Pure functions - no IO, network, or side effects.
"""

import re
import math
from datetime import date
from typing import Dict, Any, List, Mapping


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


MONTH_KEY_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


def validate_price_point(row: Dict[str, Any]) -> None:
    """
    Validate a canonical PricePoint row.

    Args:
        row: Dictionary with 'date' and 'close'

    Raises:
        ValidationError: If validation fails
    """
    missing = {'date', 'close'} - set(row.keys())
    if missing:
        raise ValidationError(f"Missing required keys: {missing}")

    if not isinstance(row['date'], date):
        raise ValidationError(f"date must be date, got {type(row['date'])}")

    close = row['close']
    if not isinstance(close, (int, float)) or isinstance(close, bool):
        raise ValidationError(f"close must be numeric, got {type(close)}")

    if not math.isfinite(close):
        raise ValidationError(f"close must be finite, got {close}")

    if close <= 0:
        raise ValidationError(f"close must be positive, got {close}")


def check_price_date_monotonicity(prices: List[Dict[str, Any]]) -> None:
    """
    Check that dates of one series are unique and strictly increasing.

    Raises:
        ValidationError: If dates are not monotonic or have duplicates
    """
    dates = [row.get('date') for row in prices]
    if len(dates) <= 1:
        return

    if len(dates) != len(set(dates)):
        raise ValidationError("Duplicate date found in price series")

    for i in range(1, len(dates)):
        if dates[i] <= dates[i - 1]:
            raise ValidationError(
                f"Price dates not monotonic: {dates[i - 1]} >= {dates[i]}"
            )


def validate_price_series(prices: List[Dict[str, Any]]) -> None:
    """Validate every row and the ordering of a PricePoint series."""
    for row in prices:
        validate_price_point(row)
    check_price_date_monotonicity(prices)


def validate_cpi_index_map(cpi_map: Mapping[str, float]) -> None:
    """
    Validate a CPI map: YYYY-MM keys, finite numeric values.

    Non-positive values are tolerated (they are skipped by lookups) but
    malformed keys are not.
    """
    for key, value in cpi_map.items():
        if not isinstance(key, str) or not MONTH_KEY_PATTERN.match(key):
            raise ValidationError(f"CPI key must be YYYY-MM, got {key!r}")
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"CPI value for {key} must be finite, got {value!r}")
