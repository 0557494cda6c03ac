"""
CPI index lookups.
Pure functions over a month-keyed CPI map with last-observation-carried-forward.
"""

import bisect
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional, Union


@dataclass(frozen=True)
class CpiLookup:
    """Resolved CPI value for a month."""
    value: float
    interpolated: bool


def month_key(value: Union[date, str]) -> str:
    """
    Month key (YYYY-MM) of a date, ISO date string or month key.

    Examples:
        date(2024, 3, 15) -> '2024-03'
        '2024-03-15'      -> '2024-03'
        '2024-03'         -> '2024-03'
    """
    if isinstance(value, date):
        return f"{value.year:04d}-{value.month:02d}"
    return str(value)[:7]


class CpiResolver:
    """
    Month lookups against one CPI map, with its positive months sorted once.

    Build one per map and reuse it across a series; the map must not change
    while the resolver is in use.
    """

    def __init__(self, cpi_map: Mapping[str, float]):
        self.cpi_map = cpi_map
        self._positive_keys = sorted(k for k, v in cpi_map.items() if v is not None and v > 0)

    def __call__(self, key: str) -> Optional[CpiLookup]:
        month = month_key(key)

        exact = self.cpi_map.get(month)
        if exact is not None and exact > 0:
            return CpiLookup(value=float(exact), interpolated=False)

        position = bisect.bisect_right(self._positive_keys, month)
        if position == 0:
            return None

        carried = self._positive_keys[position - 1]
        return CpiLookup(value=float(self.cpi_map[carried]), interpolated=True)


def resolve_index_for_month(
    cpi_map: Mapping[str, float],
    key: str
) -> Optional[CpiLookup]:
    """
    Look up the CPI value for a month.

    - Exact positive match: that value, interpolated=False
    - Otherwise: latest earlier month with a positive value, interpolated=True
    - No earlier positive value: None

    Args:
        cpi_map: Mapping YYYY-MM -> index value
        key: Month key (longer ISO dates are truncated to the month)

    Returns:
        CpiLookup or None
    """
    return CpiResolver(cpi_map)(key)


def latest_cpi_month(cpi_map: Mapping[str, float]) -> Optional[str]:
    """Most recent month with a positive CPI value."""
    positive_keys = [k for k, v in cpi_map.items() if v is not None and v > 0]
    return max(positive_keys) if positive_keys else None
