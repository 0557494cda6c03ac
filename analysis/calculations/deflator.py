"""
Inflation deflation utilities.
Pure functions converting nominal period series into real (CPI-adjusted) terms.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Mapping, Optional, Sequence

from analysis.calculations.cpi_index import CpiResolver


PAIRED_FIELDS = ('asset', 'benchmark')
SINGLE_FIELDS = ('close',)


@dataclass
class ClipResult:
    """Series restricted to the periods where CPI can be resolved."""
    series: List[Dict[str, Any]] = field(default_factory=list)
    clipped: bool = False
    first_period: Optional[str] = None
    last_period: Optional[str] = None
    interpolated: bool = False
    original_length: int = 0

    @property
    def clipped_fraction(self) -> float:
        """Share of the input periods dropped for lack of CPI coverage."""
        if self.original_length == 0:
            return 0.0
        return 1 - len(self.series) / self.original_length


def clip_to_cpi_range(
    rows: List[Dict[str, Any]],
    cpi_map: Mapping[str, float]
) -> ClipResult:
    """
    Drop periods with no resolvable CPI value.

    A period resolves when its month (or an earlier month) carries a
    positive CPI value; carried-forward lookups mark the result interpolated.

    Args:
        rows: Period rows (monthly keys or ISO dates in 'period')
        cpi_map: Mapping YYYY-MM -> CPI value

    Returns:
        ClipResult with the kept rows and clipping diagnostics
    """
    resolve = CpiResolver(cpi_map)
    kept = []
    any_interpolated = False

    for row in rows:
        lookup = resolve(row['period'])
        if lookup is None or lookup.value <= 0:
            continue
        kept.append(row)
        if lookup.interpolated:
            any_interpolated = True

    return ClipResult(
        series=kept,
        clipped=len(kept) < len(rows),
        first_period=kept[0]['period'] if kept else None,
        last_period=kept[-1]['period'] if kept else None,
        interpolated=any_interpolated,
        original_length=len(rows),
    )


def deflate(
    rows: List[Dict[str, Any]],
    cpi_map: Mapping[str, float],
    fields: Sequence[str] = SINGLE_FIELDS
) -> List[Dict[str, Any]]:
    """
    Convert nominal values to real terms rebased to the first period.

    Formula: real(t) = nominal(t) / (CPI(t) / CPI(t0))

    Each period uses the CPI of its month (carried forward when missing),
    so daily and weekly rows within a month share one CPI value.

    Args:
        rows: Clipped period rows
        cpi_map: Mapping YYYY-MM -> CPI value
        fields: Value fields to deflate, e.g. PAIRED_FIELDS or SINGLE_FIELDS

    Returns:
        Copies of the rows with deflated value fields; [] when the base
        period CPI is unresolved or non-positive
    """
    if not rows:
        return []

    resolve = CpiResolver(cpi_map)
    base = resolve(rows[0]['period'])
    if base is None or base.value <= 0:
        return []

    real_rows = []
    for row in rows:
        lookup = resolve(row['period'])
        if lookup is None or lookup.value <= 0:
            continue
        ratio = lookup.value / base.value
        real_row = dict(row)
        for name in fields:
            if row.get(name) is not None:
                real_row[name] = row[name] / ratio
        real_rows.append(real_row)

    return real_rows
