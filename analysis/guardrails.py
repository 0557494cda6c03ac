"""
Guardrails for the real-return engine - data quality classification.
The verdict accompanies the numbers; a RED result is flagged, never raised.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, List, Optional

from analysis.calculations.beta import VARIANCE_EPSILON


MIN_OBS_RED = 12
MIN_OBS_WARNING = 30
MAX_CLIPPED_FRACTION = 0.2
CORR_LOW_THRESHOLD = 0.2

# Sample sizes considered comfortable per frequency
MIN_OBS_BASELINE = {
    'daily': 252,
    'weekly': 52,
    'monthly': 24,
}


class QualityVerdict(str, Enum):
    """Traffic-light reliability of a computation."""
    GREEN = 'green'
    YELLOW = 'yellow'
    RED = 'red'


@dataclass
class QualityReport:
    """Verdict plus the metrics and warnings that produced it."""
    verdict: QualityVerdict
    sample_size: int
    clipped_fraction: float
    benchmark_variance: float
    cpi_resolved: bool
    baseline_sample_size: int
    warnings: List[str] = field(default_factory=list)

    @property
    def is_reliable(self) -> bool:
        return self.verdict != QualityVerdict.RED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['verdict'] = self.verdict.value
        return data


def classify(
    sample_size: int,
    clipped_fraction: Optional[float],
    benchmark_variance: Optional[float],
    cpi_resolved: bool
) -> QualityVerdict:
    """
    Classify the reliability of a beta/return computation.

    RED: fewer than 12 observations, degenerate benchmark variance, or no CPI
    YELLOW: fewer than 30 observations, or more than 20% of the window clipped
    GREEN: otherwise
    """
    if (
        sample_size < MIN_OBS_RED
        or (benchmark_variance is not None and benchmark_variance <= VARIANCE_EPSILON)
        or cpi_resolved is False
    ):
        return QualityVerdict.RED

    if sample_size < MIN_OBS_WARNING or (
        clipped_fraction is not None and clipped_fraction > MAX_CLIPPED_FRACTION
    ):
        return QualityVerdict.YELLOW

    return QualityVerdict.GREEN


def minimum_sample_baseline(frequency: str) -> int:
    """Comfortable sample size: 252 daily, 52 weekly, 24 monthly."""
    return MIN_OBS_BASELINE.get(frequency, MIN_OBS_BASELINE['monthly'])


def assess_quality(
    sample_size: int,
    clipped_fraction: float,
    benchmark_variance: float,
    cpi_resolved: bool,
    frequency: str,
    correlation: Optional[float] = None,
    anti_split_events: int = 0,
    cpi_interpolated: bool = False
) -> QualityReport:
    """
    Run classify() and collect human-readable warnings for the caller.

    Returns:
        QualityReport
    """
    verdict = classify(sample_size, clipped_fraction, benchmark_variance, cpi_resolved)
    baseline = minimum_sample_baseline(frequency)
    warnings = []

    if not cpi_resolved:
        warnings.append("No CPI coverage for the selected window; real returns cannot be computed.")

    if benchmark_variance is not None and benchmark_variance <= VARIANCE_EPSILON:
        warnings.append("Benchmark real returns have near-zero variance; beta is undefined.")

    if sample_size < baseline:
        warnings.append(
            f"Only {sample_size} {frequency} observations (recommended at least {baseline}). "
            f"Consider a longer window."
        )

    if clipped_fraction > MAX_CLIPPED_FRACTION:
        warnings.append(
            f"{clipped_fraction:.0%} of the window was clipped for lack of CPI data."
        )
    elif clipped_fraction > 0:
        warnings.append(f"Window shortened by {clipped_fraction:.0%} to match CPI coverage.")

    if cpi_interpolated:
        warnings.append("Latest CPI months are not published yet; the last value was carried forward.")

    if anti_split_events:
        warnings.append(
            f"{anti_split_events} price jump(s) beyond 3x were treated as splits and skipped."
        )

    if correlation is not None and verdict != QualityVerdict.RED and abs(correlation) < CORR_LOW_THRESHOLD:
        warnings.append(
            f"Low correlation with the benchmark ({correlation:.2f}); beta explains little of the asset's moves."
        )

    return QualityReport(
        verdict=verdict,
        sample_size=sample_size,
        clipped_fraction=clipped_fraction,
        benchmark_variance=benchmark_variance,
        cpi_resolved=cpi_resolved,
        baseline_sample_size=baseline,
        warnings=warnings,
    )


def create_data_quality_report(report: QualityReport, ticker: str) -> str:
    """
    Create human-readable data quality report.

    Args:
        report: Result of assess_quality()
        ticker: Asset ticker

    Returns:
        Formatted text report
    """
    lines = [
        f"Data Quality Report for {ticker}",
        "=" * 50,
        f"Verdict: {report.verdict.value.upper()}",
        f"Observations: {report.sample_size} (baseline {report.baseline_sample_size})",
        f"CPI clipping: {report.clipped_fraction:.1%}",
        "",
    ]

    if report.warnings:
        lines.append("WARNINGS:")
        for warning in report.warnings:
            lines.append(f"   - {warning}")
        lines.append("")

    if report.verdict == QualityVerdict.RED:
        lines.append("OVERALL STATUS: UNRELIABLE - do not rely on these numbers.")
    elif report.verdict == QualityVerdict.YELLOW:
        lines.append("OVERALL STATUS: USE WITH CAUTION")
    else:
        lines.append("OVERALL STATUS: DATA QUALITY ACCEPTABLE")

    return "\n".join(lines)
