"""
Tests for returns calculation utilities.
Pure functions with deterministic synthetic data for hand verification.
"""

import math

import pytest

from analysis.calculations.returns import (
    annualized_real_return,
    capm_alpha,
    capm_expected_return,
    compute_log_returns,
    compute_single_log_returns,
    risk_free_per_period,
)


def _paired(assets, benchmarks):
    return [
        {'period': f"p{i:02d}", 'asset': a, 'benchmark': b}
        for i, (a, b) in enumerate(zip(assets, benchmarks))
    ]


class TestComputeLogReturns:
    """Log returns and the anti-split guard."""

    def test_plain_log_returns(self):
        rows = _paired([100.0, 110.0, 99.0], [50.0, 50.0, 55.0])

        sample = compute_log_returns(rows)

        assert sample.asset_returns == pytest.approx([math.log(1.1), math.log(0.9)])
        assert sample.benchmark_returns == pytest.approx([0.0, math.log(1.1)])
        assert sample.sample_size == 2
        assert sample.anti_split_event_count == 0
        assert sample.anti_split_triggered is False

    def test_single_split_is_skipped(self):
        # 10 -> 50 is a ratio of 5.0
        rows = _paired([10.0, 11.0, 55.0, 56.0, 57.0], [100.0, 101.0, 102.0, 103.0, 104.0])

        sample = compute_log_returns(rows)

        assert sample.sample_size == 3
        assert sample.anti_split_event_count == 1
        assert sample.anti_split_triggered is True
        assert sample.aborted is False
        assert sample.asset_returns[1] == pytest.approx(math.log(56.0 / 55.0))

    def test_benchmark_split_also_skips(self):
        rows = _paired([10.0, 10.5, 11.0], [100.0, 20.0, 21.0])

        sample = compute_log_returns(rows)

        assert sample.sample_size == 1
        assert sample.anti_split_event_count == 1

    def test_scan_stops_after_more_than_three_events(self):
        # Alternating x5 / ÷5 jumps: every transition is split-like
        assets = [1.0, 1.01, 5.05, 1.01, 5.05, 1.01, 1.02, 1.03]
        benchmarks = [1.0] * len(assets)

        sample = compute_log_returns(_paired(assets, benchmarks))

        # 1 normal, 4 events (abort on the 4th), trailing normals ignored
        assert sample.anti_split_event_count == 4
        assert sample.aborted is True
        assert sample.sample_size == 1

    def test_returns_between_third_and_fourth_event_are_kept(self):
        assets = [1.0, 5.0, 1.0, 5.0, 5.1, 5.2, 25.0, 25.5]
        benchmarks = [1.0] * len(assets)

        sample = compute_log_returns(_paired(assets, benchmarks))

        assert sample.anti_split_event_count == 4
        assert sample.sample_size == 2

    def test_non_positive_prices_are_skipped(self):
        rows = _paired([10.0, 0.0, 11.0], [1.0, 1.0, 1.0])
        assert compute_log_returns(rows).sample_size == 0

    def test_empty_series(self):
        assert compute_log_returns([]).sample_size == 0


class TestSingleLogReturns:

    def test_no_split_filter(self):
        rows = [{'close': 10.0}, {'close': 50.0}, {'close': 55.0}]

        assert compute_single_log_returns(rows) == pytest.approx([math.log(5.0), math.log(1.1)])

    def test_skips_missing_values(self):
        rows = [{'close': 10.0}, {'close': None}, {'close': 11.0}]
        assert compute_single_log_returns(rows) == []


class TestAnnualizedRealReturn:

    def test_monthly_constant_return(self):
        monthly = math.log(1.01)
        result = annualized_real_return([monthly] * 24, 12)
        assert result == pytest.approx(1.01 ** 12 - 1)

    def test_undefined_cases(self):
        assert annualized_real_return([], 12) is None
        assert annualized_real_return([0.01], 0) is None


class TestCapm:

    def test_risk_free_per_period(self):
        assert risk_free_per_period(0.12, 'monthly') == pytest.approx(0.01)
        assert risk_free_per_period(0.052, 'weekly') == pytest.approx(0.001)

    def test_expected_return_and_alpha(self):
        # E[R] = 0.02 + 1.5 * (0.10 - 0.02) = 0.14
        assert capm_expected_return(0.02, 1.5, 0.10) == pytest.approx(0.14)
        assert capm_alpha(0.20, 0.10, 0.02, 1.5) == pytest.approx(0.06)
