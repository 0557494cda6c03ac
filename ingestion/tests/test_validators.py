"""
Tests for validators - canonical PricePoints and CPI maps.
"""

from datetime import date

import pytest

from ingestion.transforms.validators import (
    ValidationError,
    check_price_date_monotonicity,
    validate_cpi_index_map,
    validate_price_point,
    validate_price_series,
)


class TestValidatePricePoint:

    def test_valid_row(self):
        validate_price_point({'date': date(2024, 1, 2), 'close': 10.0})

    def test_missing_keys(self):
        with pytest.raises(ValidationError, match="Missing required keys"):
            validate_price_point({'date': date(2024, 1, 2)})

    def test_string_date_rejected(self):
        with pytest.raises(ValidationError, match="date must be date"):
            validate_price_point({'date': '2024-01-02', 'close': 10.0})

    @pytest.mark.parametrize('close', [0, -1.0, float('nan'), float('inf'), True, '10'])
    def test_bad_close_rejected(self, close):
        with pytest.raises(ValidationError):
            validate_price_point({'date': date(2024, 1, 2), 'close': close})


class TestPriceSeries:

    def test_monotonic_series_passes(self):
        validate_price_series([
            {'date': date(2024, 1, 2), 'close': 1.0},
            {'date': date(2024, 1, 3), 'close': 1.1},
        ])

    def test_duplicate_dates(self):
        with pytest.raises(ValidationError, match="Duplicate"):
            check_price_date_monotonicity([
                {'date': date(2024, 1, 2), 'close': 1.0},
                {'date': date(2024, 1, 2), 'close': 1.1},
            ])

    def test_out_of_order_dates(self):
        with pytest.raises(ValidationError, match="not monotonic"):
            check_price_date_monotonicity([
                {'date': date(2024, 1, 3), 'close': 1.0},
                {'date': date(2024, 1, 2), 'close': 1.1},
            ])


class TestCpiMap:

    def test_valid_map(self):
        validate_cpi_index_map({'2024-01': 100.0, '2024-02': 0.0})

    @pytest.mark.parametrize('key', ['2024-13', '2024-1', '24-01', '2024-01-01'])
    def test_bad_keys(self, key):
        with pytest.raises(ValidationError, match="YYYY-MM"):
            validate_cpi_index_map({key: 100.0})

    def test_non_finite_value(self):
        with pytest.raises(ValidationError, match="finite"):
            validate_cpi_index_map({'2024-01': float('nan')})
