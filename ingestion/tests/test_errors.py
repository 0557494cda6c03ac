"""
Tests for the fetch error taxonomy and user-facing messages.
"""

import pytest

from analysis.risk_free import NoYieldAvailableError
from analysis.synthetic_index import InsufficientCoverageError
from ingestion.cpi_provider import CpiUnavailableError
from ingestion.providers.errors import (
    FetchError,
    NetworkFailureError,
    NoHistoryError,
    RateLimitedError,
    user_message,
)


class TestTaxonomy:

    @pytest.mark.parametrize('cls,retryable', [
        (RateLimitedError, True),
        (NetworkFailureError, True),
        (NoHistoryError, False),
    ])
    def test_retryable_flags(self, cls, retryable):
        assert issubclass(cls, FetchError)
        assert cls.retryable is retryable


class TestUserMessage:

    def test_retry_later_vs_no_data(self):
        assert 'retry' in user_message(RateLimitedError('429'))
        assert 'retry later' in user_message(NetworkFailureError('timeout'))
        assert 'No price history' in user_message(NoHistoryError('XXXX'))

    def test_calculation_errors(self):
        assert 'CPI' in user_message(CpiUnavailableError('down'))
        assert 'constituents' in user_message(InsufficientCoverageError('3 of 17'))
        assert 'real yield' in user_message(NoYieldAvailableError('TZX26'))

    def test_unknown_error_falls_back_to_text(self):
        assert user_message(RuntimeError('boom')) == 'boom'
        assert user_message(RuntimeError()) == 'RuntimeError'
