"""
Fetch-layer error taxonomy shared by all provider adapters.
Adapters raise these typed errors; calculation code decides what to tolerate.
"""


class FetchError(Exception):
    """Base class for provider fetch failures."""
    retryable = False


class RateLimitedError(FetchError):
    """Raised when the provider answers HTTP 429. Retry later with backoff."""
    retryable = True


class NoHistoryError(FetchError):
    """Raised when a ticker has no history (404 or empty payload). Permanent."""
    pass


class NetworkFailureError(FetchError):
    """Raised on timeouts, connection errors and unexpected HTTP failures."""
    retryable = True


def user_message(exc: BaseException) -> str:
    """
    Human-readable message that separates "retry later" from
    "no data exists" from "computation is unreliable".
    """
    # Local imports keep this module free of calculation-layer dependencies
    from ingestion.cpi_provider import CpiUnavailableError
    from analysis.synthetic_index import InsufficientCoverageError
    from analysis.risk_free import NoYieldAvailableError

    if isinstance(exc, RateLimitedError):
        return "Rate limit reached at the data provider: wait a moment and retry."
    if isinstance(exc, NetworkFailureError):
        return "Could not reach the data provider (network error or timeout): retry later."
    if isinstance(exc, NoHistoryError):
        return f"No price history exists for this instrument: {exc}"
    if isinstance(exc, CpiUnavailableError):
        return "The official CPI series is unavailable, so real returns cannot be computed: retry later."
    if isinstance(exc, InsufficientCoverageError):
        return f"Not enough basket constituents have data to build the benchmark: {exc}"
    if isinstance(exc, NoYieldAvailableError):
        return f"No real yield is available for this bond: {exc}"
    return str(exc) or exc.__class__.__name__


UNRELIABLE_RESULT_MESSAGE = (
    "Data quality is RED: the numbers below are unreliable and should not be used for decisions."
)
