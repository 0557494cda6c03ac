"""
Async HTTP helper - GET JSON with explicit timeout and typed failures.
Maps HTTP status codes onto the fetch error taxonomy; retries only on 429.
"""

import os
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp
from dotenv import load_dotenv

from ingestion.providers.errors import (
    RateLimitedError,
    NoHistoryError,
    NetworkFailureError,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def default_timeout() -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(total=float(os.getenv('FETCH_TIMEOUT_S', '15')))


async def get_json(
    session: aiohttp.ClientSession,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[aiohttp.ClientTimeout] = None,
    retries: Optional[int] = None,
    backoff_s: float = 1.0
) -> Any:
    """
    GET a URL and decode the JSON body.

    Args:
        session: Shared aiohttp session
        url: Absolute URL
        params: Query string parameters
        timeout: Request timeout (defaults to $FETCH_TIMEOUT_S seconds)
        retries: Extra attempts after a 429 (defaults to $FETCH_RETRIES)
        backoff_s: Base delay, doubled on every retry

    Returns:
        Decoded JSON payload

    Raises:
        RateLimitedError: HTTP 429 after all retries
        NoHistoryError: HTTP 404
        NetworkFailureError: Timeout, connection error, other non-2xx, bad JSON
    """
    if timeout is None:
        timeout = default_timeout()
    if retries is None:
        retries = int(os.getenv('FETCH_RETRIES', '2'))

    attempt = 0
    while True:
        try:
            return await _get_once(session, url, params, timeout)
        except RateLimitedError:
            if attempt >= retries:
                raise
            delay = backoff_s * (2 ** attempt)
            logger.warning(f"Rate limited on {url}; retrying in {delay:.1f}s")
            await asyncio.sleep(delay)
            attempt += 1


async def _get_once(
    session: aiohttp.ClientSession,
    url: str,
    params: Optional[Dict[str, Any]],
    timeout: aiohttp.ClientTimeout
) -> Any:
    try:
        async with session.get(url, params=params, timeout=timeout) as resp:
            if resp.status == 429:
                raise RateLimitedError(f"HTTP 429 from {url}")
            if resp.status == 404:
                raise NoHistoryError(f"HTTP 404 from {url}")
            if resp.status != 200:
                raise NetworkFailureError(f"HTTP {resp.status} from {url}")
            try:
                return await resp.json(content_type=None)
            except ValueError as e:
                raise NetworkFailureError(f"Invalid JSON from {url}: {e}") from e
    except asyncio.TimeoutError as e:
        raise NetworkFailureError(f"Request timed out: {url}") from e
    except aiohttp.ClientError as e:
        raise NetworkFailureError(f"Request failed for {url}: {e}") from e
