"""
Time-series API adapter - official CPI catalog search and series download.
Network IO allowed here, but minimal business logic.
"""

import os
import logging
from typing import Any, List

import aiohttp
from dotenv import load_dotenv

from ingestion.providers.http_client import get_json
from ingestion.transforms.normalizers import (
    CpiSeriesDescriptor,
    normalize_catalog_results,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

CPI_SEARCH_QUERY = 'ipc nivel general'
CPI_SEARCH_LIMIT = 30
SERIES_ROW_LIMIT = 5000


def _base_url() -> str:
    return os.getenv('SERIES_API_BASE_URL', 'https://apis.datos.gob.ar/series/api').rstrip('/')


async def search_cpi_catalog(
    session: aiohttp.ClientSession,
    query: str = CPI_SEARCH_QUERY
) -> List[CpiSeriesDescriptor]:
    """
    Search the series catalog for CPI candidates.

    Returns:
        Structured descriptors for scoring

    Raises:
        FetchError: If the search request fails
    """
    url = f"{_base_url()}/search"
    logger.info(f"CPI catalog search: {url} q={query!r}")
    payload = await get_json(session, url, params={'q': query, 'limit': CPI_SEARCH_LIMIT})
    return normalize_catalog_results(payload)


async def fetch_series_rows(
    session: aiohttp.ClientSession,
    series_id: str
) -> List[Any]:
    """
    Download a series collapsed to monthly end-of-period values.

    Returns:
        Raw [timestamp, value] rows in provider format

    Raises:
        FetchError: If the download fails
    """
    url = f"{_base_url()}/series"
    params = {
        'ids': series_id,
        'collapse': 'month',
        'collapse_aggregation': 'end_of_period',
        'format': 'json',
        'metadata': 'none',
        'limit': SERIES_ROW_LIMIT,
    }
    logger.info(f"CPI series download: {url} ids={series_id}")
    payload = await get_json(session, url, params=params)
    if isinstance(payload, dict):
        return payload.get('data') or []
    return []
