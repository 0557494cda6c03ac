"""
CPI provider - resolves, fetches and caches the official monthly CPI series.

The provider owns the CPI map lifecycle: a memory snapshot, a durable TTL
cache behind it, and the network (catalog search + series download) last.
Snapshots are replaced wholesale, never mutated.
"""

import os
import time
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

import aiohttp
from dotenv import load_dotenv

from ingestion.providers.errors import FetchError
from ingestion.providers import series_api_adapter
from ingestion.transforms.normalizers import (
    CpiSeriesDescriptor,
    NormalizationError,
    normalize_cpi_rows,
)
from ingestion.transforms.validators import ValidationError, validate_cpi_index_map
from storage.ttl_cache import DEFAULT_TTL_SECONDS, CacheError, TTLCache

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CPI_SERIES_ID = os.getenv('CPI_DEFAULT_SERIES_ID', '101.1_I2NG_2016_M_22')
MONTHLY_FREQUENCY = 'R/P1M'
MIN_CPI_POINTS = 12
CPI_CACHE_KEY = 'cpi_index_map'

GENERAL_LEVEL_TERMS = ('nivel general', 'general level')
INDEX_TERMS = ('índice', 'indice', 'index')
NATIONAL_TERMS = ('nacional', 'national')
CONSUMER_TERMS = ('consumidor', 'consumer')
VARIATION_TERMS = ('variaci', 'variation')
PERCENT_TERMS = ('porcentaje', 'percent')
DISCONTINUED_TERMS = ('discontinuada', 'discontinued')


class CpiUnavailableError(Exception):
    """Raised when no usable CPI series can be obtained. Fatal for real returns."""
    pass


def _mentions(text: str, terms: Sequence[str]) -> bool:
    return any(term in text for term in terms)


def score_cpi_candidate(descriptor: CpiSeriesDescriptor) -> Optional[int]:
    """
    Score a catalog entry as a CPI general-level index candidate.

    Disqualified (None): non-monthly frequency, a variation series,
    percentage units, or a discontinued dataset other than the 2016 base.

    Points:
        +2 general level in description or title
        +2 index in description, title or units
        +1 national in title
        +1 consumer in title

    Returns:
        Score >= 0, or None when disqualified
    """
    description = descriptor.description.lower()
    title = descriptor.title.lower()
    units = descriptor.units.lower()

    if descriptor.frequency != MONTHLY_FREQUENCY:
        return None
    if _mentions(description, VARIATION_TERMS) or _mentions(units, PERCENT_TERMS):
        return None
    if _mentions(title, DISCONTINUED_TERMS) and '2016' not in title:
        return None

    score = 0
    if _mentions(description, GENERAL_LEVEL_TERMS) or _mentions(title, GENERAL_LEVEL_TERMS):
        score += 2
    if _mentions(description, INDEX_TERMS) or _mentions(title, INDEX_TERMS) or _mentions(units, INDEX_TERMS):
        score += 2
    if _mentions(title, NATIONAL_TERMS):
        score += 1
    if _mentions(title, CONSUMER_TERMS):
        score += 1
    return score


def select_cpi_series_id(
    descriptors: Sequence[CpiSeriesDescriptor],
    default: str = DEFAULT_CPI_SERIES_ID
) -> str:
    """
    Pick the highest-scoring candidate; ties keep the first seen.
    Falls back to ``default`` when no candidate qualifies.
    """
    best_id = None
    best_score = -1

    for descriptor in descriptors:
        score = score_cpi_candidate(descriptor)
        if score is not None and score > best_score:
            best_score = score
            best_id = descriptor.series_id

    return best_id or default


def build_cpi_index_map(raw_rows: List[Any]) -> Mapping[str, float]:
    """
    Build a read-only month-keyed CPI map from series rows.

    Raises:
        CpiUnavailableError: If fewer than 12 valid points are present
    """
    cpi = normalize_cpi_rows(raw_rows)
    try:
        validate_cpi_index_map(cpi)
    except ValidationError as e:
        raise CpiUnavailableError(f"Malformed CPI series: {e}") from e

    if len(cpi) < MIN_CPI_POINTS:
        raise CpiUnavailableError(
            f"CPI series has {len(cpi)} valid points (need at least {MIN_CPI_POINTS})"
        )
    return MappingProxyType(dict(sorted(cpi.items())))


class CpiProvider:
    """
    Fetch-and-cache owner of the CPI map.

    Args:
        search_catalog: async () -> list of CpiSeriesDescriptor
        fetch_series: async (series_id) -> raw [timestamp, value] rows
        cache: Durable TTL cache (optional)
        ttl_seconds: Lifetime of the in-memory snapshot
        clock: Callable returning the current time in seconds
    """

    def __init__(
        self,
        search_catalog: Callable[[], Awaitable[List[CpiSeriesDescriptor]]],
        fetch_series: Callable[[str], Awaitable[List[Any]]],
        cache: Optional[TTLCache] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ) -> None:
        self.search_catalog = search_catalog
        self.fetch_series = fetch_series
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.series_id: Optional[str] = None
        self._snapshot: Optional[Mapping[str, float]] = None
        self._snapshot_at = 0.0

    @classmethod
    def from_session(
        cls,
        session: aiohttp.ClientSession,
        cache: Optional[TTLCache] = None,
        **kwargs
    ) -> 'CpiProvider':
        """Provider wired to the official series API over a shared session."""
        return cls(
            search_catalog=lambda: series_api_adapter.search_cpi_catalog(session),
            fetch_series=lambda series_id: series_api_adapter.fetch_series_rows(session, series_id),
            cache=cache,
            **kwargs
        )

    def _snapshot_is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self.clock() - self._snapshot_at < self.ttl_seconds
        )

    def _install(self, cpi: Mapping[str, float]) -> Mapping[str, float]:
        snapshot = MappingProxyType(dict(cpi))
        # Single assignment so readers never see a half-built map
        self._snapshot, self._snapshot_at = snapshot, self.clock()
        return snapshot

    async def fetch_cpi_index(self, force_refresh: bool = False) -> Mapping[str, float]:
        """
        Return the CPI map (YYYY-MM -> index value).

        Order: memory snapshot, durable cache, network. force_refresh skips
        both caches.

        Raises:
            CpiUnavailableError: If the series cannot be downloaded or is too short
        """
        if not force_refresh:
            if self._snapshot_is_fresh():
                return self._snapshot

            if self.cache is not None:
                cached = self.cache.get(CPI_CACHE_KEY)
                if cached and len(cached) >= MIN_CPI_POINTS:
                    logger.info("CPI map served from durable cache")
                    return self._install(cached)

        series_id = await self._resolve_series_id()

        try:
            raw_rows = await self.fetch_series(series_id)
        except FetchError as e:
            raise CpiUnavailableError(f"Could not download CPI series {series_id}: {e}") from e

        cpi = build_cpi_index_map(raw_rows)
        self.series_id = series_id
        logger.info(f"CPI series {series_id}: {len(cpi)} months, latest {max(cpi)}")

        if self.cache is not None:
            try:
                self.cache.set(CPI_CACHE_KEY, dict(cpi))
            except CacheError as e:
                logger.warning(f"CPI map not persisted: {e}")

        return self._install(cpi)

    async def _resolve_series_id(self) -> str:
        try:
            descriptors = await self.search_catalog()
        except (FetchError, NormalizationError) as e:
            logger.warning(f"CPI catalog search failed, using default series: {e}")
            return DEFAULT_CPI_SERIES_ID
        return select_cpi_series_id(descriptors)
