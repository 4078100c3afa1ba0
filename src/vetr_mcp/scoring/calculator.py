"""Composite VETR score calculator with a per-entity TTL cache.

Component weights:
- Pedigree (25%): executive team quality
- Filing velocity (20%): frequency and regularity of filings
- Red flag (25%): inverse of the red flag composite
- Growth (15%): market cap and price momentum
- Governance (15%): team size, disclosure transparency, leadership stability

Adjustments after weighting: +5 for audited financials in the trailing year,
-10 when filings are overdue (none, or the latest older than 180 days). The
final score is clamped to [0, 100].
"""

import logging
import os

from vetr_mcp.scoring import components as comp
from vetr_mcp.scoring.cache import MemoryScoreCache, ScoreCacheStore
from vetr_mcp.scoring.feeds import EntityFeeds, fetch_inputs
from vetr_mcp.scoring.models import (
    COMPONENT_KEYS,
    FILING_VELOCITY,
    GOVERNANCE,
    GROWTH,
    PEDIGREE,
    RED_FLAG,
    CacheEntry,
    RedFlagScore,
    ScoreInputs,
    ScoreResult,
)
from vetr_mcp.scoring.red_flags import RedFlagDetector, calculate_composite_score
from vetr_mcp.utils.clock import Clock, SystemClock
from vetr_mcp.utils.validators import normalize_entity_key

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = float(os.environ.get("SCORE_CACHE_TTL", "900"))  # 15 minutes


class CompositeScoreCalculator:
    """
    Computes and caches ScoreResults per entity key.

    Only cache mutation is synchronized (inside the store). Two concurrent
    first computations for the same key may both compute; the later write
    wins and both results are identical for identical inputs.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        cache: ScoreCacheStore | None = None,
        detector: RedFlagDetector | None = None,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"Invalid ttl_seconds '{ttl_seconds}'. Must be > 0")
        self.clock = clock or SystemClock()
        self.cache = cache if cache is not None else MemoryScoreCache()
        self.detector = detector or RedFlagDetector(self.clock)
        self.ttl_seconds = ttl_seconds

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)

    def calculate_score(self, entity_key: str, inputs: ScoreInputs | None) -> ScoreResult:
        """
        Score an entity, serving an unexpired cached result when present.

        Args:
            entity_key: Ticker or other entity identifier
            inputs: Already-fetched records (None is treated as all missing)

        Returns:
            ScoreResult with all five components. A blank key returns an
            all-zero result without touching the cache.
        """
        key = normalize_entity_key(entity_key)
        now = self.clock.now_ms()
        if not key:
            return self._empty_result(now)

        cached = self.cache.get(key, now)
        if cached is not None:
            logger.debug(f"calculate_score({key}): cache hit")
            return cached.value

        result = self.compute(key, inputs or ScoreInputs(), now)
        self.cache.set(
            CacheEntry(key=key, value=result, expires_at=now + self.ttl_ms),
            ttl=self.ttl_seconds,
        )
        logger.info(
            f"calculate_score({key}): overall={result.overall_score} "
            f"components={result.components}"
        )
        return result

    def score_entity(self, entity_key: str, feeds: EntityFeeds) -> ScoreResult:
        """
        Score an entity, fetching its inputs from feeds on a cache miss.

        Feed exceptions propagate to the caller.
        """
        key = normalize_entity_key(entity_key)
        if key:
            cached = self.get_cached_score(key)
            if cached is not None:
                return cached
            return self.calculate_score(key, fetch_inputs(feeds, key))
        return self.calculate_score(key, None)

    def compute(self, entity_key: str, inputs: ScoreInputs, now_ms: int) -> ScoreResult:
        """Uncached computation at an explicit instant."""
        components, red_flags = self.compute_components(entity_key, inputs, now_ms)
        adjustments = comp.adjustments(inputs.filings, now_ms)
        weighted = comp.weighted_score(components)
        overall = int(comp.clamp(weighted + sum(adjustments.values())))
        return ScoreResult(
            overall_score=overall,
            components=components,
            computed_at=now_ms,
            red_flags=red_flags,
            adjustments=adjustments,
        )

    def compute_components(
        self, entity_key: str, inputs: ScoreInputs, now_ms: int
    ) -> tuple[dict[str, int], RedFlagScore]:
        """All five components plus the red flag composite they were built from."""
        flags = self.detector.detect_flags(
            entity_key, inputs.filings, inputs.executives, now_ms=now_ms
        )
        red_flags = calculate_composite_score(flags)

        components = {
            PEDIGREE: comp.pedigree_score(inputs.executive_quality_score),
            FILING_VELOCITY: comp.filing_velocity_score(inputs.filings, now_ms),
            RED_FLAG: comp.red_flag_component(red_flags),
            GROWTH: comp.growth_score(inputs.market_snapshot),
            GOVERNANCE: comp.governance_score(inputs.executives, inputs.filings),
        }
        return components, red_flags

    def get_cached_score(self, entity_key: str) -> ScoreResult | None:
        """Cached result if present and unexpired. Never computes."""
        key = normalize_entity_key(entity_key)
        if not key:
            return None
        entry = self.cache.get(key, self.clock.now_ms())
        return entry.value if entry is not None else None

    def clear_cache(self, entity_key: str | None = None) -> None:
        """Drop one entity's cached score, or every cached score when key is None."""
        if entity_key is None:
            self.cache.clear()
            logger.debug("clear_cache: all entries")
            return
        key = normalize_entity_key(entity_key)
        if key and self.cache.delete(key):
            logger.debug(f"clear_cache({key})")

    @staticmethod
    def _empty_result(now_ms: int) -> ScoreResult:
        return ScoreResult(
            overall_score=0,
            components={key: 0 for key in COMPONENT_KEYS},
            computed_at=now_ms,
        )
