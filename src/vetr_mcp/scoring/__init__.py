"""Investment risk scoring engine: red flag detection and the composite VETR score."""

from vetr_mcp.scoring.cache import (
    DiskScoreCache,
    MemoryScoreCache,
    ScoreCacheStore,
    create_score_cache,
)
from vetr_mcp.scoring.calculator import CompositeScoreCalculator
from vetr_mcp.scoring.components import executive_quality_score
from vetr_mcp.scoring.feeds import EntityFeeds, StaticFeeds, fetch_inputs
from vetr_mcp.scoring.history import (
    FlagHistoryEntry,
    FlagTrendDirection,
    PeerComparison,
    PeerScore,
    RedFlagTrend,
    ScoreHistoryEntry,
    ScoreTrend,
    ScoreTrendDirection,
    acknowledge_flags,
    compare_with_peers,
    filter_history,
    flag_trend,
    score_trend,
)
from vetr_mcp.scoring.models import (
    COMPONENT_KEYS,
    CacheEntry,
    DetectedFlag,
    Executive,
    Filing,
    MarketSnapshot,
    RedFlagScore,
    RedFlagSeverity,
    RedFlagType,
    ScoreInputs,
    ScoreResult,
)
from vetr_mcp.scoring.red_flags import RedFlagDetector, calculate_composite_score, detect_flags

__all__ = [
    # Cache
    "DiskScoreCache",
    "MemoryScoreCache",
    "ScoreCacheStore",
    "create_score_cache",
    # Engine
    "CompositeScoreCalculator",
    "RedFlagDetector",
    "calculate_composite_score",
    "detect_flags",
    "executive_quality_score",
    # Feeds
    "EntityFeeds",
    "StaticFeeds",
    "fetch_inputs",
    # History
    "FlagHistoryEntry",
    "FlagTrendDirection",
    "PeerComparison",
    "PeerScore",
    "RedFlagTrend",
    "ScoreHistoryEntry",
    "ScoreTrend",
    "ScoreTrendDirection",
    "acknowledge_flags",
    "compare_with_peers",
    "filter_history",
    "flag_trend",
    "score_trend",
    # Models
    "COMPONENT_KEYS",
    "CacheEntry",
    "DetectedFlag",
    "Executive",
    "Filing",
    "MarketSnapshot",
    "RedFlagScore",
    "RedFlagSeverity",
    "RedFlagType",
    "ScoreInputs",
    "ScoreResult",
]
