"""Score and red flag history analysis.

Persistence of history records belongs to the caller; everything here is a
pure function over the records handed in, evaluated at an explicit instant.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import pandas as pd

from vetr_mcp.scoring.models import COMPONENT_KEYS, DetectedFlag, RedFlagSeverity, ScoreResult
from vetr_mcp.scoring.red_flags import classify_severity
from vetr_mcp.utils.clock import MS_PER_DAY, epoch_ms_to_iso
from vetr_mcp.utils.validators import (
    clean_text,
    normalize_entity_key,
    parse_bool,
    parse_date_ms,
    parse_non_negative,
    require_field,
)

TREND_WINDOW_DAYS = 30
DAYS_PER_MONTH = 30
MS_PER_WEEK = 7 * MS_PER_DAY

# Score change (points) beyond which the score trend is directional
SCORE_TREND_THRESHOLD = 5
# Relative change in summed flag score beyond which the flag trend is directional
FLAG_TREND_TOLERANCE = 0.10
TOP_PEERS = 5


class ScoreTrendDirection(Enum):
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"


class FlagTrendDirection(Enum):
    IMPROVING = "IMPROVING"
    WORSENING = "WORSENING"
    STABLE = "STABLE"


@dataclass(frozen=True)
class ScoreHistoryEntry:
    entity_key: str
    overall_score: int
    components: dict[str, int]
    calculated_at: int

    @classmethod
    def from_result(cls, entity_key: str, result: ScoreResult) -> "ScoreHistoryEntry":
        return cls(
            entity_key=normalize_entity_key(entity_key),
            overall_score=result.overall_score,
            components=dict(result.components),
            calculated_at=result.computed_at,
        )

    @classmethod
    def from_dict(cls, record: dict[str, Any], entity_key: str) -> "ScoreHistoryEntry":
        """
        Build from a tool-input dict.

        Required: overall_score, calculated_at (epoch ms or ISO-8601).
        Optional: components (missing keys read as 0).

        Raises:
            ValueError: If a required field is missing or malformed
        """
        overall = parse_non_negative(
            require_field(record, "overall_score", "score history entry"), "overall_score"
        )
        calculated_at = parse_date_ms(
            require_field(record, "calculated_at", "score history entry")
        )
        raw_components = record.get("components") or {}
        if not isinstance(raw_components, dict):
            raise ValueError("Invalid score history entry: components must be an object")
        components = {
            key: int(parse_non_negative(raw_components.get(key, 0), key))
            for key in COMPONENT_KEYS
        }
        return cls(
            entity_key=normalize_entity_key(entity_key),
            overall_score=int(overall),
            components=components,
            calculated_at=calculated_at,
        )


@dataclass(frozen=True)
class FlagHistoryEntry:
    entity_key: str
    flag_type: str
    severity: RedFlagSeverity
    score: float
    description: str
    detected_at: int
    acknowledged: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_flag(cls, flag: DetectedFlag) -> "FlagHistoryEntry":
        """Record a detected flag. Severity is that of the flag on its own."""
        return cls(
            entity_key=flag.entity_key,
            flag_type=flag.type.name,
            severity=classify_severity(flag.score),
            score=flag.score,
            description=flag.description,
            detected_at=flag.detected_at,
        )

    @classmethod
    def from_dict(cls, record: dict[str, Any], entity_key: str) -> "FlagHistoryEntry":
        """
        Build from a tool-input dict.

        Required: score, detected_at. Optional: flag_type, description,
        acknowledged, id.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        score = parse_non_negative(require_field(record, "score", "flag history entry"), "score")
        detected_at = parse_date_ms(require_field(record, "detected_at", "flag history entry"))
        optional = {}
        if record.get("id"):
            optional["id"] = str(record["id"])
        return cls(
            entity_key=normalize_entity_key(entity_key),
            flag_type=clean_text(record.get("flag_type") or record.get("type"), max_length=50),
            severity=classify_severity(score),
            score=score,
            description=clean_text(record.get("description")),
            detected_at=detected_at,
            acknowledged=parse_bool(record.get("acknowledged"), "acknowledged"),
            **optional,
        )


@dataclass(frozen=True)
class ScoreTrend:
    direction: ScoreTrendDirection
    momentum: float
    score_change: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "momentum_per_week": round(self.momentum, 2),
            "score_change": self.score_change,
        }


@dataclass(frozen=True)
class RedFlagTrend:
    entity_key: str
    current_score: float
    previous_score: float
    trend: FlagTrendDirection
    flag_count: int
    new_flags_count: int
    resolved_flags_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_key": self.entity_key,
            "current_score": self.current_score,
            "previous_score": self.previous_score,
            "trend": self.trend.value,
            "flag_count": self.flag_count,
            "new_flags_count": self.new_flags_count,
            "resolved_flags_count": self.resolved_flags_count,
        }


@dataclass(frozen=True)
class PeerScore:
    entity_key: str
    name: str
    sector: str
    score: int

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "PeerScore":
        """Required: symbol (or entity_key), sector, score. Optional: name."""
        if not isinstance(record, dict):
            raise ValueError(f"Invalid peer: expected object, got {type(record).__name__}")
        key = normalize_entity_key(record.get("symbol") or record.get("entity_key"))
        if not key:
            raise ValueError("Invalid peer: missing required field 'symbol'")
        score = parse_non_negative(require_field(record, "score", "peer"), "score")
        return cls(
            entity_key=key,
            name=clean_text(record.get("name"), max_length=200) or key,
            sector=clean_text(require_field(record, "sector", "peer"), max_length=100),
            score=int(score),
        )


@dataclass(frozen=True)
class PeerComparison:
    entity_key: str
    score: int
    sector_average: int
    percentile: int
    peer_scores: list[PeerScore]

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_key": self.entity_key,
            "score": self.score,
            "sector_average": self.sector_average,
            "percentile": self.percentile,
            "peer_scores": [
                {"entity_key": p.entity_key, "name": p.name, "score": p.score}
                for p in self.peer_scores
            ],
        }


def _score_frame(history: Sequence[ScoreHistoryEntry]) -> pd.DataFrame:
    """History as a DataFrame, most recent first."""
    df = pd.DataFrame(
        {
            "overall_score": [h.overall_score for h in history],
            "calculated_at": [h.calculated_at for h in history],
        }
    )
    return df.sort_values("calculated_at", ascending=False, kind="mergesort").reset_index(
        drop=True
    )


def score_trend(history: Sequence[ScoreHistoryEntry], now_ms: int) -> ScoreTrend:
    """
    Direction and momentum of the overall score over the last 30 days.

    Compares the most recent entry with the oldest entry inside the window.
    Fewer than two entries in the window reads as STABLE with no change.

    Args:
        history: Score history in any order
        now_ms: Instant the window is measured back from

    Returns:
        ScoreTrend with momentum in points per week
    """
    stable = ScoreTrend(direction=ScoreTrendDirection.STABLE, momentum=0.0, score_change=0)
    if not history:
        return stable

    df = _score_frame(history)
    recent = df[df["calculated_at"] >= now_ms - TREND_WINDOW_DAYS * MS_PER_DAY]
    if len(recent) < 2:
        return stable

    newest = recent.iloc[0]
    oldest = recent.iloc[-1]
    change = int(newest["overall_score"]) - int(oldest["overall_score"])

    weeks = (int(newest["calculated_at"]) - int(oldest["calculated_at"])) / MS_PER_WEEK
    momentum = change / weeks if weeks > 0 else 0.0

    if change > SCORE_TREND_THRESHOLD:
        direction = ScoreTrendDirection.IMPROVING
    elif change < -SCORE_TREND_THRESHOLD:
        direction = ScoreTrendDirection.DECLINING
    else:
        direction = ScoreTrendDirection.STABLE

    return ScoreTrend(direction=direction, momentum=momentum, score_change=change)


def filter_history(
    history: Sequence[ScoreHistoryEntry], months: int, now_ms: int
) -> list[ScoreHistoryEntry]:
    """Entries from the last `months` (30-day) months, most recent first."""
    cutoff = now_ms - months * DAYS_PER_MONTH * MS_PER_DAY
    kept = [h for h in history if h.calculated_at >= cutoff]
    return sorted(kept, key=lambda h: h.calculated_at, reverse=True)


def flag_trend(
    entity_key: str, history: Sequence[FlagHistoryEntry], now_ms: int
) -> RedFlagTrend:
    """
    Compare summed flag scores of the last 30 days with the 30 days before.

    IMPROVING when the current sum is more than 10% below the previous one,
    WORSENING when more than 10% above, otherwise STABLE.
    """
    key = normalize_entity_key(entity_key)
    history = [h for h in history if normalize_entity_key(h.entity_key) == key]
    if not history:
        return RedFlagTrend(
            entity_key=key,
            current_score=0.0,
            previous_score=0.0,
            trend=FlagTrendDirection.STABLE,
            flag_count=0,
            new_flags_count=0,
            resolved_flags_count=0,
        )

    df = pd.DataFrame(
        {
            "score": [h.score for h in history],
            "detected_at": [h.detected_at for h in history],
        }
    )
    window = TREND_WINDOW_DAYS * MS_PER_DAY
    current_mask = df["detected_at"] >= now_ms - window
    previous_mask = (df["detected_at"] >= now_ms - 2 * window) & ~current_mask

    current_score = float(df.loc[current_mask, "score"].sum())
    previous_score = float(df.loc[previous_mask, "score"].sum())
    current_count = int(current_mask.sum())
    previous_count = int(previous_mask.sum())

    if current_score < previous_score * (1 - FLAG_TREND_TOLERANCE):
        trend = FlagTrendDirection.IMPROVING
    elif current_score > previous_score * (1 + FLAG_TREND_TOLERANCE):
        trend = FlagTrendDirection.WORSENING
    else:
        trend = FlagTrendDirection.STABLE

    return RedFlagTrend(
        entity_key=key,
        current_score=current_score,
        previous_score=previous_score,
        trend=trend,
        flag_count=current_count,
        new_flags_count=current_count,
        resolved_flags_count=max(0, previous_count - current_count),
    )


def acknowledge_flags(
    history: Sequence[FlagHistoryEntry],
    entity_key: str | None = None,
    flag_id: str | None = None,
) -> list[FlagHistoryEntry]:
    """Copy of history with matching entries marked acknowledged."""
    key = normalize_entity_key(entity_key) if entity_key is not None else None
    acknowledged = []
    for entry in history:
        matches = (flag_id is None or entry.id == flag_id) and (
            key is None or entry.entity_key == key
        )
        acknowledged.append(replace(entry, acknowledged=True) if matches else entry)
    return acknowledged


def compare_with_peers(
    entity_key: str,
    score: int,
    sector: str,
    peers: Sequence[PeerScore],
) -> PeerComparison:
    """
    Place an entity's score among peers from the same sector.

    Args:
        entity_key: The entity being compared (excluded from its own peers)
        score: The entity's overall score
        sector: Sector to compare within (case-insensitive)
        peers: Candidate peers from any sector

    Returns:
        PeerComparison with sector average, percentile (share of peers scoring
        lower) and the top 5 peers by score
    """
    key = normalize_entity_key(entity_key)
    wanted_sector = sector.strip().lower()
    in_sector = [
        p
        for p in peers
        if p.sector.strip().lower() == wanted_sector and normalize_entity_key(p.entity_key) != key
    ]

    if in_sector:
        sector_average = int(sum(p.score for p in in_sector) / len(in_sector))
        lower = sum(1 for p in in_sector if p.score < score)
        percentile = int(lower / len(in_sector) * 100)
    else:
        sector_average = score
        percentile = 50

    top = sorted(in_sector, key=lambda p: (-p.score, p.entity_key))[:TOP_PEERS]
    return PeerComparison(
        entity_key=key,
        score=score,
        sector_average=sector_average,
        percentile=percentile,
        peer_scores=top,
    )


def history_to_rows(history: Sequence[ScoreHistoryEntry]) -> list[dict[str, Any]]:
    """Flatten score history for tool output, most recent first."""
    return [
        {
            "entity_key": h.entity_key,
            "overall_score": h.overall_score,
            **{key: h.components.get(key, 0) for key in COMPONENT_KEYS},
            "calculated_at": epoch_ms_to_iso(h.calculated_at),
        }
        for h in sorted(history, key=lambda h: h.calculated_at, reverse=True)
    ]
