"""Red flag detection over filing timelines and executive rosters."""

import logging
from collections.abc import Sequence

from vetr_mcp.scoring.models import (
    DetectedFlag,
    Executive,
    Filing,
    RedFlagScore,
    RedFlagSeverity,
    RedFlagType,
)
from vetr_mcp.utils.clock import MS_PER_DAY, Clock, SystemClock, days_ago
from vetr_mcp.utils.validators import normalize_entity_key

logger = logging.getLogger(__name__)

VELOCITY_WINDOW_DAYS = 365
DEBT_WINDOW_DAYS = 180
RECENT_TENURE_YEARS = 2.0

CONSOLIDATION_KEYWORDS = ("consolidation",)
FINANCING_KEYWORDS = ("private placement", "financing", "offering")
DEBT_KEYWORDS = ("debt", "loan", "credit facility", "borrowing")

# (count, score), checked top-down
CONSOLIDATION_BANDS: tuple[tuple[int, float], ...] = ((3, 30.0), (2, 22.5), (1, 15.0))
FINANCING_SCORE_PER_FILING = 6.25

# (ratio, score), checked top-down
CHURN_BANDS: tuple[tuple[float, float], ...] = ((0.60, 20.0), (0.40, 15.0), (0.25, 10.0))
DEBT_BANDS: tuple[tuple[float, float], ...] = ((0.60, 10.0), (0.40, 7.5), (0.25, 5.0))

# (gap days, score), checked top-down
DISCLOSURE_GAP_BANDS: tuple[tuple[int, float], ...] = ((240, 15.0), (180, 11.25), (120, 7.5))

# Lower bound of each severity band, checked top-down
SEVERITY_BANDS: tuple[tuple[float, RedFlagSeverity], ...] = (
    (85.0, RedFlagSeverity.CRITICAL),
    (60.0, RedFlagSeverity.HIGH),
    (30.0, RedFlagSeverity.MODERATE),
)


def _band(value: float, bands: Sequence[tuple[float, float]]) -> float:
    """Score for the first band whose threshold value reaches, else 0."""
    for threshold, score in bands:
        if value >= threshold:
            return score
    return 0.0


def _mentions(text: str | None, keywords: Sequence[str]) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def classify_severity(total_score: float) -> RedFlagSeverity:
    """Map a composite score to its severity band."""
    for lower_bound, severity in SEVERITY_BANDS:
        if total_score >= lower_bound:
            return severity
    return RedFlagSeverity.LOW


def calculate_composite_score(flags: Sequence[DetectedFlag]) -> RedFlagScore:
    """
    Reduce detected flags to a single score and severity band.

    Total is the sum of flag scores clamped to [0, 100]. Severity bands:
    <30 LOW, [30, 60) MODERATE, [60, 85) HIGH, >=85 CRITICAL.
    """
    flags = list(flags or [])
    total = sum(flag.score for flag in flags)
    total = min(100.0, max(0.0, float(total)))
    return RedFlagScore(total_score=total, severity=classify_severity(total), flags=flags)


def detect_flags(
    entity_key: str,
    filings: Sequence[Filing] | None,
    executives: Sequence[Executive] | None,
    clock: Clock | None = None,
) -> list[DetectedFlag]:
    """Run a throwaway RedFlagDetector over the given records."""
    return RedFlagDetector(clock).detect_flags(entity_key, filings, executives)


class RedFlagDetector:
    """
    Scans filings and executives for five independent risk patterns.

    Holds no mutable state beyond the clock it reads "now" from, so a single
    instance can serve concurrent callers.
    """

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()

    def detect_flags(
        self,
        entity_key: str,
        filings: Sequence[Filing] | None,
        executives: Sequence[Executive] | None,
        now_ms: int | None = None,
    ) -> list[DetectedFlag]:
        """
        Run every sub-detector and collect the flags they raise.

        Args:
            entity_key: Ticker or other entity identifier
            filings: Filings in any order (may be empty or None)
            executives: Executive roster (may be empty or None)
            now_ms: Instant to evaluate windows at (default: the clock)

        Returns:
            Zero to five flags, at most one per RedFlagType
        """
        key = normalize_entity_key(entity_key)
        if not key:
            return []

        filings = list(filings or [])
        executives = list(executives or [])
        now = self.clock.now_ms() if now_ms is None else now_ms

        candidates = (
            self._consolidation_velocity(key, filings, now),
            self._financing_velocity(key, filings, now),
            self._executive_churn(key, executives, now),
            self._disclosure_gaps(key, filings, now),
            self._debt_trend(key, filings, now),
        )
        flags = [flag for flag in candidates if flag is not None]

        if flags:
            logger.debug(
                f"detect_flags({key}): "
                + ", ".join(f"{f.type.name}={f.score}" for f in flags)
            )
        return flags

    def calculate_composite_score(self, flags: Sequence[DetectedFlag]) -> RedFlagScore:
        return calculate_composite_score(flags)

    def _consolidation_velocity(
        self, key: str, filings: list[Filing], now: int
    ) -> DetectedFlag | None:
        window_start = days_ago(now, VELOCITY_WINDOW_DAYS)
        count = sum(
            1
            for f in filings
            if f.date >= window_start
            and (_mentions(f.type, CONSOLIDATION_KEYWORDS) or _mentions(f.summary, CONSOLIDATION_KEYWORDS))
        )
        score = _band(count, CONSOLIDATION_BANDS)
        if score == 0.0:
            return None

        return DetectedFlag(
            type=RedFlagType.CONSOLIDATION_VELOCITY,
            entity_key=key,
            score=score,
            description=(
                f"Detected {count} share consolidation filings in the past year. "
                "Frequent consolidations may indicate ongoing dilution concerns."
            ),
            detected_at=now,
        )

    def _financing_velocity(
        self, key: str, filings: list[Filing], now: int
    ) -> DetectedFlag | None:
        window_start = days_ago(now, VELOCITY_WINDOW_DAYS)
        count = sum(
            1
            for f in filings
            if f.date >= window_start
            and (_mentions(f.type, FINANCING_KEYWORDS) or _mentions(f.summary, FINANCING_KEYWORDS))
        )
        if count == 0:
            return None

        score = min(RedFlagType.FINANCING_VELOCITY.max_score, FINANCING_SCORE_PER_FILING * count)
        return DetectedFlag(
            type=RedFlagType.FINANCING_VELOCITY,
            entity_key=key,
            score=score,
            description=(
                f"Detected {count} equity financing filings in the past year. "
                "Frequent financings may indicate cash burn or operational challenges."
            ),
            detected_at=now,
        )

    def _executive_churn(
        self, key: str, executives: list[Executive], now: int
    ) -> DetectedFlag | None:
        if not executives:
            return None

        recent = sum(1 for e in executives if e.years_at_company < RECENT_TENURE_YEARS)
        ratio = recent / len(executives)
        score = _band(ratio, CHURN_BANDS)
        if score == 0.0:
            return None

        return DetectedFlag(
            type=RedFlagType.EXECUTIVE_CHURN,
            entity_key=key,
            score=score,
            description=(
                f"High executive turnover: {recent} of {len(executives)} executives have "
                f"less than {RECENT_TENURE_YEARS:g} years tenure ({round(ratio * 100)}%). "
                "May indicate leadership instability."
            ),
            detected_at=now,
        )

    def _disclosure_gaps(
        self, key: str, filings: list[Filing], now: int
    ) -> DetectedFlag | None:
        if len(filings) < 2:
            return None

        dates = sorted(f.date for f in filings)
        max_gap_days = max((later - earlier) // MS_PER_DAY for earlier, later in zip(dates, dates[1:]))
        score = _band(max_gap_days, DISCLOSURE_GAP_BANDS)
        if score == 0.0:
            return None

        return DetectedFlag(
            type=RedFlagType.DISCLOSURE_GAPS,
            entity_key=key,
            score=score,
            description=(
                f"Significant filing gap detected: {max_gap_days} days between disclosures. "
                "Delays may indicate disclosure issues or operational challenges."
            ),
            detected_at=now,
        )

    def _debt_trend(
        self, key: str, filings: list[Filing], now: int
    ) -> DetectedFlag | None:
        window_start = days_ago(now, DEBT_WINDOW_DAYS)
        recent = [f for f in filings if f.date >= window_start]
        if not recent:
            return None

        mentions = sum(1 for f in recent if _mentions(f.summary, DEBT_KEYWORDS))
        ratio = mentions / len(recent)
        score = _band(ratio, DEBT_BANDS)
        if score == 0.0:
            return None

        return DetectedFlag(
            type=RedFlagType.DEBT_TREND,
            entity_key=key,
            score=score,
            description=(
                f"Increasing debt mentions: {mentions} of {len(recent)} recent filings "
                f"({round(ratio * 100)}%) reference debt or borrowing. "
                "May indicate financial leverage concerns."
            ),
            detected_at=now,
        )
