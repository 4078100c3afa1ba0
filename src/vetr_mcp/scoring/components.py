"""Component sub-scores of the composite VETR score.

Each component is an int in [0, 100]. Missing inputs degrade the affected
component or sub-score to 0 instead of raising.
"""

from collections.abc import Mapping, Sequence

from vetr_mcp.scoring.models import (
    FILING_VELOCITY,
    GOVERNANCE,
    GROWTH,
    PEDIGREE,
    RED_FLAG,
    Executive,
    Filing,
    MarketSnapshot,
    RedFlagScore,
)
from vetr_mcp.utils.clock import MS_PER_DAY, days_ago

# Component weights in percent (sum to 100)
WEIGHTS: dict[str, int] = {
    PEDIGREE: 25,
    FILING_VELOCITY: 20,
    RED_FLAG: 25,
    GROWTH: 15,
    GOVERNANCE: 15,
}

BONUS_AUDITED_FINANCIALS = 5
PENALTY_OVERDUE_FILINGS = 10
AUDITED_BONUS = "audited_financials_bonus"
OVERDUE_PENALTY = "overdue_filings_penalty"
OVERDUE_THRESHOLD_DAYS = 180
RECENT_WINDOW_DAYS = 365
AUDITED_KEYWORD = "audited"

# Filing velocity
FREQUENCY_POINTS_PER_FILING = 15
FREQUENCY_MAX = 60
CONSISTENCY_SAMPLE_SIZE = 4
CONSISTENCY_DEFAULT = 20
# (max average gap days, points), checked top-down; anything slower scores 10
CONSISTENCY_BANDS: tuple[tuple[float, int], ...] = ((100, 40), (150, 30), (200, 20))
CONSISTENCY_FLOOR = 10

# Growth: (lower bound, points), checked top-down
MARKET_CAP_BANDS: tuple[tuple[float, int], ...] = (
    (1_000_000_000, 40),
    (500_000_000, 35),
    (250_000_000, 30),
    (100_000_000, 25),
    (50_000_000, 20),
)
MARKET_CAP_FLOOR = 15
MOMENTUM_BANDS: tuple[tuple[float, int], ...] = (
    (20.0, 60),
    (10.0, 50),
    (5.0, 40),
    (0.0, 30),
    (-5.0, 20),
    (-10.0, 10),
)

# Governance
TEAM_SIZE_BANDS: tuple[tuple[int, int], ...] = ((5, 35), (3, 25), (2, 15), (1, 5))
TRANSPARENCY_MAX = 35
STABILITY_BANDS: tuple[tuple[float, int], ...] = ((5.0, 30), (3.0, 25), (2.0, 20), (1.0, 15))
STABILITY_FLOOR = 10

# Executive quality (default pedigree provider)
QUALITY_TENURE_BANDS: tuple[tuple[float, int], ...] = ((5.0, 40), (3.0, 30), (1.0, 20))
QUALITY_TENURE_FLOOR = 10


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def _band(value: float, bands: Sequence[tuple[float, int]], floor: int = 0) -> int:
    for threshold, points in bands:
        if value >= threshold:
            return points
    return floor


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def executive_quality_score(executives: Sequence[Executive] | None) -> int:
    """
    Derive a 0-100 team quality score from the roster.

    Team size (10 per executive, max 30) + average tenure (max 40) +
    distinct specializations (10 each, max 30). Empty roster scores 0.
    """
    if not executives:
        return 0

    size_score = min(len(executives) * 10, 30)
    tenure_score = _band(
        _average([e.years_at_company for e in executives]),
        QUALITY_TENURE_BANDS,
        QUALITY_TENURE_FLOOR,
    )
    specializations = {e.specialization.strip().lower() for e in executives}
    diversity_score = min(len(specializations) * 10, 30)

    return int(clamp(size_score + tenure_score + diversity_score))


def pedigree_score(quality_score: int | None) -> int:
    """Externally supplied executive quality, clamped. None scores 0."""
    if quality_score is None:
        return 0
    return int(clamp(quality_score))


def filing_velocity_score(filings: Sequence[Filing] | None, now_ms: int) -> int:
    """
    Frequency (0-60) + consistency (0-40). No filings scores 0.

    Frequency is 15 points per filing in the trailing year, saturating at 4.
    Consistency bands the average gap between the most recent 4 filings.
    """
    if not filings:
        return 0

    window_start = days_ago(now_ms, RECENT_WINDOW_DAYS)
    recent_count = sum(1 for f in filings if f.date >= window_start)
    frequency = min(recent_count * FREQUENCY_POINTS_PER_FILING, FREQUENCY_MAX)

    latest = sorted((f.date for f in filings), reverse=True)[:CONSISTENCY_SAMPLE_SIZE]
    if len(latest) >= 2:
        gaps = [(newer - older) // MS_PER_DAY for newer, older in zip(latest, latest[1:])]
        avg_gap = _average(gaps)
        consistency = CONSISTENCY_FLOOR
        for max_gap, points in CONSISTENCY_BANDS:
            if avg_gap <= max_gap:
                consistency = points
                break
    else:
        consistency = CONSISTENCY_DEFAULT

    return int(clamp(frequency + consistency))


def red_flag_component(red_flags: RedFlagScore) -> int:
    """Inverse of the red flag composite: 100 - clamp(total), truncated."""
    return int(100 - clamp(red_flags.total_score))


def growth_score(snapshot: MarketSnapshot | None) -> int:
    """Market cap (0-40) + price momentum (0-60). No snapshot scores 0."""
    if snapshot is None:
        return 0

    market_cap = _band(snapshot.market_cap, MARKET_CAP_BANDS, MARKET_CAP_FLOOR)
    momentum = _band(snapshot.price_change_percent, MOMENTUM_BANDS)
    return int(clamp(market_cap + momentum))


def governance_score(
    executives: Sequence[Executive] | None,
    filings: Sequence[Filing] | None,
) -> int:
    """Team size (0-35) + transparency (0-35) + stability (0-30)."""
    executives = executives or []
    filings = filings or []

    team_size = _band(len(executives), TEAM_SIZE_BANDS)

    transparency = 0
    if filings:
        material = sum(1 for f in filings if f.is_material)
        transparency = TRANSPARENCY_MAX * material // len(filings)

    stability = 0
    if executives:
        stability = _band(
            _average([e.years_at_company for e in executives]),
            STABILITY_BANDS,
            STABILITY_FLOOR,
        )

    return int(clamp(team_size + transparency + stability))


def has_audited_financials(filings: Sequence[Filing] | None, now_ms: int) -> bool:
    """True when a filing from the trailing year mentions audited financials."""
    window_start = days_ago(now_ms, RECENT_WINDOW_DAYS)
    return any(
        f.date >= window_start and AUDITED_KEYWORD in (f.summary or "").lower()
        for f in filings or []
    )


def has_overdue_filings(filings: Sequence[Filing] | None, now_ms: int) -> bool:
    """True when there are no filings or the latest is past the overdue threshold."""
    if not filings:
        return True
    latest = max(f.date for f in filings)
    return latest < days_ago(now_ms, OVERDUE_THRESHOLD_DAYS)


def weighted_score(components: Mapping[str, int]) -> int:
    """Weighted sum of components, rounded half up."""
    weighted_percent = sum(WEIGHTS[key] * components.get(key, 0) for key in WEIGHTS)
    return (weighted_percent + 50) // 100


def adjustments(filings: Sequence[Filing] | None, now_ms: int) -> dict[str, int]:
    """Signed bonus and penalty applied after weighting."""
    return {
        AUDITED_BONUS: (
            BONUS_AUDITED_FINANCIALS if has_audited_financials(filings, now_ms) else 0
        ),
        OVERDUE_PENALTY: (
            -PENALTY_OVERDUE_FILINGS if has_overdue_filings(filings, now_ms) else 0
        ),
    }


def adjustment(filings: Sequence[Filing] | None, now_ms: int) -> int:
    """Bonus for audited financials minus penalty for overdue filings."""
    return sum(adjustments(filings, now_ms).values())
