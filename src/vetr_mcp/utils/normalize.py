"""Canonical JSON and diff-stable score snapshots.

A score snapshot drops the high-churn computed_at timestamp and hashes what
remains, so two computations that produce the same components and overall
score share a snapshot hash.
"""

import hashlib
import json
import math
from typing import Any

# Snapshot format version - bump when snapshot content changes
SNAPSHOT_VERSION = "1.0.0"


def canonical_dumps(obj: Any) -> str:
    """Produce canonical JSON string with sorted keys and minimal separators.

    Uses allow_nan=False to fail fast if NaN/inf values slip through
    sanitization.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def _is_nan_or_inf(x: Any) -> bool:
    try:
        return math.isnan(x) or math.isinf(x)
    except (TypeError, ValueError):
        return False


def sanitize_nan_inf(obj: Any) -> Any:
    """Recursively replace NaN, inf, -inf with None and -0.0 with 0.0."""
    if isinstance(obj, dict):
        return {k: sanitize_nan_inf(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_nan_inf(item) for item in obj]
    if isinstance(obj, bool):
        return obj
    if _is_nan_or_inf(obj):
        return None
    if isinstance(obj, float) and obj == 0.0:
        return 0.0
    return obj


def build_score_snapshot(
    symbol: str,
    score: dict[str, Any],
    red_flags: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Reduce a score (and optional red flag summary) to a hashed snapshot.

    Args:
        symbol: Normalized entity key
        score: ScoreResult.to_dict() output
        red_flags: RedFlagScore.to_dict() output

    Returns:
        Snapshot dict with snapshot_version and a 16-char snapshot_hash
    """
    snapshot_data: dict[str, Any] = {
        "snapshot_version": SNAPSHOT_VERSION,
        "symbol": symbol,
        "overall_score": score.get("overall_score"),
        "components": dict(score.get("components") or {}),
    }
    if red_flags is not None:
        snapshot_data["red_flag_total"] = red_flags.get("total_score")
        snapshot_data["severity"] = red_flags.get("severity")
        snapshot_data["flag_types"] = sorted(f["type"] for f in red_flags.get("flags") or [])

    snapshot_data = sanitize_nan_inf(snapshot_data)
    snapshot_hash = hashlib.sha256(canonical_dumps(snapshot_data).encode("utf-8")).hexdigest()[:16]
    return {**snapshot_data, "snapshot_hash": snapshot_hash}
