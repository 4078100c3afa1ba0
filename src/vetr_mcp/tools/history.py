"""Score history, red flag trend and peer comparison tools."""

from time import perf_counter
from typing import Any

from vetr_mcp.data.yfinance_client import fetch_info, sector_from_info
from vetr_mcp.scoring.calculator import CompositeScoreCalculator
from vetr_mcp.scoring.history import (
    FlagHistoryEntry,
    PeerScore,
    ScoreHistoryEntry,
    compare_with_peers,
    filter_history,
    flag_trend,
    history_to_rows,
    score_trend,
)
from vetr_mcp.utils.provenance import build_error_response, build_meta, build_provenance
from vetr_mcp.utils.validators import normalize_entity_key, parse_non_negative


def _parse_each(records: list[dict[str, Any]] | None, name: str, parse) -> list:
    parsed = []
    for i, record in enumerate(records or []):
        try:
            parsed.append(parse(record))
        except ValueError as e:
            raise ValueError(f"{name}[{i}]: {e}") from e
    return parsed


async def score_trend_report(
    symbol: str,
    history: list[dict[str, Any]] | None,
    calculator: CompositeScoreCalculator,
    months: int | None = None,
) -> dict[str, Any]:
    """
    Trend of the overall score over the last 30 days.

    Args:
        symbol: Ticker or other entity identifier
        history: Past scores ({overall_score, calculated_at, components?})
        calculator: Supplies the clock and the current cached score
        months: Also return the history of the last N months

    Returns:
        Dict with direction, momentum per week and score change
    """
    start_time = perf_counter()

    normalized_symbol = normalize_entity_key(symbol)
    if not normalized_symbol:
        return build_error_response(
            error_type="invalid_input",
            message="Symbol must not be blank",
            symbol=symbol,
        )

    try:
        entries = _parse_each(
            history, "history", lambda r: ScoreHistoryEntry.from_dict(r, normalized_symbol)
        )
        if months is not None and int(parse_non_negative(months, "months")) < 1:
            raise ValueError(f"Invalid months '{months}'. Must be >= 1")
    except ValueError as e:
        return build_error_response(
            error_type="invalid_input",
            message=str(e),
            symbol=normalized_symbol,
        )

    # The current cached score counts as the latest history point
    cached = calculator.get_cached_score(normalized_symbol)
    if cached is not None and all(e.calculated_at != cached.computed_at for e in entries):
        entries.append(ScoreHistoryEntry.from_result(normalized_symbol, cached))

    now_ms = calculator.clock.now_ms()
    trend = score_trend(entries, now_ms)
    duration_ms = (perf_counter() - start_time) * 1000

    result: dict[str, Any] = {
        "meta": build_meta("get_score_trend", duration_ms),
        "data_provenance": {
            "history": build_provenance(
                source="caller",
                as_of=now_ms,
                entry_count=len(entries),
                includes_cached_score=cached is not None,
            ),
        },
        "symbol": normalized_symbol,
        "trend": trend.to_dict(),
    }
    if months is not None:
        result["history"] = history_to_rows(filter_history(entries, int(months), now_ms))
    return result


async def flag_trend_report(
    symbol: str,
    history: list[dict[str, Any]] | None,
    calculator: CompositeScoreCalculator,
) -> dict[str, Any]:
    """
    Compare red flag activity of the last 30 days with the 30 days before.

    Args:
        symbol: Ticker or other entity identifier
        history: Past flags ({score, detected_at, flag_type?, description?})
        calculator: Supplies the clock

    Returns:
        Dict with current/previous summed scores, trend and flag counts
    """
    start_time = perf_counter()

    normalized_symbol = normalize_entity_key(symbol)
    if not normalized_symbol:
        return build_error_response(
            error_type="invalid_input",
            message="Symbol must not be blank",
            symbol=symbol,
        )

    try:
        entries = _parse_each(
            history, "history", lambda r: FlagHistoryEntry.from_dict(r, normalized_symbol)
        )
    except ValueError as e:
        return build_error_response(
            error_type="invalid_input",
            message=str(e),
            symbol=normalized_symbol,
        )

    now_ms = calculator.clock.now_ms()
    trend = flag_trend(normalized_symbol, entries, now_ms)
    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("get_flag_trend", duration_ms),
        "data_provenance": {
            "history": build_provenance(
                source="caller",
                as_of=now_ms,
                entry_count=len(entries),
                unacknowledged_count=sum(1 for e in entries if not e.acknowledged),
            ),
        },
        "symbol": normalized_symbol,
        **trend.to_dict(),
    }


async def peer_comparison(
    symbol: str,
    peers: list[dict[str, Any]] | None,
    calculator: CompositeScoreCalculator,
    score: int | None = None,
    sector: str | None = None,
) -> dict[str, Any]:
    """
    Rank an entity's score against same-sector peers.

    Score defaults to the entity's cached VETR score and sector to the one
    yfinance reports for the symbol.

    Returns:
        Dict with sector average, percentile and the top 5 peers
    """
    start_time = perf_counter()

    normalized_symbol = normalize_entity_key(symbol)
    if not normalized_symbol:
        return build_error_response(
            error_type="invalid_input",
            message="Symbol must not be blank",
            symbol=symbol,
        )

    try:
        peer_scores: list[PeerScore] = _parse_each(peers, "peers", PeerScore.from_dict)
        if score is not None:
            score = int(parse_non_negative(score, "score"))
    except ValueError as e:
        return build_error_response(
            error_type="invalid_input",
            message=str(e),
            symbol=normalized_symbol,
        )

    provenance: dict[str, Any] = {
        "peers": build_provenance(source="caller", peer_count=len(peer_scores)),
    }

    if score is None:
        cached = calculator.get_cached_score(normalized_symbol)
        if cached is None:
            return build_error_response(
                error_type="not_found",
                message=(
                    f"No score given and none cached. Call get_vetr_score('{normalized_symbol}') "
                    "first or pass score."
                ),
                symbol=normalized_symbol,
            )
        score = cached.overall_score
        provenance["score"] = build_provenance(
            source="cache", as_of=cached.computed_at
        )
    else:
        provenance["score"] = build_provenance(source="caller")

    if sector is None:
        try:
            info, yf_provenance = await fetch_info(normalized_symbol)
        except Exception as e:
            return build_error_response(
                error_type="data_unavailable",
                message=f"Failed to fetch sector: {e}",
                symbol=normalized_symbol,
            )
        sector = sector_from_info(info)
        if sector is None:
            return build_error_response(
                error_type="data_unavailable",
                message="Sector not reported for symbol; pass sector explicitly",
                symbol=normalized_symbol,
            )
        provenance["sector"] = build_provenance(**yf_provenance)
    else:
        provenance["sector"] = build_provenance(source="caller")

    comparison = compare_with_peers(normalized_symbol, score, sector, peer_scores)
    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("compare_peer_scores", duration_ms),
        "data_provenance": provenance,
        "symbol": normalized_symbol,
        "sector": sector,
        **comparison.to_dict(),
    }
