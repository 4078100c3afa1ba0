"""Composite VETR score tools."""

import logging
from time import perf_counter
from typing import Any

from vetr_mcp.data.yfinance_client import fetch_market_snapshot
from vetr_mcp.scoring import components as comp
from vetr_mcp.scoring.calculator import CompositeScoreCalculator
from vetr_mcp.scoring.models import MarketSnapshot, ScoreInputs, ScoreResult
from vetr_mcp.scoring.red_flags import calculate_composite_score
from vetr_mcp.tools.red_flags import parse_records
from vetr_mcp.utils.clock import epoch_ms_to_iso
from vetr_mcp.utils.normalize import build_score_snapshot
from vetr_mcp.utils.provenance import build_error_response, build_meta, build_provenance
from vetr_mcp.utils.validators import normalize_entity_key, parse_non_negative

logger = logging.getLogger(__name__)


def _parse_market_snapshot(record: dict[str, Any]) -> MarketSnapshot:
    if not isinstance(record, dict) or record.get("market_cap") is None:
        raise ValueError("market_snapshot: missing required field 'market_cap'")
    market_cap = parse_non_negative(record["market_cap"], "market_cap")
    try:
        change = float(record.get("price_change_percent") or 0.0)
    except (TypeError, ValueError) as e:
        raise ValueError(
            f"Invalid price_change_percent '{record.get('price_change_percent')}'. Must be a number"
        ) from e
    return MarketSnapshot(market_cap=market_cap, price_change_percent=change)


def _score_payload(result: ScoreResult) -> dict[str, Any]:
    return {
        **result.to_dict(),
        "weights": {key: weight / 100 for key, weight in comp.WEIGHTS.items()},
    }


async def vetr_score(
    symbol: str,
    filings: list[dict[str, Any]] | None,
    executives: list[dict[str, Any]] | None,
    calculator: CompositeScoreCalculator,
    executive_quality_score: int | None = None,
    market_snapshot: dict[str, Any] | None = None,
    include_market: bool = True,
) -> dict[str, Any]:
    """
    Compute (or serve from cache) the composite VETR score for an entity.

    Market data comes from market_snapshot when given, otherwise from yfinance
    when include_market is set. A failed market fetch scores growth as 0 and
    adds a provenance warning instead of failing the call.

    Returns:
        Dict with overall score, components, red flag breakdown, adjustments,
        snapshot hash and cache status
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
        parsed_filings, parsed_executives = parse_records(normalized_symbol, filings, executives)
        snapshot = _parse_market_snapshot(market_snapshot) if market_snapshot is not None else None
        if executive_quality_score is not None:
            executive_quality_score = int(
                parse_non_negative(executive_quality_score, "executive_quality_score")
            )
    except ValueError as e:
        return build_error_response(
            error_type="invalid_input",
            message=str(e),
            symbol=normalized_symbol,
        )

    cached = calculator.get_cached_score(normalized_symbol)
    market_provenance: dict[str, Any]
    if cached is not None:
        result = cached
        market_provenance = build_provenance(source="cache")
    else:
        if snapshot is not None:
            market_provenance = build_provenance(source="caller")
        elif include_market:
            try:
                snapshot, yf_provenance = await fetch_market_snapshot(normalized_symbol)
                market_provenance = build_provenance(**yf_provenance)
                if snapshot is None:
                    market_provenance["warnings"].append(
                        "Market cap unavailable; growth scored as 0"
                    )
            except Exception as e:
                logger.warning(f"vetr_score({normalized_symbol}): market data unavailable: {e}")
                market_provenance = build_provenance(
                    source="yfinance",
                    warnings=[f"Market data unavailable ({type(e).__name__}); growth scored as 0"],
                )
        else:
            market_provenance = build_provenance(source="none")

        if executive_quality_score is None and parsed_executives:
            executive_quality_score = comp.executive_quality_score(parsed_executives)

        inputs = ScoreInputs(
            filings=tuple(parsed_filings),
            executives=tuple(parsed_executives),
            executive_quality_score=executive_quality_score,
            market_snapshot=snapshot,
        )
        result = calculator.calculate_score(normalized_symbol, inputs)

    # Breakdown of the inputs the (possibly cached) score was computed from
    red_flags = (result.red_flags or calculate_composite_score([])).to_dict()
    score = _score_payload(result)

    records_provenance = build_provenance(
        source="caller",
        filing_count=len(parsed_filings),
        executive_count=len(parsed_executives),
    )
    if cached is not None:
        records_provenance["warnings"].append(
            "Cached score served; records in this call were not scored. "
            "Call clear_vetr_score_cache to rescore."
        )

    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("get_vetr_score", duration_ms),
        "data_provenance": {
            "records": records_provenance,
            "market": market_provenance,
        },
        "symbol": normalized_symbol,
        "score": score,
        "red_flags": red_flags,
        "adjustments": dict(result.adjustments),
        "snapshot_hash": build_score_snapshot(normalized_symbol, score, red_flags)[
            "snapshot_hash"
        ],
        "cache": {
            "hit": cached is not None,
            "ttl_seconds": calculator.ttl_seconds,
            "expires_at": epoch_ms_to_iso(result.computed_at + calculator.ttl_ms),
        },
    }


async def cached_vetr_score(symbol: str, calculator: CompositeScoreCalculator) -> dict[str, Any]:
    """
    Serve a cached score only. Never computes.

    Returns:
        Dict with the cached score, or a not_found error
    """
    start_time = perf_counter()

    normalized_symbol = normalize_entity_key(symbol)
    cached = calculator.get_cached_score(normalized_symbol)
    if cached is None:
        return build_error_response(
            error_type="not_found",
            message=f"No cached score. Call get_vetr_score('{normalized_symbol}') first.",
            symbol=normalized_symbol or symbol,
        )

    score = _score_payload(cached)
    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("get_cached_vetr_score", duration_ms),
        "data_provenance": {
            "score": build_provenance(source="cache", as_of=cached.computed_at),
        },
        "symbol": normalized_symbol,
        "score": score,
        "snapshot_hash": build_score_snapshot(normalized_symbol, score)["snapshot_hash"],
        "cache": {
            "hit": True,
            "expires_at": epoch_ms_to_iso(cached.computed_at + calculator.ttl_ms),
        },
    }


async def clear_score_cache(
    calculator: CompositeScoreCalculator, symbol: str | None = None
) -> dict[str, Any]:
    """Invalidate one symbol's cached score, or all cached scores."""
    start_time = perf_counter()

    if symbol is not None and not normalize_entity_key(symbol):
        return build_error_response(
            error_type="invalid_input",
            message="Symbol must not be blank (omit it to clear every score)",
            symbol=symbol,
        )

    calculator.clear_cache(symbol)
    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("clear_vetr_score_cache", duration_ms),
        "cleared": normalize_entity_key(symbol) if symbol is not None else "all",
        "cached_symbols": calculator.cache.keys(),
    }
