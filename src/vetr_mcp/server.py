"""VETR Score MCP Server using FastMCP."""

import asyncio
import json
import logging
import os
from typing import Any

from fastmcp import FastMCP

from vetr_mcp import SCHEMA_VERSION, SERVER_VERSION
from vetr_mcp.data.yfinance_client import shutdown_executor
from vetr_mcp.prompts.templates import get_prompt
from vetr_mcp.resources.score_resource import (
    ResourceNotFoundError,
    read_score_resource,
    score_uri,
)
from vetr_mcp.scoring.cache import create_score_cache
from vetr_mcp.scoring.calculator import DEFAULT_CACHE_TTL_SECONDS, CompositeScoreCalculator
from vetr_mcp.tools import (
    cached_vetr_score,
    clear_score_cache,
    flag_trend_report,
    peer_comparison,
    red_flag_report,
    score_trend_report,
    vetr_score,
)

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# One calculator (and cache) per server process
calculator = CompositeScoreCalculator(
    cache=create_score_cache(),
    ttl_seconds=DEFAULT_CACHE_TTL_SECONDS,
)

# Create FastMCP server instance
mcp = FastMCP(
    name="vetr-score",
)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool
async def detect_red_flags(
    symbol: str,
    filings: list[dict[str, Any]],
    executives: list[dict[str, Any]],
) -> str:
    """
    Detect investment red flags from filings and the executive roster.

    Five independent checks: share consolidation velocity (max 30), equity
    financing velocity (max 25), executive churn (max 20), disclosure gaps
    (max 15) and debt trend (max 10). The total is capped at 100 and banded
    LOW (<30), MODERATE (<60), HIGH (<85) or CRITICAL.

    Args:
        symbol: Ticker or other entity identifier
        filings: Filings, each with 'type' and 'date' (epoch ms or ISO-8601),
                 optional 'title', 'summary', 'is_material'.
                 Example: [{"type": "Press Release", "date": "2024-03-01",
                 "summary": "Closed private placement financing"}]
        executives: Executives, each with 'name' and 'years_at_company',
                    optional 'title', 'specialization', 'education'

    Returns:
        JSON with total_score, severity and each detected flag
    """
    result = await red_flag_report(
        symbol=symbol,
        filings=filings,
        executives=executives,
        detector=calculator.detector,
    )
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_vetr_score(
    symbol: str,
    filings: list[dict[str, Any]],
    executives: list[dict[str, Any]],
    executive_quality_score: int | None = None,
    market_snapshot: dict[str, Any] | None = None,
    include_market: bool = True,
) -> str:
    """
    Compute the composite VETR score (0-100) for an entity.

    Weighted components: pedigree 25%, filing velocity 20%, red flag 25%
    (100 minus the red flag total), growth 15%, governance 15%. Then +5 for
    audited financials in the past year and -10 when filings are overdue
    (none, or the latest older than 180 days). Results are cached per symbol.

    Args:
        symbol: Ticker or other entity identifier
        filings: Filings (same shape as detect_red_flags)
        executives: Executives (same shape as detect_red_flags)
        executive_quality_score: Pedigree override 0-100 (default: derived
                                 from the roster)
        market_snapshot: {"market_cap": ..., "price_change_percent": ...}
                         (default: fetched from yfinance)
        include_market: Fetch market data when no snapshot is given (default: true)

    Returns:
        JSON with overall score, components, red flag breakdown, adjustments
        and cache status
    """
    result = await vetr_score(
        symbol=symbol,
        filings=filings,
        executives=executives,
        calculator=calculator,
        executive_quality_score=executive_quality_score,
        market_snapshot=market_snapshot,
        include_market=include_market,
    )
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_cached_vetr_score(symbol: str) -> str:
    """
    Get a previously computed VETR score without recomputing.

    Args:
        symbol: Ticker or other entity identifier

    Returns:
        JSON with the cached score, or a not_found error once it has expired
    """
    result = await cached_vetr_score(symbol=symbol, calculator=calculator)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def clear_vetr_score_cache(symbol: str | None = None) -> str:
    """
    Invalidate cached VETR scores.

    Args:
        symbol: Symbol to invalidate (default: every cached score)

    Returns:
        JSON with what was cleared and the symbols still cached
    """
    result = await clear_score_cache(calculator=calculator, symbol=symbol)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_score_trend(
    symbol: str,
    history: list[dict[str, Any]],
    months: int | None = None,
) -> str:
    """
    Direction and momentum of the VETR score over the last 30 days.

    IMPROVING when the score rose more than 5 points, DECLINING when it fell
    more than 5, otherwise STABLE. The current cached score (if any) is
    included as the latest point.

    Args:
        symbol: Ticker or other entity identifier
        history: Past scores, each with 'overall_score' and 'calculated_at',
                 optional 'components'
        months: Also return the history of the last N months

    Returns:
        JSON with direction, momentum_per_week and score_change
    """
    result = await score_trend_report(
        symbol=symbol,
        history=history,
        calculator=calculator,
        months=months,
    )
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def get_flag_trend(symbol: str, history: list[dict[str, Any]]) -> str:
    """
    Compare red flag activity of the last 30 days with the 30 days before.

    Args:
        symbol: Ticker or other entity identifier
        history: Past flags, each with 'score' and 'detected_at', optional
                 'flag_type', 'description', 'acknowledged'

    Returns:
        JSON with current/previous summed scores, IMPROVING/WORSENING/STABLE
        trend, and new/resolved flag counts
    """
    result = await flag_trend_report(symbol=symbol, history=history, calculator=calculator)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def compare_peer_scores(
    symbol: str,
    peers: list[dict[str, Any]],
    score: int | None = None,
    sector: str | None = None,
) -> str:
    """
    Rank an entity's VETR score against peers in the same sector.

    Args:
        symbol: Ticker or other entity identifier
        peers: Peer scores, each with 'symbol', 'sector', 'score', optional 'name'
        score: Entity's score (default: its cached VETR score)
        sector: Sector to compare within (default: sector reported by yfinance)

    Returns:
        JSON with sector_average, percentile (share of peers scoring lower)
        and the top 5 peers
    """
    result = await peer_comparison(
        symbol=symbol,
        peers=peers,
        calculator=calculator,
        score=score,
        sector=sector,
    )
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# RESOURCES
# ============================================================================


@mcp.resource("score://{symbol}")
def get_cached_score_resource(symbol: str) -> str:
    """
    Get a cached VETR score as canonical JSON.

    Must call get_vetr_score first to populate the cache.

    Args:
        symbol: Ticker or other entity identifier

    Returns:
        Canonical JSON with overall_score, components and computed_at
    """
    try:
        body, _ = read_score_resource(score_uri(symbol), calculator)
        return body
    except ResourceNotFoundError:
        return f"Resource not cached. Call get_vetr_score('{symbol}', ...) first."


# ============================================================================
# PROMPTS
# ============================================================================


@mcp.prompt
def red_flag_review(symbol: str) -> str:
    """Review an entity's filings and leadership for investment red flags."""
    result = get_prompt("red_flag_review", {"symbol": symbol})
    if result:
        return result["messages"][0]["content"]
    return f"Review {symbol} for red flags using detect_red_flags."


@mcp.prompt
def vetr_score_memo(symbol: str) -> str:
    """Explain an entity's composite VETR score in a short memo."""
    result = get_prompt("vetr_score_memo", {"symbol": symbol})
    if result:
        return result["messages"][0]["content"]
    return f"Explain the VETR score of {symbol} using get_vetr_score."


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting VETR Score MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    try:
        mcp.run()
    finally:
        asyncio.run(shutdown_executor())


if __name__ == "__main__":
    main()
