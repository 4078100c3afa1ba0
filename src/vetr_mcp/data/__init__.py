"""Data layer for live market inputs."""

from vetr_mcp.data.yfinance_client import (
    RetryResult,
    ServerShuttingDownError,
    YFinanceRetryError,
    fetch_closes,
    fetch_info,
    fetch_market_snapshot,
    market_snapshot_from_info,
    price_change_from_closes,
    sector_from_info,
    shutdown_executor,
)

__all__ = [
    "RetryResult",
    "ServerShuttingDownError",
    "YFinanceRetryError",
    "fetch_closes",
    "fetch_info",
    "fetch_market_snapshot",
    "market_snapshot_from_info",
    "price_change_from_closes",
    "sector_from_info",
    "shutdown_executor",
]
