"""Async yfinance market feed with bounded concurrency and retry logic."""

import asyncio
import logging
import math
import os
import random
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

import pandas as pd
import yfinance as yf
from requests.exceptions import HTTPError

from vetr_mcp.scoring.models import MarketSnapshot
from vetr_mcp.utils.validators import normalize_entity_key

logger = logging.getLogger(__name__)

# Bounded concurrency for yfinance calls
_max_workers = int(os.environ.get("YF_MAX_WORKERS", "4"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)
_fetch_semaphore = asyncio.Semaphore(_max_workers)

# Retry configuration
_max_retries = int(os.environ.get("YF_MAX_RETRIES", "3"))
_base_delay = float(os.environ.get("YF_BASE_DELAY", "1.0"))  # seconds
_max_delay = float(os.environ.get("YF_MAX_DELAY", "30.0"))  # seconds

# Window of daily closes used when the quote has no change percent
MOMENTUM_FALLBACK_PERIOD = "1mo"

shutdown_event = asyncio.Event()

T = TypeVar("T")


class ServerShuttingDownError(Exception):
    """Raised when server is shutting down."""

    pass


class YFinanceRetryError(Exception):
    """Raised when yfinance fails after all retries."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


@dataclass
class RetryResult:
    """Result of a retry operation with provenance tracking."""

    result: Any
    attempts: int
    total_backoff_seconds: float
    source: str = "yfinance"

    def to_provenance(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "attempts": self.attempts,
            "total_backoff_seconds": self.total_backoff_seconds,
        }


def _has_value(v: Any) -> bool:
    """yfinance uses NaN for missing numerics, so `is not None` is not enough."""
    if v is None:
        return False
    if isinstance(v, float) and math.isnan(v):
        return False
    if isinstance(v, str) and v.strip() == "":
        return False
    return True


def _is_retryable_error(error: Exception) -> tuple[bool, int]:
    """
    Check if an error is transient.

    Returns:
        Tuple of (is_retryable, max_retries_for_this_error)
    """
    if (
        isinstance(error, HTTPError)
        and hasattr(error, "response")
        and error.response is not None
    ):
        status_code = error.response.status_code
        if status_code == 401:
            # Invalid crumb rarely recovers after the first retry
            return (True, 1)
        if status_code == 429 or 500 <= status_code < 600:
            return (True, _max_retries)

    error_str = str(error).lower()
    if "401" in error_str or "invalid crumb" in error_str:
        return (True, 1)

    retryable_patterns = [
        "rate limit",
        "too many requests",
        "connection",
        "timeout",
        "temporary",
    ]
    if any(pattern in error_str for pattern in retryable_patterns):
        return (True, _max_retries)

    return (False, 0)


def _calculate_backoff(attempt: int) -> float:
    """Exponential backoff with +/-25% jitter, capped at the max delay."""
    delay = _base_delay * (2**attempt)
    jitter = delay * 0.25 * (2 * random.random() - 1)
    return min(delay + jitter, _max_delay)


async def _retry_with_backoff(
    operation_name: str,
    sync_func: Callable[[], T],
    max_retries: int = _max_retries,
) -> RetryResult:
    """
    Run a blocking yfinance call in the executor, retrying transient errors.

    Raises:
        YFinanceRetryError: If all retries exhausted
        ServerShuttingDownError: If server is shutting down
    """
    last_error: Exception | None = None
    total_backoff = 0.0

    for attempt in range(max_retries + 1):
        if shutdown_event.is_set():
            raise ServerShuttingDownError("Server is shutting down")

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(_executor, sync_func)
            return RetryResult(
                result=result,
                attempts=attempt + 1,
                total_backoff_seconds=round(total_backoff, 2),
            )
        except Exception as e:
            last_error = e
            is_retryable, error_max_retries = _is_retryable_error(e)
            if not is_retryable:
                raise

            effective_max_retries = min(max_retries, error_max_retries)
            if attempt >= effective_max_retries:
                logger.warning(
                    f"{operation_name}: Failed after {attempt + 1} attempts "
                    f"(limit={effective_max_retries + 1}). Last error: {e}"
                )
                raise YFinanceRetryError(
                    f"Failed after {attempt + 1} attempts: {e}",
                    last_error=last_error,
                ) from e

            delay = _calculate_backoff(attempt)
            total_backoff += delay
            logger.info(
                f"{operation_name}: Attempt {attempt + 1} failed ({e}). "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise YFinanceRetryError(
        f"Failed after {max_retries + 1} attempts",
        last_error=last_error,
    )


def price_change_from_closes(closes: pd.Series | None) -> float | None:
    """Percent change from the first to the last valid close, or None."""
    if closes is None:
        return None
    closes = pd.to_numeric(closes, errors="coerce").dropna()
    if len(closes) < 2 or closes.iloc[0] == 0:
        return None
    return float((closes.iloc[-1] / closes.iloc[0] - 1) * 100)


def market_snapshot_from_info(
    info: dict[str, Any] | None,
    closes: pd.Series | None = None,
) -> MarketSnapshot | None:
    """
    Build a MarketSnapshot from a yfinance info dict.

    Args:
        info: Ticker info (marketCap, regularMarketChangePercent)
        closes: Daily closes used when the info carries no change percent

    Returns:
        MarketSnapshot, or None when market cap is missing
    """
    if not info or not _has_value(info.get("marketCap")):
        return None

    change = info.get("regularMarketChangePercent")
    if _has_value(change):
        change_percent = float(change)
    else:
        change_percent = price_change_from_closes(closes)
        if change_percent is None:
            change_percent = 0.0

    return MarketSnapshot(
        market_cap=float(info["marketCap"]),
        price_change_percent=change_percent,
    )


async def fetch_info(symbol: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Fetch ticker info with retry logic.

    Returns:
        Tuple of (info_dict, provenance_dict)

    Raises:
        ServerShuttingDownError: If server is shutting down
        YFinanceRetryError: If all retries exhausted for retryable errors
        ValueError: If symbol is blank or yfinance returns nothing
    """
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    normalized_symbol = normalize_entity_key(symbol)
    if not normalized_symbol:
        raise ValueError("Symbol must not be blank")

    def _fetch() -> dict[str, Any]:
        info = yf.Ticker(normalized_symbol).info
        if not info:
            raise ValueError(f"Invalid symbol: {symbol}")
        return info

    async with _fetch_semaphore:
        retry_result = await _retry_with_backoff(f"fetch_info({normalized_symbol})", _fetch)
    return retry_result.result, retry_result.to_provenance()


async def fetch_closes(symbol: str, period: str = MOMENTUM_FALLBACK_PERIOD) -> pd.Series:
    """Fetch daily closes for a symbol with retry logic."""
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    normalized_symbol = normalize_entity_key(symbol)

    def _fetch() -> pd.Series:
        df = yf.Ticker(normalized_symbol).history(period=period, interval="1d", auto_adjust=True)
        if df is None or df.empty or "Close" not in df.columns:
            raise ValueError(f"No price history returned for {normalized_symbol}")
        return df["Close"]

    async with _fetch_semaphore:
        retry_result = await _retry_with_backoff(f"fetch_closes({normalized_symbol})", _fetch)
    return retry_result.result


async def fetch_market_snapshot(
    symbol: str,
) -> tuple[MarketSnapshot | None, dict[str, Any]]:
    """
    Fetch the growth inputs for a symbol.

    Uses the quote's regularMarketChangePercent, falling back to the change over
    the last month of daily closes.

    Returns:
        Tuple of (MarketSnapshot or None when market cap is unavailable,
        provenance_dict)

    Raises:
        ServerShuttingDownError: If server is shutting down
        YFinanceRetryError: If all retries exhausted for retryable errors
    """
    info, provenance = await fetch_info(symbol)

    closes = None
    if not _has_value(info.get("regularMarketChangePercent")):
        try:
            closes = await fetch_closes(symbol)
            provenance["momentum_source"] = f"closes_{MOMENTUM_FALLBACK_PERIOD}"
        except (ValueError, YFinanceRetryError) as e:
            logger.info(f"fetch_market_snapshot({symbol}): no close history ({e})")
            provenance["momentum_source"] = "unavailable"
    else:
        provenance["momentum_source"] = "regularMarketChangePercent"

    snapshot = market_snapshot_from_info(info, closes)
    if snapshot is None:
        logger.info(f"fetch_market_snapshot({symbol}): market cap unavailable")
    return snapshot, provenance


def sector_from_info(info: dict[str, Any] | None) -> str | None:
    """Sector name from ticker info, if reported."""
    if not info:
        return None
    sector = info.get("sector")
    return str(sector) if _has_value(sector) else None


async def shutdown_executor() -> None:
    """Cleanup on server shutdown."""
    shutdown_event.set()
    _executor.shutdown(wait=False, cancel_futures=True)
