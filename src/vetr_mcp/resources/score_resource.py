"""Cached score resource handler."""

from vetr_mcp.scoring.calculator import CompositeScoreCalculator
from vetr_mcp.utils.normalize import build_score_snapshot, canonical_dumps
from vetr_mcp.utils.validators import normalize_entity_key

SCORE_URI_PREFIX = "score://"


class ResourceNotFoundError(Exception):
    """Resource not found in cache."""

    pass


def score_uri(symbol: str) -> str:
    return f"{SCORE_URI_PREFIX}{normalize_entity_key(symbol)}"


def read_score_resource(uri: str, calculator: CompositeScoreCalculator) -> tuple[str, str]:
    """
    Serve a cached score only. Never computes.

    Args:
        uri: Resource URI (e.g., score://NVDA)
        calculator: Calculator whose cache backs the resource

    Returns:
        Tuple of (canonical_json, mime_type)

    Raises:
        ResourceNotFoundError: If no unexpired score is cached
        ValueError: If the URI is not a score URI
    """
    if not uri.startswith(SCORE_URI_PREFIX):
        raise ValueError(f"Invalid score URI '{uri}'. Must start with {SCORE_URI_PREFIX}")

    symbol = normalize_entity_key(uri[len(SCORE_URI_PREFIX):])
    cached = calculator.get_cached_score(symbol)
    if cached is None:
        raise ResourceNotFoundError(f"Resource not cached. Call get_vetr_score first: {uri}")

    score = cached.to_dict()
    payload = {
        "symbol": symbol,
        **score,
        "snapshot_hash": build_score_snapshot(symbol, score)["snapshot_hash"],
    }
    return canonical_dumps(payload), "application/json"
