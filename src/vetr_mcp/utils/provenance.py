"""Response envelope helpers: meta, data provenance and error blocks."""

from typing import Any

from vetr_mcp import SCHEMA_VERSION, SERVER_VERSION
from vetr_mcp.utils.clock import epoch_ms_to_iso


def build_meta(tool: str, duration_ms: float | None = None) -> dict[str, Any]:
    """Versions and timing stamped on every tool response."""
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "tool": tool,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    return meta


def build_provenance(source: str, as_of: int | str | None = None, **fields: Any) -> dict[str, Any]:
    """
    Describe one input of a response.

    Args:
        source: caller, cache, yfinance or none
        as_of: Epoch ms (rendered as UTC ISO-8601) or an ISO string
        **fields: Counts and flags specific to the input

    Returns:
        Provenance dict; always carries a warnings list
    """
    prov: dict[str, Any] = {"source": source}
    if as_of is not None:
        prov["as_of"] = epoch_ms_to_iso(as_of) if isinstance(as_of, int) else as_of
    prov.update(fields)
    prov.setdefault("warnings", [])
    return prov


def build_error_response(error_type: str, message: str, symbol: str | None = None) -> dict[str, Any]:
    """
    Error envelope returned by tools instead of raising.

    error_type is invalid_input, data_unavailable or not_found.
    """
    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta("error"),
    }
    if symbol is not None:
        response["symbol"] = symbol
    return response
