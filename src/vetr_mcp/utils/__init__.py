"""Utility modules."""

from vetr_mcp.utils.clock import Clock, FixedClock, SystemClock, epoch_ms_to_iso
from vetr_mcp.utils.normalize import build_score_snapshot, canonical_dumps
from vetr_mcp.utils.provenance import build_error_response, build_meta, build_provenance
from vetr_mcp.utils.sanitize import sanitize_text
from vetr_mcp.utils.validators import normalize_entity_key, parse_date_ms

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "epoch_ms_to_iso",
    "build_score_snapshot",
    "canonical_dumps",
    "build_error_response",
    "build_meta",
    "build_provenance",
    "sanitize_text",
    "normalize_entity_key",
    "parse_date_ms",
]
