"""VETR scoring tools."""

from vetr_mcp.tools.history import flag_trend_report, peer_comparison, score_trend_report
from vetr_mcp.tools.red_flags import parse_records, red_flag_report
from vetr_mcp.tools.vetr_score import cached_vetr_score, clear_score_cache, vetr_score

__all__ = [
    "cached_vetr_score",
    "clear_score_cache",
    "flag_trend_report",
    "parse_records",
    "peer_comparison",
    "red_flag_report",
    "score_trend_report",
    "vetr_score",
]
