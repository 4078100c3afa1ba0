"""Tests for response envelopes and score snapshots."""

import json

import pytest

from vetr_mcp import SCHEMA_VERSION, SERVER_VERSION
from vetr_mcp.utils.normalize import build_score_snapshot, canonical_dumps, sanitize_nan_inf
from vetr_mcp.utils.provenance import build_error_response, build_meta, build_provenance


class TestBuildMeta:
    """Tests for build_meta."""

    def test_versions_and_tool(self) -> None:
        """Test meta names the tool and carries both versions."""
        meta = build_meta("get_vetr_score")
        assert meta == {
            "server_version": SERVER_VERSION,
            "schema_version": SCHEMA_VERSION,
            "tool": "get_vetr_score",
        }

    def test_duration_rounded(self) -> None:
        """Test duration is rounded to one decimal."""
        assert build_meta("detect_red_flags", duration_ms=12.345)["duration_ms"] == 12.3


class TestBuildProvenance:
    """Tests for build_provenance."""

    def test_warnings_always_present(self) -> None:
        """Test a warnings list is always included."""
        prov = build_provenance(source="caller", filing_count=3)
        assert prov == {"source": "caller", "filing_count": 3, "warnings": []}

    def test_warnings_can_be_appended(self) -> None:
        """Test tools can add warnings after building provenance."""
        prov = build_provenance(source="yfinance")
        prov["warnings"].append("Market cap unavailable")
        assert build_provenance(source="yfinance")["warnings"] == []

    def test_as_of_passthrough(self) -> None:
        """Test string as_of values are kept as given."""
        prov = build_provenance(source="cache", as_of="2024-06-01T00:00:00+00:00")
        assert prov["as_of"] == "2024-06-01T00:00:00+00:00"

    def test_as_of_epoch_ms_rendered(self) -> None:
        """Test epoch ms as_of values render as UTC ISO-8601."""
        prov = build_provenance(source="cache", as_of=1_717_200_000_000, hit=True)
        assert prov == {
            "source": "cache",
            "as_of": "2024-06-01T00:00:00+00:00",
            "hit": True,
            "warnings": [],
        }


class TestBuildErrorResponse:
    """Tests for build_error_response."""

    def test_invalid_input(self) -> None:
        """Test error envelope fields."""
        resp = build_error_response("invalid_input", "filings[0]: missing date", symbol="ACME")
        assert resp["error"] is True
        assert resp["error_type"] == "invalid_input"
        assert resp["symbol"] == "ACME"
        assert resp["meta"]["tool"] == "error"

    def test_symbol_optional(self) -> None:
        """Test symbol is omitted when not given."""
        assert "symbol" not in build_error_response("not_found", "No cached score")


class TestCanonicalJson:
    """Tests for canonical_dumps and NaN sanitization."""

    def test_sorted_compact(self) -> None:
        """Test keys are sorted and separators minimal."""
        assert canonical_dumps({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_nan_rejected(self) -> None:
        """Test NaN must be sanitized before dumping."""
        with pytest.raises(ValueError):
            canonical_dumps({"x": float("nan")})

    def test_sanitize_nan_inf(self) -> None:
        """Test NaN/inf become null and -0.0 becomes 0.0."""
        cleaned = sanitize_nan_inf({"a": float("nan"), "b": [float("inf"), -0.0], "c": True})
        assert cleaned == {"a": None, "b": [None, 0.0], "c": True}
        assert json.loads(canonical_dumps(cleaned))["b"][1] == 0.0


class TestScoreSnapshot:
    """Tests for build_score_snapshot."""

    @pytest.fixture
    def score(self) -> dict:
        return {
            "overall_score": 72,
            "components": {"pedigree": 80, "growth": 50},
            "computed_at": "2024-06-01T00:00:00+00:00",
        }

    def test_hash_ignores_computed_at(self, score: dict) -> None:
        """Test recomputing the same score later keeps the hash."""
        later = {**score, "computed_at": "2024-06-02T00:00:00+00:00"}
        assert (
            build_score_snapshot("ACME", score)["snapshot_hash"]
            == build_score_snapshot("ACME", later)["snapshot_hash"]
        )

    def test_hash_tracks_components(self, score: dict) -> None:
        """Test a component change changes the hash."""
        changed = {**score, "components": {"pedigree": 81, "growth": 50}}
        assert (
            build_score_snapshot("ACME", score)["snapshot_hash"]
            != build_score_snapshot("ACME", changed)["snapshot_hash"]
        )

    def test_flag_types_sorted(self, score: dict) -> None:
        """Test flag types are order-insensitive."""
        flags = {
            "total_score": 30.0,
            "severity": "MODERATE",
            "flags": [{"type": "DEBT_TREND"}, {"type": "EXECUTIVE_CHURN"}],
        }
        snapshot = build_score_snapshot("ACME", score, flags)
        assert snapshot["flag_types"] == ["DEBT_TREND", "EXECUTIVE_CHURN"]
        assert len(snapshot["snapshot_hash"]) == 16
