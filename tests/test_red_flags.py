"""Tests for red flag detection and the composite red flag score."""

import pytest

from vetr_mcp.scoring.models import DetectedFlag, RedFlagSeverity, RedFlagType
from vetr_mcp.scoring.red_flags import (
    RedFlagDetector,
    calculate_composite_score,
    classify_severity,
    detect_flags,
)
from vetr_mcp.utils.clock import MS_PER_DAY, FixedClock

from conftest import NOW_MS


def _flag(flag_type: RedFlagType, score: float) -> DetectedFlag:
    return DetectedFlag(
        type=flag_type,
        entity_key="ACME",
        score=score,
        description="test",
        detected_at=NOW_MS,
    )


def _only(flags: list[DetectedFlag], flag_type: RedFlagType) -> DetectedFlag | None:
    matching = [f for f in flags if f.type == flag_type]
    assert len(matching) <= 1
    return matching[0] if matching else None


class TestDetectFlagsInputs:
    """Tests for degenerate detector inputs."""

    def test_empty_inputs_yield_no_flags(self, detector: RedFlagDetector) -> None:
        """Test empty filings and executives produce no flags."""
        assert detector.detect_flags("ACME", [], []) == []

    def test_none_inputs_yield_no_flags(self, detector: RedFlagDetector) -> None:
        """Test None inputs are treated as empty."""
        assert detector.detect_flags("ACME", None, None) == []

    def test_blank_key_yields_no_flags(self, detector: RedFlagDetector, make_filing) -> None:
        """Test a blank entity key short-circuits even with flaggable data."""
        filings = [make_filing(d, type="Share Consolidation") for d in (10, 20, 30)]
        assert detector.detect_flags("   ", filings, []) == []
        assert detector.detect_flags("", filings, []) == []

    def test_entity_key_is_normalized(self, detector: RedFlagDetector, make_filing) -> None:
        """Test flags carry the normalized key."""
        filings = [make_filing(10, type="Share Consolidation")]
        flags = detector.detect_flags("  acme ", filings, [])
        assert flags[0].entity_key == "ACME"

    def test_detected_at_uses_clock(self, clock: FixedClock, make_filing) -> None:
        """Test detected_at is the injected clock's now."""
        clock.advance(days=1)
        flags = RedFlagDetector(clock).detect_flags(
            "ACME", [make_filing(10, type="Share Consolidation")], []
        )
        assert flags[0].detected_at == NOW_MS + MS_PER_DAY

    def test_module_function_matches_detector(self, clock: FixedClock, make_filing) -> None:
        """Test the module-level detect_flags runs the same checks."""
        filings = [make_filing(d, type="Share Consolidation") for d in (10, 20)]
        assert detect_flags("ACME", filings, [], clock) == RedFlagDetector(clock).detect_flags(
            "ACME", filings, []
        )


class TestConsolidationVelocity:
    """Tests for the share consolidation check."""

    @pytest.mark.parametrize("count,expected", [(1, 15.0), (2, 22.5), (3, 30.0), (5, 30.0)])
    def test_bands(self, detector: RedFlagDetector, make_filing, count: int, expected: float) -> None:
        """Test score bands by number of consolidation filings."""
        filings = [make_filing(10 + 20 * i, type="Share Consolidation") for i in range(count)]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.CONSOLIDATION_VELOCITY)
        assert flag is not None
        assert flag.score == expected

    def test_three_filings_description_states_count(
        self, detector: RedFlagDetector, make_filing
    ) -> None:
        """Test three consolidations within a year score 30 and report the count."""
        filings = [make_filing(d, type="Share Consolidation") for d in (30, 90, 150)]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.CONSOLIDATION_VELOCITY)
        assert flag.score == 30.0
        assert "3" in flag.description

    def test_summary_mention_counts(self, detector: RedFlagDetector, make_filing) -> None:
        """Test consolidation mentioned only in the summary counts."""
        filings = [make_filing(10, summary="Board approved a 10:1 share CONSOLIDATION")]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.CONSOLIDATION_VELOCITY)
        assert flag.score == 15.0

    def test_filings_older_than_a_year_ignored(
        self, detector: RedFlagDetector, make_filing
    ) -> None:
        """Test only the trailing 365 days are counted."""
        filings = [
            make_filing(10, type="Share Consolidation"),
            make_filing(400, type="Share Consolidation"),
            make_filing(500, type="Share Consolidation"),
        ]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.CONSOLIDATION_VELOCITY)
        assert flag.score == 15.0

    def test_no_consolidation_no_flag(self, detector: RedFlagDetector, make_filing) -> None:
        """Test unrelated filings raise no consolidation flag."""
        filings = [make_filing(10), make_filing(40)]
        flags = detector.detect_flags("ACME", filings, [])
        assert _only(flags, RedFlagType.CONSOLIDATION_VELOCITY) is None


class TestFinancingVelocity:
    """Tests for the equity financing check."""

    @pytest.mark.parametrize("count,expected", [(1, 6.25), (2, 12.5), (3, 18.75), (4, 25.0), (6, 25.0)])
    def test_linear_score_capped(
        self, detector: RedFlagDetector, make_filing, count: int, expected: float
    ) -> None:
        """Test 6.25 per financing filing, capped at 25."""
        filings = [
            make_filing(10 + 20 * i, summary="Closed a private placement") for i in range(count)
        ]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.FINANCING_VELOCITY)
        assert flag.score == expected

    def test_each_keyword_counts(self, detector: RedFlagDetector, make_filing) -> None:
        """Test private placement, financing and offering all count."""
        filings = [
            make_filing(10, type="Private Placement"),
            make_filing(20, summary="Bought deal financing closed"),
            make_filing(30, type="Prospectus", summary="Public offering of units"),
        ]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.FINANCING_VELOCITY)
        assert flag.score == 18.75
        assert "3" in flag.description

    def test_old_financings_ignored(self, detector: RedFlagDetector, make_filing) -> None:
        """Test financings older than a year raise no flag."""
        filings = [make_filing(370, summary="Financing"), make_filing(380, summary="Financing")]
        flags = detector.detect_flags("ACME", filings, [])
        assert _only(flags, RedFlagType.FINANCING_VELOCITY) is None


class TestExecutiveChurn:
    """Tests for the executive turnover check."""

    def test_sixty_percent_recent(self, detector: RedFlagDetector, make_executive) -> None:
        """Test three of five executives under two years scores 20."""
        executives = [make_executive(y) for y in (1.5, 1.0, 0.5, 5.0, 8.0)]
        flag = _only(detector.detect_flags("ACME", [], executives), RedFlagType.EXECUTIVE_CHURN)
        assert flag.score == 20.0
        assert "3 of 5" in flag.description

    @pytest.mark.parametrize(
        "tenures,expected",
        [
            ((1.0, 1.5, 5.0, 5.0, 5.0), 15.0),
            ((1.0, 5.0, 5.0, 5.0), 10.0),
            ((0.5, 0.5, 0.5), 20.0),
        ],
    )
    def test_bands(
        self, detector: RedFlagDetector, make_executive, tenures: tuple, expected: float
    ) -> None:
        """Test churn ratio bands."""
        executives = [make_executive(y) for y in tenures]
        flag = _only(detector.detect_flags("ACME", [], executives), RedFlagType.EXECUTIVE_CHURN)
        assert flag.score == expected

    def test_low_ratio_no_flag(self, detector: RedFlagDetector, make_executive) -> None:
        """Test one of five recent executives (20%) raises no flag."""
        executives = [make_executive(y) for y in (1.0, 5.0, 5.0, 5.0, 5.0)]
        assert detector.detect_flags("ACME", [], executives) == []

    def test_two_years_is_not_recent(self, detector: RedFlagDetector, make_executive) -> None:
        """Test exactly two years of tenure does not count as recent."""
        executives = [make_executive(2.0) for _ in range(3)]
        assert detector.detect_flags("ACME", [], executives) == []


class TestDisclosureGaps:
    """Tests for the filing gap check."""

    @pytest.mark.parametrize(
        "gap_days,expected",
        [(240, 15.0), (300, 15.0), (180, 11.25), (239, 11.25), (120, 7.5), (179, 7.5)],
    )
    def test_bands(
        self, detector: RedFlagDetector, make_filing, gap_days: int, expected: float
    ) -> None:
        """Test max gap bands."""
        filings = [make_filing(5), make_filing(5 + gap_days)]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.DISCLOSURE_GAPS)
        assert flag.score == expected
        assert str(gap_days) in flag.description

    def test_short_gap_no_flag(self, detector: RedFlagDetector, make_filing) -> None:
        """Test gaps under 120 days raise no flag."""
        filings = [make_filing(5), make_filing(124)]
        flags = detector.detect_flags("ACME", filings, [])
        assert _only(flags, RedFlagType.DISCLOSURE_GAPS) is None

    def test_single_filing_no_flag(self, detector: RedFlagDetector, make_filing) -> None:
        """Test fewer than two filings cannot have a gap."""
        assert detector.detect_flags("ACME", [make_filing(900)], []) == []

    def test_unsorted_input_uses_largest_gap(
        self, detector: RedFlagDetector, make_filing
    ) -> None:
        """Test filings are ordered by date before measuring gaps."""
        filings = [make_filing(400), make_filing(10), make_filing(100), make_filing(200)]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.DISCLOSURE_GAPS)
        assert flag.score == 11.25
        assert "200 days" in flag.description

    def test_partial_days_are_floored(self, detector: RedFlagDetector, make_filing) -> None:
        """Test a gap just short of 120 whole days stays unflagged."""
        filings = [make_filing(10), make_filing(129.9)]
        flags = detector.detect_flags("ACME", filings, [])
        assert _only(flags, RedFlagType.DISCLOSURE_GAPS) is None


class TestDebtTrend:
    """Tests for the debt mention check."""

    @pytest.mark.parametrize(
        "mentions,total,expected",
        [(3, 5, 10.0), (5, 5, 10.0), (2, 5, 7.5), (1, 4, 5.0)],
    )
    def test_bands(
        self,
        detector: RedFlagDetector,
        make_filing,
        mentions: int,
        total: int,
        expected: float,
    ) -> None:
        """Test debt mention ratio bands over recent filings."""
        filings = [
            make_filing(10 * (i + 1), summary="Drew down the credit facility" if i < mentions else "")
            for i in range(total)
        ]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.DEBT_TREND)
        assert flag.score == expected

    def test_low_ratio_no_flag(self, detector: RedFlagDetector, make_filing) -> None:
        """Test one in five filings (20%) raises no flag."""
        filings = [make_filing(10 * (i + 1), summary="New loan" if i == 0 else "") for i in range(5)]
        flags = detector.detect_flags("ACME", filings, [])
        assert _only(flags, RedFlagType.DEBT_TREND) is None

    def test_only_last_180_days_count(self, detector: RedFlagDetector, make_filing) -> None:
        """Test filings older than 180 days are outside the ratio."""
        filings = [
            make_filing(10, summary="Borrowing base increased"),
            make_filing(50),
            make_filing(150, summary="Repaid debt"),
            make_filing(200, summary="New debt"),
            make_filing(210, summary="New debt"),
        ]
        flag = _only(detector.detect_flags("ACME", filings, []), RedFlagType.DEBT_TREND)
        # 2 of the 3 filings inside the window
        assert flag.score == 10.0

    def test_no_recent_filings_no_flag(self, detector: RedFlagDetector, make_filing) -> None:
        """Test no filings in the window raises no flag."""
        filings = [make_filing(200, summary="debt"), make_filing(250, summary="debt")]
        flags = detector.detect_flags("ACME", filings, [])
        assert _only(flags, RedFlagType.DEBT_TREND) is None


class TestDetectionOrder:
    """Tests for combined detection."""

    def test_all_five_in_order(self, detector: RedFlagDetector, make_filing, make_executive) -> None:
        """Test every sub-detector can fire at once, in fixed order."""
        filings = [
            make_filing(10, type="Share Consolidation", summary="debt restructuring"),
            make_filing(20, type="Private Placement", summary="loan"),
            make_filing(30, summary="credit facility"),
            make_filing(300),
        ]
        executives = [make_executive(0.5), make_executive(1.0), make_executive(6.0)]

        flags = detector.detect_flags("ACME", filings, executives)

        assert [f.type for f in flags] == [
            RedFlagType.CONSOLIDATION_VELOCITY,
            RedFlagType.FINANCING_VELOCITY,
            RedFlagType.EXECUTIVE_CHURN,
            RedFlagType.DISCLOSURE_GAPS,
            RedFlagType.DEBT_TREND,
        ]
        for flag in flags:
            assert 0 < flag.score <= flag.type.max_score

    def test_now_override(self, detector: RedFlagDetector, make_filing) -> None:
        """Test windows can be evaluated at an explicit instant."""
        filings = [make_filing(10, type="Share Consolidation")]
        later = NOW_MS + 400 * MS_PER_DAY
        assert detector.detect_flags("ACME", filings, [], now_ms=later) == []


class TestCompositeScore:
    """Tests for calculate_composite_score."""

    def test_empty(self) -> None:
        """Test no flags is 0.0 and LOW."""
        result = calculate_composite_score([])
        assert result.total_score == 0.0
        assert result.severity == RedFlagSeverity.LOW
        assert result.flags == []

    def test_all_max_flags_critical(self) -> None:
        """Test one max flag of each type sums to 100 CRITICAL."""
        flags = [_flag(t, t.max_score) for t in RedFlagType]
        result = calculate_composite_score(flags)
        assert result.total_score == 100.0
        assert result.severity == RedFlagSeverity.CRITICAL

    def test_mixed_flags_moderate(self) -> None:
        """Test 22.5 + 18.75 + 10.0 is 51.25 MODERATE."""
        flags = [
            _flag(RedFlagType.CONSOLIDATION_VELOCITY, 22.5),
            _flag(RedFlagType.FINANCING_VELOCITY, 18.75),
            _flag(RedFlagType.DEBT_TREND, 10.0),
        ]
        result = calculate_composite_score(flags)
        assert result.total_score == 51.25
        assert result.severity == RedFlagSeverity.MODERATE
        assert len(result.flags) == 3

    def test_total_clamped_at_100(self) -> None:
        """Test totals over 100 are clamped."""
        flags = [_flag(RedFlagType.CONSOLIDATION_VELOCITY, 30.0)] * 4
        assert calculate_composite_score(flags).total_score == 100.0

    @pytest.mark.parametrize(
        "total,severity",
        [
            (0.0, RedFlagSeverity.LOW),
            (29.99, RedFlagSeverity.LOW),
            (30.0, RedFlagSeverity.MODERATE),
            (59.99, RedFlagSeverity.MODERATE),
            (60.0, RedFlagSeverity.HIGH),
            (84.99, RedFlagSeverity.HIGH),
            (85.0, RedFlagSeverity.CRITICAL),
            (100.0, RedFlagSeverity.CRITICAL),
        ],
    )
    def test_severity_boundaries(self, total: float, severity: RedFlagSeverity) -> None:
        """Test severity band edges."""
        assert classify_severity(total) == severity

    def test_detector_method_delegates(self, detector: RedFlagDetector) -> None:
        """Test the detector exposes the same reduction."""
        flags = [_flag(RedFlagType.EXECUTIVE_CHURN, 20.0)]
        assert detector.calculate_composite_score(flags) == calculate_composite_score(flags)

    def test_to_dict(self) -> None:
        """Test serialized composite carries severity name and flag details."""
        data = calculate_composite_score([_flag(RedFlagType.DEBT_TREND, 5.0)]).to_dict()
        assert data["severity"] == "LOW"
        assert data["flag_count"] == 1
        assert data["flags"][0]["type"] == "DEBT_TREND"
        assert data["flags"][0]["max_score"] == 10.0
