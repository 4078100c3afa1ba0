"""Red flag detection tool."""

from time import perf_counter
from typing import Any

from vetr_mcp.scoring.models import Executive, Filing
from vetr_mcp.scoring.red_flags import RedFlagDetector, calculate_composite_score
from vetr_mcp.utils.provenance import build_error_response, build_meta, build_provenance
from vetr_mcp.utils.validators import normalize_entity_key


def parse_records(
    symbol: str,
    filings: list[dict[str, Any]] | None,
    executives: list[dict[str, Any]] | None,
) -> tuple[list[Filing], list[Executive]]:
    """
    Build immutable records from tool input.

    Records without an entity_id are attributed to symbol.

    Raises:
        ValueError: If any record is malformed (message names its position)
    """
    parsed_filings = []
    for i, record in enumerate(filings or []):
        try:
            parsed_filings.append(Filing.from_dict(record, entity_key=symbol))
        except ValueError as e:
            raise ValueError(f"filings[{i}]: {e}") from e

    parsed_executives = []
    for i, record in enumerate(executives or []):
        try:
            parsed_executives.append(Executive.from_dict(record, entity_key=symbol))
        except ValueError as e:
            raise ValueError(f"executives[{i}]: {e}") from e

    return parsed_filings, parsed_executives


async def red_flag_report(
    symbol: str,
    filings: list[dict[str, Any]] | None,
    executives: list[dict[str, Any]] | None,
    detector: RedFlagDetector,
) -> dict[str, Any]:
    """
    Detect red flags for an entity and reduce them to a severity band.

    Args:
        symbol: Ticker or other entity identifier
        filings: Filing records (type, date, summary, ...)
        executives: Executive records (name, years_at_company, ...)
        detector: Detector whose clock defines "now"

    Returns:
        Dict with total_score, severity, and one entry per detected flag
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
    except ValueError as e:
        return build_error_response(
            error_type="invalid_input",
            message=str(e),
            symbol=normalized_symbol,
        )

    now_ms = detector.clock.now_ms()
    flags = detector.detect_flags(
        normalized_symbol, parsed_filings, parsed_executives, now_ms=now_ms
    )
    composite = calculate_composite_score(flags)

    duration_ms = (perf_counter() - start_time) * 1000

    return {
        "meta": build_meta("detect_red_flags", duration_ms),
        "data_provenance": {
            "records": build_provenance(
                source="caller",
                filing_count=len(parsed_filings),
                executive_count=len(parsed_executives),
            ),
        },
        "symbol": normalized_symbol,
        **composite.to_dict(),
    }
