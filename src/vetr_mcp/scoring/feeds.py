"""Upstream data feeds consumed by the scoring engine.

Feeds are one-shot snapshot fetches: the engine asks for current records at
computation time and never subscribes to updates. Feed exceptions are not
caught by the engine.
"""

from collections.abc import Iterable, Sequence
from typing import Protocol

from vetr_mcp.scoring.components import executive_quality_score
from vetr_mcp.scoring.models import Executive, Filing, MarketSnapshot, ScoreInputs
from vetr_mcp.utils.validators import normalize_entity_key


class EntityFeeds(Protocol):
    """The four collaborators the composite score is built from."""

    def get_filings_for_entity(self, entity_key: str) -> Sequence[Filing]: ...

    def get_executives_for_entity(self, entity_key: str) -> Sequence[Executive]: ...

    def get_executive_quality_score(self, entity_key: str) -> int | None: ...

    def get_market_snapshot(self, entity_key: str) -> MarketSnapshot | None: ...


def fetch_inputs(feeds: EntityFeeds, entity_key: str) -> ScoreInputs:
    """Fetch everything needed to score one entity. Feed errors propagate."""
    return ScoreInputs(
        filings=tuple(feeds.get_filings_for_entity(entity_key) or ()),
        executives=tuple(feeds.get_executives_for_entity(entity_key) or ()),
        executive_quality_score=feeds.get_executive_quality_score(entity_key),
        market_snapshot=feeds.get_market_snapshot(entity_key),
    )


class StaticFeeds:
    """
    In-memory feeds over records supplied up front.

    Records are grouped by their normalized entity_id. When no explicit
    quality score is registered for an entity, it is derived from the
    executive roster.
    """

    def __init__(
        self,
        filings: Iterable[Filing] = (),
        executives: Iterable[Executive] = (),
        quality_scores: dict[str, int] | None = None,
        market_snapshots: dict[str, MarketSnapshot] | None = None,
    ):
        self._filings: dict[str, list[Filing]] = {}
        for filing in filings:
            self._filings.setdefault(normalize_entity_key(filing.entity_id), []).append(filing)

        self._executives: dict[str, list[Executive]] = {}
        for executive in executives:
            self._executives.setdefault(normalize_entity_key(executive.entity_id), []).append(
                executive
            )

        self._quality_scores = {
            normalize_entity_key(k): v for k, v in (quality_scores or {}).items()
        }
        self._market_snapshots = {
            normalize_entity_key(k): v for k, v in (market_snapshots or {}).items()
        }

    def get_filings_for_entity(self, entity_key: str) -> Sequence[Filing]:
        return list(self._filings.get(normalize_entity_key(entity_key), []))

    def get_executives_for_entity(self, entity_key: str) -> Sequence[Executive]:
        return list(self._executives.get(normalize_entity_key(entity_key), []))

    def get_executive_quality_score(self, entity_key: str) -> int | None:
        key = normalize_entity_key(entity_key)
        if key in self._quality_scores:
            return self._quality_scores[key]
        executives = self._executives.get(key)
        if not executives:
            return None

        return executive_quality_score(executives)

    def get_market_snapshot(self, entity_key: str) -> MarketSnapshot | None:
        return self._market_snapshots.get(normalize_entity_key(entity_key))
