"""Records consumed and produced by the scoring engine."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from vetr_mcp.utils.clock import epoch_ms_to_iso
from vetr_mcp.utils.validators import (
    clean_text,
    normalize_entity_key,
    parse_bool,
    parse_date_ms,
    parse_non_negative,
    require_field,
)

# Component keys of a ScoreResult, in weighting order
PEDIGREE = "pedigree"
FILING_VELOCITY = "filingVelocity"
RED_FLAG = "redFlag"
GROWTH = "growth"
GOVERNANCE = "governance"

COMPONENT_KEYS: tuple[str, ...] = (PEDIGREE, FILING_VELOCITY, RED_FLAG, GROWTH, GOVERNANCE)


@dataclass(frozen=True)
class Filing:
    """A regulatory filing for an entity. Date is epoch milliseconds."""

    id: str
    entity_id: str
    type: str
    title: str
    date: int
    summary: str
    is_material: bool = False

    @classmethod
    def from_dict(cls, record: dict[str, Any], entity_key: str | None = None) -> "Filing":
        """
        Build a Filing from a tool-input dict.

        Required: type, date (epoch ms or ISO-8601).
        Optional: id, entity_id, title, summary, is_material.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        date = parse_date_ms(require_field(record, "date", "filing"))
        filing_type = clean_text(require_field(record, "type", "filing"), max_length=100)
        entity_id = normalize_entity_key(record.get("entity_id") or entity_key)

        return cls(
            id=str(record.get("id") or f"{entity_id}-{date}"),
            entity_id=entity_id,
            type=filing_type,
            title=clean_text(record.get("title")),
            date=date,
            summary=clean_text(record.get("summary"), max_length=2000),
            is_material=parse_bool(record.get("is_material", False), "is_material"),
        )


@dataclass(frozen=True)
class Executive:
    """A member of an entity's leadership team."""

    id: str
    entity_id: str
    name: str
    title: str
    years_at_company: float
    previous_companies: str = ""
    education: str = ""
    specialization: str = ""

    @classmethod
    def from_dict(cls, record: dict[str, Any], entity_key: str | None = None) -> "Executive":
        """
        Build an Executive from a tool-input dict.

        Required: name, years_at_company (>= 0).
        Optional: id, entity_id, title, previous_companies (str or list),
        education, specialization.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        name = clean_text(require_field(record, "name", "executive"), max_length=200)
        if not name:
            raise ValueError("Invalid executive: missing required field 'name'")
        years = parse_non_negative(
            require_field(record, "years_at_company", "executive"), "years_at_company"
        )
        entity_id = normalize_entity_key(record.get("entity_id") or entity_key)

        return cls(
            id=str(record.get("id") or f"{entity_id}-{name}"),
            entity_id=entity_id,
            name=name,
            title=clean_text(record.get("title"), max_length=200),
            years_at_company=years,
            previous_companies=clean_text(record.get("previous_companies")),
            education=clean_text(record.get("education")),
            specialization=clean_text(record.get("specialization"), max_length=200),
        )


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time market data. price_change_percent is 2.5 for +2.5%."""

    market_cap: float
    price_change_percent: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_cap": self.market_cap,
            "price_change_percent": self.price_change_percent,
        }


@dataclass(frozen=True)
class ScoreInputs:
    """Everything the calculator needs for one entity, already fetched."""

    filings: Sequence[Filing] = ()
    executives: Sequence[Executive] = ()
    executive_quality_score: int | None = None
    market_snapshot: MarketSnapshot | None = None


class RedFlagType(Enum):
    """Red flag kinds. Value is the maximum score the detector assigns."""

    CONSOLIDATION_VELOCITY = 30.0
    FINANCING_VELOCITY = 25.0
    EXECUTIVE_CHURN = 20.0
    DISCLOSURE_GAPS = 15.0
    DEBT_TREND = 10.0

    @property
    def max_score(self) -> float:
        return self.value


class RedFlagSeverity(Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class DetectedFlag:
    type: RedFlagType
    entity_key: str
    score: float
    description: str
    detected_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.name,
            "entity_key": self.entity_key,
            "score": self.score,
            "max_score": self.type.max_score,
            "description": self.description,
            "detected_at": epoch_ms_to_iso(self.detected_at),
        }


@dataclass(frozen=True)
class RedFlagScore:
    """Composite of detected flags with its severity band."""

    total_score: float
    severity: RedFlagSeverity
    flags: list[DetectedFlag] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_score": self.total_score,
            "severity": self.severity.value,
            "flag_count": len(self.flags),
            "flags": [f.to_dict() for f in self.flags],
        }


@dataclass(frozen=True)
class ScoreResult:
    """
    Overall VETR score with its component breakdown.

    components always holds exactly the COMPONENT_KEYS, each an int in [0, 100].
    red_flags and adjustments are the breakdown the score was computed from;
    they do not take part in equality.
    """

    overall_score: int
    components: dict[str, int]
    computed_at: int
    red_flags: RedFlagScore | None = field(default=None, compare=False)
    adjustments: dict[str, int] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "components": {key: self.components[key] for key in COMPONENT_KEYS},
            "computed_at": epoch_ms_to_iso(self.computed_at),
        }


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: ScoreResult
    expires_at: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at
