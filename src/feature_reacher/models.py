"""Domain data models: artifacts, features, evidence and diagnoses."""
from dataclasses import dataclass, field, asdict, replace
from typing import Dict, List, Optional

from .utils import parse_iso


ARTIFACT_TYPES = (
    "release_notes",  # Changelog, release announcements
    "documentation",  # Technical docs, guides, tutorials
    "faq",            # FAQ pages, help articles
    "onboarding",     # Getting started guides, quickstarts
    "marketing",      # Landing pages, feature announcements
    "support",        # Support tickets, common issues
    "unknown",
)

SIGNAL_TYPES = (
    "recency",
    "visibility",
    "redundancy",
    "onboarding",
    "deprecation",
    "update",
    "documentation",
    "faq",
    "release_note",
)

DIAGNOSIS_TYPES = (
    "dormant_but_documented",
    "likely_invisible",
    "over_referenced_but_stale",
    "deprecated_candidate",
    "undiscoverable",
    "healthy",
    "moderate_risk",  # synthesized when no rule matches
)

SEVERITIES = ("low", "medium", "high", "critical")

RISK_LEVELS = ("critical", "high", "medium", "low")

SEVERITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}

RISK_LEVEL_VALUES = {"low": 1, "medium": 2, "high": 3, "critical": 4}

# Lower bounds, checked in order.
RISK_LEVEL_THRESHOLDS = (
    ("critical", 0.75),
    ("high", 0.55),
    ("medium", 0.35),
)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def risk_level_for(score: float) -> str:
    """Bucket a risk score into critical/high/medium/low."""
    for level, threshold in RISK_LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return "low"


def _from_dict(cls, data: dict):
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class Artifact:
    """A source document submitted for analysis."""

    id: str
    name: str
    type: str
    raw_content: str
    normalized_content: str
    uploaded_at: str
    word_count: int = 0
    headings: List[str] = field(default_factory=list)
    content_timestamp: Optional[str] = None
    is_code_like: bool = False

    @classmethod
    def create(
        cls,
        id: str,
        name: str,
        type: str,
        raw_content: str,
        normalized_content: str,
        uploaded_at: str,
        headings: Optional[List[str]] = None,
        content_timestamp: Optional[str] = None,
        is_code_like: bool = False,
    ) -> 'Artifact':
        return cls(
            id=id,
            name=name,
            type=type if type in ARTIFACT_TYPES else "unknown",
            raw_content=raw_content,
            normalized_content=normalized_content,
            uploaded_at=uploaded_at,
            word_count=len(normalized_content.split()),
            headings=list(headings or []),
            content_timestamp=content_timestamp,
            is_code_like=is_code_like,
        )

    @property
    def effective_timestamp(self) -> str:
        """Timestamp attached to mentions found in this artifact."""
        return self.content_timestamp or self.uploaded_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'Artifact':
        return _from_dict(cls, data)


def _earlier(a: str, b: str) -> str:
    pa, pb = parse_iso(a), parse_iso(b)
    if pa is None or pb is None:
        return min(a, b)
    return b if pb < pa else a


def _later(a: str, b: str) -> str:
    pa, pb = parse_iso(a), parse_iso(b)
    if pa is None or pb is None:
        return max(a, b)
    return b if pb > pa else a


@dataclass(frozen=True)
class Feature:
    """A candidate product capability extracted from documentation.

    Features are never overwritten: merging a mention returns a new record
    whose alias and source sets are extended and whose first/last seen
    range is widened.
    """

    id: str
    name: str
    aliases: List[str] = field(default_factory=list)
    source_artifacts: List[str] = field(default_factory=list)
    first_seen: str = ""
    last_seen: str = ""

    @classmethod
    def create(cls, id: str, name: str, artifact_id: str, timestamp: str) -> 'Feature':
        return cls(
            id=id,
            name=name,
            aliases=[],
            source_artifacts=[artifact_id],
            first_seen=timestamp,
            last_seen=timestamp,
        )

    def merge_mention(self, artifact_id: str, timestamp: str, alias: Optional[str] = None) -> 'Feature':
        """Fold one more mention of this feature into a new record."""
        sources = list(self.source_artifacts)
        if artifact_id not in sources:
            sources.append(artifact_id)
        aliases = list(self.aliases)
        if alias and alias != self.name and alias not in aliases:
            aliases.append(alias)
        return replace(
            self,
            aliases=aliases,
            source_artifacts=sources,
            first_seen=_earlier(self.first_seen, timestamp),
            last_seen=_later(self.last_seen, timestamp),
        )

    def merge(self, other: 'Feature') -> 'Feature':
        """Union two records describing the same feature."""
        aliases = list(self.aliases)
        for alias in [other.name] + list(other.aliases):
            if alias != self.name and alias not in aliases:
                aliases.append(alias)
        sources = list(self.source_artifacts)
        for artifact_id in other.source_artifacts:
            if artifact_id not in sources:
                sources.append(artifact_id)
        return replace(
            self,
            aliases=aliases,
            source_artifacts=sources,
            first_seen=_earlier(self.first_seen, other.first_seen),
            last_seen=_later(self.last_seen, other.last_seen),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'Feature':
        return _from_dict(cls, data)


@dataclass(frozen=True)
class Evidence:
    """A verbatim excerpt linking a feature to the artifact it came from."""

    id: str
    artifact_id: str
    feature_id: str
    excerpt: str
    signal_type: str
    timestamp: str
    location: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def is_heading(self) -> bool:
        return bool(self.location) and self.location.startswith("Heading")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'Evidence':
        return _from_dict(cls, data)


def group_evidence_by_feature(evidence: List[Evidence]) -> Dict[str, List[Evidence]]:
    grouped: Dict[str, List[Evidence]] = {}
    for item in evidence:
        grouped.setdefault(item.feature_id, []).append(item)
    return grouped


def filter_evidence_by_signal(evidence: List[Evidence], signal_type: str) -> List[Evidence]:
    return [e for e in evidence if e.signal_type == signal_type]


@dataclass
class Diagnosis:
    """An evidence-backed adoption risk judgment about one feature."""

    id: str
    feature_id: str
    type: str
    title: str
    explanation: str
    severity: str
    confidence: float
    triggering_signals: List[str] = field(default_factory=list)
    supporting_evidence: List[Evidence] = field(default_factory=list)
    generated_at: str = ""

    @property
    def is_severe(self) -> bool:
        return self.severity in ("critical", "high")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'Diagnosis':
        diagnosis = _from_dict(cls, data)
        diagnosis.supporting_evidence = [
            Evidence.from_dict(e) for e in data.get("supporting_evidence", [])
        ]
        return diagnosis


def severity_rank(severity: str) -> int:
    return SEVERITY_RANK.get(severity, 0)


def sort_diagnoses_by_risk(diagnoses: List[Diagnosis]) -> List[Diagnosis]:
    """Sort by severity, then confidence, both descending.

    Equal diagnoses keep their input order (rule order).
    """
    return sorted(
        diagnoses,
        key=lambda d: (severity_rank(d.severity), d.confidence),
        reverse=True,
    )
