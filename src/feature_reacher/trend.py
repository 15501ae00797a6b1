"""Per-feature risk history across a sequence of persisted audits."""
from dataclasses import dataclass, field, asdict
from typing import Dict, Iterable, List, Optional

from .diff import normalize_name
from .models import RISK_LEVEL_VALUES
from .storage import PersistedAudit
from .utils import parse_iso, setup_logging


logger = setup_logging(__name__)


SPARKLINE_CHARS = {"critical": "▓", "high": "▒", "medium": "░", "low": "·"}

_RISK_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


@dataclass(frozen=True)
class TrendPoint:
    audit_id: str
    audit_name: str
    date: str
    feature_name: str
    risk_level: str
    risk_score: float
    diagnosis: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FeatureTrend:
    feature_name: str
    current_risk_level: str
    current_diagnosis: str
    points: List[TrendPoint]
    direction: str
    diagnosis_changes: int
    risk_level_changes: int
    first_seen: str
    last_seen: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["points"] = [p.to_dict() for p in self.points]
        return data


@dataclass
class TrendSummary:
    audits_analyzed: int = 0
    date_from: str = ""
    date_to: str = ""
    feature_trends: List[FeatureTrend] = field(default_factory=list)
    improving: int = 0
    worsening: int = 0
    stable: int = 0
    new_features: int = 0

    def to_dict(self) -> dict:
        return {
            "audits_analyzed": self.audits_analyzed,
            "date_range": {"from": self.date_from, "to": self.date_to},
            "feature_trends": [t.to_dict() for t in self.feature_trends],
            "improving": self.improving,
            "worsening": self.worsening,
            "stable": self.stable,
            "new_features": self.new_features,
        }


def _created_key(audit: PersistedAudit):
    parsed = parse_iso(audit.created_at)
    return (parsed is None, parsed.timestamp() if parsed else 0.0, audit.created_at)


def sort_audits(audits: Iterable[PersistedAudit]) -> List[PersistedAudit]:
    """Oldest first; unparseable timestamps sort last."""
    return sorted(audits, key=_created_key)


def calculate_direction(points: List[TrendPoint]) -> str:
    if len(points) < 2:
        return "stable"
    first = RISK_LEVEL_VALUES[points[0].risk_level]
    last = RISK_LEVEL_VALUES[points[-1].risk_level]
    if last < first:
        return "improving"
    if last > first:
        return "worsening"
    return "stable"


def calculate_feature_trend(points: List[TrendPoint]) -> FeatureTrend:
    """Fold one feature's chronological points into a trend."""
    current = points[-1]
    diagnosis_changes = sum(
        1 for prev, cur in zip(points, points[1:]) if cur.diagnosis != prev.diagnosis
    )
    risk_level_changes = sum(
        1 for prev, cur in zip(points, points[1:]) if cur.risk_level != prev.risk_level
    )

    return FeatureTrend(
        feature_name=current.feature_name,
        current_risk_level=current.risk_level,
        current_diagnosis=current.diagnosis,
        points=list(points),
        direction=calculate_direction(points),
        diagnosis_changes=diagnosis_changes,
        risk_level_changes=risk_level_changes,
        first_seen=points[0].date,
        last_seen=current.date,
    )


def generate_trend_data(audits: Iterable[PersistedAudit]) -> TrendSummary:
    """Build every feature's trend across the given audits.

    Args:
        audits: Persisted audits in any order

    Returns:
        TrendSummary with trends ordered critical first, worsening first
        within a level; an empty summary when there are no audits
    """
    ordered = sort_audits(audits)
    if not ordered:
        return TrendSummary()

    history: Dict[str, List[TrendPoint]] = {}
    for audit in ordered:
        for rf in audit.ranked_features:
            history.setdefault(normalize_name(rf.feature.name), []).append(TrendPoint(
                audit_id=audit.audit_id,
                audit_name=audit.name,
                date=audit.created_at,
                feature_name=rf.feature.name,
                risk_level=rf.risk_level,
                risk_score=rf.risk_score,
                diagnosis=rf.primary_diagnosis.type if rf.primary_diagnosis else "healthy",
            ))

    trends = [calculate_feature_trend(points) for points in history.values()]
    trends.sort(key=lambda t: (_RISK_ORDER[t.current_risk_level], t.direction != "worsening"))

    latest = ordered[-1].created_at
    summary = TrendSummary(
        audits_analyzed=len(ordered),
        date_from=ordered[0].created_at,
        date_to=latest,
        feature_trends=trends,
    )
    for trend in trends:
        if trend.direction == "improving":
            summary.improving += 1
        elif trend.direction == "worsening":
            summary.worsening += 1
        else:
            summary.stable += 1
        if len(trend.points) == 1 and trend.points[0].date == latest:
            summary.new_features += 1

    logger.debug("Built %d feature trend(s) from %d audit(s)", len(trends), len(ordered))
    return summary


def get_feature_trend(feature_name: str, audits: Iterable[PersistedAudit]) -> Optional[FeatureTrend]:
    normalized = normalize_name(feature_name)
    for trend in generate_trend_data(audits).feature_trends:
        if normalize_name(trend.feature_name) == normalized:
            return trend
    return None


def sparkline(points: List[TrendPoint]) -> str:
    return "".join(SPARKLINE_CHARS.get(p.risk_level, "?") for p in points)
