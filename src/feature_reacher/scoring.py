"""Explainable heuristic scores.

Each sub-score is a ScoreBreakdown whose factor contributions sum to the
score. Recency, visibility and documentation density are "higher is
better"; adoption risk inverts them, so higher means more at risk.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Iterable, List, Optional

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .models import Artifact, Evidence, Feature, clamp, group_evidence_by_feature
from .utils import as_utc, parse_iso, setup_logging


logger = setup_logging(__name__)


ACTIVE_SPAN_DAYS = 30
ACTIVE_RECENT_DAYS = 90
EVIDENCE_SATURATION = 5
SIGNAL_DIVERSITY_SATURATION = 3
MISSING_CONFIDENCE = 0.5
PLACEMENT_FLOOR = 0.3


@dataclass
class ScoreFactor:
    """One named input to a score.

    ``value`` is the normalized factor score in [0, 1] and ``raw_value`` the
    measured quantity it was derived from (days, counts, ratios).
    """

    name: str
    value: float
    weight: float
    contribution: float
    explanation: str
    raw_value: float = 0.0

    @classmethod
    def weighted(cls, name: str, value: float, weight: float, explanation: str, raw_value: float) -> 'ScoreFactor':
        return cls(
            name=name,
            value=value,
            weight=weight,
            contribution=value * weight,
            explanation=explanation,
            raw_value=raw_value,
        )

    @property
    def underperforms(self) -> bool:
        """True when the factor contributes less than half its weight."""
        return self.contribution < self.weight * 0.5

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'ScoreFactor':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class ScoreBreakdown:
    score: float
    explanation: str
    factors: List[ScoreFactor] = field(default_factory=list)

    def factor(self, name: str) -> Optional[ScoreFactor]:
        for item in self.factors:
            if item.name == name:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "explanation": self.explanation,
            "factors": [f.to_dict() for f in self.factors],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ScoreBreakdown':
        return cls(
            score=data.get("score", 0.0),
            explanation=data.get("explanation", ""),
            factors=[ScoreFactor.from_dict(f) for f in data.get("factors", [])],
        )


@dataclass
class FeatureScore:
    feature_id: str
    feature_name: str
    recency: ScoreBreakdown
    visibility: ScoreBreakdown
    documentation_density: ScoreBreakdown
    adoption_risk: ScoreBreakdown

    def to_dict(self) -> dict:
        return {
            "feature_id": self.feature_id,
            "feature_name": self.feature_name,
            "recency": self.recency.to_dict(),
            "visibility": self.visibility.to_dict(),
            "documentation_density": self.documentation_density.to_dict(),
            "adoption_risk": self.adoption_risk.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'FeatureScore':
        return cls(
            feature_id=data["feature_id"],
            feature_name=data.get("feature_name", ""),
            recency=ScoreBreakdown.from_dict(data["recency"]),
            visibility=ScoreBreakdown.from_dict(data["visibility"]),
            documentation_density=ScoreBreakdown.from_dict(data["documentation_density"]),
            adoption_risk=ScoreBreakdown.from_dict(data["adoption_risk"]),
        )


def _total(factors: List[ScoreFactor]) -> float:
    return sum(f.contribution for f in factors)


def _tiered(score: float, high: str, medium: str, low: str) -> str:
    if score > 0.7:
        return high
    if score > 0.4:
        return medium
    return low


def days_since(timestamp: str, now: datetime, default: int) -> int:
    """Whole days between ``timestamp`` and ``now``; ``default`` when unparseable."""
    parsed = parse_iso(timestamp)
    if parsed is None:
        return default
    return (as_utc(now) - parsed).days


def calculate_recency_score(
    feature: Feature,
    now: datetime,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ScoreBreakdown:
    """Score how recently and how steadily a feature is mentioned.

    Args:
        feature: Feature with first/last seen timestamps
        now: Analysis time, shared by every feature of one audit
        config: Scoring configuration (staleness window)

    Returns:
        ScoreBreakdown with "Last mention recency" and "Active maintenance"
    """
    days_since_last = days_since(feature.last_seen, now, config.stale_days)
    days_since_first = days_since(feature.first_seen, now, days_since_last)

    decay = clamp(1 - days_since_last / config.stale_days)
    span = days_since_first - days_since_last
    active = span > ACTIVE_SPAN_DAYS and days_since_last < ACTIVE_RECENT_DAYS

    factors = [
        ScoreFactor.weighted(
            "Last mention recency",
            decay,
            0.6,
            f"Last mentioned {days_since_last} days ago",
            days_since_last,
        ),
        ScoreFactor.weighted(
            "Active maintenance",
            1.0 if active else 0.5,
            0.4,
            f"Feature has {span} day mention span and recent activity" if active
            else f"Feature mention span: {span} days",
            span,
        ),
    ]

    score = _total(factors)
    return ScoreBreakdown(
        score=score,
        explanation=_tiered(
            score,
            "Recently mentioned and actively maintained",
            "Moderately recent mentions",
            "Stale - not mentioned recently",
        ),
        factors=factors,
    )


def calculate_visibility_score(
    feature: Feature,
    feature_evidence: List[Evidence],
    total_artifacts: int,
) -> ScoreBreakdown:
    """Score where and how prominently a feature is surfaced."""
    has_onboarding = any(e.signal_type == "onboarding" for e in feature_evidence)
    artifact_count = len(feature.source_artifacts)
    coverage = min(artifact_count / total_artifacts, 1.0) if total_artifacts > 0 else 0.0
    heading_count = sum(1 for e in feature_evidence if e.is_heading)
    has_docs = any(e.signal_type == "documentation" for e in feature_evidence)

    factors = [
        ScoreFactor.weighted(
            "Onboarding presence",
            1.0 if has_onboarding else 0.0,
            0.35,
            "Feature appears in onboarding/getting-started content" if has_onboarding
            else "Feature NOT in onboarding content",
            1 if has_onboarding else 0,
        ),
        ScoreFactor.weighted(
            "Cross-artifact visibility",
            coverage,
            0.3,
            f"Mentioned in {artifact_count} of {total_artifacts} artifacts",
            artifact_count,
        ),
        ScoreFactor.weighted(
            "Prominent placement",
            1.0 if heading_count else PLACEMENT_FLOOR,
            0.2,
            "Feature appears in section headings" if heading_count
            else "Feature buried in body text",
            heading_count,
        ),
        ScoreFactor.weighted(
            "Documentation presence",
            1.0 if has_docs else 0.0,
            0.15,
            "Feature has dedicated documentation" if has_docs
            else "No dedicated documentation found",
            1 if has_docs else 0,
        ),
    ]

    score = _total(factors)
    return ScoreBreakdown(
        score=score,
        explanation=_tiered(
            score,
            "Highly visible across documentation",
            "Moderate visibility",
            "Low visibility - likely undiscoverable",
        ),
        factors=factors,
    )


def calculate_density_score(feature_evidence: List[Evidence]) -> ScoreBreakdown:
    """Score how much, and how varied, the evidence for a feature is."""
    count = len(feature_evidence)

    signal_types: List[str] = []
    for item in feature_evidence:
        if item.signal_type not in signal_types:
            signal_types.append(item.signal_type)

    if count:
        confidences = [MISSING_CONFIDENCE if e.confidence is None else e.confidence for e in feature_evidence]
        avg_confidence = sum(confidences) / count
    else:
        avg_confidence = 0.0

    factors = [
        ScoreFactor.weighted(
            "Evidence density",
            min(count / EVIDENCE_SATURATION, 1.0),
            0.5,
            f"{count} evidence point(s) found",
            count,
        ),
        ScoreFactor.weighted(
            "Signal diversity",
            min(len(signal_types) / SIGNAL_DIVERSITY_SATURATION, 1.0),
            0.3,
            f"{len(signal_types)} different signal type(s): {', '.join(signal_types)}",
            len(signal_types),
        ),
        ScoreFactor.weighted(
            "Extraction confidence",
            avg_confidence,
            0.2,
            f"Average extraction confidence: {avg_confidence * 100:.0f}%",
            avg_confidence,
        ),
    ]

    score = _total(factors)
    return ScoreBreakdown(
        score=score,
        explanation=_tiered(
            score,
            "Well-documented with diverse evidence",
            "Moderate documentation coverage",
            "Sparse documentation",
        ),
        factors=factors,
    )


def calculate_adoption_risk(
    recency: ScoreBreakdown,
    visibility: ScoreBreakdown,
    density: ScoreBreakdown,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ScoreBreakdown:
    """Combine the inverted sub-scores into one risk score (higher = riskier)."""
    factors = [
        ScoreFactor.weighted(
            "Recency risk",
            1 - recency.score,
            config.recency_weight,
            recency.explanation,
            recency.score,
        ),
        ScoreFactor.weighted(
            "Visibility risk",
            1 - visibility.score,
            config.visibility_weight,
            visibility.explanation,
            visibility.score,
        ),
        ScoreFactor.weighted(
            "Documentation risk",
            1 - density.score,
            config.density_weight,
            density.explanation,
            density.score,
        ),
    ]

    score = clamp(_total(factors))
    return ScoreBreakdown(
        score=score,
        explanation=_tiered(
            score,
            "HIGH RISK: Feature likely undiscoverable",
            "MEDIUM RISK: Feature may be underutilized",
            "LOW RISK: Feature appears well-surfaced",
        ),
        factors=factors,
    )


def score_feature(
    feature: Feature,
    feature_evidence: List[Evidence],
    total_artifacts: int,
    now: datetime,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> FeatureScore:
    recency = calculate_recency_score(feature, now, config)
    visibility = calculate_visibility_score(feature, feature_evidence, total_artifacts)
    density = calculate_density_score(feature_evidence)
    return FeatureScore(
        feature_id=feature.id,
        feature_name=feature.name,
        recency=recency,
        visibility=visibility,
        documentation_density=density,
        adoption_risk=calculate_adoption_risk(recency, visibility, density, config),
    )


def score_all_features(
    features: Iterable[Feature],
    evidence: List[Evidence],
    artifacts: List[Artifact],
    now: datetime,
    config: Optional[ScoringConfig] = None,
) -> List[FeatureScore]:
    """Score every feature against the whole audit's evidence.

    Args:
        features: Extracted features
        evidence: All evidence of the audit
        artifacts: All artifacts of the audit
        now: Analysis time captured once per audit
        config: Scoring configuration (default: DEFAULT_SCORING_CONFIG)

    Returns:
        FeatureScores ordered by adoption risk, highest first (stable)
    """
    config = config or DEFAULT_SCORING_CONFIG
    by_feature = group_evidence_by_feature(evidence)

    scores = [
        score_feature(f, by_feature.get(f.id, []), len(artifacts), now, config)
        for f in features
    ]
    scores.sort(key=lambda s: s.adoption_risk.score, reverse=True)

    logger.debug("Scored %d feature(s)", len(scores))
    return scores
