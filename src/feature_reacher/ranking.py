"""Ranking and audit assembly.

Joins features with their scores, diagnoses and evidence, orders them by
combined risk and builds the audit summary. Same input, same output.
"""
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key
from typing import Dict, List, Optional

from .diagnosis import get_primary_diagnosis
from .models import (
    RISK_LEVELS,
    Diagnosis,
    Evidence,
    Feature,
    clamp,
    group_evidence_by_feature,
    risk_level_for,
)
from .scoring import FeatureScore
from .utils import setup_logging, sha256_hex


logger = setup_logging(__name__)


SEVERE_BOOST_STEP = 0.1
SEVERE_BOOST_CAP = 0.2
SCORE_TIE_TOLERANCE = 0.01
TOP_FACTOR_LIMIT = 5
TOP_AT_RISK_LIMIT = 10


@dataclass
class RankedFeature:
    rank: int
    feature: Feature
    score: FeatureScore
    primary_diagnosis: Optional[Diagnosis]
    all_diagnoses: List[Diagnosis]
    evidence: List[Evidence]
    risk_score: float
    risk_level: str

    @property
    def severe_count(self) -> int:
        return sum(1 for d in self.all_diagnoses if d.is_severe)

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "feature": self.feature.to_dict(),
            "score": self.score.to_dict(),
            "primary_diagnosis": self.primary_diagnosis.to_dict() if self.primary_diagnosis else None,
            "all_diagnoses": [d.to_dict() for d in self.all_diagnoses],
            "evidence": [e.to_dict() for e in self.evidence],
            "risk_score": self.risk_score,
            "risk_level": self.risk_level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RankedFeature':
        primary = data.get("primary_diagnosis")
        return cls(
            rank=data["rank"],
            feature=Feature.from_dict(data["feature"]),
            score=FeatureScore.from_dict(data["score"]),
            primary_diagnosis=Diagnosis.from_dict(primary) if primary else None,
            all_diagnoses=[Diagnosis.from_dict(d) for d in data.get("all_diagnoses", [])],
            evidence=[Evidence.from_dict(e) for e in data.get("evidence", [])],
            risk_score=data["risk_score"],
            risk_level=data["risk_level"],
        )


@dataclass
class AuditSummary:
    audit_id: str
    total_features: int
    by_risk_level: Dict[str, int]
    top_risk_factors: List[str]
    artifacts_analyzed: int
    total_evidence: int
    analyzed_at: str

    def to_dict(self) -> dict:
        return {
            "audit_id": self.audit_id,
            "total_features": self.total_features,
            "by_risk_level": dict(self.by_risk_level),
            "top_risk_factors": list(self.top_risk_factors),
            "artifacts_analyzed": self.artifacts_analyzed,
            "total_evidence": self.total_evidence,
            "analyzed_at": self.analyzed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AuditSummary':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Audit:
    summary: AuditSummary
    ranked_features: List[RankedFeature] = field(default_factory=list)
    ambiguities: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary.to_dict(),
            "ranked_features": [rf.to_dict() for rf in self.ranked_features],
            "ambiguities": list(self.ambiguities),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Audit':
        return cls(
            summary=AuditSummary.from_dict(data["summary"]),
            ranked_features=[RankedFeature.from_dict(rf) for rf in data.get("ranked_features", [])],
            ambiguities=list(data.get("ambiguities", [])),
        )


def generate_audit_id(feature_count: int, evidence_count: int, analyzed_at: str) -> str:
    """``AUD-`` plus six uppercase hex digits of a SHA-256 over the inputs."""
    digest = sha256_hex(f"{feature_count}-{evidence_count}-{analyzed_at[:10]}")
    return f"AUD-{digest[:6].upper()}"


def calculate_combined_risk(score: FeatureScore, diagnoses: List[Diagnosis]) -> float:
    """Adoption risk boosted by severe diagnoses and blended with their confidence."""
    risk = score.adoption_risk.score

    severe = sum(1 for d in diagnoses if d.is_severe)
    if severe:
        risk = min(risk + min(severe * SEVERE_BOOST_STEP, SEVERE_BOOST_CAP), 1.0)

    if diagnoses:
        avg_confidence = sum(d.confidence for d in diagnoses) / len(diagnoses)
        risk = risk * 0.8 + risk * avg_confidence * 0.2

    return clamp(risk)


def _compare(a: RankedFeature, b: RankedFeature) -> int:
    diff = b.risk_score - a.risk_score
    if abs(diff) > SCORE_TIE_TOLERANCE:
        return 1 if diff > 0 else -1
    if a.severe_count != b.severe_count:
        return b.severe_count - a.severe_count
    if len(a.evidence) != len(b.evidence):
        return len(b.evidence) - len(a.evidence)
    if a.feature.name != b.feature.name:
        return -1 if a.feature.name < b.feature.name else 1
    return 0


def rank_features(
    features: List[Feature],
    scores: List[FeatureScore],
    diagnoses: List[Diagnosis],
    evidence: List[Evidence],
) -> List[RankedFeature]:
    """Build and order RankedFeatures; ranks are 1-based."""
    scores_by_id = {s.feature_id: s for s in scores}
    evidence_by_id = group_evidence_by_feature(evidence)
    diagnoses_by_id: Dict[str, List[Diagnosis]] = {}
    for diagnosis in diagnoses:
        diagnoses_by_id.setdefault(diagnosis.feature_id, []).append(diagnosis)

    ranked: List[RankedFeature] = []
    for feature in features:
        score = scores_by_id.get(feature.id)
        if score is None:
            continue

        feature_diagnoses = diagnoses_by_id.get(feature.id, [])
        risk_score = calculate_combined_risk(score, feature_diagnoses)
        ranked.append(RankedFeature(
            rank=0,
            feature=feature,
            score=score,
            primary_diagnosis=get_primary_diagnosis(feature_diagnoses),
            all_diagnoses=feature_diagnoses,
            evidence=evidence_by_id.get(feature.id, []),
            risk_score=risk_score,
            risk_level=risk_level_for(risk_score),
        ))

    ranked.sort(key=cmp_to_key(_compare))
    for index, item in enumerate(ranked):
        item.rank = index + 1

    return ranked


def identify_top_risk_factors(ranked: List[RankedFeature], limit: int = TOP_FACTOR_LIMIT) -> List[str]:
    """Most frequent risk factors and diagnosis titles among high/critical features.

    Ties keep first-occurrence order.
    """
    counts: Dict[str, int] = {}
    for item in ranked:
        if item.risk_level not in ("critical", "high"):
            continue
        for factor in item.score.adoption_risk.factors:
            if factor.contribution > factor.weight * 0.5:
                counts[factor.name] = counts.get(factor.name, 0) + 1
        for diagnosis in item.all_diagnoses:
            counts[diagnosis.title] = counts.get(diagnosis.title, 0) + 1

    ordered = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [name for name, _ in ordered[:limit]]


def generate_audit(
    features: List[Feature],
    scores: List[FeatureScore],
    diagnoses: List[Diagnosis],
    evidence: List[Evidence],
    artifact_count: int,
    now: datetime,
    ambiguities: Optional[List[str]] = None,
) -> Audit:
    """Assemble a complete audit.

    Args:
        features: Extracted features
        scores: Their scores
        diagnoses: All diagnoses of the run
        evidence: All evidence of the run
        artifact_count: Number of artifacts analyzed
        now: Analysis time captured once for the run
        ambiguities: Extraction notes carried into the audit

    Returns:
        Audit with summary and ranked features
    """
    ranked = rank_features(features, scores, diagnoses, evidence)

    by_risk_level = {level: 0 for level in RISK_LEVELS}
    for item in ranked:
        by_risk_level[item.risk_level] += 1

    analyzed_at = now.isoformat()
    summary = AuditSummary(
        audit_id=generate_audit_id(len(ranked), len(evidence), analyzed_at),
        total_features=len(ranked),
        by_risk_level=by_risk_level,
        top_risk_factors=identify_top_risk_factors(ranked),
        artifacts_analyzed=artifact_count,
        total_evidence=len(evidence),
        analyzed_at=analyzed_at,
    )

    logger.info(
        "Audit %s: %d feature(s), %d critical, %d high",
        summary.audit_id, summary.total_features,
        by_risk_level["critical"], by_risk_level["high"],
    )
    return Audit(summary=summary, ranked_features=ranked, ambiguities=list(ambiguities or []))


def get_top_at_risk_features(audit: Audit, limit: int = TOP_AT_RISK_LIMIT) -> List[RankedFeature]:
    return [rf for rf in audit.ranked_features if rf.risk_level != "low"][:limit]


def filter_by_risk_level(audit: Audit, level: str) -> List[RankedFeature]:
    return [rf for rf in audit.ranked_features if rf.risk_level == level]


def _plural(count: int) -> str:
    return "s" if count != 1 else ""


def generate_headline(audit: Audit) -> str:
    """One-line summary of the audit's worst news."""
    levels = audit.summary.by_risk_level
    critical, high, medium = levels.get("critical", 0), levels.get("high", 0), levels.get("medium", 0)

    if critical:
        return f"{critical} feature{_plural(critical)} at critical adoption risk"
    if high:
        return f"{high} feature{_plural(high)} at high adoption risk"

    at_risk = critical + high + medium
    if at_risk:
        return f"{at_risk} feature{_plural(at_risk)} showing adoption risk signals"

    return "No significant adoption risks detected"
