"""Rule-based adoption risk diagnosis.

The rules are plain data: an ordered tuple of DiagnosisRule records whose
fields are small functions of ``(score, evidence)``. Adding a diagnosis
means appending a record, not subclassing.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from .models import Diagnosis, Evidence, Feature, group_evidence_by_feature, sort_diagnoses_by_risk
from .scoring import FeatureScore
from .utils import setup_logging


logger = setup_logging(__name__)


MIN_CONFIDENCE = 0.3
MODERATE_RISK_THRESHOLD = 0.4
MAX_RULE_EVIDENCE = 5
MAX_GENERIC_EVIDENCE = 3

Check = Callable[[FeatureScore, List[Evidence]], bool]
Severity = Callable[[FeatureScore, List[Evidence]], str]
Confidence = Callable[[FeatureScore, List[Evidence]], float]
Explain = Callable[[FeatureScore, List[Evidence]], str]
Signals = Callable[[FeatureScore, List[Evidence]], List[str]]


@dataclass(frozen=True)
class DiagnosisRule:
    type: str
    title: str
    check: Check
    severity: Severity
    confidence: Confidence
    explain: Explain
    signals: Signals


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _has_signal(evidence: List[Evidence], signal_type: str) -> bool:
    return any(e.signal_type == signal_type for e in evidence)


def _dormant_severity(score: FeatureScore, evidence: List[Evidence]) -> str:
    risk = score.adoption_risk.score
    if risk > 0.7:
        return "high"
    if risk > 0.5:
        return "medium"
    return "low"


def _dormant_explanation(score: FeatureScore, evidence: List[Evidence]) -> str:
    factor = score.recency.factor("Last mention recency")
    detail = factor.explanation if factor else ""
    return (
        "This feature has documentation but hasn't been mentioned in recent content. "
        f"{detail}. Users may not know it exists despite being documented."
    )


def _invisible_severity(score: FeatureScore, evidence: List[Evidence]) -> str:
    visibility = score.visibility.score
    if visibility < 0.2:
        return "critical"
    if visibility < 0.3:
        return "high"
    return "medium"


def _invisible_explanation(score: FeatureScore, evidence: List[Evidence]) -> str:
    explanation = "This feature lacks visibility signals that help users discover it."
    if not _has_signal(evidence, "onboarding"):
        explanation += " It does not appear in onboarding or getting-started content."
    if not any(e.is_heading for e in evidence):
        explanation += " It is not prominently featured in section headings."
    return explanation


def _invisible_signals(score: FeatureScore, evidence: List[Evidence]) -> List[str]:
    signals = [f"Visibility score: {_pct(score.visibility.score)}"]
    signals.extend(f"Weak: {f.explanation}" for f in score.visibility.factors if f.underperforms)
    return signals


def _deprecated_check(score: FeatureScore, evidence: List[Evidence]) -> bool:
    very_stale = score.recency.score < 0.2
    return _has_signal(evidence, "deprecation") or (very_stale and score.visibility.score < 0.3)


def _deprecated_explanation(score: FeatureScore, evidence: List[Evidence]) -> str:
    if _has_signal(evidence, "deprecation"):
        return (
            "This feature shows explicit deprecation signals in the documentation. "
            "Consider whether it should be removed or replaced."
        )
    return (
        "This feature is extremely stale and nearly invisible. It may be a candidate "
        "for deprecation or requires immediate attention to remain viable."
    )


def _deprecated_signals(score: FeatureScore, evidence: List[Evidence]) -> List[str]:
    signals = [
        f"Recency: {_pct(score.recency.score)}",
        f"Visibility: {_pct(score.visibility.score)}",
    ]
    if _has_signal(evidence, "deprecation"):
        signals.append("Explicit deprecation signal found")
    return signals


DIAGNOSIS_RULES = (
    DiagnosisRule(
        type="dormant_but_documented",
        title="Dormant but Documented",
        check=lambda s, e: s.recency.score < 0.4 and s.documentation_density.score > 0.5,
        severity=_dormant_severity,
        confidence=lambda s, e: min((1 - s.recency.score + s.documentation_density.score) / 2 + 0.2, 0.95),
        explain=_dormant_explanation,
        signals=lambda s, e: [
            f"Recency score: {_pct(s.recency.score)}",
            f"Documentation score: {_pct(s.documentation_density.score)}",
            "No recent release notes or updates",
        ],
    ),
    DiagnosisRule(
        type="likely_invisible",
        title="Likely Invisible to Users",
        check=lambda s, e: s.visibility.score < 0.4,
        severity=_invisible_severity,
        confidence=lambda s, e: min(1 - s.visibility.score + 0.3, 0.9),
        explain=_invisible_explanation,
        signals=_invisible_signals,
    ),
    DiagnosisRule(
        type="over_referenced_but_stale",
        title="Over-Referenced but Stale",
        check=lambda s, e: s.documentation_density.score > 0.6 and s.recency.score < 0.3,
        severity=lambda s, e: "medium",
        confidence=lambda s, e: min(s.documentation_density.score * (1 - s.recency.score), 0.85),
        explain=lambda s, e: (
            "This feature is heavily documented in older content but absent from recent "
            "materials. It may have been important historically but could be falling out "
            "of favor or superseded by newer features."
        ),
        signals=lambda s, e: [
            f"Evidence density: {_pct(s.documentation_density.score)}",
            f"Recency: {_pct(s.recency.score)}",
            "Gap between historical prominence and current silence",
        ],
    ),
    DiagnosisRule(
        type="deprecated_candidate",
        title="Potential Deprecation Candidate",
        check=_deprecated_check,
        severity=lambda s, e: "high" if s.recency.score < 0.1 else "medium",
        confidence=lambda s, e: 0.85 if _has_signal(e, "deprecation") else 0.5,
        explain=_deprecated_explanation,
        signals=_deprecated_signals,
    ),
    DiagnosisRule(
        type="undiscoverable",
        title="Undiscoverable Feature",
        check=lambda s, e: s.visibility.score < 0.3 and s.documentation_density.score < 0.4,
        severity=lambda s, e: "critical",
        confidence=lambda s, e: min((1 - s.visibility.score) * (1 - s.documentation_density.score) + 0.4, 0.95),
        explain=lambda s, e: (
            "This feature has no clear entry points for users to discover it. It is "
            "neither prominently documented nor visible in onboarding materials. Users "
            "are unlikely to find this feature without explicit guidance."
        ),
        signals=lambda s, e: [
            f"Visibility: {_pct(s.visibility.score)}",
            f"Documentation density: {_pct(s.documentation_density.score)}",
            "No onboarding presence",
            "No prominent placement",
        ],
    ),
    DiagnosisRule(
        type="healthy",
        title="Healthy Feature",
        check=lambda s, e: s.adoption_risk.score < 0.3,
        severity=lambda s, e: "low",
        confidence=lambda s, e: min(1 - s.adoption_risk.score + 0.2, 0.95),
        explain=lambda s, e: (
            "This feature appears well-surfaced with recent activity, good visibility, "
            "and adequate documentation. Current adoption risk is low."
        ),
        signals=lambda s, e: [
            f"Adoption risk: {_pct(s.adoption_risk.score)}",
            f"Recency: {_pct(s.recency.score)}",
            f"Visibility: {_pct(s.visibility.score)}",
        ],
    ),
)


def generate_diagnosis_id(feature_id: str, diagnosis_type: str) -> str:
    return f"diagnosis_{feature_id}_{diagnosis_type}"


def diagnose_feature(
    feature: Feature,
    score: FeatureScore,
    feature_evidence: List[Evidence],
    generated_at: str,
) -> List[Diagnosis]:
    """Evaluate every rule against one feature, in rule order.

    Args:
        feature: The feature being diagnosed
        score: Its FeatureScore
        feature_evidence: Evidence belonging to this feature only
        generated_at: Analysis timestamp of the audit

    Returns:
        Diagnoses in rule order; possibly empty
    """
    diagnoses: List[Diagnosis] = []

    # Named rules need something to cite
    if feature_evidence:
        for rule in DIAGNOSIS_RULES:
            if not rule.check(score, feature_evidence):
                continue

            confidence = rule.confidence(score, feature_evidence)
            if confidence < MIN_CONFIDENCE:
                continue
            if rule.type == "healthy" and any(d.type != "healthy" for d in diagnoses):
                continue

            diagnoses.append(Diagnosis(
                id=generate_diagnosis_id(feature.id, rule.type),
                feature_id=feature.id,
                type=rule.type,
                title=rule.title,
                explanation=rule.explain(score, feature_evidence),
                severity=rule.severity(score, feature_evidence),
                confidence=confidence,
                triggering_signals=rule.signals(score, feature_evidence),
                supporting_evidence=list(feature_evidence[:MAX_RULE_EVIDENCE]),
                generated_at=generated_at,
            ))

    if not diagnoses and score.adoption_risk.score > MODERATE_RISK_THRESHOLD:
        diagnoses.append(Diagnosis(
            id=generate_diagnosis_id(feature.id, "moderate_risk"),
            feature_id=feature.id,
            type="moderate_risk",
            title="Moderate Adoption Risk",
            explanation=(
                "This feature shows moderate risk signals but doesn't match a specific "
                "diagnosis pattern. Review the score breakdown for details."
            ),
            severity="medium",
            confidence=0.5,
            triggering_signals=[f"Adoption risk: {_pct(score.adoption_risk.score)}"],
            supporting_evidence=list(feature_evidence[:MAX_GENERIC_EVIDENCE]),
            generated_at=generated_at,
        ))

    return diagnoses


def diagnose_all_features(
    features: Iterable[Feature],
    scores: Iterable[FeatureScore],
    evidence: List[Evidence],
    generated_at: str,
) -> List[Diagnosis]:
    """Diagnose every feature that has a score."""
    by_id: Dict[str, FeatureScore] = {s.feature_id: s for s in scores}
    by_feature = group_evidence_by_feature(evidence)

    diagnoses: List[Diagnosis] = []
    for feature in features:
        score = by_id.get(feature.id)
        if score is None:
            logger.warning("No score for feature %s; skipping diagnosis", feature.id)
            continue
        diagnoses.extend(diagnose_feature(feature, score, by_feature.get(feature.id, []), generated_at))

    logger.debug("Generated %d diagnosis record(s)", len(diagnoses))
    return diagnoses


def get_primary_diagnosis(diagnoses: List[Diagnosis]) -> Optional[Diagnosis]:
    """Highest severity, then highest confidence, then rule order."""
    ordered = sort_diagnoses_by_risk(diagnoses)
    return ordered[0] if ordered else None
