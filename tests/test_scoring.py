from datetime import datetime, timedelta

import pytest

from feature_reacher.config import ScoringConfig
from feature_reacher.extractor import extract_features
from feature_reacher.models import Evidence, Feature
from feature_reacher.scoring import (
    FeatureScore,
    calculate_adoption_risk,
    calculate_density_score,
    calculate_recency_score,
    calculate_visibility_score,
    days_since,
    score_all_features,
    score_feature,
)


def _feature(first_seen, last_seen, sources=("artifact_a",)):
    return Feature(
        id="feature_smart_filters",
        name="Smart Filters",
        source_artifacts=list(sources),
        first_seen=first_seen,
        last_seen=last_seen,
    )


def _evidence(signal_type, location=None, confidence=0.7, n=0):
    return Evidence(
        id=f"evidence_{n}",
        artifact_id="artifact_a",
        feature_id="feature_smart_filters",
        excerpt="Smart Filters",
        signal_type=signal_type,
        timestamp="2024-05-20",
        location=location,
        confidence=confidence,
    )


def _assert_consistent(breakdown):
    assert 0.0 <= breakdown.score <= 1.0
    assert sum(f.contribution for f in breakdown.factors) == pytest.approx(breakdown.score)
    for factor in breakdown.factors:
        assert factor.contribution == pytest.approx(factor.value * factor.weight)


def test_recency_active_feature(now):
    breakdown = calculate_recency_score(_feature("2024-01-01", "2024-05-20"), now)

    _assert_consistent(breakdown)
    last = breakdown.factor("Last mention recency")
    assert last.raw_value == 12
    assert last.value == pytest.approx(1 - 12 / 180)
    assert breakdown.factor("Active maintenance").value == 1.0
    assert breakdown.score == pytest.approx(0.6 * (1 - 12 / 180) + 0.4)
    assert breakdown.explanation == "Recently mentioned and actively maintained"


def test_recency_stale_and_future(now):
    stale = calculate_recency_score(_feature("2022-01-01", "2022-06-01"), now)
    _assert_consistent(stale)
    assert stale.factor("Last mention recency").value == 0.0
    assert stale.score == pytest.approx(0.2)

    future = (now + timedelta(days=10)).isoformat()
    ahead = calculate_recency_score(_feature(future, future), now)
    _assert_consistent(ahead)
    assert ahead.factor("Last mention recency").value == 1.0


def test_days_since_accepts_naive_now():
    assert days_since("2024-05-20", datetime(2024, 6, 1, 12, 0), 180) == 12


def test_unparseable_timestamp_counts_as_stale(now):
    assert days_since("not a date", now, 180) == 180
    breakdown = calculate_recency_score(_feature("garbage", "garbage"), now)
    assert breakdown.factor("Last mention recency").value == 0.0


def test_custom_staleness_window(now):
    breakdown = calculate_recency_score(
        _feature("2024-05-20", "2024-05-20"), now, ScoringConfig(stale_days=24)
    )
    assert breakdown.factor("Last mention recency").value == pytest.approx(0.5)


def test_visibility_factors():
    feature = _feature("2024-01-01", "2024-05-20")
    evidence = [
        _evidence("onboarding", n=1),
        _evidence("documentation", location='Heading: "Smart Filters"', n=2),
    ]

    breakdown = calculate_visibility_score(feature, evidence, total_artifacts=2)

    _assert_consistent(breakdown)
    assert breakdown.score == pytest.approx(0.35 + 0.15 + 0.2 + 0.15)
    assert breakdown.factor("Cross-artifact visibility").raw_value == 1
    assert breakdown.factor("Prominent placement").raw_value == 1


def test_visibility_without_signals():
    breakdown = calculate_visibility_score(_feature("2024-01-01", "2024-05-20"), [], total_artifacts=0)
    _assert_consistent(breakdown)
    assert breakdown.score == pytest.approx(0.2 * 0.3)
    assert breakdown.explanation == "Low visibility - likely undiscoverable"


def test_density_empty_and_saturated():
    empty = calculate_density_score([])
    _assert_consistent(empty)
    assert empty.score == 0.0

    evidence = [_evidence(t, confidence=None, n=i) for i, t in
                enumerate(["documentation", "faq", "update", "documentation", "faq", "faq"])]
    full = calculate_density_score(evidence)
    _assert_consistent(full)
    assert full.factor("Evidence density").value == 1.0
    assert full.factor("Signal diversity").value == 1.0
    assert full.factor("Extraction confidence").value == pytest.approx(0.5)
    assert full.score == pytest.approx(0.5 + 0.3 + 0.1)


def test_adoption_risk_inverts_sub_scores(now):
    feature = _feature("2024-01-01", "2024-05-20")
    evidence = [_evidence("onboarding", location='Heading: "Smart Filters"', n=1)]
    score = score_feature(feature, evidence, 1, now)

    risk = score.adoption_risk
    _assert_consistent(risk)
    expected = (
        0.4 * (1 - score.recency.score)
        + 0.35 * (1 - score.visibility.score)
        + 0.25 * (1 - score.documentation_density.score)
    )
    assert risk.score == pytest.approx(expected)
    assert risk.factor("Visibility risk").raw_value == pytest.approx(score.visibility.score)


def test_adoption_risk_contributions_sum_to_score(now):
    feature = _feature("2022-01-01", "2022-01-01")
    recency = calculate_recency_score(feature, now)
    visibility = calculate_visibility_score(feature, [], 1)
    density = calculate_density_score([])

    config = ScoringConfig(recency_weight=0.6, visibility_weight=0.3, density_weight=0.1)
    risk = calculate_adoption_risk(recency, visibility, density, config)
    _assert_consistent(risk)
    assert risk.score == pytest.approx(1 - 0.6 * recency.score - 0.3 * visibility.score - 0.1 * density.score)


def test_scoring_config_rejects_weights_above_one():
    with pytest.raises(ValueError, match="sum to at most 1"):
        ScoringConfig(recency_weight=0.6, visibility_weight=0.5, density_weight=0.4)
    with pytest.raises(ValueError):
        ScoringConfig.from_dict({"density_weight": 0.5})
    assert ScoringConfig(recency_weight=0.5, visibility_weight=0.3, density_weight=0.2).density_weight == 0.2


def test_scoring_config_validation():
    with pytest.raises(ValueError):
        ScoringConfig(stale_days=0)
    with pytest.raises(ValueError):
        ScoringConfig(recency_weight=-0.1)
    assert ScoringConfig.from_dict({"stale_days": "90"}).stale_days == 90
    assert ScoringConfig.from_dict(None) == ScoringConfig()


def test_score_all_features_sorted_by_risk(sample_artifacts, now):
    extraction = extract_features(sample_artifacts)
    scores = score_all_features(extraction.features, extraction.evidence, sample_artifacts, now)

    assert len(scores) == len(extraction.features)
    risks = [s.adoption_risk.score for s in scores]
    assert risks == sorted(risks, reverse=True)
    for score in scores:
        for breakdown in (score.recency, score.visibility, score.documentation_density, score.adoption_risk):
            _assert_consistent(breakdown)


def test_feature_score_round_trip(now):
    score = score_feature(_feature("2024-01-01", "2024-05-20"), [_evidence("faq")], 1, now)
    assert FeatureScore.from_dict(score.to_dict()) == score
