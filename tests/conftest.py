"""Shared fixtures for feature_reacher tests."""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest

from feature_reacher.extractor import generate_feature_id
from feature_reacher.ingestion import ingest_text
from feature_reacher.models import RISK_LEVELS, Diagnosis, Feature
from feature_reacher.ranking import AuditSummary, RankedFeature
from feature_reacher.scoring import FeatureScore, ScoreBreakdown
from feature_reacher.storage import PersistedAudit


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

DASHBOARD_DOC = """# Dashboard

The Dashboard shows your key metrics at a glance. Open the Dashboard to
customize widgets and rearrange panels. You can share the Dashboard with
teammates who need the same view.
"""

RELEASE_NOTES = """# Release Notes

## Version 2.4 - 2024-05-20

- Added: Smart Filters
- Deprecated: Legacy Export
- Bulk Editing

Smart Filters let you slice any report by tag, owner or status. Smart Filters
are saved per workspace, and Smart Filters can be shared with a link.
"""

ONBOARDING = """# Getting Started

Welcome aboard. This guide walks you through your first week.

## Smart Filters

1. Open any report
2. Choose Smart Filters from the toolbar

Most teams begin with the Dashboard and then set up Smart Filters for their
weekly review.
"""

FAQ = """# Frequently Asked Questions

## Can I schedule exports?

Q: How do I use Scheduled Reports?
Scheduled Reports email a PDF every Monday. Scheduled Reports can be paused at
any time and Scheduled Reports respect your workspace time zone.
"""

JS_SOURCE = """import React from 'react';
const App = () => {
  const [count, setCount] = useState(0);
  console.log(count);
  return <div>{count}</div>;
};
export default App;
"""

RISK_SCORES = {"low": 0.2, "medium": 0.45, "high": 0.6, "critical": 0.85}


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def dashboard_artifact():
    return ingest_text(
        DASHBOARD_DOC,
        name="dashboard.md",
        artifact_type="documentation",
        uploaded_at="2024-05-01T00:00:00+00:00",
    ).artifact


@pytest.fixture
def sample_artifacts():
    return [
        ingest_text(RELEASE_NOTES, name="release-notes.md", uploaded_at="2024-05-21T00:00:00+00:00").artifact,
        ingest_text(ONBOARDING, name="getting-started.md", uploaded_at="2024-05-01T00:00:00+00:00").artifact,
        ingest_text(FAQ, name="faq.md", uploaded_at="2023-10-01T00:00:00+00:00").artifact,
        ingest_text(DASHBOARD_DOC, name="dashboard.md", artifact_type="documentation",
                    uploaded_at="2024-02-01T00:00:00+00:00").artifact,
    ]


def _ranked(name: str, level: str, diagnosis_type: Optional[str]) -> RankedFeature:
    feature = Feature.create(generate_feature_id(name), name, "artifact_test", "2024-01-01")
    breakdown = ScoreBreakdown(score=0.5, explanation="", factors=[])
    score = FeatureScore(feature.id, name, breakdown, breakdown, breakdown, breakdown)

    diagnoses: List[Diagnosis] = []
    if diagnosis_type:
        diagnoses.append(Diagnosis(
            id=f"diagnosis_{feature.id}_{diagnosis_type}",
            feature_id=feature.id,
            type=diagnosis_type,
            title=diagnosis_type.replace("_", " ").title(),
            explanation="",
            severity="medium",
            confidence=0.5,
        ))

    return RankedFeature(
        rank=0,
        feature=feature,
        score=score,
        primary_diagnosis=diagnoses[0] if diagnoses else None,
        all_diagnoses=diagnoses,
        evidence=[],
        risk_score=RISK_SCORES[level],
        risk_level=level,
    )


def _make_persisted(
    audit_id: str,
    created_at: str,
    features: List[Tuple[str, str, Optional[str]]],
) -> PersistedAudit:
    """Build a persisted audit from (name, risk level, diagnosis type) triples."""
    ranked = [_ranked(name, level, diagnosis) for name, level, diagnosis in features]
    for index, item in enumerate(ranked):
        item.rank = index + 1

    by_level = {level: 0 for level in RISK_LEVELS}
    for item in ranked:
        by_level[item.risk_level] += 1

    summary = AuditSummary(
        audit_id=audit_id,
        total_features=len(ranked),
        by_risk_level=by_level,
        top_risk_factors=[],
        artifacts_analyzed=1,
        total_evidence=0,
        analyzed_at=created_at,
    )
    return PersistedAudit(
        id=f"store-{audit_id.lower()}",
        audit_id=audit_id,
        name=f"Audit {audit_id}",
        created_at=created_at,
        updated_at=created_at,
        features=[rf.feature for rf in ranked],
        ranked_features=ranked,
        summary=summary,
    )


@pytest.fixture
def make_persisted():
    return _make_persisted
