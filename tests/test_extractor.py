import pytest

from feature_reacher.extractor import (
    extract_feature_from_bullet,
    extract_features,
    extract_features_from_artifact,
    extract_from_bullets,
    extract_from_headings,
    extract_from_repeated_phrases,
    generate_feature_id,
    infer_signal_type,
    normalize_feature_name,
)
from feature_reacher.ingestion import ingest_text
from feature_reacher.models import Artifact

from conftest import RELEASE_NOTES


def _artifact(content, is_code_like=False, artifact_type="documentation"):
    return Artifact.create(
        id="artifact_test",
        name="test.md",
        type=artifact_type,
        raw_content=content,
        normalized_content=content,
        uploaded_at="2024-05-01T00:00:00+00:00",
        is_code_like=is_code_like,
    )


def test_single_feature_from_heading_and_repetition(dashboard_artifact):
    result = extract_features_from_artifact(dashboard_artifact)

    assert [f.name for f in result.features] == ["Dashboard"]
    feature = result.features[0]
    assert feature.id == "feature_dashboard"
    assert feature.source_artifacts == [dashboard_artifact.id]

    assert len(result.evidence) >= 2
    by_location = {e.location: e for e in result.evidence}
    assert by_location['Heading: "Dashboard"'].confidence == pytest.approx(0.85)
    repeated = [e for e in result.evidence if e.location.startswith("Repeated")]
    assert len(repeated) == 1
    assert repeated[0].confidence == pytest.approx(0.8)
    assert all(e.feature_id == feature.id for e in result.evidence)
    assert result.ambiguities == []


def test_generic_and_long_headings_are_skipped():
    artifact = ingest_text(
        "# Overview\n# Getting Started\n# This heading has far too many words to be a feature\n# Audit Log\n",
        name="doc.md",
    ).artifact
    assert [m.name for m in extract_from_headings(artifact)] == ["Audit Log"]


@pytest.mark.parametrize("text, expected", [
    ("Offline Mode: work without a connection", "Offline Mode"),
    ("Offline Mode - work without a connection", "Offline Mode"),
    ("Added: Smart Filters", "Smart Filters"),
    ("Added dark mode", "Dark mode"),
    ("Export feature", "Export"),
    ("the quick brown fox jumped", ""),
    ("Go", ""),
])
def test_extract_feature_from_bullet(text, expected):
    assert extract_feature_from_bullet(text) == expected


def test_bullets_with_signal_types():
    artifact = ingest_text(RELEASE_NOTES, name="release-notes.md").artifact
    mentions = {m.name: m for m in extract_from_bullets(artifact)}

    assert mentions["Smart Filters"].signal_type == "update"
    assert mentions["Legacy Export"].signal_type == "deprecation"
    assert mentions["Bulk Editing"].signal_type == "release_note"
    assert all(m.confidence == pytest.approx(0.7) for m in mentions.values())


def test_descriptive_bullets_are_skipped():
    mentions = extract_from_bullets(_artifact("- Sync is fast\n- Offline Mode\n1. Saved Views\n"))
    assert [m.name for m in mentions] == ["Offline Mode", "Saved Views"]


def test_repetition_needs_three_mentions():
    mentions = extract_from_repeated_phrases(_artifact("Widget here. Widget there. Widget everywhere."))
    assert len(mentions) == 1
    assert mentions[0].name == "Widget"
    assert mentions[0].location == "Repeated 3 times"
    assert mentions[0].confidence == pytest.approx(0.75)

    assert extract_from_repeated_phrases(_artifact("Widget here. Widget there.")) == []


def test_repetition_disabled_for_code_like_artifacts():
    content = "Widget here. Widget there. Widget everywhere."
    assert extract_from_repeated_phrases(_artifact(content, is_code_like=True)) == []


def test_repetition_skips_code_wrapped_identifiers():
    assert extract_from_repeated_phrases(_artifact("{Widget} {Widget} {Widget}")) == []


def test_repeated_phrases_do_not_span_lines():
    content = "Use Reports\nExport now. Use Reports\nExport later. Use Reports\nExport again."
    mentions = extract_from_repeated_phrases(_artifact(content))
    assert [m.name for m in mentions] == ["Use Reports"]


def test_no_features_produces_ambiguity_note():
    artifact = ingest_text("just some lowercase prose without anything notable.", name="plain.txt").artifact
    result = extract_features_from_artifact(artifact)
    assert result.features == []
    assert result.evidence == []
    assert result.ambiguities == [
        'No features extracted from "plain.txt". Content may be too generic or unstructured.'
    ]


def test_merge_across_artifacts_widens_range():
    content = "# Smart Filters\n\nSlice reports by tag."
    first = ingest_text(content, name="a.md", uploaded_at="2024-01-01T00:00:00+00:00").artifact
    second = ingest_text(content, name="b.md", uploaded_at="2024-04-01T00:00:00+00:00").artifact

    result = extract_features([second, first])

    assert len(result.features) == 1
    feature = result.features[0]
    assert set(feature.source_artifacts) == {first.id, second.id}
    assert feature.first_seen == "2024-01-01T00:00:00+00:00"
    assert feature.last_seen == "2024-04-01T00:00:00+00:00"
    assert len(result.evidence) == 2
    assert len({e.id for e in result.evidence}) == 2


def test_extraction_is_deterministic(sample_artifacts):
    assert extract_features(sample_artifacts).to_dict() == extract_features(sample_artifacts).to_dict()


def test_feature_names_and_ids():
    assert normalize_feature_name("  The   Smart Filters! ") == "Smart Filters"
    assert generate_feature_id("Smart Filters") == "feature_smart_filters"
    fallback = generate_feature_id("!!!")
    assert fallback.startswith("feature_") and len(fallback) == len("feature_") + 12


@pytest.mark.parametrize("artifact_type, text, expected", [
    ("faq", "How to export", "faq"),
    ("faq", "Renewal reminders", "faq"),
    ("documentation", "Removed legacy sync", "deprecation"),
    ("onboarding", "New: Quick tour", "update"),
    ("onboarding", "Quick tour", "onboarding"),
    ("marketing", "Quick tour", "documentation"),
])
def test_infer_signal_type(artifact_type, text, expected):
    assert infer_signal_type(artifact_type, text) == expected


def test_merge_across_artifacts_prefers_highest_confidence_spelling():
    bullet_doc = ingest_text("- Smart filters\n", name="notes.md", uploaded_at="2024-01-01T00:00:00+00:00").artifact
    heading_doc = ingest_text(
        "# Smart Filters\n\nSlice reports by tag.",
        name="guide.md",
        uploaded_at="2024-02-01T00:00:00+00:00",
    ).artifact

    for order in ([bullet_doc, heading_doc], [heading_doc, bullet_doc]):
        result = extract_features(order)
        assert len(result.features) == 1
        feature = result.features[0]
        assert feature.name == "Smart Filters"
        assert feature.aliases == ["Smart filters"]
