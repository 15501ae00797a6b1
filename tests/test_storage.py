import pytest

from feature_reacher.pipeline import run_audit
from feature_reacher.storage import AuditStore, PersistedAudit, SavedArtifactRef


@pytest.fixture
def store(tmp_path):
    return AuditStore(str(tmp_path / "audits"))


@pytest.fixture
def persisted(sample_artifacts, now):
    audit = run_audit(sample_artifacts, now=now)
    return PersistedAudit.from_audit(
        audit,
        sample_artifacts,
        name="June audit",
        tags=["docs"],
        created_at="2024-06-01T12:00:00+00:00",
    )


def test_from_audit_keeps_refs_not_content(persisted, sample_artifacts):
    assert len(persisted.id) == 12
    assert persisted.audit_id == persisted.summary.audit_id
    assert persisted.updated_at == persisted.created_at
    assert [r.id for r in persisted.artifact_refs] == [a.id for a in sample_artifacts]
    ref = persisted.artifact_refs[0]
    assert ref.char_count == len(sample_artifacts[0].raw_content)
    assert len(ref.hash) == 16
    assert "raw_content" not in ref.to_dict()
    assert [f.id for f in persisted.features] == [rf.feature.id for rf in persisted.ranked_features]


def test_default_name_uses_creation_date(sample_artifacts, now):
    audit = run_audit(sample_artifacts, now=now)
    persisted = PersistedAudit.from_audit(audit, sample_artifacts, created_at="2024-06-01T12:00:00+00:00")
    assert persisted.name == "Audit 2024-06-01"


def test_created_at_defaults_to_analysis_time(sample_artifacts, now):
    audit = run_audit(sample_artifacts, now=now)
    persisted = PersistedAudit.from_audit(audit, sample_artifacts)
    assert persisted.created_at == "2024-06-01T12:00:00+00:00"
    assert persisted.name == "Audit 2024-06-01"


def test_save_and_load_round_trip(store, persisted):
    assert store.save_audit(persisted) == persisted.id

    loaded = store.get_audit(persisted.id)
    assert loaded.to_dict() == persisted.to_dict()
    assert loaded.audit.to_dict()["summary"] == persisted.summary.to_dict()


def test_missing_and_corrupt_audits(store, tmp_path):
    assert store.get_audit("nope") is None
    assert store.load_all() == []

    (tmp_path / "audits").mkdir()
    (tmp_path / "audits" / "broken.json").write_text("{not json", encoding="utf-8")
    assert store.get_audit("broken") is None
    assert store.load_all() == []


def test_list_newest_first(store, make_persisted):
    older = make_persisted("AUD-AAAAAA", "2024-05-01T00:00:00+00:00", [("Audit Log", "critical", None)])
    newer = make_persisted("AUD-BBBBBB", "2024-06-01T00:00:00+00:00", [("Audit Log", "high", None)])
    store.save_audit(newer)
    store.save_audit(older)

    assert [a.audit_id for a in store.load_all()] == ["AUD-AAAAAA", "AUD-BBBBBB"]

    items = store.list_audits()
    assert [i.audit_id for i in items] == ["AUD-BBBBBB", "AUD-AAAAAA"]
    assert items[0].feature_count == 1
    assert items[0].high_risk_count == 1
    assert items[1].critical_risk_count == 1


def test_find_by_storage_or_audit_id(store, make_persisted):
    audit = make_persisted("AUD-CCCCCC", "2024-06-01T00:00:00+00:00", [])
    store.save_audit(audit)

    assert store.find_audit(audit.id).audit_id == "AUD-CCCCCC"
    assert store.find_audit("AUD-CCCCCC").id == audit.id
    assert store.find_audit("AUD-FFFFFF") is None


def test_rename_and_delete(store, make_persisted):
    audit = make_persisted("AUD-DDDDDD", "2024-06-01T00:00:00+00:00", [])
    store.save_audit(audit)

    assert store.update_audit_name(audit.id, "Renamed")
    renamed = store.get_audit(audit.id)
    assert renamed.name == "Renamed"
    assert renamed.updated_at != renamed.created_at

    assert store.delete_audit(audit.id)
    assert store.get_audit(audit.id) is None
    assert not store.delete_audit(audit.id)
    assert not store.update_audit_name(audit.id, "Gone")


def test_artifact_ref_round_trip():
    ref = SavedArtifactRef("artifact_1", "a.md", "faq", 10, "abcd")
    assert SavedArtifactRef.from_dict(ref.to_dict()) == ref
