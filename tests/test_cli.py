import json

import pytest

from feature_reacher.cli import main
from feature_reacher.config import CONFIG_ENV_VAR
from feature_reacher.storage import AuditStore

from conftest import DASHBOARD_DOC, FAQ, ONBOARDING, RELEASE_NOTES


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    docs = tmp_path / "docs"
    docs.mkdir()
    for name, content in (
        ("release-notes.md", RELEASE_NOTES),
        ("getting-started.md", ONBOARDING),
        ("faq.md", FAQ),
        ("dashboard.md", DASHBOARD_DOC),
    ):
        (docs / name).write_text(content, encoding="utf-8")

    config = tmp_path / "config.yaml"
    config.write_text(
        f"storage:\n  audits_dir: {tmp_path / 'audits'}\n"
        f"report:\n  output_dir: {tmp_path / 'reports'}\n  formats: [markdown]\n",
        encoding="utf-8",
    )
    return tmp_path


def _run(workspace, *args):
    return main(["--config", str(workspace / "config.yaml")] + list(args))


def test_audit_list_diff_trend(workspace, capsys):
    docs = workspace / "docs"

    assert _run(workspace, "audit", str(docs / "release-notes.md"), str(docs / "faq.md"), "--name", "First") == 0
    out = capsys.readouterr().out
    assert "FEATURE ADOPTION RISK AUDIT" in out

    assert _run(
        workspace, "audit", str(docs / "release-notes.md"), str(docs / "getting-started.md"),
        str(docs / "dashboard.md"), "--name", "Second", "--format", "json",
    ) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["summary"]["artifacts_analyzed"] == 3
    assert (workspace / "reports" / f"{data['summary']['audit_id']}.md").exists()

    assert _run(workspace, "list") == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    assert "Second" in lines[0] and "First" in lines[1]

    newer, older = AuditStore(str(workspace / "audits")).list_audits()
    assert _run(workspace, "diff", older.id, newer.id) == 0
    assert "# Audit Comparison" in capsys.readouterr().out

    assert _run(workspace, "diff", older.id, newer.id, "--format", "json") == 0
    diff = json.loads(capsys.readouterr().out)
    assert diff["base_audit_name"] == "First"
    assert diff["summary"]["added_features"] >= 1

    assert _run(workspace, "trend") == 0
    assert "**Audits analyzed:** 2" in capsys.readouterr().out

    assert _run(workspace, "trend", "--feature", "Smart Filters", "--format", "json") == 0
    trend = json.loads(capsys.readouterr().out)
    assert trend["feature_name"] == "Smart Filters"
    assert len(trend["points"]) == 2


def test_audit_without_saving(workspace, capsys):
    docs = workspace / "docs"
    assert _run(workspace, "audit", str(docs / "faq.md"), "--no-save", "--no-reports", "--format", "markdown") == 0
    assert capsys.readouterr().out.startswith("# Feature Adoption Risk Audit")
    assert AuditStore(str(workspace / "audits")).list_audits() == []
    assert not (workspace / "reports").exists()


def test_audit_with_unreadable_files_only(workspace):
    assert _run(workspace, "audit", str(workspace / "docs" / "missing.md")) == 1


def test_unknown_references(workspace):
    assert _run(workspace, "diff", "nope", "AUD-000000") == 2
    assert _run(workspace, "trend", "--feature", "Nothing") == 1


def test_missing_explicit_config(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert main(["--config", str(tmp_path / "absent.yaml"), "list"]) == 2


def test_defaults_without_config_file(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)
    assert main(["list"]) == 0
    assert capsys.readouterr().out.strip() == "No saved audits"


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        main([])
